from __future__ import annotations

import os
from typing import Mapping, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ValidationError, computed_field, field_validator

from .. import __version__
from ..domain.shared.errors import ConfigurationError


DEFAULT_LEDGER_BASE_URL = "https://cloud-api.phala.com"
DEFAULT_FACILITATOR_URL = "https://facilitator.corbits.io"


class Settings(BaseModel):
    top_up_cost: int

    solana_receiving_address: Optional[str] = None
    evm_receiving_address: Optional[str] = None
    solana_network: str = "devnet"
    evm_network: str = "base-sepolia"
    payment_asset: str = "USDC"
    payment_max_timeout_seconds: int = 60

    ledger_base_url: str = DEFAULT_LEDGER_BASE_URL
    ledger_api_key: str
    ledger_timeout_seconds: float = 10.0

    facilitator_url: str = DEFAULT_FACILITATOR_URL
    facilitator_timeout_seconds: float = 10.0

    topup_http_methods: list[str] = ["POST"]
    balance_topup_threshold: float = 1.1
    balance_include_needs_topup: bool = True

    api_host: str = "0.0.0.0"
    api_port: int = 3000
    api_cors_origins: list[str] = ["*"]
    log_level: str = "info"

    app_name: str = "creditgate"
    app_version: str = __version__

    dstack_app_id: Optional[str] = None
    dstack_gateway_domain: Optional[str] = None

    @field_validator("top_up_cost")
    @classmethod
    def validate_top_up_cost(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("TOP_UP_COST must be a positive integer")
        return v

    @field_validator("ledger_api_key")
    @classmethod
    def validate_ledger_api_key(cls, v: str) -> str:
        if not v:
            raise ValueError("PHALA_CLOUD_API_KEY cannot be empty")
        return v

    @field_validator("ledger_base_url", "facilitator_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        parsed = urlparse(v)
        if parsed.scheme not in {"http", "https"}:
            raise ValueError("URL must start with http:// or https://")
        if not parsed.netloc:
            raise ValueError("URL must include a host")
        return v.rstrip("/")

    @field_validator("topup_http_methods")
    @classmethod
    def validate_topup_http_methods(cls, v: list[str]) -> list[str]:
        methods = [m.strip().upper() for m in v if m.strip()]
        if not methods:
            raise ValueError("TOPUP_HTTP_METHODS needs at least one method")
        unsupported = set(methods) - {"GET", "POST"}
        if unsupported:
            raise ValueError(
                f"TOPUP_HTTP_METHODS only supports GET and POST, got {sorted(unsupported)}"
            )
        return methods

    @computed_field  # type: ignore[prop-decorator]
    @property
    def public_url(self) -> str:
        """URL the service is reachable at, for the startup banner."""
        if self.dstack_app_id and self.dstack_gateway_domain:
            return f"https://{self.dstack_app_id}-{self.api_port}.{self.dstack_gateway_domain}"
        return f"http://localhost:{self.api_port}"


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None or not value.strip():
        return None
    return value.strip()


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _split_list(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def get_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build ``Settings`` from the process environment.

    Raises:
        ConfigurationError: A required variable is missing or a value is invalid.
    """
    env = os.environ if environ is None else environ

    top_up_cost_str = _blank_to_none(env.get("TOP_UP_COST"))
    if top_up_cost_str is None:
        raise ConfigurationError("TOP_UP_COST is required")
    try:
        top_up_cost = int(top_up_cost_str)
    except ValueError:
        raise ConfigurationError(
            f"TOP_UP_COST must be an integer, got {top_up_cost_str!r}"
        ) from None

    ledger_api_key = _blank_to_none(env.get("PHALA_CLOUD_API_KEY"))
    if ledger_api_key is None:
        raise ConfigurationError("PHALA_CLOUD_API_KEY is required")

    solana_address = _blank_to_none(env.get("SOLANA_RECEIVING_ADDRESS"))
    evm_address = _blank_to_none(env.get("EVM_RECEIVING_ADDRESS"))
    if solana_address is None and evm_address is None:
        raise ConfigurationError(
            "At least one of EVM_RECEIVING_ADDRESS or SOLANA_RECEIVING_ADDRESS is required"
        )

    values: dict[str, object] = {
        "top_up_cost": top_up_cost,
        "ledger_api_key": ledger_api_key,
        "solana_receiving_address": solana_address,
        "evm_receiving_address": evm_address,
    }

    optional_strings = {
        "SOLANA_NETWORK": "solana_network",
        "EVM_NETWORK": "evm_network",
        "PAYMENT_ASSET": "payment_asset",
        "PHALA_API_URL": "ledger_base_url",
        "FACILITATOR_URL": "facilitator_url",
        "API_HOST": "api_host",
        "LOG_LEVEL": "log_level",
        "APP_NAME": "app_name",
        "APP_VERSION": "app_version",
        "DSTACK_APP_ID": "dstack_app_id",
        "DSTACK_GATEWAY_DOMAIN": "dstack_gateway_domain",
    }
    for env_key, field_name in optional_strings.items():
        value = _blank_to_none(env.get(env_key))
        if value is not None:
            values[field_name] = value

    # Numeric values are handed to pydantic as strings so it reports bad input.
    optional_numbers = {
        "PAYMENT_MAX_TIMEOUT_SECONDS": "payment_max_timeout_seconds",
        "LEDGER_TIMEOUT_SECONDS": "ledger_timeout_seconds",
        "FACILITATOR_TIMEOUT_SECONDS": "facilitator_timeout_seconds",
        "BALANCE_TOPUP_THRESHOLD": "balance_topup_threshold",
        "API_PORT": "api_port",
    }
    for env_key, field_name in optional_numbers.items():
        value = _blank_to_none(env.get(env_key))
        if value is not None:
            values[field_name] = value

    port_str = _blank_to_none(env.get("PORT"))
    if port_str is not None and "api_port" not in values:
        values["api_port"] = port_str

    methods_str = _blank_to_none(env.get("TOPUP_HTTP_METHODS"))
    if methods_str is not None:
        values["topup_http_methods"] = _split_list(methods_str)

    cors_str = _blank_to_none(env.get("API_CORS_ORIGINS"))
    if cors_str is not None:
        values["api_cors_origins"] = _split_list(cors_str)

    include_needs_topup_str = _blank_to_none(env.get("BALANCE_INCLUDE_NEEDS_TOPUP"))
    if include_needs_topup_str is not None:
        values["balance_include_needs_topup"] = _parse_bool(include_needs_topup_str)

    try:
        return Settings(**values)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e
