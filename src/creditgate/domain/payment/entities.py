"""Payment domain entities: descriptors, proofs and verification outcomes."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


X402_VERSION = 1
SCHEME_EXACT = "exact"


class NetworkKind(str, Enum):
    """Closed set of chain families a descriptor can be built for."""

    SOLANA = "solana"
    EVM = "evm"


class TokenInfo(BaseModel):
    """On-chain metadata for a payable token on one network environment."""

    model_config = ConfigDict(frozen=True)

    symbol: str
    address: str
    decimals: int
    name: str
    version: Optional[str] = None


class PaymentDescriptor(BaseModel):
    """A single network/asset/amount/payee combination the server accepts."""

    model_config = ConfigDict(frozen=True)

    network_kind: NetworkKind
    network: str = Field(..., min_length=1)
    scheme: str = SCHEME_EXACT
    asset: str = Field(..., min_length=1)
    asset_address: str = Field(..., min_length=1)
    amount: int = Field(..., gt=0)
    pay_to: str = Field(..., min_length=1)
    extra: Dict[str, Any] = Field(default_factory=dict)

    def matches(self, scheme: str, network: str) -> bool:
        return self.scheme == scheme and self.network == network

    def to_requirements(
        self,
        *,
        resource: str,
        description: str = "",
        mime_type: str = "application/json",
        max_timeout_seconds: int = 60,
    ) -> Dict[str, Any]:
        """Render as an x402 v1 ``PaymentRequirements`` object."""
        requirements: Dict[str, Any] = {
            "scheme": self.scheme,
            "network": self.network,
            "maxAmountRequired": str(self.amount),
            "resource": resource,
            "description": description,
            "mimeType": mime_type,
            "payTo": self.pay_to,
            "maxTimeoutSeconds": max_timeout_seconds,
            "asset": self.asset_address,
        }
        if self.extra:
            requirements["extra"] = dict(self.extra)
        return requirements


class PaymentAcceptanceSet(BaseModel):
    """Ordered, non-empty, read-only collection of payment descriptors.

    Order expresses preference when advertised to callers; verification
    accepts a match against any entry.
    """

    model_config = ConfigDict(frozen=True)

    descriptors: Tuple[PaymentDescriptor, ...] = Field(..., min_length=1)

    def find(self, scheme: str, network: str) -> Optional[PaymentDescriptor]:
        for descriptor in self.descriptors:
            if descriptor.matches(scheme, network):
                return descriptor
        return None

    def networks(self) -> Tuple[NetworkKind, ...]:
        seen: list[NetworkKind] = []
        for descriptor in self.descriptors:
            if descriptor.network_kind not in seen:
                seen.append(descriptor.network_kind)
        return tuple(seen)


class PaymentProof(BaseModel):
    """Decoded ``X-PAYMENT`` header sent by the paying client."""

    x402_version: int = Field(..., alias="x402Version")
    scheme: str = Field(..., min_length=1)
    network: str = Field(..., min_length=1)
    payload: Dict[str, Any]

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("x402_version")
    @classmethod
    def validate_x402_version(cls, v: int) -> int:
        if v != X402_VERSION:
            raise ValueError(f"Unsupported x402Version {v}, expected {X402_VERSION}")
        return v

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class SupportedKind(BaseModel):
    """One scheme/network pair a facilitator settles, from ``GET /supported``."""

    x402_version: int = Field(X402_VERSION, alias="x402Version")
    scheme: str
    network: str
    extra: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("extra", mode="before")
    @classmethod
    def validate_extra(cls, v: Any) -> Any:
        return {} if v is None else v


@dataclass(frozen=True)
class SettlementReference:
    """Facilitator receipt for a settled payment."""

    transaction: Optional[str]
    network: Optional[str]
    payer: Optional[str] = None

    @property
    def idempotency_key(self) -> Optional[str]:
        """Stable key derived from the settled transaction.

        Two requests carrying the same settled transaction map to the same key,
        so a ledger that honours ``Idempotency-Key`` never credits twice.
        """
        if not self.transaction:
            return None
        material = f"{self.network or ''}:{self.transaction}".encode("utf-8")
        return hashlib.sha256(material).hexdigest()

    def to_wire(self) -> Dict[str, Any]:
        return {
            "success": True,
            "transaction": self.transaction,
            "network": self.network,
            "payer": self.payer,
        }


@dataclass(frozen=True)
class Verified:
    descriptor: PaymentDescriptor
    settlement: SettlementReference


@dataclass(frozen=True)
class Rejected:
    reason: str


@dataclass(frozen=True)
class FacilitatorUnavailable:
    reason: str


VerificationResult = Union[Verified, Rejected, FacilitatorUnavailable]


@dataclass(frozen=True)
class TopupRequest:
    """A verified request to credit ``workspace`` once."""

    workspace: str
    paid_amount: int
    settlement: Optional[SettlementReference] = None


class WorkspaceBalance(BaseModel):
    """Balance of a workspace as reported by the ledger."""

    workspace: str
    balance: float = 0.0
