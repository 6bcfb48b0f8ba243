from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Dict, Optional, Type
from types import TracebackType
from urllib.parse import quote

import httpx

from ...domain.payment.entities import WorkspaceBalance
from ...domain.shared.errors import (
    LedgerServiceError,
    LedgerUnavailableError,
    WorkspaceNotFoundError,
)
from ..http.http_client import AsyncHttpClient

logger = logging.getLogger(__name__)

API_KEY_HEADER = "x-api-key"
IDEMPOTENCY_KEY_HEADER = "Idempotency-Key"

# Payments are priced in USDC micro-units (6 decimals); the ledger counts
# credits in whole units.
LEDGER_UNIT_SCALE = Decimal(10) ** 6


def to_ledger_units(amount: int) -> Decimal:
    """Convert a smallest-unit payment amount to ledger credit units."""
    return Decimal(amount) / LEDGER_UNIT_SCALE


class WorkspaceLedgerClient:
    """Asynchronous client for the workspace ledger HTTP API.

    One request per call: no caching, no retries.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 10.0,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._http = AsyncHttpClient(
            base_url,
            timeout=timeout,
            headers={API_KEY_HEADER: api_key},
            transport=transport,
        )

    @staticmethod
    def _path(workspace: str) -> str:
        return f"/api/v1/workspaces/{quote(workspace, safe='')}/x402"

    @staticmethod
    def _balance_from(workspace: str, response: httpx.Response) -> WorkspaceBalance:
        try:
            data: Dict[str, Any] = response.json()
        except ValueError as e:
            raise LedgerServiceError(
                f"Ledger API returned invalid JSON ({response.status_code})",
                status_code=response.status_code,
                body=response.text,
            ) from e
        balance = data.get("balance") if isinstance(data, dict) else None
        return WorkspaceBalance(
            workspace=workspace,
            balance=balance if balance is not None else 0,
        )

    async def read_balance(self, workspace: str) -> WorkspaceBalance:
        try:
            response = await self._http.get(self._path(workspace))
        except httpx.RequestError as e:
            raise LedgerUnavailableError(f"Could not connect to ledger: {e}") from e

        if response.status_code == 404:
            raise WorkspaceNotFoundError(
                f"Workspace {workspace} not found",
                status_code=404,
                body=response.text,
            )
        if not response.is_success:
            logger.error(
                "Ledger API error: %s - %s", response.status_code, response.text
            )
            raise LedgerServiceError(
                f"Ledger API: {response.status_code}",
                status_code=response.status_code,
                body=response.text,
            )
        return self._balance_from(workspace, response)

    async def apply_credit(
        self,
        workspace: str,
        amount: int,
        *,
        idempotency_key: Optional[str] = None,
    ) -> WorkspaceBalance:
        headers: Dict[str, str] = {}
        if idempotency_key:
            headers[IDEMPOTENCY_KEY_HEADER] = idempotency_key

        body = {"amount": float(to_ledger_units(amount))}
        try:
            response = await self._http.post(
                self._path(workspace), json=body, headers=headers
            )
        except httpx.RequestError as e:
            raise LedgerUnavailableError(f"Could not connect to ledger: {e}") from e

        if not response.is_success:
            logger.error(
                "Ledger topup error: %s - %s", response.status_code, response.text
            )
            raise LedgerServiceError(
                f"Ledger topup: {response.status_code}",
                status_code=response.status_code,
                body=response.text,
            )
        return self._balance_from(workspace, response)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "WorkspaceLedgerClient":
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        await self.aclose()
