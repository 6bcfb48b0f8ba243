"""Errors shared across layers."""

from __future__ import annotations

from typing import Optional


class ConfigurationError(Exception):
    """Raised at startup when the service cannot be configured."""


class LedgerServiceError(Exception):
    """The ledger answered with a non-success response or could not be reached."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body

    @property
    def details(self) -> str:
        if self.status_code is None:
            return str(self)
        if self.body:
            return f"{self} - {self.body}"
        return str(self)


class LedgerUnavailableError(LedgerServiceError):
    """Transport-level failure talking to the ledger (no upstream status)."""


class WorkspaceNotFoundError(LedgerServiceError):
    """The ledger does not know the requested workspace."""


class FacilitatorServiceError(Exception):
    """The facilitator could not describe the payment kinds it settles."""
