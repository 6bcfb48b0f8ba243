"""Shared domain utilities.

This package is domain-accessible and should not depend on application code.
"""

from .errors import (
    ConfigurationError,
    FacilitatorServiceError,
    LedgerServiceError,
    LedgerUnavailableError,
    WorkspaceNotFoundError,
)
from .ledger_client_protocol import LedgerClientProtocol
from .payment_verifier_protocol import PaymentVerifierProtocol

__all__ = [
    "ConfigurationError",
    "FacilitatorServiceError",
    "LedgerClientProtocol",
    "LedgerServiceError",
    "LedgerUnavailableError",
    "PaymentVerifierProtocol",
    "WorkspaceNotFoundError",
]
