"""Test doubles for the ledger and the payment verifier."""

from .in_memory_ledger import InMemoryLedgerClient
from .payments import EVM_ADDRESS, SOLANA_ADDRESS, TOP_UP_COST, encode_payment
from .stub_payment_verifier import (
    FEE_PAYER,
    StubPaymentVerifier,
    default_supported_kinds,
)

__all__ = [
    "EVM_ADDRESS",
    "FEE_PAYER",
    "InMemoryLedgerClient",
    "SOLANA_ADDRESS",
    "StubPaymentVerifier",
    "TOP_UP_COST",
    "default_supported_kinds",
    "encode_payment",
]
