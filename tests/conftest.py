"""Shared pytest fixtures for gateway tests."""

from __future__ import annotations

import pytest

from creditgate.application.payment_terms import PaymentTermsBuilder
from creditgate.domain.payment.entities import PaymentAcceptanceSet
from creditgate.envs.gateway_env import Settings
from tests.fixtures import (
    EVM_ADDRESS,
    SOLANA_ADDRESS,
    TOP_UP_COST,
    InMemoryLedgerClient,
    StubPaymentVerifier,
)


@pytest.fixture
def settings() -> Settings:
    """Settings with Solana enabled only."""
    return Settings(
        top_up_cost=TOP_UP_COST,
        solana_receiving_address=SOLANA_ADDRESS,
        ledger_base_url="https://ledger.test",
        ledger_api_key="test-api-key",
        facilitator_url="https://facilitator.test",
    )


@pytest.fixture
def multi_network_settings() -> Settings:
    """Settings with both Solana and EVM enabled."""
    return Settings(
        top_up_cost=TOP_UP_COST,
        solana_receiving_address=SOLANA_ADDRESS,
        evm_receiving_address=EVM_ADDRESS,
        ledger_base_url="https://ledger.test",
        ledger_api_key="test-api-key",
        facilitator_url="https://facilitator.test",
    )


@pytest.fixture
def acceptance_set(settings: Settings) -> PaymentAcceptanceSet:
    return PaymentTermsBuilder().build(settings)


@pytest.fixture
def ledger() -> InMemoryLedgerClient:
    return InMemoryLedgerClient()


@pytest.fixture
def verifier() -> StubPaymentVerifier:
    return StubPaymentVerifier()
