"""Pytest fixtures for story tests against the assembled application."""

from __future__ import annotations

from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from creditgate.api.app import create_app
from creditgate.envs.gateway_env import Settings
from tests.fixtures import InMemoryLedgerClient, StubPaymentVerifier


@pytest.fixture
def gateway(
    settings: Settings,
    ledger: InMemoryLedgerClient,
    verifier: StubPaymentVerifier,
) -> Iterator[TestClient]:
    """The full gateway app, wired to in-memory collaborators."""
    app = create_app(settings, ledger_client=ledger, verifier=verifier)
    with TestClient(app) as client:
        yield client
