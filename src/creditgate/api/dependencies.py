"""FastAPI dependencies for the gateway API.

Collaborators are built once in ``create_app`` and stored on ``app.state``;
these providers only hand them out.
"""

from __future__ import annotations

from fastapi import Depends, Request

from ..application.topup.use_cases.balance import BalanceService
from ..application.topup.use_cases.topup import TopupService
from ..domain.shared.ledger_client_protocol import LedgerClientProtocol
from ..envs.gateway_env import Settings


def get_settings(request: Request) -> Settings:
    """Get the settings the app was created with."""
    return request.app.state.settings


def get_ledger_client(request: Request) -> LedgerClientProtocol:
    """Get the shared ledger client."""
    return request.app.state.ledger_client


def get_balance_service(
    ledger_client: LedgerClientProtocol = Depends(get_ledger_client),
    settings: Settings = Depends(get_settings),
) -> BalanceService:
    """Get balance service."""
    return BalanceService(
        ledger_client,
        topup_threshold=settings.balance_topup_threshold,
        include_needs_topup=settings.balance_include_needs_topup,
    )


def get_topup_service(
    ledger_client: LedgerClientProtocol = Depends(get_ledger_client),
    settings: Settings = Depends(get_settings),
) -> TopupService:
    """Get top-up service."""
    return TopupService(ledger_client, top_up_cost=settings.top_up_cost)
