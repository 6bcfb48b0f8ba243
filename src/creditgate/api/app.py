"""FastAPI application configuration (credit gateway)."""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CollectorRegistry, make_asgi_app, multiprocess

from ..application.payment_terms import PaymentTermsBuilder, apply_fee_payers
from ..domain.payment.entities import NetworkKind
from ..domain.shared.errors import ConfigurationError, FacilitatorServiceError
from ..domain.shared.ledger_client_protocol import LedgerClientProtocol
from ..domain.shared.payment_verifier_protocol import PaymentVerifierProtocol
from ..envs.gateway_env import Settings, get_settings
from ..infrastructure.facilitator.facilitator_client import FacilitatorPaymentVerifier
from ..infrastructure.ledger.ledger_client import WorkspaceLedgerClient
from ..middleware.payment_gate import PaymentGateMiddleware
from .routers import balance
from .routers.topup import build_topup_router

logger = logging.getLogger(__name__)

TOPUP_DESCRIPTION = "Workspace credit top-up"


def _metrics_app():
    if os.environ.get("PROMETHEUS_MULTIPROC_DIR"):
        registry = CollectorRegistry()
        multiprocess.MultiProcessCollector(registry)
        return make_asgi_app(registry=registry)
    return make_asgi_app()


def create_app(
    settings: Optional[Settings] = None,
    *,
    ledger_client: Optional[LedgerClientProtocol] = None,
    verifier: Optional[PaymentVerifierProtocol] = None,
) -> FastAPI:
    """Create and configure FastAPI application.

    Payment terms are built here, so a bad configuration fails before the
    server accepts any request.
    """
    settings = settings or get_settings()
    acceptance_set = PaymentTermsBuilder().build(settings)

    if ledger_client is None:
        ledger_client = WorkspaceLedgerClient(
            settings.ledger_base_url,
            settings.ledger_api_key,
            timeout=settings.ledger_timeout_seconds,
        )
    if verifier is None:
        verifier = FacilitatorPaymentVerifier(
            settings.facilitator_url,
            timeout=settings.facilitator_timeout_seconds,
            resource=f"{settings.public_url}/topup",
            max_timeout_seconds=settings.payment_max_timeout_seconds,
        )

    if NetworkKind.SOLANA in acceptance_set.networks():
        try:
            supported_kinds = verifier.supported_kinds()
        except FacilitatorServiceError as e:
            raise ConfigurationError(
                f"Could not load payment kinds from facilitator: {e}"
            ) from e
        acceptance_set = apply_fee_payers(acceptance_set, supported_kinds)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info(
            "Accepting payment on %s (%s)",
            ", ".join(kind.value for kind in acceptance_set.networks()),
            ", ".join(d.network for d in acceptance_set.descriptors),
        )
        yield
        await ledger_client.aclose()
        await verifier.aclose()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Payment-gated workspace credit top-ups",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.acceptance_set = acceptance_set
    app.state.ledger_client = ledger_client
    app.state.verifier = verifier

    # Added first so CORS wraps it and preflight requests never hit the gate.
    app.add_middleware(
        PaymentGateMiddleware,
        acceptance_set=acceptance_set,
        verifier=verifier,
        protected_paths=(r"/topup/[^/]+",),
        protected_methods=settings.topup_http_methods,
        description=TOPUP_DESCRIPTION,
        max_timeout_seconds=settings.payment_max_timeout_seconds,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api_cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-PAYMENT-RESPONSE"],
    )

    app.include_router(balance.router)
    app.include_router(build_topup_router(settings.topup_http_methods))
    app.mount("/metrics", _metrics_app())

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {
            "status": "healthy",
            "service": settings.app_name,
            "version": settings.app_version,
        }

    return app
