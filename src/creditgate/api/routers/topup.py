"""Top-up API routes (payment-gated)."""

from __future__ import annotations

import logging
import time

from fastapi import APIRouter, Depends, Path, Request, status
from fastapi.responses import JSONResponse
from prometheus_client import Counter, Gauge, Histogram

from ...application.topup.dtos import ErrorResponseDTO, TopupResponseDTO
from ...application.topup.use_cases.topup import TopupService
from ...domain.payment.entities import TopupRequest, Verified
from ...domain.shared.errors import LedgerServiceError
from ..dependencies import get_topup_service

logger = logging.getLogger(__name__)

TOPUP_DURATION_BUCKETS = (
    [round(0.5 * i, 1) for i in range(1, 21)]
    + [float(x) for x in range(15, 55, 5)]
    + [float("inf")]
)

topup_requests_total = Counter(
    "topup_requests_total",
    "Total paid top-up requests processed",
    ["status"],
)
topup_request_duration_milliseconds = Histogram(
    "topup_request_duration_milliseconds",
    "Wall time to relay a paid top-up to the ledger (ms)",
    ["status"],
    buckets=TOPUP_DURATION_BUCKETS,
)
topup_requests_inprogress = Gauge(
    "topup_requests_inprogress",
    "Number of paid top-ups currently being relayed",
    multiprocess_mode="livesum",
)


def _observe(label: str, start_time: float) -> None:
    topup_requests_total.labels(status=label).inc()
    elapsed = (time.perf_counter() - start_time) * 1000
    topup_request_duration_milliseconds.labels(status=label).observe(elapsed)


def _error(details: str) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponseDTO(error="Topup failed", details=details).model_dump(),
    )


async def topup_workspace(
    request: Request,
    workspace: str = Path(..., description="Ledger workspace identifier"),
    topup_service: TopupService = Depends(get_topup_service),
):
    """Credit a workspace once its payment has been settled."""
    payment = getattr(request.state, "payment", None)
    if not isinstance(payment, Verified):
        # The gate guards this route; reaching here unpaid is a wiring bug.
        logger.error("Top-up for %s reached handler without a verified payment", workspace)
        return _error("Payment was not verified")

    start_time = time.perf_counter()
    topup_requests_inprogress.inc()
    try:
        result = await topup_service.topup(
            TopupRequest(
                workspace=workspace,
                paid_amount=payment.descriptor.amount,
                settlement=payment.settlement,
            )
        )
        _observe("success", start_time)
        return result
    except LedgerServiceError as e:
        _observe("upstream_error", start_time)
        return _error(e.details)
    except Exception as e:
        logger.exception("Internal server error while relaying top-up: %s", e)
        _observe("server_error", start_time)
        return _error(str(e))
    finally:
        topup_requests_inprogress.dec()


def build_topup_router(methods: list[str]) -> APIRouter:
    """Mount the top-up handler under the configured HTTP methods."""
    router = APIRouter(prefix="/topup", tags=["topup"])
    router.add_api_route(
        "/{workspace}",
        topup_workspace,
        methods=methods,
        response_model=TopupResponseDTO,
        responses={
            402: {"description": "Payment required"},
            500: {"model": ErrorResponseDTO},
            502: {"model": ErrorResponseDTO},
        },
    )
    return router
