"""Balance API routes (free)."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Path, status
from fastapi.responses import JSONResponse
from prometheus_client import Counter

from ...application.topup.dtos import BalanceResponseDTO, ErrorResponseDTO
from ...application.topup.use_cases.balance import BalanceService
from ...domain.shared.errors import LedgerServiceError, WorkspaceNotFoundError
from ..dependencies import get_balance_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/balance", tags=["balance"])

balance_requests_total = Counter(
    "balance_requests_total",
    "Total balance checks processed",
    ["status"],
)


def _error(status_code: int, error: str, details: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponseDTO(error=error, details=details).model_dump(),
    )


@router.get(
    "/{workspace}",
    response_model=BalanceResponseDTO,
    response_model_exclude_none=True,
    responses={404: {"model": ErrorResponseDTO}, 500: {"model": ErrorResponseDTO}},
)
async def get_balance(
    workspace: str = Path(..., description="Ledger workspace identifier"),
    balance_service: BalanceService = Depends(get_balance_service),
):
    """Return the ledger balance of a workspace."""
    try:
        result = await balance_service.get_balance(workspace)
        balance_requests_total.labels(status="success").inc()
        return result
    except WorkspaceNotFoundError as e:
        balance_requests_total.labels(status="not_found").inc()
        return _error(status.HTTP_404_NOT_FOUND, "Workspace not found", e.details)
    except LedgerServiceError as e:
        balance_requests_total.labels(status="upstream_error").inc()
        return _error(
            status.HTTP_500_INTERNAL_SERVER_ERROR, "Balance check failed", e.details
        )
    except Exception as e:
        logger.exception("Internal server error while checking balance: %s", e)
        balance_requests_total.labels(status="server_error").inc()
        return _error(
            status.HTTP_500_INTERNAL_SERVER_ERROR, "Balance check failed", str(e)
        )
