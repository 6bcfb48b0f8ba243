"""Credit a workspace after its payment has been verified."""

from __future__ import annotations

import logging

from ....domain.payment.entities import TopupRequest
from ....domain.shared.errors import LedgerServiceError
from ....domain.shared.ledger_client_protocol import LedgerClientProtocol
from ..dtos import TopupResponseDTO

logger = logging.getLogger(__name__)


class TopupService:
    """Relays a verified top-up to the ledger exactly once.

    Payment has already been captured when this runs. A ledger failure is
    reported, never retried and never compensated: the first attempt may have
    succeeded upstream even if its response was lost.
    """

    def __init__(self, ledger_client: LedgerClientProtocol, top_up_cost: int):
        self.ledger_client = ledger_client
        self.top_up_cost = top_up_cost

    async def topup(self, request: TopupRequest) -> TopupResponseDTO:
        settlement = request.settlement
        transaction = settlement.transaction if settlement else None
        logger.info(
            "Topping up workspace %s with %s credits (settlement %s)",
            request.workspace,
            self.top_up_cost,
            transaction,
        )

        try:
            balance = await self.ledger_client.apply_credit(
                request.workspace,
                self.top_up_cost,
                idempotency_key=settlement.idempotency_key if settlement else None,
            )
        except LedgerServiceError as e:
            logger.error(
                "Ledger credit failed for workspace %s after settled payment %s: %s",
                request.workspace,
                transaction,
                e.details,
            )
            raise

        return TopupResponseDTO(
            success=True,
            new_balance=balance.balance,
            workspace=request.workspace,
            paid_amount=request.paid_amount,
            topup_amount=self.top_up_cost,
        )
