"""Read-only balance checks, no payment required."""

from __future__ import annotations

from ....domain.shared.ledger_client_protocol import LedgerClientProtocol
from ..dtos import BalanceResponseDTO


class BalanceService:
    def __init__(
        self,
        ledger_client: LedgerClientProtocol,
        *,
        topup_threshold: float = 1.1,
        include_needs_topup: bool = True,
    ):
        self.ledger_client = ledger_client
        self.topup_threshold = topup_threshold
        self.include_needs_topup = include_needs_topup

    async def get_balance(self, workspace: str) -> BalanceResponseDTO:
        result = await self.ledger_client.read_balance(workspace)
        needs_topup = (
            result.balance < self.topup_threshold if self.include_needs_topup else None
        )
        return BalanceResponseDTO(
            balance=result.balance,
            workspace=workspace,
            needs_topup=needs_topup,
        )
