"""Protocol interface for workspace ledger client implementations.

Services depend on this contract rather than on the HTTP client, so tests can
swap in an in-memory ledger.
"""

from __future__ import annotations

from typing import Optional, Protocol, TYPE_CHECKING

if TYPE_CHECKING:
    from ..payment.entities import WorkspaceBalance


class LedgerClientProtocol(Protocol):
    """Balance read and credit apply against the external account ledger.

    Implementations must not cache balances and must not retry. Failures are
    raised as ``LedgerServiceError`` (or its subclasses) and left to the caller.
    """

    async def read_balance(self, workspace: str) -> "WorkspaceBalance":
        """Return the current balance of ``workspace``.

        A successful response without a balance field means a zero balance.

        Raises:
            WorkspaceNotFoundError: The ledger answered 404.
            LedgerServiceError: Any other non-success answer or transport error.
        """
        ...

    async def apply_credit(
        self,
        workspace: str,
        amount: int,
        *,
        idempotency_key: Optional[str] = None,
    ) -> "WorkspaceBalance":
        """Ask the ledger to add ``amount`` (smallest payment unit) to ``workspace``.

        Returns:
            The balance reported by the ledger after the credit.

        Raises:
            LedgerServiceError: The ledger did not confirm the credit.
        """
        ...

    async def aclose(self) -> None:
        ...
