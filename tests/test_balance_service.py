"""Business logic tests for Balance service."""

import unittest
from unittest.mock import AsyncMock

from creditgate.application.topup.dtos import BalanceResponseDTO
from creditgate.application.topup.use_cases.balance import BalanceService
from creditgate.domain.payment.entities import WorkspaceBalance
from creditgate.domain.shared.errors import WorkspaceNotFoundError


class TestBalanceService(unittest.IsolatedAsyncioTestCase):
    """Test cases for BalanceService business logic."""

    def setUp(self):
        """Set up test fixtures."""
        self.mock_ledger_client = AsyncMock()
        self.balance_service = BalanceService(self.mock_ledger_client)

    async def test_get_balance_below_threshold_needs_topup(self):
        """Test a low balance is flagged for top-up."""
        # Arrange
        self.mock_ledger_client.read_balance.return_value = WorkspaceBalance(
            workspace="acme", balance=0.5
        )

        # Act
        result = await self.balance_service.get_balance("acme")

        # Assert
        self.assertIsInstance(result, BalanceResponseDTO)
        self.assertEqual(result.balance, 0.5)
        self.assertEqual(result.workspace, "acme")
        self.assertTrue(result.needs_topup)
        self.mock_ledger_client.read_balance.assert_awaited_once_with("acme")

    async def test_get_balance_at_threshold_does_not_need_topup(self):
        """Test the threshold itself is not below the threshold."""
        self.mock_ledger_client.read_balance.return_value = WorkspaceBalance(
            workspace="acme", balance=1.1
        )

        result = await self.balance_service.get_balance("acme")

        self.assertFalse(result.needs_topup)

    async def test_get_balance_without_needs_topup_flag(self):
        """Test the flag is omitted when disabled."""
        service = BalanceService(self.mock_ledger_client, include_needs_topup=False)
        self.mock_ledger_client.read_balance.return_value = WorkspaceBalance(
            workspace="acme", balance=0
        )

        result = await service.get_balance("acme")

        self.assertIsNone(result.needs_topup)
        self.assertEqual(
            result.model_dump(by_alias=True, exclude_none=True),
            {"balance": 0, "workspace": "acme"},
        )

    async def test_get_balance_custom_threshold(self):
        """Test a configured threshold is honoured."""
        service = BalanceService(self.mock_ledger_client, topup_threshold=10)
        self.mock_ledger_client.read_balance.return_value = WorkspaceBalance(
            workspace="acme", balance=5
        )

        result = await service.get_balance("acme")

        self.assertTrue(result.needs_topup)

    async def test_get_balance_workspace_not_found(self):
        """Test a missing workspace propagates."""
        self.mock_ledger_client.read_balance.side_effect = WorkspaceNotFoundError(
            "Workspace acme not found", status_code=404
        )

        with self.assertRaises(WorkspaceNotFoundError):
            await self.balance_service.get_balance("acme")


if __name__ == "__main__":
    unittest.main()
