"""Business logic tests for Topup service."""

import unittest
from unittest.mock import AsyncMock

from creditgate.application.topup.dtos import TopupResponseDTO
from creditgate.application.topup.use_cases.topup import TopupService
from creditgate.domain.payment.entities import (
    SettlementReference,
    TopupRequest,
    WorkspaceBalance,
)
from creditgate.domain.shared.errors import LedgerServiceError, LedgerUnavailableError


class TestTopupService(unittest.IsolatedAsyncioTestCase):
    """Test cases for TopupService business logic."""

    def setUp(self):
        """Set up test fixtures."""
        self.mock_ledger_client = AsyncMock()
        self.topup_service = TopupService(self.mock_ledger_client, top_up_cost=1_000_000)

        self.settlement = SettlementReference(
            transaction="5xSettledTx", network="solana-devnet", payer="payer"
        )
        self.request = TopupRequest(
            workspace="acme", paid_amount=1_000_000, settlement=self.settlement
        )

    async def test_topup_success(self):
        """Test a verified payment credits the workspace once."""
        # Arrange
        self.mock_ledger_client.apply_credit.return_value = WorkspaceBalance(
            workspace="acme", balance=2.5
        )

        # Act
        result = await self.topup_service.topup(self.request)

        # Assert
        self.assertIsInstance(result, TopupResponseDTO)
        self.assertTrue(result.success)
        self.assertEqual(result.new_balance, 2.5)
        self.assertEqual(result.workspace, "acme")
        self.assertEqual(result.paid_amount, 1_000_000)
        self.assertEqual(result.topup_amount, 1_000_000)

        self.mock_ledger_client.apply_credit.assert_awaited_once_with(
            "acme",
            1_000_000,
            idempotency_key=self.settlement.idempotency_key,
        )

    async def test_topup_serializes_with_wire_names(self):
        """Test the response uses the camelCase field names."""
        self.mock_ledger_client.apply_credit.return_value = WorkspaceBalance(
            workspace="acme", balance=1.0
        )

        result = await self.topup_service.topup(self.request)

        self.assertEqual(
            result.model_dump(by_alias=True),
            {
                "success": True,
                "newBalance": 1.0,
                "workspace": "acme",
                "paidAmount": 1_000_000,
                "topupAmount": 1_000_000,
            },
        )

    async def test_topup_without_settlement_sends_no_idempotency_key(self):
        """Test a request without a settlement reference still credits once."""
        self.mock_ledger_client.apply_credit.return_value = WorkspaceBalance(
            workspace="acme", balance=1.0
        )

        await self.topup_service.topup(
            TopupRequest(workspace="acme", paid_amount=1_000_000)
        )

        self.mock_ledger_client.apply_credit.assert_awaited_once_with(
            "acme", 1_000_000, idempotency_key=None
        )

    async def test_topup_ledger_error_is_raised_without_retry(self):
        """Test a ledger failure propagates and is not retried."""
        # Arrange
        self.mock_ledger_client.apply_credit.side_effect = LedgerServiceError(
            "Ledger topup: 500", status_code=500, body="boom"
        )

        # Act & Assert
        with self.assertRaises(LedgerServiceError) as context:
            await self.topup_service.topup(self.request)

        self.assertEqual(context.exception.details, "Ledger topup: 500 - boom")
        self.assertEqual(self.mock_ledger_client.apply_credit.await_count, 1)

    async def test_topup_ledger_unreachable_is_raised(self):
        """Test a transport failure propagates as a ledger error."""
        self.mock_ledger_client.apply_credit.side_effect = LedgerUnavailableError(
            "Could not connect to ledger"
        )

        with self.assertRaises(LedgerServiceError):
            await self.topup_service.topup(self.request)

        self.assertEqual(self.mock_ledger_client.apply_credit.await_count, 1)


if __name__ == "__main__":
    unittest.main()
