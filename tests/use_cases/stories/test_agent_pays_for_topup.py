"""Story: an agent pays for a top-up and its workspace is credited once."""

from __future__ import annotations

import base64
import json

from fastapi.testclient import TestClient

from creditgate.api.app import create_app
from creditgate.domain.payment.entities import FacilitatorUnavailable, Rejected
from creditgate.domain.shared.errors import LedgerServiceError
from creditgate.envs.gateway_env import Settings
from tests.fixtures import (
    EVM_ADDRESS,
    FEE_PAYER,
    InMemoryLedgerClient,
    StubPaymentVerifier,
    encode_payment,
)


def test_paid_topup_credits_workspace_once(
    gateway: TestClient, ledger: InMemoryLedgerClient
) -> None:
    """
    Story: agent discovers the price, pays, and is credited.

    Phase1: unpaid request is answered with the payment terms
    Phase2: paid request credits the ledger exactly once
    Phase3: balance reflects the credit
    """
    # Phase1: discover the terms
    challenge = gateway.post("/topup/acme")
    assert challenge.status_code == 402
    accepts = challenge.json()["accepts"]
    assert accepts[0]["network"] == "solana-devnet"
    assert accepts[0]["maxAmountRequired"] == "1000000"
    assert accepts[0]["extra"] == {"feePayer": FEE_PAYER}
    assert ledger.calls == []

    # Phase2: pay
    response = gateway.post(
        "/topup/acme", headers={"X-PAYMENT": encode_payment(accepts[0]["network"])}
    )
    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "newBalance": 1.0,
        "workspace": "acme",
        "paidAmount": 1_000_000,
        "topupAmount": 1_000_000,
    }
    credits = ledger.credit_calls()
    assert len(credits) == 1
    assert credits[0]["workspace"] == "acme"
    assert credits[0]["amount"] == 1_000_000
    assert credits[0]["idempotency_key"]

    settlement = json.loads(base64.b64decode(response.headers["X-PAYMENT-RESPONSE"]))
    assert settlement["transaction"] == "5xSettledTx"

    # Phase3: balance
    balance = gateway.get("/balance/acme").json()
    assert balance == {"balance": 1.0, "workspace": "acme", "needsTopup": True}


def test_malformed_proof_lists_same_terms_as_no_proof(
    gateway: TestClient, ledger: InMemoryLedgerClient
) -> None:
    unpaid = gateway.post("/topup/acme")
    malformed = gateway.post("/topup/acme", headers={"X-PAYMENT": "not-a-proof"})

    assert malformed.status_code == 402
    assert malformed.json()["accepts"] == unpaid.json()["accepts"]
    assert ledger.calls == []


def test_rejected_payment_never_touches_ledger(
    gateway: TestClient, ledger: InMemoryLedgerClient, verifier: StubPaymentVerifier
) -> None:
    verifier.set_result(Rejected("invalid_signature"))

    response = gateway.post("/topup/acme", headers={"X-PAYMENT": encode_payment()})

    assert response.status_code == 402
    assert response.json()["error"] == "invalid_signature"
    assert ledger.calls == []


def test_facilitator_outage_returns_502(
    gateway: TestClient, ledger: InMemoryLedgerClient, verifier: StubPaymentVerifier
) -> None:
    verifier.set_result(FacilitatorUnavailable("Facilitator responded with 503"))

    response = gateway.post("/topup/acme", headers={"X-PAYMENT": encode_payment()})

    assert response.status_code == 502
    assert response.json()["error"] == "Payment facilitator unavailable"
    assert ledger.calls == []


def test_ledger_failure_after_payment_is_not_retried(
    gateway: TestClient, ledger: InMemoryLedgerClient
) -> None:
    ledger.set_error(
        LedgerServiceError("Ledger topup: 500", status_code=500, body="db down")
    )

    response = gateway.post("/topup/acme", headers={"X-PAYMENT": encode_payment()})

    assert response.status_code == 500
    assert response.json() == {
        "error": "Topup failed",
        "details": "Ledger topup: 500 - db down",
    }
    assert len(ledger.credit_calls()) == 1


def test_each_settled_payment_credits_separately(
    gateway: TestClient, ledger: InMemoryLedgerClient, verifier: StubPaymentVerifier
) -> None:
    for transaction in ("tx-1", "tx-2"):
        verifier.transaction = transaction
        response = gateway.post(
            "/topup/acme", headers={"X-PAYMENT": encode_payment()}
        )
        assert response.status_code == 200

    credits = ledger.credit_calls()
    assert len(credits) == 2
    assert credits[0]["idempotency_key"] != credits[1]["idempotency_key"]
    assert ledger.balances["acme"] == 2.0


def test_multi_network_terms_list_solana_then_evm(
    multi_network_settings: Settings,
    ledger: InMemoryLedgerClient,
    verifier: StubPaymentVerifier,
) -> None:
    client = TestClient(
        create_app(multi_network_settings, ledger_client=ledger, verifier=verifier)
    )

    challenge = client.post("/topup/acme").json()
    networks = [a["network"] for a in challenge["accepts"]]
    assert networks == [
        "solana-devnet",
        "solana:EtWTRABZaYq6iMfeYKouRu166VU2xqa1",
        "base-sepolia",
        "eip155:84532",
    ]
    assert [a["extra"].get("feePayer") for a in challenge["accepts"]] == [
        FEE_PAYER,
        FEE_PAYER,
        None,
        None,
    ]
    assert challenge["accepts"][2]["payTo"] == EVM_ADDRESS

    response = client.post(
        "/topup/acme", headers={"X-PAYMENT": encode_payment("base-sepolia")}
    )
    assert response.status_code == 200
    assert len(ledger.credit_calls()) == 1


def test_topup_over_get_when_configured(
    settings: Settings, ledger: InMemoryLedgerClient, verifier: StubPaymentVerifier
) -> None:
    settings = settings.model_copy(update={"topup_http_methods": ["GET", "POST"]})
    client = TestClient(create_app(settings, ledger_client=ledger, verifier=verifier))

    assert client.get("/topup/acme").status_code == 402
    response = client.get("/topup/acme", headers={"X-PAYMENT": encode_payment()})
    assert response.status_code == 200
    assert len(ledger.credit_calls()) == 1
