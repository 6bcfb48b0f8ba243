from __future__ import annotations

import base64
import binascii
import json
import logging
import re
from typing import Any, Callable, Iterable, Optional

from fastapi import status
from fastapi.responses import JSONResponse
from prometheus_client import Counter
from pydantic import ValidationError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import Match

from ..domain.payment.entities import (
    X402_VERSION,
    FacilitatorUnavailable,
    PaymentAcceptanceSet,
    PaymentProof,
    Rejected,
    Verified,
)
from ..domain.shared.payment_verifier_protocol import PaymentVerifierProtocol

logger = logging.getLogger(__name__)

PAYMENT_HEADER = "X-PAYMENT"
PAYMENT_RESPONSE_HEADER = "X-PAYMENT-RESPONSE"

payment_gate_decisions_total = Counter(
    "payment_gate_decisions_total",
    "Payment gate outcomes for protected requests",
    ["outcome"],
)


class MalformedPaymentError(ValueError):
    """The payment header could not be decoded into a proof."""


def decode_payment_header(header_value: str) -> PaymentProof:
    """Decode a base64 JSON ``X-PAYMENT`` header into a ``PaymentProof``."""
    try:
        raw = base64.b64decode(header_value, validate=True)
        data = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, ValueError) as e:
        raise MalformedPaymentError("Payment header is not base64-encoded JSON") from e
    if not isinstance(data, dict):
        raise MalformedPaymentError("Payment header must encode a JSON object")
    try:
        return PaymentProof.model_validate(data)
    except ValidationError as e:
        raise MalformedPaymentError(f"Payment header is missing fields: {e}") from e


def encode_payment_response(payload: dict[str, Any]) -> str:
    return base64.b64encode(json.dumps(payload).encode("utf-8")).decode("ascii")


class PaymentGateMiddleware(BaseHTTPMiddleware):
    """Require a settled x402 payment before protected handlers run.

    Expected header:
    - `X-PAYMENT`: Base64-encoded JSON payment payload
      `{ "x402Version": 1, "scheme": str, "network": str, "payload": {...} }`.

    Requests without a usable payment get a 402 listing every accepted
    descriptor. Verified requests carry the result in `request.state.payment`
    and the settlement in the `X-PAYMENT-RESPONSE` response header.
    Nothing is remembered between requests; replay protection belongs to the
    facilitator.
    """

    def __init__(
        self,
        app,
        acceptance_set: PaymentAcceptanceSet,
        verifier: PaymentVerifierProtocol,
        protected_paths: Iterable[str] = (r"/topup/[^/]+",),
        protected_methods: Optional[Iterable[str]] = None,
        description: str = "",
        max_timeout_seconds: int = 60,
    ) -> None:
        super().__init__(app)
        self._acceptance_set = acceptance_set
        self._verifier = verifier
        self._protected_paths = tuple(re.compile(p) for p in protected_paths)
        self._protected_methods = {
            m.upper() for m in (protected_methods or ("POST",))
        }
        self._description = description
        self._max_timeout_seconds = max_timeout_seconds

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if not self._is_protected(request):
            return await call_next(request)

        header_value = request.headers.get(PAYMENT_HEADER)
        if not header_value:
            payment_gate_decisions_total.labels(outcome="missing").inc()
            return self._payment_required(request, f"{PAYMENT_HEADER} header is required")

        try:
            proof = decode_payment_header(header_value)
        except MalformedPaymentError as e:
            payment_gate_decisions_total.labels(outcome="malformed").inc()
            logger.info("Malformed payment header on %s: %s", request.url.path, e)
            return self._payment_required(request, "Invalid payment header")

        result = await self._verifier.verify(proof, self._acceptance_set)

        if isinstance(result, Verified):
            payment_gate_decisions_total.labels(outcome="verified").inc()
            request.state.payment = result
            response = await call_next(request)
            response.headers[PAYMENT_RESPONSE_HEADER] = encode_payment_response(
                result.settlement.to_wire()
            )
            return response

        if isinstance(result, FacilitatorUnavailable):
            payment_gate_decisions_total.labels(outcome="facilitator_unavailable").inc()
            return self._bad_gateway(result.reason)

        payment_gate_decisions_total.labels(outcome="rejected").inc()
        reason = result.reason if isinstance(result, Rejected) else "Payment rejected"
        return self._payment_required(request, reason)

    def _is_protected(self, request: Request) -> bool:
        if request.method.upper() not in self._protected_methods:
            return False
        path = request.url.path
        if not any(pattern.fullmatch(path) for pattern in self._protected_paths):
            return False
        # Payment is only taken when a handler will actually serve the request;
        # redirects, 404s and 405s pass through unpaid.
        return self._has_route(request)

    @staticmethod
    def _has_route(request: Request) -> bool:
        router = getattr(request.app, "router", None)
        if router is None:
            return False
        return any(
            route.matches(request.scope)[0] == Match.FULL for route in router.routes
        )

    def payment_requirements(self, resource: str) -> list[dict[str, Any]]:
        return [
            descriptor.to_requirements(
                resource=resource,
                description=self._description,
                max_timeout_seconds=self._max_timeout_seconds,
            )
            for descriptor in self._acceptance_set.descriptors
        ]

    def _payment_required(self, request: Request, error: str) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            content={
                "x402Version": X402_VERSION,
                "error": error,
                "accepts": self.payment_requirements(str(request.url)),
            },
        )

    def _bad_gateway(self, details: str) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={"error": "Payment facilitator unavailable", "details": details},
        )
