"""x402 facilitator-backed implementation of ``PaymentVerifierProtocol``."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Type
from types import TracebackType

import httpx

from ...domain.payment.entities import (
    X402_VERSION,
    FacilitatorUnavailable,
    PaymentAcceptanceSet,
    PaymentDescriptor,
    PaymentProof,
    Rejected,
    SettlementReference,
    SupportedKind,
    VerificationResult,
    Verified,
)
from ...domain.shared.errors import FacilitatorServiceError
from ..http.http_client import AsyncHttpClient

logger = logging.getLogger(__name__)


class _FacilitatorDown(Exception):
    """Internal signal: the facilitator could not give an answer."""


class _FacilitatorRefused(Exception):
    """Internal signal: the facilitator refused the request (4xx)."""


class FacilitatorPaymentVerifier:
    """Verifies and settles x402 payments through a remote facilitator.

    A proof is matched to the descriptor with the same scheme and network,
    then sent to ``/verify`` and, if valid, to ``/settle``. Only a settled
    payment yields ``Verified``.
    """

    def __init__(
        self,
        facilitator_url: str,
        timeout: float = 10.0,
        *,
        resource: str = "",
        max_timeout_seconds: int = 60,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._http = AsyncHttpClient(
            facilitator_url, timeout=timeout, transport=transport
        )
        self._facilitator_url = facilitator_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self._resource = resource
        self._max_timeout_seconds = max_timeout_seconds

    def _request_body(
        self, proof: PaymentProof, descriptor: PaymentDescriptor
    ) -> Dict[str, Any]:
        return {
            "x402Version": X402_VERSION,
            "paymentPayload": proof.to_wire(),
            "paymentRequirements": descriptor.to_requirements(
                resource=self._resource,
                max_timeout_seconds=self._max_timeout_seconds,
            ),
        }

    async def _post(self, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = await self._http.post(path, json=body)
        except httpx.RequestError as e:
            raise _FacilitatorDown(f"Could not connect to facilitator: {e}") from e

        if response.status_code >= 500:
            raise _FacilitatorDown(
                f"Facilitator responded with {response.status_code}: {response.text}"
            )
        try:
            data = response.json()
        except ValueError as e:
            if response.status_code >= 400:
                raise _FacilitatorRefused(
                    f"Facilitator responded with {response.status_code}: {response.text}"
                ) from e
            raise _FacilitatorDown(
                f"Failed to parse JSON from facilitator at {path}: {response.text}"
            ) from e
        if response.status_code >= 400 and (not isinstance(data, dict) or not data):
            raise _FacilitatorRefused(
                f"Facilitator responded with {response.status_code}: {response.text}"
            )
        if not isinstance(data, dict):
            raise _FacilitatorDown(f"Unexpected facilitator response: {data!r}")
        return data

    def supported_kinds(self) -> List[SupportedKind]:
        """Fetch ``GET /supported`` with a short-lived synchronous client.

        Raises:
            FacilitatorServiceError: Transport failure, non-200 status or an
                unexpected body.
        """
        # An async-only transport cannot serve the sync client.
        transport = (
            self._transport if isinstance(self._transport, httpx.BaseTransport) else None
        )
        try:
            with httpx.Client(timeout=self._timeout, transport=transport) as client:
                response = client.get(f"{self._facilitator_url}/supported")
        except httpx.RequestError as e:
            raise FacilitatorServiceError(
                f"Could not connect to facilitator: {e}"
            ) from e

        if response.status_code != 200:
            raise FacilitatorServiceError(
                f"Facilitator get_supported failed ({response.status_code}): {response.text}"
            )
        try:
            data = response.json()
            kinds = data["kinds"]
            return [SupportedKind.model_validate(kind) for kind in kinds]
        except (ValueError, KeyError, TypeError) as e:
            raise FacilitatorServiceError(
                f"Unexpected /supported response from facilitator: {response.text}"
            ) from e

    async def verify(
        self, proof: PaymentProof, acceptance_set: PaymentAcceptanceSet
    ) -> VerificationResult:
        descriptor = acceptance_set.find(proof.scheme, proof.network)
        if descriptor is None:
            return Rejected(
                f"No matching payment requirements for {proof.scheme} on {proof.network}"
            )

        body = self._request_body(proof, descriptor)
        try:
            verify_response = await self._post("/verify", body)
            if not verify_response.get("isValid"):
                reason = verify_response.get("invalidReason") or "Payment is invalid"
                logger.info("Facilitator rejected payment on %s: %s", proof.network, reason)
                return Rejected(str(reason))

            logger.info(
                "Facilitator accepted payment payload for payer %s",
                verify_response.get("payer"),
            )
            settle_response = await self._post("/settle", body)
        except _FacilitatorRefused as e:
            logger.info("Facilitator refused payment: %s", e)
            return Rejected(str(e))
        except _FacilitatorDown as e:
            logger.warning("Facilitator unavailable: %s", e)
            return FacilitatorUnavailable(str(e))

        if not settle_response.get("success"):
            reason = settle_response.get("errorReason") or "Settlement failed"
            logger.warning("Settlement failed on %s: %s", proof.network, reason)
            return Rejected(str(reason))

        settlement = SettlementReference(
            transaction=settle_response.get("transaction"),
            network=settle_response.get("network") or descriptor.network,
            payer=settle_response.get("payer") or verify_response.get("payer"),
        )
        logger.info(
            "Payment settled on %s. Transaction hash: %s",
            settlement.network,
            settlement.transaction,
        )
        return Verified(descriptor=descriptor, settlement=settlement)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "FacilitatorPaymentVerifier":
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        await self.aclose()
