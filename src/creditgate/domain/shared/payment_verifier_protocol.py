"""Protocol interface for payment verification.

The gate only needs one capability: turn a caller's proof into a
``VerificationResult``. Each facilitator protocol gets its own implementation.
"""

from __future__ import annotations

from typing import List, Protocol, TYPE_CHECKING

if TYPE_CHECKING:
    from ..payment.entities import (
        PaymentAcceptanceSet,
        PaymentProof,
        SupportedKind,
        VerificationResult,
    )


class PaymentVerifierProtocol(Protocol):
    async def verify(
        self,
        proof: "PaymentProof",
        acceptance_set: "PaymentAcceptanceSet",
    ) -> "VerificationResult":
        """Validate ``proof`` against the accepted descriptors.

        Returns ``Verified`` only once the payment is settled, ``Rejected`` when
        the proof does not satisfy any descriptor, and ``FacilitatorUnavailable``
        when the outcome could not be determined.
        """
        ...

    def supported_kinds(self) -> List["SupportedKind"]:
        """Payment kinds the verifier settles, with their scheme metadata.

        Called once while the application is created, before any request.

        Raises:
            FacilitatorServiceError: The kinds could not be fetched.
        """
        ...

    async def aclose(self) -> None:
        ...
