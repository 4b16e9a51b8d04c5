"""Configurable fake payment gateway for development and testing.

Simulates a redirect-style gateway without any external calls. It remembers
every initialized reference so ``verify`` can report the amount that was
actually requested, and it can be configured to fail initialization,
report failed payments, or raise on verification.
"""

from uuid import uuid4

from ordering.gateway.port import GatewayError, PaymentGateway, PaymentInitialization, PaymentVerification


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.failure_reason: str = "Gateway unavailable"
        self.payment_status: str = "success"
        self.intents: dict[str, dict] = {}
        self.calls: list[dict] = []

    def configure(
        self,
        should_succeed: bool = True,
        failure_reason: str = "Gateway unavailable",
        payment_status: str = "success",
    ) -> None:
        """Configure gateway behavior at runtime.

        ``should_succeed=False`` makes every call raise ``GatewayError``;
        ``payment_status`` controls what ``verify`` reports for known references.
        """
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.payment_status = payment_status

    def initialize(
        self,
        email: str,
        amount_minor_units: int,
        reference: str,
        callback_url: str,
        metadata: dict | None = None,
    ) -> PaymentInitialization:
        self.calls.append(
            {
                "method": "initialize",
                "email": email,
                "amount_minor_units": amount_minor_units,
                "reference": reference,
                "callback_url": callback_url,
                "metadata": metadata or {},
            }
        )
        if not self.should_succeed:
            raise GatewayError(self.failure_reason)

        access_code = f"fake_ac_{uuid4().hex[:12]}"
        self.intents[reference] = {
            "amount_minor_units": amount_minor_units,
            "metadata": metadata or {},
        }
        return PaymentInitialization(
            redirect_url=f"https://checkout.fake-gateway.example.com/{access_code}",
            access_code=access_code,
            reference=reference,
        )

    def verify(self, reference: str) -> PaymentVerification:
        self.calls.append({"method": "verify", "reference": reference})
        if not self.should_succeed:
            raise GatewayError(self.failure_reason)

        intent = self.intents.get(reference)
        if intent is None:
            return PaymentVerification(
                reference=reference,
                status="failed",
                amount_minor_units=0,
                gateway_response="Transaction reference not found",
            )
        return PaymentVerification(
            reference=reference,
            status=self.payment_status,
            amount_minor_units=intent["amount_minor_units"],
            gateway_response="Approved" if self.payment_status == "success" else "Declined",
            metadata=intent["metadata"],
        )

    def calls_to(self, method: str) -> list[dict]:
        return [call for call in self.calls if call["method"] == method]
