"""Payment gateway port (abstract interface).

Defines the contract that payment gateway adapters must implement so the
settlement code never depends on a specific provider. Amounts cross this
boundary as integer minor units (kobo, cents); the ``reference`` is the
order number (or top-up reference) and doubles as the idempotency key.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


class GatewayError(Exception):
    """The payment gateway could not be reached or rejected the request."""


@dataclass(frozen=True)
class PaymentInitialization:
    """Result of creating a remote payment intent."""

    redirect_url: str
    access_code: str
    reference: str


@dataclass(frozen=True)
class PaymentVerification:
    """Result of verifying a payment by reference."""

    reference: str
    status: str  # "success" | "failed"
    amount_minor_units: int
    gateway_response: str | None = None
    metadata: dict = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.status == "success"


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    @abstractmethod
    def initialize(
        self,
        email: str,
        amount_minor_units: int,
        reference: str,
        callback_url: str,
        metadata: dict | None = None,
    ) -> PaymentInitialization:
        """Create a payment intent and return where to send the customer."""
        ...

    @abstractmethod
    def verify(self, reference: str) -> PaymentVerification:
        """Look up the outcome of a payment by its reference."""
        ...
