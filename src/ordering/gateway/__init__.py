"""Payment gateway factory.

Provides get_gateway() / set_gateway() to swap implementations:
- FakeGateway for development and testing (default)
- HttpGateway for a live redirect gateway, selected with PAYMENT_GATEWAY=http
"""

from ordering import settings
from ordering.gateway.fake_adapter import FakeGateway
from ordering.gateway.port import PaymentGateway

_current_gateway: PaymentGateway | None = None


def get_gateway() -> PaymentGateway:
    """Return the current payment gateway. Defaults to FakeGateway."""
    global _current_gateway
    if _current_gateway is None:
        if settings.PAYMENT_GATEWAY == "http":
            from ordering.gateway.http_adapter import HttpGateway

            _current_gateway = HttpGateway(
                base_url=settings.PAYMENT_GATEWAY_URL,
                secret_key=settings.PAYMENT_GATEWAY_SECRET,
            )
        elif settings.PAYMENT_GATEWAY == "fake":
            _current_gateway = FakeGateway()
        else:
            raise ValueError(f"Unknown payment gateway: {settings.PAYMENT_GATEWAY}")
    return _current_gateway


def set_gateway(gateway: PaymentGateway) -> None:
    """Override the active payment gateway (useful for tests)."""
    global _current_gateway
    _current_gateway = gateway


def reset_gateway() -> None:
    """Reset to default gateway."""
    global _current_gateway
    _current_gateway = None
