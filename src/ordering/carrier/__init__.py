"""Carrier adapter factory.

Provides get_carrier() / set_carrier() / reset_carrier() to swap
implementations:
- FakeCarrier for development and testing (default)
- HttpCarrier for a live shipping API, selected with CARRIER_ADAPTER=http
"""

from ordering import settings
from ordering.carrier.address_cache import AddressCodeCache
from ordering.carrier.port import CarrierPort

_current_carrier: CarrierPort | None = None


def _build_carrier() -> CarrierPort:
    adapter = settings.CARRIER_ADAPTER
    if adapter == "fake":
        from ordering.carrier.fake_adapter import FakeCarrier

        return FakeCarrier()
    if adapter == "http":
        from ordering.carrier.http_adapter import HttpCarrier

        return HttpCarrier(
            base_url=settings.CARRIER_API_URL,
            api_key=settings.CARRIER_API_KEY,
            timeout=settings.CARRIER_TIMEOUT_SECONDS,
            category_id=settings.CARRIER_CATEGORY_ID,
            cache=AddressCodeCache(
                max_size=settings.ADDRESS_CACHE_MAX_SIZE,
                ttl_seconds=settings.ADDRESS_CACHE_TTL_SECONDS,
            ),
        )
    raise ValueError(f"Unknown carrier adapter: {adapter}")


def get_carrier() -> CarrierPort:
    """Return the configured carrier adapter (singleton)."""
    global _current_carrier
    if _current_carrier is None:
        _current_carrier = _build_carrier()
    return _current_carrier


def set_carrier(carrier: CarrierPort) -> None:
    """Override the active carrier (useful for tests)."""
    global _current_carrier
    _current_carrier = carrier


def reset_carrier() -> None:
    """Reset the carrier singleton."""
    global _current_carrier
    _current_carrier = None
