"""Fake carrier adapter — deterministic carrier for testing and development.

Quotes two couriers per request (a cheap pickup service and a faster
express one), generates mock tracking references and records every call.
Behaviour is configurable per test: fail everything, reject specific
addresses, return no couriers, or report a set status for a parcel.
"""

from uuid import uuid4

from ordering.carrier.port import (
    Booking,
    CarrierError,
    CarrierPort,
    ContactAddress,
    CourierQuote,
    RateResponse,
    eta_days,
)


class FakeCarrier(CarrierPort):
    """Fake carrier that always succeeds by default."""

    def __init__(self):
        self.should_succeed = True
        self.failure_reason = "Carrier unavailable"
        self.rejected_addresses: set[str] = set()
        self.quotes: list[CourierQuote] = list(self.default_quotes())
        self.bookings: dict[str, Booking] = {}
        self.cancelled: list[str] = []
        self.statuses: dict[str, str] = {}
        self.address_codes: dict[str, str] = {}
        self.calls: list[dict] = []

    @staticmethod
    def default_quotes() -> tuple[CourierQuote, ...]:
        return (
            CourierQuote(
                courier_id="gig",
                courier_name="GIG Logistics",
                service_code="gig-pickup",
                service_type="pickup",
                amount=2500.0,
                eta="3-5 days",
            ),
            CourierQuote(
                courier_id="dhl",
                courier_name="DHL Express",
                service_code="dhl-express",
                service_type="dropoff",
                amount=4500.0,
                eta="1-2 days",
            ),
        )

    def configure(
        self,
        should_succeed: bool = True,
        failure_reason: str = "Carrier unavailable",
        quotes: list[CourierQuote] | None = None,
        rejected_addresses: set[str] | None = None,
    ):
        """Configure the fake carrier behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        if quotes is not None:
            self.quotes = list(quotes)
        if rejected_addresses is not None:
            self.rejected_addresses = set(rejected_addresses)

    def _fail_if_configured(self):
        if not self.should_succeed:
            raise CarrierError(self.failure_reason)

    def validate_address(self, contact: ContactAddress) -> str:
        self.calls.append({"method": "validate_address", "address": contact.address})
        self._fail_if_configured()
        if contact.address in self.rejected_addresses:
            raise CarrierError(f"Address could not be validated: {contact.address}")
        return self.address_codes.setdefault(contact.cache_key, f"addr-{len(self.address_codes) + 1:04d}")

    def fetch_rates(
        self,
        sender_code: str,
        receiver_code: str,
        items,
        dimensions=None,
        pickup_date=None,
        category_id=None,
    ) -> RateResponse:
        self.calls.append(
            {
                "method": "fetch_rates",
                "sender_code": sender_code,
                "receiver_code": receiver_code,
                "items": list(items),
                "category_id": category_id,
            }
        )
        self._fail_if_configured()
        if not self.quotes:
            raise CarrierError("No couriers available for this route")

        couriers = tuple(self.quotes)
        return RateResponse(
            request_token=f"req-{uuid4().hex[:10]}",
            couriers=couriers,
            cheapest=min(couriers, key=lambda quote: quote.amount),
            fastest=min(couriers, key=lambda quote: eta_days(quote.eta)),
        )

    def book(self, request_token: str, courier_id: str, service_code: str | None = None) -> Booking:
        self.calls.append(
            {
                "method": "book",
                "request_token": request_token,
                "courier_id": courier_id,
                "service_code": service_code,
            }
        )
        self._fail_if_configured()

        courier = next((quote for quote in self.quotes if quote.courier_id == courier_id), None)
        booking = Booking(
            tracking_ref=f"FAKE-{uuid4().hex[:12].upper()}",
            shipment_id=f"ship-{uuid4().hex[:8]}",
            courier_name=courier.courier_name if courier else None,
        )
        self.bookings[booking.tracking_ref] = booking
        return booking

    def track(self, tracking_ref: str) -> dict:
        self.calls.append({"method": "track", "tracking_ref": tracking_ref})
        self._fail_if_configured()
        if tracking_ref in self.cancelled:
            return {"tracking_ref": tracking_ref, "status": "cancelled", "events": []}
        return {
            "tracking_ref": tracking_ref,
            "status": self.statuses.get(tracking_ref, "in_transit"),
            "events": [
                {"status": "picked_up", "description": "Package picked up by courier"},
                {"status": "in_transit", "description": "Package in transit"},
            ],
        }

    def cancel(self, tracking_ref: str) -> bool:
        self.calls.append({"method": "cancel", "tracking_ref": tracking_ref})
        self._fail_if_configured()
        self.cancelled.append(tracking_ref)
        return True

    def calls_to(self, method: str) -> list[dict]:
        return [call for call in self.calls if call["method"] == method]
