"""HTTP carrier adapter for a Shipbubble-style shipping API.

Every request carries a bearer token and the configured timeout. Transport
errors, non-2xx responses and ``status != "success"`` payloads are all raised
as ``CarrierError`` so callers only have one failure type to handle.
"""

from datetime import UTC, datetime, timedelta

import requests
import structlog

from ordering.carrier.address_cache import AddressCodeCache
from ordering.carrier.port import Booking, CarrierError, CarrierPort, ContactAddress, CourierQuote, RateResponse

logger = structlog.get_logger(__name__)

DEFAULT_DIMENSIONS = {"length": 20, "width": 20, "height": 20}


class HttpCarrier(CarrierPort):
    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 30,
        category_id: int = 77179563,
        cache: AddressCodeCache | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.category_id = category_id
        self.cache = cache
        self.session = session or requests.Session()

    # -------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------
    def _request(self, method: str, path: str, payload: dict | None = None) -> dict:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(
                method,
                url,
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.timeout,
            )
            response.raise_for_status()
            body = response.json()
        except requests.RequestException as exc:
            logger.warning("carrier_request_failed", method=method, path=path, error=str(exc))
            raise CarrierError(f"Carrier request to {path} failed: {exc}") from exc
        except ValueError as exc:
            raise CarrierError(f"Carrier returned a non-JSON response for {path}") from exc

        if body.get("status") != "success":
            raise CarrierError(body.get("message") or f"Carrier rejected request to {path}")
        return body.get("data") or {}

    # -------------------------------------------------------------------
    # Port
    # -------------------------------------------------------------------
    def validate_address(self, contact: ContactAddress) -> str:
        if self.cache is not None:
            cached = self.cache.get(contact.cache_key)
            if cached is not None:
                return cached

        data = self._request(
            "POST",
            "/shipping/address/validate",
            {
                "name": contact.name,
                "email": contact.email,
                "phone": contact.phone,
                "address": contact.address,
            },
        )
        code = data.get("address_code")
        if not code:
            raise CarrierError(f"Address could not be validated: {contact.address}")

        code = str(code)
        if self.cache is not None:
            self.cache.set(contact.cache_key, code)
        return code

    def fetch_rates(
        self,
        sender_code: str,
        receiver_code: str,
        items,
        dimensions=None,
        pickup_date=None,
        category_id=None,
    ) -> RateResponse:
        pickup_date = pickup_date or (datetime.now(UTC) + timedelta(days=1)).date().isoformat()
        data = self._request(
            "POST",
            "/shipping/fetch_rates",
            {
                "sender_address_code": sender_code,
                # Field name as spelled by the carrier API.
                "reciever_address_code": receiver_code,
                "pickup_date": pickup_date,
                "category_id": category_id or self.category_id,
                "package_items": [
                    {
                        "name": item.name,
                        "description": item.description or item.name,
                        "unit_weight": str(item.unit_weight),
                        "unit_amount": str(item.unit_amount),
                        "quantity": str(item.quantity),
                    }
                    for item in items
                ],
                "package_dimension": dimensions or DEFAULT_DIMENSIONS,
                "service_type": "pickup",
            },
        )

        couriers = tuple(_parse_courier(raw) for raw in data.get("couriers") or [])
        if not couriers or not data.get("request_token"):
            raise CarrierError("No couriers available for this route")

        return RateResponse(
            request_token=str(data["request_token"]),
            couriers=couriers,
            cheapest=_parse_courier(data["cheapest_courier"]) if data.get("cheapest_courier") else None,
            fastest=_parse_courier(data["fastest_courier"]) if data.get("fastest_courier") else None,
        )

    def book(self, request_token: str, courier_id: str, service_code: str | None = None) -> Booking:
        payload = {"request_token": request_token, "courier_id": courier_id, "is_invoice_required": False}
        if service_code:
            payload["service_code"] = service_code

        data = self._request("POST", "/shipping/labels", payload)
        tracking_ref = data.get("tracking_number")
        if not tracking_ref:
            raise CarrierError("Carrier did not return a tracking number")

        courier = data.get("courier") or {}
        return Booking(
            tracking_ref=str(tracking_ref),
            shipment_id=str(data.get("shipment_id") or tracking_ref),
            courier_name=courier.get("name") if isinstance(courier, dict) else None,
        )

    def track(self, tracking_ref: str) -> dict:
        return self._request("GET", f"/shipping/track/{tracking_ref}")

    def cancel(self, tracking_ref: str) -> bool:
        self._request("POST", "/shipping/cancel", {"tracking_number": tracking_ref})
        return True


def _parse_courier(raw: dict) -> CourierQuote:
    return CourierQuote(
        courier_id=str(raw.get("courier_id")),
        courier_name=raw.get("courier_name") or "",
        service_code=raw.get("service_code") or "",
        service_type=raw.get("service_type") or "",
        amount=float(raw.get("total") or raw.get("rate_card_amount") or 0),
        eta=raw.get("delivery_eta") or "Within 3-5 days",
    )
