"""HTTP adapters against a recorded session: request shape and error mapping."""

import json

import pytest
import requests
from ordering.carrier.address_cache import AddressCodeCache
from ordering.carrier.http_adapter import HttpCarrier
from ordering.carrier.port import CarrierError, ContactAddress, ParcelItem
from ordering.gateway.http_adapter import HttpGateway
from ordering.gateway.port import GatewayError


def _response(status_code=200, body=None):
    response = requests.Response()
    response.status_code = status_code
    response._content = json.dumps(body).encode() if body is not None else b"<html>oops</html>"
    response.url = "https://api.example.com"
    return response


class RecordingSession:
    """Stands in for ``requests.Session``: replays queued responses and records requests."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def request(self, method, url, json=None, headers=None, timeout=None):
        self.requests.append({"method": method, "url": url, "json": json, "headers": headers, "timeout": timeout})
        outcome = self.responses.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


SENDER = ContactAddress(
    name="Ada Gadgets",
    email="ada@gadgets.example.com",
    phone="+2348011111111",
    address="14 Broad Street, Marina, Lagos Island, Lagos, Nigeria",
)

COURIER = {
    "courier_id": "gig",
    "courier_name": "GIG Logistics",
    "service_code": "gig-std",
    "service_type": "pickup",
    "total": 2650.5,
    "delivery_eta": "Within 2-4 days",
}


class TestHttpGateway:
    def test_initialize_sends_minor_units(self):
        session = RecordingSession(
            _response(
                body={
                    "status": True,
                    "data": {
                        "authorization_url": "https://checkout.example.com/abc",
                        "access_code": "abc",
                        "reference": "VS123",
                    },
                }
            )
        )
        gateway = HttpGateway("https://api.example.com/", "sk_test", session=session)

        payment = gateway.initialize("chidi@example.com", 1750000, "VS123", "https://shop.example.com/cb")

        [sent] = session.requests
        assert sent["url"] == "https://api.example.com/transaction/initialize"
        assert sent["json"]["amount"] == 1750000
        assert sent["headers"]["Authorization"] == "Bearer sk_test"
        assert payment.redirect_url == "https://checkout.example.com/abc"

    def test_verify_maps_status_and_amount(self):
        session = RecordingSession(
            _response(
                body={
                    "status": True,
                    "data": {"reference": "VS123", "status": "success", "amount": 1750000, "metadata": {"customer_id": "c1"}},
                }
            )
        )

        verification = HttpGateway("https://api.example.com", "sk", session=session).verify("VS123")

        assert verification.succeeded
        assert verification.amount_minor_units == 1750000
        assert verification.metadata == {"customer_id": "c1"}

    def test_abandoned_payment_is_not_successful(self):
        session = RecordingSession(_response(body={"status": True, "data": {"status": "abandoned", "amount": 0}}))
        assert not HttpGateway("https://api.example.com", "sk", session=session).verify("VS123").succeeded

    @pytest.mark.parametrize(
        "outcome",
        [
            requests.ConnectionError("connection refused"),
            _response(status_code=502, body={"status": False}),
            _response(body=None),
            _response(body={"status": False, "message": "Invalid key"}),
        ],
    )
    def test_failures_become_gateway_errors(self, outcome):
        gateway = HttpGateway("https://api.example.com", "sk", session=RecordingSession(outcome))
        with pytest.raises(GatewayError):
            gateway.verify("VS123")


class TestHttpCarrier:
    def test_validated_address_is_cached(self):
        session = RecordingSession(_response(body={"status": "success", "data": {"address_code": 4412}}))
        carrier = HttpCarrier("https://api.example.com", "key", cache=AddressCodeCache(max_size=10, ttl_seconds=60), session=session)

        first = carrier.validate_address(SENDER)
        second = carrier.validate_address(SENDER)

        assert first == second == "4412"
        assert len(session.requests) == 1

    def test_address_without_code_is_rejected(self):
        session = RecordingSession(_response(body={"status": "success", "data": {}}))
        with pytest.raises(CarrierError) as exc:
            HttpCarrier("https://api.example.com", "key", session=session).validate_address(SENDER)
        assert "Address could not be validated" in str(exc.value)

    def test_fetch_rates_payload_and_parsing(self):
        session = RecordingSession(
            _response(
                body={
                    "status": "success",
                    "data": {"request_token": "tok-1", "couriers": [COURIER], "cheapest_courier": COURIER},
                }
            )
        )
        carrier = HttpCarrier("https://api.example.com", "key", timeout=12, category_id=99, session=session)

        response = carrier.fetch_rates("101", "202", [ParcelItem("Smartphone", 0.5, 10000.0, 1)])

        [sent] = session.requests
        assert sent["timeout"] == 12
        assert sent["json"]["reciever_address_code"] == "202"
        assert sent["json"]["category_id"] == 99
        assert sent["json"]["package_items"][0]["unit_weight"] == "0.5"
        assert response.request_token == "tok-1"
        assert response.couriers[0].amount == 2650.5
        assert response.cheapest.courier_id == "gig"
        assert response.fastest is None

    def test_empty_courier_list(self):
        session = RecordingSession(_response(body={"status": "success", "data": {"request_token": "tok-1", "couriers": []}}))
        with pytest.raises(CarrierError):
            HttpCarrier("https://api.example.com", "key", session=session).fetch_rates("101", "202", [])

    def test_book_returns_tracking(self):
        session = RecordingSession(
            _response(
                body={
                    "status": "success",
                    "data": {"tracking_number": "SB-77", "shipment_id": 9001, "courier": {"name": "GIG Logistics"}},
                }
            )
        )

        booking = HttpCarrier("https://api.example.com", "key", session=session).book("tok-1", "gig", "gig-std")

        assert booking.tracking_ref == "SB-77"
        assert booking.shipment_id == "9001"
        assert booking.courier_name == "GIG Logistics"
        assert session.requests[0]["json"]["service_code"] == "gig-std"

    def test_timeout_becomes_carrier_error(self):
        session = RecordingSession(requests.Timeout("read timed out"))
        with pytest.raises(CarrierError):
            HttpCarrier("https://api.example.com", "key", session=session).track("SB-77")
