"""Application tests for vendor status updates, tracking and delivery quotes."""

import pytest
from ordering.checkout import service
from ordering.order.tracking import track_order
from ordering.rates.aggregator import Destination
from protean.exceptions import ValidationError

IKOYI = Destination(street="22 Awolowo Road, Ikoyi", city="Ikoyi", state="Lagos", full_name="Chidi Okafor")


@pytest.fixture()
def two_vendor_order(marketplace, add_to_cart, fund_wallet, shipping_address):
    add_to_cart("cust-001", "phone")
    add_to_cart("cust-001", "novel")
    fund_wallet("cust-001", 50000.0)
    return service.checkout("cust-001", "wallet", "standard", shipping_address)["order"]


class TestVendorStatusUpdates:
    def test_vendor_moves_order_forward(self, two_vendor_order):
        updated = service.update_order_status(two_vendor_order["order_number"], "vendor-b", "shipped", note="Dispatched")

        assert updated["status"] == "shipped"
        assert updated["status_history"][-1]["note"] == "Dispatched"

    def test_vendor_without_items(self, two_vendor_order, marketplace):
        with pytest.raises(ValidationError) as exc:
            service.update_order_status(two_vendor_order["order_number"], "vendor-z", "processing")
        assert "Vendor has no items in this order" in str(exc.value)

    def test_vendor_cannot_cancel(self, two_vendor_order):
        with pytest.raises(ValidationError):
            service.update_order_status(two_vendor_order["order_number"], "vendor-a", "cancelled")

    def test_status_cannot_go_backwards(self, two_vendor_order):
        service.update_order_status(two_vendor_order["order_number"], "vendor-a", "delivered")
        with pytest.raises(ValidationError):
            service.update_order_status(two_vendor_order["order_number"], "vendor-a", "shipped")


class TestTracking:
    def test_each_booked_shipment_is_tracked(self, two_vendor_order):
        tracked = track_order(two_vendor_order["order_number"], customer_id="cust-001")

        assert len(tracked["shipments"]) == 2
        assert {s["tracking"]["status"] for s in tracked["shipments"]} == {"in_transit"}

    def test_carrier_outage_reports_no_tracking(self, two_vendor_order, carrier):
        carrier.configure(should_succeed=False)

        tracked = track_order(two_vendor_order["order_number"])

        assert [s["tracking"] for s in tracked["shipments"]] == [None, None]
        assert all(s["tracking_ref"] for s in tracked["shipments"])

    def test_unbooked_shipment(self, marketplace, add_to_cart, shipping_address, carrier):
        add_to_cart("cust-001", "phone")
        placed = service.checkout("cust-001", "cash_on_delivery", "standard", shipping_address)["order"]

        tracked = track_order(placed["order_number"])

        [shipment] = tracked["shipments"]
        assert shipment["tracking_ref"] is None
        assert shipment["tracking"] is None
        assert carrier.calls_to("track") == []


class TestQuoteDelivery:
    def test_quote_for_two_vendor_cart(self, marketplace, add_to_cart):
        add_to_cart("cust-001", "phone")
        add_to_cart("cust-001", "novel")

        quote = service.quote_delivery("cust-001", IKOYI, email="chidi@example.com")

        assert quote.multi_vendor is True
        assert quote.source.value == "carrier"
        standard = quote.option("standard")
        assert standard.price == 5000.0
        assert standard.courier == "Multiple Couriers"
        assert {b.vendor_id for b in standard.vendor_breakdown} == {"vendor-a", "vendor-b"}

    def test_carrier_down_uses_fallback_rates(self, marketplace, add_to_cart, carrier):
        add_to_cart("cust-001", "phone")
        carrier.configure(should_succeed=False)

        quote = service.quote_delivery("cust-001", IKOYI)

        assert quote.source.value == "fallback"
        assert quote.option("standard").price == 2500.0
        assert quote.option("express").price == 5000.0

    def test_digital_cart(self, marketplace, add_to_cart):
        add_to_cart("cust-001", "ebook")

        quote = service.quote_delivery("cust-001", IKOYI)

        assert quote.is_digital_only is True
        assert [o.type.value for o in quote.options] == ["digital"]

    def test_empty_cart(self, marketplace):
        with pytest.raises(ValidationError):
            service.quote_delivery("cust-001", IKOYI)
