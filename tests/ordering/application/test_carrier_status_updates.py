"""Application tests for carrier-reported parcel progress."""

import pytest
from ordering.checkout import service
from ordering.order.order import Order, OrderStatus
from protean import current_domain


@pytest.fixture()
def two_vendor_order(marketplace, add_to_cart, fund_wallet, shipping_address):
    add_to_cart("cust-001", "phone")
    add_to_cart("cust-001", "novel")
    fund_wallet("cust-001", 50000.0)
    return service.checkout("cust-001", "wallet", "standard", shipping_address)["order"]


def _refs(order):
    return {s["vendor_id"]: s["tracking_ref"] for s in order["vendor_shipments"]}


def _order(order_number):
    return current_domain.repository_for(Order).get_by_order_number(order_number)


class TestCarrierEvents:
    def test_pickup_of_every_parcel_ships_the_order(self, two_vendor_order):
        refs = _refs(two_vendor_order)

        service.record_carrier_status(refs["vendor-a"], "picked_up")
        result = service.record_carrier_status(refs["vendor-b"], "picked_up")

        assert result == {
            "applied": True,
            "order_number": two_vendor_order["order_number"],
            "status": OrderStatus.SHIPPED.value,
        }
        order = _order(two_vendor_order["order_number"])
        assert {s.status for s in order.vendor_shipments} == {"shipped"}
        assert order.status_history[-1].note == "Carrier reported shipped"

    def test_order_waits_for_the_slowest_parcel(self, two_vendor_order):
        refs = _refs(two_vendor_order)

        service.record_carrier_status(refs["vendor-a"], "completed")
        assert _order(two_vendor_order["order_number"]).status == OrderStatus.CONFIRMED.value

        service.record_carrier_status(refs["vendor-b"], "in_transit")
        assert _order(two_vendor_order["order_number"]).status == OrderStatus.IN_TRANSIT.value

        service.record_carrier_status(refs["vendor-b"], "delivered", note="Signed by Chidi")
        order = _order(two_vendor_order["order_number"])
        assert order.status == OrderStatus.DELIVERED.value
        assert order.status_history[-1].note == "Signed by Chidi"

    def test_stale_status_is_acknowledged_without_change(self, two_vendor_order):
        refs = _refs(two_vendor_order)
        for ref in refs.values():
            service.record_carrier_status(ref, "in_transit")

        result = service.record_carrier_status(refs["vendor-a"], "picked_up")

        assert result["applied"] is False
        assert result["status"] == OrderStatus.IN_TRANSIT.value

    def test_unknown_tracking_ref_is_a_no_op(self, two_vendor_order):
        result = service.record_carrier_status("FAKE-UNKNOWN", "delivered")

        assert result == {"applied": False, "order_number": None, "status": None}
        assert _order(two_vendor_order["order_number"]).status == OrderStatus.CONFIRMED.value

    def test_carrier_cancellation_only_drops_the_parcel(self, two_vendor_order):
        refs = _refs(two_vendor_order)

        service.record_carrier_status(refs["vendor-a"], "cancelled")
        service.record_carrier_status(refs["vendor-b"], "delivered")

        order = _order(two_vendor_order["order_number"])
        assert order.shipment_for("vendor-a").status == "cancelled"
        assert order.status == OrderStatus.DELIVERED.value
        assert order.payment_status == "completed"

    def test_cancelled_order_ignores_carrier(self, two_vendor_order):
        refs = _refs(two_vendor_order)
        service.cancel_order(two_vendor_order["order_number"])

        result = service.record_carrier_status(refs["vendor-a"], "delivered")

        assert result["applied"] is False
        assert _order(two_vendor_order["order_number"]).status == OrderStatus.CANCELLED.value


class TestTrackingRefresh:
    def test_refresh_applies_carrier_status(self, two_vendor_order, carrier):
        refreshed = service.refresh_order_status(two_vendor_order["order_number"], customer_id="cust-001")

        assert refreshed["status"] == OrderStatus.IN_TRANSIT.value
        assert len(carrier.calls_to("track")) == 2

    def test_refresh_follows_slowest_parcel(self, two_vendor_order, carrier):
        refs = _refs(two_vendor_order)
        carrier.statuses[refs["vendor-a"]] = "delivered"
        carrier.statuses[refs["vendor-b"]] = "picked_up"

        refreshed = service.refresh_order_status(two_vendor_order["order_number"])

        assert refreshed["status"] == OrderStatus.SHIPPED.value
        assert {s["vendor_id"]: s["status"] for s in refreshed["vendor_shipments"]} == {
            "vendor-a": "delivered",
            "vendor-b": "shipped",
        }

    def test_carrier_outage_keeps_status(self, two_vendor_order, carrier):
        carrier.configure(should_succeed=False)

        refreshed = service.refresh_order_status(two_vendor_order["order_number"])

        assert refreshed["status"] == OrderStatus.CONFIRMED.value

    def test_unbooked_parcels_are_skipped(self, marketplace, add_to_cart, shipping_address, carrier):
        add_to_cart("cust-001", "phone")
        placed = service.checkout("cust-001", "cash_on_delivery", "standard", shipping_address)["order"]

        refreshed = service.refresh_order_status(placed["order_number"])

        assert refreshed["status"] == OrderStatus.CONFIRMED.value
        assert carrier.calls_to("track") == []
