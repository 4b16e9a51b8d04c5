"""Application tests for cash-on-delivery checkout."""

import pytest
from ordering.checkout import service
from ordering.order.order import Order, OrderStatus, PaymentStatus
from ordering.tasks.task import Task
from protean import current_domain
from protean.exceptions import ValidationError


class TestCashOnDelivery:
    def test_order_is_confirmed_unpaid(self, marketplace, add_to_cart, shipping_address):
        add_to_cart("cust-001", "phone")

        result = service.checkout("cust-001", "cash_on_delivery", "standard", shipping_address)

        assert result["order"]["status"] == OrderStatus.CONFIRMED.value
        assert result["order"]["payment_status"] == PaymentStatus.PENDING.value
        assert result["payment"] is None

    def test_stock_is_committed_at_confirmation(self, marketplace, add_to_cart, shipping_address):
        add_to_cart("cust-001", "phone", quantity=2)

        result = service.checkout("cust-001", "cash_on_delivery", "standard", shipping_address)

        assert marketplace.get_product("phone").stock == 3
        order = current_domain.repository_for(Order).get_by_order_number(result["order"]["order_number"])
        assert order.stock_committed is True
        assert order.side_effects_applied is False

    def test_no_followups_until_paid(self, marketplace, add_to_cart, shipping_address, rewards, carrier):
        add_to_cart("cust-001", "phone")

        result = service.checkout("cust-001", "cash_on_delivery", "standard", shipping_address)

        assert current_domain.repository_for(Task).for_order(result["order"]["id"]) == []
        assert rewards.awarded == []
        assert carrier.calls_to("book") == []

    @pytest.mark.parametrize("product_id", ["ebook", "consult"])
    def test_rejected_for_non_physical_lines(self, marketplace, add_to_cart, shipping_address, product_id):
        add_to_cart("cust-001", "phone")
        add_to_cart("cust-001", product_id)

        with pytest.raises(ValidationError) as exc:
            service.checkout("cust-001", "cash_on_delivery", "standard", shipping_address)

        assert "Cash on delivery is not available for digital products" in str(exc.value)
        assert current_domain.repository_for(Order).find_for_customer("cust-001") == []
        assert marketplace.get_product("phone").stock == 5
