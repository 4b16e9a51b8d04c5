"""Tests for the ShoppingCart aggregate."""

import pytest
from ordering.cart.cart import ShoppingCart
from ordering.cart.events import CartCleared, CartCouponApplied, CartItemAdded
from protean.exceptions import ValidationError


def _cart_with_phone():
    cart = ShoppingCart.create(customer_id="cust-001")
    cart.add_item("phone", unit_price=10000.0, quantity=1)
    return cart


class TestItems:
    def test_add_item(self):
        cart = _cart_with_phone()
        assert len(cart.items) == 1
        assert cart.subtotal == 10000.0
        assert isinstance(cart._events[-1], CartItemAdded)

    def test_same_product_merges_quantity(self):
        cart = _cart_with_phone()
        cart.add_item("phone", unit_price=10000.0, quantity=2)
        assert len(cart.items) == 1
        assert cart.items[0].quantity == 3

    def test_different_variants_are_separate_lines(self):
        cart = ShoppingCart.create(customer_id="cust-001")
        cart.add_item("case", unit_price=1500.0, variant_id="black")
        cart.add_item("case", unit_price=1500.0, variant_id="red")
        assert len(cart.items) == 2

    def test_update_quantity(self):
        cart = _cart_with_phone()
        cart.update_item_quantity(cart.items[0].id, 4)
        assert cart.subtotal == 40000.0

    def test_remove_item(self):
        cart = _cart_with_phone()
        cart.remove_item(cart.items[0].id)
        assert cart.is_empty

    def test_unknown_item(self):
        cart = _cart_with_phone()
        with pytest.raises(ValidationError) as exc:
            cart.remove_item("missing")
        assert "Item not found in cart" in str(exc.value)


class TestCoupons:
    def test_apply_coupon(self):
        cart = _cart_with_phone()
        cart.apply_coupon("WELCOME10", 1000.0)
        assert cart.discount_amount() == 1000.0
        assert isinstance(cart._events[-1], CartCouponApplied)

    def test_discount_never_exceeds_subtotal(self):
        cart = _cart_with_phone()
        cart.apply_coupon("BIGSALE", 25000.0)
        assert cart.discount_amount() == 10000.0

    def test_one_coupon_per_cart(self):
        cart = _cart_with_phone()
        cart.apply_coupon("WELCOME10", 1000.0)
        with pytest.raises(ValidationError):
            cart.apply_coupon("AGAIN", 500.0)

    def test_empty_cart_cannot_take_a_coupon(self):
        cart = ShoppingCart.create(customer_id="cust-001")
        with pytest.raises(ValidationError):
            cart.apply_coupon("WELCOME10", 1000.0)


class TestClear:
    def test_clear_empties_items_and_coupon(self):
        cart = _cart_with_phone()
        cart.apply_coupon("WELCOME10", 1000.0)
        cart.clear(order_number="VS482913370042")
        assert cart.is_empty
        assert cart.coupon_code is None
        assert cart.discount_amount() == 0.0
        assert cart._events[-1].order_number == "VS482913370042"
        assert isinstance(cart._events[-1], CartCleared)
