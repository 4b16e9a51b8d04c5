"""Shared BDD fixtures and step definitions for checkout scenarios."""

import pytest
from ordering.cart.cart import ShoppingCart
from ordering.checkout import service
from ordering.license.license import License
from ordering.order.order import Order
from ordering.wallet.wallet import Wallet
from protean import current_domain
from protean.exceptions import ValidationError
from pytest_bdd import given, parsers, then, when

CUSTOMER = "cust-001"


@pytest.fixture()
def context():
    """Carries the order under test and any captured error between steps."""
    return {"order_number": None, "error": None}


def _order(context) -> Order:
    return current_domain.repository_for(Order).get_by_order_number(context["order_number"])


def _wallet() -> Wallet | None:
    return current_domain.repository_for(Wallet).find_for_customer(CUSTOMER)


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('a marketplace with vendors "{first}" and "{second}"'))
def marketplace_with_vendors(marketplace, first, second):
    names = {profile.business_name for profile in marketplace.vendors.values()}
    assert {first, second} <= names


@given(parsers.cfparse('the customer\'s cart holds {first_qty:d} "{first}" and {second_qty:d} "{second}"'))
def cart_holds(add_to_cart, first_qty, first, second_qty, second):
    add_to_cart(CUSTOMER, first, quantity=first_qty)
    add_to_cart(CUSTOMER, second, quantity=second_qty)


@given(parsers.cfparse("the customer's wallet holds {amount:g}"))
def wallet_holds(fund_wallet, amount):
    fund_wallet(CUSTOMER, float(amount))


@given(parsers.cfparse('the customer checks out with "{method}" for "{delivery_type}" delivery'))
@when(parsers.cfparse('the customer checks out with "{method}" for "{delivery_type}" delivery'))
def checks_out(context, shipping_address, method, delivery_type):
    try:
        result = service.checkout(CUSTOMER, method, delivery_type, shipping_address, email="chidi@example.com")
    except ValidationError as exc:
        context["error"] = exc
    else:
        context["order_number"] = result["order"]["order_number"]


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the order status is "{status}"'))
def order_status_is(context, status):
    assert _order(context).status == status


@then(parsers.cfparse('the order payment status is "{status}"'))
def order_payment_status_is(context, status):
    assert _order(context).payment_status == status


@then(parsers.cfparse('the stock of "{product_id}" is {stock:d}'))
def stock_is(marketplace, product_id, stock):
    assert marketplace.get_product(product_id).stock == stock


@then(parsers.cfparse("the wallet balance is {amount:g}"))
def wallet_balance_is(amount):
    assert _wallet().balance == float(amount)


@then(parsers.re(r"(?P<count>\d+) licenses? (?:is|are) issued for the order"), converters={"count": int})
def licenses_issued(context, count):
    assert len(current_domain.repository_for(License).find_for_order(_order(context).id)) == count


@then(parsers.cfparse('the checkout fails with "{message}"'))
@then(parsers.cfparse('the cancellation fails with "{message}"'))
def fails_with(context, message):
    assert context["error"] is not None
    assert message in str(context["error"])


@then("the customer has no orders")
def no_orders():
    assert current_domain.repository_for(Order).find_for_customer(CUSTOMER) == []


@then("the cart is empty")
def cart_is_empty():
    assert current_domain.repository_for(ShoppingCart).find_for_customer(CUSTOMER).is_empty
