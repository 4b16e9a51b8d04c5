"""Order placement — turn the customer's cart into a priced order.

Validation happens before anything is written: the cart must not be empty,
every product must still be active, physical lines must be in stock and
the payment method must suit the cart. The order, the cleared cart and any
immediate settlement (wallet debit, cash-on-delivery confirmation) commit
as one unit of work. A gateway order leaves the cart alone; it is emptied
once the gateway has accepted the payment intent.
"""

import json
from collections import defaultdict

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from ordering import settings
from ordering.cart.cart import ShoppingCart
from ordering.catalogue import get_catalogue
from ordering.domain import ordering
from ordering.order.order import (
    Address,
    DeliveryType,
    Order,
    OrderItem,
    OrderPricing,
    PaymentMethod,
    VendorShipment,
)
from ordering.partitioning.partitioner import is_digital_only, partition, resolve_lines
from ordering.rates.aggregator import shipping_price_for
from ordering.settlement.strategies import strategy_for
from ordering.shared.money import round_money

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Order")
class PlaceOrder:
    customer_id = Identifier(required=True)
    customer_email = String(max_length=254)
    payment_method = String(required=True, choices=PaymentMethod)
    delivery_type = String(choices=DeliveryType, default=DeliveryType.STANDARD.value)
    shipping_address = Text()  # JSON: address dict


def _check_stock(lines):
    requested = defaultdict(int)
    for line in lines:
        if line.is_physical:
            requested[line.product_id] += line.quantity

    for line in lines:
        if line.is_physical and requested[line.product_id] > line.product.stock:
            raise ValidationError(
                {"stock": [f"Insufficient stock for {line.product.name}. Only {line.product.stock} available"]}
            )


def _shipping_address(raw, digital_only):
    data = json.loads(raw) if isinstance(raw, str) else (raw or {})
    if digital_only:
        return Address(**data) if data else None
    if not data.get("city") or not data.get("state") or not data.get("street"):
        raise ValidationError({"shipping_address": ["Street, city and state are required for physical delivery"]})
    return Address(**data)


def _snapshot(line) -> OrderItem:
    product = line.product
    return OrderItem(
        product_id=product.id,
        variant_id=line.variant_id,
        name=product.name,
        image=product.image,
        unit_price=line.unit_price,
        quantity=line.quantity,
        vendor_id=product.vendor_id,
        product_type=product.product_type.value,
        requires_license=product.requires_license,
        license_type=product.license_type,
    )


def _origin(group) -> Address:
    profile = group.profile
    if profile is None:
        return Address(full_name=group.vendor_name, street="", city="", state="")
    return Address(
        full_name=group.vendor_name,
        phone=profile.phone,
        street=profile.street or "",
        city=profile.city,
        state=profile.state,
        country=profile.country or "Nigeria",
    )


@ordering.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        cart_repo = current_domain.repository_for(ShoppingCart)
        cart = cart_repo.find_for_customer(command.customer_id)
        if cart is None or cart.is_empty:
            raise ValidationError({"cart": ["Cart is empty"]})

        catalogue = get_catalogue()
        lines = resolve_lines(cart.items, catalogue)
        digital_only = is_digital_only(lines)
        strategy = strategy_for(command.payment_method)

        strategy.check_cart(lines)
        if strategy.method is PaymentMethod.GATEWAY and not command.customer_email:
            raise ValidationError({"customer_email": ["An email address is required for gateway payments"]})
        _check_stock(lines)

        delivery_type = DeliveryType.DIGITAL.value if digital_only else (command.delivery_type or "standard")
        if not digital_only and delivery_type == DeliveryType.DIGITAL.value:
            raise ValidationError({"delivery_type": ["Digital delivery is only available for digital-only carts"]})
        shipping_address = _shipping_address(command.shipping_address, digital_only)

        # Snapshot every line, keeping track of which snapshot belongs to which vendor
        groups = partition(lines, catalogue)
        items = []
        shipments = []
        for group in groups:
            group_items = [(line, _snapshot(line)) for line in group.lines]
            items.extend(item for _, item in group_items)

            if digital_only or delivery_type == DeliveryType.PICKUP.value or not group.has_physical:
                continue
            shipments.append(
                VendorShipment(
                    vendor_id=group.vendor_id,
                    vendor_name=group.vendor_name,
                    origin=_origin(group),
                    item_ids=json.dumps([str(item.id) for line, item in group_items if line.is_physical]),
                    shipping_cost=shipping_price_for(delivery_type),
                )
            )

        subtotal = round_money(sum(line.line_total for line in lines))
        discount = cart.discount_amount()
        pricing = OrderPricing.build(
            subtotal=subtotal,
            discount=discount,
            shipping_cost=sum(s.shipping_cost for s in shipments),
            tax=round_money((subtotal - discount) * settings.TAX_RATE),
            currency=settings.CURRENCY,
        )
        strategy.check_funds(command.customer_id, pricing.total)

        order_repo = current_domain.repository_for(Order)
        order = Order.place(
            order_number=order_repo.next_order_number(),
            customer_id=command.customer_id,
            customer_email=command.customer_email,
            items=items,
            shipments=shipments,
            pricing=pricing,
            payment_method=command.payment_method,
            delivery_type=delivery_type,
            shipping_address=shipping_address,
            coupon_code=cart.coupon_code,
        )

        outcome = strategy.settle(order)
        order_repo.add(order)

        if not outcome.requires_redirect:
            cart.clear(order_number=order.order_number)
            cart_repo.add(cart)

        logger.info(
            "order_placed",
            order_number=order.order_number,
            payment_method=order.payment_method,
            vendor_count=len(groups),
            total=order.total,
            status=order.status,
        )
        return {
            "order_id": str(order.id),
            "order_number": order.order_number,
            "requires_redirect": outcome.requires_redirect,
            "vendor_count": len(groups),
            "multi_vendor": len(groups) > 1,
        }
