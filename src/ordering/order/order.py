"""Order aggregate (CQRS): the persisted record of a settled cart.

An order carries two independent status fields that evolve together but
are not one state:

Fulfillment:
    PENDING → CONFIRMED → PROCESSING → SHIPPED → IN_TRANSIT → DELIVERED
    PENDING → DELIVERED                   (digital-only orders on payment)
    PENDING | CONFIRMED → CANCELLED
    PENDING → FAILED                      (gateway could not take payment)

Payment:
    PENDING → COMPLETED | FAILED
    COMPLETED → REFUNDED                  (only once the order is cancelled)

Parcels (one per vendor with physical items), moved by carrier events:
    PENDING → CREATED → SHIPPED → IN_TRANSIT → DELIVERED
    any → CANCELLED

A payment the gateway captures after the customer cancelled is recorded
and refunded straight away; fulfillment stays cancelled.

Line items are snapshots taken when the order is placed and are never
modified afterwards. Pricing is a value object whose ``total`` is always
derived from its components.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Boolean, DateTime, Float, HasMany, Identifier, Integer, String, Text, ValueObject

from ordering.domain import ordering
from ordering.order.events import (
    OrderCancelled,
    OrderConfirmed,
    OrderPlaced,
    OrderRefunded,
    OrderStatusUpdated,
    PaymentCompleted,
    PaymentFailed,
    PaymentInitiated,
    ShipmentBooked,
    ShipmentStatusChanged,
)
from ordering.shared.money import round_money
from ordering.shared.numbers import generate_order_number
from ordering.shared.product_type import ProductType

_TOLERANCE = 0.005


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    FAILED = "failed"


class PaymentStatus(Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentMethod(Enum):
    GATEWAY = "gateway"
    WALLET = "wallet"
    CASH_ON_DELIVERY = "cash_on_delivery"


class DeliveryType(Enum):
    STANDARD = "standard"
    EXPRESS = "express"
    SAME_DAY = "same_day"
    PICKUP = "pickup"
    DIGITAL = "digital"


class ShipmentStatus(Enum):
    PENDING = "pending"
    CREATED = "created"
    SHIPPED = "shipped"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


# Fulfillment state machine
_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {
        OrderStatus.CONFIRMED,
        OrderStatus.DELIVERED,  # Digital-only orders on payment
        OrderStatus.CANCELLED,
        OrderStatus.FAILED,
    },
    OrderStatus.CONFIRMED: {
        OrderStatus.PROCESSING,
        OrderStatus.SHIPPED,
        OrderStatus.IN_TRANSIT,
        OrderStatus.DELIVERED,
        OrderStatus.CANCELLED,
    },
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.IN_TRANSIT, OrderStatus.DELIVERED},
    OrderStatus.SHIPPED: {OrderStatus.IN_TRANSIT, OrderStatus.DELIVERED},
    OrderStatus.IN_TRANSIT: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),  # Terminal
    OrderStatus.CANCELLED: set(),  # Terminal
    OrderStatus.FAILED: set(),  # Terminal
}

_PAYMENT_TRANSITIONS = {
    PaymentStatus.PENDING: {PaymentStatus.COMPLETED, PaymentStatus.FAILED},
    PaymentStatus.COMPLETED: {PaymentStatus.REFUNDED},
    PaymentStatus.FAILED: set(),
    PaymentStatus.REFUNDED: set(),
}

_CANCELLABLE_STATES = {OrderStatus.PENDING, OrderStatus.CONFIRMED}

# Statuses a vendor may move an order into
VENDOR_STATUSES = {
    OrderStatus.PROCESSING,
    OrderStatus.SHIPPED,
    OrderStatus.IN_TRANSIT,
    OrderStatus.DELIVERED,
}

# Carrier status codes and the parcel status each one means
CARRIER_SHIPMENT_STATUSES = {
    "confirmed": ShipmentStatus.CREATED,
    "picked_up": ShipmentStatus.SHIPPED,
    "in_transit": ShipmentStatus.IN_TRANSIT,
    "delivered": ShipmentStatus.DELIVERED,
    "completed": ShipmentStatus.DELIVERED,
    "cancelled": ShipmentStatus.CANCELLED,
}

_SHIPMENT_PROGRESS = (
    ShipmentStatus.PENDING,
    ShipmentStatus.CREATED,
    ShipmentStatus.SHIPPED,
    ShipmentStatus.IN_TRANSIT,
    ShipmentStatus.DELIVERED,
)

# Fulfillment status an order reaches once its slowest parcel gets there
_FULFILLMENT_FOR_SHIPMENT = {
    ShipmentStatus.SHIPPED: OrderStatus.SHIPPED,
    ShipmentStatus.IN_TRANSIT: OrderStatus.IN_TRANSIT,
    ShipmentStatus.DELIVERED: OrderStatus.DELIVERED,
}

# Fulfillment statuses in which parcels can still move
SHIPPING_STATUSES = (
    OrderStatus.CONFIRMED,
    OrderStatus.PROCESSING,
    OrderStatus.SHIPPED,
    OrderStatus.IN_TRANSIT,
)


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@ordering.value_object(part_of="Order")
class Address:
    """A postal address captured at checkout time (customer) or from the vendor profile (origin)."""

    full_name = String(max_length=255)
    phone = String(max_length=30)
    street = String(max_length=255)
    city = String(max_length=100)
    state = String(max_length=100)
    country = String(max_length=100, default="Nigeria")

    @property
    def one_line(self) -> str:
        return f"{self.street}, {self.city}, {self.state}, {self.country or 'Nigeria'}"


@ordering.value_object(part_of="Order")
class OrderPricing:
    """Monetary totals locked at order creation.

    ``total`` is never accepted from a caller; ``build`` derives it.
    """

    subtotal = Float(default=0.0)
    discount = Float(default=0.0)
    shipping_cost = Float(default=0.0)
    tax = Float(default=0.0)
    total = Float(default=0.0)
    currency = String(max_length=3, default="NGN")

    @classmethod
    def build(cls, subtotal, discount=0.0, shipping_cost=0.0, tax=0.0, currency="NGN"):
        subtotal = round_money(subtotal)
        discount = round_money(min(discount or 0.0, subtotal))
        shipping_cost = round_money(shipping_cost)
        tax = round_money(tax)
        return cls(
            subtotal=subtotal,
            discount=discount,
            shipping_cost=shipping_cost,
            tax=tax,
            total=round_money(subtotal - discount + shipping_cost + tax),
            currency=currency,
        )


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@ordering.entity(part_of="Order")
class OrderItem:
    """Snapshot of a cart line at order time. Never modified once written."""

    product_id = Identifier(required=True)
    variant_id = String(max_length=100)
    name = String(required=True, max_length=255)
    image = String(max_length=500)
    unit_price = Float(required=True, min_value=0.0)
    quantity = Integer(required=True, min_value=1)
    vendor_id = Identifier(required=True)
    product_type = String(choices=ProductType, default=ProductType.PHYSICAL.value)
    requires_license = Boolean(default=False)
    license_type = String(max_length=20)

    @property
    def line_total(self) -> float:
        return round_money(self.unit_price * self.quantity)

    @property
    def is_physical(self) -> bool:
        return ProductType(self.product_type).is_physical


@ordering.entity(part_of="Order")
class VendorShipment:
    """The physical parcel one vendor sends for an order."""

    vendor_id = Identifier(required=True)
    vendor_name = String(max_length=255)
    origin = ValueObject(Address)
    item_ids = Text()  # JSON list of OrderItem ids
    shipping_cost = Float(default=0.0)
    courier = String(max_length=255)
    tracking_ref = String(max_length=255)
    shipment_id = String(max_length=255)
    status = String(choices=ShipmentStatus, default=ShipmentStatus.PENDING.value)
    booked_at = DateTime()

    @property
    def order_item_ids(self) -> list[str]:
        return json.loads(self.item_ids) if self.item_ids else []


@ordering.entity(part_of="Order")
class StatusChange:
    status = String(required=True, max_length=20)
    note = String(max_length=500)
    changed_by = String(max_length=100)
    changed_at = DateTime()


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@ordering.aggregate
class Order:
    order_number = String(required=True, max_length=20, unique=True)
    customer_id = Identifier(required=True)
    customer_email = String(max_length=254)
    items = HasMany(OrderItem)
    vendor_shipments = HasMany(VendorShipment)
    status_history = HasMany(StatusChange)
    pricing = ValueObject(OrderPricing)
    shipping_address = ValueObject(Address)
    delivery_type = String(choices=DeliveryType, default=DeliveryType.STANDARD.value)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    payment_status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    payment_method = String(required=True, choices=PaymentMethod)
    gateway_reference = String(max_length=100)
    coupon_code = String(max_length=50)
    refund_amount = Float()
    refund_reason = String(max_length=500)
    cancel_reason = String(max_length=500)
    is_digital = Boolean(default=False)
    stock_committed = Boolean(default=False)
    side_effects_applied = Boolean(default=False)
    paid_at = DateTime()
    cancelled_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def total_must_equal_components(self):
        if self.pricing is None:
            return
        p = self.pricing
        expected = round_money(p.subtotal - p.discount + p.shipping_cost + p.tax)
        if abs(expected - p.total) > _TOLERANCE:
            raise ValidationError({"total": ["Order total must equal subtotal - discount + shipping + tax"]})

    @invariant.post
    def subtotal_must_match_items(self):
        if self.pricing is None or not self.items:
            return
        if abs(round_money(sum(i.line_total for i in self.items)) - self.pricing.subtotal) > _TOLERANCE:
            raise ValidationError({"subtotal": ["Order subtotal must equal the sum of its line items"]})

    @invariant.post
    def digital_orders_have_no_shipments(self):
        if self.is_digital and self.vendor_shipments:
            raise ValidationError({"vendor_shipments": ["Digital orders cannot have vendor shipments"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        order_number,
        customer_id,
        items,
        shipments,
        pricing,
        payment_method,
        delivery_type,
        shipping_address=None,
        customer_email=None,
        coupon_code=None,
    ):
        """Create an order in (pending, pending).

        Args:
            items: ``OrderItem`` instances (snapshots).
            shipments: ``VendorShipment`` instances, one per vendor with physical items.
            pricing: an ``OrderPricing`` built with ``OrderPricing.build``.
        """
        if not items:
            raise ValidationError({"items": ["An order needs at least one item"]})

        now = datetime.now(UTC)
        is_digital = all(not item.is_physical for item in items)
        payment_method = _value(payment_method)
        delivery_type = DeliveryType.DIGITAL.value if is_digital else _value(delivery_type)

        order = cls(
            order_number=order_number,
            customer_id=customer_id,
            customer_email=customer_email,
            items=list(items),
            vendor_shipments=[] if is_digital else list(shipments),
            pricing=pricing,
            shipping_address=shipping_address,
            delivery_type=delivery_type,
            status=OrderStatus.PENDING.value,
            payment_status=PaymentStatus.PENDING.value,
            payment_method=payment_method,
            coupon_code=coupon_code,
            is_digital=is_digital,
            stock_committed=False,
            side_effects_applied=False,
            created_at=now,
            updated_at=now,
        )
        order._record_status(OrderStatus.PENDING, "Order placed", now=now)

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order_number,
                customer_id=str(customer_id),
                payment_method=payment_method,
                delivery_type=delivery_type,
                subtotal=pricing.subtotal,
                discount=pricing.discount,
                shipping_cost=pricing.shipping_cost,
                tax=pricing.tax,
                total=pricing.total,
                is_digital=is_digital,
                vendor_count=len({str(item.vendor_id) for item in items}),
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def total(self) -> float:
        return self.pricing.total if self.pricing else 0.0

    def physical_items(self) -> list[OrderItem]:
        return [item for item in self.items if item.is_physical]

    def item(self, item_id) -> OrderItem | None:
        return next((i for i in self.items if str(i.id) == str(item_id)), None)

    def vendor_ids(self) -> set[str]:
        return {str(item.vendor_id) for item in self.items}

    def shipment_for(self, vendor_id) -> VendorShipment | None:
        return next((s for s in self.vendor_shipments if str(s.vendor_id) == str(vendor_id)), None)

    def shipment_by_tracking_ref(self, tracking_ref) -> VendorShipment | None:
        return next((s for s in self.vendor_shipments if tracking_ref and s.tracking_ref == tracking_ref), None)

    def shipment_items(self, shipment) -> list[OrderItem]:
        ids = set(shipment.order_item_ids)
        return [item for item in self.items if str(item.id) in ids]

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.COMPLETED.value

    @property
    def needs_shipment_booking(self) -> bool:
        return not self.is_digital and self.delivery_type != DeliveryType.PICKUP.value

    # -------------------------------------------------------------------
    # State transition helpers
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status):
        current = OrderStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError({"status": [f"Cannot transition from {current.value} to {target_status.value}"]})

    def _assert_can_transition_payment(self, target_status):
        current = PaymentStatus(self.payment_status)
        if target_status not in _PAYMENT_TRANSITIONS.get(current, set()):
            raise ValidationError(
                {"payment_status": [f"Cannot transition payment from {current.value} to {target_status.value}"]}
            )

    def _record_status(self, status, note=None, changed_by=None, now=None):
        self.add_status_history(
            StatusChange(
                status=status.value,
                note=note,
                changed_by=changed_by,
                changed_at=now or datetime.now(UTC),
            )
        )

    def _move_to(self, status, note=None, changed_by=None):
        self._assert_can_transition(status)
        now = datetime.now(UTC)
        self.status = status.value
        self.updated_at = now
        self._record_status(status, note, changed_by, now=now)
        return now

    # -------------------------------------------------------------------
    # Settlement
    # -------------------------------------------------------------------
    def record_payment_initiated(self, reference, redirect_url=None):
        """The gateway accepted a payment intent for this order."""
        if PaymentStatus(self.payment_status) != PaymentStatus.PENDING:
            raise ValidationError({"payment_status": ["Payment is no longer pending"]})
        self.gateway_reference = reference
        self.updated_at = datetime.now(UTC)

        self.raise_(
            PaymentInitiated(
                order_id=str(self.id),
                order_number=self.order_number,
                reference=reference,
                amount=self.total,
                redirect_url=redirect_url,
            )
        )

    def confirm_cash_on_delivery(self):
        """Cash orders are confirmed immediately and paid on delivery."""
        if self.payment_method != PaymentMethod.CASH_ON_DELIVERY.value:
            raise ValidationError({"payment_method": ["Only cash-on-delivery orders are confirmed unpaid"]})
        confirmed_at = self._move_to(OrderStatus.CONFIRMED, "Cash on delivery order confirmed")

        self.raise_(
            OrderConfirmed(order_id=str(self.id), order_number=self.order_number, confirmed_at=confirmed_at)
        )

    def mark_paid(self, reference=None):
        """Record a completed payment.

        Digital-only orders go straight to ``delivered``; everything else is
        ``confirmed``. Returns False (and changes nothing) when the payment
        was already recorded, so replays are harmless.
        """
        if self.is_paid:
            return False

        self._assert_can_transition_payment(PaymentStatus.COMPLETED)
        target = OrderStatus.DELIVERED if self.is_digital else OrderStatus.CONFIRMED
        self._assert_can_transition(target)

        with atomic_change(self):
            self.payment_status = PaymentStatus.COMPLETED.value
            if reference:
                self.gateway_reference = reference
            paid_at = self._move_to(
                target,
                "Payment completed, digital items available" if self.is_digital else "Payment completed",
            )
            self.paid_at = paid_at

        self.raise_(
            PaymentCompleted(
                order_id=str(self.id),
                order_number=self.order_number,
                payment_method=self.payment_method,
                amount=self.total,
                status=self.status,
                paid_at=paid_at,
            )
        )
        return True

    def mark_payment_failed(self, reason):
        """The gateway could not take payment. Terminal: the customer places a new order.

        A cancelled order keeps its fulfillment status; only the payment fails.
        """
        self._assert_can_transition_payment(PaymentStatus.FAILED)
        with atomic_change(self):
            self.payment_status = PaymentStatus.FAILED.value
            if OrderStatus(self.status) == OrderStatus.CANCELLED:
                failed_at = datetime.now(UTC)
                self.updated_at = failed_at
            else:
                failed_at = self._move_to(OrderStatus.FAILED, reason)

        self.raise_(
            PaymentFailed(
                order_id=str(self.id),
                order_number=self.order_number,
                reason=reason,
                failed_at=failed_at,
            )
        )

    def record_late_payment(self, reference=None):
        """Record a gateway payment captured after the customer cancelled the order.

        Fulfillment stays ``cancelled``; the caller refunds the money with ``refund``.
        """
        if OrderStatus(self.status) != OrderStatus.CANCELLED:
            raise ValidationError({"status": ["Only cancelled orders take late payments"]})
        self._assert_can_transition_payment(PaymentStatus.COMPLETED)

        paid_at = datetime.now(UTC)
        with atomic_change(self):
            self.payment_status = PaymentStatus.COMPLETED.value
            if reference:
                self.gateway_reference = reference
            self.paid_at = paid_at
            self.updated_at = paid_at

        self.raise_(
            PaymentCompleted(
                order_id=str(self.id),
                order_number=self.order_number,
                payment_method=self.payment_method,
                amount=self.total,
                status=self.status,
                paid_at=paid_at,
            )
        )

    def mark_stock_committed(self):
        self.stock_committed = True

    def mark_side_effects_applied(self):
        self.side_effects_applied = True

    # -------------------------------------------------------------------
    # Fulfillment
    # -------------------------------------------------------------------
    def advance_fulfillment(self, new_status, vendor_id, note=None):
        """Vendor-initiated forward move of the fulfillment status."""
        new_status = OrderStatus(_value(new_status))
        if str(vendor_id) not in self.vendor_ids():
            raise ValidationError({"vendor_id": ["Vendor has no items in this order"]})
        if new_status not in VENDOR_STATUSES:
            raise ValidationError({"status": [f"Vendors cannot set status {new_status.value}"]})

        previous = self.status
        self._move_to(new_status, note, changed_by=f"vendor:{vendor_id}")

        self.raise_(
            OrderStatusUpdated(
                order_id=str(self.id),
                order_number=self.order_number,
                previous_status=previous,
                new_status=new_status.value,
                vendor_id=str(vendor_id),
            )
        )

    def record_shipment_booking(self, vendor_id, tracking_ref, shipment_id=None, courier=None):
        """Attach carrier booking data to the vendor's shipment.

        Returns False when the shipment is already booked (idempotent).
        """
        shipment = self.shipment_for(vendor_id)
        if shipment is None:
            raise ValidationError({"vendor_id": ["No shipment for this vendor"]})
        if shipment.tracking_ref:
            return False
        if shipment.status == ShipmentStatus.CANCELLED.value:
            raise ValidationError({"shipment": ["Shipment was cancelled"]})

        now = datetime.now(UTC)
        shipment.tracking_ref = tracking_ref
        shipment.shipment_id = shipment_id or tracking_ref
        shipment.courier = courier or shipment.courier
        shipment.status = ShipmentStatus.CREATED.value
        shipment.booked_at = now
        self.updated_at = now

        self.raise_(
            ShipmentBooked(
                order_id=str(self.id),
                order_number=self.order_number,
                vendor_id=str(vendor_id),
                tracking_ref=tracking_ref,
                courier=shipment.courier,
            )
        )
        return True

    def record_carrier_status(self, tracking_ref, carrier_status, note=None) -> bool:
        """Apply the carrier's status for one booked parcel.

        Parcels only move forward; a stale or unknown status changes nothing.
        The order follows its slowest active parcel, so a multi-vendor order
        is ``delivered`` only once every parcel is. Returns True when the
        parcel's status changed.
        """
        shipment = self.shipment_by_tracking_ref(tracking_ref)
        if shipment is None:
            raise ValidationError({"tracking_ref": [f"Order {self.order_number} has no parcel {tracking_ref}"]})

        target = CARRIER_SHIPMENT_STATUSES.get((carrier_status or "").strip().lower())
        current = ShipmentStatus(shipment.status)
        if target is None or current == ShipmentStatus.CANCELLED:
            return False
        if target != ShipmentStatus.CANCELLED and _SHIPMENT_PROGRESS.index(target) <= _SHIPMENT_PROGRESS.index(current):
            return False

        shipment.status = target.value
        self.updated_at = datetime.now(UTC)
        self.raise_(
            ShipmentStatusChanged(
                order_id=str(self.id),
                order_number=self.order_number,
                vendor_id=str(shipment.vendor_id),
                tracking_ref=tracking_ref,
                previous_status=current.value,
                new_status=target.value,
                carrier_status=carrier_status,
            )
        )

        self._follow_parcels(note)
        return True

    def _follow_parcels(self, note=None):
        active = [s for s in self.vendor_shipments if s.status != ShipmentStatus.CANCELLED.value]
        if not active:
            return
        slowest = min(active, key=lambda s: _SHIPMENT_PROGRESS.index(ShipmentStatus(s.status)))
        target = _FULFILLMENT_FOR_SHIPMENT.get(ShipmentStatus(slowest.status))
        if target is None or target not in _VALID_TRANSITIONS[OrderStatus(self.status)]:
            return

        previous = self.status
        self._move_to(target, note or f"Carrier reported {target.value}", changed_by="carrier")
        self.raise_(
            OrderStatusUpdated(
                order_id=str(self.id),
                order_number=self.order_number,
                previous_status=previous,
                new_status=target.value,
            )
        )

    # -------------------------------------------------------------------
    # Cancellation
    # -------------------------------------------------------------------
    @property
    def is_cancellable(self) -> bool:
        return OrderStatus(self.status) in _CANCELLABLE_STATES

    def cancel(self, reason, cancelled_by=None):
        """Cancel the order and its shipments. Returns the tracking refs the carrier must cancel."""
        if not self.is_cancellable:
            raise ValidationError({"status": [f"Order cannot be cancelled once it is {self.status}"]})

        tracking_refs = []
        with atomic_change(self):
            cancelled_at = self._move_to(OrderStatus.CANCELLED, reason, changed_by=cancelled_by)
            self.cancel_reason = reason
            self.cancelled_at = cancelled_at
            for shipment in self.vendor_shipments:
                if shipment.tracking_ref:
                    tracking_refs.append(shipment.tracking_ref)
                shipment.status = ShipmentStatus.CANCELLED.value

        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                order_number=self.order_number,
                reason=reason,
                cancelled_by=cancelled_by,
                was_paid=self.is_paid,
                cancelled_at=cancelled_at,
            )
        )
        return tracking_refs

    def refund(self, reason):
        """Mark a paid, cancelled order refunded for its full total."""
        if OrderStatus(self.status) != OrderStatus.CANCELLED:
            raise ValidationError({"status": ["Only cancelled orders can be refunded"]})
        self._assert_can_transition_payment(PaymentStatus.REFUNDED)

        with atomic_change(self):
            self.payment_status = PaymentStatus.REFUNDED.value
            self.refund_amount = self.total
            self.refund_reason = reason
            self.updated_at = datetime.now(UTC)

        self.raise_(
            OrderRefunded(
                order_id=str(self.id),
                order_number=self.order_number,
                amount=self.total,
                reason=reason,
            )
        )

    # -------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------
    def to_dict(self) -> dict:
        p = self.pricing
        return {
            "id": str(self.id),
            "order_number": self.order_number,
            "customer_id": str(self.customer_id),
            "status": self.status,
            "payment_status": self.payment_status,
            "payment_method": self.payment_method,
            "delivery_type": self.delivery_type,
            "is_digital": self.is_digital,
            "gateway_reference": self.gateway_reference,
            "subtotal": p.subtotal,
            "discount": p.discount,
            "shipping_cost": p.shipping_cost,
            "tax": p.tax,
            "total": p.total,
            "currency": p.currency,
            "coupon_code": self.coupon_code,
            "refund_amount": self.refund_amount,
            "refund_reason": self.refund_reason,
            "cancel_reason": self.cancel_reason,
            "items": [
                {
                    "id": str(i.id),
                    "product_id": str(i.product_id),
                    "name": i.name,
                    "image": i.image,
                    "unit_price": i.unit_price,
                    "quantity": i.quantity,
                    "vendor_id": str(i.vendor_id),
                    "product_type": i.product_type,
                }
                for i in self.items
            ],
            "vendor_shipments": [
                {
                    "vendor_id": str(s.vendor_id),
                    "vendor_name": s.vendor_name,
                    "item_ids": s.order_item_ids,
                    "shipping_cost": s.shipping_cost,
                    "courier": s.courier,
                    "tracking_ref": s.tracking_ref,
                    "status": s.status,
                }
                for s in self.vendor_shipments
            ],
            "status_history": [
                {
                    "status": c.status,
                    "note": c.note,
                    "changed_at": c.changed_at.isoformat() if c.changed_at else None,
                }
                for c in self.status_history
            ],
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


def _value(member):
    return member.value if isinstance(member, Enum) else member


@ordering.repository(part_of=Order)
class OrderRepository:
    def find_by_order_number(self, order_number) -> Order | None:
        orders = self._dao.query.filter(order_number=order_number).all().items
        return orders[0] if orders else None

    def get_by_order_number(self, order_number) -> Order:
        order = self.find_by_order_number(order_number)
        if order is None:
            raise ObjectNotFoundError({"order_number": [f"Order {order_number} not found"]})
        return order

    def find_for_customer(self, customer_id) -> list[Order]:
        orders = self._dao.query.filter(customer_id=str(customer_id)).all().items
        return sorted(orders, key=lambda o: o.created_at, reverse=True)

    def find_by_tracking_ref(self, tracking_ref) -> Order | None:
        """Find the order whose parcel carries ``tracking_ref`` among orders still shipping."""
        statuses = [status.value for status in SHIPPING_STATUSES]
        orders = self._dao.query.filter(status__in=statuses).limit(None).all().items
        return next((o for o in orders if o.shipment_by_tracking_ref(tracking_ref) is not None), None)

    def next_order_number(self, attempts=5) -> str:
        """Generate an order number not yet used by any order."""
        for _ in range(attempts):
            candidate = generate_order_number()
            if self.find_by_order_number(candidate) is None:
                return candidate
        raise ValidationError({"order_number": ["Could not allocate a unique order number"]})
