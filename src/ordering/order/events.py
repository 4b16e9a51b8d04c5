"""Domain events for the Order aggregate.

All events are versioned, immutable facts representing state changes.
They are raised by the aggregate and dispatched when its unit of work
commits.
"""

from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String, Text

from ordering.domain import ordering


@ordering.event(part_of="Order")
class OrderPlaced:
    """A validated, priced cart was committed as an order."""

    order_id = Identifier(required=True)
    order_number = String(required=True)
    customer_id = Identifier(required=True)
    payment_method = String(required=True)
    delivery_type = String(required=True)
    subtotal = Float(required=True)
    discount = Float()
    shipping_cost = Float()
    tax = Float()
    total = Float(required=True)
    is_digital = Boolean(default=False)
    vendor_count = Integer()
    placed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class PaymentInitiated:
    """The payment gateway accepted a payment intent for the order."""

    order_id = Identifier(required=True)
    order_number = String(required=True)
    reference = String(required=True)
    amount = Float(required=True)
    redirect_url = String(max_length=1000)


@ordering.event(part_of="Order")
class PaymentCompleted:
    order_id = Identifier(required=True)
    order_number = String(required=True)
    payment_method = String(required=True)
    amount = Float(required=True)
    status = String(required=True)
    paid_at = DateTime(required=True)


@ordering.event(part_of="Order")
class PaymentFailed:
    order_id = Identifier(required=True)
    order_number = String(required=True)
    reason = Text()
    failed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderConfirmed:
    """A cash-on-delivery order was confirmed without payment."""

    order_id = Identifier(required=True)
    order_number = String(required=True)
    confirmed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderStatusUpdated:
    """A vendor moved the fulfillment status forward."""

    order_id = Identifier(required=True)
    order_number = String(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    vendor_id = Identifier()


@ordering.event(part_of="Order")
class ShipmentBooked:
    order_id = Identifier(required=True)
    order_number = String(required=True)
    vendor_id = Identifier(required=True)
    tracking_ref = String(required=True)
    courier = String()


@ordering.event(part_of="Order")
class ShipmentStatusChanged:
    """The carrier reported progress on one vendor's parcel."""

    order_id = Identifier(required=True)
    order_number = String(required=True)
    vendor_id = Identifier(required=True)
    tracking_ref = String(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    carrier_status = String()


@ordering.event(part_of="Order")
class OrderCancelled:
    order_id = Identifier(required=True)
    order_number = String(required=True)
    reason = Text()
    cancelled_by = String()
    was_paid = Boolean(default=False)
    cancelled_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderRefunded:
    """The full order total was credited back to the customer's wallet."""

    order_id = Identifier(required=True)
    order_number = String(required=True)
    amount = Float(required=True)
    reason = Text()
