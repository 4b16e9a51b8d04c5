"""Checkout service — request-level orchestration over the Ordering domain.

Each function is one request (customer, vendor or carrier). Commands run
synchronously; steps that depend on an earlier step run only after that
step has committed. Anything that writes a wallet holds the customer's
wallet lock, and anything that writes an existing order holds that order's
lock, for the whole unit of work. Outbox tasks are drained once the
outcome of the request is settled, so a failed reward or booking never
changes it.
"""

import structlog
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from ordering.carrier import get_carrier
from ordering.carrier.port import CarrierError
from ordering.cart.cart import ShoppingCart
from ordering.catalogue import get_catalogue
from ordering.order.cancellation import CancelOrder
from ordering.order.carrier_status import RecordCarrierStatus
from ordering.order.order import Order, ShipmentStatus
from ordering.order.placement import PlaceOrder
from ordering.order.status import UpdateOrderStatus
from ordering.order.verification import VerifyPayment, order_for_customer
from ordering.partitioning.partitioner import partition, resolve_lines
from ordering.rates.aggregator import DeliveryQuote, Destination, RateAggregator
from ordering.settlement.gateway_payment import InitiateGatewayPayment
from ordering.shared.locks import order_key, settlement_locks, wallet_key
from ordering.tasks.runner import run_pending_tasks
from ordering.utils.logging import bind_order_context

logger = structlog.get_logger(__name__)


def _given(**kwargs) -> dict:
    """Drop unset arguments so command field defaults apply."""
    return {key: value for key, value in kwargs.items() if value is not None}


def quote_delivery(customer_id, destination: Destination, email=None) -> DeliveryQuote:
    """Price the customer's current cart for every delivery option."""
    cart = current_domain.repository_for(ShoppingCart).find_for_customer(customer_id)
    if cart is None or cart.is_empty:
        raise ValidationError({"cart": ["Cart is empty"]})

    catalogue = get_catalogue()
    lines = resolve_lines(cart.items, catalogue, require_active=False)
    return RateAggregator(get_carrier()).quote(partition(lines, catalogue), destination, email)


def checkout(customer_id, payment_method, delivery_type="standard", shipping_address=None, email=None) -> dict:
    """Place an order from the cart and settle it with ``payment_method``.

    Gateway orders come back with a redirect payload and stay pending until
    ``verify_payment``; their cart is emptied only once the gateway accepted
    the payment intent. Wallet and cash-on-delivery orders are settled
    before this returns.
    """
    with settlement_locks.hold(wallet_key(customer_id)):
        placed = current_domain.process(
            PlaceOrder(
                **_given(
                    customer_id=customer_id,
                    customer_email=email,
                    payment_method=payment_method,
                    delivery_type=delivery_type,
                    shipping_address=shipping_address,
                )
            ),
            asynchronous=False,
        )

    bind_order_context(placed["order_number"])
    payment = None
    if placed["requires_redirect"]:
        with settlement_locks.hold(order_key(placed["order_number"])):
            payment = current_domain.process(
                InitiateGatewayPayment(order_number=placed["order_number"], email=email),
                asynchronous=False,
            )
        if not payment.pop("initialized"):
            raise ValidationError({"payment": ["Failed to initialize payment"]})
    else:
        run_pending_tasks(placed["order_id"])

    order = current_domain.repository_for(Order).get_by_order_number(placed["order_number"])
    return {
        "order": order.to_dict(),
        "payment": payment,
        "vendor_count": placed["vendor_count"],
        "multi_vendor": placed["multi_vendor"],
    }


def verify_payment(order_number, customer_id=None) -> dict:
    """Confirm a gateway payment. Verifying a paid order again returns it unchanged."""
    bind_order_context(order_number)
    order = order_for_customer(current_domain.repository_for(Order), order_number, customer_id)
    with settlement_locks.hold(order_key(order_number), wallet_key(order.customer_id)):
        result = current_domain.process(
            VerifyPayment(**_given(order_number=order_number, customer_id=customer_id)),
            asynchronous=False,
        )
    if not result["verified"]:
        raise ValidationError({"payment": [f"Payment verification failed: {result['reason']}"]})

    order = current_domain.repository_for(Order).get_by_order_number(order_number)
    if not result["replayed"]:
        run_pending_tasks(order.id)
        order = current_domain.repository_for(Order).get_by_order_number(order_number)
    return order.to_dict()


def cancel_order(order_number, customer_id=None, reason=None, cancelled_by=None) -> dict:
    bind_order_context(order_number)
    order = order_for_customer(current_domain.repository_for(Order), order_number, customer_id)
    with settlement_locks.hold(order_key(order_number), wallet_key(order.customer_id)):
        return current_domain.process(
            CancelOrder(
                **_given(
                    order_number=order_number,
                    customer_id=customer_id,
                    reason=reason,
                    cancelled_by=cancelled_by,
                )
            ),
            asynchronous=False,
        )


def update_order_status(order_number, vendor_id, status, note=None) -> dict:
    bind_order_context(order_number, vendor_id=str(vendor_id))
    with settlement_locks.hold(order_key(order_number)):
        return current_domain.process(
            UpdateOrderStatus(**_given(order_number=order_number, vendor_id=vendor_id, status=status, note=note)),
            asynchronous=False,
        )


def record_carrier_status(tracking_ref, status, note=None) -> dict:
    """Apply a status the carrier pushed for one parcel.

    A tracking reference that matches no order still being shipped is
    acknowledged and ignored, so the carrier does not keep retrying it.
    """
    order = current_domain.repository_for(Order).find_by_tracking_ref(tracking_ref)
    if order is None:
        logger.warning("carrier_status_unmatched", tracking_ref=tracking_ref, carrier_status=status)
        return {"applied": False, "order_number": None, "status": None}

    bind_order_context(order.order_number)
    with settlement_locks.hold(order_key(order.order_number)):
        return current_domain.process(
            RecordCarrierStatus(
                **_given(order_number=order.order_number, tracking_ref=tracking_ref, status=status, note=note)
            ),
            asynchronous=False,
        )


def refresh_order_status(order_number, customer_id=None) -> dict:
    """Pull the carrier's status for every booked parcel and apply it.

    A parcel whose lookup fails keeps its current status.
    """
    bind_order_context(order_number)
    order = order_for_customer(current_domain.repository_for(Order), order_number, customer_id)
    carrier = get_carrier()

    for shipment in order.vendor_shipments:
        if not shipment.tracking_ref or shipment.status == ShipmentStatus.CANCELLED.value:
            continue
        try:
            tracking = carrier.track(shipment.tracking_ref)
        except CarrierError as exc:
            logger.warning("tracking_refresh_failed", tracking_ref=shipment.tracking_ref, error=str(exc))
            continue
        if not tracking.get("status"):
            continue

        with settlement_locks.hold(order_key(order_number)):
            current_domain.process(
                RecordCarrierStatus(
                    order_number=order_number,
                    tracking_ref=shipment.tracking_ref,
                    status=tracking["status"],
                ),
                asynchronous=False,
            )

    return current_domain.repository_for(Order).get_by_order_number(order_number).to_dict()


def process_for_wallet(customer_id, command):
    """Run a wallet command while holding the customer's wallet lock."""
    with settlement_locks.hold(wallet_key(customer_id)):
        return current_domain.process(command, asynchronous=False)
