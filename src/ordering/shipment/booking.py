"""Shipment Booking Saga — book a courier for one vendor's parcel.

Runs as a ``book_shipment`` task after the order is paid. Each vendor is
booked independently: a failure raises ``CarrierError`` (or a
``ValidationError``) for the task runner to record, and the vendor's
shipment stays ``pending`` while its siblings proceed.
"""

import structlog
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from ordering.carrier import get_carrier
from ordering.carrier.port import CarrierError, ParcelItem, RateResponse, eta_days
from ordering.catalogue import get_catalogue
from ordering.order.order import DeliveryType, Order, ShipmentStatus
from ordering.rates.aggregator import Destination, sender_contact

logger = structlog.get_logger(__name__)

_FASTEST_FIRST = {DeliveryType.EXPRESS.value, DeliveryType.SAME_DAY.value}


def select_courier(response: RateResponse, delivery_type: str):
    """Fastest courier for express and same-day orders, cheapest otherwise."""
    if not response.couriers:
        raise CarrierError("No couriers available for this route")

    if delivery_type in _FASTEST_FIRST:
        return response.fastest or min(response.couriers, key=lambda c: eta_days(c.eta))
    return response.cheapest or min(response.couriers, key=lambda c: c.amount)


def _destination(order) -> Destination:
    address = order.shipping_address
    if address is None or not address.city or not address.state:
        raise ValidationError({"shipping_address": ["Order has no deliverable shipping address"]})
    return Destination(
        street=address.street,
        city=address.city,
        state=address.state,
        full_name=address.full_name,
        phone=address.phone,
        country=address.country or "Nigeria",
    )


def _parcel(order, shipment) -> list[ParcelItem]:
    catalogue = get_catalogue()
    parcel = []
    for item in order.shipment_items(shipment):
        product = catalogue.get_product(str(item.product_id))
        parcel.append(
            ParcelItem(
                name=item.name,
                description=item.name,
                unit_weight=(product.weight if product else None) or 1.0,
                unit_amount=item.unit_price,
                quantity=item.quantity,
            )
        )
    return parcel


def book_vendor_shipment(payload: dict) -> str | None:
    """Book the courier for ``payload["vendor_id"]``'s shipment on ``payload["order_number"]``.

    Returns the tracking reference, or None when there is nothing to book.
    Re-running for a shipment that already has a tracking reference is a no-op.
    """
    order_number = payload["order_number"]
    vendor_id = payload["vendor_id"]

    repo = current_domain.repository_for(Order)
    order = repo.get_by_order_number(order_number)
    shipment = order.shipment_for(vendor_id)
    if shipment is None:
        raise ValidationError({"vendor_id": [f"Order {order_number} has no shipment for vendor {vendor_id}"]})

    if shipment.tracking_ref:
        logger.info("shipment_already_booked", order_number=order_number, vendor_id=vendor_id)
        return shipment.tracking_ref
    if shipment.status == ShipmentStatus.CANCELLED.value:
        logger.info("shipment_cancelled_skipping_booking", order_number=order_number, vendor_id=vendor_id)
        return None
    if not order.is_paid:
        raise ValidationError({"payment_status": ["Shipments are booked only for paid orders"]})

    profile = get_catalogue().get_vendor_profile(vendor_id)
    if profile is None or not profile.has_valid_address:
        raise CarrierError(f"Vendor {vendor_id} has no valid origin address")

    carrier = get_carrier()
    sender_code = carrier.validate_address(sender_contact(shipment.vendor_name or profile.business_name, profile))
    receiver_code = carrier.validate_address(_destination(order).contact(order.customer_email))

    response = carrier.fetch_rates(sender_code, receiver_code, _parcel(order, shipment))
    courier = select_courier(response, order.delivery_type)
    booking = carrier.book(response.request_token, courier.courier_id, courier.service_code)

    order.record_shipment_booking(
        vendor_id,
        tracking_ref=booking.tracking_ref,
        shipment_id=booking.shipment_id,
        courier=booking.courier_name or courier.courier_name,
    )
    repo.add(order)

    logger.info(
        "shipment_booked",
        order_number=order_number,
        vendor_id=vendor_id,
        courier=courier.courier_name,
        tracking_ref=booking.tracking_ref,
    )
    return booking.tracking_ref
