"""Order tracking: the order plus the carrier's view of each booked shipment."""

import structlog
from protean.utils.globals import current_domain

from ordering.carrier import get_carrier
from ordering.carrier.port import CarrierError
from ordering.order.order import Order
from ordering.order.verification import order_for_customer

logger = structlog.get_logger(__name__)


def track_order(order_number, customer_id=None) -> dict:
    """Return the order with live tracking per vendor shipment.

    A shipment without a tracking reference, or whose lookup fails, reports
    ``tracking`` as None.
    """
    order = order_for_customer(current_domain.repository_for(Order), order_number, customer_id)
    carrier = get_carrier()

    shipments = []
    for shipment in order.vendor_shipments:
        tracking = None
        if shipment.tracking_ref:
            try:
                tracking = carrier.track(shipment.tracking_ref)
            except CarrierError as exc:
                logger.warning(
                    "tracking_lookup_failed",
                    order_number=order.order_number,
                    tracking_ref=shipment.tracking_ref,
                    error=str(exc),
                )
        shipments.append(
            {
                "vendor_id": str(shipment.vendor_id),
                "vendor_name": shipment.vendor_name,
                "courier": shipment.courier,
                "tracking_ref": shipment.tracking_ref,
                "status": shipment.status,
                "tracking": tracking,
            }
        )

    return {
        "order_number": order.order_number,
        "status": order.status,
        "payment_status": order.payment_status,
        "shipments": shipments,
        "status_history": order.to_dict()["status_history"],
    }
