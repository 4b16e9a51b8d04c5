"""Order cancellation.

Only orders that are still ``pending`` or ``confirmed`` can be cancelled.
Cancelling restocks committed inventory, revokes the order's licenses,
asks the carrier to cancel any booked shipment and, when the order was
paid, refunds the full total to the customer's wallet. Carrier
cancellation is best-effort: a failure is logged and never blocks the
refund.
"""

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from ordering.carrier import get_carrier
from ordering.carrier.port import CarrierError
from ordering.domain import ordering
from ordering.order.order import Order
from ordering.order.side_effects import refund_to_wallet, release_inventory, revoke_licenses
from ordering.order.verification import order_for_customer

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Order")
class CancelOrder:
    order_number = String(required=True, max_length=20)
    customer_id = Identifier()
    reason = String(max_length=500, default="Cancelled by customer")
    cancelled_by = String(max_length=100)


def _cancel_with_carrier(order_number, tracking_refs):
    carrier = get_carrier()
    for tracking_ref in tracking_refs:
        try:
            carrier.cancel(tracking_ref)
        except CarrierError as exc:
            logger.warning(
                "carrier_cancellation_failed",
                order_number=order_number,
                tracking_ref=tracking_ref,
                error=str(exc),
            )


@ordering.command_handler(part_of=Order)
class CancelOrderHandler:
    @handle(CancelOrder)
    def cancel_order(self, command):
        repo = current_domain.repository_for(Order)
        order = order_for_customer(repo, command.order_number, command.customer_id)

        reason = command.reason or "Cancelled by customer"
        tracking_refs = order.cancel(reason, cancelled_by=command.cancelled_by or str(command.customer_id or ""))

        _cancel_with_carrier(order.order_number, tracking_refs)
        release_inventory(order)
        revoke_licenses(order)

        if order.is_paid:
            refund_to_wallet(order, reason)

        repo.add(order)
        logger.info(
            "order_cancelled",
            order_number=order.order_number,
            refunded=order.refund_amount or 0.0,
            carrier_cancellations=len(tracking_refs),
        )
        return order.to_dict()
