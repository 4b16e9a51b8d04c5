"""Carrier status updates — parcel progress reported by the carrier.

The carrier either pushes a status for a tracking reference (webhook) or
the order's tracking is refreshed on request. Both arrive here as
``RecordCarrierStatus``; the order moves forward only as far as its
slowest parcel, and a stale or repeated status changes nothing.
"""

import structlog
from protean import handle
from protean.fields import String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.order import Order

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Order")
class RecordCarrierStatus:
    order_number = String(required=True, max_length=20)
    tracking_ref = String(required=True, max_length=255)
    status = String(required=True, max_length=50)
    note = String(max_length=500)


@ordering.command_handler(part_of=Order)
class CarrierStatusHandler:
    @handle(RecordCarrierStatus)
    def record_carrier_status(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get_by_order_number(command.order_number)

        previous = order.status
        applied = order.record_carrier_status(command.tracking_ref, command.status, note=command.note)
        if applied:
            repo.add(order)
            logger.info(
                "carrier_status_recorded",
                order_number=order.order_number,
                tracking_ref=command.tracking_ref,
                carrier_status=command.status,
                previous_status=previous,
                status=order.status,
            )
        else:
            logger.debug(
                "carrier_status_ignored",
                order_number=order.order_number,
                tracking_ref=command.tracking_ref,
                carrier_status=command.status,
            )
        return {"applied": applied, "order_number": order.order_number, "status": order.status}
