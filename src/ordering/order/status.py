"""Vendor-initiated fulfillment status updates."""

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.order import Order, OrderStatus

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Order")
class UpdateOrderStatus:
    order_number = String(required=True, max_length=20)
    vendor_id = Identifier(required=True)
    status = String(required=True, choices=OrderStatus)
    note = String(max_length=500)


@ordering.command_handler(part_of=Order)
class UpdateOrderStatusHandler:
    @handle(UpdateOrderStatus)
    def update_status(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get_by_order_number(command.order_number)
        order.advance_fulfillment(command.status, command.vendor_id, note=command.note)
        repo.add(order)

        logger.info(
            "order_status_updated",
            order_number=order.order_number,
            vendor_id=str(command.vendor_id),
            status=order.status,
        )
        return order.to_dict()
