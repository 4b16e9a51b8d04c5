"""Gateway payment verification.

Verification is idempotent: an order whose payment is already completed is
returned unchanged, so a replayed callback never repeats stock decrements
or reward awards. A payment that arrives for an order the customer already
cancelled is refunded to the wallet at once.

Callers hold the order lock (and the customer's wallet lock) around the
command, so two callbacks for one order never settle it twice.
"""

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.gateway import get_gateway
from ordering.gateway.port import GatewayError
from ordering.order.order import Order, OrderStatus, PaymentMethod, PaymentStatus
from ordering.order.side_effects import apply_side_effects, refund_to_wallet
from ordering.shared.money import to_minor_units

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Order")
class VerifyPayment:
    order_number = String(required=True, max_length=20)
    customer_id = Identifier()


def order_for_customer(repo, order_number, customer_id=None) -> Order:
    """Load an order, hiding orders that belong to someone else."""
    order = repo.get_by_order_number(order_number)
    if customer_id is not None and str(order.customer_id) != str(customer_id):
        raise ObjectNotFoundError({"order_number": [f"Order {order_number} not found"]})
    return order


@ordering.command_handler(part_of=Order)
class VerifyPaymentHandler:
    @handle(VerifyPayment)
    def verify_payment(self, command):
        repo = current_domain.repository_for(Order)
        order = order_for_customer(repo, command.order_number, command.customer_id)

        if order.is_paid:
            logger.info("payment_already_verified", order_number=order.order_number)
            return {"verified": True, "replayed": True}
        if order.payment_method != PaymentMethod.GATEWAY.value:
            raise ValidationError({"payment_method": ["Only gateway payments are verified"]})
        if order.payment_status == PaymentStatus.REFUNDED.value:
            logger.info("payment_already_refunded", order_number=order.order_number)
            return {"verified": True, "replayed": True}
        if order.payment_status != PaymentStatus.PENDING.value:
            raise ValidationError({"payment_status": [f"Payment is {order.payment_status}"]})

        reference = order.gateway_reference or order.order_number
        try:
            verification = get_gateway().verify(reference)
        except GatewayError as exc:
            logger.error("payment_verification_unavailable", order_number=order.order_number, error=str(exc))
            raise ValidationError({"payment": ["Failed to verify payment"]}) from exc

        if not verification.succeeded:
            reason = verification.gateway_response or "Payment was not successful"
            order.mark_payment_failed(reason)
            repo.add(order)
            logger.warning("payment_verification_failed", order_number=order.order_number, reason=reason)
            return {"verified": False, "reason": reason}

        if verification.amount_minor_units < to_minor_units(order.total):
            reason = "Paid amount is less than the order total"
            order.mark_payment_failed(reason)
            repo.add(order)
            logger.error(
                "payment_amount_mismatch",
                order_number=order.order_number,
                paid=verification.amount_minor_units,
                expected=to_minor_units(order.total),
            )
            return {"verified": False, "reason": reason}

        if order.status == OrderStatus.CANCELLED.value:
            order.record_late_payment(reference=reference)
            refund_to_wallet(order, "Payment received after the order was cancelled")
            repo.add(order)
            logger.warning("late_payment_refunded", order_number=order.order_number, amount=order.total)
            return {"verified": True, "replayed": False}

        order.mark_paid(reference=reference)
        apply_side_effects(order)
        repo.add(order)

        logger.info("payment_verified", order_number=order.order_number, status=order.status)
        return {"verified": True, "replayed": False}
