"""Gateway payment initiation for a committed order.

Runs in its own unit of work after the placement has committed, so the
order exists before any money is requested. A gateway failure is recorded
on the order (``failed/failed``) and reported back to the caller, and the
cart keeps its items so the customer can try again. A successful intent
empties the cart in the same unit of work.
"""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import String
from protean.utils.globals import current_domain

from ordering import settings
from ordering.cart.cart import ShoppingCart
from ordering.domain import ordering
from ordering.gateway import get_gateway
from ordering.gateway.port import GatewayError
from ordering.order.order import Order, PaymentMethod
from ordering.shared.money import to_minor_units

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Order")
class InitiateGatewayPayment:
    order_number = String(required=True, max_length=20)
    email = String(required=True, max_length=254)


@ordering.command_handler(part_of=Order)
class GatewayPaymentHandler:
    @handle(InitiateGatewayPayment)
    def initiate_payment(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get_by_order_number(command.order_number)
        if order.payment_method != PaymentMethod.GATEWAY.value:
            raise ValidationError({"payment_method": ["Order is not paid through the gateway"]})

        try:
            intent = get_gateway().initialize(
                email=command.email,
                amount_minor_units=to_minor_units(order.total),
                reference=order.order_number,
                callback_url=f"{settings.FRONTEND_URL}/orders/{order.order_number}/payment-callback",
                metadata={
                    "order_id": str(order.id),
                    "order_number": order.order_number,
                    "customer_id": str(order.customer_id),
                    "is_digital": order.is_digital,
                },
            )
        except GatewayError as exc:
            logger.error("payment_initialization_failed", order_number=order.order_number, error=str(exc))
            order.mark_payment_failed("Failed to initialize payment")
            repo.add(order)
            return {"initialized": False, "reason": str(exc)}

        order.record_payment_initiated(intent.reference, intent.redirect_url)
        repo.add(order)

        cart_repo = current_domain.repository_for(ShoppingCart)
        cart = cart_repo.find_for_customer(order.customer_id)
        if cart is not None:
            cart.clear(order_number=order.order_number)
            cart_repo.add(cart)
        return {
            "initialized": True,
            "redirect_url": intent.redirect_url,
            "access_code": intent.access_code,
            "reference": intent.reference,
        }
