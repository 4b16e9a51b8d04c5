"""Settlement strategies, one per payment method.

The strategy is chosen when the order is placed and never changes. Every
strategy runs inside the placement unit of work, after the order has been
built but before it is saved:

- ``GatewayRedirect`` leaves the order pending; the redirect is created by
  ``InitiateGatewayPayment`` once the order is committed.
- ``WalletDebit`` debits the wallet and records the payment in one go.
- ``CashOnDelivery`` confirms the order unpaid and commits its stock.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

import structlog
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from ordering.order.order import PaymentMethod
from ordering.order.side_effects import apply_side_effects, commit_inventory
from ordering.wallet.wallet import TransactionPurpose, Wallet

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class SettlementOutcome:
    requires_redirect: bool = False
    paid: bool = False


class SettlementStrategy(ABC):
    method: PaymentMethod

    def check_cart(self, lines) -> None:
        """Reject a cart this method cannot pay for. Default: accept."""

    def check_funds(self, customer_id, total) -> None:
        """Reject a priced checkout the customer cannot cover. Default: accept."""

    @abstractmethod
    def settle(self, order) -> SettlementOutcome: ...


class GatewayRedirect(SettlementStrategy):
    method = PaymentMethod.GATEWAY

    def settle(self, order) -> SettlementOutcome:
        return SettlementOutcome(requires_redirect=True)


class WalletDebit(SettlementStrategy):
    method = PaymentMethod.WALLET

    def check_funds(self, customer_id, total) -> None:
        wallet = current_domain.repository_for(Wallet).find_for_customer(customer_id)
        if wallet is None or wallet.balance + 0.005 < total:
            raise ValidationError({"balance": ["Insufficient wallet balance"]})

    def settle(self, order) -> SettlementOutcome:
        repo = current_domain.repository_for(Wallet)
        wallet = repo.get_or_open(order.customer_id)
        wallet.debit(
            order.total,
            TransactionPurpose.PURCHASE,
            reference=order.order_number,
            order_id=order.id,
            description=f"Payment for order {order.order_number}",
        )
        repo.add(wallet)

        order.mark_paid(reference=order.order_number)
        apply_side_effects(order)
        logger.info("order_paid_from_wallet", order_number=order.order_number, amount=order.total)
        return SettlementOutcome(paid=True)


class CashOnDelivery(SettlementStrategy):
    method = PaymentMethod.CASH_ON_DELIVERY

    def check_cart(self, lines) -> None:
        if any(not line.is_physical for line in lines):
            raise ValidationError(
                {"payment_method": ["Cash on delivery is not available for digital products"]}
            )

    def settle(self, order) -> SettlementOutcome:
        order.confirm_cash_on_delivery()
        commit_inventory(order)
        logger.info("cash_on_delivery_confirmed", order_number=order.order_number)
        return SettlementOutcome()


_STRATEGIES = {
    PaymentMethod.GATEWAY: GatewayRedirect,
    PaymentMethod.WALLET: WalletDebit,
    PaymentMethod.CASH_ON_DELIVERY: CashOnDelivery,
}


def strategy_for(payment_method) -> SettlementStrategy:
    try:
        method = PaymentMethod(payment_method.value if isinstance(payment_method, PaymentMethod) else payment_method)
    except ValueError as exc:
        raise ValidationError({"payment_method": [f"Unsupported payment method {payment_method}"]}) from exc
    return _STRATEGIES[method]()
