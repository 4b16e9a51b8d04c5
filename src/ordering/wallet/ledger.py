"""Wallet ledger commands — credits, withdrawals and admin resolution.

Handlers load or open the customer's wallet, apply one ledger operation and
persist it. Callers serialize writers per wallet with
``ordering.shared.locks.settlement_locks`` around ``current_domain.process``.
"""

import json

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Float, Identifier, String, Text
from protean.utils.globals import current_domain

from ordering import settings
from ordering.domain import ordering
from ordering.shared.numbers import generate_order_number
from ordering.wallet.wallet import TransactionPurpose, Wallet

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Wallet")
class CreditWallet:
    """Add funds to a customer's wallet (refunds, rewards, cashback)."""

    customer_id = Identifier(required=True)
    amount = Float(required=True, min_value=0.01)
    purpose = String(required=True, choices=TransactionPurpose)
    reference = String(required=True, max_length=100)
    order_id = Identifier()
    description = String(max_length=255)


@ordering.command(part_of="Wallet")
class RequestWithdrawal:
    customer_id = Identifier(required=True)
    amount = Float(required=True)
    bank_details = Text()  # JSON: {"account_number", "bank_code", "account_name"}


@ordering.command(part_of="Wallet")
class ResolveWithdrawal:
    """Admin decision on a pending withdrawal."""

    customer_id = Identifier(required=True)
    transaction_id = Identifier(required=True)
    status = String(required=True, max_length=20)  # "completed" | "failed"


@ordering.command_handler(part_of=Wallet)
class WalletLedgerHandler:
    @handle(CreditWallet)
    def credit_wallet(self, command):
        repo = current_domain.repository_for(Wallet)
        wallet = repo.get_or_open(command.customer_id)
        txn = wallet.credit(
            amount=command.amount,
            purpose=command.purpose,
            reference=command.reference,
            order_id=command.order_id,
            description=command.description,
        )
        repo.add(wallet)
        return str(txn.id)

    @handle(RequestWithdrawal)
    def request_withdrawal(self, command):
        if command.amount < settings.MIN_WITHDRAWAL_AMOUNT:
            raise ValidationError({"amount": [f"Minimum withdrawal amount is {settings.MIN_WITHDRAWAL_AMOUNT:,.0f}"]})

        repo = current_domain.repository_for(Wallet)
        wallet = repo.find_for_customer(command.customer_id)
        if wallet is None:
            raise ValidationError({"balance": ["Insufficient wallet balance"]})

        bank_details = json.loads(command.bank_details) if command.bank_details else None
        txn = wallet.reserve_for_withdrawal(
            amount=command.amount,
            reference=f"WD-{generate_order_number()}",
            bank_details=bank_details,
        )
        repo.add(wallet)

        logger.info("withdrawal_requested", customer_id=str(command.customer_id), amount=command.amount)
        return str(txn.id)

    @handle(ResolveWithdrawal)
    def resolve_withdrawal(self, command):
        repo = current_domain.repository_for(Wallet)
        wallet = repo.find_for_customer(command.customer_id)
        if wallet is None:
            raise ValidationError({"customer_id": ["Wallet not found"]})

        txn = wallet.resolve_withdrawal(command.transaction_id, command.status)
        repo.add(wallet)

        logger.info(
            "withdrawal_resolved",
            customer_id=str(command.customer_id),
            transaction_id=str(command.transaction_id),
            outcome=txn.status,
        )
        return str(txn.id)
