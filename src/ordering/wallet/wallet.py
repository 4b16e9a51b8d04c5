"""Wallet aggregate — a customer's spendable balance and its transaction ledger.

The wallet is the only place a balance changes. Every movement appends a
``WalletTransaction`` and adjusts the running counters in the same method
call, so the two are persisted together by one repository ``add``.

Ledger identity, checked after every mutation::

    balance + pending_balance
        == completed credits
         - completed non-withdrawal debits
         - completed withdrawals

Transactions are never removed or re-priced; only a pending withdrawal's
``status`` moves, exactly once, to ``completed`` or ``failed``. A
transaction ``reference`` is unique within a wallet, which makes every
credit and debit idempotent under retries.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, String, Text

from ordering.domain import ordering
from ordering.shared.money import round_money
from ordering.wallet.events import WalletCredited, WalletDebited, WithdrawalRequested, WithdrawalResolved

_TOLERANCE = 0.005


class TransactionType(Enum):
    CREDIT = "credit"
    DEBIT = "debit"


class TransactionPurpose(Enum):
    PURCHASE = "purchase"
    REFUND = "refund"
    WITHDRAWAL = "withdrawal"
    COMMISSION = "commission"
    REWARD = "reward"
    CASHBACK = "cashback"
    TOP_UP = "top_up"


class TransactionStatus(Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


@ordering.entity(part_of="Wallet")
class WalletTransaction:
    type = String(required=True, choices=TransactionType)
    amount = Float(required=True, min_value=0.0)
    purpose = String(required=True, choices=TransactionPurpose)
    reference = String(required=True, max_length=100)
    order_id = Identifier()
    description = String(max_length=255)
    status = String(choices=TransactionStatus, default=TransactionStatus.COMPLETED.value)
    metadata = Text()  # JSON, e.g. bank details for withdrawals
    created_at = DateTime()
    resolved_at = DateTime()

    @property
    def is_withdrawal(self) -> bool:
        return self.purpose == TransactionPurpose.WITHDRAWAL.value

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "type": self.type,
            "amount": self.amount,
            "purpose": self.purpose,
            "reference": self.reference,
            "order_id": str(self.order_id) if self.order_id else None,
            "description": self.description,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@ordering.aggregate
class Wallet:
    customer_id = Identifier(required=True, unique=True)
    balance = Float(default=0.0)
    total_earned = Float(default=0.0)
    total_spent = Float(default=0.0)
    total_withdrawn = Float(default=0.0)
    pending_balance = Float(default=0.0)
    transactions = HasMany(WalletTransaction)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def balances_cannot_be_negative(self):
        if (self.balance or 0.0) < -_TOLERANCE or (self.pending_balance or 0.0) < -_TOLERANCE:
            raise ValidationError({"balance": ["Wallet balance cannot be negative"]})

    @invariant.post
    def balance_must_match_ledger(self):
        expected = self.ledger_net()
        actual = (self.balance or 0.0) + (self.pending_balance or 0.0)
        if abs(expected - actual) > _TOLERANCE:
            raise ValidationError({"balance": ["Wallet balance does not match its transaction ledger"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def open(cls, customer_id):
        now = datetime.now(UTC)
        return cls(
            customer_id=customer_id,
            balance=0.0,
            total_earned=0.0,
            total_spent=0.0,
            total_withdrawn=0.0,
            pending_balance=0.0,
            created_at=now,
            updated_at=now,
        )

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def ledger_net(self) -> float:
        """Completed credits minus completed debits, where a withdrawal only counts once it completes."""
        net = 0.0
        for txn in self.transactions:
            if txn.status != TransactionStatus.COMPLETED.value:
                continue
            if txn.type == TransactionType.CREDIT.value:
                net += txn.amount
            else:
                net -= txn.amount
        return round_money(net)

    def transaction_by_reference(self, reference) -> WalletTransaction | None:
        return next((t for t in self.transactions if t.reference == reference), None)

    def has_reference(self, reference) -> bool:
        return self.transaction_by_reference(reference) is not None

    def history(self) -> list[WalletTransaction]:
        """Transactions newest first."""
        return sorted(
            self.transactions,
            key=lambda t: t.created_at or datetime.min.replace(tzinfo=UTC),
            reverse=True,
        )

    def summary(self, recent: int = 10) -> dict:
        return {
            "balance": round_money(self.balance),
            "total_earned": round_money(self.total_earned),
            "total_spent": round_money(self.total_spent),
            "total_withdrawn": round_money(self.total_withdrawn),
            "pending_balance": round_money(self.pending_balance),
            "recent_transactions": [t.to_dict() for t in self.history()[:recent]],
        }

    # -------------------------------------------------------------------
    # Ledger operations
    # -------------------------------------------------------------------
    def credit(self, amount, purpose, reference, order_id=None, description=None):
        """Add funds. Replaying a reference already on the ledger returns the original transaction."""
        existing = self.transaction_by_reference(reference)
        if existing is not None:
            return existing

        amount = self._positive(amount)
        with atomic_change(self):
            txn = self._append(TransactionType.CREDIT, amount, purpose, reference, order_id, description)
            self.balance = round_money(self.balance + amount)
            self.total_earned = round_money(self.total_earned + amount)

        self.raise_(
            WalletCredited(
                wallet_id=str(self.id),
                customer_id=str(self.customer_id),
                amount=amount,
                purpose=_value(purpose),
                reference=reference,
                order_id=str(order_id) if order_id else None,
                balance=self.balance,
            )
        )
        return txn

    def debit(self, amount, purpose, reference, order_id=None, description=None):
        """Spend funds. Fails without side effects when the balance is short."""
        existing = self.transaction_by_reference(reference)
        if existing is not None:
            return existing

        amount = self._positive(amount)
        if self.balance + _TOLERANCE < amount:
            raise ValidationError({"balance": ["Insufficient wallet balance"]})

        with atomic_change(self):
            txn = self._append(TransactionType.DEBIT, amount, purpose, reference, order_id, description)
            self.balance = round_money(self.balance - amount)
            self.total_spent = round_money(self.total_spent + amount)

        self.raise_(
            WalletDebited(
                wallet_id=str(self.id),
                customer_id=str(self.customer_id),
                amount=amount,
                purpose=_value(purpose),
                reference=reference,
                order_id=str(order_id) if order_id else None,
                balance=self.balance,
            )
        )
        return txn

    def reserve_for_withdrawal(self, amount, reference, bank_details=None):
        """Move funds from the spendable balance into ``pending_balance`` until an admin resolves the payout."""
        amount = self._positive(amount)
        if self.has_reference(reference):
            raise ValidationError({"reference": ["Duplicate withdrawal reference"]})
        if self.balance + _TOLERANCE < amount:
            raise ValidationError({"balance": ["Insufficient wallet balance"]})

        with atomic_change(self):
            txn = self._append(
                TransactionType.DEBIT,
                amount,
                TransactionPurpose.WITHDRAWAL,
                reference,
                description="Withdrawal request",
                status=TransactionStatus.PENDING,
                metadata=bank_details,
            )
            self.balance = round_money(self.balance - amount)
            self.pending_balance = round_money(self.pending_balance + amount)

        self.raise_(
            WithdrawalRequested(
                wallet_id=str(self.id),
                customer_id=str(self.customer_id),
                transaction_id=str(txn.id),
                amount=amount,
                reference=reference,
            )
        )
        return txn

    def resolve_withdrawal(self, transaction_id, outcome):
        """Settle a pending withdrawal as ``completed`` or ``failed`` (which restores the balance)."""
        txn = next((t for t in self.transactions if str(t.id) == str(transaction_id)), None)
        if txn is None or not txn.is_withdrawal:
            raise ValidationError({"transaction_id": ["Withdrawal not found"]})
        if txn.status != TransactionStatus.PENDING.value:
            raise ValidationError({"status": ["Transaction already processed"]})

        if _value(outcome) not in (TransactionStatus.COMPLETED.value, TransactionStatus.FAILED.value):
            raise ValidationError({"status": ["Withdrawal can only be resolved as completed or failed"]})
        outcome = TransactionStatus(_value(outcome))

        now = datetime.now(UTC)
        with atomic_change(self):
            self.pending_balance = round_money(self.pending_balance - txn.amount)
            if outcome == TransactionStatus.COMPLETED:
                self.total_withdrawn = round_money(self.total_withdrawn + txn.amount)
            else:
                self.balance = round_money(self.balance + txn.amount)
            txn.status = outcome.value
            txn.resolved_at = now
            self.updated_at = now

        self.raise_(
            WithdrawalResolved(
                wallet_id=str(self.id),
                customer_id=str(self.customer_id),
                transaction_id=str(txn.id),
                amount=txn.amount,
                outcome=outcome.value,
            )
        )
        return txn

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    @staticmethod
    def _positive(amount) -> float:
        amount = round_money(amount)
        if amount <= 0:
            raise ValidationError({"amount": ["Amount must be greater than zero"]})
        return amount

    def _append(
        self,
        txn_type,
        amount,
        purpose,
        reference,
        order_id=None,
        description=None,
        status=TransactionStatus.COMPLETED,
        metadata=None,
    ):
        now = datetime.now(UTC)
        txn = WalletTransaction(
            type=txn_type.value,
            amount=amount,
            purpose=_value(purpose),
            reference=reference,
            order_id=order_id,
            description=description,
            status=status.value,
            metadata=json.dumps(metadata) if metadata else None,
            created_at=now,
        )
        self.add_transactions(txn)
        self.updated_at = now
        return txn


def _value(member):
    return member.value if isinstance(member, Enum) else member


@ordering.repository(part_of=Wallet)
class WalletRepository:
    def find_for_customer(self, customer_id) -> Wallet | None:
        wallets = self._dao.query.filter(customer_id=str(customer_id)).all().items
        return wallets[0] if wallets else None

    def get_or_open(self, customer_id) -> Wallet:
        return self.find_for_customer(customer_id) or Wallet.open(customer_id)
