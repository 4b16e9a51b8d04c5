"""Tests for the Wallet aggregate and its ledger identity."""

import pytest
from ordering.wallet.events import WalletCredited, WalletDebited, WithdrawalRequested, WithdrawalResolved
from ordering.wallet.wallet import TransactionPurpose, TransactionStatus, TransactionType, Wallet
from protean.exceptions import ValidationError


def _funded_wallet(amount=20000.0):
    wallet = Wallet.open("cust-001")
    wallet.credit(amount, TransactionPurpose.TOP_UP, reference="TOPUP-1")
    wallet._events.clear()
    return wallet


class TestOpenWallet:
    def test_new_wallet_is_empty(self):
        wallet = Wallet.open("cust-001")
        assert wallet.balance == 0.0
        assert wallet.pending_balance == 0.0
        assert wallet.transactions == []
        assert wallet.ledger_net() == 0.0


class TestCredit:
    def test_credit_increases_balance_and_earnings(self):
        wallet = Wallet.open("cust-001")
        txn = wallet.credit(5000.0, TransactionPurpose.REFUND, reference="REF-1", description="Refund")
        assert wallet.balance == 5000.0
        assert wallet.total_earned == 5000.0
        assert txn.type == TransactionType.CREDIT.value
        assert txn.status == TransactionStatus.COMPLETED.value

    def test_credit_raises_event(self):
        wallet = Wallet.open("cust-001")
        wallet.credit(5000.0, "reward", reference="RW-1")
        event = wallet._events[-1]
        assert isinstance(event, WalletCredited)
        assert event.purpose == "reward"
        assert event.balance == 5000.0

    def test_credit_replay_returns_original(self):
        wallet = Wallet.open("cust-001")
        first = wallet.credit(5000.0, TransactionPurpose.REFUND, reference="REF-1")
        second = wallet.credit(5000.0, TransactionPurpose.REFUND, reference="REF-1")
        assert second is first
        assert wallet.balance == 5000.0
        assert len(wallet.transactions) == 1

    @pytest.mark.parametrize("amount", [0, -10.0])
    def test_non_positive_amounts_are_rejected(self, amount):
        wallet = Wallet.open("cust-001")
        with pytest.raises(ValidationError) as exc:
            wallet.credit(amount, TransactionPurpose.REFUND, reference="REF-1")
        assert "Amount must be greater than zero" in str(exc.value)


class TestDebit:
    def test_debit_decreases_balance(self):
        wallet = _funded_wallet()
        wallet.debit(15000.0, TransactionPurpose.PURCHASE, reference="VS482913370042")
        assert wallet.balance == 5000.0
        assert wallet.total_spent == 15000.0
        assert isinstance(wallet._events[-1], WalletDebited)

    def test_exact_balance_can_be_spent(self):
        wallet = _funded_wallet(15000.0)
        wallet.debit(15000.0, TransactionPurpose.PURCHASE, reference="VS482913370042")
        assert wallet.balance == 0.0

    def test_overdraft_is_rejected_without_side_effects(self):
        wallet = _funded_wallet(1000.0)
        with pytest.raises(ValidationError) as exc:
            wallet.debit(1000.01, TransactionPurpose.PURCHASE, reference="VS482913370042")
        assert "Insufficient wallet balance" in str(exc.value)
        assert wallet.balance == 1000.0
        assert len(wallet.transactions) == 1

    def test_debit_replay_is_idempotent(self):
        wallet = _funded_wallet()
        wallet.debit(5000.0, TransactionPurpose.PURCHASE, reference="VS482913370042")
        wallet.debit(5000.0, TransactionPurpose.PURCHASE, reference="VS482913370042")
        assert wallet.balance == 15000.0


class TestWithdrawal:
    def test_reservation_moves_funds_to_pending(self):
        wallet = _funded_wallet()
        txn = wallet.reserve_for_withdrawal(5000.0, reference="WD-1", bank_details={"account_number": "0123456789"})
        assert wallet.balance == 15000.0
        assert wallet.pending_balance == 5000.0
        assert txn.status == TransactionStatus.PENDING.value
        assert isinstance(wallet._events[-1], WithdrawalRequested)

    def test_reservation_beyond_balance_is_rejected(self):
        wallet = _funded_wallet(2000.0)
        with pytest.raises(ValidationError):
            wallet.reserve_for_withdrawal(5000.0, reference="WD-1")

    def test_completed_withdrawal(self):
        wallet = _funded_wallet()
        txn = wallet.reserve_for_withdrawal(5000.0, reference="WD-1")
        wallet.resolve_withdrawal(txn.id, "completed")
        assert wallet.pending_balance == 0.0
        assert wallet.balance == 15000.0
        assert wallet.total_withdrawn == 5000.0
        assert isinstance(wallet._events[-1], WithdrawalResolved)

    def test_failed_withdrawal_restores_balance(self):
        wallet = _funded_wallet()
        txn = wallet.reserve_for_withdrawal(5000.0, reference="WD-1")
        wallet.resolve_withdrawal(txn.id, TransactionStatus.FAILED)
        assert wallet.pending_balance == 0.0
        assert wallet.balance == 20000.0
        assert wallet.total_withdrawn == 0.0

    def test_withdrawal_resolves_once(self):
        wallet = _funded_wallet()
        txn = wallet.reserve_for_withdrawal(5000.0, reference="WD-1")
        wallet.resolve_withdrawal(txn.id, "completed")
        with pytest.raises(ValidationError) as exc:
            wallet.resolve_withdrawal(txn.id, "failed")
        assert "Transaction already processed" in str(exc.value)

    def test_only_completed_or_failed_outcomes(self):
        wallet = _funded_wallet()
        txn = wallet.reserve_for_withdrawal(5000.0, reference="WD-1")
        with pytest.raises(ValidationError):
            wallet.resolve_withdrawal(txn.id, "pending")

    def test_unknown_transaction(self):
        wallet = _funded_wallet()
        with pytest.raises(ValidationError) as exc:
            wallet.resolve_withdrawal("missing", "completed")
        assert "Withdrawal not found" in str(exc.value)

    def test_credit_is_not_a_withdrawal(self):
        wallet = _funded_wallet()
        with pytest.raises(ValidationError):
            wallet.resolve_withdrawal(wallet.transactions[0].id, "completed")


class TestLedgerIdentity:
    def test_identity_holds_across_mixed_activity(self):
        wallet = _funded_wallet()
        wallet.debit(3000.0, TransactionPurpose.PURCHASE, reference="VS1")
        wallet.credit(3000.0, TransactionPurpose.REFUND, reference="REF-VS1")
        pending = wallet.reserve_for_withdrawal(4000.0, reference="WD-1")
        done = wallet.reserve_for_withdrawal(2000.0, reference="WD-2")
        wallet.resolve_withdrawal(done.id, "completed")

        assert wallet.ledger_net() == pytest.approx(wallet.balance + wallet.pending_balance)
        assert wallet.pending_balance == pending.amount

    def test_balance_drift_is_rejected(self):
        wallet = _funded_wallet()
        with pytest.raises(ValidationError) as exc:
            wallet.balance = 50000.0
        assert "does not match its transaction ledger" in str(exc.value)


class TestHistory:
    def test_summary_lists_recent_transactions(self):
        wallet = _funded_wallet()
        wallet.debit(1000.0, TransactionPurpose.PURCHASE, reference="VS1")
        summary = wallet.summary()
        assert summary["balance"] == 19000.0
        assert {t["reference"] for t in summary["recent_transactions"]} == {"TOPUP-1", "VS1"}

    def test_summary_is_limited(self):
        wallet = _funded_wallet()
        for i in range(5):
            wallet.debit(100.0, TransactionPurpose.PURCHASE, reference=f"VS{i}")
        assert len(wallet.summary(recent=3)["recent_transactions"]) == 3
