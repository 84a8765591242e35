"""Tests for the balance ledger."""

from decimal import Decimal
from uuid import uuid4

import pytest

from finance_tracker.models import TransactionType
from finance_tracker.services.ledger import (
    LedgerIntegrityError,
    adjust_account_balance,
    apply_transaction,
    apply_transaction_balance,
    balance_effects,
)
from tests.factories import AccountFactory, TransactionFactory


class TestBalanceEffects:
    def test_expense_and_income(self):
        account_id = uuid4()
        assert balance_effects(TransactionType.EXPENSE, account_id, Decimal("10.00")) == [
            (account_id, Decimal("-10.00"))
        ]
        assert balance_effects(TransactionType.INCOME, account_id, Decimal("10.00")) == [
            (account_id, Decimal("10.00"))
        ]

    def test_transfer_is_symmetric(self):
        source, dest = uuid4(), uuid4()
        assert balance_effects(TransactionType.TRANSFER, source, Decimal("30.00"), dest) == [
            (source, Decimal("-30.00")),
            (dest, Decimal("30.00")),
        ]

    def test_reverse_flips_signs(self):
        source, dest = uuid4(), uuid4()
        forward = balance_effects(TransactionType.TRANSFER, source, Decimal("30.00"), dest)
        backward = balance_effects(TransactionType.TRANSFER, source, Decimal("30.00"), dest, reverse=True)
        assert [(acc, -delta) for acc, delta in forward] == backward

    def test_transfer_without_destination_has_no_effect(self):
        assert balance_effects(TransactionType.TRANSFER, uuid4(), Decimal("30.00"), None) == []

    def test_unknown_type_has_no_effect(self):
        assert balance_effects("refund", uuid4(), Decimal("30.00")) == []


class TestApplyTransactionBalance:
    @pytest.mark.asyncio
    async def test_expense_then_reverse_restores_balance(self, db):
        """GIVEN: An account with balance 200
        WHEN: Applying an expense of 100 and then reversing it
        THEN: The balance returns exactly to 200"""
        account = await AccountFactory.create_async(db, user_id=uuid4(), balance=Decimal("200.00"))

        await apply_transaction_balance(db, TransactionType.EXPENSE, account.id, Decimal("100.00"))
        await db.refresh(account)
        assert account.balance == Decimal("100.00")

        await apply_transaction_balance(db, TransactionType.EXPENSE, account.id, Decimal("100.00"), reverse=True)
        await db.refresh(account)
        assert account.balance == Decimal("200.00")

    @pytest.mark.asyncio
    async def test_transfer_moves_amount_between_accounts(self, db):
        """GIVEN: Accounts X (100) and Y (0)
        WHEN: Transferring 40 from X to Y, then reversing
        THEN: X=60, Y=40, then both restored"""
        user_id = uuid4()
        x = await AccountFactory.create_async(db, user_id=user_id, balance=Decimal("100.00"))
        y = await AccountFactory.create_async(db, user_id=user_id, balance=Decimal("0.00"))

        await apply_transaction_balance(db, TransactionType.TRANSFER, x.id, Decimal("40.00"), y.id)
        await db.refresh(x)
        await db.refresh(y)
        assert (x.balance, y.balance) == (Decimal("60.00"), Decimal("40.00"))

        await apply_transaction_balance(db, TransactionType.TRANSFER, x.id, Decimal("40.00"), y.id, reverse=True)
        await db.refresh(x)
        await db.refresh(y)
        assert (x.balance, y.balance) == (Decimal("100.00"), Decimal("0.00"))

    @pytest.mark.asyncio
    async def test_missing_account_raises_integrity_error(self, db):
        with pytest.raises(LedgerIntegrityError):
            await adjust_account_balance(db, uuid4(), Decimal("1.00"))

    @pytest.mark.asyncio
    async def test_apply_transaction_uses_persisted_fields(self, db):
        user_id = uuid4()
        account = await AccountFactory.create_async(db, user_id=user_id)
        txn = await TransactionFactory.create_async(
            db, user_id, account.id, type=TransactionType.INCOME, amount=Decimal("75.25")
        )

        await apply_transaction(db, txn)
        await db.refresh(account)
        assert account.balance == Decimal("75.25")

        await apply_transaction(db, txn, reverse=True)
        await db.refresh(account)
        assert account.balance == Decimal("0.00")
