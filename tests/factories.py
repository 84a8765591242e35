"""Test data factories using factory_boy pattern.

Usage:
    # In-memory objects (no database)
    rule = AutomationRuleFactory.build(priority=10)
    candidate = TransactionCreateFactory(account_id=account.id)

    # Create and flush to DB (transaction not committed)
    account = await AccountFactory.create_async(db, user_id=user.id, name="Cash")
"""

from datetime import UTC, date, datetime
from decimal import Decimal
from typing import TypeVar
from uuid import UUID, uuid4

import factory
from sqlalchemy.ext.asyncio import AsyncSession

from finance_tracker.models import (
    Account,
    AccountType,
    AutomationRule,
    Category,
    CategoryType,
    ConditionLogic,
    DuplicateStatus,
    RuleType,
    Transaction,
    TransactionType,
    User,
)
from finance_tracker.schemas import TransactionCreate

T = TypeVar("T")


class AsyncFactoryMixin:
    """Mixin providing async database persistence for factories.

    Subclasses should override _build_kwargs() if they need to inject required fields.
    """

    @classmethod
    def _build_kwargs(cls, *args, **kwargs) -> dict:
        return kwargs

    @classmethod
    async def create_async(cls, db: AsyncSession, *args, **kwargs) -> T:
        """Create and flush to database (transaction not committed)."""
        build_kwargs = cls._build_kwargs(*args, **kwargs)
        instance = cls.build(**build_kwargs)
        db.add(instance)
        await db.flush()
        await db.refresh(instance)
        return instance


class UserFactory(factory.Factory, AsyncFactoryMixin):
    class Meta:
        model = User

    id = factory.LazyFunction(uuid4)
    email = factory.Sequence(lambda n: f"user{n}@example.com")
    hashed_password = "hashed_test_password"
    created_at = factory.LazyFunction(lambda: datetime.now(UTC))
    updated_at = factory.LazyFunction(lambda: datetime.now(UTC))


class AccountFactory(factory.Factory, AsyncFactoryMixin):
    class Meta:
        model = Account

    id = factory.LazyFunction(uuid4)
    name = factory.Sequence(lambda n: f"Account {n}")
    type = AccountType.CHECKING
    currency = "USD"
    balance = Decimal("0.00")
    is_active = True
    deleted_at = None
    created_at = factory.LazyFunction(lambda: datetime.now(UTC))
    updated_at = factory.LazyFunction(lambda: datetime.now(UTC))

    @classmethod
    def _build_kwargs(cls, user_id: UUID, **kwargs) -> dict:
        return {"user_id": user_id, **kwargs}


class CategoryFactory(factory.Factory, AsyncFactoryMixin):
    class Meta:
        model = Category

    id = factory.LazyFunction(uuid4)
    name = factory.Sequence(lambda n: f"Category {n}")
    type = CategoryType.EXPENSE
    is_active = True
    deleted_at = None
    created_at = factory.LazyFunction(lambda: datetime.now(UTC))
    updated_at = factory.LazyFunction(lambda: datetime.now(UTC))

    @classmethod
    def _build_kwargs(cls, user_id: UUID, **kwargs) -> dict:
        return {"user_id": user_id, **kwargs}


class AutomationRuleFactory(factory.Factory, AsyncFactoryMixin):
    class Meta:
        model = AutomationRule

    id = factory.LazyFunction(uuid4)
    user_id = factory.LazyFunction(uuid4)
    name = factory.Sequence(lambda n: f"Rule {n}")
    is_active = True
    priority = 0
    rule_type = RuleType.GENERAL
    condition_logic = ConditionLogic.AND
    conditions = factory.LazyFunction(dict)
    actions = factory.LazyFunction(dict)
    transfer_to_account_id = None
    deleted_at = None
    created_at = factory.LazyFunction(lambda: datetime.now(UTC))
    updated_at = factory.LazyFunction(lambda: datetime.now(UTC))


class TransactionFactory(factory.Factory, AsyncFactoryMixin):
    """Persisted transaction row. Does not touch account balances."""

    class Meta:
        model = Transaction

    id = factory.LazyFunction(uuid4)
    date = factory.LazyFunction(date.today)
    amount = Decimal("50.00")
    description = factory.Sequence(lambda n: f"Transaction {n}")
    type = TransactionType.EXPENSE
    source = "manual"
    applied_rules = factory.LazyFunction(list)
    duplicate_status = DuplicateStatus.NONE
    is_reconciled = False
    deleted_at = None
    created_at = factory.LazyFunction(lambda: datetime.now(UTC))
    updated_at = factory.LazyFunction(lambda: datetime.now(UTC))

    @classmethod
    def _build_kwargs(cls, user_id: UUID, account_id: UUID, **kwargs) -> dict:
        return {"user_id": user_id, "account_id": account_id, **kwargs}


class TransactionCreateFactory(factory.Factory):
    """Candidate transaction as submitted to the pipeline."""

    class Meta:
        model = TransactionCreate

    date = date(2024, 1, 15)
    amount = Decimal("50.00")
    description = "Lunch"
    type = TransactionType.EXPENSE
    account_id = factory.LazyFunction(uuid4)
    source = "manual"
