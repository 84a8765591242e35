"""Account and category models."""

from __future__ import annotations

import enum
from decimal import Decimal

from sqlalchemy import DECIMAL, Boolean, Enum, String
from sqlalchemy.orm import Mapped, mapped_column

from finance_tracker.database import Base
from finance_tracker.models.base import SoftDeleteMixin, TimestampMixin, UserOwnedMixin, UUIDMixin


class AccountType(str, enum.Enum):
    """Kind of balance-holding account."""

    CHECKING = "checking"
    SAVINGS = "savings"
    CREDIT_CARD = "credit_card"
    CASH = "cash"
    INVESTMENT = "investment"
    CRYPTO = "crypto"
    CREDIT = "credit"


class CategoryType(str, enum.Enum):
    EXPENSE = "expense"
    INCOME = "income"


class Account(Base, UUIDMixin, UserOwnedMixin, TimestampMixin, SoftDeleteMixin):
    """
    Account holding a running balance.

    The balance equals the sum of the signed ledger effects of every
    non-deleted transaction touching the account. Only the balance ledger
    service writes it.
    """

    __tablename__ = "accounts"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[AccountType] = mapped_column(
        Enum(
            AccountType,
            name="account_type_enum",
            values_callable=lambda obj: [e.value for e in obj],
        ),
        nullable=False,
        default=AccountType.CHECKING,
    )
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")
    balance: Mapped[Decimal] = mapped_column(DECIMAL(18, 2), nullable=False, default=Decimal("0"))
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Account {self.name} ({self.type.value})>"


class Category(Base, UUIDMixin, UserOwnedMixin, TimestampMixin, SoftDeleteMixin):
    """Spending or income category a transaction may be filed under."""

    __tablename__ = "categories"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[CategoryType] = mapped_column(
        Enum(
            CategoryType,
            name="category_type_enum",
            values_callable=lambda obj: [e.value for e in obj],
        ),
        nullable=False,
        default=CategoryType.EXPENSE,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
