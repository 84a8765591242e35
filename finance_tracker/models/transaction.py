"""Transaction model."""

from __future__ import annotations

import enum
import datetime as dt
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    DECIMAL,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    Time,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from finance_tracker.database import Base
from finance_tracker.models.base import JSONType, SoftDeleteMixin, TimestampMixin, UserOwnedMixin, UUIDMixin


class TransactionType(str, enum.Enum):
    EXPENSE = "expense"
    INCOME = "income"
    TRANSFER = "transfer"


class DuplicateStatus(str, enum.Enum):
    """Whether the row was accepted as a near-duplicate of another."""

    NONE = "none"
    PENDING_REVIEW = "pending_review"
    CONFIRMED = "confirmed"


class TransactionSource(str, enum.Enum):
    """Common provenance tags. The column accepts any string."""

    MANUAL = "manual"
    IMPORT = "import"
    AI = "ai"
    API = "api"


class Transaction(Base, UUIDMixin, UserOwnedMixin, TimestampMixin, SoftDeleteMixin):
    """
    Committed monetary event.

    Rows are never physically erased: delete and replace set ``deleted_at``
    and reverse the balance effect. ``applied_rules`` is the audit trail of
    automation rules that fired at creation time.
    """

    __tablename__ = "transactions"
    __table_args__ = (CheckConstraint("amount > 0", name="positive_amount"),)

    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    time: Mapped[dt.time | None] = mapped_column(Time, nullable=True)
    amount: Mapped[Decimal] = mapped_column(DECIMAL(18, 2), nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    type: Mapped[TransactionType] = mapped_column(
        Enum(
            TransactionType,
            name="transaction_type_enum",
            values_callable=lambda obj: [e.value for e in obj],
        ),
        nullable=False,
    )
    account_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("accounts.id"), nullable=False, index=True
    )
    category_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("categories.id"), nullable=True, index=True
    )
    transfer_to_account_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("accounts.id"), nullable=True
    )
    transfer_id: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    payment_method: Mapped[str | None] = mapped_column(String(50), nullable=True)
    source: Mapped[str] = mapped_column(String(50), nullable=False, default=TransactionSource.MANUAL.value)
    confidence: Mapped[int | None] = mapped_column(Integer, nullable=True)
    raw_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    parsed_data: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    applied_rules: Mapped[list | None] = mapped_column(JSONType, nullable=True)
    duplicate_status: Mapped[DuplicateStatus] = mapped_column(
        Enum(
            DuplicateStatus,
            name="duplicate_status_enum",
            values_callable=lambda obj: [e.value for e in obj],
        ),
        nullable=False,
        default=DuplicateStatus.NONE,
    )
    duplicate_of: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    is_reconciled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    reconciled_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    import_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("imports.id"), nullable=True, index=True
    )

    def __repr__(self) -> str:
        return f"<Transaction {self.type.value} {self.amount} on {self.date}>"
