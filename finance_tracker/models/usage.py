"""Import batch and usage tracking models."""

from __future__ import annotations

import enum

from sqlalchemy import Enum, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from finance_tracker.database import Base
from finance_tracker.models.base import TimestampMixin, UserOwnedMixin, UUIDMixin


class ImportStatus(str, enum.Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class ImportBatch(Base, UUIDMixin, UserOwnedMixin, TimestampMixin):
    """One bulk import request; imported transactions reference it."""

    __tablename__ = "imports"

    source: Mapped[str] = mapped_column(String(50), nullable=False, default="csv")
    file_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    row_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    imported_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[ImportStatus] = mapped_column(
        Enum(
            ImportStatus,
            name="import_status_enum",
            values_callable=lambda obj: [e.value for e in obj],
        ),
        nullable=False,
        default=ImportStatus.PROCESSING,
    )


class UsageTracking(Base, UUIDMixin, UserOwnedMixin, TimestampMixin):
    """Per-user monthly usage counters. ``month`` is formatted YYYY-MM."""

    __tablename__ = "usage_tracking"
    __table_args__ = (UniqueConstraint("user_id", "month", name="uq_usage_user_month"),)

    month: Mapped[str] = mapped_column(String(7), nullable=False)
    transactions_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
