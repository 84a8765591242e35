"""Monthly usage quota bookkeeping."""

from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from finance_tracker.config import settings
from finance_tracker.logger import get_logger, log_exception
from finance_tracker.models import UsageTracking

logger = get_logger(__name__)


class QuotaExceededError(Exception):
    """The request would push the monthly transaction count past the limit."""

    def __init__(self, current: int, requested: int, limit: int) -> None:
        self.current = current
        self.requested = requested
        self.limit = limit
        super().__init__(
            f"Monthly transaction limit reached: {current} used, {requested} requested, limit {limit}"
        )


def current_month(now: datetime | None = None) -> str:
    return (now or datetime.now(UTC)).strftime("%Y-%m")


async def _get_usage_row(db: AsyncSession, user_id: UUID, month: str) -> UsageTracking | None:
    result = await db.execute(
        select(UsageTracking).where(UsageTracking.user_id == user_id).where(UsageTracking.month == month)
    )
    return result.scalar_one_or_none()


async def get_monthly_transaction_count(db: AsyncSession, user_id: UUID, month: str | None = None) -> int:
    row = await _get_usage_row(db, user_id, month or current_month())
    return row.transactions_count if row else 0


async def check_transaction_quota(db: AsyncSession, user_id: UUID, additional: int) -> None:
    """
    Reject upfront when ``additional`` more transactions would exceed the limit.

    Raises:
        QuotaExceededError: If the prospective total exceeds the configured limit
    """
    if not settings.enforce_usage_limits:
        return
    current = await get_monthly_transaction_count(db, user_id)
    if current + additional > settings.free_transactions_limit:
        raise QuotaExceededError(current, additional, settings.free_transactions_limit)


async def record_transactions(db: AsyncSession, user_id: UUID, count: int = 1) -> None:
    """
    Increment the monthly counter and commit it as its own unit of work.

    Best effort: a failure here is logged and rolled back, it never fails
    the ingestion that triggered it.
    """
    if count <= 0:
        return
    month = current_month()
    try:
        row = await _get_usage_row(db, user_id, month)
        if row is None:
            db.add(UsageTracking(user_id=user_id, month=month, transactions_count=count))
        else:
            row.transactions_count += count
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        log_exception(logger, exc, "Failed to record transaction usage", user_id=str(user_id), count=count)
