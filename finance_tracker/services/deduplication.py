"""Duplicate detection for incoming transactions."""

import enum
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select

from finance_tracker.logger import get_logger
from finance_tracker.models import Transaction
from finance_tracker.schemas.transaction import TransactionCreate

logger = get_logger(__name__)

NearMatchKey = tuple[date, Decimal, UUID]


class MatchKind(str, enum.Enum):
    EXACT = "exact"
    NEAR = "near"


@dataclass(frozen=True)
class DuplicateMatch:
    """A candidate paired with the existing record judged to be the same event."""

    candidate: TransactionCreate
    existing: Transaction
    kind: MatchKind


class DuplicateDetector:
    """Two-tier duplicate lookup: exact re-submission first, then near match."""

    @staticmethod
    def near_match_key(txn_date: date, amount: Decimal, account_id: UUID) -> NearMatchKey:
        """Normalize the (date, amount, account) triple used for near matches."""
        return (txn_date, Decimal(amount).quantize(Decimal("0.01")), account_id)

    @staticmethod
    def _live(user_id: UUID, exclude_import_id: UUID | None = None) -> Select:
        query = (
            select(Transaction)
            .where(Transaction.user_id == user_id)
            .where(Transaction.deleted_at.is_(None))
        )
        if exclude_import_id is not None:
            query = query.where(
                or_(Transaction.import_id.is_(None), Transaction.import_id != exclude_import_id)
            )
        return query.order_by(Transaction.created_at.asc(), Transaction.id.asc()).limit(1)

    async def find_exact_match(
        self,
        db: AsyncSession,
        user_id: UUID,
        candidate: TransactionCreate,
        *,
        exclude_import_id: UUID | None = None,
    ) -> Transaction | None:
        """Same raw text and provenance tag. Only tried when the candidate has both."""
        if not candidate.raw_text or not candidate.source:
            return None
        query = (
            self._live(user_id, exclude_import_id)
            .where(Transaction.raw_text == candidate.raw_text)
            .where(Transaction.source == candidate.source)
        )
        result = await db.execute(query)
        return result.scalar_one_or_none()

    async def find_near_match(
        self,
        db: AsyncSession,
        user_id: UUID,
        candidate: TransactionCreate,
        *,
        exclude_import_id: UUID | None = None,
    ) -> Transaction | None:
        """Same calendar date, amount and source account, regardless of description."""
        query = (
            self._live(user_id, exclude_import_id)
            .where(Transaction.date == candidate.date)
            .where(Transaction.amount == candidate.amount)
            .where(Transaction.account_id == candidate.account_id)
        )
        result = await db.execute(query)
        return result.scalar_one_or_none()

    async def find_duplicate(
        self,
        db: AsyncSession,
        user_id: UUID,
        candidate: TransactionCreate,
        *,
        exclude_import_id: UUID | None = None,
    ) -> DuplicateMatch | None:
        """Return the first existing record matching the candidate, exact tier first."""
        existing = await self.find_exact_match(db, user_id, candidate, exclude_import_id=exclude_import_id)
        if existing is not None:
            kind = MatchKind.EXACT
        else:
            existing = await self.find_near_match(db, user_id, candidate, exclude_import_id=exclude_import_id)
            kind = MatchKind.NEAR

        if existing is None:
            return None

        logger.info(
            "Possible duplicate transaction detected",
            user_id=str(user_id),
            match_id=str(existing.id),
            match_kind=kind.value,
        )
        return DuplicateMatch(candidate=candidate, existing=existing, kind=kind)

    async def find_batch_near_matches(
        self,
        db: AsyncSession,
        user_id: UUID,
        keys: Sequence[NearMatchKey | None],
        *,
        batch_size: int = 50,
    ) -> list[tuple[int, Transaction]]:
        """Near-match many (date, amount, account) keys at once.

        ``keys`` is positional; ``None`` entries (unresolvable rows) are
        ignored. Identical keys are queried once and every index sharing a
        key is reported against every matching record.
        """
        indices_by_key: dict[NearMatchKey, list[int]] = {}
        for index, key in enumerate(keys):
            if key is None:
                continue
            normalized = self.near_match_key(*key)
            indices_by_key.setdefault(normalized, []).append(index)

        unique_keys = list(indices_by_key)
        duplicates: list[tuple[int, Transaction]] = []

        for start in range(0, len(unique_keys), batch_size):
            chunk = unique_keys[start : start + batch_size]
            clauses = [
                and_(
                    Transaction.date == txn_date,
                    Transaction.amount == amount,
                    Transaction.account_id == account_id,
                )
                for txn_date, amount, account_id in chunk
            ]
            query = (
                select(Transaction)
                .where(Transaction.user_id == user_id)
                .where(Transaction.deleted_at.is_(None))
                .where(or_(*clauses))
                .order_by(Transaction.created_at.asc(), Transaction.id.asc())
            )
            result = await db.execute(query)
            for match in result.scalars().all():
                key = self.near_match_key(match.date, match.amount, match.account_id)
                for index in indices_by_key.get(key, []):
                    duplicates.append((index, match))

        duplicates.sort(key=lambda item: item[0])
        return duplicates
