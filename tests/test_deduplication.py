"""Tests for duplicate detection.

GIVEN: Existing transactions for a user
WHEN: A new candidate arrives
THEN: Exact re-submissions and near matches are found, exact first
"""

from datetime import UTC, date, datetime, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from finance_tracker.models import ImportBatch
from finance_tracker.services.deduplication import DuplicateDetector, MatchKind
from tests.factories import AccountFactory, TransactionCreateFactory, TransactionFactory


@pytest.fixture
def detector():
    return DuplicateDetector()


class TestNearMatchKey:
    def test_amount_is_normalized(self):
        account_id = uuid4()
        assert DuplicateDetector.near_match_key(date(2024, 1, 15), Decimal("50"), account_id) == (
            date(2024, 1, 15),
            Decimal("50.00"),
            account_id,
        )


class TestFindDuplicate:
    @pytest.mark.asyncio
    async def test_near_match_with_different_description(self, db, detector):
        """GIVEN: Existing transaction on 2024-01-15 for 50000 in account A1
        WHEN: Candidate has the same date, amount and account but another description
        THEN: The existing transaction is returned as a near match"""
        user_id = uuid4()
        account = await AccountFactory.create_async(db, user_id=user_id, name="A1")
        existing = await TransactionFactory.create_async(
            db, user_id, account.id, date=date(2024, 1, 15), amount=Decimal("50000"), description="Lunch"
        )

        candidate = TransactionCreateFactory(
            date=date(2024, 1, 15), amount=Decimal("50000"), account_id=account.id, description="Dinner"
        )
        match = await detector.find_duplicate(db, user_id, candidate)

        assert match is not None
        assert match.existing.id == existing.id
        assert match.kind == MatchKind.NEAR

    @pytest.mark.asyncio
    async def test_exact_match_takes_precedence(self, db, detector):
        """GIVEN: One record matching on raw text and source, another on date/amount/account
        WHEN: Looking for a duplicate
        THEN: The exact match is returned"""
        user_id = uuid4()
        account = await AccountFactory.create_async(db, user_id=user_id)
        near = await TransactionFactory.create_async(
            db,
            user_id,
            account.id,
            date=date(2024, 1, 15),
            amount=Decimal("25.00"),
            created_at=datetime.now(UTC) - timedelta(days=1),
        )
        exact = await TransactionFactory.create_async(
            db,
            user_id,
            account.id,
            date=date(2024, 2, 1),
            amount=Decimal("99.00"),
            raw_text="SMS: spent 25.00 at cafe",
            source="ai",
        )

        candidate = TransactionCreateFactory(
            date=date(2024, 1, 15),
            amount=Decimal("25.00"),
            account_id=account.id,
            raw_text="SMS: spent 25.00 at cafe",
            source="ai",
        )
        match = await detector.find_duplicate(db, user_id, candidate)

        assert match.kind == MatchKind.EXACT
        assert match.existing.id == exact.id
        assert match.existing.id != near.id

    @pytest.mark.asyncio
    async def test_exact_requires_same_source(self, db, detector):
        user_id = uuid4()
        account = await AccountFactory.create_async(db, user_id=user_id)
        await TransactionFactory.create_async(
            db, user_id, account.id, date=date(2024, 2, 1), raw_text="same text", source="ai"
        )

        candidate = TransactionCreateFactory(
            date=date(2024, 3, 1), account_id=account.id, raw_text="same text", source="import"
        )
        assert await detector.find_duplicate(db, user_id, candidate) is None

    @pytest.mark.asyncio
    async def test_deleted_and_foreign_rows_are_ignored(self, db, detector):
        user_id = uuid4()
        account = await AccountFactory.create_async(db, user_id=user_id)
        await TransactionFactory.create_async(
            db, user_id, account.id, date=date(2024, 1, 15), deleted_at=datetime.now(UTC)
        )
        await TransactionFactory.create_async(db, uuid4(), account.id, date=date(2024, 1, 15))

        candidate = TransactionCreateFactory(date=date(2024, 1, 15), account_id=account.id)
        assert await detector.find_duplicate(db, user_id, candidate) is None

    @pytest.mark.asyncio
    async def test_earliest_match_is_returned(self, db, detector):
        user_id = uuid4()
        account = await AccountFactory.create_async(db, user_id=user_id)
        older = await TransactionFactory.create_async(
            db, user_id, account.id, date=date(2024, 1, 15), created_at=datetime.now(UTC) - timedelta(hours=2)
        )
        await TransactionFactory.create_async(db, user_id, account.id, date=date(2024, 1, 15))

        candidate = TransactionCreateFactory(date=date(2024, 1, 15), account_id=account.id)
        match = await detector.find_duplicate(db, user_id, candidate)
        assert match.existing.id == older.id

    @pytest.mark.asyncio
    async def test_same_import_batch_is_excluded(self, db, detector):
        """GIVEN: A record belonging to import batch B
        WHEN: Checking a candidate of the same batch
        THEN: It is not reported as a duplicate"""
        user_id = uuid4()
        account = await AccountFactory.create_async(db, user_id=user_id)
        batch = ImportBatch(user_id=user_id, row_count=2)
        db.add(batch)
        await db.flush()
        await TransactionFactory.create_async(db, user_id, account.id, date=date(2024, 1, 15), import_id=batch.id)

        candidate = TransactionCreateFactory(date=date(2024, 1, 15), account_id=account.id)
        assert await detector.find_duplicate(db, user_id, candidate, exclude_import_id=batch.id) is None
        assert await detector.find_duplicate(db, user_id, candidate) is not None


class TestFindBatchNearMatches:
    @pytest.mark.asyncio
    async def test_groups_identical_keys_and_chunks(self, db, detector):
        user_id = uuid4()
        account = await AccountFactory.create_async(db, user_id=user_id)
        existing = await TransactionFactory.create_async(
            db, user_id, account.id, date=date(2024, 1, 15), amount=Decimal("12.50")
        )
        await TransactionFactory.create_async(db, user_id, account.id, date=date(2024, 1, 20), amount=Decimal("3.00"))

        keys = [
            (date(2024, 1, 15), Decimal("12.5"), account.id),
            None,
            (date(2024, 1, 16), Decimal("12.50"), account.id),
            (date(2024, 1, 15), Decimal("12.50"), account.id),
        ]
        matches = await detector.find_batch_near_matches(db, user_id, keys, batch_size=1)

        assert [(index, txn.id) for index, txn in matches] == [(0, existing.id), (3, existing.id)]

    @pytest.mark.asyncio
    async def test_no_keys(self, db, detector):
        assert await detector.find_batch_near_matches(db, uuid4(), [None, None]) == []
