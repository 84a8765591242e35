"""Bulk import of normalized CSV rows through the ingestion pipeline."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from finance_tracker.config import settings
from finance_tracker.logger import get_logger
from finance_tracker.models import Account, Category, ImportBatch, ImportStatus
from finance_tracker.schemas.imports import (
    DuplicateCheckMatch,
    DuplicateCheckRequest,
    DuplicateCheckResponse,
    ImportDuplicate,
    ImportRequest,
    ImportResponse,
    ImportRow,
)
from finance_tracker.schemas.transaction import TransactionCreate, TransactionResponse
from finance_tracker.services.deduplication import DuplicateDetector
from finance_tracker.services.ingestion import TransactionValidationError, ingest_transaction
from finance_tracker.services.usage import check_transaction_quota

logger = get_logger(__name__)


class BulkImportError(Exception):
    """The import payload is empty or no row could be resolved."""

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        self.errors = errors or []
        super().__init__(message)


async def _account_lookup(db: AsyncSession, user_id: UUID) -> dict[str, UUID]:
    result = await db.execute(
        select(Account.name, Account.id).where(Account.user_id == user_id).where(Account.deleted_at.is_(None))
    )
    return {name.casefold(): account_id for name, account_id in result.all()}


async def _category_lookup(db: AsyncSession, user_id: UUID) -> dict[str, UUID]:
    result = await db.execute(
        select(Category.name, Category.id).where(Category.user_id == user_id).where(Category.deleted_at.is_(None))
    )
    return {name.casefold(): category_id for name, category_id in result.all()}


def _lookup(names: dict[str, UUID], name: str | None) -> UUID | None:
    if not name:
        return None
    return names.get(name.strip().casefold())


def _resolve_row(
    row: ImportRow,
    row_number: int,
    accounts: dict[str, UUID] | None,
    categories: dict[str, UUID] | None,
    errors: list[str],
) -> TransactionCreate | None:
    """Turn one row into a candidate, appending messages to ``errors``.

    Returns None when the row must be skipped.
    """
    account_id = row.account_id
    category_id = row.category_id
    transfer_to_account_id = row.transfer_to_account_id

    if accounts is not None:
        account_id = account_id or _lookup(accounts, row.account)
        if row.transfer_to_account:
            transfer_to_account_id = transfer_to_account_id or _lookup(accounts, row.transfer_to_account)
            if transfer_to_account_id is None:
                errors.append(f"Row {row_number}: account '{row.transfer_to_account}' not found")
                return None
    if categories is not None and row.category and category_id is None:
        category_id = _lookup(categories, row.category)
        if category_id is None:
            errors.append(f"Row {row_number}: category '{row.category}' not found")

    if account_id is None:
        if row.account:
            errors.append(f"Row {row_number}: account '{row.account}' not found")
        else:
            errors.append(f"Row {row_number}: account is required")
        return None

    return TransactionCreate(
        date=row.date,
        time=row.time,
        amount=row.amount,
        description=row.description,
        notes=row.notes,
        type=row.type,
        account_id=account_id,
        category_id=category_id,
        transfer_to_account_id=transfer_to_account_id,
        payment_method=row.payment_method,
        source=row.source,
    )


async def import_transactions(db: AsyncSession, user_id: UUID, request: ImportRequest) -> ImportResponse:
    """
    Ingest every row of an import request.

    The quota check happens before any row is processed. Rows are checked for
    duplicates against records that existed before this batch only. The
    caller commits once for the whole batch.

    Raises:
        BulkImportError: Empty payload, or no row could be resolved
        QuotaExceededError: The batch would exceed the monthly limit
    """
    rows = request.transactions
    if not rows:
        raise BulkImportError("No transactions provided")

    await check_transaction_quota(db, user_id, len(rows))

    accounts = await _account_lookup(db, user_id) if request.resolve_names else None
    categories = await _category_lookup(db, user_id) if request.resolve_names else None

    errors: list[str] = []
    candidates: list[tuple[int, TransactionCreate]] = []
    for index, row in enumerate(rows):
        candidate = _resolve_row(row, index + 1, accounts, categories, errors)
        if candidate is not None:
            candidates.append((index, candidate))

    if not candidates:
        raise BulkImportError("No transactions could be resolved", errors)

    batch = ImportBatch(user_id=user_id, source="csv", file_name=request.file_name, row_count=len(rows))
    db.add(batch)
    await db.flush()

    detector = DuplicateDetector()
    duplicates: list[ImportDuplicate] = []
    imported = 0

    for index, candidate in candidates:
        try:
            result = await ingest_transaction(
                db,
                user_id,
                candidate,
                force=request.force,
                import_id=batch.id,
                detector=detector,
                confirm_only_matches=True,
            )
        except TransactionValidationError as exc:
            errors.append(f"Row {index + 1}: {exc}")
            continue

        if result.is_duplicate:
            duplicates.append(ImportDuplicate(index=index, match_id=result.duplicate.existing.id))
        else:
            imported += 1

    batch.imported_count = imported
    batch.status = ImportStatus.COMPLETED
    await db.flush()

    skipped = len(rows) - imported
    logger.info(
        "Transactions imported",
        user_id=str(user_id),
        import_id=str(batch.id),
        imported=imported,
        skipped=skipped,
        duplicates=len(duplicates),
    )
    return ImportResponse(
        import_id=batch.id,
        imported=imported,
        skipped=skipped,
        errors=errors,
        duplicates=duplicates,
    )


async def check_import_duplicates(
    db: AsyncSession,
    user_id: UUID,
    request: DuplicateCheckRequest,
    detector: DuplicateDetector | None = None,
) -> DuplicateCheckResponse:
    """Report near matches for a preview of import rows. Unknown accounts are ignored."""
    if not request.transactions:
        return DuplicateCheckResponse()

    detector = detector or DuplicateDetector()
    accounts = await _account_lookup(db, user_id)

    keys = []
    for row in request.transactions:
        account_id = _lookup(accounts, row.account)
        keys.append(None if account_id is None else (row.date, row.amount, account_id))

    matches = await detector.find_batch_near_matches(
        db, user_id, keys, batch_size=settings.duplicate_check_batch_size
    )
    return DuplicateCheckResponse(
        duplicates=[
            DuplicateCheckMatch(index=index, match=TransactionResponse.model_validate(txn)) for index, txn in matches
        ]
    )
