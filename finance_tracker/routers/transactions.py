"""Transaction API router."""

from datetime import date as date_type
from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy import func, select

from finance_tracker.deps import CurrentUserId, DbSession
from finance_tracker.logger import async_log_timing, get_logger
from finance_tracker.models import DuplicateStatus, Transaction, TransactionType
from finance_tracker.schemas import (
    BulkDeleteRequest,
    BulkDeleteResponse,
    DuplicateConflictResponse,
    RulePreviewResponse,
    TransactionCreate,
    TransactionListResponse,
    TransactionResponse,
    TransactionUpdate,
)
from finance_tracker.services import (
    LedgerIntegrityError,
    RuleEvaluationError,
    TransactionConflictError,
    TransactionNotFoundError,
    TransactionValidationError,
    apply_automation_rules,
    bulk_delete_transactions,
    delete_transaction,
    get_transaction,
    ingest_transaction,
    record_transactions,
    update_transaction,
)
from finance_tracker.utils import raise_bad_request, raise_conflict, raise_internal_error, raise_not_found

router = APIRouter(prefix="/transactions", tags=["transactions"])
logger = get_logger(__name__)


@router.post(
    "",
    response_model=TransactionResponse,
    status_code=status.HTTP_201_CREATED,
    responses={status.HTTP_409_CONFLICT: {"model": DuplicateConflictResponse}},
)
async def create_transaction(
    candidate: TransactionCreate,
    db: DbSession,
    user_id: CurrentUserId,
    force: bool = Query(False, description="Skip the duplicate check"),
    replace: UUID | None = Query(None, description="Supersede this transaction"),
):
    """Ingest a transaction.

    Returns 409 with the matching record when it looks like a duplicate;
    resubmit with ``force=true`` or ``replace=<id>`` to resolve.
    """
    try:
        async with async_log_timing("ingest_transaction", logger=logger, user_id=str(user_id)) as timing:
            result = await ingest_transaction(db, user_id, candidate, force=force, replace_id=replace)
            timing.update(state=result.state.value)
    except (TransactionValidationError, RuleEvaluationError) as e:
        await db.rollback()
        raise_bad_request(str(e), cause=e)
    except TransactionNotFoundError as e:
        await db.rollback()
        raise_not_found("Transaction", cause=e)
    except LedgerIntegrityError as e:
        await db.rollback()
        logger.error("Ledger integrity violation", user_id=str(user_id), error=str(e))
        raise_internal_error("Failed to record transaction", cause=e)

    if result.is_duplicate:
        conflict = DuplicateConflictResponse(match=TransactionResponse.model_validate(result.duplicate.existing))
        return JSONResponse(status_code=status.HTTP_409_CONFLICT, content=conflict.model_dump(mode="json"))

    await db.commit()
    response = TransactionResponse.model_validate(result.transaction)
    await record_transactions(db, user_id, 1)
    return response


@router.post("/preview", response_model=RulePreviewResponse)
async def preview_transaction(
    candidate: TransactionCreate,
    db: DbSession,
    user_id: CurrentUserId,
) -> RulePreviewResponse:
    """Run automation rules on a candidate without saving it."""
    try:
        evaluation = await apply_automation_rules(db, user_id, candidate)
    except RuleEvaluationError as e:
        raise_bad_request(str(e), cause=e)
    return RulePreviewResponse(transaction=evaluation.result, applied_rules=evaluation.applied_rules)


@router.get("", response_model=TransactionListResponse)
async def list_transactions(
    db: DbSession,
    user_id: CurrentUserId,
    type: TransactionType | None = None,
    account_id: UUID | None = None,
    category_id: UUID | None = None,
    source: str | None = None,
    date_from: date_type | None = None,
    date_to: date_type | None = None,
    search: str | None = Query(None, max_length=200),
    duplicate_status: DuplicateStatus | None = None,
    import_id: UUID | None = None,
    sort_by: Literal["date", "amount"] = "date",
    sort_order: Literal["asc", "desc"] = "desc",
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100),
) -> TransactionListResponse:
    """List transactions with pagination and filters."""
    query = select(Transaction).where(Transaction.user_id == user_id).where(Transaction.deleted_at.is_(None))

    if type:
        query = query.where(Transaction.type == type)
    if account_id:
        query = query.where(Transaction.account_id == account_id)
    if category_id:
        query = query.where(Transaction.category_id == category_id)
    if source:
        query = query.where(Transaction.source == source)
    if date_from:
        query = query.where(Transaction.date >= date_from)
    if date_to:
        query = query.where(Transaction.date <= date_to)
    if search:
        query = query.where(Transaction.description.ilike(f"%{search}%"))
    if duplicate_status:
        query = query.where(Transaction.duplicate_status == duplicate_status)
    if import_id:
        query = query.where(Transaction.import_id == import_id)

    count_query = select(func.count()).select_from(query.subquery())
    total = (await db.execute(count_query)).scalar() or 0

    sort_column = Transaction.amount if sort_by == "amount" else Transaction.date
    ordering = sort_column.asc() if sort_order == "asc" else sort_column.desc()
    query = (
        query.order_by(ordering, Transaction.created_at.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )

    result = await db.execute(query)
    items = [TransactionResponse.model_validate(txn) for txn in result.scalars().all()]
    return TransactionListResponse(items=items, total=total)


@router.post("/bulk-delete", response_model=BulkDeleteResponse)
async def bulk_delete(
    request: BulkDeleteRequest,
    db: DbSession,
    user_id: CurrentUserId,
) -> BulkDeleteResponse:
    """Soft delete several transactions, reversing each balance effect once."""
    try:
        deleted = await bulk_delete_transactions(db, user_id, request.ids)
    except TransactionNotFoundError as e:
        raise_not_found("Transactions", cause=e)
    except LedgerIntegrityError as e:
        await db.rollback()
        logger.error("Ledger integrity violation", user_id=str(user_id), error=str(e))
        raise_internal_error("Failed to delete transactions", cause=e)

    await db.commit()
    return BulkDeleteResponse(deleted_count=deleted)


@router.get("/{transaction_id}", response_model=TransactionResponse)
async def read_transaction(
    transaction_id: UUID,
    db: DbSession,
    user_id: CurrentUserId,
) -> TransactionResponse:
    """Get transaction details."""
    try:
        txn = await get_transaction(db, user_id, transaction_id)
    except TransactionNotFoundError as e:
        logger.debug("Transaction not found", transaction_id=str(transaction_id))
        raise_not_found("Transaction", cause=e)
    return TransactionResponse.model_validate(txn)


@router.patch("/{transaction_id}", response_model=TransactionResponse)
async def patch_transaction(
    transaction_id: UUID,
    update_data: TransactionUpdate,
    db: DbSession,
    user_id: CurrentUserId,
) -> TransactionResponse:
    """Update a transaction. Balance effects follow monetary changes."""
    try:
        txn = await update_transaction(db, user_id, transaction_id, update_data)
    except TransactionNotFoundError as e:
        raise_not_found("Transaction", cause=e)
    except TransactionConflictError as e:
        await db.rollback()
        raise_conflict(str(e), cause=e)
    except TransactionValidationError as e:
        await db.rollback()
        raise_bad_request(str(e), cause=e)
    except LedgerIntegrityError as e:
        await db.rollback()
        logger.error("Ledger integrity violation", user_id=str(user_id), error=str(e))
        raise_internal_error("Failed to update transaction", cause=e)

    await db.commit()
    await db.refresh(txn)
    return TransactionResponse.model_validate(txn)


@router.delete("/{transaction_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_transaction(
    transaction_id: UUID,
    db: DbSession,
    user_id: CurrentUserId,
) -> None:
    """Soft delete a transaction and reverse its balance effect."""
    try:
        await delete_transaction(db, user_id, transaction_id)
    except TransactionNotFoundError as e:
        raise_not_found("Transaction", cause=e)
    except LedgerIntegrityError as e:
        await db.rollback()
        logger.error("Ledger integrity violation", user_id=str(user_id), error=str(e))
        raise_internal_error("Failed to delete transaction", cause=e)

    await db.commit()
