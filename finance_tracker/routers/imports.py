"""Bulk import API router."""

from fastapi import APIRouter, status

from finance_tracker.deps import CurrentUserId, DbSession
from finance_tracker.logger import async_log_timing, get_logger
from finance_tracker.schemas import (
    DuplicateCheckRequest,
    DuplicateCheckResponse,
    ImportRequest,
    ImportResponse,
)
from finance_tracker.services import (
    BulkImportError,
    LedgerIntegrityError,
    QuotaExceededError,
    RuleEvaluationError,
    check_import_duplicates,
    import_transactions,
    record_transactions,
)
from finance_tracker.utils import raise_bad_request, raise_internal_error, raise_too_many_requests

router = APIRouter(prefix="/transactions/import", tags=["imports"])
logger = get_logger(__name__)


@router.post("", response_model=ImportResponse, status_code=status.HTTP_201_CREATED)
async def import_batch(
    request: ImportRequest,
    db: DbSession,
    user_id: CurrentUserId,
) -> ImportResponse:
    """Import normalized rows. All imported rows are committed together."""
    try:
        async with async_log_timing("import_transactions", logger=logger, user_id=str(user_id)) as timing:
            response = await import_transactions(db, user_id, request)
            timing.update(rows=len(request.transactions), imported=response.imported)
    except BulkImportError as e:
        await db.rollback()
        detail = f"{e}: {'; '.join(e.errors)}" if e.errors else str(e)
        raise_bad_request(detail, cause=e)
    except QuotaExceededError as e:
        await db.rollback()
        logger.info("Import rejected by usage quota", user_id=str(user_id), current=e.current, limit=e.limit)
        raise_too_many_requests(str(e), cause=e)
    except RuleEvaluationError as e:
        await db.rollback()
        raise_bad_request(str(e), cause=e)
    except LedgerIntegrityError as e:
        await db.rollback()
        logger.error("Ledger integrity violation", user_id=str(user_id), error=str(e))
        raise_internal_error("Failed to import transactions", cause=e)

    await db.commit()
    await record_transactions(db, user_id, response.imported)
    return response


@router.post("/check-duplicates", response_model=DuplicateCheckResponse)
async def check_duplicates(
    request: DuplicateCheckRequest,
    db: DbSession,
    user_id: CurrentUserId,
) -> DuplicateCheckResponse:
    """Report rows that match an existing transaction on date, amount and account."""
    return await check_import_duplicates(db, user_id, request)
