"""Transaction ingestion pipeline.

Sequences a proposed transaction through rule processing, duplicate
detection, persistence and the balance ledger:

    received -> rule-processed -> duplicate-checked -> (rejected | committed) -> ledger-applied

Every function here only flushes. The caller commits once, so a replace
(reverse old, soft-delete old, insert new, apply new) is one database
transaction and rolls back as a unit.
"""

import enum
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from finance_tracker.logger import get_logger
from finance_tracker.models import (
    Account,
    Category,
    DuplicateStatus,
    Transaction,
    TransactionType,
)
from finance_tracker.schemas.automation_rule import AppliedRule
from finance_tracker.schemas.transaction import TransactionCreate, TransactionUpdate
from finance_tracker.services.deduplication import DuplicateDetector, DuplicateMatch
from finance_tracker.services.ledger import apply_transaction, apply_transaction_balance
from finance_tracker.services.rules import apply_automation_rules

logger = get_logger(__name__)

# Fields whose change alters the ledger effect of a transaction
LEDGER_FIELDS = ("type", "account_id", "amount", "transfer_to_account_id")

# An explicit null cannot clear these
REQUIRED_FIELDS = {"date", "amount", "description", "type", "account_id", "is_reconciled", "duplicate_status"}


class IngestionError(Exception):
    """Base exception for ingestion errors."""

    pass


class TransactionValidationError(IngestionError):
    """Candidate is inconsistent or references unknown accounts/categories."""

    pass


class TransactionNotFoundError(IngestionError):
    """Transaction does not exist, is deleted, or belongs to another user."""

    pass


class TransactionConflictError(IngestionError):
    """Transaction's ledger fields changed underneath this request."""

    pass


class IngestionState(str, enum.Enum):
    RECEIVED = "received"
    RULE_PROCESSED = "rule-processed"
    DUPLICATE_CHECKED = "duplicate-checked"
    REJECTED = "rejected"
    COMMITTED = "committed"
    LEDGER_APPLIED = "ledger-applied"


@dataclass
class IngestionResult:
    """Terminal outcome of one ingestion request."""

    state: IngestionState
    transaction: Transaction | None = None
    duplicate: DuplicateMatch | None = None
    applied_rules: list[AppliedRule] = field(default_factory=list)

    @property
    def is_duplicate(self) -> bool:
        return self.state == IngestionState.REJECTED


def _log_state(state: IngestionState, user_id: UUID, **context) -> None:
    logger.info("Ingestion state", state=state.value, user_id=str(user_id), **context)


async def validate_references(
    db: AsyncSession,
    user_id: UUID,
    *,
    txn_type: TransactionType,
    account_id: UUID,
    transfer_to_account_id: UUID | None,
    category_id: UUID | None,
) -> None:
    """
    Check transfer consistency and that referenced rows belong to the user.

    Raises:
        TransactionValidationError: On any violation
    """
    if txn_type == TransactionType.TRANSFER:
        if transfer_to_account_id is None:
            raise TransactionValidationError("Transfer requires a destination account")
        if transfer_to_account_id == account_id:
            raise TransactionValidationError("Transfer destination must differ from the source account")

    account_ids = {account_id}
    if transfer_to_account_id is not None:
        account_ids.add(transfer_to_account_id)

    result = await db.execute(
        select(Account.id)
        .where(Account.id.in_(account_ids))
        .where(Account.user_id == user_id)
        .where(Account.deleted_at.is_(None))
    )
    found = set(result.scalars().all())
    for missing in sorted(account_ids - found, key=str):
        raise TransactionValidationError(f"Account {missing} not found")

    if category_id is not None:
        result = await db.execute(
            select(Category.id)
            .where(Category.id == category_id)
            .where(Category.user_id == user_id)
            .where(Category.deleted_at.is_(None))
        )
        if result.scalar_one_or_none() is None:
            raise TransactionValidationError(f"Category {category_id} not found")


async def get_transaction(
    db: AsyncSession,
    user_id: UUID,
    transaction_id: UUID,
    *,
    for_update: bool = False,
) -> Transaction:
    """Fetch a live (non-deleted) transaction owned by the user."""
    query = (
        select(Transaction)
        .where(Transaction.id == transaction_id)
        .where(Transaction.user_id == user_id)
        .where(Transaction.deleted_at.is_(None))
    )
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query)
    txn = result.scalar_one_or_none()
    if txn is None:
        raise TransactionNotFoundError(f"Transaction {transaction_id} not found")
    return txn


async def _claim_deletion(db: AsyncSession, txn: Transaction) -> bool:
    """Mark the row deleted only if it is still live. False when another request got there first."""
    deleted_at = datetime.now(UTC)
    result = await db.execute(
        update(Transaction)
        .where(Transaction.id == txn.id)
        .where(Transaction.deleted_at.is_(None))
        .values(deleted_at=deleted_at)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        return False
    set_committed_value(txn, "deleted_at", deleted_at)
    return True


async def _soft_delete(db: AsyncSession, txn: Transaction) -> None:
    """
    Mark the row deleted and reverse its ledger effect once.

    Raises:
        TransactionNotFoundError: The row was deleted concurrently
    """
    if not await _claim_deletion(db, txn):
        raise TransactionNotFoundError(f"Transaction {txn.id} not found")
    await apply_transaction(db, txn, reverse=True)


def _ledger_matches(effect: tuple[TransactionType, UUID, Decimal, UUID | None]) -> list:
    txn_type, account_id, amount, transfer_to_account_id = effect
    return [
        Transaction.type == txn_type,
        Transaction.account_id == account_id,
        Transaction.amount == amount,
        Transaction.transfer_to_account_id.is_(None)
        if transfer_to_account_id is None
        else Transaction.transfer_to_account_id == transfer_to_account_id,
    ]


def _build_transaction(user_id: UUID, candidate: TransactionCreate, import_id: UUID | None) -> Transaction:
    data = candidate.model_dump(exclude={"applied_rules"})
    return Transaction(
        user_id=user_id,
        import_id=import_id,
        applied_rules=[rule.model_dump(mode="json") for rule in candidate.applied_rules],
        **data,
    )


async def ingest_transaction(
    db: AsyncSession,
    user_id: UUID,
    candidate: TransactionCreate,
    *,
    force: bool = False,
    replace_id: UUID | None = None,
    import_id: UUID | None = None,
    detector: DuplicateDetector | None = None,
    confirm_only_matches: bool = False,
) -> IngestionResult:
    """
    Run one candidate through the full pipeline.

    Args:
        db: Database session (flushed, not committed)
        user_id: Owner of the transaction
        candidate: Proposed transaction with resolved ids
        force: Skip duplicate detection and mark the row a confirmed duplicate
        replace_id: Supersede this existing transaction (also skips detection)
        import_id: Import batch the row belongs to; rows of the same batch
            never count as duplicates of each other
        detector: Duplicate detector override
        confirm_only_matches: With ``force``, still run detection and mark
            the row confirmed only when it matches an existing record

    Returns:
        IngestionResult in state ``rejected`` (duplicate found, no side
        effects) or ``ledger-applied``

    Raises:
        RuleEvaluationError: A rule has a malformed condition
        TransactionValidationError: Inconsistent candidate
        TransactionNotFoundError: ``replace_id`` does not name a live transaction
    """
    detector = detector or DuplicateDetector()
    _log_state(IngestionState.RECEIVED, user_id, source=candidate.source)

    # Rules already applied by a preview step are not re-run
    if candidate.applied_rules:
        processed = candidate
    else:
        processed = (await apply_automation_rules(db, user_id, candidate)).result
    _log_state(IngestionState.RULE_PROCESSED, user_id, rules_applied=len(processed.applied_rules))

    await validate_references(
        db,
        user_id,
        txn_type=processed.type,
        account_id=processed.account_id,
        transfer_to_account_id=processed.transfer_to_account_id,
        category_id=processed.category_id,
    )

    forced_match: DuplicateMatch | None = None
    if force and confirm_only_matches:
        forced_match = await detector.find_duplicate(db, user_id, processed, exclude_import_id=import_id)
        _log_state(IngestionState.DUPLICATE_CHECKED, user_id, duplicate=forced_match is not None, forced=True)
    elif not force and replace_id is None:
        duplicate = await detector.find_duplicate(db, user_id, processed, exclude_import_id=import_id)
        _log_state(IngestionState.DUPLICATE_CHECKED, user_id, duplicate=duplicate is not None)
        if duplicate is not None:
            _log_state(IngestionState.REJECTED, user_id, match_id=str(duplicate.existing.id))
            return IngestionResult(
                state=IngestionState.REJECTED,
                duplicate=duplicate,
                applied_rules=list(processed.applied_rules),
            )

    if replace_id is not None:
        original = await get_transaction(db, user_id, replace_id, for_update=True)
        await _soft_delete(db, original)
        logger.info("Superseded transaction reversed", user_id=str(user_id), transaction_id=str(replace_id))

    txn = _build_transaction(user_id, processed, import_id)
    if force and (forced_match is not None or not confirm_only_matches):
        txn.duplicate_status = DuplicateStatus.CONFIRMED
        if forced_match is not None and txn.duplicate_of is None:
            txn.duplicate_of = forced_match.existing.id
    db.add(txn)
    await db.flush()
    _log_state(IngestionState.COMMITTED, user_id, transaction_id=str(txn.id))

    await apply_transaction(db, txn)
    _log_state(IngestionState.LEDGER_APPLIED, user_id, transaction_id=str(txn.id))

    return IngestionResult(
        state=IngestionState.LEDGER_APPLIED,
        transaction=txn,
        applied_rules=list(processed.applied_rules),
    )


async def update_transaction(
    db: AsyncSession,
    user_id: UUID,
    transaction_id: UUID,
    update_data: TransactionUpdate,
) -> Transaction:
    """
    Apply a partial update. When a ledger field changes the old effect is
    reversed and the new one applied, each exactly once. Rules are not re-run.

    Raises:
        TransactionNotFoundError: No live transaction with this id
        TransactionValidationError: The updated values are inconsistent
        TransactionConflictError: Another request changed the ledger fields first
    """
    txn = await get_transaction(db, user_id, transaction_id, for_update=True)
    old_effect: tuple[TransactionType, UUID, Decimal, UUID | None] = (
        txn.type,
        txn.account_id,
        txn.amount,
        txn.transfer_to_account_id,
    )

    changes = {
        name: value
        for name, value in update_data.model_dump(exclude_unset=True).items()
        if value is not None or name not in REQUIRED_FIELDS
    }
    # A new destination is a new transfer pair
    if "transfer_to_account_id" in changes and changes["transfer_to_account_id"] != txn.transfer_to_account_id:
        changes["transfer_id"] = uuid4() if changes["transfer_to_account_id"] is not None else None

    new_effect = tuple(changes.get(name, getattr(txn, name)) for name in LEDGER_FIELDS)
    await validate_references(
        db,
        user_id,
        txn_type=new_effect[0],
        account_id=new_effect[1],
        transfer_to_account_id=new_effect[3],
        category_id=changes.get("category_id", txn.category_id),
    )

    ledger_changed = new_effect != old_effect
    if ledger_changed:
        ledger_values = {name: changes[name] for name in LEDGER_FIELDS if name in changes}
        result = await db.execute(
            update(Transaction)
            .where(Transaction.id == txn.id)
            .where(Transaction.deleted_at.is_(None))
            .where(*_ledger_matches(old_effect))
            .values(**ledger_values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise TransactionConflictError(f"Transaction {txn.id} was modified concurrently")
        for field_name, value in ledger_values.items():
            set_committed_value(txn, field_name, value)

    for field_name, value in changes.items():
        if not ledger_changed or field_name not in LEDGER_FIELDS:
            setattr(txn, field_name, value)

    if ledger_changed:
        await apply_transaction_balance(db, *old_effect, reverse=True)
        await apply_transaction(db, txn)
        logger.info("Transaction ledger effect re-applied", transaction_id=str(txn.id))

    await db.flush()
    return txn


async def delete_transaction(db: AsyncSession, user_id: UUID, transaction_id: UUID) -> Transaction:
    """Soft delete a transaction and reverse its balance effect."""
    txn = await get_transaction(db, user_id, transaction_id, for_update=True)
    await _soft_delete(db, txn)
    await db.flush()
    logger.info("Transaction deleted", user_id=str(user_id), transaction_id=str(transaction_id))
    return txn


async def bulk_delete_transactions(db: AsyncSession, user_id: UUID, transaction_ids: Sequence[UUID]) -> int:
    """
    Soft delete every live transaction among ``transaction_ids``.

    Unknown or already deleted ids are ignored; reversal happens once per row.

    Raises:
        TransactionNotFoundError: If none of the ids names a live transaction
    """
    result = await db.execute(
        select(Transaction)
        .where(Transaction.id.in_(set(transaction_ids)))
        .where(Transaction.user_id == user_id)
        .where(Transaction.deleted_at.is_(None))
        .with_for_update()
    )
    deleted = 0
    for txn in result.scalars().all():
        # Rows deleted by a concurrent request are skipped, not reversed again
        if await _claim_deletion(db, txn):
            await apply_transaction(db, txn, reverse=True)
            deleted += 1
    if not deleted:
        raise TransactionNotFoundError("No transactions found")
    await db.flush()

    logger.info("Transactions bulk deleted", user_id=str(user_id), count=deleted)
    return deleted
