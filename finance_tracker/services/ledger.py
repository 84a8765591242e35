"""Balance ledger: applies or reverses a transaction's effect on account balances."""

from datetime import UTC, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from finance_tracker.logger import get_logger
from finance_tracker.models import Account, Transaction, TransactionType

logger = get_logger(__name__)


class LedgerIntegrityError(Exception):
    """A transaction references an account row that does not exist."""

    pass


async def adjust_account_balance(db: AsyncSession, account_id: UUID, delta: Decimal) -> None:
    """
    Atomically add ``delta`` (signed) to an account balance.

    Uses a single ``UPDATE ... SET balance = balance + :delta`` so concurrent
    ingestions against the same account cannot lose updates.

    Raises:
        LedgerIntegrityError: If the account does not exist
    """
    result = await db.execute(
        update(Account)
        .where(Account.id == account_id)
        .values(balance=Account.balance + delta, updated_at=datetime.now(UTC))
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise LedgerIntegrityError(f"Account {account_id} not found while adjusting balance")

    logger.info("Account balance adjusted", account_id=str(account_id), delta=str(delta))


def balance_effects(
    txn_type: TransactionType | str,
    account_id: UUID,
    amount: Decimal,
    transfer_to_account_id: UUID | None = None,
    *,
    reverse: bool = False,
) -> list[tuple[UUID, Decimal]]:
    """
    Compute the signed per-account deltas of a transaction.

    - expense: source -amount
    - income: source +amount
    - transfer: source -amount, destination +amount (nothing without a destination)

    ``reverse`` flips every sign. Unknown types have no effect.
    """
    sign = Decimal("-1") if reverse else Decimal("1")
    try:
        kind = TransactionType(txn_type)
    except ValueError:
        logger.warning("Unknown transaction type has no ledger effect", txn_type=str(txn_type))
        return []

    if kind == TransactionType.EXPENSE:
        return [(account_id, -amount * sign)]
    if kind == TransactionType.INCOME:
        return [(account_id, amount * sign)]
    if kind == TransactionType.TRANSFER:
        if transfer_to_account_id is None:
            logger.warning("Transfer without destination has no ledger effect", account_id=str(account_id))
            return []
        return [(account_id, -amount * sign), (transfer_to_account_id, amount * sign)]
    return []


async def apply_transaction_balance(
    db: AsyncSession,
    txn_type: TransactionType | str,
    account_id: UUID,
    amount: Decimal,
    transfer_to_account_id: UUID | None = None,
    reverse: bool = False,
) -> None:
    """Apply (or with ``reverse`` undo) a transaction's monetary effect.

    Must be called exactly once per lifecycle event: once on create, once
    reversed on delete or replace.
    """
    for target_account_id, delta in balance_effects(
        txn_type, account_id, amount, transfer_to_account_id, reverse=reverse
    ):
        await adjust_account_balance(db, target_account_id, delta)


async def apply_transaction(db: AsyncSession, txn: Transaction, *, reverse: bool = False) -> None:
    """Apply or reverse the ledger effect of a persisted transaction."""
    await apply_transaction_balance(
        db,
        txn.type,
        txn.account_id,
        txn.amount,
        txn.transfer_to_account_id,
        reverse=reverse,
    )
