"""Services package."""

from finance_tracker.services.deduplication import DuplicateDetector, DuplicateMatch, MatchKind
from finance_tracker.services.importer import BulkImportError, check_import_duplicates, import_transactions
from finance_tracker.services.ingestion import (
    IngestionError,
    IngestionResult,
    IngestionState,
    TransactionConflictError,
    TransactionNotFoundError,
    TransactionValidationError,
    bulk_delete_transactions,
    delete_transaction,
    get_transaction,
    ingest_transaction,
    update_transaction,
)
from finance_tracker.services.ledger import (
    LedgerIntegrityError,
    adjust_account_balance,
    apply_transaction,
    apply_transaction_balance,
    balance_effects,
)
from finance_tracker.services.rules import (
    RuleEvaluation,
    RuleEvaluationError,
    apply_actions,
    apply_automation_rules,
    evaluate_rules,
    matches_conditions,
)
from finance_tracker.services.usage import (
    QuotaExceededError,
    check_transaction_quota,
    get_monthly_transaction_count,
    record_transactions,
)

__all__ = [
    "BulkImportError",
    "DuplicateDetector",
    "DuplicateMatch",
    "IngestionError",
    "IngestionResult",
    "IngestionState",
    "LedgerIntegrityError",
    "MatchKind",
    "QuotaExceededError",
    "RuleEvaluation",
    "RuleEvaluationError",
    "TransactionConflictError",
    "TransactionNotFoundError",
    "TransactionValidationError",
    "adjust_account_balance",
    "apply_actions",
    "apply_automation_rules",
    "apply_transaction",
    "apply_transaction_balance",
    "balance_effects",
    "bulk_delete_transactions",
    "check_import_duplicates",
    "check_transaction_quota",
    "delete_transaction",
    "evaluate_rules",
    "get_monthly_transaction_count",
    "get_transaction",
    "ingest_transaction",
    "import_transactions",
    "matches_conditions",
    "record_transactions",
    "update_transaction",
]
