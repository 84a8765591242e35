"""Pydantic schemas package."""

from finance_tracker.schemas.automation_rule import AppliedRule, RuleActions, RuleConditions
from finance_tracker.schemas.imports import (
    DuplicateCheckMatch,
    DuplicateCheckRequest,
    DuplicateCheckResponse,
    DuplicateCheckRow,
    ImportDuplicate,
    ImportRequest,
    ImportResponse,
    ImportRow,
)
from finance_tracker.schemas.transaction import (
    BulkDeleteRequest,
    BulkDeleteResponse,
    DuplicateConflictResponse,
    RulePreviewResponse,
    TransactionCreate,
    TransactionListResponse,
    TransactionResponse,
    TransactionUpdate,
)

__all__ = [
    "AppliedRule",
    "BulkDeleteRequest",
    "BulkDeleteResponse",
    "DuplicateCheckMatch",
    "DuplicateCheckRequest",
    "DuplicateCheckResponse",
    "DuplicateCheckRow",
    "DuplicateConflictResponse",
    "ImportDuplicate",
    "ImportRequest",
    "ImportResponse",
    "ImportRow",
    "RuleActions",
    "RuleConditions",
    "RulePreviewResponse",
    "TransactionCreate",
    "TransactionListResponse",
    "TransactionResponse",
    "TransactionUpdate",
]
