"""SQLAlchemy models package."""

from finance_tracker.models.account import Account, AccountType, Category, CategoryType
from finance_tracker.models.automation_rule import AutomationRule, ConditionLogic, RuleType
from finance_tracker.models.transaction import (
    DuplicateStatus,
    Transaction,
    TransactionSource,
    TransactionType,
)
from finance_tracker.models.usage import ImportBatch, ImportStatus, UsageTracking
from finance_tracker.models.user import User

__all__ = [
    "Account",
    "AccountType",
    "AutomationRule",
    "Category",
    "CategoryType",
    "ConditionLogic",
    "DuplicateStatus",
    "ImportBatch",
    "ImportStatus",
    "RuleType",
    "Transaction",
    "TransactionSource",
    "TransactionType",
    "UsageTracking",
    "User",
]
