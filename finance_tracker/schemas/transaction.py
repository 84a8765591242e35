"""Pydantic schemas for transactions."""

import datetime as dt
from decimal import Decimal
from typing import Annotated, Any, Literal
from uuid import UUID

from pydantic import BaseModel, Field

from finance_tracker.models.transaction import DuplicateStatus, TransactionSource, TransactionType
from finance_tracker.schemas.automation_rule import AppliedRule
from finance_tracker.schemas.base import BaseResponse, ListResponse


class TransactionBase(BaseModel):
    """Fields shared by candidates and committed transactions."""

    date: dt.date
    time: dt.time | None = None
    amount: Annotated[Decimal, Field(gt=0, decimal_places=2)]
    description: Annotated[str, Field(min_length=1, max_length=500)]
    notes: str | None = None
    type: TransactionType
    account_id: UUID
    category_id: UUID | None = None
    transfer_to_account_id: UUID | None = None
    transfer_id: UUID | None = None
    payment_method: Annotated[str | None, Field(max_length=50)] = None
    source: Annotated[str, Field(min_length=1, max_length=50)] = TransactionSource.MANUAL.value
    confidence: Annotated[int | None, Field(ge=0, le=100)] = None
    raw_text: str | None = None
    parsed_data: dict[str, Any] | None = None
    is_reconciled: bool = False


class TransactionCreate(TransactionBase):
    """Candidate transaction entering the ingestion pipeline.

    A non-empty ``applied_rules`` marks a candidate whose rules were
    already applied by a preview step.
    """

    applied_rules: list[AppliedRule] = Field(default_factory=list)
    reconciled_at: dt.datetime | None = None
    duplicate_of: UUID | None = None


class TransactionUpdate(BaseModel):
    """Partial update of a committed transaction."""

    date: dt.date | None = None
    time: dt.time | None = None
    amount: Annotated[Decimal | None, Field(gt=0, decimal_places=2)] = None
    description: Annotated[str | None, Field(min_length=1, max_length=500)] = None
    notes: str | None = None
    type: TransactionType | None = None
    account_id: UUID | None = None
    category_id: UUID | None = None
    transfer_to_account_id: UUID | None = None
    payment_method: Annotated[str | None, Field(max_length=50)] = None
    is_reconciled: bool | None = None
    duplicate_status: DuplicateStatus | None = None


class TransactionResponse(TransactionBase, BaseResponse):
    """Committed transaction."""

    id: UUID
    user_id: UUID
    applied_rules: list[AppliedRule] | None = None
    duplicate_status: DuplicateStatus
    duplicate_of: UUID | None = None
    reconciled_at: dt.datetime | None = None
    import_id: UUID | None = None
    deleted_at: dt.datetime | None = None
    created_at: dt.datetime
    updated_at: dt.datetime


class TransactionListResponse(ListResponse[TransactionResponse]):
    """Paginated transaction list."""


class DuplicateConflictResponse(BaseModel):
    """Body returned with HTTP 409 when a candidate looks like an existing record."""

    duplicate: Literal[True] = True
    match: TransactionResponse


class RulePreviewResponse(BaseModel):
    """Rule engine output for a candidate that was not persisted."""

    transaction: TransactionCreate
    applied_rules: list[AppliedRule]


class BulkDeleteRequest(BaseModel):
    ids: Annotated[list[UUID], Field(min_length=1)]


class BulkDeleteResponse(BaseModel):
    success: bool = True
    deleted_count: int
