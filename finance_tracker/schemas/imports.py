"""Pydantic schemas for bulk import."""

import datetime as dt
from decimal import Decimal
from typing import Annotated
from uuid import UUID

from pydantic import BaseModel, Field

from finance_tracker.models.transaction import TransactionSource, TransactionType
from finance_tracker.schemas.transaction import TransactionResponse


class ImportRow(BaseModel):
    """One normalized row produced by the CSV column-mapping step.

    Carries either resolved ids or, with ``resolve_names``, display names.
    """

    date: dt.date
    time: dt.time | None = None
    amount: Annotated[Decimal, Field(gt=0, decimal_places=2)]
    description: Annotated[str, Field(min_length=1, max_length=500)]
    type: TransactionType
    notes: str | None = None
    payment_method: str | None = None
    source: str = TransactionSource.IMPORT.value
    account_id: UUID | None = None
    category_id: UUID | None = None
    transfer_to_account_id: UUID | None = None
    account: str | None = None
    category: str | None = None
    transfer_to_account: str | None = None


class ImportRequest(BaseModel):
    transactions: list[ImportRow]
    resolve_names: bool = False
    force: bool = False
    file_name: str | None = None


class ImportDuplicate(BaseModel):
    index: int
    match_id: UUID


class ImportResponse(BaseModel):
    import_id: UUID
    imported: int
    skipped: int
    errors: list[str] = Field(default_factory=list)
    duplicates: list[ImportDuplicate] = Field(default_factory=list)


class DuplicateCheckRow(BaseModel):
    date: dt.date
    amount: Decimal
    account: str


class DuplicateCheckRequest(BaseModel):
    transactions: list[DuplicateCheckRow] = Field(default_factory=list)


class DuplicateCheckMatch(BaseModel):
    index: int
    match: TransactionResponse


class DuplicateCheckResponse(BaseModel):
    duplicates: list[DuplicateCheckMatch] = Field(default_factory=list)
