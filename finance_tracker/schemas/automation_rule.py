"""Pydantic schemas for automation rule condition and action sets."""

from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from finance_tracker.models.transaction import TransactionType


class RuleConditions(BaseModel):
    """Condition set of an automation rule.

    Every field is optional; an absent (or empty) predicate kind is not a filter.
    """

    model_config = ConfigDict(extra="ignore")

    description_contains: list[str] | None = None
    description_regex: str | None = None
    raw_text_contains: list[str] | None = None
    amount_between: tuple[Decimal, Decimal] | None = None
    amount_equals: Decimal | None = None
    from_account: UUID | None = None
    to_account: UUID | None = None
    source: list[str] | None = None
    category: UUID | None = None


class RuleActions(BaseModel):
    """Action set of an automation rule.

    ``set_category`` distinguishes "not specified" (absent from the payload)
    from "clear" (explicit null); check ``model_fields_set``.
    """

    model_config = ConfigDict(extra="ignore")

    set_type: TransactionType | None = None
    set_category: UUID | None = None
    set_account: UUID | None = None
    link_to_account: UUID | None = None
    auto_reconcile: bool | None = None
    add_note: str | None = None

    def as_audit(self) -> dict[str, Any]:
        """Actions as stored in the applied-rules audit entry."""
        return self.model_dump(mode="json", exclude_unset=True)


class AppliedRule(BaseModel):
    """Audit entry for a rule that fired during ingestion."""

    rule_id: UUID
    rule_name: str
    actions: dict[str, Any] = Field(default_factory=dict)
