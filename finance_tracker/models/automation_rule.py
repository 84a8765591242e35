"""Automation rule model."""

from __future__ import annotations

import enum
from uuid import UUID

from sqlalchemy import Boolean, Enum, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from finance_tracker.database import Base
from finance_tracker.models.base import JSONType, SoftDeleteMixin, TimestampMixin, UserOwnedMixin, UUIDMixin


class RuleType(str, enum.Enum):
    GENERAL = "general"
    ACCOUNT_DETECTION = "account_detection"
    TRANSFER = "transfer"


class ConditionLogic(str, enum.Enum):
    AND = "and"
    OR = "or"


class AutomationRule(Base, UUIDMixin, UserOwnedMixin, TimestampMixin, SoftDeleteMixin):
    """
    Standing instruction applied to incoming transactions.

    Active, non-deleted rules are evaluated in descending priority.
    ``conditions`` and ``actions`` hold the JSON condition and action sets.
    """

    __tablename__ = "automation_rules"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    rule_type: Mapped[RuleType] = mapped_column(
        Enum(
            RuleType,
            name="rule_type_enum",
            values_callable=lambda obj: [e.value for e in obj],
        ),
        nullable=False,
        default=RuleType.GENERAL,
    )
    condition_logic: Mapped[ConditionLogic] = mapped_column(
        Enum(
            ConditionLogic,
            name="condition_logic_enum",
            values_callable=lambda obj: [e.value for e in obj],
        ),
        nullable=False,
        default=ConditionLogic.AND,
    )
    conditions: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    actions: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    transfer_to_account_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("accounts.id"), nullable=True
    )
    prompt_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    match_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    def __repr__(self) -> str:
        return f"<AutomationRule {self.name} (priority={self.priority})>"
