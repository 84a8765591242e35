"""Automation rule engine: condition matching, action application and rule chaining."""

import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from functools import lru_cache
from uuid import UUID, uuid4

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from finance_tracker.config import settings
from finance_tracker.logger import get_logger
from finance_tracker.models import AutomationRule, ConditionLogic
from finance_tracker.schemas.automation_rule import AppliedRule, RuleActions, RuleConditions
from finance_tracker.schemas.transaction import TransactionCreate

logger = get_logger(__name__)


class RuleEvaluationError(Exception):
    """A rule could not be evaluated (malformed regex or condition payload)."""

    pass


@dataclass
class RuleEvaluation:
    """Final candidate plus the ordered audit trail of rules that fired."""

    result: TransactionCreate
    applied_rules: list[AppliedRule] = field(default_factory=list)


@lru_cache(maxsize=256)
def _compile_regex(pattern: str) -> re.Pattern[str]:
    try:
        return re.compile(pattern, re.IGNORECASE)
    except re.error as exc:
        raise RuleEvaluationError(f"Invalid description_regex {pattern!r}: {exc}") from exc


def _contains_any(text: str | None, terms: list[str]) -> bool:
    if not text:
        return False
    folded = text.casefold()
    return any(term.casefold() in folded for term in terms)


def _evaluate_predicates(candidate: TransactionCreate, conditions: RuleConditions) -> list[bool]:
    """Evaluate every declared predicate kind. Absent or empty kinds are skipped."""
    results: list[bool] = []

    if conditions.description_contains:
        results.append(_contains_any(candidate.description, conditions.description_contains))

    if conditions.description_regex:
        regex = _compile_regex(conditions.description_regex)
        results.append(regex.search(candidate.description) is not None)

    if conditions.raw_text_contains:
        results.append(_contains_any(candidate.raw_text, conditions.raw_text_contains))

    if conditions.amount_between is not None:
        low, high = conditions.amount_between
        results.append(low <= candidate.amount <= high)

    if conditions.amount_equals is not None:
        results.append(candidate.amount == conditions.amount_equals)

    if conditions.from_account is not None:
        results.append(candidate.account_id == conditions.from_account)

    if conditions.to_account is not None:
        results.append(candidate.transfer_to_account_id == conditions.to_account)

    if conditions.source:
        results.append(candidate.source in conditions.source)

    if conditions.category is not None:
        results.append(candidate.category_id == conditions.category)

    return results


def matches_conditions(
    candidate: TransactionCreate,
    conditions: RuleConditions,
    logic: ConditionLogic = ConditionLogic.AND,
) -> bool:
    """Return True when the candidate satisfies the condition set.

    With ``AND`` every declared predicate kind must hold; with ``OR`` at
    least one must. An empty condition set matches everything.

    Raises:
        RuleEvaluationError: if ``description_regex`` does not compile
    """
    results = _evaluate_predicates(candidate, conditions)
    if not results:
        return True
    if logic == ConditionLogic.OR:
        return any(results)
    return all(results)


def apply_actions(
    candidate: TransactionCreate,
    actions: RuleActions,
    *,
    now: datetime | None = None,
) -> TransactionCreate:
    """Return a copy of the candidate with the action set applied."""
    updates: dict = {}

    if actions.set_type is not None:
        updates["type"] = actions.set_type

    # explicit null clears the category, absence leaves it alone
    if "set_category" in actions.model_fields_set:
        updates["category_id"] = actions.set_category

    if actions.set_account is not None:
        updates["account_id"] = actions.set_account

    if actions.link_to_account is not None:
        updates["transfer_to_account_id"] = actions.link_to_account
        updates["transfer_id"] = uuid4()

    if actions.auto_reconcile:
        updates["is_reconciled"] = True
        updates["reconciled_at"] = now or datetime.now(UTC)

    if actions.add_note:
        updates["notes"] = f"{candidate.notes}\n{actions.add_note}" if candidate.notes else actions.add_note

    return candidate.model_copy(update=updates)


def sort_rules(rules: Sequence[AutomationRule]) -> list[AutomationRule]:
    """Order rules by priority descending, ties broken by id."""
    return sorted(rules, key=lambda rule: (-rule.priority, str(rule.id)))


def _parse_rule(rule: AutomationRule) -> tuple[RuleConditions, RuleActions]:
    try:
        conditions = RuleConditions.model_validate(rule.conditions or {})
        actions = RuleActions.model_validate(rule.actions or {})
    except PydanticValidationError as exc:
        raise RuleEvaluationError(f"Automation rule '{rule.name}' is malformed: {exc}") from exc

    # A pre-bound transfer destination acts as an implicit link_to_account
    if rule.transfer_to_account_id is not None and actions.link_to_account is None:
        actions = RuleActions.model_validate(
            {**actions.model_dump(exclude_unset=True), "link_to_account": rule.transfer_to_account_id}
        )
    return conditions, actions


def evaluate_rules(candidate: TransactionCreate, rules: Sequence[AutomationRule]) -> RuleEvaluation:
    """Fold the candidate through every matching rule in priority order.

    Each rule is matched against the candidate as left by the rules before
    it, so earlier rules can enable later ones.
    """
    current = candidate
    applied: list[AppliedRule] = []

    for rule in sort_rules(rules):
        if not rule.is_active or rule.deleted_at is not None:
            continue

        conditions, actions = _parse_rule(rule)
        logic = rule.condition_logic if settings.rule_condition_logic_enforced else ConditionLogic.AND
        if not matches_conditions(current, conditions, logic):
            continue

        current = apply_actions(current, actions)
        applied.append(AppliedRule(rule_id=rule.id, rule_name=rule.name, actions=actions.as_audit()))
        logger.debug(
            "Automation rule applied",
            rule_id=str(rule.id),
            rule_name=rule.name,
            priority=rule.priority,
        )

    result = current.model_copy(update={"applied_rules": applied})
    return RuleEvaluation(result=result, applied_rules=applied)


async def get_active_rules(db: AsyncSession, user_id: UUID) -> list[AutomationRule]:
    """Fetch active, non-deleted rules for a user in evaluation order."""
    query = (
        select(AutomationRule)
        .where(AutomationRule.user_id == user_id)
        .where(AutomationRule.is_active == True)  # noqa: E712
        .where(AutomationRule.deleted_at.is_(None))
        .order_by(AutomationRule.priority.desc(), AutomationRule.id.asc())
    )
    result = await db.execute(query)
    return list(result.scalars().all())


async def apply_automation_rules(db: AsyncSession, user_id: UUID, candidate: TransactionCreate) -> RuleEvaluation:
    """Load the user's active rules and evaluate them against the candidate."""
    rules = await get_active_rules(db, user_id)
    if not rules:
        return RuleEvaluation(result=candidate, applied_rules=[])

    evaluation = evaluate_rules(candidate, rules)
    if evaluation.applied_rules:
        logger.info(
            "Automation rules matched",
            user_id=str(user_id),
            rules_evaluated=len(rules),
            rules_applied=len(evaluation.applied_rules),
        )
    return evaluation
