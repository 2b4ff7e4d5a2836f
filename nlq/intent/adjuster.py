"""Refine a ``general`` intent using resolved entities and question shape."""
from __future__ import annotations

from typing import Callable, NamedTuple, Optional, Tuple

from nlq.types import EntityBag, Intent, IntentResult, QuestionType


class AdjustmentRule(NamedTuple):
    name: str
    decide: Callable[[IntentResult, EntityBag], Optional[Intent]]


def _by_sister(result: IntentResult, entities: EntityBag) -> Optional[Intent]:
    return Intent.SISTER_INFO if entities.has_sister() else None


def _by_community(result: IntentResult, entities: EntityBag) -> Optional[Intent]:
    return Intent.COMMUNITY_INFO if entities.has_community() else None


def _by_stage(result: IntentResult, entities: EntityBag) -> Optional[Intent]:
    return Intent.JOURNEY_INFO if entities.has_stage() else None


def _by_count_question(result: IntentResult, entities: EntityBag) -> Optional[Intent]:
    return Intent.STATISTICS if result.question_type == QuestionType.COUNT else None


def _by_list_subject(result: IntentResult, entities: EntityBag) -> Optional[Intent]:
    if result.question_type != QuestionType.LIST:
        return None
    if "sister" in result.subjects:
        return Intent.SISTER_INFO
    if "community" in result.subjects:
        return Intent.COMMUNITY_INFO
    return None


ADJUSTMENT_RULES: Tuple[AdjustmentRule, ...] = (
    AdjustmentRule("sister_entity", _by_sister),
    AdjustmentRule("community_entity", _by_community),
    AdjustmentRule("stage_entity", _by_stage),
    AdjustmentRule("count_question", _by_count_question),
    AdjustmentRule("list_subject", _by_list_subject),
)


def adjust_intent(result: IntentResult, entities: EntityBag) -> IntentResult:
    """Apply the first matching rule to a ``general`` result.

    Any other intent is returned untouched, which makes the function
    idempotent: once a rule fires the intent is no longer ``general``.
    """
    if result.intent != Intent.GENERAL:
        return result
    for rule in ADJUSTMENT_RULES:
        intent = rule.decide(result, entities)
        if intent is not None:
            return result.model_copy(update={"intent": intent, "adjusted_by": rule.name})
    return result
