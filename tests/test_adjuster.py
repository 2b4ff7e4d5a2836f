import pytest

from nlq.intent.adjuster import ADJUSTMENT_RULES, adjust_intent
from nlq.intent.classifier import classify_intent
from nlq.types import EntityBag, Intent, IntentResult, QuestionType


def general(question_type=QuestionType.GENERAL, subjects=()):
    return IntentResult(
        intent=Intent.GENERAL, question_type=question_type, subjects=list(subjects)
    )


class TestAdjustIntent:
    def test_rule_order_is_pinned(self):
        assert [rule.name for rule in ADJUSTMENT_RULES] == [
            "sister_entity",
            "community_entity",
            "stage_entity",
            "count_question",
            "list_subject",
        ]

    def test_sister_entity(self):
        result = adjust_intent(general(), EntityBag(sister_id=1))
        assert result.intent == Intent.SISTER_INFO
        assert result.adjusted_by == "sister_entity"

    def test_sister_beats_community(self):
        result = adjust_intent(general(), EntityBag(sister_id=1, community_id=2))
        assert result.intent == Intent.SISTER_INFO

    def test_community_entity(self):
        result = adjust_intent(general(), EntityBag(community_id=2))
        assert result.intent == Intent.COMMUNITY_INFO
        assert result.adjusted_by == "community_entity"

    def test_stage_entity(self):
        result = adjust_intent(general(), EntityBag(stage="novitiate"))
        assert result.intent == Intent.JOURNEY_INFO

    def test_count_question(self):
        result = adjust_intent(general(QuestionType.COUNT), EntityBag())
        assert result.intent == Intent.STATISTICS
        assert result.adjusted_by == "count_question"

    def test_list_question_about_sisters(self):
        result = adjust_intent(general(QuestionType.LIST, ["sister"]), EntityBag())
        assert result.intent == Intent.SISTER_INFO
        assert result.adjusted_by == "list_subject"

    def test_list_question_about_communities(self):
        result = adjust_intent(general(QuestionType.LIST, ["community"]), EntityBag())
        assert result.intent == Intent.COMMUNITY_INFO

    def test_list_question_without_a_subject_stays_general(self):
        result = adjust_intent(general(QuestionType.LIST), EntityBag())
        assert result.intent == Intent.GENERAL
        assert result.adjusted_by is None

    def test_non_general_intent_is_untouched(self):
        original = IntentResult(intent=Intent.HELP, question_type=QuestionType.COUNT)
        assert adjust_intent(original, EntityBag(sister_id=1)) is original

    def test_other_fields_survive_adjustment(self):
        original = IntentResult(
            intent=Intent.GENERAL,
            confidence=0.0,
            question_type=QuestionType.COUNT,
            keywords=["sisters"],
        )
        result = adjust_intent(original, EntityBag())
        assert result.keywords == ["sisters"]
        assert result.question_type == QuestionType.COUNT
        assert result.confidence == 0.0

    @pytest.mark.parametrize(
        "message, entities",
        [
            ("How many sisters are there?", EntityBag()),
            ("Which communities are open?", EntityBag()),
            ("Lan", EntityBag(sister_id=1)),
            ("xyz", EntityBag()),
            ("Thống kê", EntityBag(community_id=1)),
        ],
    )
    def test_adjustment_is_idempotent(self, message, entities):
        once = adjust_intent(classify_intent(message), entities)
        assert adjust_intent(once, entities) == once

    def test_english_count_question_becomes_statistics(self):
        result = adjust_intent(classify_intent("How many sisters are there?"), EntityBag())
        assert result.intent == Intent.STATISTICS

    @pytest.mark.parametrize(
        "message, expected",
        [
            ("Liệt kê các nữ tu", Intent.SISTER_INFO),
            ("Liệt kê các sơ", Intent.SISTER_INFO),
            ("Liệt kê các cộng đoàn", Intent.COMMUNITY_INFO),
            ("List all convents", Intent.COMMUNITY_INFO),
        ],
    )
    def test_list_questions_by_subject(self, message, expected):
        result = adjust_intent(classify_intent(message), EntityBag())
        assert result.intent == expected
        assert result.adjusted_by == "list_subject"

