import pytest

from nlq.intent.classifier import (
    INTENT_RULES,
    classify_intent,
    detect_question_type,
    detect_sub_intent,
    detect_subjects,
    extract_keywords,
    match_intent,
)
from nlq.types import Intent, QuestionType


class TestRuleOrder:
    def test_intent_table_order_is_pinned(self):
        assert [rule.intent for rule in INTENT_RULES] == [
            Intent.GREETING,
            Intent.JOURNEY_INFO,
            Intent.SISTER_INFO,
            Intent.COMMUNITY_INFO,
            Intent.STATISTICS,
            Intent.EDUCATION_INFO,
            Intent.HEALTH_INFO,
            Intent.MISSION_INFO,
            Intent.HELP,
        ]

    def test_general_is_not_a_rule(self):
        assert Intent.GENERAL not in {rule.intent for rule in INTENT_RULES}

    def test_earlier_rule_wins_when_several_match(self):
        # "giai đoạn" is a journey pattern, "thống kê" a statistics one.
        assert match_intent("Thống kê theo giai đoạn nhà tập")[0] == Intent.JOURNEY_INFO

    def test_greeting_wins_over_later_rules(self):
        assert classify_intent("Xin chào, cho tôi thống kê").intent == Intent.GREETING


class TestGreeting:
    @pytest.mark.parametrize("message", ["Xin chào", "chào bạn", "Hello there", "hi", "Hey!"])
    def test_greetings(self, message):
        result = classify_intent(message)
        assert result.intent == Intent.GREETING
        assert result.confidence == 1.0

    def test_greeting_must_open_the_message(self):
        assert classify_intent("Tôi muốn nói lời chào").intent != Intent.GREETING

    def test_greeting_word_inside_another_word_is_ignored(self):
        assert classify_intent("history of the convent").intent != Intent.GREETING


class TestIntents:
    @pytest.mark.parametrize(
        "message, intent",
        [
            ("Hành trình ơn gọi của chị Maria", Intent.JOURNEY_INFO),
            ("Ai đang ở giai đoạn nhà tập?", Intent.JOURNEY_INFO),
            ("Cho tôi thông tin về chị Maria", Intent.SISTER_INFO),
            ("Danh sách các nữ tu", Intent.SISTER_INFO),
            ("Danh sách các cộng đoàn", Intent.COMMUNITY_INFO),
            ("Thống kê tổng quan", Intent.STATISTICS),
            ("Có bao nhiêu nữ tu?", Intent.STATISTICS),
            ("Trình độ học vấn", Intent.EDUCATION_INFO),
            ("Tình hình sức khỏe", Intent.HEALTH_INFO),
            ("Sứ vụ hiện tại", Intent.MISSION_INFO),
            ("Hướng dẫn sử dụng", Intent.HELP),
        ],
    )
    def test_classification(self, message, intent):
        assert classify_intent(message).intent == intent

    def test_confidence_is_weight_of_first_matching_pattern(self):
        assert match_intent("Thống kê")[1] == 1.0
        assert match_intent("Có bao nhiêu?")[1] == 0.95

    def test_unmatched_message_is_general_with_zero_confidence(self):
        result = classify_intent("Thời tiết hôm nay thế nào")
        assert result.intent == Intent.GENERAL
        assert result.confidence == 0.0

    def test_english_count_question_is_left_for_the_adjuster(self):
        result = classify_intent("How many sisters are there?")
        assert result.intent == Intent.GENERAL
        assert result.question_type == QuestionType.COUNT


class TestQuestionTypeAndSubIntent:
    @pytest.mark.parametrize(
        "message, question_type",
        [
            ("Có bao nhiêu nữ tu?", QuestionType.COUNT),
            ("Liệt kê các cộng đoàn", QuestionType.LIST),
            ("Nhà tập là gì?", QuestionType.DEFINITION),
            ("Cộng đoàn ở đâu?", QuestionType.LOCATION),
            ("Khi nào chị khấn?", QuestionType.TIME),
            ("Tại sao vậy?", QuestionType.WHY),
            ("Which communities exist?", QuestionType.LIST),
            ("Xin chào", QuestionType.GENERAL),
        ],
    )
    def test_question_type(self, message, question_type):
        assert detect_question_type(message) == question_type

    def test_sub_intent_first_match(self):
        assert detect_sub_intent("Chị đang ở giai đoạn nào", Intent.JOURNEY_INFO) == "current_stage"
        assert detect_sub_intent("Thống kê theo cộng đoàn", Intent.STATISTICS) == "by_community"

    def test_sub_intent_absent_for_intents_without_rules(self):
        assert detect_sub_intent("Sứ vụ", Intent.MISSION_INFO) is None


class TestKeywords:
    def test_keywords_are_lowercase_deduplicated_and_ordered(self):
        assert extract_keywords("Sisters sisters COMMUNITY of the nuns") == [
            "sisters",
            "community",
            "nuns",
        ]

    def test_short_tokens_and_stopwords_are_dropped(self):
        assert extract_keywords("How many are there in it?") == []


class TestSubjects:
    @pytest.mark.parametrize(
        "message, expected",
        [
            ("Liệt kê các nữ tu", ["sister"]),
            ("Các sơ ở đâu", ["sister"]),
            ("Danh sách thành viên cộng đoàn", ["sister", "community"]),
            ("Which convents are open?", ["community"]),
            ("Liệt kê hồ sơ", []),
            ("Thời tiết hôm nay", []),
        ],
    )
    def test_detect_subjects(self, message, expected):
        assert detect_subjects(message) == expected

    def test_two_word_terms_survive_keyword_filtering(self):
        result = classify_intent("Liệt kê các nữ tu")
        assert "tu" not in result.keywords
        assert result.subjects == ["sister"]
