"""Rule-based intent classification.

Every table here is ordered and the first match wins. Reordering
``INTENT_RULES`` changes which intent a message gets, and tests pin the order.
"""
from __future__ import annotations

import re
from typing import Dict, List, NamedTuple, Optional, Pattern, Tuple

from nlq.types import Intent, IntentResult, QuestionType


class WeightedPattern(NamedTuple):
    pattern: Pattern[str]
    weight: float


class IntentRule(NamedTuple):
    intent: Intent
    patterns: Tuple[WeightedPattern, ...]


def _p(regex: str, weight: float) -> WeightedPattern:
    return WeightedPattern(re.compile(regex, re.IGNORECASE), weight)


INTENT_RULES: Tuple[IntentRule, ...] = (
    # Anchored so that greetings only win when the message opens with one.
    IntentRule(
        Intent.GREETING,
        (
            _p(r"^(xin\s*)?chào\b", 1.0),
            _p(r"^(hello|hi|hey)\b", 1.0),
            _p(r"^(bạn\s+)?(có\s+)?khỏe không", 0.9),
        ),
    ),
    IntentRule(
        Intent.JOURNEY_INFO,
        (
            _p(r"hành trình\s*(ơn gọi)?", 1.0),
            _p(r"ơn gọi", 0.9),
            _p(r"giai đoạn", 0.9),
            _p(r"đang\s*(ở\s*)?(giai đoạn|bước)", 0.85),
            _p(r"khấn\s*(tạm|trọn|lần đầu|vĩnh viễn)?", 0.95),
            _p(r"nhà tập", 0.9),
            _p(r"tập viện", 0.9),
            _p(r"tiền tập", 0.9),
            _p(r"tìm hiểu\s*(ơn gọi)?", 0.85),
            _p(r"novitiate|postulancy|\bvows\b|vocation journey", 0.9),
            _p(r"\bai\s+(đang|đã)\s+(khấn|ở)", 0.8),
        ),
    ),
    IntentRule(
        Intent.SISTER_INFO,
        (
            _p(r"thông tin\s+(về\s+)?(chị|sơ|nữ tu)", 1.0),
            _p(r"danh\s*sách\s*(các\s+)?(nữ tu|chị|sơ)\b", 0.95),
            _p(r"\b(chị|sơ)\s+\w+", 0.95),
            _p(r"nữ tu\s+[^\W\d_]+", 0.95),
            _p(r"hồ sơ", 0.9),
            _p(r"cho\s+(tôi\s+)?biết\s+về", 0.85),
            _p(r"tìm\s+(thông tin\s+)?về", 0.85),
            _p(r"\bai\s+là\b", 0.7),
            _p(r"\b(profile|info)\b", 0.8),
            _p(r"tên\s+(thánh|thật|họ)", 0.85),
            _p(r"sinh\s+(ngày|năm|nơi|quê)", 0.8),
            _p(r"liên\s*(hệ|lạc)", 0.75),
        ),
    ),
    IntentRule(
        Intent.COMMUNITY_INFO,
        (
            _p(r"cộng\s*đoàn\s+[^\W\d_]+", 1.0),
            _p(r"danh\s*sách\s*(các\s+)?cộng\s*đoàn", 0.95),
            _p(r"nhà dòng", 0.85),
            _p(r"địa chỉ", 0.85),
            _p(r"thuộc\s+cộng\s*đoàn", 0.9),
            _p(r"thành viên", 0.9),
            _p(r"\bcommunit(y|ies)\b", 0.8),
        ),
    ),
    IntentRule(
        Intent.STATISTICS,
        (
            _p(r"thống kê", 1.0),
            _p(r"báo cáo", 0.95),
            _p(r"tổng\s*(số|cộng)", 0.9),
            _p(r"bao nhiêu", 0.95),
            _p(r"số\s*lượng", 0.9),
            _p(r"có\s+mấy", 0.85),
            _p(r"\bđếm\b", 0.85),
            _p(r"\b(report|stats|statistics|count)\b", 0.8),
            _p(r"phân\s*bổ", 0.85),
            _p(r"tỷ\s*lệ", 0.85),
            _p(r"trung\s*bình", 0.8),
        ),
    ),
    IntentRule(
        Intent.EDUCATION_INFO,
        (
            _p(r"học\s*vấn", 1.0),
            _p(r"bằng\s*cấp", 0.95),
            _p(r"trình\s*độ", 0.9),
            _p(r"tốt nghiệp", 0.9),
            _p(r"chuyên\s*ngành", 0.9),
            _p(r"cử\s*nhân|thạc\s*sĩ|tiến\s*sĩ", 0.95),
            _p(r"đại học|cao đẳng", 0.85),
            _p(r"\b(education|degree)\b", 0.8),
        ),
    ),
    IntentRule(
        Intent.HEALTH_INFO,
        (
            _p(r"sức\s*khỏe", 1.0),
            _p(r"\bbệnh\b", 0.9),
            _p(r"khám", 0.9),
            _p(r"điều\s*trị", 0.9),
            _p(r"thuốc", 0.85),
            _p(r"\bhealth\b", 0.8),
        ),
    ),
    IntentRule(
        Intent.MISSION_INFO,
        (
            _p(r"sứ\s*vụ", 1.0),
            _p(r"công\s*tác", 0.9),
            _p(r"hoạt\s*động\s*tông đồ", 0.85),
            _p(r"bổ\s*nhiệm", 0.85),
            _p(r"\bmissions?\b", 0.8),
        ),
    ),
    IntentRule(
        Intent.HELP,
        (
            _p(r"giúp", 1.0),
            _p(r"hướng\s*dẫn", 0.95),
            _p(r"bạn\s+là\s+ai", 0.95),
            _p(r"có thể\s*(hỏi|làm)\s*gì", 0.9),
            _p(r"\b(help|how to)\b", 0.8),
        ),
    ),
)


QUESTION_TYPE_RULES: Tuple[Tuple[QuestionType, Pattern[str]], ...] = (
    (
        QuestionType.COUNT,
        re.compile(r"bao nhiêu|\bmấy\b|số lượng|tổng số|\bđếm\b|how many|number of", re.I),
    ),
    (
        QuestionType.LIST,
        re.compile(r"danh sách|liệt kê|những ai|có ai|\blist\b|\bwhich\b", re.I),
    ),
    (QuestionType.DEFINITION, re.compile(r"là gì|nghĩa là|định nghĩa|what is", re.I)),
    (QuestionType.HOWTO, re.compile(r"như thế nào|làm sao|cách nào|\bhow\b", re.I)),
    (QuestionType.WHY, re.compile(r"tại sao|vì sao|lý do|\bwhy\b", re.I)),
    (QuestionType.LOCATION, re.compile(r"ở đâu|địa chỉ|nơi nào|\bwhere\b", re.I)),
    (QuestionType.TIME, re.compile(r"khi nào|lúc nào|ngày nào|năm nào|\bwhen\b", re.I)),
    (QuestionType.WHO, re.compile(r"ai là|người nào|chị nào|\bwho\b", re.I)),
    (QuestionType.COMPARISON, re.compile(r"so sánh|khác nhau|giống nhau|\bcompare\b", re.I)),
)


SUB_INTENT_RULES: Dict[Intent, Tuple[Tuple[str, Pattern[str]], ...]] = {
    Intent.JOURNEY_INFO: (
        ("current_stage", re.compile(r"đang ở|hiện tại|bây giờ", re.I)),
        ("stage_list", re.compile(r"danh sách|các giai đoạn", re.I)),
        ("stage_count", re.compile(r"bao nhiêu|mấy người|số lượng", re.I)),
        (
            "specific_stage",
            re.compile(r"khấn tạm|khấn trọn|nhà tập|tập viện|tiền tập|tìm hiểu", re.I),
        ),
    ),
    Intent.SISTER_INFO: (
        ("basic_info", re.compile(r"thông tin|hồ sơ|profile", re.I)),
        ("contact", re.compile(r"liên hệ|điện thoại|email", re.I)),
        ("search", re.compile(r"tìm|search", re.I)),
        ("list", re.compile(r"danh sách|liệt kê", re.I)),
    ),
    Intent.COMMUNITY_INFO: (
        ("list", re.compile(r"danh sách|tất cả|các cộng đoàn", re.I)),
        ("members", re.compile(r"thành viên|ai ở|có ai", re.I)),
        ("details", re.compile(r"thông tin|chi tiết|địa chỉ", re.I)),
    ),
    Intent.STATISTICS: (
        ("overview", re.compile(r"tổng quan|chung|overview", re.I)),
        ("by_stage", re.compile(r"theo giai đoạn|phân bổ", re.I)),
        ("by_community", re.compile(r"theo cộng đoàn", re.I)),
        ("trends", re.compile(r"xu hướng|biến động|thay đổi", re.I)),
    ),
}


SUBJECT_RULES: Tuple[Tuple[str, Pattern[str]], ...] = (
    (
        "sister",
        re.compile(
            r"nữ\s+tu|(?<!hồ )\bsơ\b|\bchị\b|thành viên|\bsisters?\b|\bnuns?\b|\bmembers?\b",
            re.I,
        ),
    ),
    (
        "community",
        re.compile(r"cộng\s*đoàn|\bdòng\b|\bcommunit(?:y|ies)\b|\bconvents?\b", re.I),
    ),
)

STOPWORDS = frozenset(
    {
        # Vietnamese
        "này", "của", "các", "những", "được", "trong", "không", "cho", "tôi",
        "biết", "với", "hay", "hoặc", "như", "thế", "nào", "một", "xin",
        "vui", "lòng", "hãy", "bạn", "đây", "kia",
        # English
        "the", "are", "there", "what", "how", "many", "who", "which", "and",
        "for", "with", "about", "this", "that", "please", "tell", "give",
        "show", "does", "have", "has", "all",
    }
)

_TOKEN_RE = re.compile(r"[^\W\d_]+")
MIN_KEYWORD_LENGTH = 3


def extract_keywords(message: str) -> List[str]:
    """Ordered, de-duplicated, lower-cased tokens of at least three letters."""
    keywords: List[str] = []
    seen = set()
    for token in _TOKEN_RE.findall(message.lower()):
        if len(token) < MIN_KEYWORD_LENGTH or token in STOPWORDS or token in seen:
            continue
        seen.add(token)
        keywords.append(token)
    return keywords


def detect_question_type(message: str) -> QuestionType:
    for question_type, pattern in QUESTION_TYPE_RULES:
        if pattern.search(message):
            return question_type
    return QuestionType.GENERAL


def detect_subjects(message: str) -> List[str]:
    """Record kinds mentioned by phrase; several Vietnamese terms are two-word."""
    return [name for name, pattern in SUBJECT_RULES if pattern.search(message)]


def detect_sub_intent(message: str, intent: Intent) -> Optional[str]:
    for name, pattern in SUB_INTENT_RULES.get(intent, ()):
        if pattern.search(message):
            return name
    return None


def match_intent(message: str) -> Tuple[Intent, float]:
    """Return the first intent whose patterns match and the matching weight."""
    for rule in INTENT_RULES:
        for candidate in rule.patterns:
            if candidate.pattern.search(message):
                return rule.intent, candidate.weight
    return Intent.GENERAL, 0.0


def classify_intent(message: str) -> IntentResult:
    intent, confidence = match_intent(message)
    return IntentResult(
        intent=intent,
        sub_intent=detect_sub_intent(message, intent),
        confidence=confidence,
        keywords=extract_keywords(message),
        subjects=detect_subjects(message),
        question_type=detect_question_type(message),
    )
