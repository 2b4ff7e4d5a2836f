"""Entity resolution: sisters, communities, dates, years and journey stages."""
from __future__ import annotations

import re
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import structlog
from rapidfuzz.distance import Levenshtein

from api.features.records.repository import RecordsRepository
from nlq.outcome import StageOutcome
from nlq.stages import detect_stage
from nlq.text import fold
from nlq.types import EntityBag

DATE_RE = re.compile(r"\b(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{4})\b")
YEAR_RES: Tuple[re.Pattern, ...] = (
    re.compile(r"năm\s+(\d{4})\b", re.IGNORECASE),
    re.compile(r"\bin\s+(?:the\s+year\s+)?(\d{4})\b", re.IGNORECASE),
    re.compile(r"\byear\s+(\d{4})\b", re.IGNORECASE),
)

SISTER_NAME_FIELDS = ("birth_name", "saint_name", "code")
COMMUNITY_NAME_FIELDS = ("name", "code")

SISTER_HONORIFIC = r"(?:chị|sơ|nữ tu)\s+"
COMMUNITY_HONORIFIC = r"cộng\s*đoàn\s+"
_COMMUNITY_PREFIX_RE = re.compile(r"^cộng\s*đoàn\s*")
_WORD_RE = re.compile(r"\w+")

FUZZY_THRESHOLD = 0.7
FUZZY_MIN_LENGTH = 4

Candidate = Tuple[str, Dict[str, Any]]


def _identifiers(record: Dict[str, Any], fields: Sequence[str]) -> List[str]:
    return [f for f in (fold(record.get(name)) for name in fields) if f]


def _ranked(pairs: Iterable[Candidate]) -> List[Candidate]:
    return sorted(pairs, key=lambda p: (-len(p[0]), p[1].get("id") or 0))


def rank_identifiers(
    records: Iterable[Dict[str, Any]], fields: Sequence[str]
) -> List[Candidate]:
    """Every (identifier, record) pair, longest identifier first, ties by id.

    Ranking identifiers rather than records keeps "Tín 1" ahead of "Tín" even
    when the sister called "Tín" has a longer saint name or code.
    """
    return _ranked(
        (ident, record) for record in records for ident in _identifiers(record, fields)
    )


def find_mention(
    message: str, records: Iterable[Dict[str, Any]], fields: Sequence[str]
) -> Optional[Dict[str, Any]]:
    haystack = fold(message)
    for ident, record in rank_identifiers(records, fields):
        if ident in haystack:
            return record
    return None


def sister_short_names(record: Dict[str, Any]) -> List[str]:
    """Saint name and the given name (last token of the birth name)."""
    names = []
    saint = fold(record.get("saint_name"))
    if saint:
        names.append(saint)
    birth = fold(record.get("birth_name")).split()
    if birth:
        names.append(birth[-1])
    return names


def community_short_names(record: Dict[str, Any]) -> List[str]:
    name = _COMMUNITY_PREFIX_RE.sub("", fold(record.get("name")))
    return [name] if name else []


def find_addressed(
    message: str,
    records: Iterable[Dict[str, Any]],
    honorific: str,
    names: Callable[[Dict[str, Any]], List[str]],
) -> Optional[Dict[str, Any]]:
    """Match a short name written after an honorific, e.g. "chị Lan" or "sơ Maria"."""
    haystack = fold(message)
    pairs = _ranked((name, record) for record in records for name in names(record))
    for name, record in pairs:
        if re.search(honorific + re.escape(name) + r"(?!\w)", haystack):
            return record
    return None


def _windows(tokens: List[str], size: int) -> Iterable[str]:
    for start in range(len(tokens) - size + 1):
        yield " ".join(tokens[start:start + size])


def find_similar(
    message: str, records: Iterable[Dict[str, Any]], field: str
) -> Optional[Dict[str, Any]]:
    """Best typo-tolerant match of ``field`` against equally long runs of words.

    Only names of at least ``FUZZY_MIN_LENGTH`` characters take part, and the
    normalized Levenshtein similarity must exceed ``FUZZY_THRESHOLD``.
    """
    tokens = _WORD_RE.findall(fold(message))
    best: Optional[Dict[str, Any]] = None
    best_score = FUZZY_THRESHOLD
    for record in sorted(records, key=lambda r: r.get("id") or 0):
        name = " ".join(_WORD_RE.findall(fold(record.get(field))))
        if len(name) < FUZZY_MIN_LENGTH:
            continue
        for window in _windows(tokens, len(name.split())):
            score = Levenshtein.normalized_similarity(name, window)
            if score > best_score:
                best, best_score = record, score
    return best


def extract_date(message: str) -> Optional[str]:
    match = DATE_RE.search(message)
    if not match:
        return None
    day, month, year = (int(g) for g in match.groups())
    if not (1 <= day <= 31 and 1 <= month <= 12):
        return None
    return f"{day:02d}/{month:02d}/{year:04d}"


def extract_year(message: str) -> Optional[int]:
    for pattern in YEAR_RES:
        match = pattern.search(message)
        if match:
            return int(match.group(1))
    return None


def extract_literals(message: str) -> Dict[str, Any]:
    """Date, year and stage tags; needs no database access."""
    found: Dict[str, Any] = {}
    date = extract_date(message)
    if date:
        found["date"] = date
    year = extract_year(message)
    if year:
        found["year"] = year
    stage = detect_stage(message)
    if stage:
        found["stage"] = stage.code
        found["stage_label"] = stage.label
    return found


class EntityResolver:
    """Resolve the records a message mentions.

    A records-store failure is logged and degrades to a bag carrying only the
    literal tags; it is never raised to the caller.
    """

    def __init__(self, records: RecordsRepository, logger: Optional[Any] = None):
        self.records = records
        self.logger = logger or structlog.get_logger("nlq.entities")

    async def _lookup(self, message: str) -> Dict[str, Any]:
        found: Dict[str, Any] = {}
        sisters = await self.records.list_sister_candidates()
        sister = (
            find_mention(message, sisters, SISTER_NAME_FIELDS)
            or find_addressed(message, sisters, SISTER_HONORIFIC, sister_short_names)
            or find_similar(message, sisters, "birth_name")
        )
        if sister:
            found.update(
                sister_id=sister["id"],
                sister_name=sister.get("birth_name"),
                saint_name=sister.get("saint_name"),
            )
        communities = await self.records.list_community_candidates()
        community = (
            find_mention(message, communities, COMMUNITY_NAME_FIELDS)
            or find_addressed(
                message, communities, COMMUNITY_HONORIFIC, community_short_names
            )
            or find_similar(message, communities, "name")
        )
        if community:
            found.update(community_id=community["id"], community_name=community.get("name"))
        return found

    async def resolve(self, message: str) -> StageOutcome[EntityBag]:
        literals = extract_literals(message)
        try:
            records = await self._lookup(message)
        except Exception as e:
            self.logger.warning(
                "entity_lookup_failed", error=str(e), error_type=type(e).__name__
            )
            return StageOutcome(
                stage="entity_resolution",
                value=EntityBag(**literals),
                degraded=True,
                error=str(e),
            )
        bag = EntityBag(**records, **literals)
        self.logger.debug("entities_resolved", **bag.cache_fields())
        return StageOutcome(stage="entity_resolution", value=bag)
