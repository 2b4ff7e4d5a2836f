"""In-memory stand-ins for the records store, turn storage and chat model."""
from __future__ import annotations

import asyncio
import uuid
from collections import Counter
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from nlq.types import ConversationTurn


class RecordsUnavailable(RuntimeError):
    pass


class FakeRecordsRepository:
    """Mirrors RecordsRepository; every call is counted in ``calls``."""

    def __init__(
        self,
        sisters: List[Dict[str, Any]],
        communities: List[Dict[str, Any]],
        journeys: Optional[List[Dict[str, Any]]] = None,
        education: Optional[List[Dict[str, Any]]] = None,
        health: Optional[List[Dict[str, Any]]] = None,
        missions: Optional[List[Dict[str, Any]]] = None,
    ):
        self.sisters = sisters
        self.communities = communities
        self.journeys = journeys or []
        self.education = education or []
        self.health = health or []
        self.missions = missions or []
        self.calls: Counter = Counter()
        self.fail = False

    @property
    def total_calls(self) -> int:
        return sum(self.calls.values())

    def _hit(self, name: str) -> None:
        self.calls[name] += 1
        if self.fail:
            raise RecordsUnavailable("records store unreachable")

    def _community_name(self, community_id):
        for c in self.communities:
            if c["id"] == community_id:
                return c["name"]
        return None

    async def list_sister_candidates(self):
        self._hit("list_sister_candidates")
        keys = ("id", "birth_name", "saint_name", "code")
        return [{k: s.get(k) for k in keys} for s in self.sisters]

    async def list_community_candidates(self):
        self._hit("list_community_candidates")
        return [{k: c.get(k) for k in ("id", "name", "code")} for c in self.communities]

    async def get_sister(self, sister_id):
        self._hit("get_sister")
        for s in self.sisters:
            if s["id"] == sister_id:
                return {**s, "community_name": self._community_name(s.get("current_community_id"))}
        return None

    async def list_journey(self, sister_id):
        self._hit("list_journey")
        rows = [j for j in self.journeys if j["sister_id"] == sister_id]
        rows.sort(key=lambda j: j["start_date"])
        return [{**j, "community_name": self._community_name(j.get("community_id"))} for j in rows]

    async def list_sisters_in_stage(self, stage):
        self._hit("list_sisters_in_stage")
        ids = {j["sister_id"]: j["start_date"] for j in self.journeys
               if j["stage"] == stage and j.get("end_date") is None}
        return [
            {**{k: s.get(k) for k in ("id", "code", "birth_name", "saint_name")},
             "start_date": ids[s["id"]]}
            for s in self.sisters if s["id"] in ids
        ]

    async def stage_distribution(self):
        self._hit("stage_distribution")
        current: Dict[str, set] = {}
        for j in self.journeys:
            if j.get("end_date") is None:
                current.setdefault(j["stage"], set()).add(j["sister_id"])
        return [{"stage": stage, "count": len(ids)} for stage, ids in current.items()]

    async def count_sisters(self):
        self._hit("count_sisters")
        return len(self.sisters)

    async def count_communities(self):
        self._hit("count_communities")
        return len(self.communities)

    async def sisters_by_community(self):
        self._hit("sisters_by_community")
        return [
            {"id": c["id"], "name": c["name"],
             "count": sum(1 for s in self.sisters if s.get("current_community_id") == c["id"])}
            for c in self.communities
        ]

    async def get_community(self, community_id):
        self._hit("get_community")
        for c in self.communities:
            if c["id"] == community_id:
                members = sum(1 for s in self.sisters if s.get("current_community_id") == c["id"])
                return {**c, "member_count": members}
        return None

    async def list_community_members(self, community_id):
        self._hit("list_community_members")
        return [
            {k: s.get(k) for k in ("id", "code", "birth_name", "saint_name")}
            for s in self.sisters if s.get("current_community_id") == community_id
        ]

    async def list_communities(self):
        self._hit("list_communities")
        return [
            {**c, "member_count": sum(1 for s in self.sisters if s.get("current_community_id") == c["id"])}
            for c in self.communities
        ]

    async def recent_journey_updates(self, limit=5):
        self._hit("recent_journey_updates")
        rows = sorted(self.journeys, key=lambda j: j["created_at"], reverse=True)[:limit]
        names = {s["id"]: s for s in self.sisters}
        return [
            {"stage": j["stage"], "created_at": j["created_at"],
             "birth_name": names[j["sister_id"]]["birth_name"],
             "saint_name": names[j["sister_id"]].get("saint_name")}
            for j in rows
        ]

    async def journey_entries_in_year(self, year):
        self._hit("journey_entries_in_year")
        names = {s["id"]: s for s in self.sisters}
        return [
            {"stage": j["stage"], "start_date": j["start_date"], "sister_id": j["sister_id"],
             "birth_name": names[j["sister_id"]]["birth_name"],
             "saint_name": names[j["sister_id"]].get("saint_name")}
            for j in self.journeys if j["start_date"].year == year
        ]

    async def list_education(self, sister_id):
        self._hit("list_education")
        return [e for e in self.education if e["sister_id"] == sister_id]

    async def education_level_counts(self):
        self._hit("education_level_counts")
        counts = Counter(e.get("level") for e in self.education)
        return [{"level": level, "count": n} for level, n in counts.most_common()]

    async def list_health_records(self, sister_id, limit=3):
        self._hit("list_health_records")
        return [h for h in self.health if h["sister_id"] == sister_id][:limit]

    async def health_status_counts(self):
        self._hit("health_status_counts")
        counts = Counter(h.get("general_health") for h in self.health)
        return [{"general_health": k, "count": n} for k, n in counts.most_common()]

    async def list_missions(self, sister_id):
        self._hit("list_missions")
        return [m for m in self.missions if m["sister_id"] == sister_id]

    async def active_mission_fields(self):
        self._hit("active_mission_fields")
        counts = Counter(m["field"] for m in self.missions if m.get("end_date") is None)
        return [{"field": k, "count": n} for k, n in counts.most_common()]


class FakeTurnRepository:
    """Mirrors ChatTurnRepository with rows shaped like the chat_turn table."""

    def __init__(self):
        self.rows: List[Dict[str, Any]] = []
        self.fail_create = False
        self.fail_reads = False
        self._clock = datetime(2025, 1, 1, tzinfo=timezone.utc)

    async def create(self, turn: ConversationTurn) -> str:
        if self.fail_create:
            raise ConnectionError("chat_turn insert failed")
        turn_id = turn.id or str(uuid.uuid4())
        self._clock += timedelta(seconds=1)
        self.rows.append(
            {
                "id": turn_id,
                "seq": len(self.rows) + 1,
                "conversation_id": turn.conversation_id,
                "user_id": turn.user_id,
                "user_message": turn.user_message,
                "ai_response": turn.ai_response,
                "context_used": turn.context_used.to_storage(),
                "entities_extracted": turn.entities_extracted.to_storage(),
                "intent": turn.intent.value,
                "sub_intent": turn.sub_intent,
                "confidence": turn.confidence,
                "tokens_used": turn.tokens_used,
                "cost": turn.cost,
                "is_helpful": None,
                "feedback": None,
                "feedback_at": None,
                "created_at": self._clock,
            }
        )
        return turn_id

    def _ordered(self, conversation_id: str) -> List[Dict[str, Any]]:
        if self.fail_reads:
            raise ConnectionError("chat_turn read failed")
        rows = [r for r in self.rows if r["conversation_id"] == conversation_id]
        return sorted(rows, key=lambda r: (r["created_at"], r["seq"]))

    async def fetch_recent(self, conversation_id: str, limit: int = 5):
        return self._ordered(conversation_id)[-limit:]

    async def fetch_all(self, conversation_id: str):
        return self._ordered(conversation_id)

    async def delete(self, conversation_id: str) -> int:
        before = len(self.rows)
        self.rows = [r for r in self.rows if r["conversation_id"] != conversation_id]
        return before - len(self.rows)

    async def update_feedback(self, turn_id: str, is_helpful: bool, feedback=None) -> bool:
        for row in self.rows:
            if row["id"] == turn_id and row["feedback_at"] is None:
                row.update(is_helpful=is_helpful, feedback=feedback, feedback_at=datetime.now(timezone.utc))
                return True
        return False


class FailingChatModel:
    """Chat model whose every call fails like an unreachable provider."""

    def __init__(self):
        self.calls = 0

    async def ainvoke(self, prompt, *args, **kwargs):
        self.calls += 1
        raise ConnectionError("provider unreachable")


class SlowChatModel:
    def __init__(self, delay: float = 5.0):
        self.delay = delay
        self.calls = 0

    async def ainvoke(self, prompt, *args, **kwargs):
        self.calls += 1
        await asyncio.sleep(self.delay)
        raise AssertionError("should have timed out")


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def seed_records() -> FakeRecordsRepository:
    sisters = [
        {
            "id": 1, "code": "NT001", "birth_name": "Lan", "saint_name": "Maria",
            "religious_name": None, "date_of_birth": date(1990, 3, 5),
            "place_of_birth": "Huế", "phone": None, "email": "lan@example.org",
            "status": "active", "current_community_id": 1,
        },
        {
            "id": 2, "code": "NT002", "birth_name": "Lan Anh", "saint_name": "Teresa",
            "religious_name": None, "date_of_birth": None,
            "place_of_birth": None, "phone": "0900000002", "email": None,
            "status": "active", "current_community_id": 2,
        },
        {
            "id": 3, "code": "NT003", "birth_name": "Hoa", "saint_name": "Anê",
            "religious_name": None, "date_of_birth": date(1995, 11, 20),
            "place_of_birth": "Vinh", "phone": None, "email": None,
            "status": "active", "current_community_id": 1,
        },
    ]
    communities = [
        {"id": 1, "code": "CD01", "name": "Thiện Bản", "address": "12 Lê Lợi, Huế",
         "phone": None, "email": None, "established_date": date(1950, 8, 15)},
        {"id": 2, "code": "CD02", "name": "Hòa Bình", "address": None,
         "phone": None, "email": None, "established_date": None},
    ]
    created = datetime(2024, 6, 1, 8, 0)
    journeys = [
        {"sister_id": 1, "stage": "postulancy", "start_date": date(2019, 9, 1),
         "end_date": date(2021, 8, 31), "notes": None, "community_id": 1,
         "created_at": created},
        {"sister_id": 1, "stage": "novitiate", "start_date": date(2021, 9, 1),
         "end_date": None, "notes": "Năm thứ hai", "community_id": 1,
         "created_at": created + timedelta(days=1)},
        {"sister_id": 2, "stage": "temporary_vows", "start_date": date(2023, 5, 20),
         "end_date": None, "notes": None, "community_id": 2,
         "created_at": created + timedelta(days=2)},
        {"sister_id": 3, "stage": "novitiate", "start_date": date(2023, 9, 1),
         "end_date": None, "notes": None, "community_id": 1,
         "created_at": created + timedelta(days=3)},
    ]
    education = [
        {"sister_id": 1, "level": "Cử nhân", "major": "Thần học",
         "institution": "Học viện Công giáo", "start_date": date(2015, 9, 1),
         "end_date": date(2019, 6, 30)},
    ]
    health = [
        {"sister_id": 1, "checkup_date": date(2024, 2, 1), "general_health": "good",
         "diagnosis": None, "treatment": None},
    ]
    missions = [
        {"sister_id": 2, "field": "Giáo dục", "specific_role": "Giáo viên",
         "start_date": date(2023, 9, 1), "end_date": None},
    ]
    return FakeRecordsRepository(sisters, communities, journeys, education, health, missions)
