"""Read-only queries against the records store.

Raw SQL via SQLAlchemy AsyncSession. The module-level functions take a session;
:class:`RecordsRepository` opens one per call for the query pipeline.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from infra.resources import DatabaseResource

Row = Dict[str, Any]


async def fetch_sister_candidates(session: AsyncSession) -> List[Row]:
    sql = text("SELECT id, birth_name, saint_name, code FROM sisters")
    res = await session.execute(sql)
    return [dict(r) for r in res.mappings().all()]


async def fetch_community_candidates(session: AsyncSession) -> List[Row]:
    sql = text("SELECT id, name, code FROM communities")
    res = await session.execute(sql)
    return [dict(r) for r in res.mappings().all()]


async def fetch_sister(session: AsyncSession, *, sister_id: int) -> Optional[Row]:
    sql = text(
        """
        SELECT s.id, s.code, s.birth_name, s.saint_name, s.religious_name,
               s.date_of_birth, s.place_of_birth, s.phone, s.email, s.status,
               c.name AS community_name
        FROM sisters s
        LEFT JOIN communities c ON s.current_community_id = c.id
        WHERE s.id = :sister_id
        """
    )
    res = await session.execute(sql, {"sister_id": sister_id})
    row = res.mappings().first()
    return dict(row) if row else None


async def fetch_journey(session: AsyncSession, *, sister_id: int) -> List[Row]:
    sql = text(
        """
        SELECT vj.stage, vj.start_date, vj.end_date, vj.notes,
               c.name AS community_name
        FROM vocation_journey vj
        LEFT JOIN communities c ON vj.community_id = c.id
        WHERE vj.sister_id = :sister_id
        ORDER BY vj.start_date ASC
        """
    )
    res = await session.execute(sql, {"sister_id": sister_id})
    return [dict(r) for r in res.mappings().all()]


async def fetch_sisters_in_stage(session: AsyncSession, *, stage: str) -> List[Row]:
    sql = text(
        """
        SELECT DISTINCT s.id, s.code, s.birth_name, s.saint_name, vj.start_date
        FROM vocation_journey vj
        JOIN sisters s ON vj.sister_id = s.id
        WHERE vj.stage = :stage AND vj.end_date IS NULL
        ORDER BY s.birth_name
        """
    )
    res = await session.execute(sql, {"stage": stage})
    return [dict(r) for r in res.mappings().all()]


async def fetch_stage_distribution(session: AsyncSession) -> List[Row]:
    sql = text(
        """
        SELECT vj.stage, COUNT(DISTINCT vj.sister_id) AS count
        FROM vocation_journey vj
        WHERE vj.end_date IS NULL
        GROUP BY vj.stage
        """
    )
    res = await session.execute(sql)
    return [dict(r) for r in res.mappings().all()]


async def count_sisters(session: AsyncSession) -> int:
    res = await session.execute(text("SELECT COUNT(*) FROM sisters"))
    return int(res.scalar_one())


async def count_communities(session: AsyncSession) -> int:
    res = await session.execute(text("SELECT COUNT(*) FROM communities"))
    return int(res.scalar_one())


async def fetch_sisters_by_community(session: AsyncSession) -> List[Row]:
    sql = text(
        """
        SELECT c.id, c.name, COUNT(s.id) AS count
        FROM communities c
        LEFT JOIN sisters s ON c.id = s.current_community_id
        GROUP BY c.id, c.name
        ORDER BY count DESC, c.name
        """
    )
    res = await session.execute(sql)
    return [dict(r) for r in res.mappings().all()]


async def fetch_community(session: AsyncSession, *, community_id: int) -> Optional[Row]:
    sql = text(
        """
        SELECT c.id, c.code, c.name, c.address, c.phone, c.email,
               c.established_date,
               (SELECT COUNT(*) FROM sisters s
                WHERE s.current_community_id = c.id) AS member_count
        FROM communities c
        WHERE c.id = :community_id
        """
    )
    res = await session.execute(sql, {"community_id": community_id})
    row = res.mappings().first()
    return dict(row) if row else None


async def fetch_community_members(session: AsyncSession, *, community_id: int) -> List[Row]:
    sql = text(
        """
        SELECT id, code, birth_name, saint_name
        FROM sisters
        WHERE current_community_id = :community_id
        ORDER BY birth_name
        """
    )
    res = await session.execute(sql, {"community_id": community_id})
    return [dict(r) for r in res.mappings().all()]


async def fetch_communities(session: AsyncSession) -> List[Row]:
    sql = text(
        """
        SELECT c.id, c.code, c.name, c.address,
               (SELECT COUNT(*) FROM sisters s
                WHERE s.current_community_id = c.id) AS member_count
        FROM communities c
        ORDER BY c.name
        """
    )
    res = await session.execute(sql)
    return [dict(r) for r in res.mappings().all()]


async def fetch_recent_journey_updates(session: AsyncSession, *, limit: int = 5) -> List[Row]:
    sql = text(
        """
        SELECT vj.stage, vj.created_at, s.birth_name, s.saint_name
        FROM vocation_journey vj
        JOIN sisters s ON vj.sister_id = s.id
        ORDER BY vj.created_at DESC
        LIMIT :limit
        """
    )
    res = await session.execute(sql, {"limit": limit})
    return [dict(r) for r in res.mappings().all()]


async def fetch_journey_entries_in_year(session: AsyncSession, *, year: int) -> List[Row]:
    sql = text(
        """
        SELECT vj.stage, vj.start_date, s.id AS sister_id, s.birth_name, s.saint_name
        FROM vocation_journey vj
        JOIN sisters s ON vj.sister_id = s.id
        WHERE EXTRACT(YEAR FROM vj.start_date) = :year
        ORDER BY vj.start_date ASC
        """
    )
    res = await session.execute(sql, {"year": year})
    return [dict(r) for r in res.mappings().all()]


async def fetch_education(session: AsyncSession, *, sister_id: int) -> List[Row]:
    sql = text(
        """
        SELECT level, major, institution, start_date, end_date
        FROM education
        WHERE sister_id = :sister_id
        ORDER BY start_date DESC NULLS LAST
        """
    )
    res = await session.execute(sql, {"sister_id": sister_id})
    return [dict(r) for r in res.mappings().all()]


async def fetch_education_level_counts(session: AsyncSession) -> List[Row]:
    sql = text(
        """
        SELECT level, COUNT(*) AS count
        FROM education
        GROUP BY level
        ORDER BY count DESC
        """
    )
    res = await session.execute(sql)
    return [dict(r) for r in res.mappings().all()]


async def fetch_health_records(
    session: AsyncSession, *, sister_id: int, limit: int = 3
) -> List[Row]:
    sql = text(
        """
        SELECT checkup_date, general_health, diagnosis, treatment
        FROM health_records
        WHERE sister_id = :sister_id
        ORDER BY checkup_date DESC NULLS LAST
        LIMIT :limit
        """
    )
    res = await session.execute(sql, {"sister_id": sister_id, "limit": limit})
    return [dict(r) for r in res.mappings().all()]


async def fetch_health_status_counts(session: AsyncSession) -> List[Row]:
    # Latest record per sister only.
    sql = text(
        """
        SELECT latest.general_health, COUNT(*) AS count
        FROM (
            SELECT DISTINCT ON (sister_id) sister_id, general_health
            FROM health_records
            ORDER BY sister_id, checkup_date DESC NULLS LAST
        ) AS latest
        GROUP BY latest.general_health
        ORDER BY count DESC
        """
    )
    res = await session.execute(sql)
    return [dict(r) for r in res.mappings().all()]


async def fetch_missions(session: AsyncSession, *, sister_id: int) -> List[Row]:
    sql = text(
        """
        SELECT field, specific_role, start_date, end_date
        FROM missions
        WHERE sister_id = :sister_id
        ORDER BY start_date DESC NULLS LAST
        """
    )
    res = await session.execute(sql, {"sister_id": sister_id})
    return [dict(r) for r in res.mappings().all()]


async def fetch_active_mission_fields(session: AsyncSession) -> List[Row]:
    sql = text(
        """
        SELECT field, COUNT(DISTINCT sister_id) AS count
        FROM missions
        WHERE end_date IS NULL
        GROUP BY field
        ORDER BY count DESC
        """
    )
    res = await session.execute(sql)
    return [dict(r) for r in res.mappings().all()]


class RecordsRepository:
    """Session-per-call facade over the query functions above."""

    def __init__(self, db: DatabaseResource):
        self.db = db

    async def list_sister_candidates(self) -> List[Row]:
        async with self.db.session_scope() as session:
            return await fetch_sister_candidates(session)

    async def list_community_candidates(self) -> List[Row]:
        async with self.db.session_scope() as session:
            return await fetch_community_candidates(session)

    async def get_sister(self, sister_id: int) -> Optional[Row]:
        async with self.db.session_scope() as session:
            return await fetch_sister(session, sister_id=sister_id)

    async def list_journey(self, sister_id: int) -> List[Row]:
        async with self.db.session_scope() as session:
            return await fetch_journey(session, sister_id=sister_id)

    async def list_sisters_in_stage(self, stage: str) -> List[Row]:
        async with self.db.session_scope() as session:
            return await fetch_sisters_in_stage(session, stage=stage)

    async def stage_distribution(self) -> List[Row]:
        async with self.db.session_scope() as session:
            return await fetch_stage_distribution(session)

    async def count_sisters(self) -> int:
        async with self.db.session_scope() as session:
            return await count_sisters(session)

    async def count_communities(self) -> int:
        async with self.db.session_scope() as session:
            return await count_communities(session)

    async def sisters_by_community(self) -> List[Row]:
        async with self.db.session_scope() as session:
            return await fetch_sisters_by_community(session)

    async def get_community(self, community_id: int) -> Optional[Row]:
        async with self.db.session_scope() as session:
            return await fetch_community(session, community_id=community_id)

    async def list_community_members(self, community_id: int) -> List[Row]:
        async with self.db.session_scope() as session:
            return await fetch_community_members(session, community_id=community_id)

    async def list_communities(self) -> List[Row]:
        async with self.db.session_scope() as session:
            return await fetch_communities(session)

    async def recent_journey_updates(self, limit: int = 5) -> List[Row]:
        async with self.db.session_scope() as session:
            return await fetch_recent_journey_updates(session, limit=limit)

    async def journey_entries_in_year(self, year: int) -> List[Row]:
        async with self.db.session_scope() as session:
            return await fetch_journey_entries_in_year(session, year=year)

    async def list_education(self, sister_id: int) -> List[Row]:
        async with self.db.session_scope() as session:
            return await fetch_education(session, sister_id=sister_id)

    async def education_level_counts(self) -> List[Row]:
        async with self.db.session_scope() as session:
            return await fetch_education_level_counts(session)

    async def list_health_records(self, sister_id: int, limit: int = 3) -> List[Row]:
        async with self.db.session_scope() as session:
            return await fetch_health_records(session, sister_id=sister_id, limit=limit)

    async def health_status_counts(self) -> List[Row]:
        async with self.db.session_scope() as session:
            return await fetch_health_status_counts(session)

    async def list_missions(self, sister_id: int) -> List[Row]:
        async with self.db.session_scope() as session:
            return await fetch_missions(session, sister_id=sister_id)

    async def active_mission_fields(self) -> List[Row]:
        async with self.db.session_scope() as session:
            return await fetch_active_mission_fields(session)
