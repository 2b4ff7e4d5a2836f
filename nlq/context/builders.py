"""Context builders: turn records-store rows into a grounded narrative.

Each intent maps to a :class:`BuilderRoute`. Detail builders are keyed by the
EntityBag field that selects them and are tried in order; the aggregate
builder runs when none of those fields is set.
"""
from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict, List, NamedTuple, Optional, Tuple

from api.features.records.repository import RecordsRepository
from nlq.stages import STAGE_RULES, stage_label
from nlq.text import NOT_AVAILABLE, display_name, format_date, or_na
from nlq.types import ContextPayload, EntityBag, Intent, SourceRef

Builder = Callable[[RecordsRepository, EntityBag], Awaitable[ContextPayload]]

HEALTH_LABELS = {"good": "Tốt", "average": "Trung bình", "weak": "Yếu"}


class BuilderRoute(NamedTuple):
    details: Tuple[Tuple[str, Builder], ...]
    aggregate: Builder

    def select(self, entities: EntityBag) -> Builder:
        for field, builder in self.details:
            if getattr(entities, field, None) is not None:
                return builder
        return self.aggregate


def _sister_source(sister: Dict[str, Any]) -> SourceRef:
    return SourceRef(type="sister", id=sister["id"], name=sister.get("birth_name"))


def _ordered_stage_counts(rows: List[Dict[str, Any]]) -> List[Tuple[str, int]]:
    counts = {r["stage"]: int(r.get("count") or 0) for r in rows}
    ordered = [(rule.code, counts.pop(rule.code, 0)) for rule in STAGE_RULES]
    ordered.extend(sorted(counts.items()))
    return ordered


def _stage_lines(rows: List[Dict[str, Any]]) -> List[str]:
    return [
        f"- {stage_label(code)}: {count} nữ tu"
        for code, count in _ordered_stage_counts(rows)
    ]


# journey_info


async def sister_journey(records: RecordsRepository, entities: EntityBag) -> ContextPayload:
    sister = await records.get_sister(entities.sister_id)
    if not sister:
        return ContextPayload()
    journeys = await records.list_journey(sister["id"])

    name = display_name(sister.get("saint_name"), sister.get("birth_name"))
    lines = [
        f"Hành trình ơn gọi của {name}:",
        "",
        f"- Tên thánh: {or_na(sister.get('saint_name'))}",
        f"- Họ tên: {or_na(sister.get('birth_name'))}",
        f"- Mã số: {or_na(sister.get('code'))}",
        f"- Cộng đoàn hiện tại: {or_na(sister.get('community_name'))}",
        "",
    ]
    if journeys:
        lines.append("Các giai đoạn đã trải qua:")
        for i, step in enumerate(journeys, start=1):
            end = format_date(step.get("end_date")) if step.get("end_date") else "Hiện tại"
            lines.append(f"{i}. {stage_label(step.get('stage'))}")
            lines.append(f"   - Thời gian: {format_date(step.get('start_date'))} → {end}")
            lines.append(f"   - Cộng đoàn: {or_na(step.get('community_name'))}")
            if step.get("notes"):
                lines.append(f"   - Ghi chú: {step['notes']}")
    else:
        lines.append("Chưa có thông tin hành trình ơn gọi.")

    return ContextPayload(
        text="\n".join(lines),
        data={"sister": sister, "journeys": journeys},
        sources=[_sister_source(sister)],
    )


async def sisters_in_stage(records: RecordsRepository, entities: EntityBag) -> ContextPayload:
    members = await records.list_sisters_in_stage(entities.stage)
    label = entities.stage_label or stage_label(entities.stage)
    lines = [f"Các nữ tu đang ở giai đoạn {label}: {len(members)} nữ tu", ""]
    for i, sister in enumerate(members, start=1):
        name = display_name(sister.get("saint_name"), sister.get("birth_name"))
        lines.append(
            f"{i}. {name} ({or_na(sister.get('code'))}) - từ {format_date(sister.get('start_date'))}"
        )
    return ContextPayload(
        text="\n".join(lines),
        data={"stage": entities.stage, "sisters": members},
    )


async def stage_distribution(records: RecordsRepository, entities: EntityBag) -> ContextPayload:
    rows = await records.stage_distribution()
    lines = ["Thống kê hành trình ơn gọi hiện tại:", ""] + _stage_lines(rows)
    return ContextPayload(text="\n".join(lines), data={"by_stage": rows})


# sister_info


async def sister_profile(records: RecordsRepository, entities: EntityBag) -> ContextPayload:
    sister = await records.get_sister(entities.sister_id)
    if not sister:
        return ContextPayload()
    educations = await records.list_education(sister["id"])

    name = display_name(sister.get("saint_name"), sister.get("birth_name"))
    lines = [
        f"Thông tin chi tiết về {name}:",
        "",
        f"- Tên thánh: {or_na(sister.get('saint_name'))}",
        f"- Họ tên: {or_na(sister.get('birth_name'))}",
        f"- Tên dòng: {or_na(sister.get('religious_name'))}",
        f"- Mã số: {or_na(sister.get('code'))}",
        f"- Ngày sinh: {format_date(sister.get('date_of_birth'))}",
        f"- Nơi sinh: {or_na(sister.get('place_of_birth'))}",
        f"- Cộng đoàn: {or_na(sister.get('community_name'))}",
        f"- Email: {or_na(sister.get('email'))}",
        f"- Điện thoại: {or_na(sister.get('phone'))}",
    ]
    if educations:
        lines += ["", "Học vấn:"]
        for edu in educations:
            lines.append(
                f"- {or_na(edu.get('level'))}: {or_na(edu.get('major'))} "
                f"tại {or_na(edu.get('institution'))}"
            )
    return ContextPayload(
        text="\n".join(lines),
        data={"sister": sister, "educations": educations},
        sources=[_sister_source(sister)],
    )


async def sister_overview(records: RecordsRepository, entities: EntityBag) -> ContextPayload:
    total = await records.count_sisters()
    by_community = await records.sisters_by_community()
    lines = [
        "Thông tin chung về các nữ tu:",
        "",
        f"Tổng số nữ tu: {total}",
        "",
        "Phân bổ theo cộng đoàn:",
    ]
    lines += [f"- {or_na(row.get('name'))}: {row.get('count', 0)} nữ tu" for row in by_community]
    return ContextPayload(
        text="\n".join(lines),
        data={"total": total, "by_community": by_community},
    )


# community_info


async def community_profile(records: RecordsRepository, entities: EntityBag) -> ContextPayload:
    community = await records.get_community(entities.community_id)
    if not community:
        return ContextPayload()
    members = await records.list_community_members(community["id"])

    lines = [
        f"Thông tin cộng đoàn {or_na(community.get('name'))}:",
        "",
        f"- Mã: {or_na(community.get('code'))}",
        f"- Địa chỉ: {or_na(community.get('address'))}",
        f"- Điện thoại: {or_na(community.get('phone'))}",
        f"- Email: {or_na(community.get('email'))}",
        f"- Ngày thành lập: {format_date(community.get('established_date'))}",
        f"- Số thành viên: {or_na(community.get('member_count', len(members)))}",
    ]
    if members:
        lines += ["", "Danh sách thành viên:"]
        for i, member in enumerate(members, start=1):
            name = display_name(member.get("saint_name"), member.get("birth_name"))
            lines.append(f"{i}. {name} ({or_na(member.get('code'))})")
    return ContextPayload(
        text="\n".join(lines),
        data={"community": community, "members": members},
        sources=[
            SourceRef(type="community", id=community["id"], name=community.get("name"))
        ],
    )


async def community_directory(records: RecordsRepository, entities: EntityBag) -> ContextPayload:
    communities = await records.list_communities()
    lines = ["Danh sách các cộng đoàn:", "", f"Tổng số: {len(communities)} cộng đoàn", ""]
    for community in communities:
        lines += [
            f"* {or_na(community.get('name'))}",
            f"   - Mã: {or_na(community.get('code'))}",
            f"   - Địa chỉ: {or_na(community.get('address'))}",
            f"   - Số thành viên: {or_na(community.get('member_count', 0))}",
        ]
    return ContextPayload(text="\n".join(lines), data={"communities": communities})


# statistics


async def _overview_lines(records: RecordsRepository) -> Tuple[List[str], Dict[str, Any]]:
    total_sisters = await records.count_sisters()
    total_communities = await records.count_communities()
    by_stage = await records.stage_distribution()
    recent = await records.recent_journey_updates(limit=5)

    lines = [
        "Thống kê tổng quan hệ thống:",
        "",
        f"- Tổng số nữ tu: {total_sisters}",
        f"- Tổng số cộng đoàn: {total_communities}",
        "",
        "Phân bổ theo giai đoạn ơn gọi:",
    ]
    lines += _stage_lines(by_stage)
    if recent:
        lines += ["", "Cập nhật hành trình gần đây:"]
        for row in recent:
            name = display_name(row.get("saint_name"), row.get("birth_name"))
            lines.append(
                f"- {format_date(row.get('created_at'))}: {name} → {stage_label(row.get('stage'))}"
            )
    data = {
        "total_sisters": total_sisters,
        "total_communities": total_communities,
        "by_stage": by_stage,
        "recent_journeys": recent,
    }
    return lines, data


async def statistics_overview(records: RecordsRepository, entities: EntityBag) -> ContextPayload:
    lines, data = await _overview_lines(records)
    return ContextPayload(text="\n".join(lines), data=data)


async def statistics_for_year(records: RecordsRepository, entities: EntityBag) -> ContextPayload:
    lines, data = await _overview_lines(records)
    entries = await records.journey_entries_in_year(entities.year)
    lines += ["", f"Các giai đoạn bắt đầu trong năm {entities.year}: {len(entries)}"]
    for row in entries:
        name = display_name(row.get("saint_name"), row.get("birth_name"))
        lines.append(
            f"- {format_date(row.get('start_date'))}: {name} → {stage_label(row.get('stage'))}"
        )
    data.update(year=entities.year, year_entries=entries)
    return ContextPayload(text="\n".join(lines), data=data)


# education_info


async def sister_education(records: RecordsRepository, entities: EntityBag) -> ContextPayload:
    sister = await records.get_sister(entities.sister_id)
    if not sister:
        return ContextPayload()
    educations = await records.list_education(sister["id"])
    name = display_name(sister.get("saint_name"), sister.get("birth_name"))
    if not educations:
        lines = [f"Chưa có thông tin học vấn của {name}."]
    else:
        lines = [f"Học vấn của {name}:", ""]
        for i, edu in enumerate(educations, start=1):
            lines += [
                f"{i}. {or_na(edu.get('level'))}",
                f"   - Chuyên ngành: {or_na(edu.get('major'))}",
                f"   - Trường: {or_na(edu.get('institution'))}",
                f"   - Thời gian: {format_date(edu.get('start_date'))} - {format_date(edu.get('end_date'))}",
            ]
    return ContextPayload(
        text="\n".join(lines),
        data={"sister": sister, "educations": educations},
        sources=[_sister_source(sister)],
    )


async def education_overview(records: RecordsRepository, entities: EntityBag) -> ContextPayload:
    rows = await records.education_level_counts()
    lines = ["Thống kê học vấn:", ""]
    lines += [f"- {row.get('level') or 'Khác'}: {row.get('count', 0)} người" for row in rows]
    return ContextPayload(text="\n".join(lines), data={"by_level": rows})


# health_info


async def sister_health(records: RecordsRepository, entities: EntityBag) -> ContextPayload:
    sister = await records.get_sister(entities.sister_id)
    if not sister:
        return ContextPayload()
    checkups = await records.list_health_records(sister["id"])
    name = display_name(sister.get("saint_name"), sister.get("birth_name"))
    if not checkups:
        lines = [f"Chưa có hồ sơ sức khỏe của {name}."]
    else:
        lines = [f"Hồ sơ sức khỏe gần đây của {name}:", ""]
        for row in checkups:
            status = HEALTH_LABELS.get(row.get("general_health"), or_na(row.get("general_health")))
            lines += [
                f"- Ngày khám: {format_date(row.get('checkup_date'))}",
                f"   - Tình trạng chung: {status}",
                f"   - Chẩn đoán: {or_na(row.get('diagnosis'))}",
                f"   - Điều trị: {or_na(row.get('treatment'))}",
            ]
    return ContextPayload(
        text="\n".join(lines),
        data={"sister": sister, "health_records": checkups},
        sources=[_sister_source(sister)],
    )


async def health_overview(records: RecordsRepository, entities: EntityBag) -> ContextPayload:
    rows = await records.health_status_counts()
    lines = ["Tình trạng sức khỏe chung (lần khám gần nhất):", ""]
    lines += [
        f"- {HEALTH_LABELS.get(row.get('general_health'), NOT_AVAILABLE)}: {row.get('count', 0)} nữ tu"
        for row in rows
    ]
    return ContextPayload(text="\n".join(lines), data={"by_health": rows})


# mission_info


async def sister_missions(records: RecordsRepository, entities: EntityBag) -> ContextPayload:
    sister = await records.get_sister(entities.sister_id)
    if not sister:
        return ContextPayload()
    missions = await records.list_missions(sister["id"])
    name = display_name(sister.get("saint_name"), sister.get("birth_name"))
    if not missions:
        lines = [f"Chưa có thông tin sứ vụ của {name}."]
    else:
        lines = [f"Sứ vụ của {name}:", ""]
        for i, row in enumerate(missions, start=1):
            end = format_date(row.get("end_date")) if row.get("end_date") else "Hiện tại"
            lines += [
                f"{i}. {or_na(row.get('field'))}",
                f"   - Vai trò: {or_na(row.get('specific_role'))}",
                f"   - Thời gian: {format_date(row.get('start_date'))} → {end}",
            ]
    return ContextPayload(
        text="\n".join(lines),
        data={"sister": sister, "missions": missions},
        sources=[_sister_source(sister)],
    )


async def mission_overview(records: RecordsRepository, entities: EntityBag) -> ContextPayload:
    rows = await records.active_mission_fields()
    lines = ["Sứ vụ đang đảm nhận theo lĩnh vực:", ""]
    lines += [f"- {or_na(row.get('field'))}: {row.get('count', 0)} nữ tu" for row in rows]
    return ContextPayload(text="\n".join(lines), data={"by_field": rows})


# help / general

HELP_TEXT = """Hướng dẫn sử dụng trợ lý:

Bạn có thể hỏi tôi về:

1. Thông tin nữ tu:
   - "Cho tôi thông tin về chị Maria"
   - "Hồ sơ của nữ tu có mã NT001"

2. Hành trình ơn gọi:
   - "Hành trình ơn gọi của chị Maria"
   - "Ai đang ở giai đoạn nhà tập?"

3. Cộng đoàn:
   - "Danh sách các cộng đoàn"
   - "Thông tin cộng đoàn Thiện Bản"

4. Thống kê:
   - "Tổng số nữ tu"
   - "Thống kê các giai đoạn bắt đầu năm 2023"

5. Học vấn, sức khỏe, sứ vụ:
   - "Học vấn của chị Maria"
   - "Sứ vụ của chị Maria"

Mẹo: bạn có thể đặt câu hỏi bằng ngôn ngữ tự nhiên."""


async def help_guide(records: RecordsRepository, entities: EntityBag) -> ContextPayload:
    return ContextPayload(text=HELP_TEXT)


async def system_totals(records: RecordsRepository, entities: EntityBag) -> ContextPayload:
    total_sisters = await records.count_sisters()
    total_communities = await records.count_communities()
    text = (
        "Thông tin hệ thống:\n"
        f"- Tổng số nữ tu: {total_sisters}\n"
        f"- Tổng số cộng đoàn: {total_communities}\n\n"
        "Bạn có thể hỏi tôi về thông tin nữ tu, hành trình ơn gọi, cộng đoàn, "
        "thống kê và nhiều nội dung khác."
    )
    return ContextPayload(
        text=text,
        data={"total_sisters": total_sisters, "total_communities": total_communities},
    )


GENERAL_BUILDERS = BuilderRoute(details=(), aggregate=system_totals)

CONTEXT_BUILDERS: Dict[Intent, BuilderRoute] = {
    Intent.JOURNEY_INFO: BuilderRoute(
        details=(("sister_id", sister_journey), ("stage", sisters_in_stage)),
        aggregate=stage_distribution,
    ),
    Intent.SISTER_INFO: BuilderRoute(
        details=(("sister_id", sister_profile),), aggregate=sister_overview
    ),
    Intent.COMMUNITY_INFO: BuilderRoute(
        details=(("community_id", community_profile),), aggregate=community_directory
    ),
    Intent.STATISTICS: BuilderRoute(
        details=(("year", statistics_for_year),), aggregate=statistics_overview
    ),
    Intent.EDUCATION_INFO: BuilderRoute(
        details=(("sister_id", sister_education),), aggregate=education_overview
    ),
    Intent.HEALTH_INFO: BuilderRoute(
        details=(("sister_id", sister_health),), aggregate=health_overview
    ),
    Intent.MISSION_INFO: BuilderRoute(
        details=(("sister_id", sister_missions),), aggregate=mission_overview
    ),
    Intent.HELP: BuilderRoute(details=(), aggregate=help_guide),
    Intent.GENERAL: GENERAL_BUILDERS,
}


def builder_for(
    intent: Intent,
    entities: EntityBag,
    table: Optional[Dict[Intent, BuilderRoute]] = None,
) -> Builder:
    """Route for the intent, falling back to the general route."""
    routes = CONTEXT_BUILDERS if table is None else table
    return routes.get(intent, GENERAL_BUILDERS).select(entities)
