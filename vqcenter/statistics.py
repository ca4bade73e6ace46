"""Dashboard statistics derived from the three event logs.

Every function here is pure: records and a :class:`StatisticsFilter` go in, a
freshly built result comes out.  Callers recompute from scratch whenever the
store snapshot or the filter changes.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, tzinfo
from typing import Callable, Iterable, NamedTuple, Sequence

from vqcenter.constants import (
    ALL_AREAS,
    AREAS,
    CHART_SCOPE_GENERAL,
    CHART_SCOPE_SELECTED,
    MODELS,
    OFFLINE_AREA,
    REPORT_PERIODS,
    TIME_SLOT_SEPARATOR,
    TOP_DEFECTS_LIMIT,
    acting_sections_for,
)
from vqcenter.records import (
    DefectRecord,
    DowntimeRecord,
    PassRecord,
    STATUS_NOT_OK,
    STATUS_OK,
)


@dataclass(frozen=True)
class StatisticsFilter:
    """Dashboard filter criteria.

    ``start_date`` and ``end_date`` are inclusive calendar dates.  ``tz`` is the
    zone used to turn record timestamps into calendar dates; ``None`` means the
    host's local zone.
    """

    start_date: date
    end_date: date
    area: str = ALL_AREAS
    vin_query: str = ""
    chart_scope: str = CHART_SCOPE_SELECTED
    tz: tzinfo | None = field(default=None, compare=False)

    @classmethod
    def for_period(
        cls, period: str, today: date, area: str = ALL_AREAS, tz: tzinfo | None = None
    ) -> "StatisticsFilter":
        """Rolling window ending ``today`` for a weekly/monthly/annual report."""

        days = REPORT_PERIODS[period][0]
        return cls(
            start_date=today - timedelta(days=days),
            end_date=today,
            area=area,
            tz=tz,
        )

    @property
    def all_areas(self) -> bool:
        return self.area == ALL_AREAS

    @property
    def charts_cover_all_areas(self) -> bool:
        return self.all_areas or self.chart_scope == CHART_SCOPE_GENERAL


class FilteredRecords(NamedTuple):
    passes: list[PassRecord]
    defects: list[DefectRecord]
    downtime: list[DowntimeRecord]


def record_date(timestamp_ms: int, tz: tzinfo | None = None) -> date:
    """Calendar date of an epoch-millisecond timestamp in ``tz``."""

    return datetime.fromtimestamp(timestamp_ms / 1000, tz).date()


def _in_range(record, filters: StatisticsFilter) -> bool:
    try:
        day = record_date(record.timestamp, filters.tz)
    except (OverflowError, OSError, ValueError):
        return False
    return filters.start_date <= day <= filters.end_date


def _matches_vin(record, vin_query: str) -> bool:
    if not vin_query:
        return True
    return vin_query.casefold() in (record.vin or "").casefold()


def _base_match(record, filters: StatisticsFilter) -> bool:
    return _in_range(record, filters) and _matches_vin(record, filters.vin_query)


def _area_match(record, area: str) -> bool:
    return area == ALL_AREAS or record.area == area


def _quantity(records: Iterable) -> int:
    return sum(record.quantity for record in records)


def _rate(part: int, total: int) -> str:
    if total <= 0:
        return "0.0"
    return f"{part / total * 100:.1f}"


def filter_records(
    passes: Sequence[PassRecord],
    defects: Sequence[DefectRecord],
    downtime: Sequence[DowntimeRecord],
    filters: StatisticsFilter,
) -> FilteredRecords:
    """Records behind the KPI cards: date range, VIN query and selected area.

    Downtime has no VIN, so only the date range and area apply to it.
    """

    return FilteredRecords(
        [r for r in passes if _base_match(r, filters) and _area_match(r, filters.area)],
        [r for r in defects if _base_match(r, filters) and _area_match(r, filters.area)],
        [r for r in downtime if _in_range(r, filters) and _area_match(r, filters.area)],
    )


def slot_start(slot: str) -> str:
    """Start time of a ``"HH:MM as HH:MM"`` slot (the whole string otherwise)."""

    return slot.split(TIME_SLOT_SEPARATOR, 1)[0]


def _sorted_slots(*groups: Iterable) -> list[str]:
    slots = {record.time_slot for group in groups for record in group if record.time_slot}
    return sorted(slots, key=lambda slot: (slot_start(slot), slot))


def plain_defect_label(record: DefectRecord) -> str:
    return (record.defect_type or "").strip().upper()


def rank_defects(
    defects: Iterable[DefectRecord],
    limit: int = TOP_DEFECTS_LIMIT,
    label: Callable[[DefectRecord], str] = plain_defect_label,
) -> list[dict]:
    """Group defect quantities by ``label`` and return the ``limit`` largest.

    Ties keep first-seen order.  Groups with no quantity and records whose
    label is empty are left out.
    """

    totals: dict[str, int] = {}
    for record in defects:
        name = label(record)
        if not name:
            continue
        totals[name] = totals.get(name, 0) + record.quantity
    ranked = sorted(
        ((name, value) for name, value in totals.items() if value > 0),
        key=lambda item: item[1],
        reverse=True,
    )
    return [{"name": name, "value": value} for name, value in ranked[:limit]]


def _tagged_defect_label(tag_area: bool) -> Callable[[DefectRecord], str]:
    def label(record: DefectRecord) -> str:
        base = plain_defect_label(record)
        if not base:
            return ""
        if tag_area and record.area:
            base += f" [{record.area.split(' ')[0].upper()}]"
        if record.acting_section:
            base += f" ({record.acting_section.upper()})"
        return base

    return label


def _area_stats(
    passes: Sequence[PassRecord],
    defects: Sequence[DefectRecord],
    downtime: Sequence[DowntimeRecord],
    filters: StatisticsFilter,
) -> list[dict]:
    ok_by_area: defaultdict[str, int] = defaultdict(int)
    nok_by_area: defaultdict[str, int] = defaultdict(int)
    re_by_area: defaultdict[str, int] = defaultdict(int)
    down_by_area: defaultdict[str, int] = defaultdict(int)

    for record in passes:
        if _base_match(record, filters):
            ok_by_area[record.area] += record.quantity
            if record.is_reinspection:
                re_by_area[record.area] += record.quantity
    for record in defects:
        if _base_match(record, filters):
            nok_by_area[record.area] += record.quantity
            if record.is_reinspection:
                re_by_area[record.area] += record.quantity
    for record in downtime:
        if _in_range(record, filters):
            down_by_area[record.area] += record.duration_minutes

    stats = []
    for area in AREAS:
        ok = ok_by_area[area]
        nok = nok_by_area[area]
        total = ok + nok
        stats.append(
            {
                "area": area,
                "ok": ok,
                "nok": nok,
                "total": total,
                "downtime": down_by_area[area],
                "re": re_by_area[area],
                "ftt": _rate(ok, total),
            }
        )
    return stats


def _slot_series(
    slots: list[str], passes: Sequence[PassRecord], defects: Sequence[DefectRecord]
) -> list[dict]:
    ok_by_slot: defaultdict[str, int] = defaultdict(int)
    nok_by_slot: defaultdict[str, int] = defaultdict(int)
    for record in passes:
        ok_by_slot[record.time_slot] += record.quantity
    for record in defects:
        nok_by_slot[record.time_slot] += record.quantity
    return [
        {
            "slot": slot,
            "ok": ok_by_slot[slot],
            "nok": nok_by_slot[slot],
            "total": ok_by_slot[slot] + nok_by_slot[slot],
        }
        for slot in slots
    ]


def _sub_area_detail(
    area: str,
    slots: list[str],
    passes: Sequence[PassRecord],
    defects: Sequence[DefectRecord],
) -> dict | None:
    """Per acting-section breakdown, only for areas that have acting sections."""

    options = acting_sections_for(area)
    if not options:
        return None

    by_slot: defaultdict[tuple[str, str], int] = defaultdict(int)
    totals: defaultdict[str, int] = defaultdict(int)
    defect_totals: defaultdict[str, int] = defaultdict(int)
    for record in passes:
        if record.area == area and record.acting_section in options:
            by_slot[(record.time_slot, record.acting_section)] += record.quantity
            totals[record.acting_section] += record.quantity
    for record in defects:
        if record.area == area and record.acting_section in options:
            by_slot[(record.time_slot, record.acting_section)] += record.quantity
            totals[record.acting_section] += record.quantity
            defect_totals[record.acting_section] += record.quantity

    time_series = []
    for slot in slots:
        entry: dict[str, object] = {"slot": slot}
        for option in options:
            entry[option] = by_slot[(slot, option)]
        time_series.append(entry)

    section_totals = [
        {"name": option, "value": totals[option], "defects": defect_totals[option]}
        for option in options
        if totals[option] > 0 or defect_totals[option] > 0
    ]
    return {
        "area": area,
        "options": list(options),
        "timeSeries": time_series,
        "totals": section_totals,
    }


def _model_stats(passes: Sequence[PassRecord], defects: Sequence[DefectRecord]) -> list[dict]:
    stats = []
    for model in MODELS:
        ok = _quantity(r for r in passes if r.model == model)
        nok = _quantity(r for r in defects if r.model == model)
        stats.append({"name": model, "ok": ok, "nok": nok, "total": ok + nok})
    return stats


def tag_history(
    passes: Iterable[PassRecord],
    defects: Iterable[DefectRecord],
    ok_label: str = STATUS_OK,
    nok_label: str = "NOK",
) -> list[dict]:
    """Pass and defect rows tagged with their kind, newest first."""

    history = [{**r.to_row(), "type": ok_label} for r in passes]
    history.extend({**r.to_row(), "type": nok_label} for r in defects)
    history.sort(key=lambda row: row["timestamp"], reverse=True)
    return history


def employee_history(
    passes: Iterable[PassRecord], defects: Iterable[DefectRecord], employee_id: str
) -> list[dict]:
    """Every entry logged by ``employee_id`` (all entries when it is empty)."""

    employee_id = (employee_id or "").strip()
    return tag_history(
        (r for r in passes if not employee_id or r.employee_id == employee_id),
        (r for r in defects if not employee_id or r.employee_id == employee_id),
        nok_label=STATUS_NOT_OK,
    )


def compute_statistics(
    passes: Sequence[PassRecord],
    defects: Sequence[DefectRecord],
    downtime: Sequence[DowntimeRecord],
    filters: StatisticsFilter,
) -> dict:
    """Derive every dashboard aggregate for ``filters``.

    Two views are built.  The card view is always limited to the selected
    area.  The chart view covers all areas when no area is selected or the
    chart scope is ``GENERAL``, and otherwise matches the card view.
    Per-area summaries ignore the area selection entirely.
    """

    cards = filter_records(passes, defects, downtime, filters)

    if filters.charts_cover_all_areas:
        chart_passes = [r for r in passes if _base_match(r, filters)]
        chart_defects = [r for r in defects if _base_match(r, filters)]
    else:
        chart_passes, chart_defects = cards.passes, cards.defects

    total_ok = _quantity(cards.passes)
    total_defects = _quantity(cards.defects)
    total_processed = total_ok + total_defects
    downtime_minutes = sum(r.duration_minutes for r in cards.downtime)
    reinspections = _quantity(r for r in cards.passes if r.is_reinspection) + _quantity(
        r for r in cards.defects if r.is_reinspection
    )
    released = sum(
        1
        for r in [*cards.passes, *cards.defects]
        if r.area == OFFLINE_AREA and r.released
    )

    slots = _sorted_slots(chart_passes, chart_defects)

    return {
        "totalOk": total_ok,
        "totalDefects": total_defects,
        "totalProcessed": total_processed,
        "totalDowntimeMinutes": downtime_minutes,
        "totalDowntimeHours": f"{downtime_minutes / 60:.1f}",
        "totalReinspections": reinspections,
        "overallFtt": _rate(total_ok, total_processed),
        "releasedCount": released,
        "downtimeEvents": len(cards.downtime),
        "areaStats": _area_stats(passes, defects, downtime, filters),
        "topDefects": rank_defects(
            chart_defects, label=_tagged_defect_label(filters.charts_cover_all_areas)
        ),
        "timeSlotSeries": _slot_series(slots, chart_passes, chart_defects),
        "subAreaDetail": _sub_area_detail(filters.area, slots, cards.passes, cards.defects),
        "modelStats": _model_stats(chart_passes, chart_defects),
        "vinHistory": tag_history(cards.passes, cards.defects),
    }


__all__ = [
    "FilteredRecords",
    "StatisticsFilter",
    "compute_statistics",
    "employee_history",
    "filter_records",
    "plain_defect_label",
    "rank_defects",
    "record_date",
    "slot_start",
    "tag_history",
]
