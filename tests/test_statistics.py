import os
import sys
from datetime import date, datetime, timedelta, timezone

sys.path.append(os.path.dirname(os.path.dirname(__file__)))

from vqcenter.constants import ALL_AREAS, AREAS, CHART_SCOPE_GENERAL, MODELS, OFFLINE_AREA
from vqcenter.records import DefectRecord, DowntimeRecord, PassRecord
from vqcenter.statistics import (
    StatisticsFilter,
    compute_statistics,
    employee_history,
    filter_records,
    rank_defects,
    slot_start,
)

UTC = timezone.utc
DAY = date(2024, 6, 10)


def _ts(hour=9, day=DAY, tz=UTC):
    return int(datetime(day.year, day.month, day.day, hour, tzinfo=tz).timestamp() * 1000)


def _pass(area="Linha OK", model="EQE", quantity=1, **kwargs):
    kwargs.setdefault("timestamp", _ts())
    kwargs.setdefault("time_slot", "08:00 as 09:00")
    return PassRecord(id=kwargs.pop("id", f"p-{area}-{quantity}"), area=area, model=model,
                      quantity=quantity, **kwargs)


def _defect(defect_type="Risco", area="Linha OK", model="EQE", quantity=1, **kwargs):
    kwargs.setdefault("timestamp", _ts())
    kwargs.setdefault("time_slot", "08:00 as 09:00")
    return DefectRecord(id=kwargs.pop("id", f"d-{defect_type}"), area=area, model=model,
                        quantity=quantity, defect_type=defect_type, **kwargs)


def _downtime(minutes, area="Linha OK", **kwargs):
    kwargs.setdefault("timestamp", _ts())
    return DowntimeRecord(id=kwargs.pop("id", f"t-{minutes}"), area=area,
                          start_time="10:00", end_time="10:30",
                          duration_minutes=minutes, reason="DDS", **kwargs)


def _filters(**kwargs):
    kwargs.setdefault("start_date", DAY)
    kwargs.setdefault("end_date", DAY)
    return StatisticsFilter(tz=UTC, **kwargs)


def test_single_area_day_summary():
    stats = compute_statistics(
        [_pass(quantity=2)],
        [_defect(quantity=1)],
        [_downtime(30)],
        _filters(area="Linha OK"),
    )

    assert stats["totalOk"] == 2
    assert stats["totalDefects"] == 1
    assert stats["totalProcessed"] == 3
    assert stats["totalDowntimeMinutes"] == 30
    assert stats["totalDowntimeHours"] == "0.5"
    assert stats["overallFtt"] == "66.7"
    linha_ok = next(row for row in stats["areaStats"] if row["area"] == "Linha OK")
    assert linha_ok == {
        "area": "Linha OK",
        "ok": 2,
        "nok": 1,
        "total": 3,
        "downtime": 30,
        "re": 0,
        "ftt": "66.7",
    }
    eqe = next(row for row in stats["modelStats"] if row["name"] == "EQE")
    assert eqe == {"name": "EQE", "ok": 2, "nok": 1, "total": 3}


def test_empty_input_yields_zeroed_statistics():
    stats = compute_statistics([], [], [], _filters())

    assert stats["totalOk"] == 0
    assert stats["totalDefects"] == 0
    assert stats["totalDowntimeHours"] == "0.0"
    assert stats["overallFtt"] == "0.0"
    assert stats["topDefects"] == []
    assert stats["timeSlotSeries"] == []
    assert stats["vinHistory"] == []
    assert stats["subAreaDetail"] is None
    assert [row["area"] for row in stats["areaStats"]] == list(AREAS)
    assert all(row["ftt"] == "0.0" for row in stats["areaStats"])
    assert [row["name"] for row in stats["modelStats"]] == list(MODELS)


def test_vin_query_is_case_insensitive_substring():
    passes = [
        _pass(id="a", vin="9bw1abc000"),
        _pass(id="b", vin="XYZ999"),
        _pass(id="c", vin=""),
    ]
    stats = compute_statistics(passes, [], [], _filters(vin_query="9BW1"))

    assert stats["totalOk"] == 1
    assert [row["id"] for row in stats["vinHistory"]] == ["a"]
    linha_ok = next(row for row in stats["areaStats"] if row["area"] == "Linha OK")
    assert linha_ok["ok"] == 1


def test_area_selection_limits_cards_but_not_area_summary():
    passes = [_pass(area="Linha OK", quantity=3), _pass(area="Teste de Chuva", quantity=5)]
    downtime = [_downtime(20, area="Linha OK"), _downtime(40, area="Teste de Chuva")]

    stats = compute_statistics(passes, [], downtime, _filters(area="Linha OK"))

    assert stats["totalOk"] == 3
    assert stats["totalDowntimeMinutes"] == 20
    assert stats["downtimeEvents"] == 1
    by_area = {row["area"]: row for row in stats["areaStats"]}
    assert by_area["Teste de Chuva"]["ok"] == 5
    assert by_area["Teste de Chuva"]["downtime"] == 40


def test_general_chart_scope_widens_charts_only():
    passes = [
        _pass(id="ok1", area="Linha OK", time_slot="08:00 as 09:00"),
        _pass(id="ok2", area="Teste de Chuva", time_slot="13:00 as 14:00"),
    ]
    defects = [_defect("Vazamento", area="Teste de Chuva", id="d1")]

    stats = compute_statistics(
        passes, defects, [], _filters(area="Linha OK", chart_scope=CHART_SCOPE_GENERAL)
    )

    assert stats["totalOk"] == 1
    assert stats["totalDefects"] == 0
    assert [row["slot"] for row in stats["timeSlotSeries"]] == [
        "08:00 as 09:00",
        "13:00 as 14:00",
    ]
    assert stats["topDefects"] == [{"name": "VAZAMENTO [TESTE]", "value": 1}]


def test_defect_labels_include_area_tag_and_acting_section():
    defects = [
        _defect(" risco ", area="Teste de Estrada", acting_section="Chassis", id="d1", quantity=2),
    ]

    all_areas = compute_statistics([], defects, [], _filters(area=ALL_AREAS))
    selected = compute_statistics([], defects, [], _filters(area="Teste de Estrada"))

    assert all_areas["topDefects"] == [{"name": "RISCO [TESTE] (CHASSIS)", "value": 2}]
    assert selected["topDefects"] == [{"name": "RISCO (CHASSIS)", "value": 2}]


def test_top_defects_keeps_ten_largest_and_skips_empty_groups():
    defects = [_defect(f"Defeito {n}", id=f"d{n}", quantity=n) for n in range(1, 13)]
    defects.append(_defect("Sem quantidade", id="zero", quantity=0))
    defects.append(_defect("   ", id="blank", quantity=4))

    ranked = compute_statistics([], defects, [], _filters(area="Linha OK"))["topDefects"]

    assert len(ranked) == 10
    assert ranked[0] == {"name": "DEFEITO 12", "value": 12}
    assert ranked[-1] == {"name": "DEFEITO 3", "value": 3}
    assert all(entry["name"] != "SEM QUANTIDADE" for entry in ranked)


def test_rank_defects_merges_case_variants_and_keeps_tie_order():
    defects = [
        _defect("porta", id="1"),
        _defect("Capô", id="2"),
        _defect("PORTA ", id="3"),
        _defect("capô", id="4"),
    ]

    assert rank_defects(defects) == [
        {"name": "PORTA", "value": 2},
        {"name": "CAPÔ", "value": 2},
    ]


def test_time_slots_sorted_by_start_time():
    passes = [
        _pass(id="a", time_slot="10:00 as 11:00", quantity=1),
        _pass(id="b", time_slot="08:00 as 09:00", quantity=2),
        _pass(id="c", time_slot="09:00 as 09:50", quantity=3),
    ]
    defects = [_defect(id="d", time_slot="09:00 as 09:50")]

    series = compute_statistics(passes, defects, [], _filters())["timeSlotSeries"]

    assert [row["slot"] for row in series] == [
        "08:00 as 09:00",
        "09:00 as 09:50",
        "10:00 as 11:00",
    ]
    assert series[1] == {"slot": "09:00 as 09:50", "ok": 3, "nok": 1, "total": 4}
    assert slot_start("13:00 as 14:00") == "13:00"


def test_sub_area_detail_for_offline_inspection():
    passes = [
        _pass(id="a", area=OFFLINE_AREA, acting_section="Resinspeção Linha Ok",
              released="Porta", quantity=2),
    ]
    defects = [
        _defect(id="d", area=OFFLINE_AREA, acting_section="reinspeção recebimento"),
    ]

    detail = compute_statistics(passes, defects, [], _filters(area=OFFLINE_AREA))["subAreaDetail"]

    assert detail["area"] == OFFLINE_AREA
    assert len(detail["options"]) == 6
    assert detail["timeSeries"][0]["slot"] == "08:00 as 09:00"
    assert detail["timeSeries"][0]["Resinspeção Linha Ok"] == 2
    assert detail["timeSeries"][0]["reinspeção recebimento"] == 1
    assert detail["totals"] == [
        {"name": "Resinspeção Linha Ok", "value": 2, "defects": 0},
        {"name": "reinspeção recebimento", "value": 1, "defects": 1},
    ]


def test_reinspections_and_released_items():
    passes = [
        _pass(id="a", area=OFFLINE_AREA, released="Farol", is_reinspection=True, quantity=2),
        _pass(id="b", area="Linha OK", released="ignored"),
    ]
    defects = [_defect(id="d", is_reinspection=True, quantity=3)]

    stats = compute_statistics(passes, defects, [], _filters())

    assert stats["totalReinspections"] == 5
    assert stats["releasedCount"] == 1


def test_dates_follow_filter_timezone():
    sao_paulo = timezone(timedelta(hours=-3))
    # 01:00 UTC on the 11th is still the 10th at UTC-3.
    late = _pass(id="late", timestamp=_ts(1, day=date(2024, 6, 11)))

    local = StatisticsFilter(start_date=DAY, end_date=DAY, tz=sao_paulo)
    utc = StatisticsFilter(start_date=DAY, end_date=DAY, tz=UTC)

    assert compute_statistics([late], [], [], local)["totalOk"] == 1
    assert compute_statistics([late], [], [], utc)["totalOk"] == 0


def test_filter_records_applies_range_area_and_vin():
    passes = [
        _pass(id="in", vin="ABC"),
        _pass(id="old", vin="ABC", timestamp=_ts(day=DAY - timedelta(days=3))),
        _pass(id="other", vin="ABC", area="Teste de Chuva"),
    ]
    downtime = [_downtime(10), _downtime(5, area="Teste de Chuva", id="t2")]

    filtered = filter_records(passes, [], downtime, _filters(area="Linha OK", vin_query="abc"))

    assert [r.id for r in filtered.passes] == ["in"]
    assert [r.id for r in filtered.downtime] == ["t-10"]


def test_statistics_are_recomputed_without_mutating_input():
    passes = [_pass(id="a"), _pass(id="b", quantity=4)]
    snapshot = list(passes)

    first = compute_statistics(passes, [], [], _filters())
    second = compute_statistics(passes, [], [], _filters())

    assert first == second
    assert passes == snapshot


def test_for_period_builds_rolling_window():
    today = date(2024, 6, 30)
    weekly = StatisticsFilter.for_period("WEEKLY", today, area="Linha OK")
    annual = StatisticsFilter.for_period("ANNUAL", today)

    assert weekly.start_date == date(2024, 6, 23)
    assert weekly.end_date == today
    assert weekly.area == "Linha OK"
    assert annual.start_date == today - timedelta(days=365)
    assert annual.all_areas


def test_employee_history_lists_own_entries_newest_first():
    passes = [
        _pass(id="mine-old", employee_id="123", timestamp=_ts(8)),
        _pass(id="theirs", employee_id="999", timestamp=_ts(10)),
    ]
    defects = [_defect(id="mine-new", employee_id="123", timestamp=_ts(11))]

    history = employee_history(passes, defects, "123")

    assert [(row["id"], row["type"]) for row in history] == [
        ("mine-new", "NOT_OK"),
        ("mine-old", "OK"),
    ]


def test_all_areas_scenario_leaves_other_areas_empty():
    stats = compute_statistics(
        [_pass(quantity=2)],
        [_defect("Scratch", quantity=1)],
        [_downtime(30)],
        _filters(area=ALL_AREAS),
    )

    assert (stats["totalOk"], stats["totalDefects"], stats["totalProcessed"]) == (2, 1, 3)
    assert stats["totalDowntimeHours"] == "0.5"
    for row in stats["areaStats"]:
        if row["area"] == "Linha OK":
            assert (row["ok"], row["nok"], row["total"], row["ftt"]) == (2, 1, 3, "66.7")
        else:
            assert (row["ok"], row["nok"], row["total"], row["ftt"]) == (0, 0, 0, "0.0")


def test_area_summaries_partition_the_filtered_totals():
    passes = [
        _pass(id=f"p{n}", area=area, quantity=n + 1)
        for n, area in enumerate(AREAS)
    ]
    defects = [_defect(id=f"d{n}", area=area, quantity=n) for n, area in enumerate(AREAS)]

    stats = compute_statistics(passes, defects, [], _filters(area="Linha OK"))
    everything = compute_statistics(passes, defects, [], _filters())

    assert sum(row["ok"] for row in stats["areaStats"]) == everything["totalOk"]
    assert sum(row["nok"] for row in stats["areaStats"]) == everything["totalDefects"]
    assert all(0 <= float(row["ftt"]) <= 100 for row in stats["areaStats"])


def test_records_without_slot_count_in_totals_only():
    stats = compute_statistics([_pass(id="free", time_slot="", quantity=4)], [], [], _filters())

    assert stats["totalOk"] == 4
    assert stats["timeSlotSeries"] == []


def test_stored_rows_with_non_positive_quantity_keep_ftt_in_range():
    passes = [PassRecord.from_row({"id": "p", "timestamp": _ts(), "model": "EQE",
                                   "area": "Linha OK", "quantity": 5})]
    defects = [
        DefectRecord.from_row({"id": "d1", "timestamp": _ts(), "model": "EQE",
                               "area": "Linha OK", "defect_type": "Risco", "quantity": -1}),
        DefectRecord.from_row({"id": "d2", "timestamp": _ts(), "model": "EQE",
                               "area": "Linha OK", "defect_type": "Amassado", "quantity": "0"}),
    ]

    stats = compute_statistics(passes, defects, [], _filters())

    assert [record.quantity for record in defects] == [1, 1]
    linha_ok = next(row for row in stats["areaStats"] if row["area"] == "Linha OK")
    assert linha_ok["ftt"] == "71.4"
    assert 0.0 <= float(stats["overallFtt"]) <= 100.0
