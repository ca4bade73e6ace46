from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastapi import Body, FastAPI, HTTPException

from vqcenter.constants import CHART_SCOPE_SELECTED, CHART_SCOPES, normalize_area_filter
from vqcenter.records import KIND_DEFECT, KIND_DOWNTIME, KIND_PASS, record_from_row
from vqcenter.statistics import StatisticsFilter, compute_statistics


app = FastAPI(title="VQ Quality Statistics API")


def _parse_filter(raw: Dict[str, Any]) -> StatisticsFilter:
    tz_name: Optional[str] = raw.get("timezone")
    try:
        tz = ZoneInfo(tz_name) if tz_name else None
        area = normalize_area_filter(raw.get("area"))
        start = date.fromisoformat(str(raw["start_date"]))
        end = date.fromisoformat(str(raw.get("end_date") or raw["start_date"]))
    except ZoneInfoNotFoundError:
        raise HTTPException(status_code=422, detail=f"Unknown timezone: {tz_name}")
    except KeyError:
        raise HTTPException(status_code=422, detail="filter.start_date is required")
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))

    chart_scope = str(raw.get("chart_scope") or CHART_SCOPE_SELECTED).upper()
    if chart_scope not in CHART_SCOPES:
        raise HTTPException(status_code=422, detail=f"Invalid chart scope: {chart_scope}")
    return StatisticsFilter(
        start_date=start,
        end_date=end,
        area=area,
        vin_query=str(raw.get("vin") or "").strip(),
        chart_scope=chart_scope,
        tz=tz,
    )


@app.post("/statistics")
def statistics_endpoint(
    payload: Dict[str, Any] = Body(..., example={
        "passes": [
            {
                "id": "p1",
                "timestamp": 1718028000000,
                "model": "EQE",
                "area": "Linha OK",
                "vin": "9BWZZZ377VT004251",
                "quantity": 2,
                "time_slot": "08:00 as 09:00",
            }
        ],
        "defects": [
            {
                "id": "d1",
                "timestamp": 1718029000000,
                "model": "EQE",
                "area": "Linha OK",
                "defect_type": "Risco na porta",
                "time_slot": "08:00 as 09:00",
            }
        ],
        "downtime": [
            {
                "id": "t1",
                "timestamp": 1718030000000,
                "area": "Linha OK",
                "start_time": "10:00",
                "end_time": "10:30",
                "duration_minutes": 30,
            }
        ],
        "filter": {
            "start_date": "2024-06-10",
            "end_date": "2024-06-10",
            "area": "Linha OK",
            "timezone": "America/Sao_Paulo",
        },
    })
):
    rows: Dict[str, List[Dict[str, Any]]] = {
        KIND_PASS: payload.get("passes") or [],
        KIND_DEFECT: payload.get("defects") or [],
        KIND_DOWNTIME: payload.get("downtime") or [],
    }
    filters = _parse_filter(payload.get("filter") or {})
    records = {kind: [record_from_row(kind, row) for row in items] for kind, items in rows.items()}
    return compute_statistics(
        records[KIND_PASS], records[KIND_DEFECT], records[KIND_DOWNTIME], filters
    )


# To run locally:
#   uvicorn api_statistics:app --reload --port 8080
