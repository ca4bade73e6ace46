import os
import sys

from fastapi.testclient import TestClient

sys.path.append(os.path.dirname(os.path.dirname(__file__)))

from api_statistics import app

client = TestClient(app)

# 2024-06-10 12:00 UTC
NOON = 1718020800000


def _payload(**filter_overrides):
    filters = {"start_date": "2024-06-10", "end_date": "2024-06-10", "timezone": "UTC"}
    filters.update(filter_overrides)
    return {
        "passes": [
            {"id": "p1", "timestamp": NOON, "model": "EQE", "area": "Linha OK",
             "quantity": 2, "time_slot": "08:00 as 09:00"},
        ],
        "defects": [
            {"id": "d1", "timestamp": NOON, "model": "EQE", "area": "Linha OK",
             "defectType": "Risco", "timeSlot": "08:00 as 09:00"},
        ],
        "downtime": [
            {"id": "t1", "timestamp": NOON, "area": "Linha OK", "start_time": "10:00",
             "end_time": "10:30", "duration_minutes": 30},
        ],
        "filter": filters,
    }


def test_statistics_endpoint_returns_engine_output():
    response = client.post("/statistics", json=_payload(area="Linha OK"))

    assert response.status_code == 200
    body = response.json()
    assert body["totalOk"] == 2
    assert body["totalDefects"] == 1
    assert body["overallFtt"] == "66.7"
    assert body["totalDowntimeHours"] == "0.5"
    assert body["topDefects"] == [{"name": "RISCO", "value": 1}]
    assert body["timeSlotSeries"] == [{"slot": "08:00 as 09:00", "ok": 2, "nok": 1, "total": 3}]


def test_statistics_endpoint_validates_filter():
    assert client.post("/statistics", json=_payload(area="Pintura")).status_code == 422
    assert client.post("/statistics", json=_payload(timezone="Mars/Base")).status_code == 422
    assert client.post("/statistics", json={"filter": {}}).status_code == 422
