"""Inspection and downtime records as stored in a workspace."""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from typing import Any, Mapping

KIND_PASS = "pass"
KIND_DEFECT = "defect"
KIND_DOWNTIME = "downtime"
RECORD_KINDS = (KIND_PASS, KIND_DEFECT, KIND_DOWNTIME)

STATUS_OK = "OK"
STATUS_NOT_OK = "NOT_OK"


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _int(value: Any, default: int) -> int:
    """Return ``value`` as an int, or ``default`` when it cannot be parsed."""

    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
            return default
        return int(value)
    text = str(value).strip()
    if not text:
        return default
    try:
        return int(float(text))
    except (TypeError, ValueError):
        return default


def _quantity(value: Any) -> int:
    """Units on an inspection row; anything below one counts as a single unit."""

    quantity = _int(value, 1)
    return quantity if quantity >= 1 else 1


def _flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "sim", "on"}
    return bool(value)


def _pick(row: Mapping[str, Any], *names: str) -> Any:
    """Return the first present, non-empty value among ``names``."""

    for name in names:
        if name in row:
            value = row.get(name)
            if value not in (None, ""):
                return value
    return None


@dataclass
class PassRecord:
    """One OK inspection entry."""

    id: str = ""
    timestamp: int = 0
    model: str = ""
    area: str = ""
    vin: str = ""
    quantity: int = 1
    employee_id: str = ""
    time_slot: str = ""
    acting_section: str = ""
    released: str = ""
    is_reinspection: bool = False

    kind = KIND_PASS

    @classmethod
    def _common_fields(cls, row: Mapping[str, Any]) -> dict[str, Any]:
        return {
            "id": _text(row.get("id")),
            "timestamp": _int(row.get("timestamp"), 0),
            "model": _text(row.get("model")),
            "area": _text(row.get("area")),
            "vin": _text(row.get("vin")),
            "quantity": _quantity(row.get("quantity")),
            "employee_id": _text(_pick(row, "employee_id", "employeeId")),
            "time_slot": _text(_pick(row, "time_slot", "timeSlot")),
            "acting_section": _text(_pick(row, "acting_section", "atuacao")),
            "released": _text(_pick(row, "released", "liberado")),
            "is_reinspection": _flag(_pick(row, "is_reinspection", "isReinspection")),
        }

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "PassRecord":
        """Build a record from a stored row, tolerating missing fields.

        Both the snake_case column names and the camelCase keys of legacy
        browser exports are accepted.
        """

        return cls(**cls._common_fields(row))

    def to_row(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class DefectRecord(PassRecord):
    """One NOT_OK inspection entry; ``quantity`` counts defective units."""

    defect_type: str = ""

    kind = KIND_DEFECT

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "DefectRecord":
        fields = cls._common_fields(row)
        fields["defect_type"] = _text(_pick(row, "defect_type", "defectType"))
        return cls(**fields)


@dataclass
class DowntimeRecord:
    """A line stoppage between two times of day."""

    id: str = ""
    timestamp: int = 0
    area: str = ""
    start_time: str = ""
    end_time: str = ""
    duration_minutes: int = 0
    reason: str = ""
    employee_id: str = ""

    kind = KIND_DOWNTIME

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "DowntimeRecord":
        return cls(
            id=_text(row.get("id")),
            timestamp=_int(row.get("timestamp"), 0),
            area=_text(row.get("area")),
            start_time=_text(_pick(row, "start_time", "startTime")),
            end_time=_text(_pick(row, "end_time", "endTime")),
            duration_minutes=max(
                _int(_pick(row, "duration_minutes", "durationMinutes"), 0), 0
            ),
            reason=_text(row.get("reason")),
            employee_id=_text(_pick(row, "employee_id", "employeeId")),
        )

    def to_row(self) -> dict[str, Any]:
        return asdict(self)


RECORD_TYPES: dict[str, type] = {
    KIND_PASS: PassRecord,
    KIND_DEFECT: DefectRecord,
    KIND_DOWNTIME: DowntimeRecord,
}


def record_from_row(kind: str, row: Mapping[str, Any]):
    """Build the record class registered for ``kind`` from ``row``."""

    try:
        record_type = RECORD_TYPES[kind]
    except KeyError:
        raise ValueError(f"Unknown record kind: {kind}") from None
    return record_type.from_row(row)


__all__ = [
    "DefectRecord",
    "DowntimeRecord",
    "KIND_DEFECT",
    "KIND_DOWNTIME",
    "KIND_PASS",
    "PassRecord",
    "RECORD_KINDS",
    "RECORD_TYPES",
    "STATUS_NOT_OK",
    "STATUS_OK",
    "record_from_row",
]
