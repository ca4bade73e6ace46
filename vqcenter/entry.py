"""Normalisation and validation of operator entries before they are stored."""

from __future__ import annotations

import re
import uuid
from datetime import date, datetime
from typing import Any, Iterable, Mapping

from vqcenter.constants import (
    AREAS,
    DOWNTIME_REASONS,
    EMPLOYEE_REQUIRED_AREAS,
    MODELS,
    OFFLINE_AREA,
    TIME_SLOT_SEPARATOR,
    VIN_REQUIRED_AREAS,
    acting_sections_for,
)
from vqcenter.records import (
    DefectRecord,
    DowntimeRecord,
    PassRecord,
    STATUS_NOT_OK,
    STATUS_OK,
)
from vqcenter.statistics import record_date

_CLOCK_RE = re.compile(r"^(\d{1,2}):(\d{2})$")
MINUTES_PER_DAY = 24 * 60


class EntryValidationError(ValueError):
    """Raised when a submitted entry is incomplete or inconsistent."""


class DuplicateEntryError(ValueError):
    """Raised when an entry repeats an existing one and was not confirmed."""

    def __init__(self, message: str, existing: PassRecord | DefectRecord):
        super().__init__(message)
        self.existing = existing


def new_record_id() -> str:
    return str(uuid.uuid4())


def normalize_vin(value: Any) -> str:
    return str(value or "").strip().upper()


def parse_clock(value: Any) -> int:
    """Minutes since midnight for an ``HH:MM`` string."""

    match = _CLOCK_RE.match(str(value or "").strip())
    if not match:
        raise EntryValidationError(f"Invalid time of day: {value!r}")
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise EntryValidationError(f"Invalid time of day: {value!r}")
    return hours * 60 + minutes


def combine_time_slot(start: Any, end: Any) -> str:
    start = str(start or "").strip()
    end = str(end or "").strip()
    if not start or not end:
        return ""
    return f"{start}{TIME_SLOT_SEPARATOR}{end}"


def split_time_slot(slot: str | None) -> tuple[str, str]:
    """Inverse of :func:`combine_time_slot`; ``("", "")`` for free-form slots."""

    if slot and TIME_SLOT_SEPARATOR in slot:
        start, end = slot.split(TIME_SLOT_SEPARATOR, 1)
        return start.strip(), end.strip()
    return "", ""


def compute_duration_minutes(start: Any, end: Any) -> int:
    """Minutes from ``start`` to ``end``, wrapping past midnight.

    Raises:
        EntryValidationError: a time is malformed or both times are equal.
    """

    diff = (parse_clock(end) - parse_clock(start)) % MINUTES_PER_DAY
    if diff == 0:
        raise EntryValidationError("Downtime duration cannot be zero.")
    return diff


def parse_entry_date(value: Any) -> date | None:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError:
        raise EntryValidationError(f"Invalid entry date: {value!r}") from None


def entry_timestamp(entry_date: date | None, now: datetime) -> int:
    """Epoch milliseconds for an entry logged on ``entry_date``.

    Entries for the current day are stamped with ``now``; back-dated entries are
    stamped at noon of their day in ``now``'s time zone.
    """

    if entry_date is None or entry_date == now.date():
        moment = now
    else:
        moment = datetime(
            entry_date.year, entry_date.month, entry_date.day, 12, tzinfo=now.tzinfo
        )
    return int(moment.timestamp() * 1000)


def _flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on", "sim"}
    return bool(value)


def _quantity(value: Any) -> int:
    if value in (None, ""):
        return 1
    try:
        quantity = int(str(value).strip())
    except (TypeError, ValueError):
        raise EntryValidationError(f"Invalid quantity: {value!r}") from None
    if quantity < 1:
        raise EntryValidationError("Quantity must be at least 1.")
    return quantity


def _time_slot(form: Mapping[str, Any]) -> str:
    slot = combine_time_slot(form.get("start_time"), form.get("end_time"))
    if not slot:
        start, end = split_time_slot(str(form.get("time_slot") or "").strip())
        slot = combine_time_slot(start, end)
    if not slot:
        raise EntryValidationError("Select the start and end time of the inspection.")
    start, end = split_time_slot(slot)
    parse_clock(start)
    parse_clock(end)
    return slot


def entry_status(form: Mapping[str, Any]) -> str:
    status = str(form.get("status") or STATUS_OK).strip().upper()
    if status not in (STATUS_OK, STATUS_NOT_OK):
        raise EntryValidationError(f"Unknown status: {status}")
    return status


def build_inspection_record(
    form: Mapping[str, Any],
    *,
    now: datetime,
    record_id: str | None = None,
    timestamp: int | None = None,
) -> PassRecord | DefectRecord:
    """Validate a submitted inspection form and return the record to store.

    ``form`` keys: ``status`` (``OK``/``NOT_OK``), ``model``, ``area``,
    ``vin``, ``quantity``, ``employee_id``, ``start_time``/``end_time`` (or a
    combined ``time_slot``), ``acting_section``, ``released``,
    ``is_reinspection``, ``defect_type`` and ``entry_date``.
    """

    status = entry_status(form)
    area = str(form.get("area") or "").strip()
    if area not in AREAS:
        raise EntryValidationError(f"Unknown area: {area}")
    model = str(form.get("model") or "").strip().upper()
    if model not in MODELS:
        raise EntryValidationError(f"Unknown model: {model}")

    employee_id = str(form.get("employee_id") or "").strip()
    if area in EMPLOYEE_REQUIRED_AREAS and not employee_id:
        raise EntryValidationError("The employee id is required for this area.")

    time_slot = _time_slot(form)

    options = acting_sections_for(area)
    acting_section = str(form.get("acting_section") or "").strip()
    released = str(form.get("released") or "").strip()
    if options:
        if acting_section not in options:
            raise EntryValidationError("Select where the inspection was performed.")
        if area == OFFLINE_AREA and status == STATUS_OK and not released:
            raise EntryValidationError("Describe what was released in this offline inspection.")
    else:
        acting_section = ""

    vin = normalize_vin(form.get("vin"))
    if area in VIN_REQUIRED_AREAS and not vin:
        raise EntryValidationError("The VIN is required for this area.")

    if timestamp is None:
        timestamp = entry_timestamp(parse_entry_date(form.get("entry_date")), now)

    fields = {
        "id": record_id or new_record_id(),
        "timestamp": timestamp,
        "model": model,
        "area": area,
        "vin": vin,
        "quantity": _quantity(form.get("quantity")),
        "employee_id": employee_id,
        "time_slot": time_slot,
        "acting_section": acting_section,
        "released": released,
        "is_reinspection": _flag(form.get("is_reinspection")),
    }
    if status == STATUS_NOT_OK:
        defect_type = str(form.get("defect_type") or "").strip()
        if not defect_type:
            raise EntryValidationError("A defect description is required for NOT OK entries.")
        return DefectRecord(defect_type=defect_type, **fields)
    return PassRecord(**fields)


def build_downtime_record(
    form: Mapping[str, Any], *, now: datetime, record_id: str | None = None
) -> DowntimeRecord:
    area = str(form.get("area") or "").strip()
    if area not in AREAS:
        raise EntryValidationError(f"Unknown area: {area}")
    start_time = str(form.get("start_time") or "").strip()
    end_time = str(form.get("end_time") or "").strip()
    if not start_time or not end_time:
        raise EntryValidationError("Enter the start and end of the stoppage.")
    reason = str(form.get("reason") or "").strip()
    if reason not in DOWNTIME_REASONS:
        raise EntryValidationError(f"Unknown downtime reason: {reason}")
    return DowntimeRecord(
        id=record_id or new_record_id(),
        timestamp=int(now.timestamp() * 1000),
        area=area,
        start_time=start_time,
        end_time=end_time,
        duration_minutes=compute_duration_minutes(start_time, end_time),
        reason=reason,
        employee_id=str(form.get("employee_id") or "").strip(),
    )


def find_duplicate(
    record: PassRecord | DefectRecord,
    existing: Iterable[PassRecord | DefectRecord],
) -> PassRecord | DefectRecord | None:
    """Return an existing entry that repeats ``record``, if any.

    OK entries match on VIN, area, model, reinspection flag, acting section and
    time slot.  Defect entries match on VIN, area, defect description (case
    insensitive), acting section and time slot.  Entries without a VIN are
    never considered duplicates.
    """

    if not record.vin:
        return None
    for other in existing:
        if other.id == record.id or normalize_vin(other.vin) != record.vin:
            continue
        if (
            other.area != record.area
            or other.acting_section != record.acting_section
            or other.time_slot != record.time_slot
        ):
            continue
        if isinstance(record, DefectRecord):
            if (
                isinstance(other, DefectRecord)
                and other.defect_type.upper() == record.defect_type.upper()
            ):
                return other
        elif not isinstance(other, DefectRecord):
            if other.model == record.model and other.is_reinspection == record.is_reinspection:
                return other
    return None


def check_duplicate(
    record: PassRecord | DefectRecord,
    existing: Iterable[PassRecord | DefectRecord],
    *,
    confirmed: bool = False,
    previous: PassRecord | DefectRecord | None = None,
) -> None:
    """Raise :class:`DuplicateEntryError` for an unconfirmed repeated entry.

    ``previous`` is the stored version of an entry being edited; an edit that
    keeps the same VIN is not checked again.
    """

    if confirmed:
        return
    if previous is not None and normalize_vin(previous.vin) == record.vin:
        return
    duplicate = find_duplicate(record, existing)
    if duplicate is None:
        return
    if isinstance(record, DefectRecord):
        message = f"This defect is already registered for VIN {record.vin} in this area/section."
    else:
        message = f"VIN {record.vin} already has an identical entry in this area/section."
    raise DuplicateEntryError(message, duplicate)


def apply_edit(
    existing: PassRecord | DefectRecord, form: Mapping[str, Any], *, now: datetime
) -> tuple[PassRecord | DefectRecord, bool]:
    """Apply an edit form to ``existing``.

    Returns ``(record, moved)``.  The id is kept, and so is the timestamp
    unless the submitted entry date differs from the record's calendar day.
    When the status flips between OK and NOT_OK the entry belongs in the other
    collection: ``moved`` is true and the record gets a fresh id.
    """

    entry_date = parse_entry_date(form.get("entry_date"))
    timestamp: int | None = existing.timestamp
    if entry_date is not None and entry_date != record_date(existing.timestamp, now.tzinfo):
        timestamp = None

    was_defect = isinstance(existing, DefectRecord)
    is_defect = entry_status(form) == STATUS_NOT_OK
    moved = was_defect != is_defect
    record = build_inspection_record(
        form,
        now=now,
        record_id=None if moved else existing.id,
        timestamp=timestamp,
    )
    return record, moved


__all__ = [
    "DuplicateEntryError",
    "EntryValidationError",
    "apply_edit",
    "build_downtime_record",
    "build_inspection_record",
    "check_duplicate",
    "combine_time_slot",
    "compute_duration_minutes",
    "entry_timestamp",
    "find_duplicate",
    "normalize_vin",
    "parse_clock",
    "parse_entry_date",
    "split_time_slot",
]
