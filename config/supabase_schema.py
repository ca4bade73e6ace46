"""Supabase table and column names used by the shared event store.

Every workspace shares the same three tables; rows are partitioned by a
``workspace_id`` column.  Deployments that use other names can override any
table through the ``SUPABASE_SCHEMA_JSON`` environment variable, e.g.::

    {"defect": {"name": "vq_defects", "columns": {"workspace_id": "plant"}}}

Identifiers without an override resolve to themselves.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping

_INSPECTION_COLUMNS = {
    "id": "id",
    "workspace_id": "workspace_id",
    "timestamp": "timestamp",
    "model": "model",
    "area": "area",
    "vin": "vin",
    "quantity": "quantity",
    "employee_id": "employee_id",
    "time_slot": "time_slot",
    "acting_section": "acting_section",
    "released": "released",
    "is_reinspection": "is_reinspection",
}


@dataclass(frozen=True)
class SupabaseTable:
    """Configuration for a Supabase table."""

    name: str
    columns: Mapping[str, str] = field(default_factory=dict)


# Keyed by record kind.
_DEFAULT_SUPABASE_SCHEMA: Dict[str, SupabaseTable] = {
    "pass": SupabaseTable(name="inspection_ok", columns=dict(_INSPECTION_COLUMNS)),
    "defect": SupabaseTable(
        name="inspection_defects",
        columns={**_INSPECTION_COLUMNS, "defect_type": "defect_type"},
    ),
    "downtime": SupabaseTable(
        name="line_downtime",
        columns={
            "id": "id",
            "workspace_id": "workspace_id",
            "timestamp": "timestamp",
            "area": "area",
            "start_time": "start_time",
            "end_time": "end_time",
            "duration_minutes": "duration_minutes",
            "reason": "reason",
            "employee_id": "employee_id",
        },
    ),
}


def _normalise_columns(columns: Any) -> Dict[str, str]:
    if not isinstance(columns, Mapping):
        return {}
    return {
        str(logical): str(actual)
        for logical, actual in columns.items()
        if isinstance(logical, str) and isinstance(actual, str)
    }


def load_schema(raw_schema: str | None = None) -> Dict[str, SupabaseTable]:
    """Build the schema from defaults plus a JSON override document.

    Column overrides are merged over the default columns of a known table, so
    an override only needs to list the names that differ.  Malformed JSON is
    ignored.
    """

    schema = dict(_DEFAULT_SUPABASE_SCHEMA)
    if raw_schema is None:
        raw_schema = os.getenv("SUPABASE_SCHEMA_JSON")
    if not raw_schema:
        return schema

    try:
        parsed = json.loads(raw_schema)
    except json.JSONDecodeError:
        return schema
    if not isinstance(parsed, Mapping):
        return schema

    for identifier, entry in parsed.items():
        if not isinstance(identifier, str) or not isinstance(entry, Mapping):
            continue
        default = schema.get(identifier)
        name = entry.get("name") or (default.name if default else None)
        if not isinstance(name, str) or not name:
            continue
        columns = dict(default.columns) if default else {}
        columns.update(_normalise_columns(entry.get("columns", {})))
        schema[identifier] = SupabaseTable(name=name, columns=columns)

    return schema


SUPABASE_SCHEMA: Dict[str, SupabaseTable] = load_schema()


def table_name(identifier: str) -> str:
    """Return the configured Supabase table name for ``identifier``."""

    table = SUPABASE_SCHEMA.get(identifier)
    return table.name if table else identifier


def column_name(table_identifier: str, column_identifier: str) -> str:
    """Return the configured column name within ``table_identifier``."""

    table = SUPABASE_SCHEMA.get(table_identifier)
    if table and column_identifier in table.columns:
        return table.columns[column_identifier]
    return column_identifier


def to_supabase_payload(table_identifier: str, payload: Mapping[str, Any]) -> Dict[str, Any]:
    """Return ``payload`` with logical keys mapped to Supabase column names."""

    table = SUPABASE_SCHEMA.get(table_identifier)
    if not table or not table.columns:
        return dict(payload)
    return {table.columns.get(key, key): value for key, value in payload.items()}


def from_supabase_row(table_identifier: str, row: Mapping[str, Any]) -> Dict[str, Any]:
    """Inverse of :func:`to_supabase_payload` for rows read back."""

    table = SUPABASE_SCHEMA.get(table_identifier)
    if not table or not table.columns:
        return dict(row)
    reverse = {actual: logical for logical, actual in table.columns.items()}
    return {reverse.get(key, key): value for key, value in row.items()}
