"""Workspace-partitioned event stores for inspection and downtime records.

Two backends share one interface: :class:`LocalEventStore` keeps JSON
payloads in a SQLite file, :class:`SupabaseEventStore` writes to the shared
Supabase tables.  Like the other data helpers in this project, reads and
writes return ``(data, error)`` tuples instead of raising, so a failed write
simply never reaches the statistics engine.
"""

from __future__ import annotations

import json
import sqlite3
import threading
from collections import defaultdict
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Iterator

from config.supabase_schema import (
    column_name,
    from_supabase_row,
    table_name,
    to_supabase_payload,
)
from vqcenter.records import (
    KIND_DEFECT,
    KIND_DOWNTIME,
    KIND_PASS,
    RECORD_KINDS,
    record_from_row,
)

Listener = Callable[[str, str], None]
Snapshot = tuple[list, list, list]


class EventStore:
    """Common subscription handling; subclasses implement the storage."""

    def __init__(self) -> None:
        self._listeners: defaultdict[str, list[Listener]] = defaultdict(list)
        self._listener_lock = threading.Lock()

    def subscribe(self, workspace_id: str, callback: Listener) -> Callable[[], None]:
        """Call ``callback(workspace_id, kind)`` after every successful write.

        Returns a function that removes the subscription.
        """

        with self._listener_lock:
            self._listeners[workspace_id].append(callback)

        def unsubscribe() -> None:
            with self._listener_lock:
                listeners = self._listeners.get(workspace_id, [])
                if callback in listeners:
                    listeners.remove(callback)

        return unsubscribe

    def _notify(self, workspace_id: str, kind: str) -> None:
        with self._listener_lock:
            listeners = list(self._listeners.get(workspace_id, []))
        for callback in listeners:
            callback(workspace_id, kind)

    @staticmethod
    def _check_kind(kind: str) -> str | None:
        if kind not in RECORD_KINDS:
            return f"Unknown record kind: {kind}"
        return None

    def snapshot(self, workspace_id: str) -> tuple[Snapshot | None, str | None]:
        """Return ``(passes, defects, downtime)`` for ``workspace_id``."""

        collections = []
        for kind in (KIND_PASS, KIND_DEFECT, KIND_DOWNTIME):
            records, error = self.list_records(workspace_id, kind)
            if error:
                return None, error
            collections.append(records)
        return (collections[0], collections[1], collections[2]), None

    def get_record(self, workspace_id: str, kind: str, record_id: str):
        records, error = self.list_records(workspace_id, kind)
        if error:
            return None, error
        for record in records:
            if record.id == record_id:
                return record, None
        return None, None

    def list_records(self, workspace_id: str, kind: str):  # pragma: no cover - interface
        raise NotImplementedError

    def add_record(self, workspace_id: str, record):  # pragma: no cover - interface
        raise NotImplementedError

    def update_record(self, workspace_id: str, record):  # pragma: no cover - interface
        raise NotImplementedError

    def remove_record(self, workspace_id: str, kind: str, record_id: str):  # pragma: no cover
        raise NotImplementedError

    def clear_all(self, workspace_id: str):  # pragma: no cover - interface
        raise NotImplementedError


class WorkspaceRevisions:
    """Per-workspace change counters fed by :meth:`EventStore.subscribe`.

    Open dashboards poll the counter and recompute their statistics when it
    moves.
    """

    def __init__(self, store: EventStore, logger=None) -> None:
        self._store = store
        self._logger = logger
        self._revisions: dict[str, int] = {}
        self._lock = threading.Lock()

    def watch(self, workspace_id: str) -> None:
        with self._lock:
            if workspace_id in self._revisions:
                return
            self._revisions[workspace_id] = 0
        self._store.subscribe(workspace_id, self._on_change)

    def _on_change(self, workspace_id: str, kind: str) -> None:
        with self._lock:
            revision = self._revisions.get(workspace_id, 0) + 1
            self._revisions[workspace_id] = revision
        if self._logger is not None:
            self._logger.debug(
                "Workspace %s changed (%s); revision %d", workspace_id, kind, revision
            )

    def revision(self, workspace_id: str) -> int:
        self.watch(workspace_id)
        with self._lock:
            return self._revisions[workspace_id]


class LocalEventStore(EventStore):
    """SQLite-backed store for single-site installations."""

    def __init__(self, database_path: str | Path) -> None:
        super().__init__()
        self.database_path = Path(database_path)
        self.database_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._initialize()

    def _initialize(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS records (
                    workspace_id TEXT NOT NULL,
                    kind TEXT NOT NULL,
                    id TEXT NOT NULL,
                    timestamp INTEGER NOT NULL,
                    payload TEXT NOT NULL,
                    PRIMARY KEY (workspace_id, kind, id)
                )
                """
            )
            conn.commit()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.database_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    def list_records(self, workspace_id: str, kind: str):
        error = self._check_kind(kind)
        if error:
            return None, error
        try:
            with self._connect() as conn:
                rows = conn.execute(
                    """
                    SELECT payload FROM records
                    WHERE workspace_id = ? AND kind = ?
                    ORDER BY timestamp DESC
                    """,
                    (workspace_id, kind),
                ).fetchall()
        except sqlite3.Error as exc:
            return None, f"Failed to read {kind} records: {exc}"
        return [record_from_row(kind, json.loads(row["payload"])) for row in rows], None

    def add_record(self, workspace_id: str, record):
        payload = json.dumps(record.to_row(), ensure_ascii=False)
        try:
            with self._lock, self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO records (workspace_id, kind, id, timestamp, payload)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (workspace_id, record.kind, record.id, record.timestamp, payload),
                )
                conn.commit()
        except sqlite3.Error as exc:
            return None, f"Failed to save {record.kind} record: {exc}"
        self._notify(workspace_id, record.kind)
        return record, None

    def update_record(self, workspace_id: str, record):
        payload = json.dumps(record.to_row(), ensure_ascii=False)
        try:
            with self._lock, self._connect() as conn:
                cur = conn.execute(
                    """
                    UPDATE records SET timestamp = ?, payload = ?
                    WHERE workspace_id = ? AND kind = ? AND id = ?
                    """,
                    (record.timestamp, payload, workspace_id, record.kind, record.id),
                )
                conn.commit()
        except sqlite3.Error as exc:
            return None, f"Failed to update {record.kind} record: {exc}"
        if cur.rowcount == 0:
            return None, f"Record {record.id} not found"
        self._notify(workspace_id, record.kind)
        return record, None

    def remove_record(self, workspace_id: str, kind: str, record_id: str):
        error = self._check_kind(kind)
        if error:
            return False, error
        try:
            with self._lock, self._connect() as conn:
                cur = conn.execute(
                    "DELETE FROM records WHERE workspace_id = ? AND kind = ? AND id = ?",
                    (workspace_id, kind, record_id),
                )
                conn.commit()
        except sqlite3.Error as exc:
            return False, f"Failed to delete {kind} record: {exc}"
        removed = cur.rowcount > 0
        if removed:
            self._notify(workspace_id, kind)
        return removed, None

    def clear_all(self, workspace_id: str):
        try:
            with self._lock, self._connect() as conn:
                conn.execute("DELETE FROM records WHERE workspace_id = ?", (workspace_id,))
                conn.commit()
        except sqlite3.Error as exc:
            return False, f"Failed to clear workspace {workspace_id}: {exc}"
        for kind in RECORD_KINDS:
            self._notify(workspace_id, kind)
        return True, None


class SupabaseEventStore(EventStore):
    """Store backed by the shared Supabase tables, one row per record."""

    def __init__(self, client: Any) -> None:
        super().__init__()
        self.client = client

    def _table(self, kind: str):
        return self.client.table(table_name(kind))

    def _payload(self, workspace_id: str, record) -> dict:
        row = record.to_row()
        row["workspace_id"] = workspace_id
        return to_supabase_payload(record.kind, row)

    def list_records(self, workspace_id: str, kind: str):
        error = self._check_kind(kind)
        if error:
            return None, error
        try:
            response = (
                self._table(kind)
                .select("*")
                .eq(column_name(kind, "workspace_id"), workspace_id)
                .order(column_name(kind, "timestamp"), desc=True)
                .execute()
            )
        except Exception as exc:  # pragma: no cover - network errors
            return None, f"Failed to fetch {kind} records: {exc}"
        rows = getattr(response, "data", None) or []
        records = [record_from_row(kind, from_supabase_row(kind, row)) for row in rows]
        records.sort(key=lambda record: record.timestamp, reverse=True)
        return records, None

    def add_record(self, workspace_id: str, record):
        try:
            self._table(record.kind).insert(self._payload(workspace_id, record)).execute()
        except Exception as exc:  # pragma: no cover - network errors
            return None, f"Failed to save {record.kind} record: {exc}"
        self._notify(workspace_id, record.kind)
        return record, None

    def update_record(self, workspace_id: str, record):
        kind = record.kind
        try:
            response = (
                self._table(kind)
                .update(self._payload(workspace_id, record))
                .eq(column_name(kind, "workspace_id"), workspace_id)
                .eq(column_name(kind, "id"), record.id)
                .execute()
            )
        except Exception as exc:  # pragma: no cover - network errors
            return None, f"Failed to update {kind} record: {exc}"
        if not getattr(response, "data", None):
            return None, f"Record {record.id} not found"
        self._notify(workspace_id, kind)
        return record, None

    def remove_record(self, workspace_id: str, kind: str, record_id: str):
        error = self._check_kind(kind)
        if error:
            return False, error
        try:
            response = (
                self._table(kind)
                .delete()
                .eq(column_name(kind, "workspace_id"), workspace_id)
                .eq(column_name(kind, "id"), record_id)
                .execute()
            )
        except Exception as exc:  # pragma: no cover - network errors
            return False, f"Failed to delete {kind} record: {exc}"
        removed = bool(getattr(response, "data", None))
        if removed:
            self._notify(workspace_id, kind)
        return removed, None

    def clear_all(self, workspace_id: str):
        for kind in RECORD_KINDS:
            try:
                (
                    self._table(kind)
                    .delete()
                    .eq(column_name(kind, "workspace_id"), workspace_id)
                    .execute()
                )
            except Exception as exc:  # pragma: no cover - network errors
                return False, f"Failed to clear {kind} records: {exc}"
            self._notify(workspace_id, kind)
        return True, None


__all__ = ["EventStore", "LocalEventStore", "SupabaseEventStore"]
