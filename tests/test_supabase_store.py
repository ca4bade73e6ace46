import os
import sys
from types import SimpleNamespace

sys.path.append(os.path.dirname(os.path.dirname(__file__)))

from vqcenter.records import DefectRecord, PassRecord
from vqcenter.store import SupabaseEventStore


class FakeQuery:
    def __init__(self, supabase, table_name):
        self.supabase = supabase
        self.table_name = table_name
        self._operation = None
        self._payload = None
        self._filters = []
        self._order = None

    def select(self, columns="*"):
        self._operation = "select"
        return self

    def insert(self, rows):
        self._operation = "insert"
        self._payload = rows
        return self

    def update(self, values):
        self._operation = "update"
        self._payload = values
        return self

    def delete(self):
        self._operation = "delete"
        return self

    def eq(self, column, value):
        self._filters.append((column, value))
        return self

    def order(self, column, desc=False):
        self._order = (column, desc)
        return self

    def _matches(self, row):
        return all(row.get(column) == value for column, value in self._filters)

    def execute(self):
        table = self.supabase.tables.setdefault(self.table_name, [])
        if self._operation == "select":
            data = [row for row in table if self._matches(row)]
            if self._order:
                column, desc = self._order
                data.sort(key=lambda row: row.get(column), reverse=desc)
            return SimpleNamespace(data=data)
        if self._operation == "insert":
            rows = self._payload if isinstance(self._payload, list) else [self._payload]
            table.extend(dict(row) for row in rows)
            return SimpleNamespace(data=rows)
        if self._operation == "update":
            updated = []
            for row in table:
                if self._matches(row):
                    row.update(self._payload)
                    updated.append(row)
            return SimpleNamespace(data=updated)
        if self._operation == "delete":
            deleted = [row for row in table if self._matches(row)]
            self.supabase.tables[self.table_name] = [
                row for row in table if not self._matches(row)
            ]
            return SimpleNamespace(data=deleted)
        return SimpleNamespace(data=None)


class FakeSupabase:
    def __init__(self):
        self.tables: dict[str, list[dict]] = {}

    def table(self, name):
        return FakeQuery(self, name)


def _pass(record_id, timestamp=1000, **kwargs):
    return PassRecord(id=record_id, timestamp=timestamp, model="EQE", area="Linha OK", **kwargs)


def test_add_writes_workspace_column_to_kind_table():
    supabase = FakeSupabase()
    store = SupabaseEventStore(supabase)

    store.add_record("plant-a", _pass("p1"))
    store.add_record("plant-a", DefectRecord(id="d1", timestamp=1, defect_type="Risco"))

    assert supabase.tables["inspection_ok"][0]["workspace_id"] == "plant-a"
    assert supabase.tables["inspection_defects"][0]["defect_type"] == "Risco"


def test_list_filters_workspace_and_sorts_newest_first():
    supabase = FakeSupabase()
    store = SupabaseEventStore(supabase)
    store.add_record("ws", _pass("old", timestamp=1))
    store.add_record("ws", _pass("new", timestamp=9))
    store.add_record("other", _pass("foreign", timestamp=5))

    records, error = store.list_records("ws", "pass")

    assert error is None
    assert [r.id for r in records] == ["new", "old"]


def test_update_and_remove_target_one_row():
    supabase = FakeSupabase()
    store = SupabaseEventStore(supabase)
    store.add_record("ws", _pass("p1", quantity=1))
    store.add_record("ws", _pass("p2", quantity=1))

    _, error = store.update_record("ws", _pass("p1", quantity=7))
    assert error is None
    record, _ = store.get_record("ws", "pass", "p1")
    assert record.quantity == 7

    _, error = store.update_record("ws", _pass("missing"))
    assert "not found" in error

    assert store.remove_record("ws", "pass", "p2") == (True, None)
    assert [r.id for r in store.list_records("ws", "pass")[0]] == ["p1"]


def test_clear_all_only_touches_workspace():
    supabase = FakeSupabase()
    store = SupabaseEventStore(supabase)
    store.add_record("ws", _pass("p1"))
    store.add_record("keep", _pass("p2"))
    kinds = []
    store.subscribe("ws", lambda workspace, kind: kinds.append(kind))

    assert store.clear_all("ws") == (True, None)

    assert [row["id"] for row in supabase.tables["inspection_ok"]] == ["p2"]
    assert sorted(kinds) == ["defect", "downtime", "pass"]
