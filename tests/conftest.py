from contextlib import contextmanager
from pathlib import Path

import pytest

from scoutwatch.data.persistence import FormPersister
from scoutwatch.data.storage import Database
from scoutwatch.domain.models import Item
from scoutwatch.exceptions import StoreOperationFailed


@pytest.fixture
def db(tmp_path):
    """Fresh SQLite store per test."""
    return Database(tmp_path / "scouting.db")


@pytest.fixture
def catalog(db):
    items = [
        Item(id=1, name="auto_points", datatype="numeric"),
        Item(id=2, name="teleop_points", datatype="numeric"),
        Item(id=4, name="climbed", datatype="boolean"),
        Item(id=7, name="drivetrain", datatype="text", active=False),
        Item(id=8, name="comments", datatype="text"),
    ]
    for item in items:
        db.register_item(item)
    return items


@pytest.fixture
def persister(db):
    return FormPersister(db, record_retries=2, backoff_seconds=0, sleep=lambda _: None)


class FakeSession:
    def __init__(self, owner: "FakeDatabase"):
        self.owner = owner

    def insert_report(self, form) -> int:
        self.owner.calls.append(("insert_report", form.team_num))
        if self.owner.fail_header:
            raise StoreOperationFailed("insert_report", "deadlock")
        self.owner.next_id += 1
        return self.owner.next_id

    def insert_record(self, value, form_id, item_id) -> None:
        self.owner.calls.append(("insert_record", item_id))
        remaining = self.owner.record_failures.get(item_id, 0)
        if remaining:
            self.owner.record_failures[item_id] = remaining - 1
            raise StoreOperationFailed("insert_record", f"item {item_id} rejected")
        self.owner.rows.append((form_id, item_id, value))

    def mark_report(self, form_id, status) -> None:
        self.owner.status[form_id] = status


class FakeDatabase:
    """Stands in for Database with scripted failures and connection bookkeeping."""

    def __init__(self, fail_header: bool = False, record_failures: dict[int, int] | None = None):
        self.fail_header = fail_header
        self.record_failures = dict(record_failures or {})
        self.calls: list[tuple] = []
        self.rows: list[tuple] = []
        self.status: dict[int, str] = {}
        self.next_id = 100
        self.opened = 0
        self.closed = 0

    @contextmanager
    def session(self):
        self.opened += 1
        try:
            yield FakeSession(self)
        finally:
            self.closed += 1

    def record_calls(self) -> int:
        return sum(1 for name, _ in self.calls if name == "insert_record")


@pytest.fixture
def write_file(tmp_path):
    def _write(name: str, content: str, directory: Path | None = None) -> Path:
        target = (directory or tmp_path) / name
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        return target

    return _write
