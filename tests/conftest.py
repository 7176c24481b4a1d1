"""Shared fixtures: a recording executor and an in-memory SQLite executor."""

import sqlite3

import pytest

from rowmap import DescriptorRegistry, default_registry


class FakeCursor:
    """Iterable cursor over scripted rows that remembers being closed."""

    def __init__(self, rows):
        self.rows = list(rows)
        self.closed = False

    def __iter__(self):
        return iter(self.rows)

    def close(self):
        self.closed = True


class RecordingDB:
    """Executor that records the last statement and replays scripted rows."""

    def __init__(self, rows=None, affected=1):
        self.sql = None
        self.args = None
        self.rows = list(rows or [])
        self.affected = affected
        self.calls = []
        self.cursors = []

    def _record(self, kind, sql, args):
        self.sql = sql
        self.args = list(args)
        self.calls.append((kind, sql, list(args)))

    def execute(self, sql, args):
        self._record("execute", sql, args)
        return self.affected

    def query(self, sql, args):
        self._record("query", sql, args)
        cursor = FakeCursor(self.rows)
        self.cursors.append(cursor)
        return cursor

    def query_row(self, sql, args):
        self._record("query_row", sql, args)
        return self.rows[0] if self.rows else None


class SQLiteDB:
    """Executor backed by an in-memory SQLite database."""

    def __init__(self):
        self.conn = sqlite3.connect(":memory:")

    def execute(self, sql, args):
        cur = self.conn.execute(sql, args)
        self.conn.commit()
        return cur.rowcount

    def query(self, sql, args):
        return self.conn.execute(sql, args)

    def query_row(self, sql, args):
        cur = self.conn.execute(sql, args)
        try:
            return cur.fetchone()
        finally:
            cur.close()
            self.conn.commit()

    def close(self):
        self.conn.close()


@pytest.fixture(autouse=True)
def clear_default_registry():
    """Keep the process wide descriptor cache from leaking between tests."""
    default_registry.clear()
    yield
    default_registry.clear()


@pytest.fixture
def registry():
    return DescriptorRegistry()


@pytest.fixture
def db():
    return RecordingDB()


@pytest.fixture
def sqlite_db():
    database = SQLiteDB()
    yield database
    database.close()


@pytest.fixture
def make_db():
    """Factory for recording executors with scripted rows."""
    return RecordingDB


@pytest.fixture
def make_cursor():
    """Factory for scripted cursors."""
    return FakeCursor
