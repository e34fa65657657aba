"""
Fake connection pool for engine and schema tests.

Provides a pool whose connections record every statement and answer SELECTs
with canned rows, so the engine can be exercised without a database.

Usage:
    def test_find(fake_pool, engine):
        fake_pool.respond('FROM users', ['id', 'name'], [(1, 'alice')])
        users = engine.find(User)
        assert fake_pool.executed[0][0].startswith('SELECT * FROM users')
"""
import threading

import pytest
from entitydb.engine import Engine
from entitydb.metadata import MetadataRegistry


class FakeCursor:
    """DBAPI-like cursor answering from the owning pool's canned responses.
    """

    def __init__(self, pool):
        self.pool = pool
        self.description = None
        self.rowcount = -1
        self._rows = []
        self.closed = False

    def execute(self, sql, params=None):
        self.pool.record(sql, params)
        if self.pool.execute_error is not None:
            raise self.pool.execute_error
        columns, rows = self.pool.lookup(sql)
        self.description = [(name, None, None, None, None, None, None) for name in columns] or None
        self._rows = list(rows)
        self.rowcount = len(self._rows)

    def fetchall(self):
        rows, self._rows = self._rows, []
        return rows

    def close(self):
        self.closed = True
        self.pool.cursor_closed()


class FakeConnection:
    def __init__(self, pool):
        self.pool = pool
        self.closed = False
        self.committed = False

    def cursor(self):
        return FakeCursor(self.pool)

    def commit(self):
        self.committed = True
        self.pool.commits += 1


class FakePool:
    """Connection pool provider with canned responses keyed by SQL fragment.
    """

    def __init__(self, dialect='mysql'):
        self.dialect = dialect
        self.connected = True
        self.acquire_error = None
        self.execute_error = None
        self.executed = []
        self.acquired = 0
        self.released = 0
        self.cursors_closed = 0
        self.commits = 0
        self._responses = []
        self._lock = threading.Lock()

    def respond(self, fragment, columns, rows):
        """Answer statements containing `fragment` with `rows`."""
        self._responses.append((fragment, list(columns), [tuple(row) for row in rows]))

    def lookup(self, sql):
        for fragment, columns, rows in self._responses:
            if fragment in sql:
                return columns, rows
        return [], []

    def record(self, sql, params):
        with self._lock:
            self.executed.append((sql, params))

    def cursor_closed(self):
        with self._lock:
            self.cursors_closed += 1

    def is_connected(self):
        return self.connected

    def acquire(self):
        if self.acquire_error is not None:
            raise self.acquire_error
        with self._lock:
            self.acquired += 1
        return FakeConnection(self)

    def release(self, connection):
        connection.closed = True
        with self._lock:
            self.released += 1

    def connect(self):
        self.connected = True

    def close(self):
        self.connected = False


class RecordingReporter:
    """Reporter keeping every (error, context) it receives.
    """

    def __init__(self):
        self.reports = []

    def report(self, error, context):
        self.reports.append((error, context))

    @property
    def errors(self):
        return [error for error, _ in self.reports]


@pytest.fixture
def fake_pool():
    """Fake pool speaking the mysql paramstyle."""
    return FakePool()


@pytest.fixture
def reporter():
    return RecordingReporter()


@pytest.fixture
def registry():
    """Fresh metadata registry with the default codecs."""
    return MetadataRegistry()


@pytest.fixture
def engine(fake_pool, registry, reporter):
    """Engine over the fake pool, reporting into `reporter`."""
    return Engine(fake_pool, registry=registry, reporter=reporter)
