from __future__ import annotations

from sqlalchemy import create_engine

from app.core.locks import PgAdvisoryLock


class _Result:
    def __init__(self, value):
        self._value = value

    def scalar(self):
        return self._value


class _FakeConnection:
    def __init__(self, granted):
        self.granted = granted
        self.statements = []
        self.closed = False

    def execute(self, statement, params=None):
        self.statements.append((str(statement), params))
        return _Result(self.granted)

    def commit(self):
        pass

    def close(self):
        self.closed = True


class _FakeDialect:
    name = "postgresql"


class _FakePostgresEngine:
    dialect = _FakeDialect()

    def __init__(self, granted=True):
        self.connections = []
        self.granted = granted

    def connect(self):
        conn = _FakeConnection(self.granted)
        self.connections.append(conn)
        return conn


def test_lock_is_never_taken_on_sqlite():
    lock = PgAdvisoryLock(create_engine("sqlite://"), 42)

    assert lock.acquire() is False
    assert lock.held is False
    lock.release()


def test_acquire_then_release_on_postgres():
    engine = _FakePostgresEngine()
    lock = PgAdvisoryLock(engine, 42)

    assert lock.acquire() is True
    assert lock.acquire() is True
    assert len(engine.connections) == 1

    conn = engine.connections[0]
    lock.release()

    assert lock.held is False
    assert conn.closed is True
    assert [s for s, _ in conn.statements] == [
        "SELECT pg_try_advisory_lock(:key)",
        "SELECT pg_advisory_unlock(:key)",
    ]
    assert all(params == {"key": 42} for _, params in conn.statements)


def test_lock_held_elsewhere_is_not_acquired():
    engine = _FakePostgresEngine(granted=False)
    lock = PgAdvisoryLock(engine, 42)

    assert lock.acquire() is False
    assert lock.held is False
    assert engine.connections[0].closed is True
