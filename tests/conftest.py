"""
Pytest fixtures for Expensage tests.

The hosted database is replaced by an in-memory SQLite database that speaks
just enough of the MotherDuck dialect for the statements in utils/query.py:

- ``CREATE DATABASE IF NOT EXISTS x`` becomes ``ATTACH ':memory:' AS x``
- the ``information_schema.tables`` existence check is answered from the
  attached database's ``sqlite_master``

Everything else runs on SQLite unchanged. FakeConnector hands out one
FakeConnection per connect call and can hold a connect open (per token)
until the test releases it, which is how stale-session races are staged.
"""

import re
import sqlite3
import sys
import threading
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from utils.query import DEFAULT_DATABASE, QueryCatalog  # noqa: E402

_CREATE_DATABASE = re.compile(r"^\s*CREATE DATABASE IF NOT EXISTS (\w+)\s*$", re.I)

SAMPLE_EXPENSES = [
    (1, "Utilities", "Electric Company", 1850.50, "INR", "2024-01-12 10:30:00"),
    (1, "Rent", "Landlord", 25000, "INR", "2024-01-01 09:00:00"),
    (3, "Internet", "Fiber, Inc.", 999, "INR", "2024-03-02 08:15:00"),
    (3, "Groceries", 'Corner "Fresh" Mart', 40, "USD", "2024-03-05 18:45:00"),
]


# ── Fake MotherDuck ───────────────────────────────────────────────────────────

class FakeDatabase:
    """Shared SQLite storage behind every FakeConnection."""

    def __init__(self) -> None:
        self._conn = sqlite3.connect(":memory:", check_same_thread=False,
                                     isolation_level=None)
        self._lock = threading.Lock()
        self.statements: list[str] = []
        self.fail_on: str | None = None
        # When set, statements block until the event fires.
        self.query_gate: threading.Event | None = None

    def attached(self) -> set[str]:
        return {row[1] for row in self._conn.execute("PRAGMA database_list")}

    def run(self, sql: str, params: list) -> tuple:
        """Execute one statement; return (description, rows)."""
        gate = self.query_gate
        if gate is not None:
            gate.wait(timeout=5)
        with self._lock:
            self.statements.append(sql)
            if self.fail_on and self.fail_on in sql:
                raise sqlite3.OperationalError(f"Simulated failure: {self.fail_on}")

            match = _CREATE_DATABASE.match(sql)
            if match:
                name = match.group(1)
                if name not in self.attached():
                    self._conn.execute(f"ATTACH ':memory:' AS {name}")
                return None, []

            if "information_schema.tables" in sql:
                database, table = params
                status = "FALSE"
                if database in self.attached():
                    count = self._conn.execute(
                        f"SELECT COUNT(*) FROM {database}.sqlite_master "
                        "WHERE type = 'table' AND name = ?",
                        (table,),
                    ).fetchone()[0]
                    status = "TRUE" if count == 1 else "FALSE"
                return (("table_status", None, None, None, None, None, None),), [(status,)]

            cur = self._conn.execute(sql, params)
            return cur.description, cur.fetchall()

    def create_schema(self, database: str = DEFAULT_DATABASE) -> QueryCatalog:
        catalog = QueryCatalog(database)
        self.run(*catalog.create_database())
        self.run(*catalog.create_table())
        return catalog

    def seed(self, rows=SAMPLE_EXPENSES, database: str = DEFAULT_DATABASE) -> None:
        catalog = self.create_schema(database)
        for month, category, biller, amount, currency, created in rows:
            self.run(
                f"INSERT INTO {catalog.table} VALUES (?, ?, ?, ?, ?, ?, ?)",
                [month, category, biller, amount, currency, created, created],
            )

    def count(self, database: str = DEFAULT_DATABASE) -> int:
        _, rows = self.run(f"SELECT COUNT(*) FROM {database}.expenses_forecast", [])
        return rows[0][0]


class FakeCursor:
    def __init__(self, db: FakeDatabase, conn: "FakeConnection") -> None:
        self._db = db
        self._conn = conn
        self.description = None
        self._rows: list = []

    def execute(self, sql: str, params=()):
        self.description, self._rows = self._db.run(sql, list(params))
        if self._conn.closed:
            raise sqlite3.ProgrammingError("Connection closed while the query was running")
        return self

    def fetchall(self) -> list:
        return list(self._rows)

    def close(self) -> None:
        pass


class FakeConnection:
    def __init__(self, db: FakeDatabase, token: str, database: str | None) -> None:
        self._db = db
        self.token = token
        self.database = database
        self.closed = False

    def cursor(self) -> FakeCursor:
        if self.closed:
            raise sqlite3.ProgrammingError("Cannot operate on a closed database.")
        return FakeCursor(self._db, self)

    def close(self) -> None:
        self.closed = True


class FakeConnector:
    """Callable ``(token, database) -> FakeConnection``.

    Tokens listed in ``rejected`` fail like a bad credential. ``hold(token)``
    makes the next connect for that token block until ``release(token)``.
    """

    def __init__(self, db: FakeDatabase) -> None:
        self.db = db
        self.rejected = {"bad-token"}
        self.connections: list[FakeConnection] = []
        self._gates: dict[str, threading.Event] = {}

    def hold(self, token: str) -> None:
        self._gates[token] = threading.Event()

    def release(self, token: str) -> None:
        self._gates[token].set()

    def __call__(self, token: str, database: str | None = None) -> FakeConnection:
        gate = self._gates.get(token)
        if gate is not None:
            gate.wait(timeout=5)
        if token in self.rejected:
            raise RuntimeError("Invalid MotherDuck token")
        conn = FakeConnection(self.db, token, database)
        self.connections.append(conn)
        return conn

    def connection_for(self, token: str) -> FakeConnection | None:
        for conn in self.connections:
            if conn.token == token:
                return conn
        return None


# ── Fixtures ──────────────────────────────────────────────────────────────────

@pytest.fixture()
def fake_db():
    """Empty fake MotherDuck database (no expense table yet)."""
    return FakeDatabase()


@pytest.fixture()
def seeded_db(fake_db):
    """Fake database with the expense table and SAMPLE_EXPENSES."""
    fake_db.seed()
    return fake_db


@pytest.fixture()
def connector(fake_db):
    return FakeConnector(fake_db)


@pytest.fixture()
def catalog():
    return QueryCatalog(DEFAULT_DATABASE)


@pytest.fixture()
def app_config(monkeypatch):
    """AppConfig built from a clean environment."""
    for var in ("MOTHERDUCK_TOKEN", "EXPENSAGE_DATABASE", "EXPENSAGE_DEFAULT_CURRENCY",
                "EXPENSAGE_CURRENCIES", "EXPENSAGE_AMOUNT_GROUPING", "APP_LOG_FORMAT"):
        monkeypatch.delenv(var, raising=False)
    from utils.config import AppConfig
    return AppConfig.from_env()


@pytest.fixture()
def app(app_config, connector):
    """FastAPI app wired to the fake connector."""
    from api.app import create_app
    from api.gateway import QueryGateway

    gateway = QueryGateway(
        database=app_config.database,
        connector=connector,
        connect_timeout=5,
        query_timeout=5,
    )
    return create_app(config=app_config, gateway=gateway)


@pytest.fixture()
def client(app):
    """TestClient kept open for the whole test so the event loop persists."""
    pytest.importorskip("httpx")
    from fastapi.testclient import TestClient

    with TestClient(app) as c:
        yield c


@pytest.fixture()
def ready_client(client, seeded_db):
    """Client with a session on the seeded database."""
    resp = client.put("/api/v1/session/token", json={"token": "good-token"})
    assert resp.status_code == 200
    return client
