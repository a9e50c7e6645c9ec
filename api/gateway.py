"""
Remote query gateway: the single session to the hosted expense database.

The gateway owns one connection to MotherDuck (through the ``duckdb``
client) and turns SQL text plus bound parameters into a list of row dicts or
a structured error. It is created by ``create_app()`` and handed to the view
controllers; nothing else opens connections.

Session states:
    UNCONFIGURED  no token; every query fails fast with NotConfiguredError
    CONNECTING    token set, connection attempt running in a worker thread
    READY         connection established; queries run immediately
    FAILED        the last attempt was rejected (bad token, network, timeout)

Every call to ``set_token()`` bumps the session *generation* and retires the
previous attempt: callers still waiting on it receive StaleSessionError, and
if the old attempt resolves later its connection is closed and ignored.
Nothing is retried automatically.

Driver calls block, so connection setup and each query run through
``asyncio.to_thread`` with explicit timeouts.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Protocol, Sequence

logger = logging.getLogger(__name__)

DEFAULT_CONNECT_TIMEOUT = 30.0
DEFAULT_QUERY_TIMEOUT = 60.0


class Connection(Protocol):
    """The slice of the DB-API the gateway relies on."""

    def cursor(self) -> Any: ...

    def close(self) -> None: ...


Connector = Callable[[str, "str | None"], Connection]


# ── Errors ────────────────────────────────────────────────────────────────────

class GatewayError(Exception):
    """Base class for failures surfaced by the gateway."""

    kind = "gateway"
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotConfiguredError(GatewayError):
    kind = "configuration"
    status_code = 503


class ConnectionFailedError(GatewayError):
    kind = "connection"
    status_code = 502


class StaleSessionError(GatewayError):
    kind = "stale"
    status_code = 409


class GatewayTimeoutError(GatewayError):
    kind = "timeout"
    status_code = 504


class QueryFailedError(GatewayError):
    kind = "query"
    status_code = 400


class SessionState(str, Enum):
    UNCONFIGURED = "unconfigured"
    CONNECTING = "connecting"
    READY = "ready"
    FAILED = "failed"


@dataclass
class QueryResult:
    """Outcome of ``safe_evaluate``: rows on success, the error otherwise."""

    status: str
    generation: int
    rows: list[dict[str, Any]] = field(default_factory=list)
    error: GatewayError | None = None

    @property
    def ok(self) -> bool:
        return self.status == "success"


@dataclass
class _ConnectionAttempt:
    generation: int
    future: asyncio.Future
    task: asyncio.Task | None = None


# ── Default connector ─────────────────────────────────────────────────────────

def connect_motherduck(token: str, database: str | None = None) -> Connection:
    """Open a MotherDuck session with the given bearer token."""
    import duckdb

    target = f"md:{database}" if database else "md:"
    return duckdb.connect(target, config={"motherduck_token": token})


def _fetch_rows(conn: Connection, sql: str, params: Sequence[Any]) -> list[dict[str, Any]]:
    """Run one statement on a fresh cursor and return rows keyed by column."""
    cursor = conn.cursor()
    try:
        cursor.execute(sql, list(params))
        if cursor.description is None:
            return []
        columns = [d[0] for d in cursor.description]
        return [dict(zip(columns, row)) for row in cursor.fetchall()]
    finally:
        cursor.close()


def _close_quietly(conn: Connection) -> None:
    try:
        conn.close()
    except Exception as exc:
        logger.warning("Error closing superseded connection: %s", exc)


def _consume_exception(future: asyncio.Future) -> None:
    # Rejected attempts nobody awaited must not log "exception never retrieved".
    if not future.cancelled():
        future.exception()


# ── Gateway ───────────────────────────────────────────────────────────────────

class QueryGateway:
    """Owns the process-wide session to the hosted database.

    Args:
        database: Optional default database passed to the connector.
        connector: ``(token, database) -> connection``; defaults to MotherDuck.
        connect_timeout: Seconds allowed for establishing a session.
        query_timeout: Seconds allowed for a single statement.
    """

    def __init__(
        self,
        database: str | None = None,
        connector: Connector = connect_motherduck,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        query_timeout: float = DEFAULT_QUERY_TIMEOUT,
    ) -> None:
        self._database = database
        self._connector = connector
        self._connect_timeout = connect_timeout
        self._query_timeout = query_timeout
        self._attempt: _ConnectionAttempt | None = None
        self._generation = 0
        self._state = SessionState.UNCONFIGURED
        self._last_error: GatewayError | None = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def last_error(self) -> GatewayError | None:
        return self._last_error

    @property
    def configured(self) -> bool:
        return self._attempt is not None

    # ── Session lifecycle ─────────────────────────────────────────────────────

    def set_token(self, token: str | None) -> int:
        """Replace the credential and start a new connection attempt.

        Must be called from the running event loop. An empty token returns
        the gateway to UNCONFIGURED.

        Returns:
            The new session generation.
        """
        token = (token or "").strip()
        self._generation += 1
        self._retire(self._attempt)
        self._last_error = None

        if not token:
            self._attempt = None
            self._state = SessionState.UNCONFIGURED
            logger.info("Session %d: credential cleared", self._generation)
            return self._generation

        loop = asyncio.get_running_loop()
        attempt = _ConnectionAttempt(self._generation, loop.create_future())
        attempt.future.add_done_callback(_consume_exception)
        self._attempt = attempt
        self._state = SessionState.CONNECTING
        logger.info("Session %d: initializing MotherDuck connection", attempt.generation)
        attempt.task = loop.create_task(self._establish(attempt, token))
        return self._generation

    def _retire(self, attempt: _ConnectionAttempt | None) -> None:
        if attempt is None:
            return
        future = attempt.future
        if not future.done():
            future.set_exception(StaleSessionError(
                f"Session {attempt.generation} was replaced before it connected"
            ))
        elif not future.cancelled() and future.exception() is None:
            _close_quietly(future.result())

    async def _establish(self, attempt: _ConnectionAttempt, token: str) -> None:
        try:
            conn = await asyncio.wait_for(
                asyncio.to_thread(self._connector, token, self._database),
                timeout=self._connect_timeout,
            )
        except asyncio.TimeoutError:
            self._fail(attempt, GatewayTimeoutError(
                f"Connecting to MotherDuck timed out after {self._connect_timeout:g}s"
            ))
            return
        except Exception as exc:
            self._fail(attempt, ConnectionFailedError(
                f"Failed to initialize MotherDuck connection: {exc}"
            ))
            return

        if attempt.future.done():
            logger.info("Session %d: late connection ignored", attempt.generation)
            _close_quietly(conn)
            return
        attempt.future.set_result(conn)
        self._state = SessionState.READY
        logger.info("Session %d: MotherDuck connection ready", attempt.generation)

    def _fail(self, attempt: _ConnectionAttempt, error: GatewayError) -> None:
        if attempt.future.done():
            return
        attempt.future.set_exception(error)
        if attempt is self._attempt:
            self._state = SessionState.FAILED
            self._last_error = error
        logger.error("Session %d: %s", attempt.generation, error)

    async def wait_ready(self) -> int:
        """Suspend until the current attempt resolves; return its generation."""
        attempt = self._require_attempt()
        await asyncio.shield(attempt.future)
        return attempt.generation

    async def close(self) -> None:
        """Drop the session (used on application shutdown)."""
        attempt = self._attempt
        self._attempt = None
        self._generation += 1
        self._state = SessionState.UNCONFIGURED
        self._retire(attempt)
        if attempt is not None and attempt.task is not None and not attempt.task.done():
            attempt.task.cancel()

    # ── Queries ───────────────────────────────────────────────────────────────

    def _require_attempt(self) -> _ConnectionAttempt:
        if self._attempt is None:
            raise NotConfiguredError("Please enter a MotherDuck token first")
        return self._attempt

    async def evaluate(self, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        """Run *sql* with bound *params* and return its rows.

        Raises:
            NotConfiguredError: No credential has been set.
            StaleSessionError: The credential changed while connecting.
            ConnectionFailedError: The session could not be established.
            GatewayTimeoutError: Connecting or the query exceeded its timeout.
            QueryFailedError: The database rejected the statement.
        """
        attempt = self._require_attempt()
        conn = await asyncio.shield(attempt.future)

        logger.debug("Executing query: %s", " ".join(sql.split()))
        start = time.monotonic()
        try:
            rows = await asyncio.wait_for(
                asyncio.to_thread(_fetch_rows, conn, sql, params),
                timeout=self._query_timeout,
            )
        except asyncio.TimeoutError:
            raise GatewayTimeoutError(
                f"Query timed out after {self._query_timeout:g}s"
            ) from None
        except Exception as exc:
            if attempt.generation != self._generation:
                # set_token() closed this connection under the running query.
                raise StaleSessionError(
                    f"Session {attempt.generation} was replaced while a query was running"
                ) from exc
            raise QueryFailedError(str(exc)) from exc

        duration_ms = (time.monotonic() - start) * 1000
        logger.debug("Query returned %d rows in %.1f ms", len(rows), duration_ms)
        if duration_ms > 1000:
            logger.warning("slow_query duration_ms=%.1f sql=%s",
                           duration_ms, " ".join(sql.split())[:200])
        return rows

    async def safe_evaluate(self, sql: str, params: Sequence[Any] = ()) -> QueryResult:
        """Like :meth:`evaluate` but returns a QueryResult instead of raising.

        The result carries the generation that was current when the call
        started, so callers can discard results from a replaced session.
        """
        generation = self._generation
        try:
            rows = await self.evaluate(sql, params)
        except GatewayError as exc:
            logger.error("Error executing query (%s): %s", exc.kind, exc)
            return QueryResult(status="error", generation=generation, error=exc)
        return QueryResult(status="success", generation=generation, rows=rows)
