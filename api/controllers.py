"""
View-state controllers for the expense screens.

Each controller talks to the QueryGateway through the QueryCatalog, keeps the
rows it fetched, and derives the sorted/highlighted views the routes render.

- ExpenseDashboard: expense list, monthly summary and aggregate stats
- ExpenseEntryController: validates the entry form and inserts one row per
  occurrence of a recurring expense
- SchemaSetup: checks for and creates the expense table

Controllers never let a gateway error escape from ``refresh()``; errors are
collected per fetch and previously fetched data stays in place.
"""

import asyncio
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from api.gateway import GatewayError, QueryGateway, QueryResult, StaleSessionError
from utils.config import CUSTOM_CATEGORY
from utils.formatting import parse_timestamp
from utils.query import QueryCatalog
from utils.recurrence import Frequency, expand_recurring, parse_frequency
from utils.table import SortState, highlight_summary

logger = logging.getLogger(__name__)

EXPENSES = "expenses"
SUMMARY = "summary"
STATS = "stats"
PARTS = (EXPENSES, SUMMARY, STATS)

_FAILURE_PREFIX = {
    EXPENSES: "Failed to fetch data",
    SUMMARY: "Failed to fetch summary data",
    STATS: "Failed to fetch stats data",
}

NO_DATA_NOTICE = "No expenses recorded yet. Add one to get started."


def _normalize_row(row: dict[str, Any]) -> dict[str, Any]:
    """Decimals become floats and timestamp strings become datetimes."""
    out: dict[str, Any] = {}
    for key, value in row.items():
        if isinstance(value, Decimal):
            value = float(value)
        elif key in ("created_ts", "updated_ts") and isinstance(value, str):
            value = parse_timestamp(value)
        out[key] = value
    return out


class ExpenseDashboard:
    """Holds the three dashboard datasets for the current session."""

    def __init__(self, gateway: QueryGateway, catalog: QueryCatalog,
                 currency: str = "INR") -> None:
        self._gateway = gateway
        self._catalog = catalog
        self.currency = currency
        self.expenses: list[dict[str, Any]] = []
        self.summary: list[dict[str, Any]] = []
        self.stats: dict[str, Any] | None = None
        self.errors: list[str] = []
        self.notice: str | None = None
        self.loaded_at: datetime | None = None
        self.loaded_generation: int | None = None

    @property
    def loaded(self) -> bool:
        return self.loaded_at is not None

    def _query(self, part: str, currency: str) -> tuple[str, list[Any]]:
        if part == EXPENSES:
            return self._catalog.list_expenses()
        if part == SUMMARY:
            return self._catalog.monthly_summary(currency)
        if part == STATS:
            return self._catalog.aggregate_stats(currency)
        raise ValueError(f"Unknown dashboard part: {part!r}")

    def _store(self, part: str, rows: list[dict[str, Any]]) -> None:
        rows = [_normalize_row(r) for r in rows]
        if part == EXPENSES:
            self.expenses = rows
        elif part == SUMMARY:
            self.summary = rows
        else:
            self.stats = rows[0] if rows else None

    def clear(self) -> None:
        """Forget everything fetched (used when the credential changes)."""
        self.expenses, self.summary, self.stats = [], [], None
        self.errors, self.notice = [], None
        self.loaded_at = self.loaded_generation = None

    async def refresh(self, currency: str | None = None) -> bool:
        """Fetch list, summary and stats concurrently.

        Returns:
            False if the session changed while the fetches were in flight;
            the results are then discarded and state is left untouched.
        """
        currency = currency or self.currency
        generation = self._gateway.generation
        results: list[QueryResult] = await asyncio.gather(*(
            self._gateway.safe_evaluate(*self._query(part, currency))
            for part in PARTS
        ))

        if self._gateway.generation != generation:
            logger.info("Discarding dashboard results from session %d (now %d)",
                        generation, self._gateway.generation)
            return False

        if self.loaded_generation is not None and self.loaded_generation != generation:
            self.clear()
        self.currency = currency
        self.errors = []
        for part, result in zip(PARTS, results):
            if result.ok:
                self._store(part, result.rows)
            else:
                self.errors.append(f"{_FAILURE_PREFIX[part]}: {result.error}")

        expenses_ok, summary_ok = results[0].ok, results[1].ok
        if expenses_ok and summary_ok and not self.expenses and not self.summary:
            self.notice = NO_DATA_NOTICE
        else:
            self.notice = None
        self.loaded_at = datetime.now(timezone.utc)
        self.loaded_generation = generation
        return True

    async def load(self, part: str, currency: str | None = None) -> None:
        """Fetch a single dataset, raising on any gateway error."""
        currency = currency or self.currency
        generation = self._gateway.generation
        rows = await self._gateway.evaluate(*self._query(part, currency))
        if self._gateway.generation != generation:
            raise StaleSessionError(
                f"Session {generation} was replaced while fetching {part}"
            )
        if part != EXPENSES:
            self.currency = currency
        self._store(part, rows)

    # ── Derived views ─────────────────────────────────────────────────────────

    def sorted_expenses(self, sort: SortState) -> list[dict[str, Any]]:
        return sort.apply(self.expenses)

    def sorted_summary(self, sort: SortState) -> list[dict[str, Any]]:
        """Summary rows with a ``highlight`` bucket, in the requested order."""
        buckets = highlight_summary(self.summary)
        rows = [{**row, "highlight": b} for row, b in zip(self.summary, buckets)]
        return sort.apply(rows)


# ── Expense entry ─────────────────────────────────────────────────────────────

class EntryValidationError(ValueError):
    """The submitted expense form is incomplete or invalid."""


@dataclass
class SubmissionResult:
    months: list[int]
    amount: float
    currency: str

    @property
    def inserted(self) -> int:
        return len(self.months)


class ExpenseEntryController:
    """Turns one form submission into one INSERT per occurrence month."""

    def __init__(self, gateway: QueryGateway, catalog: QueryCatalog,
                 dashboard: ExpenseDashboard | None = None) -> None:
        self._gateway = gateway
        self._catalog = catalog
        self._dashboard = dashboard

    @staticmethod
    def resolve_category(category: str, custom_category: str | None) -> str:
        if category == CUSTOM_CATEGORY:
            return (custom_category or "").strip()
        return (category or "").strip()

    async def submit(
        self,
        month: int,
        category: str,
        biller: str,
        amount: float,
        currency: str,
        custom_category: str | None = None,
        recurring: bool = False,
        frequency: "str | Frequency | None" = None,
    ) -> SubmissionResult:
        """Validate, expand and insert an expense.

        Raises:
            EntryValidationError: Missing category/biller or an amount that is
                not a positive finite number.
            GatewayError: An insert failed; earlier occurrences stay written.
        """
        final_category = self.resolve_category(category, custom_category)
        biller = (biller or "").strip()
        if (not final_category or not biller or amount is None
                or not math.isfinite(amount) or amount <= 0):
            raise EntryValidationError(
                "Please fill in all required fields with valid values"
            )
        if not 1 <= month <= 12:
            raise EntryValidationError(f"Month must be between 1 and 12, got {month}")

        schedule = parse_frequency(frequency) if recurring else None
        if recurring and schedule is None:
            schedule = Frequency.MONTHLY
        occurrences = expand_recurring(month, amount, schedule)

        written: list[int] = []
        for occurrence in occurrences:
            sql, params = self._catalog.insert_expense(
                occurrence.month, final_category, biller, occurrence.amount, currency,
            )
            try:
                await self._gateway.evaluate(sql, params)
            except GatewayError as exc:
                logger.error("Insert for month %d failed after %d of %d rows: %s",
                             occurrence.month, len(written), len(occurrences), exc)
                raise
            written.append(occurrence.month)

        logger.info("Inserted %d expense row(s) for %s / %s",
                    len(written), final_category, biller)
        if self._dashboard is not None:
            await self._dashboard.refresh()
        return SubmissionResult(months=written, amount=amount, currency=currency)


# ── Schema setup ──────────────────────────────────────────────────────────────

class SchemaSetup:
    """Checks for and creates the expense database objects."""

    def __init__(self, gateway: QueryGateway, catalog: QueryCatalog) -> None:
        self._gateway = gateway
        self.catalog = catalog
        self.objects_exist: bool | None = None

    async def check(self) -> bool:
        rows = await self._gateway.evaluate(*self.catalog.check_schema())
        status = rows[0].get("table_status") if rows else None
        self.objects_exist = status == "TRUE"
        logger.info("Expense table %s", "present" if self.objects_exist else "missing")
        return self.objects_exist

    async def create(self) -> bool:
        """Create the database, then the table, then re-check."""
        await self._gateway.evaluate(*self.catalog.create_database())
        logger.info("Database %s ready", self.catalog.database)
        await self._gateway.evaluate(*self.catalog.create_table())
        logger.info("Table %s ready", self.catalog.table)
        return await self.check()
