"""Query catalog for the expense forecast table.

Every statement the application sends to the hosted database is built here.
Values are always bound through ``?`` markers; the only interpolated text is
the database identifier, which is validated against a strict pattern.

Each builder returns ``(sql, params)`` ready for ``QueryGateway.evaluate``.
"""

import re
from typing import Any

DEFAULT_DATABASE = "expensage_backend"
EXPENSE_TABLE = "expenses_forecast"

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

EXPENSE_COLUMNS = [
    "ef_month", "category", "biller", "amount", "currency", "created_ts",
]


def validate_identifier(name: str) -> str:
    """Return *name* if it is a safe SQL identifier.

    Raises:
        ValueError: If the name contains anything but letters, digits and
            underscores, or starts with a digit.
    """
    if not name or not _IDENTIFIER.match(name):
        raise ValueError(f"Invalid database identifier: {name!r}")
    return name


class QueryCatalog:
    """Parameterized statements for one database.

    Usage::

        catalog = QueryCatalog("expensage_backend")
        sql, params = catalog.monthly_summary(currency="INR")
    """

    def __init__(self, database: str = DEFAULT_DATABASE) -> None:
        self.database = validate_identifier(database)
        self.table = f"{self.database}.{EXPENSE_TABLE}"

    # ── Reads ─────────────────────────────────────────────────────────────────

    def list_expenses(self) -> tuple[str, list[Any]]:
        columns = ", ".join(EXPENSE_COLUMNS)
        sql = (
            f"SELECT {columns} FROM {self.table} "
            "ORDER BY ef_month ASC, created_ts DESC"
        )
        return sql, []

    def monthly_summary(self, currency: str | None = None) -> tuple[str, list[Any]]:
        """Per-month totals, restricted to one currency when given."""
        where, params = _currency_filter(currency)
        sql = (
            f"SELECT ef_month AS month, SUM(amount) AS total "
            f"FROM {self.table} {where}"
            "GROUP BY ef_month ORDER BY ef_month ASC"
        )
        return sql, params

    def aggregate_stats(self, currency: str | None = None) -> tuple[str, list[Any]]:
        """Yearly total plus per-month and per-day averages."""
        where, params = _currency_filter(currency)
        sql = (
            "SELECT SUM(amount) AS yearly_total, "
            "SUM(amount) / 12.0 AS avg_expense_per_month, "
            "SUM(amount) / 365.0 AS avg_expense_per_day "
            f"FROM {self.table} {where}".rstrip()
        )
        return sql, params

    # ── Writes ────────────────────────────────────────────────────────────────

    def insert_expense(
        self,
        month: int,
        category: str,
        biller: str,
        amount: float,
        currency: str,
    ) -> tuple[str, list[Any]]:
        sql = (
            f"INSERT INTO {self.table} "
            "(ef_month, category, biller, amount, currency, created_ts, updated_ts) "
            "VALUES (?, ?, ?, ?, ?, CURRENT_TIMESTAMP, CURRENT_TIMESTAMP)"
        )
        return sql, [int(month), category, biller, amount, currency]

    # ── Schema ────────────────────────────────────────────────────────────────

    def check_schema(self) -> tuple[str, list[Any]]:
        """One row with ``table_status`` 'TRUE' when the table exists."""
        sql = (
            "SELECT CASE WHEN COUNT(*) = 1 THEN 'TRUE' ELSE 'FALSE' END "
            "AS table_status "
            "FROM information_schema.tables "
            "WHERE table_catalog = ? AND table_name = ?"
        )
        return sql, [self.database, EXPENSE_TABLE]

    def create_database(self) -> tuple[str, list[Any]]:
        return f"CREATE DATABASE IF NOT EXISTS {self.database}", []

    def create_table(self) -> tuple[str, list[Any]]:
        sql = (
            f"CREATE TABLE IF NOT EXISTS {self.table} ("
            "ef_month INTEGER, "
            "category VARCHAR, "
            "biller VARCHAR, "
            "amount DECIMAL(18, 2), "
            "currency VARCHAR, "
            "created_ts TIMESTAMP, "
            "updated_ts TIMESTAMP)"
        )
        return sql, []


def _currency_filter(currency: str | None) -> tuple[str, list[Any]]:
    if currency:
        return "WHERE currency = ? ", [currency]
    return "", []
