"""In-memory table helpers: sorting and summary highlighting.

Rows are plain dicts as returned by the gateway. Sorting never touches the
database; it is re-applied to the rows in their original fetch order, so ties
always keep that order.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Iterable

from utils.formatting import parse_timestamp

SORT_ASC = "asc"
SORT_DESC = "desc"

# Summary rows carry month/total, expense rows ef_month/amount; either name
# reads whichever key the row has.
_FIELD_ALIASES = {
    "month": ("month", "ef_month"),
    "ef_month": ("ef_month", "month"),
    "amount": ("amount", "total"),
    "total": ("total", "amount"),
}
_NUMERIC_FIELDS = {"month", "ef_month", "amount", "total"}
_TIMESTAMP_FIELDS = {"created_ts", "updated_ts"}

HIGHLIGHT_THRESHOLDS = (0.8, 0.6, 0.4, 0.2)
HIGHLIGHT_CLASSES = ("", "bg-gray-50", "bg-slate-50", "bg-blue-50", "bg-blue-100")


def _field_value(row: dict[str, Any], field: str) -> Any:
    for key in _FIELD_ALIASES.get(field, (field,)):
        value = row.get(key)
        if value is not None:
            return value
    return None


def _sort_key(value: Any, field: str) -> Any:
    if field in _NUMERIC_FIELDS:
        return float(value)
    if field in _TIMESTAMP_FIELDS:
        return parse_timestamp(value)
    if isinstance(value, (int, float, Decimal, datetime)):
        return value
    return str(value).lower()


def sort_rows(
    rows: Iterable[dict[str, Any]],
    field: str,
    direction: str = SORT_ASC,
) -> list[dict[str, Any]]:
    """Return a new list sorted by *field*.

    The sort is stable, so rows with equal keys keep their input order in
    both directions. Rows missing the field sort after all others.

    Args:
        rows: Rows in original fetch order.
        field: Column name; month/ef_month and amount/total are aliases.
        direction: "asc" or "desc".

    Raises:
        ValueError: If *direction* is not "asc" or "desc".
    """
    if direction not in (SORT_ASC, SORT_DESC):
        raise ValueError(f"sort direction must be 'asc' or 'desc', got {direction!r}")
    rows = list(rows)
    present = [r for r in rows if _field_value(r, field) is not None]
    missing = [r for r in rows if _field_value(r, field) is None]
    ordered = sorted(
        present,
        key=lambda r: _sort_key(_field_value(r, field), field),
        reverse=direction == SORT_DESC,
    )
    return ordered + missing


@dataclass
class SortState:
    """Current sort column and direction for one table."""

    field: str = "ef_month"
    direction: str = SORT_ASC

    def toggle(self, field: str) -> "SortState":
        """Same field flips direction; a new field starts ascending."""
        if field == self.field:
            flipped = SORT_DESC if self.direction == SORT_ASC else SORT_ASC
            return SortState(field, flipped)
        return SortState(field, SORT_ASC)

    def apply(self, rows: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
        return sort_rows(rows, self.field, self.direction)


def highlight_bucket(total: float | None, maximum: float | None) -> int:
    """Map a summary total to an intensity bucket 0 (lowest) .. 4 (top).

    The bucket depends on ``total / maximum``: >= 0.8 -> 4, >= 0.6 -> 3,
    >= 0.4 -> 2, >= 0.2 -> 1, otherwise 0. A missing or non-positive
    maximum puts everything in bucket 0.
    """
    if total is None or not maximum or maximum <= 0:
        return 0
    ratio = float(total) / float(maximum)
    for bucket, threshold in zip((4, 3, 2, 1), HIGHLIGHT_THRESHOLDS):
        if ratio >= threshold:
            return bucket
    return 0


def highlight_summary(rows: Iterable[dict[str, Any]]) -> list[int]:
    """Bucket every summary row against the largest total in the set."""
    rows = list(rows)
    totals = [float(r["total"]) for r in rows if r.get("total") is not None]
    maximum = max(totals) if totals else None
    return [highlight_bucket(r.get("total"), maximum) for r in rows]
