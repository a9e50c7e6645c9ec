"""Client-facing CSV export for expense views.

Serialises the currently displayed rows into CSV text using strict quoting:
fields containing commas, quotes or newlines are wrapped in double quotes and
embedded quotes are doubled, so any standard CSV reader recovers the exact
field values.
"""

import csv
import io
from datetime import date
from typing import Any, Callable, Iterable, Sequence

APP_NAME = "expensage"


def build_csv(
    headers: Sequence[str],
    records: Iterable[Any],
    format_row: Callable[[Any], Sequence[Any]],
) -> str:
    """Return CSV text: one header line, then one line per formatted record.

    Args:
        headers: Ordered header labels.
        records: Rows to export (any type ``format_row`` understands).
        format_row: Produces one value per header for a record.

    Raises:
        ValueError: If ``format_row`` returns the wrong number of fields.
    """
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(headers)
    for record in records:
        fields = list(format_row(record))
        if len(fields) != len(headers):
            raise ValueError(
                f"Row has {len(fields)} fields, expected {len(headers)}"
            )
        writer.writerow(["" if f is None else f for f in fields])
    return buf.getvalue()


def export_filename(view: str, on: date | None = None, ext: str = "csv",
                    app_name: str = APP_NAME) -> str:
    """Build the download filename ``<app>_<view>_<YYYY-MM-DD>.<ext>``."""
    day = (on or date.today()).isoformat()
    return f"{app_name}_{view}_{day}.{ext}"
