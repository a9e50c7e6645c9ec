"""
GET /api/v1/download endpoint.

Exports the current dashboard view as CSV or Excel:

- ``view=regular``: Month, Category, Biller, Amount, Currency, Created At
- ``view=summary``: Month, Total Amount (filtered on the selected currency)

Rows are taken from the dashboard state, refreshing it first when nothing
has been fetched yet or the requested currency differs. Filenames follow
``expensage_<view>_<YYYY-MM-DD>.<ext>``. Excel workbooks are built with
openpyxl write_only mode and carry a Metadata sheet. X-Total-Count gives the
number of exported records.
"""

import io
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response, StreamingResponse

from api.controllers import ExpenseDashboard
from api.dependencies import get_config, get_dashboard, resolve_currency
from api.routes.expenses import EXPENSE_SORT_FIELDS, SUMMARY_SORT_FIELDS, sort_state
from utils.config import AppConfig
from utils.csv_export import APP_NAME, build_csv, export_filename
from utils.formatting import format_timestamp, month_name
from utils.table import SortState

router = APIRouter(prefix="/download", tags=["download"])

REGULAR = "regular"
SUMMARY_VIEW = "summary"

REGULAR_HEADERS = ["Month", "Category", "Biller", "Amount", "Currency", "Created At"]
SUMMARY_HEADERS = ["Month", "Total Amount"]

_XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def regular_row(row: dict[str, Any]) -> list[Any]:
    return [
        month_name(row["ef_month"]),
        row.get("category"),
        row.get("biller"),
        row.get("amount"),
        row.get("currency"),
        format_timestamp(row.get("created_ts")),
    ]


def summary_row(row: dict[str, Any]) -> list[Any]:
    return [month_name(row["month"]), row.get("total")]


def view_rows(dashboard: ExpenseDashboard, view: str,
              sort: SortState | None = None) -> list[dict[str, Any]]:
    """Rows of *view* in display order."""
    if view == REGULAR:
        return dashboard.sorted_expenses(sort or SortState("ef_month"))
    return dashboard.sorted_summary(sort or SortState("month"))


def build_xlsx(view: str, headers: list[str], rows: list[list[Any]],
               currency: str, exported_at: str) -> bytes:
    import openpyxl

    wb = openpyxl.Workbook(write_only=True)
    meta_ws = wb.create_sheet("Metadata")
    meta_ws.append(["Source", APP_NAME])
    meta_ws.append(["Export Date", exported_at])
    meta_ws.append(["View", view])
    meta_ws.append(["Currency", currency])
    meta_ws.append(["Total Records", len(rows)])
    ws = wb.create_sheet("Summary" if view == SUMMARY_VIEW else "Expenses")
    ws.append(headers)
    for row in rows:
        ws.append(row)
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


@router.get("", summary="Download the current view as CSV or Excel")
async def download(
    view: str = Query(REGULAR, pattern="^(regular|summary)$", description="Which table to export"),
    fmt: str = Query("csv", pattern="^(csv|xlsx)$", description="Output format"),
    currency: str | None = Query(None, description="Currency for the summary view"),
    sort_by: str | None = Query(None, description="Column to sort by"),
    sort_dir: str = Query("asc", pattern="^(asc|desc)$", description="Sort direction"),
    dashboard: ExpenseDashboard = Depends(get_dashboard),
    config: AppConfig = Depends(get_config),
) -> Response:
    currency = resolve_currency(currency, config, dashboard.currency)
    sort = None
    if sort_by:
        allowed = EXPENSE_SORT_FIELDS if view == REGULAR else SUMMARY_SORT_FIELDS
        sort = sort_state(sort_by, sort_dir, allowed)
    if not dashboard.loaded or dashboard.currency != currency:
        await dashboard.refresh(currency)

    rows = view_rows(dashboard, view, sort)
    headers, format_row = (
        (REGULAR_HEADERS, regular_row) if view == REGULAR
        else (SUMMARY_HEADERS, summary_row)
    )
    extra_headers = {"X-Total-Count": str(len(rows))}

    if fmt == "xlsx":
        exported_at = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        content = build_xlsx(view, headers, [format_row(r) for r in rows],
                             dashboard.currency, exported_at)
        filename = export_filename(view, ext="xlsx")
        return StreamingResponse(
            iter([content]),
            media_type=_XLSX_MEDIA_TYPE,
            headers={
                "Content-Disposition": f"attachment; filename={filename}",
                "Content-Length": str(len(content)),
                **extra_headers,
            },
        )

    text = build_csv(headers, rows, format_row)
    filename = export_filename(view)
    return Response(
        content=text,
        media_type="text/csv; charset=utf-8",
        headers={
            "Content-Disposition": f"attachment; filename={filename}",
            **extra_headers,
        },
    )
