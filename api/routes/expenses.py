"""
Expense endpoints.

GET  /api/v1/dashboard          → list + summary + stats fetched in parallel
GET  /api/v1/expenses           → expense rows, sortable
POST /api/v1/expenses           → add an expense (recurring entries expanded)
GET  /api/v1/expenses/summary   → monthly totals with highlight buckets
GET  /api/v1/expenses/stats     → yearly total and averages

Summary and stats honour the currency selector; sorting happens in memory on
the rows as fetched.
"""

from typing import Any

from fastapi import APIRouter, Depends, Query, status

from api.controllers import (
    EXPENSES,
    STATS,
    SUMMARY,
    ExpenseDashboard,
    ExpenseEntryController,
)
from api.dependencies import get_config, get_dashboard, get_entry, get_gateway, resolve_currency
from api.gateway import QueryGateway
from api.models import (
    DashboardOut,
    ExpenseIn,
    ExpenseOut,
    StatsOut,
    SubmissionOut,
    SummaryRowOut,
)
from utils.config import AppConfig
from utils.formatting import month_name
from utils.table import SortState

router = APIRouter(tags=["expenses"])

EXPENSE_SORT_FIELDS = {"ef_month", "month", "category", "biller", "amount",
                       "currency", "created_ts"}
SUMMARY_SORT_FIELDS = {"month", "ef_month", "total", "amount"}


def sort_state(sort_by: str, sort_dir: str, allowed: set[str]) -> SortState:
    """Build a SortState, rejecting fields the table does not have."""
    if sort_by not in allowed:
        raise ValueError(f"sort_by must be one of {sorted(allowed)}, got {sort_by!r}")
    return SortState(sort_by, sort_dir)


def expense_out(row: dict[str, Any]) -> ExpenseOut:
    return ExpenseOut(month_name=month_name(row["ef_month"]), **row)


def summary_out(row: dict[str, Any]) -> SummaryRowOut:
    return SummaryRowOut(
        month=row["month"],
        month_name=month_name(row["month"]),
        total=row.get("total"),
        highlight=row.get("highlight", 0),
    )


def stats_out(stats: dict[str, Any] | None) -> StatsOut | None:
    return StatsOut(**stats) if stats else None


@router.get("/dashboard", response_model=DashboardOut, summary="Dashboard data")
async def dashboard_view(
    currency: str | None = Query(None, description="Currency for summary and stats"),
    sort_by: str = Query("ef_month", description="Expense column to sort by"),
    sort_dir: str = Query("asc", pattern="^(asc|desc)$", description="Sort direction"),
    dashboard: ExpenseDashboard = Depends(get_dashboard),
    gateway: QueryGateway = Depends(get_gateway),
    config: AppConfig = Depends(get_config),
) -> DashboardOut:
    """Fetch all three datasets concurrently.

    Fetch failures are reported in ``errors`` alongside whatever data was
    fetched successfully before; the request itself still succeeds.
    """
    currency = resolve_currency(currency, config, dashboard.currency)
    sort = sort_state(sort_by, sort_dir, EXPENSE_SORT_FIELDS)
    await dashboard.refresh(currency)
    return DashboardOut(
        currency=dashboard.currency,
        session_state=gateway.state.value,
        expenses=[expense_out(r) for r in dashboard.sorted_expenses(sort)],
        summary=[summary_out(r) for r in dashboard.sorted_summary(SortState("month"))],
        stats=stats_out(dashboard.stats),
        errors=dashboard.errors,
        notice=dashboard.notice,
    )


@router.get("/expenses", response_model=list[ExpenseOut], summary="List expenses")
async def list_expenses(
    sort_by: str = Query("ef_month", description="Column to sort by"),
    sort_dir: str = Query("asc", pattern="^(asc|desc)$", description="Sort direction"),
    dashboard: ExpenseDashboard = Depends(get_dashboard),
) -> list[ExpenseOut]:
    sort = sort_state(sort_by, sort_dir, EXPENSE_SORT_FIELDS)
    await dashboard.load(EXPENSES)
    return [expense_out(r) for r in dashboard.sorted_expenses(sort)]


@router.post(
    "/expenses",
    response_model=SubmissionOut,
    status_code=status.HTTP_201_CREATED,
    summary="Add an expense",
    responses={400: {"description": "Missing fields, bad amount or rejected insert"}},
)
async def add_expense(
    body: ExpenseIn,
    entry: ExpenseEntryController = Depends(get_entry),
    dashboard: ExpenseDashboard = Depends(get_dashboard),
    config: AppConfig = Depends(get_config),
) -> SubmissionOut:
    """Insert one row, or one row per occurrence month for recurring entries."""
    currency = resolve_currency(body.currency, config, dashboard.currency)
    result = await entry.submit(
        month=body.ef_month,
        category=body.category,
        custom_category=body.custom_category,
        biller=body.biller,
        amount=body.amount,
        currency=currency,
        recurring=body.recurring,
        frequency=body.frequency,
    )
    return SubmissionOut(
        inserted=result.inserted,
        months=result.months,
        amount=result.amount,
        currency=result.currency,
    )


@router.get("/expenses/summary", response_model=list[SummaryRowOut], summary="Monthly totals")
async def expense_summary(
    currency: str | None = Query(None, description="Only sum rows in this currency"),
    sort_by: str = Query("month", description="month or total"),
    sort_dir: str = Query("asc", pattern="^(asc|desc)$", description="Sort direction"),
    dashboard: ExpenseDashboard = Depends(get_dashboard),
    config: AppConfig = Depends(get_config),
) -> list[SummaryRowOut]:
    currency = resolve_currency(currency, config, dashboard.currency)
    sort = sort_state(sort_by, sort_dir, SUMMARY_SORT_FIELDS)
    await dashboard.load(SUMMARY, currency)
    return [summary_out(r) for r in dashboard.sorted_summary(sort)]


@router.get("/expenses/stats", response_model=StatsOut, summary="Aggregate stats")
async def expense_stats(
    currency: str | None = Query(None, description="Only aggregate rows in this currency"),
    dashboard: ExpenseDashboard = Depends(get_dashboard),
    config: AppConfig = Depends(get_config),
) -> StatsOut:
    currency = resolve_currency(currency, config, dashboard.currency)
    await dashboard.load(STATS, currency)
    return stats_out(dashboard.stats) or StatsOut()
