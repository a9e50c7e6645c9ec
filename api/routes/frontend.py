"""
Frontend HTML routes.

Serves the single-page dashboard and the plain HTML form handlers behind it.
Every POST handler redirects back to ``/`` (303) carrying a ``msg`` or ``err``
query parameter, so a browser refresh never resubmits a form.

Routes:
    GET  /              → index.html (token, setup, entry form, table, stats)
    POST /token         → set the token from a form field
    POST /token/upload  → set the token from an uploaded text file
    POST /expenses      → add an expense from the entry form
    POST /setup/check   → re-check that the expense table exists
    POST /setup/create  → create the database and table
"""

import logging
from datetime import datetime
from typing import Any
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from api.controllers import (
    EntryValidationError,
    ExpenseDashboard,
    ExpenseEntryController,
    SchemaSetup,
)
from api.dependencies import (
    get_config,
    get_dashboard,
    get_entry,
    get_gateway,
    get_setup,
    resolve_currency,
)
from api.gateway import GatewayError, QueryGateway
from api.routes.session import apply_token, read_token_file, session_out
from utils.config import CATEGORIES, CUSTOM_CATEGORY, AppConfig
from utils.formatting import MONTHS
from utils.recurrence import Frequency
from utils.table import HIGHLIGHT_CLASSES, SortState

logger = logging.getLogger(__name__)

router = APIRouter(tags=["frontend"])

# Templates instance is set by create_app() after mounting.
_templates: Jinja2Templates | None = None

VIEWS = ("regular", "summary")


def set_templates(t: Jinja2Templates) -> None:
    global _templates
    _templates = t


def _tmpl() -> Jinja2Templates:
    if _templates is None:
        raise RuntimeError("Templates not initialised; call set_templates() first")
    return _templates


def _redirect(**params: str) -> RedirectResponse:
    query = urlencode({k: v for k, v in params.items() if v})
    return RedirectResponse(f"/?{query}" if query else "/", status_code=303)


def _parse_page_state(request: Request) -> dict[str, Any]:
    """Read view, sort and flash parameters from the query string."""
    params = request.query_params
    view = params.get("view", "regular")
    sort_dir = params.get("dir", "asc")
    return {
        "view": view if view in VIEWS else "regular",
        "currency": params.get("currency"),
        "sort": params.get("sort") or ("ef_month" if view != "summary" else "month"),
        "dir": sort_dir if sort_dir in ("asc", "desc") else "asc",
        "message": params.get("msg"),
        "error": params.get("err"),
    }


def _sort_links(state: dict[str, Any], fields: list[str]) -> dict[str, str]:
    """Query strings for each column header: clicking toggles the direction."""
    current = SortState(state["sort"], state["dir"])
    links = {}
    for field in fields:
        nxt = current.toggle(field)
        links[field] = urlencode({
            "view": state["view"],
            "currency": state["currency"],
            "sort": nxt.field,
            "dir": nxt.direction,
        })
    return links


# ── Routes ────────────────────────────────────────────────────────────────────

@router.get("/", response_class=HTMLResponse, include_in_schema=False)
async def index(
    request: Request,
    gateway: QueryGateway = Depends(get_gateway),
    dashboard: ExpenseDashboard = Depends(get_dashboard),
    setup: SchemaSetup = Depends(get_setup),
    config: AppConfig = Depends(get_config),
) -> HTMLResponse:
    """Dashboard page."""
    state = _parse_page_state(request)
    errors: list[str] = []
    try:
        state["currency"] = resolve_currency(state["currency"], config, dashboard.currency)
    except ValueError as exc:
        errors.append(str(exc))
        state["currency"] = dashboard.currency

    if gateway.configured:
        if setup.objects_exist is None:
            try:
                await setup.check()
            except GatewayError as exc:
                errors.append(f"Failed to check tables: {exc}")
        await dashboard.refresh(state["currency"])
        errors.extend(dashboard.errors)

    sort = SortState(state["sort"], state["dir"])
    if state["view"] == "summary":
        expenses: list[dict[str, Any]] = []
        summary = dashboard.sorted_summary(sort)
    else:
        expenses = dashboard.sorted_expenses(sort)
        summary = []

    return _tmpl().TemplateResponse(
        request,
        "index.html",
        {
            "session": session_out(gateway),
            "state": state,
            "objects_exist": setup.objects_exist,
            "expenses": expenses,
            "summary": summary,
            "highlight_classes": HIGHLIGHT_CLASSES,
            "stats": dashboard.stats,
            "notice": dashboard.notice,
            "errors": errors,
            "loaded_at": dashboard.loaded_at,
            "expense_sort_links": _sort_links(
                state, ["ef_month", "category", "biller", "amount", "currency", "created_ts"]),
            "summary_sort_links": _sort_links(state, ["month", "total"]),
            "categories": CATEGORIES,
            "custom_category": CUSTOM_CATEGORY,
            "frequencies": [f.value for f in Frequency],
            "months": list(enumerate(MONTHS, start=1)),
            "current_month": datetime.now().month,
            "currencies": config.currencies,
            "grouping": config.amount_grouping,
        },
    )


@router.post("/token", include_in_schema=False)
async def token_form(
    token: str = Form(""),
    gateway: QueryGateway = Depends(get_gateway),
    dashboard: ExpenseDashboard = Depends(get_dashboard),
    setup: SchemaSetup = Depends(get_setup),
) -> RedirectResponse:
    apply_token(token, gateway, dashboard, setup)
    return _redirect(msg="Token saved" if token.strip() else "Token cleared")


@router.post("/token/upload", include_in_schema=False)
async def token_upload_form(
    file: UploadFile = File(...),
    gateway: QueryGateway = Depends(get_gateway),
    dashboard: ExpenseDashboard = Depends(get_dashboard),
    setup: SchemaSetup = Depends(get_setup),
) -> RedirectResponse:
    try:
        token = read_token_file(await file.read())
    except ValueError as exc:
        return _redirect(err=str(exc))
    apply_token(token, gateway, dashboard, setup)
    return _redirect(msg="Token loaded from file")


@router.post("/expenses", include_in_schema=False)
async def expense_form(
    ef_month: int = Form(...),
    category: str = Form(""),
    custom_category: str = Form(""),
    biller: str = Form(""),
    amount: str = Form(""),
    currency: str = Form(""),
    recurring: bool = Form(False),
    frequency: str = Form(""),
    entry: ExpenseEntryController = Depends(get_entry),
    dashboard: ExpenseDashboard = Depends(get_dashboard),
    config: AppConfig = Depends(get_config),
) -> RedirectResponse:
    try:
        try:
            value = float(amount)
        except ValueError:
            raise EntryValidationError(
                "Please fill in all required fields with valid values"
            ) from None
        result = await entry.submit(
            month=ef_month,
            category=category,
            custom_category=custom_category,
            biller=biller,
            amount=value,
            currency=resolve_currency(currency, config, dashboard.currency),
            recurring=recurring,
            frequency=frequency or None,
        )
    except (ValueError, GatewayError) as exc:
        return _redirect(err=str(exc))
    noun = "expense" if result.inserted == 1 else "expenses"
    return _redirect(msg=f"Added {result.inserted} {noun}", currency=result.currency)


@router.post("/setup/check", include_in_schema=False)
async def setup_check_form(setup: SchemaSetup = Depends(get_setup)) -> RedirectResponse:
    try:
        exists = await setup.check()
    except GatewayError as exc:
        return _redirect(err=f"Failed to check tables: {exc}")
    return _redirect(msg="Expense table found" if exists else "Expense table not found")


@router.post("/setup/create", include_in_schema=False)
async def setup_create_form(setup: SchemaSetup = Depends(get_setup)) -> RedirectResponse:
    try:
        await setup.create()
    except GatewayError as exc:
        return _redirect(err=f"Failed to create tables: {exc}")
    return _redirect(msg="Database and table created")
