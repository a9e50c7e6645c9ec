"""
FastAPI application factory.

Usage:
    python -m api.app                    # Dev server on port 8000
    MOTHERDUCK_TOKEN=... python -m api.app

OpenAPI docs available at http://localhost:8000/docs after starting.

The factory owns the composition root: one QueryGateway per process plus the
controllers built on it, all stored on ``app.state`` and handed to routes
through api.dependencies.

Structured JSON logging when APP_LOG_FORMAT=json.
CORS middleware with configurable origins via APP_CORS_ORIGINS.
"""

import json
import logging
import time
import uuid
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.templating import Jinja2Templates

from api.controllers import ExpenseDashboard, ExpenseEntryController, SchemaSetup
from api.gateway import GatewayError, QueryGateway
from api.routes import download, expenses, reference, session, setup
from api.routes import frontend as frontend_routes
from utils.config import AppConfig
from utils.formatting import (
    currency_symbol,
    format_amount,
    format_stat,
    format_timestamp,
    month_name,
)
from utils.query import QueryCatalog

# ── Structured JSON logging ───────────────────────────────────────────────────


class _JsonFormatter(logging.Formatter):
    """Emit log records as newline-delimited JSON."""

    def format(self, record: logging.LogRecord) -> str:
        data: dict = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        # Merge extra fields added via logger.info("...", extra={...})
        for key in ("method", "path", "status", "duration_ms", "client_ip",
                    "request_id"):
            if hasattr(record, key):
                data[key] = getattr(record, key)
        if record.exc_info:
            data["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(data)


_logger = logging.getLogger("expensage_api")


def configure_logging(cfg: AppConfig) -> None:
    handler = logging.StreamHandler()
    if cfg.log_format == "json":
        handler.setFormatter(_JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
        )
    logging.basicConfig(handlers=[handler], level=cfg.log_level, force=True)


# ── Application metrics ───────────────────────────────────────────────────────
# Simple in-memory counters; reset on process restart.
_app_start_time: float = time.time()
_metrics: dict = {
    "request_count": 0,
    "error_count": 0,
    "response_times_ms": [],  # capped at last 100 entries
}
_RESPONSE_TIME_WINDOW = 100


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Apply a startup token, if configured, and close the session on exit."""
    cfg: AppConfig = app.state.config
    gateway: QueryGateway = app.state.gateway
    if cfg.motherduck_token and not gateway.configured:
        gateway.set_token(cfg.motherduck_token)
        _logger.info("Using MotherDuck token from environment")
    yield
    await gateway.close()


def create_app(config: AppConfig | None = None,
               gateway: QueryGateway | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: Settings; read from the environment when omitted.
        gateway: Pre-built gateway (tests pass one with a fake connector).

    Returns:
        Configured FastAPI application instance.
    """
    cfg = config or AppConfig.from_env()
    configure_logging(cfg)

    if gateway is None:
        gateway = QueryGateway(
            database=cfg.database,
            connect_timeout=cfg.connect_timeout,
            query_timeout=cfg.query_timeout,
        )
    catalog = QueryCatalog(cfg.database)
    dashboard = ExpenseDashboard(gateway, catalog, currency=cfg.default_currency)

    app = FastAPI(
        title="Expensage API",
        summary="Record, browse, summarize and export monthly expense forecasts.",
        description=(
            "## Expensage API\n\n"
            "Expenses are stored in a MotherDuck database; set a token through "
            "`/api/v1/session/token` before querying.\n\n"
            "### Key concepts\n"
            "- **ef_month** is the month number 1-12 an expense falls in.\n"
            "- **Recurring** entries are written as one row per occurrence month.\n"
            "- **Summary** and **stats** are filtered on the selected currency.\n"
        ),
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_tags=[
            {"name": "session", "description": "Set or clear the MotherDuck token."},
            {"name": "expenses", "description": "List, add, summarize and aggregate expenses."},
            {"name": "setup", "description": "Check for and create the expense table."},
            {"name": "download", "description": "Export the current view as CSV or Excel."},
            {"name": "reference", "description": "Option lists for the entry form."},
            {"name": "meta", "description": "Health check and API metadata."},
        ],
    )
    app.state.config = cfg
    app.state.gateway = gateway
    app.state.dashboard = dashboard
    app.state.entry = ExpenseEntryController(gateway, catalog, dashboard)
    app.state.setup = SchemaSetup(gateway, catalog)

    # ── CORS middleware ───────────────────────────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    # ── Request logging middleware ────────────────────────────────────────────

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log each request and record metrics."""
        request_id = str(uuid.uuid4())[:8]
        start = time.monotonic()
        client_ip = request.client.host if request.client else "unknown"
        path = request.url.path

        _metrics["request_count"] += 1
        response = await call_next(request)
        duration_ms = (time.monotonic() - start) * 1000

        _metrics["response_times_ms"].append(duration_ms)
        if len(_metrics["response_times_ms"]) > _RESPONSE_TIME_WINDOW:
            _metrics["response_times_ms"] = (
                _metrics["response_times_ms"][-_RESPONSE_TIME_WINDOW:]
            )
        if response.status_code >= 500:
            _metrics["error_count"] += 1

        response.headers["X-Request-ID"] = request_id

        if cfg.log_format == "json":
            _logger.info(
                "request",
                extra={
                    "method": request.method,
                    "path": path,
                    "status": response.status_code,
                    "duration_ms": round(duration_ms, 1),
                    "client_ip": client_ip,
                    "request_id": request_id,
                },
            )
        else:
            _logger.info(
                "method=%s path=%s status=%d duration_ms=%.1f ip=%s rid=%s",
                request.method, path, response.status_code, duration_ms,
                client_ip, request_id,
            )
        if duration_ms > 2000:
            _logger.warning(
                "slow_request method=%s path=%s duration_ms=%.1f",
                request.method, path, duration_ms,
            )
        return response

    # ── Security headers ──────────────────────────────────────────────────────

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        """Add Content-Security-Policy, X-Content-Type-Options, and X-Frame-Options."""
        response = await call_next(request)
        # 'unsafe-inline' covers the inline styles and onchange handler in index.html.
        response.headers["Content-Security-Policy"] = (
            "default-src 'self'; "
            "script-src 'self' 'unsafe-inline'; "
            "style-src 'self' 'unsafe-inline'; "
            "img-src 'self' data:; "
            "connect-src 'self';"
        )
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        return response

    # ── Error handling ────────────────────────────────────────────────────────

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """Catch unhandled exceptions and return JSON instead of HTML traceback."""
        _logger.exception("Unhandled error on %s", request.url.path)
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "detail": str(exc),
                "status_code": 500,
            },
        )

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.kind, "detail": exc.message,
                     "status_code": exc.status_code},
        )

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        return JSONResponse(
            status_code=400,
            content={"error": "Bad request", "detail": str(exc), "status_code": 400},
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        """FastAPI's 422 body without the echoed input, which may be NaN/Infinity."""
        errors = [{k: v for k, v in err.items() if k != "input"} for err in exc.errors()]
        return JSONResponse(status_code=422, content={"detail": jsonable_encoder(errors)})

    # ── Health check ──────────────────────────────────────────────────────────

    @app.get("/health", tags=["meta"], summary="Health check")
    def health():
        """Return 200 while the API is running, with the session state."""
        return {
            "status": "ok",
            "database": cfg.database,
            "session": gateway.state.value,
        }

    @app.get(
        "/health/detailed",
        tags=["meta"],
        summary="Detailed health metrics",
        response_description="Operational metrics for monitoring dashboards",
    )
    def health_detailed():
        """Return uptime, request/error counters, average response time,
        session details and the effective (non-secret) settings. Counters
        reset on process restart.
        """
        rts = _metrics["response_times_ms"]
        avg_rt = round(sum(rts) / len(rts), 2) if rts else 0.0
        error = gateway.last_error
        return {
            "status": "ok",
            "uptime_seconds": round(time.time() - _app_start_time, 2),
            "request_count": _metrics["request_count"],
            "error_count": _metrics["error_count"],
            "avg_response_time_ms": avg_rt,
            "session": {
                "state": gateway.state.value,
                "generation": gateway.generation,
                "error": error.message if error else None,
            },
            "dashboard": {
                "loaded_at": dashboard.loaded_at.isoformat() if dashboard.loaded_at else None,
                "expense_rows": len(dashboard.expenses),
                "currency": dashboard.currency,
            },
            "config": cfg.to_dict(),
        }

    # ── Register routers ──────────────────────────────────────────────────────

    prefix = "/api/v1"
    app.include_router(session.router,   prefix=prefix)
    app.include_router(expenses.router,  prefix=prefix)
    app.include_router(setup.router,     prefix=prefix)
    app.include_router(download.router,  prefix=prefix)
    app.include_router(reference.router, prefix=prefix)

    # ── Jinja2 templates ──────────────────────────────────────────────────────
    templates_dir = Path(__file__).parent.parent / "templates"

    if templates_dir.exists():
        templates = Jinja2Templates(directory=str(templates_dir))

        def fmt_amount(value, grouping: str = cfg.amount_grouping) -> str:
            """Jinja filter: two-decimal grouped amount, "-" for missing values."""
            try:
                return format_amount(value, grouping)
            except (TypeError, ValueError):
                return "-"

        templates.env.filters["fmt_amount"] = fmt_amount
        templates.env.filters["fmt_stat"] = format_stat
        templates.env.filters["fmt_ts"] = format_timestamp
        templates.env.filters["month_name"] = month_name
        templates.env.filters["currency_symbol"] = currency_symbol

        frontend_routes.set_templates(templates)
        app.include_router(frontend_routes.router)

    return app


# Singleton instance for uvicorn
app = create_app()


if __name__ == "__main__":
    import uvicorn
    _cfg = app.state.config
    uvicorn.run(
        "api.app:app",
        host=_cfg.api_host,
        port=_cfg.api_port,
        reload=True,
        log_level="info",
    )
