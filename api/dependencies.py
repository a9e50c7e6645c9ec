"""
FastAPI dependencies that hand routes the objects owned by create_app().

Usage in a route::

    from api.dependencies import get_dashboard
    from fastapi import Depends

    @router.get("/example")
    async def example(dashboard=Depends(get_dashboard)):
        ...
"""

from fastapi import Request

from api.controllers import ExpenseDashboard, ExpenseEntryController, SchemaSetup
from api.gateway import QueryGateway
from utils.config import AppConfig


def get_config(request: Request) -> AppConfig:
    return request.app.state.config


def get_gateway(request: Request) -> QueryGateway:
    return request.app.state.gateway


def get_dashboard(request: Request) -> ExpenseDashboard:
    return request.app.state.dashboard


def get_entry(request: Request) -> ExpenseEntryController:
    return request.app.state.entry


def get_setup(request: Request) -> SchemaSetup:
    return request.app.state.setup


def resolve_currency(currency: str | None, config: AppConfig,
                     current: str | None = None) -> str:
    """Return the requested currency code.

    Falls back to *current* (the selection already in effect), then to the
    configured default.

    Raises:
        ValueError: If the code is not one of the configured currencies.
    """
    if not currency:
        return current or config.default_currency
    code = currency.strip().upper()
    if code not in config.currencies:
        raise ValueError(
            f"Unsupported currency {currency!r}; expected one of {config.currencies}"
        )
    return code
