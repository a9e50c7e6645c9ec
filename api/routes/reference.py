"""
Reference data endpoints for the entry form.

GET /api/v1/reference/categories   → fixed category list (incl. "Custom")
GET /api/v1/reference/frequencies  → recurrence frequencies with occurrence counts
GET /api/v1/reference/currencies   → selectable currency codes and symbols
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from api.dependencies import get_config
from utils.config import CATEGORIES, CUSTOM_CATEGORY, AppConfig
from utils.formatting import currency_symbol
from utils.recurrence import SCHEDULES, Frequency

router = APIRouter(prefix="/reference", tags=["reference"])

_CACHE_HEADER = {"Cache-Control": "max-age=3600"}


@router.get("/categories", summary="List expense categories")
def list_categories() -> JSONResponse:
    data = [{"name": c, "custom": c == CUSTOM_CATEGORY} for c in CATEGORIES]
    return JSONResponse(content=data, headers=_CACHE_HEADER)


@router.get("/frequencies", summary="List recurrence frequencies")
def list_frequencies() -> JSONResponse:
    """Each frequency with the number of rows it expands to and the month spacing."""
    data = []
    for freq in Frequency:
        count, spacing = SCHEDULES[freq]
        data.append({"name": freq.value, "occurrences": count, "spacing_months": spacing})
    return JSONResponse(content=data, headers=_CACHE_HEADER)


@router.get("/currencies", summary="List selectable currencies")
def list_currencies(config: AppConfig = Depends(get_config)) -> JSONResponse:
    data = [
        {"code": code, "symbol": currency_symbol(code),
         "default": code == config.default_currency}
        for code in config.currencies
    ]
    return JSONResponse(content=data)
