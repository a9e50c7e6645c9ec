"""
Pydantic request/response models for the Expensage API.

Optional fields default to None so that rows with NULL columns still
validate. Field() descriptions and examples feed the OpenAPI docs.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from utils.recurrence import Frequency


# ── Session ───────────────────────────────────────────────────────────────────

class TokenIn(BaseModel):
    """A MotherDuck bearer token. An empty string clears the session."""
    token: str = Field(..., description="MotherDuck access token", examples=["eyJhbGciOi..."])


class SessionOut(BaseModel):
    """Current state of the database session."""
    state: str = Field(..., description="unconfigured | connecting | ready | failed", examples=["ready"])
    generation: int = Field(..., description="Incremented on every credential change", examples=[3])
    configured: bool = Field(..., description="True once a token has been set")
    error: str | None = Field(None, description="Reason the last connection attempt failed")


# ── Expense rows ──────────────────────────────────────────────────────────────

class ExpenseOut(BaseModel):
    """One stored expense forecast row."""
    ef_month: int = Field(..., description="Month number 1-12", examples=[3])
    month_name: str = Field(..., description="Three-letter month label", examples=["MAR"])
    category: str | None = Field(None, description="Expense category", examples=["Utilities"])
    biller: str | None = Field(None, description="Who is paid", examples=["Electric Company"])
    amount: float | None = Field(None, description="Amount in the row's currency", examples=[1850.0])
    currency: str | None = Field(None, description="Currency code", examples=["INR"])
    created_ts: datetime | None = Field(None, description="When the row was written")


class SummaryRowOut(BaseModel):
    """Total expense for one month."""
    month: int = Field(..., description="Month number 1-12", examples=[3])
    month_name: str = Field(..., description="Three-letter month label", examples=["MAR"])
    total: float | None = Field(None, description="Sum of amounts for the month", examples=[24500.0])
    highlight: int = Field(0, ge=0, le=4, description="Intensity bucket relative to the largest month")


class StatsOut(BaseModel):
    """Aggregate figures over all stored expenses."""
    yearly_total: float | None = Field(None, description="Sum of all amounts", examples=[294000.0])
    avg_expense_per_month: float | None = Field(None, description="yearly_total / 12", examples=[24500.0])
    avg_expense_per_day: float | None = Field(None, description="yearly_total / 365", examples=[805.48])


class DashboardOut(BaseModel):
    """List, summary and stats fetched together."""
    currency: str = Field(..., description="Currency the summary and stats are filtered on", examples=["INR"])
    session_state: str = Field(..., description="Database session state", examples=["ready"])
    expenses: list[ExpenseOut] = Field(..., description="Expense rows in the requested order")
    summary: list[SummaryRowOut] = Field(..., description="Monthly totals in the requested order")
    stats: StatsOut | None = Field(None, description="Aggregate figures")
    errors: list[str] = Field(default_factory=list, description="Per-fetch failure messages")
    notice: str | None = Field(None, description="Informational message, e.g. when nothing is stored")


# ── Entry form ────────────────────────────────────────────────────────────────

class ExpenseIn(BaseModel):
    """A new expense, optionally recurring."""
    ef_month: int = Field(..., ge=1, le=12, description="Month number 1-12", examples=[3])
    category: str = Field(..., description="Category from the fixed list, or 'Custom'", examples=["Utilities"])
    custom_category: str | None = Field(None, description="Free-text category when category is 'Custom'")
    biller: str = Field(..., description="Who is paid", examples=["Electric Company"])
    amount: float = Field(..., gt=0, allow_inf_nan=False, description="Amount per occurrence", examples=[1850.0])
    currency: str | None = Field(None, description="Currency code; defaults to the selected currency", examples=["INR"])
    recurring: bool = Field(False, description="Expand into one row per occurrence")
    frequency: str | None = Field(
        None,
        description=f"One of {[f.value for f in Frequency]} when recurring",
        examples=["Quarterly"],
    )


class SubmissionOut(BaseModel):
    """Result of adding an expense."""
    inserted: int = Field(..., description="Rows written", examples=[4])
    months: list[int] = Field(..., description="Occurrence months written", examples=[[3, 6, 9, 12]])
    amount: float = Field(..., description="Amount written per row", examples=[1850.0])
    currency: str = Field(..., description="Currency code written", examples=["INR"])


# ── Schema setup ──────────────────────────────────────────────────────────────

class SchemaStatusOut(BaseModel):
    """Whether the expense table exists."""
    database: str = Field(..., description="Database holding the table", examples=["expensage_backend"])
    table: str = Field(..., description="Qualified table name", examples=["expensage_backend.expenses_forecast"])
    objects_exist: bool = Field(..., description="True when the table is present")


# ── Error model ───────────────────────────────────────────────────────────────

class ErrorResponse(BaseModel):
    """Standard error response body."""
    error: str = Field(..., description="Short error category", examples=["Bad request"])
    detail: str | None = Field(None, description="Extended error detail")
    status_code: int = Field(..., ge=400, le=599, description="HTTP status code", examples=[400])
