"""Shared utilities for Expensage."""

# Output formatting
from utils.formatting import (
    MONTHS,
    CURRENCY_SYMBOLS,
    month_name,
    format_amount,
    format_stat,
    format_timestamp,
    parse_timestamp,
    currency_symbol,
)

# CSV export
from utils.csv_export import build_csv, export_filename

# Query catalog
from utils.query import (
    DEFAULT_DATABASE,
    EXPENSE_TABLE,
    EXPENSE_COLUMNS,
    QueryCatalog,
    validate_identifier,
)

# Table sorting and highlighting
from utils.table import (
    SortState,
    sort_rows,
    highlight_bucket,
    highlight_summary,
)

# Recurring expenses
from utils.recurrence import (
    Frequency,
    Occurrence,
    parse_frequency,
    occurrence_months,
    expand_recurring,
)

# Configuration
from utils.config import (
    Config,
    AppConfig,
    CATEGORIES,
    CUSTOM_CATEGORY,
)

__all__ = [
    # Formatting
    "MONTHS",
    "CURRENCY_SYMBOLS",
    "month_name",
    "format_amount",
    "format_stat",
    "format_timestamp",
    "parse_timestamp",
    "currency_symbol",
    # CSV
    "build_csv",
    "export_filename",
    # Query
    "DEFAULT_DATABASE",
    "EXPENSE_TABLE",
    "EXPENSE_COLUMNS",
    "QueryCatalog",
    "validate_identifier",
    # Table
    "SortState",
    "sort_rows",
    "highlight_bucket",
    "highlight_summary",
    # Recurrence
    "Frequency",
    "Occurrence",
    "parse_frequency",
    "occurrence_months",
    "expand_recurring",
    # Config
    "Config",
    "AppConfig",
    "CATEGORIES",
    "CUSTOM_CATEGORY",
]
