"""Configuration management for Expensage.

Provides:
- Config: base class exporting public settings as a dict
- AppConfig: application settings loaded from environment variables
- Fixed option lists used by the entry form (categories, currencies)
"""

import os as _os
from typing import Any, Dict

from utils.query import DEFAULT_DATABASE, validate_identifier

CATEGORIES = [
    "Utilities",
    "Rent",
    "Insurance",
    "Groceries",
    "Entertainment",
    "Gas",
    "Internet",
    "Phone",
    "Other",
    "Custom",
]

CUSTOM_CATEGORY = "Custom"


class Config:
    """Base configuration class for organizing application settings.

    Attributes starting with an underscore are private and never exported
    by :meth:`to_dict`.
    """

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary.

        Returns:
            Dictionary of all public config attributes
        """
        return {k: v for k, v in self.__dict__.items() if not k.startswith("_")}


def _split_csv(raw: str) -> list[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


class AppConfig(Config):
    """Application-level configuration loaded from environment variables.

    All env vars have sensible defaults so the application works out of the
    box; only a MotherDuck token is needed before queries can run, and that
    can also be supplied at runtime through the session endpoints.

    Environment variables:
        APP_HOST: API server bind address (default: 127.0.0.1)
        APP_PORT: API server port (default: 8000)
        APP_LOG_FORMAT: Logging format, "text" or "json" (default: text)
        APP_LOG_LEVEL: Root log level (default: INFO)
        APP_CORS_ORIGINS: Comma-separated allowed origins (default: *)
        EXPENSAGE_DATABASE: Database holding the expense table (default: expensage_backend)
        EXPENSAGE_DEFAULT_CURRENCY: Initial currency context (default: INR)
        EXPENSAGE_CURRENCIES: Selectable currency codes (default: INR,USD,EUR,GBP)
        EXPENSAGE_AMOUNT_GROUPING: "indian" or "western" digit grouping (default: indian)
        EXPENSAGE_CONNECT_TIMEOUT: Seconds allowed for session setup (default: 30)
        EXPENSAGE_QUERY_TIMEOUT: Seconds allowed per query (default: 60)
        MOTHERDUCK_TOKEN: Optional credential applied at startup
    """

    def __init__(self) -> None:
        self.api_host = _os.getenv("APP_HOST", "127.0.0.1")
        self.api_port = int(_os.getenv("APP_PORT", "8000"))
        self.log_format = _os.getenv("APP_LOG_FORMAT", "text")
        self.log_level = _os.getenv("APP_LOG_LEVEL", "INFO").upper()
        raw_origins = _os.getenv("APP_CORS_ORIGINS", "*")
        self.cors_origins: list[str] = (
            ["*"] if raw_origins == "*" else _split_csv(raw_origins)
        )
        self.database = validate_identifier(
            _os.getenv("EXPENSAGE_DATABASE", DEFAULT_DATABASE)
        )
        self.default_currency = _os.getenv("EXPENSAGE_DEFAULT_CURRENCY", "INR").upper()
        self.currencies: list[str] = [
            c.upper() for c in _split_csv(_os.getenv("EXPENSAGE_CURRENCIES", "INR,USD,EUR,GBP"))
        ]
        if self.default_currency not in self.currencies:
            self.currencies.insert(0, self.default_currency)
        self.amount_grouping = _os.getenv("EXPENSAGE_AMOUNT_GROUPING", "indian")
        if self.amount_grouping not in ("indian", "western"):
            raise ValueError(
                f"EXPENSAGE_AMOUNT_GROUPING must be 'indian' or 'western', "
                f"got {self.amount_grouping!r}"
            )
        self.connect_timeout = float(_os.getenv("EXPENSAGE_CONNECT_TIMEOUT", "30"))
        self.query_timeout = float(_os.getenv("EXPENSAGE_QUERY_TIMEOUT", "60"))
        # Credential stays private so it never reaches to_dict()/logs.
        self._motherduck_token = _os.getenv("MOTHERDUCK_TOKEN", "").strip()

    @property
    def motherduck_token(self) -> str:
        return self._motherduck_token

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Create an AppConfig instance populated from environment variables."""
        return cls()
