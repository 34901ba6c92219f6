"""Configuration loading for the allocation engine and its services.

Loads settings from .env file and environment variables with sensible defaults.
Validates currency configuration and provides clear error messages.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv


@dataclass(frozen=True)
class EngineConfig:
    """Configuration for currency handling, persistence and logging."""

    database_url: str = "sqlite:///./rentledger.db"
    """SQLAlchemy database URL (default: local SQLite)"""

    canonical_currency: str = "USD"
    """Reporting currency every amount is normalized to"""

    supported_currencies: tuple[str, ...] = field(default=("USD", "VES"))
    """Currencies accepted on payments"""

    log_file: str = "logs/server.log"
    """Path to log file (default: logs/server.log)"""

    auto_approve_payments: bool = False
    """Commit registered payments as approved instead of pending"""


def _parse_bool(value: str | None) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes", "on"}


def load_config() -> EngineConfig:
    """
    Load configuration from .env file and environment variables.

    Priority (highest to lowest):
    1. Environment variables (DATABASE_URL, CANONICAL_CURRENCY, etc.)
    2. .env file in project root
    3. Default values

    Returns:
        EngineConfig with all settings

    Raises:
        ValueError: If the currency configuration is inconsistent

    Example:
        Create .env file:
        ```
        DATABASE_URL=sqlite:///./rentledger.db
        CANONICAL_CURRENCY=USD
        SUPPORTED_CURRENCIES=USD,VES
        ```
    """
    env_path = Path(".env")
    if env_path.exists():
        load_dotenv(env_path)

    database_url = os.getenv("DATABASE_URL", "sqlite:///./rentledger.db")
    canonical_currency = os.getenv("CANONICAL_CURRENCY", "USD").strip().upper()
    raw_supported = os.getenv("SUPPORTED_CURRENCIES", "USD,VES")
    log_file = os.getenv("LOG_FILE", "logs/server.log")
    auto_approve = _parse_bool(os.getenv("AUTO_APPROVE_PAYMENTS"))

    supported = tuple(
        code.strip().upper() for code in raw_supported.split(",") if code.strip()
    )
    if not supported:
        raise ValueError(
            "SUPPORTED_CURRENCIES is empty. "
            "Set a comma-separated list of currency codes (e.g. USD,VES)"
        )

    for code in supported:
        if len(code) != 3 or not code.isalpha():
            raise ValueError(f"Invalid currency code in SUPPORTED_CURRENCIES: {code!r}")

    if canonical_currency not in supported:
        raise ValueError(
            f"CANONICAL_CURRENCY {canonical_currency} is not listed in "
            f"SUPPORTED_CURRENCIES ({', '.join(supported)})"
        )

    return EngineConfig(
        database_url=database_url,
        canonical_currency=canonical_currency,
        supported_currencies=supported,
        log_file=log_file,
        auto_approve_payments=auto_approve,
    )
