"""Runtime configuration.

Settings are read from environment variables, with an optional .env file at
the repository root loaded first. Everything has a default so the API and
scripts start without any configuration.

    LEDGER_DB_PATH               SQLite database file (default: ledger.db)
    DEFAULT_MOVEMENT_STATUS_ID   status for materialized movements
    DEFAULT_INCOME_REASON_ID     reason for income movements
    DEFAULT_EXPENSE_REASON_ID    reason for expense movements
    SYNC_PAGE_SIZE               page size used by full resync
    LINKAGE_HEURISTIC_ENABLED    match legacy movements by company/amount/date
    STRICT_VAT_CODES             reject invoices whose lines disagree on VAT code
    LOG_LEVEL                    DEBUG, INFO, WARNING, ...
    LOG_JSON                     emit JSON log lines
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv


REPO_ROOT = Path(__file__).resolve().parents[1]
ENV_PATH = REPO_ROOT / ".env"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


@dataclass(frozen=True)
class Settings:
    """Engine and API settings."""
    db_path: Path = REPO_ROOT / "ledger.db"
    default_status_id: str = "status-pending"
    default_income_reason_id: str = "reason-sales"
    default_expense_reason_id: str = "reason-purchases"
    sync_page_size: int = 100
    linkage_heuristic_enabled: bool = True
    strict_vat_codes: bool = False
    log_level: int = logging.INFO
    log_json: bool = False


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean, got {value!r}")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        parsed = int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}") from None
    if parsed < 1:
        raise ValueError(f"{name} must be positive, got {parsed}")
    return parsed


def _env_log_level(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    level = logging.getLevelName(value.strip().upper())
    if not isinstance(level, int):
        raise ValueError(f"{name} is not a logging level: {value!r}")
    return level


def load_settings(env_file: Path = ENV_PATH) -> Settings:
    """Build Settings from the environment.

    Args:
        env_file: Optional .env file loaded before reading variables.
            Variables already set in the environment win.

    Raises:
        ValueError: If a variable is set to an unparseable value
    """
    if env_file.exists():
        load_dotenv(env_file)

    defaults = Settings()
    db_path = os.getenv("LEDGER_DB_PATH")

    return Settings(
        db_path=Path(db_path) if db_path else defaults.db_path,
        default_status_id=os.getenv("DEFAULT_MOVEMENT_STATUS_ID", defaults.default_status_id),
        default_income_reason_id=os.getenv("DEFAULT_INCOME_REASON_ID", defaults.default_income_reason_id),
        default_expense_reason_id=os.getenv("DEFAULT_EXPENSE_REASON_ID", defaults.default_expense_reason_id),
        sync_page_size=_env_int("SYNC_PAGE_SIZE", defaults.sync_page_size),
        linkage_heuristic_enabled=_env_bool("LINKAGE_HEURISTIC_ENABLED", defaults.linkage_heuristic_enabled),
        strict_vat_codes=_env_bool("STRICT_VAT_CODES", defaults.strict_vat_codes),
        log_level=_env_log_level("LOG_LEVEL", defaults.log_level),
        log_json=_env_bool("LOG_JSON", defaults.log_json),
    )
