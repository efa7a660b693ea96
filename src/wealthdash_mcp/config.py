"""Engine policy constants and environment settings for wealthdash-mcp."""

import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class EngineConfig:
    """Policy shared by every analyzer.

    One instance is injected into each tool call through the tool context,
    so the exclusion list, fallback rates and thresholds are declared once.
    """

    excluded_categories: tuple[str, ...] = ("Excluded", "Income", "Gift Money", "Other Income")
    income_categories: tuple[str, ...] = ("Income", "Gift Money")
    # Net burn counts "Other Income" rows
    burn_excluded_categories: tuple[str, ...] = ("Excluded", "Income", "Gift Money")
    cash_categories: tuple[str, ...] = ("Cash", "Checking", "Savings")
    account_categories: tuple[str, ...] = (
        "Cash", "Brokerage", "Alt Inv", "Retirement", "Taconic", "House", "Trust",
    )
    home_currency: str = "GBP"
    fallback_gbpusd_rate: float = 1.27
    fallback_eurusd_rate: float = 1.08
    pareto_threshold: float = 0.8
    merchant_key_length: int = 9
    trend_key_length: int = 7
    trend_window_months: int = 13
    runway_months: int = 3
    top_drivers: int = 5
    top_categories: int = 5
    recurring_key_length: int = 5
    recurring_lookback_months: int = 12
    recurring_live_days: int = 60
    recurring_tolerance: float = 0.10
    page_size: int = 1000


DEFAULT_CONFIG = EngineConfig()


@dataclass(frozen=True)
class Settings:
    """Runtime settings read from the environment."""

    db_path: Path
    store_url: str | None = None
    store_key: str | None = None
    benchmark_url: str | None = None
    log_level: str = "INFO"

    @property
    def use_remote_store(self) -> bool:
        return bool(self.store_url and self.store_key)


def load_settings(environ: dict[str, str] | None = None) -> Settings:
    """Build settings from environment variables.

    Args:
        environ: Mapping to read from. Defaults to os.environ.

    Returns:
        Settings with defaults applied for anything unset.
    """
    env = os.environ if environ is None else environ

    db_path = env.get("WEALTHDASH_DB_PATH")
    if db_path:
        path = Path(db_path).expanduser()
    else:
        # Default to user's cache directory
        path = Path.home() / ".cache" / "wealthdash-mcp" / "ledger.db"

    return Settings(
        db_path=path,
        store_url=(env.get("WEALTHDASH_STORE_URL") or "").strip().rstrip("/") or None,
        store_key=(env.get("WEALTHDASH_STORE_KEY") or "").strip() or None,
        benchmark_url=(env.get("WEALTHDASH_BENCHMARK_URL") or "").strip() or None,
        log_level=(env.get("WEALTHDASH_LOG_LEVEL") or "INFO").strip().upper(),
    )


def configure_logging(level: str = "INFO") -> None:
    """Send log records to stderr; stdout carries the MCP stdio protocol."""
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        raise ValueError(f"Unknown log level: {level}")

    logging.basicConfig(
        level=numeric,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
