"""PULSE — Central Configuration via Pydantic Settings."""

import os
from datetime import date

from pydantic import BaseModel, model_validator
from pydantic_settings import BaseSettings


class AccountingConfig(BaseModel):
    """Cutoffs and windows that govern how metrics are attributed.

    Built once at the HTTP boundary and passed into the engine, so the
    analyzer never reads the environment itself.
    """

    realtime_cutoff: date
    accrual_start_cutoff: date
    historical_archive_end: date
    lookback_days: int = 30

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _check_windows(self) -> "AccountingConfig":
        if self.historical_archive_end >= self.realtime_cutoff:
            raise ValueError(
                "historical_archive_end must fall before realtime_cutoff"
            )
        if self.lookback_days < 1:
            raise ValueError("lookback_days must be at least 1")
        return self


class Settings(BaseSettings):
    """Application settings loaded from environment variables / .env file."""

    # ── Database ──
    database_url: str = ""

    # ── App ──
    log_level: str = "INFO"
    default_window_days: int = 30

    # ── Accounting ──
    realtime_cutoff: date = date(2026, 2, 5)
    historical_archive_end: date = date(2026, 2, 4)
    accrual_start_cutoff: date = date(2026, 1, 2)
    accrual_lookback_days: int = 30

    # ── Identity ──
    youtube_mirror_enabled: bool = True

    @property
    def effective_database_url(self) -> str:
        """Return PostgreSQL URL if set, otherwise fall back to SQLite."""
        if self.database_url:
            return self.database_url
        # Vercel has a read-only filesystem; use /tmp for SQLite
        if os.environ.get("VERCEL"):
            return "sqlite:////tmp/pulse.db"
        return "sqlite:///./pulse.db"

    def accounting_config(self) -> AccountingConfig:
        return AccountingConfig(
            realtime_cutoff=self.realtime_cutoff,
            accrual_start_cutoff=self.accrual_start_cutoff,
            historical_archive_end=self.historical_archive_end,
            lookback_days=self.accrual_lookback_days,
        )

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
