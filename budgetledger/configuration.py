"""Mini README: Centralised configuration models and helpers for budgetledger.

Structure:
    * BudgetLedgerSettings - Pydantic model describing runtime configuration.
    * get_settings - cached accessor for environment-aware settings.

Usage:
    Import ``get_settings`` to read environment variables (prefixed with
    ``BUDGETLEDGER_``), locate the JSON record store, tune ledger policies
    and choose service ports. The configuration is cached so validation
    runs only once per process.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class BudgetLedgerSettings(BaseSettings):
    """Runtime configuration for the ledger engine and its surfaces."""

    model_config = SettingsConfigDict(
        env_prefix="BUDGETLEDGER_",
        env_file=".env",
        case_sensitive=False,
    )

    environment: str = Field(
        "development",
        description="Environment label controlling debug toggles and logging levels.",
    )
    data_directory: Path = Field(
        Path("data"),
        description="Directory holding the JSON record store.",
    )
    store_filename: str = Field(
        "ledger.json",
        description="File name of the JSON record store inside the data directory.",
    )
    interface_host: str = Field(
        "0.0.0.0",
        description="Network interface for the JSON service to bind to.",
    )
    interface_port: int = Field(
        8000,
        description="Default port the JSON service exposes.",
        ge=1,
        le=65535,
    )
    log_level: str = Field("INFO", description="Root logging level.")
    fixed_expense_paid_on_create: bool = Field(
        True,
        description=(
            "Whether a newly created fixed expense is recorded as already settled."
            " Its auto-generated next occurrence is always pending."
        ),
    )
    value_history_limit: int = Field(
        5,
        description="Number of confirmed amounts kept for forecasting.",
        ge=2,
    )
    pending_window_days: int = Field(
        5,
        description="Days ahead of today in which pending items ask for confirmation.",
        ge=0,
    )
    insight_limit: int = Field(5, description="Maximum insights returned.", ge=1)

    @field_validator("data_directory", mode="before")
    @classmethod
    def _expand_path(cls, value: Optional[str | Path]) -> Path:
        """Ensure configured paths expand user directories."""

        return Path(value or "data").expanduser().resolve()

    @property
    def store_path(self) -> Path:
        """Full path of the JSON store, creating its directory on demand."""

        self.data_directory.mkdir(parents=True, exist_ok=True)
        return self.data_directory / self.store_filename


@lru_cache()
def get_settings() -> BudgetLedgerSettings:
    """Return cached settings, ensuring consistent configuration across modules."""

    return BudgetLedgerSettings()
