from __future__ import annotations

from functools import cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parents[1]
ARTIFACTS_DIR = PROJECT_ROOT / "artifacts"


class AppSettings(BaseSettings):
    db_file: Path = ARTIFACTS_DIR / "ledger.db"
    default_currency: str = "USD"
    display_currency: str = "USD"
    lock_timeout_seconds: float = Field(default=10.0)
    sql_echo: bool = False

    model_config = SettingsConfigDict(env_prefix="LEDGER_", env_file=".env", env_file_encoding="utf-8", extra="ignore")


@cache
def config() -> AppSettings:
    return AppSettings()
