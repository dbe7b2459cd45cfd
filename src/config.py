from __future__ import annotations

from datetime import timezone, tzinfo
from functools import cache
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Relative to the working directory; ACB_DATABASE_FILE overrides it.
ARTIFACTS_DIR = Path("artifacts")
DB_FILE = ARTIFACTS_DIR / "acb_tracker.db"


class AppSettings(BaseSettings):
    database_file: Path = DB_FILE
    home_currency: str = "CAD"
    superficial_loss_window_days: int = 30
    # IANA zone used to read the tax year; unset keeps each timestamp's own offset.
    tax_timezone: str | None = None
    import_timezone: str = "UTC"

    model_config = SettingsConfigDict(env_prefix="ACB_", env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @field_validator("home_currency")
    @classmethod
    def _upper_currency(cls, value: str) -> str:
        value = value.strip().upper()
        if not value:
            raise ValueError("home_currency must be non-empty")
        return value

    @field_validator("superficial_loss_window_days")
    @classmethod
    def _non_negative_window(cls, value: int) -> int:
        if value < 0:
            raise ValueError("superficial_loss_window_days must be >= 0")
        return value

    @field_validator("tax_timezone", "import_timezone")
    @classmethod
    def _known_zone(cls, value: str | None) -> str | None:
        if value is None:
            return value
        try:
            resolve_zone(value)
        except ZoneInfoNotFoundError as err:
            raise ValueError(f"Unknown timezone {value!r}") from err
        return value

    def tax_zone(self) -> tzinfo | None:
        return resolve_zone(self.tax_timezone) if self.tax_timezone else None

    def import_zone(self) -> tzinfo:
        return resolve_zone(self.import_timezone)


def resolve_zone(name: str) -> tzinfo:
    if name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


@cache
def config() -> AppSettings:
    return AppSettings()
