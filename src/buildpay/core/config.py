import os
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..tax_tables import DEFAULT_TABLES_PATH

ENV_PREFIX = "BUILDPAY_"


class Settings(BaseSettings):
    env: str = Field(default="dev", description="Deployment environment")
    log_level: str = "INFO"
    database_url: str = Field(
        default="sqlite:///buildpay.db",
        description="SQLAlchemy URL of the payroll run store",
    )
    tax_table_version: str = Field(default="2024_v1", description="Tax table file name without .json")
    tax_table_path: Path = DEFAULT_TABLES_PATH
    strict_state_codes: bool = Field(
        default=False,
        description="Reject state codes missing from the tax table instead of withholding nothing",
    )
    sentry_dsn: str | None = Field(default=None, description="Sentry DSN for error monitoring")

    model_config = SettingsConfigDict(env_prefix=ENV_PREFIX, extra="ignore")

    @field_validator("log_level")
    @classmethod
    def normalize_level(cls, value: str) -> str:
        return value.upper()

    @model_validator(mode="after")
    def check_tax_table(self) -> "Settings":
        table = self.tax_table_path / f"{self.tax_table_version}.json"
        if not table.is_file():
            raise ValueError(f"tax table {self.tax_table_version} not found in {self.tax_table_path}")
        return self


def settings_env_file(base_dir: Path, env: str) -> Path | None:
    """``.env.<env>`` if present, else ``.env``, else nothing."""
    for candidate in (base_dir / f".env.{env}", base_dir / ".env"):
        if candidate.exists():
            return candidate
    return None


@lru_cache
def get_settings() -> Settings:
    env_file = settings_env_file(Path.cwd(), os.getenv(f"{ENV_PREFIX}ENV", "dev"))
    return Settings(_env_file=env_file)
