from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

CostStrategy = Literal["database", "in_process"]


class Settings(BaseSettings):
    app_name: str = "Subscription Service API"
    host: str = "0.0.0.0"
    port: int = 8080
    database_url: str = ""
    db_pool_min_size: int = Field(default=1, ge=0)
    db_pool_max_size: int = Field(default=10, ge=1)
    # Applied per pooled connection; aborts runaway queries server side.
    db_statement_timeout_ms: int = Field(default=5000, ge=0)
    log_level: str = "INFO"
    log_file: str | None = None
    # "database" pushes the months x subscriptions join into SQL,
    # "in_process" loads candidate rows and counts months in Python.
    cost_strategy: CostStrategy = "database"
    default_list_limit: int = Field(default=20, ge=1)
    max_list_limit: int = Field(default=100, ge=1)

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore")


def get_settings() -> Settings:
    return Settings()
