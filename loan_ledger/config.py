"""Configuration management using Pydantic Settings"""

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", env_prefix="LEDGER_", extra="ignore"
    )

    # Storage
    store_backend: Literal["memory", "sql"] = "sql"
    database_url: str = "sqlite:///./loan_ledger.db"
    db_pool_pre_ping: bool = True

    # Service
    service_name: str = "loan-ledger"
    log_level: str = "INFO"

    # Concurrency: upper bound on waiting for an account or loan lock
    lock_timeout_seconds: float = 5.0


settings = Settings()
