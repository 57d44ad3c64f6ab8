from decimal import Decimal
from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_name: str = "GiftPool"
    environment: str = "local"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "allow",
    }

    # Database: sqlite+aiosqlite:///./giftpool.db (dev) | postgresql+asyncpg://... (prod)
    postgres_dsn: str = "sqlite+aiosqlite:///./giftpool.db"
    db_pool_size: int = 5
    db_max_overflow: int = 10
    db_pool_recycle: int = 1800
    db_pool_timeout: int = 30

    log_level: str = "INFO"
    log_file: str = ""
    audit_log_file: str = ""
    sql_log_level: str = "WARNING"

    # Sum of contributions may exceed the total price by at most this much (rounding).
    funding_tolerance: Decimal = Decimal("0.01")
    # reconcile: keep settled debts and diff the rest | replace: delete and recreate all
    debt_recompute_mode: Literal["reconcile", "replace"] = "reconcile"
    recompute_debts_on_withdrawal: bool = False


settings = Settings()
