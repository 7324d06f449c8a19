from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    store_path: Optional[str] = None
    seed_demo_data: bool = True
    vote_unit_cost: int = 10
    signup_credits: int = 500
    lock_timeout_seconds: float = 5.0
    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_prefix="CREDIT_LEDGER_")


settings = Settings()
