from pydantic_settings import BaseSettings
from typing import List
from decimal import Decimal


class Settings(BaseSettings):
    ENV: str = "development"
    SECRET_KEY: str = "change-me-in-production"
    DATABASE_URL: str = "sqlite:////data/promo.db"

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:8080"

    LOG_LEVEL: str = "INFO"

    # Tenancies without an explicit timezone use this clock
    DEFAULT_TIMEZONE: str = "UTC"

    # Side-effect sizes when a campaign promotion carries no override
    DEFAULT_WALLET_CREDIT: Decimal = Decimal("10")
    DEFAULT_LOYALTY_POINTS: int = 100

    # Selection re-runs after a lost ledger race
    CHECKOUT_MAX_ATTEMPTS: int = 3

    # Rank campaigns by priority first and scope second
    CAMPAIGN_PRIORITY_BEFORE_SCOPE: bool = False

    @property
    def cors_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]

    class Config:
        env_file = ".env"


settings = Settings()
