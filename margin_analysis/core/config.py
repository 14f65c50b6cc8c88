import os
from typing import List
from dotenv import load_dotenv
from pydantic import BaseModel

load_dotenv()

class Settings(BaseModel):
    app_name: str = os.getenv("APP_NAME", "APAC Services Margin Analysis")
    environment: str = os.getenv("ENVIRONMENT", "development")
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./margin_analysis.db")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # Auth
    secret_key: str = os.getenv("SECRET_KEY", "change-me-in-production")
    algorithm: str = "HS256"
    access_token_expire_minutes: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "480"))

    # Exchange rates
    exchange_rate_api_url: str = os.getenv(
        "EXCHANGE_RATE_API_URL", "https://api.exchangerate-api.com/v4/latest/USD"
    )
    exchange_rate_timeout: float = float(os.getenv("EXCHANGE_RATE_TIMEOUT", "5"))
    currency_cache_hours: float = float(os.getenv("CURRENCY_CACHE_HOURS", "4"))

    frontend_url: str = os.getenv("FRONTEND_URL", "http://localhost:3000")

    @property
    def cors_origins(self) -> List[str]:
        if self.environment == "production":
            return [self.frontend_url]
        return ["http://localhost:3000"]

settings = Settings()
