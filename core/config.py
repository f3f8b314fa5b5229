# ==================================================================================
# core/config.py: FastAPI Configuration (Postgres + Stripe + Pydantic v2)
# ==================================================================================
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import ValidationError
from typing import List
import sys


class Settings(BaseSettings):
    # ------------------------
    # DATABASE CONFIG
    # ------------------------
    DATABASE_URL: str = "sqlite:///./carebid.db"

    # ------------------------
    # SECURITY CONFIG
    # ------------------------
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # ------------------------
    # FRONTEND & BACKEND CONFIG
    # ------------------------
    FRONTEND_URL: str = "http://localhost:5173"
    BACKEND_URL: str = "http://localhost:8000"
    ALLOWED_ORIGINS: List[str] = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    # ------------------------
    # STRIPE / PAYMENT CONFIG
    # ------------------------
    STRIPE_SECRET_KEY: str | None = None
    STRIPE_WEBHOOK_SECRET: str | None = None
    CURRENCY: str = "gbp"
    TOKEN_PRICE_GBP: int = 5

    # ------------------------
    # MARKETPLACE RULES
    # ------------------------
    SELLER_PLUS_DURATION_DAYS: int = 30
    BID_MESSAGE_MIN_LENGTH: int = 150
    DEFAULT_BID_TOKEN_COST: int = 1
    ENTITLEMENT_EXPIRY_INTERVAL_SECONDS: int = 3600

    @property
    def FRONTEND_BASE_URL(self) -> str:
        return self.FRONTEND_URL.rstrip("/")

    def checkout_success_url(self, purchase_type: str) -> str:
        """Where Stripe sends the user back after a completed checkout."""
        base = self.FRONTEND_BASE_URL
        if purchase_type == "buyer_pro":
            return f"{base}/plans?status=success"
        if purchase_type == "seller_plus":
            return f"{base}/seller/dashboard?status=seller_plus_success"
        return f"{base}/seller/tokens?status=success"

    def checkout_cancel_url(self, purchase_type: str) -> str:
        base = self.FRONTEND_BASE_URL
        if purchase_type == "buyer_pro":
            return f"{base}/plans?status=cancelled"
        return f"{base}/seller/tokens?status=cancelled"

    # ------------------------
    # ENVIRONMENT SETTINGS
    # ------------------------
    ENVIRONMENT: str = "development"  # 'development' | 'production'
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    @property
    def IS_PRODUCTION(self) -> bool:
        """Convenience helper to check if running in production"""
        return self.ENVIRONMENT.lower() == "production"

    # ------------------------
    # Pydantic v2 Settings
    # ------------------------
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # Ignores unknown env vars (hosting defaults)
    )


# ------------------------
# Global Settings Loader
# ------------------------
try:
    settings = Settings()
    print("✅ Environment variables loaded successfully.")
    print(f"🌍 Environment: {settings.ENVIRONMENT}, Debug: {settings.DEBUG}")
except ValidationError as e:
    print("❌ Environment configuration error: missing or invalid settings!")
    print(e)
    sys.exit(1)
