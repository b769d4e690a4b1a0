# storefront/core/config.py
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Centralized application settings loaded from environment.

    Required env vars (.env):
      - DATABASE_URL (Postgres connection string; sqlite:// for local runs)
      - SUPABASE_URL
      - SUPABASE_KEY (anon key)
      - SUPABASE_JWT_SECRET (JWT signing secret from Supabase project settings)
      - SESSION_SECRET (signs the guest session cookie)
      - PAYSTACK_SECRET_KEY

    Optional:
      - SUPABASE_SERVICE_ROLE_KEY (only used for product image Storage)
      - ADMIN_REGISTRATION_KEY (enables admin sign-up)
      - everything else below has a default
    """

    PROJECT_NAME: str = "Storefront API"
    API_V1_STR: str = "/api/v1"

    # Supabase / DB config
    SUPABASE_URL: str
    SUPABASE_KEY: str
    DATABASE_URL: str

    # JWT verification (backend-side)
    SUPABASE_JWT_SECRET: str
    SUPABASE_JWT_ALG: str = "HS256"

    # Service role key bypasses RLS (backend only)
    SUPABASE_SERVICE_ROLE_KEY: str | None = None

    # Guest sessions: the cookie carries only the guest id,
    # guest carts live server-side for the same lifetime.
    SESSION_SECRET: str
    SESSION_MAX_AGE_SECONDS: int = 60 * 60 * 24

    # Shared secret for /auth/admin/register; admin sign-up is closed when unset
    ADMIN_REGISTRATION_KEY: str | None = None

    # Payment gateway (Paystack)
    PAYSTACK_SECRET_KEY: str
    PAYSTACK_BASE_URL: str = "https://api.paystack.co"
    PAYMENT_TIMEOUT_SECONDS: float = 10.0
    PUBLIC_BASE_URL: str = "http://localhost:8000"
    CURRENCY_MINOR_UNITS: int = 100
    GUEST_EMAIL_DOMAIN: str = "guest.example.com"

    # Fulfillment sweep
    SWEEP_ENABLED: bool = True
    SWEEP_INTERVAL_SECONDS: int = 60 * 60 * 24
    SHIP_AFTER_DAYS: int = 3
    DELIVER_AFTER_DAYS: int = 2

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings loader.
    Ensures we don't re-parse .env on every import / request.
    """
    return Settings()
