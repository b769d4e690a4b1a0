# storefront/core/supabase_client.py
from functools import lru_cache

from supabase import Client, create_client

from storefront.core.config import get_settings


@lru_cache
def auth_client() -> Client:
    """Anon-key client. Sign-up and password sign-in go through Supabase Auth."""
    settings = get_settings()
    return create_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)


@lru_cache
def storage_client() -> Client:
    """
    Service-role client for the product image bucket.

    Server side only: the service role key bypasses RLS.

    Raises:
        RuntimeError: if SUPABASE_SERVICE_ROLE_KEY is not configured.
    """
    settings = get_settings()
    if not settings.SUPABASE_SERVICE_ROLE_KEY:
        raise RuntimeError("SUPABASE_SERVICE_ROLE_KEY is required for product images")
    return create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)


def get_auth_client() -> Client:
    """FastAPI dependency; overridden in tests."""
    return auth_client()
