"""
Database connection management.

Provides the Supabase client singleton used by the remote backend.
Nothing here is touched when the in-memory backend is selected.
"""

from supabase import create_client, Client
from functools import lru_cache
from typing import Optional
import structlog

from config.settings import settings
from exceptions import NetworkError

logger = structlog.get_logger(__name__)


@lru_cache()
def get_supabase_client() -> Client:
    """
    Get cached Supabase client instance.

    Uses lru_cache to ensure only one client is created.
    Call get_supabase_client.cache_clear() to reconnect.

    Returns:
        Client: Supabase client

    Raises:
        NetworkError: If connection fails
    """
    try:
        logger.info(
            "connecting_to_supabase",
            url=settings.supabase_url[:30] + "..."  # Log partial URL only
        )

        client = create_client(
            settings.supabase_url,
            settings.supabase_key
        )

        # Test connection with simple query
        client.table("sku_mapping").select("id").limit(1).execute()

        logger.info(
            "supabase_connected",
            status="success"
        )

        return client

    except Exception as e:
        logger.error(
            "supabase_connection_failed",
            error=str(e),
            error_type=type(e).__name__
        )
        raise NetworkError("supabase", f"Failed to connect to Supabase: {e}") from e


def get_admin_client() -> Optional[Client]:
    """
    Get Supabase client with service role key (admin access).

    Only available if SUPABASE_SERVICE_KEY is configured.
    Used for account creation and password resets.

    Returns:
        Client: Admin Supabase client, or None if not configured
    """
    if not settings.supabase_service_key:
        logger.warning("admin_client_not_configured")
        return None

    try:
        return create_client(
            settings.supabase_url,
            settings.supabase_service_key
        )
    except Exception as e:
        logger.error(
            "admin_client_failed",
            error=str(e)
        )
        return None


def create_auth_client() -> Client:
    """
    Create a fresh, unshared client for one sign-in / sign-up call.

    supabase-py keeps the signed-in session on the client object, so auth
    calls never go through the cached data client.
    """
    return create_client(settings.supabase_url, settings.supabase_key)




# ===================
# HELPER FUNCTIONS
# ===================

def check_connection() -> dict:
    """
    Check database connection health.

    Returns:
        dict: Connection status with details
    """
    try:
        client = get_supabase_client()

        mappings = client.table("sku_mapping").select("id", count="exact").execute()
        users = client.table("users").select("id", count="exact").execute()

        return {
            "status": "healthy",
            "sku_mappings_count": mappings.count,
            "users_count": users.count
        }

    except Exception as e:
        return {
            "status": "unhealthy",
            "error": str(e)
        }
