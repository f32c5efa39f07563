"""Supabase client singleton for database and storage operations."""

import asyncio
from functools import lru_cache
from typing import Any

from supabase import Client, create_client

from src.core.config import get_settings


@lru_cache
def get_supabase_client() -> Client:
    """Get cached Supabase client singleton.

    Uses the secret key for backend operations, which bypasses RLS at the
    PostgREST level. Only server-side code may use this client.

    Returns:
        Client: Supabase client instance.
    """
    settings = get_settings()
    return create_client(
        settings.supabase_url,
        settings.supabase_secret_key,
    )


async def check_database_connection() -> dict[str, Any]:
    """Check if database connection is healthy.

    Performs a simple query to verify database connectivity.

    Returns:
        dict: Connection status with 'healthy' boolean and optional 'error' message.
    """
    try:
        client = get_supabase_client()
        await asyncio.to_thread(lambda: client.table("products").select("id").limit(1).execute())
        return {"healthy": True}
    except Exception as e:
        return {"healthy": False, "error": str(e)}
