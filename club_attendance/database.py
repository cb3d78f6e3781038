"""
Database operations for Supabase.

Handles client initialization, query execution and cached reference data.
"""

import logging
from typing import Any, Dict, List, Optional

from supabase import Client, create_client

from club_attendance.cache import ReferenceCache
from club_attendance.config import Config
from club_attendance.errors import DataFetchError

logger = logging.getLogger(__name__)


def get_supabase_client() -> Client:
    """
    Initialize and return a Supabase client.

    Returns:
        Client: Initialized Supabase client

    Raises:
        ValueError: If configuration is invalid
    """
    Config.validate()

    client = create_client(Config.SUPABASE_URL, Config.SUPABASE_SERVICE_ROLE_KEY)
    logger.info("Supabase client initialized successfully")
    return client


def run_query(query: Any, table_name: str) -> List[Dict[str, Any]]:
    """
    Execute a prepared query builder and return its rows.

    Args:
        query: Supabase query builder (table().select()... chain)
        table_name: Name of the queried table (for logging)

    Returns:
        List of row dictionaries

    Raises:
        DataFetchError: If the request fails
    """
    try:
        response = query.execute()
    except Exception as e:
        logger.error(f"Error querying table {table_name}: {e}")
        raise DataFetchError(f"Failed to load {table_name}: {e}", table_name) from e

    rows = response.data or []
    logger.info(f"Retrieved {len(rows)} rows from {table_name}")
    return rows


def list_clubs(client: Client, cache: Optional[ReferenceCache] = None) -> List[Dict[str, Any]]:
    """
    List all clubs, served from `cache` while it is fresh.

    Args:
        client: Supabase client
        cache: Optional caller-owned cache

    Returns:
        List of {id, name} dictionaries ordered by name
    """
    def load() -> List[Dict[str, Any]]:
        query = client.table("clubs").select("id, name").order("name")
        return run_query(query, "clubs")

    if cache is None:
        return load()
    return cache.get_or_build("clubs", load)
