"""
Configuration management for the attendance export.

Loads environment variables and validates required settings.
"""

import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Config:
    """Configuration class for the attendance export."""

    # Supabase credentials (required for data extraction only)
    SUPABASE_URL: str = os.getenv("SUPABASE_URL", "")
    SUPABASE_SERVICE_ROLE_KEY: str = os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")

    # Output
    EXPORT_DIR: str = os.getenv("EXPORT_DIR", "exports")

    # Data extraction
    FETCH_WORKERS: int = int(os.getenv("FETCH_WORKERS", "5"))  # Parallel independent reads
    CLUB_CACHE_TTL_SECONDS: float = float(os.getenv("CLUB_CACHE_TTL_SECONDS", "300"))

    # Domain defaults
    DEFAULT_SESSION_HOURS: float = 2.0  # Used when start/end time cannot be parsed
    DEFAULT_EVENT_START_TIME: str = "18:00"
    DEFAULT_EVENT_END_TIME: str = "20:00"

    @classmethod
    def validate(cls) -> None:
        """
        Validate that all required configuration is present.

        Raises:
            ValueError: If required configuration is missing.
        """
        missing = []

        if not cls.SUPABASE_URL:
            missing.append("SUPABASE_URL")
        if not cls.SUPABASE_SERVICE_ROLE_KEY:
            missing.append("SUPABASE_SERVICE_ROLE_KEY")

        if missing:
            raise ValueError(
                f"Missing required environment variables: {', '.join(missing)}. "
                f"Please create a .env file with these values (see .env.example)."
            )
