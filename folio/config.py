"""
Folio Configuration
Loads settings from environment variables with sensible defaults.
"""

import logging
import os
from pathlib import Path
from dotenv import load_dotenv

_logger = logging.getLogger(__name__)

# Load .env file
env_path = Path(__file__).parent.parent / '.env'
load_dotenv(env_path)


class Config:
    """Application configuration."""

    # Store DSN, required
    DATABASE_URL = os.getenv('DATABASE_URL')
    if not DATABASE_URL:
        _logger.critical("DATABASE_URL is not set, cannot start. Copy .env.example to .env and configure it.")
        raise ValueError("DATABASE_URL environment variable is not set. Copy .env.example to .env and configure it.")

    DB_POOL_MIN = int(os.getenv('DB_POOL_MIN', '1'))
    DB_POOL_MAX = int(os.getenv('DB_POOL_MAX', '5'))

    # Hosted auth service. The anon key is the restricted client tier,
    # the service role key is server-side only.
    SUPABASE_URL = os.getenv('SUPABASE_URL', '').rstrip('/')
    SUPABASE_ANON_KEY = os.getenv('SUPABASE_ANON_KEY', '')
    SUPABASE_SERVICE_ROLE_KEY = os.getenv('SUPABASE_SERVICE_ROLE_KEY', '')
    AUTH_TIMEOUT_SECONDS = float(os.getenv('AUTH_TIMEOUT_SECONDS', '10'))

    # Public site, used for links inside campaign emails
    SITE_URL = os.getenv('SITE_URL', 'http://localhost:5173').rstrip('/')

    # Live updates
    REALTIME_POLL_SECONDS = float(os.getenv('REALTIME_POLL_SECONDS', '1.0'))

    @property
    def auth_configured(self) -> bool:
        return bool(self.SUPABASE_URL and self.SUPABASE_ANON_KEY)


# Singleton instance
config = Config()
