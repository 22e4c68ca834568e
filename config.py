"""
Guesty Sync Configuration

Get your API credentials from: https://app.guesty.com/integrations/api

For production use, set these as environment variables:
- GUESTY_CLIENT_ID
- GUESTY_CLIENT_SECRET
- DATABASE_URL
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env file in the project root
PROJECT_ROOT = Path(__file__).parent
env_path = PROJECT_ROOT / ".env"
if env_path.exists():
    load_dotenv(env_path)
else:
    load_dotenv()

# API Configuration
# Validation is done lazily when TokenManager is instantiated
# This allows the dashboard to start without credentials (only needed for sync operations)
GUESTY_CLIENT_ID = os.getenv("GUESTY_CLIENT_ID")
GUESTY_CLIENT_SECRET = os.getenv("GUESTY_CLIENT_SECRET")
GUESTY_BASE_URL = os.getenv("GUESTY_BASE_URL", "https://open-api.guesty.com/v1")
GUESTY_TOKEN_URL = os.getenv("GUESTY_TOKEN_URL", "https://open-api.guesty.com/oauth2/token")
# HMAC-SHA256 signing key for incoming webhooks; webhooks are rejected when unset
GUESTY_WEBHOOK_SECRET = os.getenv("GUESTY_WEBHOOK_SECRET")

# Retry / timeout configuration
GUESTY_MAX_RETRIES = int(os.getenv("GUESTY_MAX_RETRIES", "3"))
GUESTY_INITIAL_WAIT_SECONDS = float(os.getenv("GUESTY_INITIAL_WAIT_SECONDS", "1"))
GUESTY_MAX_BACKOFF_SECONDS = float(os.getenv("GUESTY_MAX_BACKOFF_SECONDS", "30"))
GUESTY_HTTP_TIMEOUT = float(os.getenv("GUESTY_HTTP_TIMEOUT", "10"))
# Transport-level retries for connection establishment only (DNS hiccups etc.)
GUESTY_CONNECT_RETRIES = int(os.getenv("GUESTY_CONNECT_RETRIES", "2"))

# Refresh the access token when it expires within this many seconds
TOKEN_REFRESH_MARGIN_SECONDS = int(os.getenv("TOKEN_REFRESH_MARGIN_SECONDS", "300"))
DEFAULT_TOKEN_EXPIRATION = 3600  # seconds, used when expires_in is missing

# Sync Configuration
PAGINATION_LIMIT = int(os.getenv("PAGINATION_LIMIT", "100"))
RESERVATION_LOOKBACK_DAYS = int(os.getenv("RESERVATION_LOOKBACK_DAYS", "30"))

# Calendar Configuration
ICAL_FETCH_TIMEOUT = float(os.getenv("ICAL_FETCH_TIMEOUT", "10"))

# Database Configuration
# For local dev: postgresql://user@localhost:5432/guesty_dev
# Validation is done lazily in database.models.get_engine()
DATABASE_URL = os.getenv("DATABASE_URL")

# Optional: Set to True to show detailed progress
VERBOSE = os.getenv("VERBOSE", "True").lower() == "true"

# Logging
LOG_FILE = os.getenv("LOG_FILE", str(PROJECT_ROOT / "logs" / "guesty_sync.log"))

# Flask Configuration
FLASK_HOST = os.getenv("FLASK_HOST", "127.0.0.1")
FLASK_PORT = int(os.getenv("FLASK_PORT", "5001"))
FLASK_DEBUG = os.getenv("FLASK_DEBUG", "False").lower() == "true"
