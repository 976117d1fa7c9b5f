"""
Gate pass configuration.
Values come from environment variables, optionally loaded from a .env file.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Database path configuration
DB_PATH = os.getenv("DB_PATH", "./data/gatepass.db")

# Seconds a connection waits on a locked database before failing
DB_TIMEOUT_SEC = float(os.getenv("DB_TIMEOUT_SEC", "5"))

DEBUG = os.getenv("DEBUG", "false").lower() == "true"

# Gate scanning
SCAN_HISTORY_LIMIT = int(os.getenv("SCAN_HISTORY_LIMIT", "100"))

# Listing
LIST_DEFAULT_LIMIT = int(os.getenv("LIST_DEFAULT_LIMIT", "200"))

# Access token shape and issuance
TOKEN_SEGMENTS = int(os.getenv("TOKEN_SEGMENTS", "4"))
TOKEN_MINT_ATTEMPTS = int(os.getenv("TOKEN_MINT_ATTEMPTS", "5"))

# Longest presented token kept in a refused scan event
SCAN_TOKEN_LOG_LENGTH = int(os.getenv("SCAN_TOKEN_LOG_LENGTH", "128"))

# Comma separated list of origins allowed to call the API from a browser
CORS_ORIGINS = [o.strip() for o in os.getenv(
    "CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000"
).split(",") if o.strip()]

# Version string
VERSION = "1.0.0"


def debug_enabled():
    """Check if debug mode is enabled."""
    return os.getenv("DEBUG", "false").lower() == "true"


def ensure_db_directory(db_path: str = None):
    """Ensure the database directory exists."""
    Path(db_path or DB_PATH).parent.mkdir(parents=True, exist_ok=True)
