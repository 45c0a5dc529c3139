import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./clinic_tracking.db")

# Connection pool (ignored for SQLite)
DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "20"))
DB_MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", "30"))
DB_POOL_TIMEOUT = int(os.getenv("DB_POOL_TIMEOUT", "30"))
DB_POOL_RECYCLE = int(os.getenv("DB_POOL_RECYCLE", "300"))
DB_LOG_SLOW_QUERIES = os.getenv("DB_LOG_SLOW_QUERIES", "true").lower() == "true"
DB_SLOW_QUERY_THRESHOLD = float(os.getenv("DB_SLOW_QUERY_THRESHOLD", "1.0"))

# Clinic defaults
# The board's day window is computed in this zone unless the caller passes ?tz=
CLINIC_TIMEZONE = os.getenv("CLINIC_TIMEZONE", "UTC")
DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "AED")
WALKIN_DEFAULT_DURATION_MINS = int(os.getenv("WALKIN_DEFAULT_DURATION_MINS", "60"))

# Security - front desk staff token, no default in production
STAFF_API_TOKEN = os.getenv("STAFF_API_TOKEN")
if not STAFF_API_TOKEN:
    import warnings

    warnings.warn(
        "STAFF_API_TOKEN not set! Using insecure default - DO NOT USE IN PRODUCTION",
        RuntimeWarning,
        stacklevel=2,
    )
    STAFF_API_TOKEN = "INSECURE-DEV-TOKEN-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only

ALLOWED_ORIGINS = os.getenv(
    "ALLOWED_ORIGINS",
    "http://localhost:3000,http://localhost:5173",
).split(",")
