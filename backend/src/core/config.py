"""
Application configuration using python-dotenv.

This module loads environment variables from .env file into os.environ
for use throughout the application.
"""

import os
import pathlib
from dotenv import load_dotenv


# Determine if we're running in a test environment
# Don't load .env file during testing to ensure predictable test behavior
is_testing = os.getenv("PYTEST_VERSION") is not None or any("pytest" in str(frame) for frame in __import__('inspect').stack(0))

# Load .env file into os.environ (only outside of testing)
if not is_testing:
    # Try multiple possible locations for .env file
    possible_paths = [
        pathlib.Path(__file__).parent.parent.parent / ".env",  # backend/.env (when run from backend/src)
        pathlib.Path(__file__).parent.parent.parent.parent / ".env",  # .env (when run from src)
        pathlib.Path.cwd() / ".env",  # .env in current directory
        pathlib.Path.cwd().parent / ".env",  # .env in parent directory
    ]

    for env_path in possible_paths:
        if env_path.exists():
            load_dotenv(env_path)
            break


# Configuration constants with defaults
# These match the environment variables defined in .env.example
def get_database_url():
    """Get the database URL from environment."""
    return os.getenv(
        "DATABASE_URL",
        "sqlite:///./reservations.db"
    )

DATABASE_URL = get_database_url()
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")

# Authentication
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "dev-secret-key-change-in-production")
JWT_ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("JWT_ACCESS_TOKEN_EXPIRE_MINUTES", "480"))

# Reservation notifications (created/cancelled e-mails are sent by an external webhook)
NOTIFICATION_WEBHOOK_URL = os.getenv("NOTIFICATION_WEBHOOK_URL", "")
NOTIFICATION_WEBHOOK_TOKEN = os.getenv("NOTIFICATION_WEBHOOK_TOKEN", "")
NOTIFICATION_TIMEOUT_SECONDS = float(os.getenv("NOTIFICATION_TIMEOUT_SECONDS", "5"))

# Institution-local calendar (America/Sao_Paulo has no DST since 2019)
INSTITUTION_UTC_OFFSET_HOURS = int(os.getenv("INSTITUTION_UTC_OFFSET_HOURS", "-3"))

# Default per-day equipment limits used when seeding the catalog
DEFAULT_PROJECTOR_LIMIT = int(os.getenv("DEFAULT_PROJECTOR_LIMIT", "3"))
DEFAULT_SPEAKER_LIMIT = int(os.getenv("DEFAULT_SPEAKER_LIMIT", "2"))

# Laboratory admission retries
ADMISSION_MAX_ATTEMPTS = int(os.getenv("ADMISSION_MAX_ATTEMPTS", "3"))
ADMISSION_RETRY_BACKOFF_MS = int(os.getenv("ADMISSION_RETRY_BACKOFF_MS", "500"))

# Monday reservations made over the weekend stay cancellable this many days after Monday
CANCELLATION_GRACE_DAYS_AFTER_MONDAY = int(os.getenv("CANCELLATION_GRACE_DAYS_AFTER_MONDAY", "2"))
