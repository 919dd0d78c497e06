"""Application constants and configuration values."""

from core.config import FRONTEND_URL

# Field lengths
MAX_NOTE_LENGTH = 1000  # Maximum length for reservation observations

# Database connection settings
DB_POOL_RECYCLE_SECONDS = 300  # 5 minutes

# CORS origins for development and production
_CORS_ORIGINS_RAW = [
    "http://localhost:5173",      # React dev server (Vite) - localhost
    FRONTEND_URL,  # Production URL if FRONTEND_URL is set accordingly
]

# Filter out None values and empty strings to avoid CORS errors
CORS_ORIGINS = [origin for origin in _CORS_ORIGINS_RAW if origin and origin.strip()]

# Resource kinds installed by the catalog seed
PROJECTOR_KIND = "projector"
SPEAKER_KIND = "speaker"
AUDITORIUM_KIND = "auditorium"
LABORATORY_KIND_PREFIX = "laboratory:"

CATEGORY_EQUIPMENT = "equipment"
CATEGORY_AUDITORIUM = "auditorium"
CATEGORY_LABORATORY = "laboratory"

# Auditorium time windows, in display order
TIME_SLOTS = {
    "morning": "Morning - 09h/12h",
    "afternoon": "Afternoon - 13h/18h",
    "evening": "Evening - 19h/22h",
}

# Observation stored for laboratory reservations that need no supplies
NO_SUPPLIES_NOTE = "No extra supplies requested."

# "My reservations" shows bookings from this many days ago onward
OWNER_HISTORY_DAYS = 2

# Change notifier tables
RESERVATIONS_TABLE = "reservations"
RESOURCE_KINDS_TABLE = "resource_kinds"

# Per-subscriber buffered change events before new ones are dropped
CHANGE_EVENT_QUEUE_SIZE = 100
