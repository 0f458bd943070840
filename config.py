# FILE: config.py
import os


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///live_review.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "")
    GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")

    # Object storage lives on local disk, one directory per bucket.
    STORAGE_ROOT = os.getenv("STORAGE_ROOT", "storage")
    PUBLIC_STORAGE_URL = os.getenv("PUBLIC_STORAGE_URL", "/storage")
    MAX_CONTENT_LENGTH = int(os.getenv("MAX_CONTENT_LENGTH", str(10 * 1024 * 1024)))
    ALLOWED_UPLOAD_TYPES = {"application/pdf", "image/jpeg", "image/png"}

    # Flask-Limiter counters; one process, kept in memory.
    RATELIMIT_STORAGE_URI = os.getenv("RATELIMIT_STORAGE_URI", "memory://")
    RATELIMIT_HEADERS_ENABLED = True

    # action_type -> (max attempts, window minutes)
    RATE_LIMITS = {
        "rating": (20, 5),
        "reaction": (30, 1),
        "chat_message": (10, 1),
        "question": (3, 5),
        "upvote": (30, 1),
        "registration": (3, 60),
        "booking": (5, 60),
    }

    QUICK_REACTIONS = ["👍", "🔥", "💯", "👎", "💩", "😍", "😂", "🤔", "👏", "⚡"]

    # Overlay display lifetimes in seconds.
    OVERLAY_TTLS = {
        "reaction": 3.0,
        "reaction_dedup": 4.0,
        "chat": 8.0,
        "feedback": 10.0,
        "question": 12.0,
    }
    RECENT_RATINGS_LIMIT = int(os.getenv("RECENT_RATINGS_LIMIT", "50"))
    SSE_KEEPALIVE_SECONDS = float(os.getenv("SSE_KEEPALIVE_SECONDS", "15"))
