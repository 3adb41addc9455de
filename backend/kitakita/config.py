import os
from dotenv import load_dotenv

load_dotenv()


def _get_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value else default


def _get_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value else default


class Settings:
    # Gemini gateway
    GEMINI_API_KEY = os.getenv("GEMINI_API_KEY")
    GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-1.5-flash")
    GEMINI_BASE_URL = os.getenv(
        "GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta"
    )
    GEMINI_TIMEOUT = _get_float("GEMINI_TIMEOUT", 30.0)

    # Outbound request budget and retry policy
    AI_MAX_REQUESTS_PER_MINUTE = _get_int("AI_MAX_REQUESTS_PER_MINUTE", 60)
    AI_MAX_RETRIES = _get_int("AI_MAX_RETRIES", 3)
    AI_BACKOFF_INITIAL_DELAY = _get_float("AI_BACKOFF_INITIAL_DELAY", 1.0)
    AI_BACKOFF_FACTOR = _get_float("AI_BACKOFF_FACTOR", 2.0)
    AI_BACKOFF_MAX_DELAY = _get_float("AI_BACKOFF_MAX_DELAY", 32.0)
    AI_BACKOFF_MAX_JITTER = _get_float("AI_BACKOFF_MAX_JITTER", 1.0)

    # Agent resilience
    AGENT_ERROR_RECOVERY_THRESHOLD = _get_int("AGENT_ERROR_RECOVERY_THRESHOLD", 5)
    AGENT_MAX_CONSECUTIVE_ERRORS = _get_int("AGENT_MAX_CONSECUTIVE_ERRORS", 3)
    AGENT_MAX_API_ERRORS = _get_int("AGENT_MAX_API_ERRORS", 5)
    AGENT_ERROR_RESET_SECONDS = _get_float("AGENT_ERROR_RESET_SECONDS", 300.0)
    AGENT_HISTORY_LIMIT = _get_int("AGENT_HISTORY_LIMIT", 500)

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

    # Persistence
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./kitakita.db")

    CORS_ORIGINS = [
        origin.strip()
        for origin in os.getenv(
            "CORS_ORIGINS", "http://localhost:5173,http://localhost:3000"
        ).split(",")
        if origin.strip()
    ]


settings = Settings()

# Episodic memory is trimmed to the most recent EPISODIC_TRIM_TO entries
# once it grows past EPISODIC_MEMORY_CAP.
EPISODIC_MEMORY_CAP = 1000
EPISODIC_TRIM_TO = 800

# Per autonomy level: default decision threshold and whether a human has to
# confirm a decision before it is acted on.
AUTONOMY_LEVELS = {
    "high": {"decision_threshold": 0.75, "user_confirmation_required": False},
    "medium": {"decision_threshold": 0.60, "user_confirmation_required": True},
    "low": {"decision_threshold": 0.50, "user_confirmation_required": True},
}

# Safety settings sent with every generateContent request
GEMINI_SAFETY_SETTINGS = [
    {"category": "HARM_CATEGORY_HARASSMENT", "threshold": "BLOCK_MEDIUM_AND_ABOVE"},
    {"category": "HARM_CATEGORY_HATE_SPEECH", "threshold": "BLOCK_MEDIUM_AND_ABOVE"},
    {"category": "HARM_CATEGORY_SEXUALLY_EXPLICIT", "threshold": "BLOCK_MEDIUM_AND_ABOVE"},
    {"category": "HARM_CATEGORY_DANGEROUS_CONTENT", "threshold": "BLOCK_MEDIUM_AND_ABOVE"},
]

# Liquid account categories used for the liquidity ratio
LIQUID_ACCOUNT_CATEGORIES = ("traditional-bank", "digital-wallet", "cash")

# Transaction types counted as money in / money out
INFLOW_TYPES = ("income", "deposit")
OUTFLOW_TYPES = ("expense", "withdrawal")
