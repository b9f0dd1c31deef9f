import os
from dotenv import load_dotenv

load_dotenv()


def _float_from_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _int_from_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


TMDB_API_KEY = os.getenv("TMDB_API_KEY", "")
TMDB_SAFE_PAGES = _int_from_env("TMDB_SAFE_PAGES", 3)  # ~20 items/page → ~60 titles
TMDB_FETCH_TIMEOUT = _float_from_env("TMDB_FETCH_TIMEOUT", 8.0)
TMDB_FETCH_RETRIES = max(0, _int_from_env("TMDB_FETCH_RETRIES", 1))
TMDB_CACHE_TTL = max(5, _int_from_env("TMDB_CACHE_TTL", 300))
WATCH_REGION = os.getenv("WATCH_REGION", "US")
DEFAULT_LANGUAGE = os.getenv("DEFAULT_LANGUAGE", "en")

SCORING_TABLES_STRICT = os.getenv("SCORING_TABLES_STRICT", "1").strip().lower() not in {
    "0",
    "false",
    "no",
}
# mood/taste split for the taste blend; taste gets the remainder
TASTE_BLEND_MOOD_WEIGHT = min(
    1.0, max(0.0, _float_from_env("TASTE_BLEND_MOOD_WEIGHT", 0.6))
)
RECENT_WINDOW_SIZE = max(1, _int_from_env("RECENT_WINDOW_SIZE", 30))
RECOMMENDATION_SEED = os.getenv("RECOMMENDATION_SEED")
HISTORY_IMPORT_MAX_BYTES = _int_from_env("HISTORY_IMPORT_MAX_BYTES", 5 * 1024 * 1024)
HISTORY_IMPORT_ERROR_CEILING = max(1, _int_from_env("HISTORY_IMPORT_ERROR_CEILING", 10))

DATABASE_URL = os.getenv(
    "DATABASE_URL", "postgresql+psycopg2://app:app@db:5432/cinemood"
)
# statements slower than this are logged at INFO, the rest at DEBUG
SQL_SLOW_QUERY_MS = _float_from_env("SQL_SLOW_QUERY_MS", 50.0)
