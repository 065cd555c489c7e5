"""
Global settings — loads from .env and exposes typed config values to the rest of the app.
Read once at process start; changing .env requires a restart.
"""
import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


# ── Paths ──────────────────────────────────────────────────────────────────────
ROOT_DIR = Path(__file__).resolve().parent.parent
DATA_DIR = ROOT_DIR / "data"
LOGS_DIR = ROOT_DIR / "logs"
DB_PATH = Path(os.getenv("DB_PATH", str(DATA_DIR / "feedwatch.db")))
TOPICS_FILE = ROOT_DIR / "config" / "topics.yaml"

# ── General ────────────────────────────────────────────────────────────────────
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# ── Scheduling ─────────────────────────────────────────────────────────────────
FETCH_INTERVAL_HOURS = int(os.getenv("FETCH_INTERVAL_HOURS", "2"))
MAX_RECORDS_PER_RUN  = int(os.getenv("MAX_RECORDS_PER_RUN", "200"))
REQUEST_TIMEOUT      = float(os.getenv("REQUEST_TIMEOUT", "15"))
RUN_ON_STARTUP       = _flag("RUN_ON_STARTUP")

# A re-fetched record matched by another topic gets that topic added to its
# topic set instead of being skipped outright.
MERGE_TOPIC_REFS = _flag("MERGE_TOPIC_REFS")

# ── Instagram (HikerAPI) ───────────────────────────────────────────────────────
INSTAGRAM_CONFIG = {
    "base_url": os.getenv("HIKER_API_URL_V2", "https://api.hikerapi.com/v2"),
    "api_key":  os.getenv("HIKER_API_KEY"),
}

# ── YouTube Data API v3 ────────────────────────────────────────────────────────
YOUTUBE_CONFIG = {
    "base_url": os.getenv("YOUTUBE_API_URL", "https://www.googleapis.com/youtube/v3"),
    "api_key":  os.getenv("YOUTUBE_API_KEY"),
}

# ── Twitter / X (SocialTools search + profile API) ────────────────────────────
TWITTER_CONFIG = {
    "base_url":    os.getenv("SOCIAL_TOOLS_API_URL", "https://api.socialtools.io/v1"),
    "api_key":     os.getenv("SOCIAL_TOOLS_API_KEY"),
    "profile_url": os.getenv("TWITTER_API_URL", "https://api.twitter.com/2"),
    "profile_key": os.getenv("TWITTER_API_KEY"),
}

# ── Google News RSS (optional) ─────────────────────────────────────────────────
NEWS_CONFIG = {
    "base_url": os.getenv("NEWS_RSS_URL", "https://news.google.com/rss/search"),
    "enabled":  _flag("NEWS_ENABLED", "true"),
    "language": os.getenv("NEWS_LANGUAGE", "en-US"),
    "country":  os.getenv("NEWS_COUNTRY", "US"),
}

# ── Reddit (asyncpraw, app-only OAuth) ──────────────────────────────────────
REDDIT_CONFIG = {
    "base_url":      os.getenv("REDDIT_URL", "https://www.reddit.com"),
    "client_id":     os.getenv("REDDIT_CLIENT_ID"),
    "client_secret": os.getenv("REDDIT_CLIENT_SECRET"),
    "user_agent":    os.getenv("REDDIT_USER_AGENT", "feedwatch:v0.1"),
    "page_size":     int(os.getenv("REDDIT_PAGE_SIZE", "25")),
}

# ── Discord alerts ─────────────────────────────────────────────────────────────
DISCORD_WEBHOOK_URL = os.getenv("DISCORD_WEBHOOK_URL")

# ── Config map (keyed by platform) ─────────────────────────────────────────────
PLATFORM_CONFIG = {
    "instagram": INSTAGRAM_CONFIG,
    "youtube":   YOUTUBE_CONFIG,
    "twitter":   TWITTER_CONFIG,
    "news":      NEWS_CONFIG,
    "reddit":    REDDIT_CONFIG,
}
