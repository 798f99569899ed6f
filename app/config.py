"""Application settings loaded from .env via pydantic-settings."""

from functools import lru_cache
from pathlib import Path
from typing import List, Optional, Tuple

from pydantic_settings import BaseSettings


class ConfigError(Exception):
    """A required setting (credential, callback URL, …) is missing."""


class Settings(BaseSettings):
    """Central configuration; values come from environment / .env file."""

    # Last.fm
    lastfm_api_key: str = ""
    lastfm_api_secret: str = ""
    lastfm_callback_url: str = ""

    # Discogs
    discogs_consumer_key: str = ""
    discogs_consumer_secret: str = ""
    discogs_callback_url: str = ""

    # App
    public_app_origin: str = "http://localhost:5173"
    allowed_origins: str = ""  # comma-separated, added to public_app_origin
    secret_key: str = "change-me"
    dev_mode: bool = False
    log_level: str = "INFO"

    # Scrobbling
    scrobble_threshold_percent: float = 50.0

    # Database
    db_path: str = "./data/now_spinning.db"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
        "str_strip_whitespace": True,
    }

    @property
    def db_abs_path(self) -> Path:
        """Return the database path as an absolute Path, creating parents if needed."""
        p = Path(self.db_path)
        p.parent.mkdir(parents=True, exist_ok=True)
        return p.resolve()

    @property
    def cors_origins(self) -> List[str]:
        origins = [self.public_app_origin, "http://localhost:5173", "http://localhost:8000"]
        origins += [o.strip() for o in self.allowed_origins.split(",") if o.strip()]
        return list(dict.fromkeys(o for o in origins if o))


@lru_cache
def get_settings() -> Settings:
    """Cached singleton so .env is read only once."""
    return Settings()


# ---------------------------------------------------------------------------
# Credential lookup
# ---------------------------------------------------------------------------

def lastfm_credentials(settings: Optional[Settings] = None) -> Tuple[str, str]:
    """Return ``(api_key, shared_secret)`` or raise ``ConfigError``."""
    settings = settings or get_settings()
    if not settings.lastfm_api_key or not settings.lastfm_api_secret:
        raise ConfigError("Last.fm credentials not configured")
    return settings.lastfm_api_key, settings.lastfm_api_secret


def discogs_credentials(settings: Optional[Settings] = None) -> Tuple[str, str]:
    """Return ``(consumer_key, consumer_secret)`` or raise ``ConfigError``."""
    settings = settings or get_settings()
    if not settings.discogs_consumer_key or not settings.discogs_consumer_secret:
        raise ConfigError("Discogs credentials not configured")
    return settings.discogs_consumer_key, settings.discogs_consumer_secret
