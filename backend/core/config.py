import os
from dataclasses import dataclass
from functools import lru_cache


def _env_bool(name: str, default: bool) -> bool:
    v = (os.environ.get(name) or "").strip().lower()
    if not v:
        return default
    return v in ("true", "1", "yes", "on")


@dataclass
class Settings:
    """Application settings loaded from environment variables with safe defaults."""

    app_name: str = "RefZone"
    env: str = "dev"
    database_url: str = "sqlite+aiosqlite:///./refzone.db"
    log_level: str = "INFO"
    # Timezone in which organizers enter match date/time.
    match_timezone: str = "America/Mexico_City"
    sweep_enabled: bool = True
    sweep_interval_seconds: int = 30 * 60

    @classmethod
    def from_env(cls) -> "Settings":
        """Create Settings from environment variables."""
        return cls(
            app_name=os.getenv("APP_NAME", cls.app_name),
            env=os.getenv("ENV", cls.env),
            database_url=os.getenv("DATABASE_URL") or cls.database_url,
            log_level=os.getenv("LOG_LEVEL", cls.log_level),
            match_timezone=os.getenv("MATCH_TIMEZONE", cls.match_timezone),
            sweep_enabled=_env_bool("SWEEP_ENABLED", cls.sweep_enabled),
            sweep_interval_seconds=int(
                os.getenv("SWEEP_INTERVAL_SECONDS", str(cls.sweep_interval_seconds))
            ),
        )


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings instance."""
    return Settings.from_env()
