"""Application configuration via Pydantic Settings."""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings

# Resolve .env from the project root regardless of CWD
_ENV_FILE = Path(__file__).resolve().parents[3] / ".env"


class Settings(BaseSettings):
    """Central configuration loaded from environment variables / .env file."""

    # Database (in-memory SQLite by default: everything resets on restart)
    database_url: str = "sqlite+aiosqlite://"

    # Sessions / JWT
    jwt_secret_key: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    session_ttl_minutes: int = 720
    session_cookie_name: str = "freight_session"

    # CORS / Frontend
    cors_origins: str = "http://localhost:3000"

    # Shipment feed paging
    page_size_default: int = 50
    page_size_max: int = 200

    # Real-time fan-out
    sse_keepalive_seconds: float = 15.0
    stream_queue_size: int = 100

    # Audit log
    audit_log_cap: int = 1000

    # Payment provider callback; empty disables the shared-secret check
    payment_webhook_secret: str = ""

    # General
    debug: bool = True
    seed_on_startup: bool = True
    port: int = 3000

    model_config = {"env_file": str(_ENV_FILE), "env_file_encoding": "utf-8", "extra": "ignore"}

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list.

        In debug mode, returns ["*"] to allow any origin.
        """
        if self.debug:
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def is_memory_database(self) -> bool:
        """True when the store lives only inside this process."""
        url = self.database_url
        return url.startswith("sqlite") and (url.rstrip("/").endswith(":") or ":memory:" in url)


@lru_cache
def get_settings() -> Settings:
    """Return cached Settings instance."""
    return Settings()
