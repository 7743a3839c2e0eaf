from pathlib import Path
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings

# Get the directory where this config file is located.
_CLIENT_DIR = Path(__file__).parent.resolve()
_PROJECT_ROOT = _CLIENT_DIR.parent.resolve()
_DEFAULT_STATE_DB_PATH = (_PROJECT_ROOT / "data" / "prism_state.db").resolve()
_SQLITE_ASYNC_PREFIX = "sqlite+aiosqlite:///"


class Settings(BaseSettings):
    # Backend API
    PRISM_API_URL: str = "http://localhost:3001"
    # Push channel origin; derived from PRISM_API_URL when unset
    PRISM_WS_URL: Optional[str] = None
    HTTP_TIMEOUT_SECONDS: float = 30.0

    # Live prices
    TOKEN_WATCHLIST: list[str] = ["ETH", "BTC", "SOL", "USDC", "USDT"]
    PRICE_POLL_INTERVAL_SECONDS: float = 30.0

    # Activity feed
    FEED_CAP: int = 20
    FEED_POLL_INTERVAL_SECONDS: float = 30.0
    PUSH_ENABLED: bool = True
    WS_RECONNECT_BASE_DELAY: float = 1.0
    WS_RECONNECT_MAX_DELAY: float = 30.0

    # Profile acquisition
    HOLDINGS_FETCH_LIMIT: int = 12
    HOLDINGS_DISPLAY_LIMIT: int = 10
    ONBOARD_USE_AI: bool = True

    # Persisted selection (last wallet / last search)
    STATE_DATABASE_URL: str = f"{_SQLITE_ASYNC_PREFIX}{_DEFAULT_STATE_DB_PATH}"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True
    LOG_FILE: Optional[str] = None

    @field_validator("PRISM_API_URL")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        text = str(value or "").strip()
        if not text:
            raise ValueError("PRISM_API_URL cannot be empty")
        return text.rstrip("/")

    @field_validator("TOKEN_WATCHLIST")
    @classmethod
    def _normalize_watchlist(cls, value: list[str]) -> list[str]:
        symbols: list[str] = []
        for raw in value or []:
            symbol = str(raw or "").strip().upper()
            if symbol and symbol not in symbols:
                symbols.append(symbol)
        return symbols

    @field_validator("STATE_DATABASE_URL")
    @classmethod
    def _resolve_sqlite_path(cls, value: str) -> str:
        """Resolve relative SQLite paths against the project root."""
        text = str(value or "").strip()
        if not text.startswith(_SQLITE_ASYNC_PREFIX):
            return text
        path_part = text[len(_SQLITE_ASYNC_PREFIX) :]
        if not path_part or path_part in {":memory:", "/:memory:"}:
            return f"{_SQLITE_ASYNC_PREFIX}:memory:"
        absolute = (
            Path(path_part).resolve()
            if path_part.startswith("/")
            else (_PROJECT_ROOT / path_part).resolve()
        )
        return f"{_SQLITE_ASYNC_PREFIX}{absolute}"

    @property
    def push_url(self) -> str:
        """Socket.io origin for the push channel.

        The web origin serves both the REST API (under ``/api``) and the
        socket.io endpoint, so a trailing ``/api`` segment is dropped.
        """
        base = (self.PRISM_WS_URL or self.PRISM_API_URL).rstrip("/")
        if base.endswith("/api"):
            base = base[: -len("/api")]
        return base

    class Config:
        # Load project-root .env first, then client/.env as an override.
        env_file = (
            str(_PROJECT_ROOT / ".env"),
            str(_CLIENT_DIR / ".env"),
        )
        env_file_encoding = "utf-8"


settings = Settings()
