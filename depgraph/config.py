from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache

class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite+aiosqlite:///./depgraph.db"

    # ─── Remote Source (GitHub) ─────────────────────────
    # Used when a project record carries no token of its own.
    GITHUB_TOKEN: Optional[str] = None
    GITHUB_API_URL: str = "https://api.github.com"
    REMOTE_MAX_FILES: int = 2000

    # Retry policy for the remote fetch: delay = base × 2^attempt
    FETCH_MAX_ATTEMPTS: int = 3
    FETCH_BASE_DELAY_S: float = 1.0
    FETCH_TIMEOUT_S: float = 30.0

    # ─── Local Fallback ─────────────────────────────────
    # Directory analyzed when the remote source is unusable.
    LOCAL_SOURCE_ROOT: Optional[str] = None

    # ─── Graph Limits ───────────────────────────────────
    # Performance guard for the presentation layer; totals stay exact.
    MAX_NODES: int = 200
    MAX_EDGES: int = 400

    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://localhost:5174",
    ]

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

@lru_cache
def get_settings():
    return Settings()
