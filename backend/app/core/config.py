from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # core
    ENV: str = "dev"
    API_PREFIX: str = "/api"

    # database & redis
    # Plain strings so sqlite:// and redis:// URLs are always accepted
    DATABASE_URL: str
    REDIS_URL: str

    # auth / security
    API_AUTH_KEY: str | None = None
    FRONTEND_ORIGIN: str | None = None
    # Explicit debug-only switch for wide-open CORS in non-prod envs
    CORS_ALLOW_ALL_ORIGINS: bool = False

    # telephony backend (places calls, runs ASR, returns transcripts)
    TELEPHONY_BACKEND_URL: str | None = None
    TELEPHONY_TIMEOUT_SECONDS: int = 30
    # Hosts that can never serve /dial (dashboard / API hosting), comma-separated
    TELEPHONY_BACKEND_DENYLIST: str = "convex.site,vly.site"

    # discovery
    DISCOVERY_MAX_DEPTH: int = 5
    SIMULATOR_PROCEDURAL_FLOWS: bool = False

    # data retention (in days)
    DISCOVERY_RETENTION_DAYS: int = 90

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache
def get_settings() -> Settings:
    return Settings()
