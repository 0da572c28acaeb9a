from pydantic import AnyUrl
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import Literal

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    ENV: str = "dev"
    SERVICE_PORT: int = 3000
    LOG_JSON: bool = True
    LOG_LEVEL: str = "INFO"
    # Event store backend: "memory" or "redis"
    STORE_ADAPTER: Literal["memory", "redis"] = "memory"
    REDIS_URL: AnyUrl | None = None
    REDIS_KEY_PREFIX: str = "telemetry"
    # Crash alerting
    DISCORD_WEBHOOK_URL: str | None = None
    DISCORD_ALERT_THRESHOLD: int = 10
    ALERT_COOLDOWN_SECONDS: int = 300
    WEBHOOK_TIMEOUT_SECONDS: float = 5.0
    # Request guards
    MAX_REQUEST_SIZE: int = 1048576
    RATE_LIMIT_REQUESTS: int = 1000
    RATE_LIMIT_WINDOW_SECONDS: int = 900
    # Browser clients; "*" allows any origin
    CORS_ORIGINS: list[str] = ["*"]

@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
