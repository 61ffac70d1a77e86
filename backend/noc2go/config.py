import os
import secrets
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    APP_NAME: str = "NOC2GO"
    APP_VERSION: str = "0.4.0"
    ENVIRONMENT: str = "development"

    CONFIG_PATH: str = "noc2go.yaml"
    DEFAULT_PORT: int = 8443

    # A fresh key per process: sessions do not survive a restart
    JWT_SECRET_KEY: str = Field(default_factory=lambda: secrets.token_urlsafe(32))
    JWT_ALGORITHM: str = "HS256"
    SESSION_COOKIE_NAME: str = "noc2go"
    SESSION_HOURS: int = 8
    COOKIE_SECURE: bool = True

    DNS_TIMEOUT: float = 5.0
    DNS_CACHE_TTL: float = 60.0
    DNS_FALLBACK_SERVER: str = "8.8.8.8:53"

    PING_BINARY: str = "ping"
    PING_DIALECT: str | None = None  # linux | bsd | windows; auto-detected when unset
    PRIVILEGED: bool = False

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()

_config_override = os.getenv("NOC2GO_CONFIG")
if _config_override:
    settings.CONFIG_PATH = Path(_config_override).expanduser().resolve().as_posix()

_privileged_flag = os.getenv("NOC2GO_PRIVILEGED", "").lower()
if _privileged_flag in ("1", "true", "yes", "on"):
    settings.PRIVILEGED = True
