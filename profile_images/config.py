"""
Runtime settings for the profile image fetcher, read from environment variables.

Services call ``load_dotenv()`` before ``Settings.from_env()`` so a local .env
file is honoured during development.
"""

import logging
import os
from pathlib import Path
from typing import Optional, Tuple

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite:///./profile_images.db"
DEFAULT_FETCH_TIMEOUT = 10.0
DEFAULT_MAX_IMAGE_BYTES = 5 * 1024 * 1024
SECRETS_DIR = Path("/run/secrets")


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


def _database_url() -> str:
    """DATABASE_URL from the mounted secret file, else the environment."""
    secret_file = SECRETS_DIR / "database_url"
    if secret_file.is_file():
        try:
            return secret_file.read_text().strip()
        except OSError as exc:
            logger.warning("Failed to read database_url secret: %s", exc)
    return os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)


class Settings(BaseModel):
    """Process-wide configuration, built once at startup."""

    model_config = {"frozen": True}

    fetch_timeout: float = Field(DEFAULT_FETCH_TIMEOUT, gt=0, description="Outbound fetch timeout in seconds")
    max_image_bytes: int = Field(DEFAULT_MAX_IMAGE_BYTES, gt=0, description="Largest accepted image body")
    allowed_image_hosts: Optional[Tuple[str, ...]] = Field(
        None, description="Subset of the trusted hosts to enable; None enables all"
    )
    ssrf_dns_check_enabled: bool = Field(True, description="Reject allowlisted hosts resolving to private IPs")
    database_url: str = Field(DEFAULT_DATABASE_URL, min_length=1, description="SQLAlchemy URL of the profile store")
    base_path: str = Field("", description="Prefix for redirects issued by the gateway")
    log_level: str = Field("INFO", description="Log level name")

    @classmethod
    def from_env(cls) -> "Settings":
        raw_hosts = os.getenv("ALLOWED_IMAGE_HOSTS")
        hosts = None
        if raw_hosts is not None:
            hosts = tuple(h.strip().lower() for h in raw_hosts.split(",") if h.strip())

        return cls(
            fetch_timeout=float(os.getenv("HTTP_FETCH_TIMEOUT", str(DEFAULT_FETCH_TIMEOUT))),
            max_image_bytes=int(os.getenv("MAX_IMAGE_BYTES", str(DEFAULT_MAX_IMAGE_BYTES))),
            allowed_image_hosts=hosts,
            ssrf_dns_check_enabled=_env_bool("SSRF_DNS_CHECK_ENABLED", "true"),
            database_url=_database_url(),
            base_path=os.getenv("BASE_PATH", "").rstrip("/"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
