"""
Unified Configuration Module for the Listing Worker

All configuration settings are centralized here.
Import from this module: from worker.config import config
"""

import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional
from urllib.parse import unquote, urlparse


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _env_optional_float(name: str) -> Optional[float]:
    raw = os.getenv(name, "").strip()
    return float(raw) if raw else None


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
)


@dataclass
class AppConfig:
    """Unified worker configuration."""

    # === Persistence ===
    DATABASE_PATH: str = os.getenv("DATABASE_PATH", "./data/listing_worker.db")

    # === Queue ===
    POLL_INTERVAL_SECONDS: float = float(os.getenv("POLL_INTERVAL_SECONDS", "2.0"))
    LOOP_ERROR_BACKOFF_SECONDS: float = float(os.getenv("LOOP_ERROR_BACKOFF_SECONDS", "2.0"))
    # Unset means no whole-job wall clock; per-stage timeouts still apply
    JOB_TIMEOUT_SECONDS: Optional[float] = _env_optional_float("JOB_TIMEOUT_SECONDS")

    # === Browser ===
    HEADLESS: bool = _env_bool("HEADLESS", "true")
    DEFAULT_TIMEOUT_MS: int = int(os.getenv("DEFAULT_TIMEOUT_MS", "90000"))
    VIEWPORT_WIDTH: int = int(os.getenv("VIEWPORT_WIDTH", "1280"))
    VIEWPORT_HEIGHT: int = int(os.getenv("VIEWPORT_HEIGHT", "720"))
    DEFAULT_USER_AGENT: str = os.getenv("DEFAULT_USER_AGENT", DEFAULT_USER_AGENT)
    LOCALE: str = os.getenv("BROWSER_LOCALE", "en-US")

    # === Proxy ===
    PLAYWRIGHT_PROXY: Optional[str] = os.getenv("PLAYWRIGHT_PROXY")
    PLAYWRIGHT_PROXY_SERVER: Optional[str] = os.getenv("PLAYWRIGHT_PROXY_SERVER")
    PLAYWRIGHT_PROXY_USERNAME: Optional[str] = os.getenv("PLAYWRIGHT_PROXY_USERNAME")
    PLAYWRIGHT_PROXY_PASSWORD: Optional[str] = os.getenv("PLAYWRIGHT_PROXY_PASSWORD")
    PLAYWRIGHT_PROXY_BYPASS: Optional[str] = os.getenv("PLAYWRIGHT_PROXY_BYPASS")

    # === Security ===
    ENCRYPTION_KEY: Optional[str] = os.getenv("ENCRYPTION_KEY")

    # === Object Storage ===
    STORAGE_URL: Optional[str] = os.getenv("STORAGE_URL") or os.getenv("SUPABASE_URL")
    STORAGE_SERVICE_KEY: Optional[str] = (
        os.getenv("STORAGE_SERVICE_KEY")
        or os.getenv("SUPABASE_SERVICE_ROLE_KEY")
    )
    DEFAULT_STORAGE_BUCKET: str = os.getenv("DEFAULT_STORAGE_BUCKET", "listing-photos")

    # === Photo Ingestion ===
    PHOTO_FETCH_TIMEOUT_SECONDS: float = float(os.getenv("PHOTO_FETCH_TIMEOUT_SECONDS", "45"))
    STORAGE_DOWNLOAD_TIMEOUT_SECONDS: float = float(os.getenv("STORAGE_DOWNLOAD_TIMEOUT_SECONDS", "60"))
    MAX_PARALLEL_PHOTO_FETCHES: int = int(os.getenv("MAX_PARALLEL_PHOTO_FETCHES", "3"))
    SCRATCH_DIR: Optional[str] = os.getenv("SCRATCH_DIR")

    # === Processor Stages ===
    UPLOAD_STAGE_TIMEOUT_SECONDS: float = float(os.getenv("UPLOAD_STAGE_TIMEOUT_SECONDS", "240"))
    FILL_STAGE_TIMEOUT_SECONDS: float = float(os.getenv("FILL_STAGE_TIMEOUT_SECONDS", "180"))
    SUBMIT_STAGE_TIMEOUT_SECONDS: float = float(os.getenv("SUBMIT_STAGE_TIMEOUT_SECONDS", "180"))
    IMAGE_SETTLE_MS: int = int(os.getenv("IMAGE_SETTLE_MS", "10000"))
    SUBMIT_NAVIGATION_TIMEOUT_MS: int = int(os.getenv("SUBMIT_NAVIGATION_TIMEOUT_MS", "30000"))

    # === Paths ===
    LOG_DIR: str = os.getenv("LOG_DIR", "./logs")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    LAUNCH_ARGS: List[str] = field(default_factory=lambda: [
        "--no-sandbox",
        "--disable-setuid-sandbox",
        "--disable-blink-features=AutomationControlled",
    ])

    @property
    def viewport(self) -> Dict[str, int]:
        return {"width": self.VIEWPORT_WIDTH, "height": self.VIEWPORT_HEIGHT}

    @property
    def proxy(self) -> Optional[Dict[str, str]]:
        """Playwright proxy settings, or None when no proxy is configured."""
        if self.PLAYWRIGHT_PROXY:
            parsed = urlparse(self.PLAYWRIGHT_PROXY)
            if not parsed.hostname:
                return None
            server = f"{parsed.scheme or 'http'}://{parsed.hostname}"
            if parsed.port:
                server += f":{parsed.port}"
            proxy = {"server": server}
            if parsed.username:
                proxy["username"] = unquote(parsed.username)
            if parsed.password:
                proxy["password"] = unquote(parsed.password)
        elif self.PLAYWRIGHT_PROXY_SERVER:
            proxy = {"server": self.PLAYWRIGHT_PROXY_SERVER}
            if self.PLAYWRIGHT_PROXY_USERNAME:
                proxy["username"] = self.PLAYWRIGHT_PROXY_USERNAME
            if self.PLAYWRIGHT_PROXY_PASSWORD:
                proxy["password"] = self.PLAYWRIGHT_PROXY_PASSWORD
        else:
            return None

        if self.PLAYWRIGHT_PROXY_BYPASS:
            proxy["bypass"] = self.PLAYWRIGHT_PROXY_BYPASS
        return proxy

    def validate(self) -> List[str]:
        """Validate configuration and return list of missing required settings."""
        missing = []

        if not self.ENCRYPTION_KEY:
            missing.append("ENCRYPTION_KEY")

        # Storage key only required when a storage endpoint is configured
        if self.STORAGE_URL and not self.STORAGE_SERVICE_KEY:
            missing.append("STORAGE_SERVICE_KEY")

        return missing


# Global config instance
config = AppConfig()


def get_config() -> AppConfig:
    """Get the worker configuration."""
    return config
