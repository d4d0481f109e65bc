"""Centralised settings for linkscan.

All runtime configuration is resolved here in one place.  Values can be
overridden via environment variables or a `.env` file in the project root
(loaded automatically when this module is imported).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root (one level up from this package)
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path, override=False)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)

VIEWPORT = {"width": 1920, "height": 1080}

CHROMIUM_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--no-first-run",
]


def _env_bool(name: str, default: str) -> bool:
    return os.environ.get(name, default).strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class Settings:
    # ------------------------------------------------------------------
    # Crawl
    # ------------------------------------------------------------------
    max_pages: int = field(
        default_factory=lambda: int(os.environ.get("LINKSCAN_MAX_PAGES", "50"))
    )

    # ------------------------------------------------------------------
    # Timeouts (seconds, per individual operation)
    # ------------------------------------------------------------------
    http_timeout: float = field(
        default_factory=lambda: float(os.environ.get("LINKSCAN_HTTP_TIMEOUT", "10.0"))
    )
    browser_check_timeout: float = field(
        default_factory=lambda: float(os.environ.get("LINKSCAN_BROWSER_CHECK_TIMEOUT", "15.0"))
    )
    navigation_timeout: float = field(
        default_factory=lambda: float(os.environ.get("LINKSCAN_NAVIGATION_TIMEOUT", "30.0"))
    )
    max_redirects: int = field(
        default_factory=lambda: int(os.environ.get("LINKSCAN_MAX_REDIRECTS", "5"))
    )

    # ------------------------------------------------------------------
    # Evidence capture
    # ------------------------------------------------------------------
    settle_delay: float = field(
        default_factory=lambda: float(os.environ.get("LINKSCAN_SETTLE_DELAY", "1.5"))
    )
    highlight_delay: float = field(
        default_factory=lambda: float(os.environ.get("LINKSCAN_HIGHLIGHT_DELAY", "2.0"))
    )

    # ------------------------------------------------------------------
    # Browser
    # ------------------------------------------------------------------
    headless: bool = field(default_factory=lambda: _env_bool("LINKSCAN_HEADLESS", "true"))

    # ------------------------------------------------------------------
    # Enrichment
    # ------------------------------------------------------------------
    analysis_cache_size: int = field(
        default_factory=lambda: int(os.environ.get("LINKSCAN_ANALYSIS_CACHE_SIZE", "256"))
    )

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------
    log_level: str = field(
        default_factory=lambda: os.environ.get("LINKSCAN_LOG_LEVEL", "INFO").upper()
    )
    log_file: Path | None = field(
        default_factory=lambda: (
            Path(os.environ["LINKSCAN_LOG_FILE"]) if os.environ.get("LINKSCAN_LOG_FILE") else None
        )
    )

    @property
    def http_timeout_ms(self) -> int:
        return int(self.http_timeout * 1000)

    @property
    def browser_check_timeout_ms(self) -> int:
        return int(self.browser_check_timeout * 1000)

    @property
    def navigation_timeout_ms(self) -> int:
        return int(self.navigation_timeout * 1000)


# Module-level singleton, import this everywhere:
#   from linkscan.config import settings
settings = Settings()
