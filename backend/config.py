"""Centralised settings for the catalog ingestion backend.

All runtime configuration is resolved here in one place.  Values can be
overridden via environment variables or a `.env` file in the project root
(loaded automatically when this module is imported).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root (two levels up from this file)
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path, override=False)

_DESKTOP_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)


@dataclass
class Settings:
    # ------------------------------------------------------------------
    # Source site
    # ------------------------------------------------------------------
    source_origin: str = field(
        default_factory=lambda: os.environ.get(
            "SOURCE_ORIGIN", "https://www.hubjoias.com.br"
        ).rstrip("/")
    )

    # ------------------------------------------------------------------
    # Fetcher
    # ------------------------------------------------------------------
    request_timeout: float = field(
        default_factory=lambda: float(os.environ.get("REQUEST_TIMEOUT", "20.0"))
    )
    user_agent: str = field(
        default_factory=lambda: os.environ.get("USER_AGENT", _DESKTOP_USER_AGENT)
    )

    # ------------------------------------------------------------------
    # Extraction heuristics
    # ------------------------------------------------------------------
    image_window_radius: int = field(
        default_factory=lambda: int(os.environ.get("IMAGE_WINDOW_RADIUS", "1500"))
    )
    max_matches_per_page: int = field(
        default_factory=lambda: int(os.environ.get("MAX_MATCHES_PER_PAGE", "50"))
    )
    max_html_chars: int = field(
        default_factory=lambda: int(os.environ.get("MAX_HTML_CHARS", "1000000"))
    )
    max_product_images: int = field(
        default_factory=lambda: int(os.environ.get("MAX_PRODUCT_IMAGES", "5"))
    )

    # ------------------------------------------------------------------
    # Import coordinator
    # ------------------------------------------------------------------
    import_concurrency: int = field(
        default_factory=lambda: int(os.environ.get("IMPORT_CONCURRENCY", "3"))
    )


# Module-level singleton; import this everywhere:
#   from backend.config import settings
settings = Settings()
