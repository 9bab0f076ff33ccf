"""HTTP fetcher for third-party catalog pages."""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from backend.config import settings
from backend.scraper.models import RawPage

logger = logging.getLogger(__name__)


class TransportError(Exception):
    """A page could not be retrieved.

    Raised for non-2xx responses, timeouts and network failures.  The HTTP
    status is attached when the server answered at all.
    """

    def __init__(self, url: str, reason: str, status_code: Optional[int] = None) -> None:
        super().__init__(reason)
        self.url = url
        self.reason = reason
        self.status_code = status_code


def _default_headers() -> dict[str, str]:
    return {
        "User-Agent": settings.user_agent,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "pt-BR,pt;q=0.9,en;q=0.8",
    }


def fetch_url(url: str) -> RawPage:
    """Fetch *url* and return a :class:`RawPage`.

    Sends a desktop-browser identity since the source site rejects unknown
    clients.  There are no retries here; callers decide what to do with a
    failure.

    Raises:
        TransportError: On a non-2xx status, a timeout or a network error.
    """
    try:
        with httpx.Client(
            headers=_default_headers(),
            timeout=settings.request_timeout,
            follow_redirects=True,
        ) as client:
            response = client.get(url)
            response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        status = exc.response.status_code
        logger.warning("Fetch of %s returned HTTP %s", url, status)
        raise TransportError(url, f"HTTP {status}", status_code=status) from exc
    except httpx.TimeoutException as exc:
        logger.warning("Fetch of %s timed out after %ss", url, settings.request_timeout)
        raise TransportError(
            url, f"Timed out after {settings.request_timeout:g}s"
        ) from exc
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        logger.warning("Fetch of %s failed: %s", url, exc)
        raise TransportError(url, f"Network error: {exc}") from exc

    return RawPage(url=url, html=response.text, status_code=response.status_code)
