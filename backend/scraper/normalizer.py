"""Candidate normalization: validates and cleans :class:`ProductCandidate` objects.

A candidate either becomes a fully valid :class:`ProductRecord` or is
dropped (``None``); partially valid records are never emitted.
"""

from __future__ import annotations

import logging
import re
from decimal import Decimal, InvalidOperation
from typing import Iterable, List, Optional, Tuple

from backend.config import settings
from backend.scraper.models import ProductCandidate, ProductRecord

logger = logging.getLogger(__name__)

_NOT_PRICE_CHAR = re.compile(r"[^\d,.]")
_DECIMAL_DOT = re.compile(r"^\d*\.\d{1,2}$")


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------

def parse_price(text: str) -> Optional[Decimal]:
    """Parse a Brazilian-formatted price into a positive :class:`Decimal`.

    ``"R$ 1.234,56"`` → ``1234.56``.  When the text has no comma, a single dot
    followed by one or two digits is read as the decimal point, so
    already-clean values such as ``"49.90"`` parse unchanged.

    Returns ``None`` for text with no digits or a value ``<= 0``.
    """
    if not text:
        return None
    cleaned = _NOT_PRICE_CHAR.sub("", text)
    if "," in cleaned:
        cleaned = cleaned.replace(".", "").replace(",", ".", 1).replace(",", "")
    elif not _DECIMAL_DOT.match(cleaned):
        cleaned = cleaned.replace(".", "")
    if not cleaned or cleaned == ".":
        return None
    try:
        price = Decimal(cleaned)
    except InvalidOperation:
        return None
    if not price.is_finite() or price <= 0:
        return None
    return price


def absolutize(url: str, origin: Optional[str] = None) -> str:
    """Prefix *url* with the source origin unless it is already absolute."""
    url = url.strip()
    if url.startswith("http"):
        return url
    if url.startswith("//"):
        return f"https:{url}"
    origin = (origin or settings.source_origin).rstrip("/")
    if not url.startswith("/"):
        url = f"/{url}"
    return f"{origin}{url}"


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def normalize(
    candidate: ProductCandidate, origin: Optional[str] = None
) -> Optional[ProductRecord]:
    """Validate *candidate* and return a :class:`ProductRecord`, or ``None`` to drop it."""
    name = (candidate.name or "").strip()
    if not name:
        logger.debug("Dropping candidate with empty name (%s)", candidate.source_url)
        return None

    if not (candidate.source_url or "").strip():
        logger.debug("Dropping %r: empty source URL", name)
        return None

    price = parse_price(candidate.price_text)
    if price is None:
        logger.debug("Dropping %r: unusable price %r", name, candidate.price_text)
        return None

    images = {absolutize(src, origin) for src in candidate.image_urls if src and src.strip()}

    return ProductRecord(
        name=name,
        price=price,
        source_url=absolutize(candidate.source_url, origin),
        images=images,
        description=(candidate.description or "").strip(),
    )


def normalize_all(
    candidates: Iterable[ProductCandidate], origin: Optional[str] = None
) -> Tuple[List[ProductRecord], int]:
    """Normalize *candidates* in order and return ``(records, skipped)``."""
    records: List[ProductRecord] = []
    skipped = 0
    for candidate in candidates:
        record = normalize(candidate, origin)
        if record is None:
            skipped += 1
        else:
            records.append(record)
    return records, skipped
