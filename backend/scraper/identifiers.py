"""Catalog identifiers derived from a product name: URL slug and SKU."""

from __future__ import annotations

import re
import time
import unicodedata


def slugify(name: str) -> str:
    """Lowercase, accent-free, hyphen-separated slug for *name*."""
    text = unicodedata.normalize("NFD", name)
    text = "".join(ch for ch in text if not unicodedata.combining(ch)).lower()
    text = re.sub(r"[^a-z0-9\s-]", "", text)
    text = re.sub(r"\s+", "-", text)
    text = re.sub(r"-+", "-", text)
    return text.strip("-")


def generate_sku(name: str) -> str:
    """Build a short SKU: initials of the first two significant words, a
    four-digit time suffix and the source tag."""
    words = [w for w in name.split() if len(w) > 2]
    prefix = "".join(w[:2].upper() for w in words[:2])
    suffix = str(int(time.time() * 1000))[-4:]
    return f"{prefix}{suffix}_HJ"
