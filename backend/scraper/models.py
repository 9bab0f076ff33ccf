"""Data models for the product ingestion pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Generic, List, Set, TypeVar

from backend.scraper.identifiers import generate_sku, slugify


@dataclass
class RawPage:
    """The raw HTTP response for a single URL fetch."""

    url: str
    html: str
    status_code: int


class Strategy(str, Enum):
    """Which matching strategy produced an :class:`ExtractionResult`."""

    PRIMARY = "primary"
    FALLBACK = "fallback"
    PRODUCT_PAGE = "product_page"
    MARKDOWN = "markdown"
    NONE = "none"


@dataclass
class ProductCandidate:
    """An unvalidated product lifted straight out of page markup."""

    name: str
    price_text: str
    source_url: str
    image_urls: List[str] = field(default_factory=list)
    description: str = ""


@dataclass
class ProductRecord:
    """A validated product, ready to hand to the storage collaborator."""

    name: str
    price: Decimal
    source_url: str
    images: Set[str] = field(default_factory=set)
    description: str = ""

    def to_payload(self) -> dict[str, Any]:
        """Build the dict handed to the product store on upsert.

        Imported products land inactive with the scraped price as cost price;
        an operator sets the sale price and activates them after review.
        """
        return {
            "name": self.name,
            "slug": slugify(self.name),
            "sku": generate_sku(self.name),
            "price": str(self.price),
            "sale_price": None,
            "images": sorted(self.images),
            "source_url": self.source_url,
            "description": self.description,
            "is_active": False,
        }


T = TypeVar("T")


@dataclass
class ExtractionResult(Generic[T]):
    """Outcome of one extraction pass over a single page.

    ``records`` holds :class:`ProductCandidate` objects when produced by the
    extractor and :class:`ProductRecord` objects once normalized.
    """

    records: List[T] = field(default_factory=list)
    raw_match_count: int = 0
    strategy_used: Strategy = Strategy.NONE


@dataclass
class ImportErrorEntry:
    """A per-URL failure reported back to the operator."""

    url: str
    reason: str


@dataclass
class ImportSummary:
    """Aggregate outcome of an import run, suitable for direct display."""

    imported: int = 0
    skipped: int = 0
    errors: List[ImportErrorEntry] = field(default_factory=list)
    records: List[ProductRecord] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        """Return the operator-facing ``{imported, skipped, errors}`` view."""
        return {
            "imported": self.imported,
            "skipped": self.skipped,
            "errors": [{"url": e.url, "reason": e.reason} for e in self.errors],
        }
