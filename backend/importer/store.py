"""Storage hand-off for imported products.

The real product store lives outside this package.  The pipeline only needs
something with an ``upsert`` keyed by ``source_url``; whether that becomes an
insert or an update is the store's decision.
"""

from __future__ import annotations

from typing import Dict, List, Protocol

from backend.scraper.models import ProductRecord


class ProductStore(Protocol):
    def upsert(self, record: ProductRecord) -> None:
        """Insert or update *record*, keyed by ``record.source_url``."""
        ...


class MemoryStore:
    """In-process :class:`ProductStore` used for dry runs, the API and tests."""

    def __init__(self) -> None:
        self._records: Dict[str, ProductRecord] = {}

    def upsert(self, record: ProductRecord) -> None:
        self._records[record.source_url] = record

    def get(self, source_url: str) -> ProductRecord | None:
        return self._records.get(source_url)

    def all(self) -> List[ProductRecord]:
        return list(self._records.values())

    def __len__(self) -> int:
        return len(self._records)
