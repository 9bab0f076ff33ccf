"""Import coordinator: drives fetch → extract → normalize → store.

``import_from`` is the batch path used by the admin console and scheduled
jobs.  Each URL is processed independently:

    fetch → extract (primary, then fallback) → normalize → store.upsert

A page that cannot be fetched becomes an error entry and the rest of the
batch carries on.  Nothing is retried here; the operator decides whether to
re-run.  ``preview`` and ``extract_page`` are the single-page variants used
by the "test extraction" tooling.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Iterable, Optional, Tuple

from backend.config import settings
from backend.importer.store import ProductStore
from backend.scraper.extractor import extract_markdown, extract_product_page, extract_products
from backend.scraper.fetcher import TransportError, fetch_url
from backend.scraper.models import (
    ExtractionResult,
    ImportErrorEntry,
    ImportSummary,
    ProductCandidate,
    ProductRecord,
    RawPage,
    Strategy,
)
from backend.scraper.normalizer import normalize_all

logger = logging.getLogger(__name__)

Fetcher = Callable[[str], RawPage]


# ---------------------------------------------------------------------------
# Single page
# ---------------------------------------------------------------------------

def extract_page(
    html: str, base_url: str = ""
) -> Tuple[ExtractionResult[ProductRecord], int]:
    """Run extraction and normalization over already-fetched *html*.

    Listing patterns are tried first.  When they find nothing and *base_url*
    points at a product detail page (``/produto/``), the detail-page
    extractor gets a go.

    Returns:
        ``(result, skipped)`` where ``result.records`` holds the valid
        :class:`ProductRecord` objects in page order and ``skipped`` counts
        the candidates dropped during normalization.
    """
    extraction = extract_products(html, base_url)
    if extraction.strategy_used is Strategy.NONE and "/produto/" in base_url:
        extraction = extract_product_page(html, base_url)
    return _normalized(extraction)


def extract_markdown_page(text: str) -> Tuple[ExtractionResult[ProductRecord], int]:
    """Like :func:`extract_page`, for a markdown catalog dump."""
    return _normalized(extract_markdown(text))


def _normalized(
    extraction: ExtractionResult[ProductCandidate],
) -> Tuple[ExtractionResult[ProductRecord], int]:
    records, skipped = normalize_all(extraction.records, settings.source_origin)
    result: ExtractionResult[ProductRecord] = ExtractionResult(
        records=records,
        raw_match_count=extraction.raw_match_count,
        strategy_used=extraction.strategy_used,
    )
    return result, skipped


def preview(
    url: Optional[str] = None,
    html: Optional[str] = None,
    fetch: Optional[Fetcher] = None,
) -> Tuple[ExtractionResult[ProductRecord], int]:
    """Extract products from one page without storing anything.

    Uses *html* when given (pasted markup), otherwise fetches *url*.

    Raises:
        ValueError: If neither *url* nor *html* is supplied.
        TransportError: If *url* has to be fetched and the fetch fails.
    """
    if html is None:
        if not url or not url.strip():
            raise ValueError("preview() needs a URL or raw HTML")
        html = (fetch or fetch_url)(url).html
    return extract_page(html, url or "")


# ---------------------------------------------------------------------------
# Batch
# ---------------------------------------------------------------------------

def _process_url(url: str, fetch: Fetcher) -> Tuple[ExtractionResult[ProductRecord], int]:
    raw = fetch(url)
    return extract_page(raw.html, url)


def _store_records(
    summary: ImportSummary,
    url: str,
    records: Iterable[ProductRecord],
    store: Optional[ProductStore],
) -> None:
    for record in records:
        if store is not None:
            try:
                store.upsert(record)
            except Exception as exc:
                logger.warning("Store rejected %s: %s", record.source_url, exc)
                summary.errors.append(ImportErrorEntry(url, f"{record.name}: {exc}"))
                continue
        summary.imported += 1
        summary.records.append(record)


def import_from(
    urls: Iterable[str],
    store: Optional[ProductStore] = None,
    fetch: Optional[Fetcher] = None,
) -> ImportSummary:
    """Import products from every page in *urls*.

    Pages are fetched in parallel, at most ``settings.import_concurrency``
    at a time.  The order of the aggregated records across pages is not
    significant; every error entry names the URL it came from.

    Args:
        urls: Catalog or product page URLs.  Must be non-empty.
        store: Optional storage collaborator; each accepted record is handed
            to ``store.upsert``.
        fetch: Page fetcher; defaults to :func:`~backend.scraper.fetcher.fetch_url`.

    Returns:
        An :class:`ImportSummary` with ``imported``, ``skipped`` and
        ``errors``.

    Raises:
        ValueError: If *urls* is empty or contains a blank entry.
    """
    url_list = list(urls or [])
    if not url_list:
        raise ValueError("import_from() needs at least one URL")
    if any(not isinstance(u, str) or not u.strip() for u in url_list):
        raise ValueError("import_from() got an empty URL in the list")

    fetch = fetch or fetch_url
    summary = ImportSummary()
    workers = max(1, min(settings.import_concurrency, len(url_list)))

    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="import") as pool:
        future_to_url = {
            pool.submit(_process_url, url.strip(), fetch): url.strip() for url in url_list
        }
        for future in as_completed(future_to_url):
            url = future_to_url[future]
            try:
                page, skipped = future.result()
            except TransportError as exc:
                logger.warning("Skipping %s: %s", url, exc.reason)
                summary.errors.append(ImportErrorEntry(url, exc.reason))
                continue

            logger.info(
                "%s: %d record(s) via %s, %d skipped",
                url, len(page.records), page.strategy_used.value, skipped,
            )
            summary.skipped += skipped
            _store_records(summary, url, page.records, store)

    logger.info(
        "Import finished: %d imported, %d skipped, %d error(s)",
        summary.imported, summary.skipped, len(summary.errors),
    )
    return summary


def import_html(
    html: str,
    base_url: str = "",
    store: Optional[ProductStore] = None,
) -> ImportSummary:
    """Import products from pasted *html* with the same accounting as :func:`import_from`."""
    page, skipped = extract_page(html, base_url)
    summary = ImportSummary(skipped=skipped)
    _store_records(summary, base_url or "<html>", page.records, store)
    return summary


def import_markdown(text: str, store: Optional[ProductStore] = None) -> ImportSummary:
    """Import products from a markdown catalog dump."""
    page, skipped = extract_markdown_page(text)
    summary = ImportSummary(skipped=skipped)
    _store_records(summary, "<markdown>", page.records, store)
    return summary
