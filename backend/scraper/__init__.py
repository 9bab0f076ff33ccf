"""Scraper package: page fetch, product extraction & normalization."""

from backend.scraper.extractor import extract_markdown, extract_product_page, extract_products
from backend.scraper.fetcher import TransportError, fetch_url
from backend.scraper.identifiers import generate_sku, slugify
from backend.scraper.models import (
    ExtractionResult,
    ProductCandidate,
    ProductRecord,
    RawPage,
    Strategy,
)
from backend.scraper.normalizer import normalize, normalize_all, parse_price

__all__ = [
    "fetch_url",
    "extract_products",
    "extract_product_page",
    "extract_markdown",
    "normalize",
    "normalize_all",
    "parse_price",
    "slugify",
    "generate_sku",
    "TransportError",
    "RawPage",
    "ProductCandidate",
    "ProductRecord",
    "ExtractionResult",
    "Strategy",
]
