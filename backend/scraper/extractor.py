"""Product extraction: turns raw catalog markup into :class:`ProductCandidate` objects.

Listing pages are matched with two regex tiers.  The *primary* pattern wants
a full product block (product link, heading, price) and collects images from
a window of markup around each link.  The *fallback* pattern only needs a
product link, an ``alt`` text and a price, and yields no images.  Fallback
runs only when primary finds nothing; the two are never merged.  Both tiers
look at one product block at a time, from a product link up to the next one.

Single product detail pages go through :func:`extract_product_page`, which
uses BeautifulSoup instead.  Markdown catalog dumps go through
:func:`extract_markdown`.
"""

from __future__ import annotations

import html as html_lib
import logging
import re
from typing import Any, Iterable, Iterator, List, Optional, Tuple, TypeVar

from backend.config import settings
from backend.scraper.models import ExtractionResult, ProductCandidate, Strategy

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Patterns
# ---------------------------------------------------------------------------

_PRODUCT_LINK = re.compile(
    r"""<a\b[^>]*?\bhref=["'](?P<url>[^"'>]*/produto/[^"'>]*)["'][^>]*>""",
    re.IGNORECASE,
)

# Heading text may hold inline tags but never another heading tag.
_HEADING = re.compile(
    r"<h(?P<level>[1-6])\b[^>]*>"
    r"(?P<name>[^<]*(?:<(?!/?h[1-6]\b)[^<]*)*)"
    r"</h(?P=level)\s*>",
    re.IGNORECASE,
)

_ALT = re.compile(r"""\balt=["'](?P<name>[^"']*)["']""", re.IGNORECASE)

# "R$ 1.234,56", also when the symbol sits in its own <span> followed by &nbsp;.
# A truncated amount such as "59,999" is rejected rather than read as "59,99".
_PRICE = re.compile(
    r"R\$(?:\s|&nbsp;|&#160;|<[^>]+>)*"
    r"(?P<amount>\d[\d.]*(?:,\d{1,2})?)(?!\d|,\d)",
    re.IGNORECASE,
)

_MD_LINK = re.compile(r"""\[(?P<text>[^\[\]]*)\]\((?P<url>[^)\s]+)(?:\s+"[^"]*")?\)""")
_MD_IMAGE_URL = re.compile(r"""https?://[^)\s"'<>]+?\.(?:jpe?g|png|webp)\b""", re.IGNORECASE)
_MD_EMPHASIS = re.compile(r"\*\*|__")
_MD_LINE_RADIUS = 3

_IMG_TAG = re.compile(r"<img\b[^>]*>", re.IGNORECASE)
_IMG_SRC = re.compile(r"""(?<![\w-])(?:data-src|src)=["']([^"']+)["']""", re.IGNORECASE)
_TAG = re.compile(r"<[^>]+>")
_WHITESPACE = re.compile(r"\s+")
_CATEGORY_PREFIX = re.compile(r"^anel\s+", re.IGNORECASE)
_NOISE_IMAGE_MARKERS = ("placeholder", "logo")

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _clean_name(raw: str) -> str:
    """Strip tags and entities, collapse whitespace and drop the category word."""
    text = html_lib.unescape(_TAG.sub(" ", raw))
    text = _WHITESPACE.sub(" ", text).strip()
    return _CATEGORY_PREFIX.sub("", text).strip()


def _is_noise_image(src: str) -> bool:
    lowered = src.lower()
    if lowered.startswith("data:"):
        return True
    return any(marker in lowered for marker in _NOISE_IMAGE_MARKERS)


def _scan_images(html: str, position: int, radius: int) -> List[str]:
    """Collect ``<img>`` sources within *radius* characters of *position*.

    Decorative images (logos, lazy-load placeholders) are filtered out.
    """
    window = html[max(0, position - radius): position + radius]
    images: List[str] = []
    for tag in _IMG_TAG.finditer(window):
        for src_match in _IMG_SRC.finditer(tag.group(0)):
            src = html_lib.unescape(src_match.group(1).strip())
            if src and not _is_noise_image(src):
                images.append(src)
    return images


def _truncate(text: str, source: str) -> str:
    limit = settings.max_html_chars
    if len(text) > limit:
        logger.info("%s is %d chars; scanning the first %d", source, len(text), limit)
        return text[:limit]
    return text


def _take(matches: Iterable[T], limit: int) -> Iterator[T]:
    for count, match in enumerate(matches):
        if count >= limit:
            logger.info("Match limit (%d) reached; ignoring the rest of the page", limit)
            return
        yield match


def _iter_block_matches(
    html: str, links: List[re.Match[str]], name_pattern: re.Pattern[str]
) -> Iterator[Tuple[re.Match[str], str, str]]:
    """Yield ``(link, raw_name, amount)`` for every product block that matches.

    A block runs from the end of one product link's opening tag to the start
    of the next product link, so a name or price is never borrowed from a
    neighbouring product.  The price must follow the name.
    """
    for link, following in zip(links, links[1:] + [None]):
        end = following.start() if following is not None else len(html)
        name_match = name_pattern.search(html, link.end(), end)
        if name_match is None:
            continue
        price_match = _PRICE.search(html, name_match.end(), end)
        if price_match is None:
            continue
        yield link, name_match.group("name"), price_match.group("amount")


def _run_pattern(
    name_pattern: re.Pattern[str],
    html: str,
    links: List[re.Match[str]],
    *,
    with_images: bool,
    radius: int,
    limit: int,
) -> Tuple[List[ProductCandidate], int]:
    """Match every product block against *name_pattern*; return ``(candidates, raw_match_count)``."""
    candidates: List[ProductCandidate] = []
    raw_count = 0
    for link, raw_name, amount in _take(_iter_block_matches(html, links, name_pattern), limit):
        raw_count += 1
        url = html_lib.unescape(link.group("url").strip())
        name = _clean_name(raw_name)
        if not (url and name and amount):
            continue
        images = _scan_images(html, link.start(), radius) if with_images else []
        candidates.append(
            ProductCandidate(
                name=name,
                price_text=f"R$ {amount}",
                source_url=url,
                image_urls=images,
            )
        )
    return candidates, raw_count


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def extract_products(
    html: str,
    base_url: str = "",
    *,
    radius: Optional[int] = None,
    limit: Optional[int] = None,
) -> ExtractionResult[ProductCandidate]:
    """Extract product candidates from a catalog listing page.

    Never raises: a page that matches nothing yields an empty result with
    ``strategy_used == Strategy.NONE``.  Markup past
    ``settings.max_html_chars`` is ignored.

    Args:
        html: Raw page markup.
        base_url: The page the markup came from (used for logging only;
            URL absolutization is the normalizer's job).
        radius: Image scan radius in characters around each product link.
            Defaults to ``settings.image_window_radius``.
        limit: Maximum matches consumed per strategy.  Defaults to
            ``settings.max_matches_per_page``.
    """
    if not isinstance(html, str) or not html:
        return ExtractionResult()

    source = base_url or "<html>"
    html = _truncate(html, source)
    radius = settings.image_window_radius if radius is None else radius
    limit = settings.max_matches_per_page if limit is None else limit
    links = list(_PRODUCT_LINK.finditer(html))

    candidates, raw_count = _run_pattern(
        _HEADING, html, links, with_images=True, radius=radius, limit=limit
    )
    if candidates:
        logger.info("Primary pattern matched %d product(s) on %s", len(candidates), source)
        return ExtractionResult(candidates, raw_count, Strategy.PRIMARY)

    candidates, raw_count = _run_pattern(
        _ALT, html, links, with_images=False, radius=radius, limit=limit
    )
    if candidates:
        logger.info("Fallback pattern matched %d product(s) on %s", len(candidates), source)
        return ExtractionResult(candidates, raw_count, Strategy.FALLBACK)

    logger.info("No product blocks found on %s", source)
    return ExtractionResult(raw_match_count=raw_count)


def extract_markdown(text: str, *, limit: Optional[int] = None) -> ExtractionResult[ProductCandidate]:
    """Extract product candidates from a markdown catalog dump.

    Every markdown link whose text carries an ``R$`` price is a product: the
    link text minus the price is the name and the link target is the source
    URL.  Image URLs (``.jpg``, ``.png``, ``.webp``) are collected from the
    three lines either side of the link.  Never raises.
    """
    if not isinstance(text, str) or not text:
        return ExtractionResult()

    limit = settings.max_matches_per_page if limit is None else limit
    lines = _truncate(text, "<markdown>").splitlines()

    def priced_links() -> Iterator[Tuple[int, re.Match[str], re.Match[str]]]:
        for index, line in enumerate(lines):
            for link in _MD_LINK.finditer(line):
                price = _PRICE.search(link.group("text"))
                if price is not None:
                    yield index, link, price

    candidates: List[ProductCandidate] = []
    raw_count = 0
    for index, link, price in _take(priced_links(), limit):
        raw_count += 1
        label = _PRICE.sub(" ", link.group("text"))
        name = _clean_name(_MD_EMPHASIS.sub(" ", label))
        url = link.group("url").strip()
        if not (name and url):
            continue

        images: List[str] = []
        nearby = lines[max(0, index - _MD_LINE_RADIUS): index + _MD_LINE_RADIUS + 1]
        for nearby_line in nearby:
            for src in _MD_IMAGE_URL.findall(nearby_line):
                if not _is_noise_image(src) and src not in images:
                    images.append(src)

        candidates.append(
            ProductCandidate(
                name=name,
                price_text=f"R$ {price.group('amount')}",
                source_url=url,
                image_urls=images,
            )
        )

    if not candidates:
        logger.info("No priced product links found in markdown")
        return ExtractionResult(raw_match_count=raw_count)
    logger.info("Markdown dump yielded %d product(s)", len(candidates))
    return ExtractionResult(candidates, raw_count, Strategy.MARKDOWN)


def _bs4_first_text(soup: Any, selectors: List[str]) -> str:
    for selector in selectors:
        element = soup.select_one(selector)
        if element is None:
            continue
        if element.name == "meta":
            text = element.get("content", "")
        else:
            text = element.get_text(separator=" ", strip=True)
        if text and text.strip():
            return text.strip()
    return ""


def extract_product_page(html: str, url: str) -> ExtractionResult[ProductCandidate]:
    """Extract a single product from a WooCommerce-style detail page.

    Imported lazily so listing extraction works without bs4 on the path.
    Returns an empty ``NONE`` result when the page lacks a name or a price.
    """
    if not isinstance(html, str) or not html:
        return ExtractionResult()

    from bs4 import BeautifulSoup  # noqa: PLC0415

    soup = BeautifulSoup(_truncate(html, url), "html.parser")

    name = _bs4_first_text(
        soup,
        [
            "h1.product_title",
            "h1.entry-title",
            "h1",
            'meta[property="og:title"]',
        ],
    )
    name = _clean_name(name)

    price_text = _bs4_first_text(
        soup,
        [
            ".summary .woocommerce-Price-amount",
            ".woocommerce-Price-amount",
            'meta[itemprop="price"]',
            'meta[property="product:price:amount"]',
        ],
    )
    if not price_text:
        match = _PRICE.search(soup.get_text(" "))
        price_text = f"R$ {match.group('amount')}" if match else ""

    if not (name and price_text):
        logger.info("No product found on detail page %s", url)
        return ExtractionResult()

    images: List[str] = []
    for img in soup.select("img.wp-post-image, .woocommerce-product-gallery img"):
        src = img.get("data-large_image") or img.get("data-src") or img.get("src") or ""
        if src and not _is_noise_image(src) and src not in images:
            images.append(src)
    og_image = soup.select_one('meta[property="og:image"]')
    if og_image is not None:
        src = og_image.get("content", "")
        if src and not _is_noise_image(src) and src not in images:
            images.append(src)
    images = images[: settings.max_product_images]

    description = _bs4_first_text(
        soup,
        [
            ".woocommerce-product-details__short-description",
            "#tab-description",
            'meta[name="description"]',
        ],
    )

    canonical = soup.select_one('link[rel="canonical"]')
    source_url = canonical.get("href", "") if canonical is not None else ""

    candidate = ProductCandidate(
        name=name,
        price_text=price_text,
        source_url=source_url or url,
        image_urls=images,
        description=_WHITESPACE.sub(" ", description),
    )
    return ExtractionResult([candidate], 1, Strategy.PRODUCT_PAGE)
