"""Product import endpoints.

Routes
------
POST /imports/preview    Body: {"url": "..."}, {"html": "...", "base_url": "..."} or {"markdown": "..."}
POST /imports            Body: {"urls": ["https://...", ...]}    → import_from
GET  /imports/products   Records currently held by the store
"""

from __future__ import annotations

from typing import Any, List, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field, HttpUrl, TypeAdapter, ValidationError, field_validator

from backend.importer import extract_markdown_page, import_from, preview
from backend.scraper.fetcher import TransportError
from backend.scraper.models import ProductRecord

router = APIRouter()

_HTTP_URL = TypeAdapter(HttpUrl)


def _check_http_url(url: str) -> str:
    """Validate *url* as an HTTP(S) URL but hand back the string as submitted."""
    try:
        _HTTP_URL.validate_python(url)
    except ValidationError as exc:
        raise ValueError(f"not a valid http(s) URL: {url!r}") from exc
    return url


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------

class PreviewRequest(BaseModel):
    url: Optional[str] = None
    html: Optional[str] = None
    markdown: Optional[str] = None
    base_url: str = ""

    @field_validator("url")
    @classmethod
    def _url_is_http(cls, url: Optional[str]) -> Optional[str]:
        return url if url is None else _check_http_url(url)


class BatchImportRequest(BaseModel):
    # Kept as submitted so error entries name the exact URL the operator sent.
    urls: List[str] = Field(..., min_length=1)

    @field_validator("urls")
    @classmethod
    def _urls_are_http(cls, urls: List[str]) -> List[str]:
        return [_check_http_url(url) for url in urls]


class ProductOut(BaseModel):
    name: str
    price: str
    images: List[str]
    source_url: str
    description: str = ""


class PreviewResponse(BaseModel):
    strategy_used: str
    raw_match_count: int
    skipped: int
    records: List[ProductOut]


class ImportErrorOut(BaseModel):
    url: str
    reason: str


class ImportResponse(BaseModel):
    imported: int
    skipped: int
    errors: List[ImportErrorOut]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _product_out(record: ProductRecord) -> dict[str, Any]:
    return {
        "name": record.name,
        "price": str(record.price),
        "images": sorted(record.images),
        "source_url": record.source_url,
        "description": record.description,
    }


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post("/preview", response_model=PreviewResponse)
def preview_endpoint(body: PreviewRequest) -> dict[str, Any]:
    """Extract products from a single page without storing them.

    Pasted ``markdown`` or ``html`` wins over ``url`` when more than one is
    given.
    """
    if body.url is None and not body.html and not body.markdown:
        raise HTTPException(
            status_code=422, detail="Provide one of 'url', 'html' or 'markdown'."
        )

    url = body.url if body.url is not None else body.base_url
    try:
        if body.markdown:
            result, skipped = extract_markdown_page(body.markdown)
        else:
            result, skipped = preview(url=url, html=body.html or None)
    except TransportError as exc:
        raise HTTPException(
            status_code=502, detail=f"Could not fetch {exc.url}: {exc.reason}"
        ) from exc

    return {
        "strategy_used": result.strategy_used.value,
        "raw_match_count": result.raw_match_count,
        "skipped": skipped,
        "records": [_product_out(r) for r in result.records],
    }


@router.post("", response_model=ImportResponse)
def import_endpoint(body: BatchImportRequest, request: Request) -> dict[str, Any]:
    """Import every page in ``urls`` into the product store.

    Per-URL fetch failures are reported in ``errors``; they never fail the
    request as a whole.
    """
    store = request.app.state.store
    summary = import_from(body.urls, store=store)
    return summary.as_dict()


@router.get("/products", response_model=List[ProductOut])
def list_products_endpoint(request: Request) -> list[dict[str, Any]]:
    """Return the records the store currently holds."""
    return [_product_out(r) for r in request.app.state.store.all()]
