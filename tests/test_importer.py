"""Tests for the import coordinator.

The fetcher is replaced by an in-memory fake (a dict of URL → HTML) for most
tests; one end-to-end test goes through the real ``fetch_url`` with ``respx``
mocking the HTTP transport.
"""

from __future__ import annotations

import threading
import time
from decimal import Decimal

import httpx
import pytest
import respx

from backend.config import settings
from backend.importer import (
    MemoryStore,
    extract_markdown_page,
    extract_page,
    import_from,
    import_html,
    import_markdown,
    preview,
)
from backend.scraper.fetcher import TransportError
from backend.scraper.models import ProductRecord, RawPage, Strategy


# ---------------------------------------------------------------------------
# Fixtures / constants
# ---------------------------------------------------------------------------

def _listing(*products: tuple[str, str, str]) -> str:
    blocks = [
        f'<li class="product"><a href="/produto/{slug}/">'
        f'<img src="/wp-content/uploads/{slug}.jpg">'
        f'<h2 class="woocommerce-loop-product__title">{name}</h2>'
        f'<span class="price">R$ {price}</span></a></li>'
        for slug, name, price in products
    ]
    return '<ul class="products">' + "".join(blocks) + "</ul>"


_PAGE_ONE = _listing(
    ("anel-solitario", "Anel Solitário", "39,00"),
    ("anel-aparador", "Anel Aparador", "29,90"),
)
_PAGE_TWO = _listing(
    ("colar-lua", "Colar Lua", "59,90"),
    ("brinde", "Brinde", "0,00"),
    ("brinco-argola", "Brinco Argola", "1.234,56"),
)

_PRODUCT_PAGE = """\
<html><head><link rel="canonical" href="https://www.hubjoias.com.br/produto/anel-dourado/"></head>
<body><div class="summary"><h1 class="product_title">Anel Dourado</h1>
<span class="woocommerce-Price-amount">R$&nbsp;49,90</span></div></body></html>
"""

_VALID = "https://www.hubjoias.com.br/categoria-produto/aneis/"
_VALID_2 = "https://www.hubjoias.com.br/categoria-produto/colares/"
_UNREACHABLE = "https://www.hubjoias.com.br/categoria-produto/fora-do-ar/"


class FakeFetcher:
    """Serves canned pages; anything unknown fails like a dead host."""

    def __init__(self, pages: dict[str, str]) -> None:
        self.pages = pages
        self.calls: list[str] = []

    def __call__(self, url: str) -> RawPage:
        self.calls.append(url)
        if url not in self.pages:
            raise TransportError(url, "Network error: connection refused")
        return RawPage(url=url, html=self.pages[url], status_code=200)


class FailingStore(MemoryStore):
    def upsert(self, record: ProductRecord) -> None:
        if "aparador" in record.source_url:
            raise RuntimeError("duplicate slug")
        super().upsert(record)


# ---------------------------------------------------------------------------
# extract_page / preview
# ---------------------------------------------------------------------------

class TestExtractPage:
    def test_normalizes_and_counts_skips(self) -> None:
        result, skipped = extract_page(_PAGE_TWO, _VALID_2)

        assert result.strategy_used is Strategy.PRIMARY
        assert result.raw_match_count == 3
        assert skipped == 1
        assert [r.name for r in result.records] == ["Colar Lua", "Brinco Argola"]
        assert result.records[1].price == Decimal("1234.56")
        assert all(r.source_url.startswith(settings.source_origin) for r in result.records)

    def test_product_detail_url_uses_page_extractor(self) -> None:
        result, skipped = extract_page(
            _PRODUCT_PAGE, "https://www.hubjoias.com.br/produto/anel-dourado/"
        )

        assert result.strategy_used is Strategy.PRODUCT_PAGE
        assert skipped == 0
        (record,) = result.records
        assert record.name == "Dourado"
        assert record.price == Decimal("49.90")

    def test_short_cents_price_is_not_misread(self) -> None:
        html = '<a href="/produto/a/"><h2>Colar</h2></a><span>R$ 59,9</span>'
        result, _ = extract_page(html, _VALID)

        (record,) = result.records
        assert record.price == Decimal("59.9")

    def test_sold_out_product_is_dropped_not_merged(self) -> None:
        html = (
            '<li><a href="/produto/a/"><h2>Colar A</h2></a><span>Esgotado</span></li>'
            '<li><a href="/produto/b/"><h2>Colar B</h2></a><span>R$ 20,00</span></li>'
        )
        result, _ = extract_page(html, _VALID)

        assert [(r.name, r.source_url) for r in result.records] == [
            ("Colar B", f"{settings.source_origin}/produto/b/")
        ]

    def test_no_matches_is_empty_not_error(self) -> None:
        result, skipped = extract_page("<html><body>Em breve</body></html>", _VALID)

        assert result.records == []
        assert result.strategy_used is Strategy.NONE
        assert skipped == 0


class TestPreview:
    def test_uses_given_html_without_fetching(self) -> None:
        fetch = FakeFetcher({})
        result, _ = preview(html=_PAGE_ONE, fetch=fetch)

        assert fetch.calls == []
        assert len(result.records) == 2

    def test_fetches_url(self) -> None:
        fetch = FakeFetcher({_VALID: _PAGE_ONE})
        result, _ = preview(url=_VALID, fetch=fetch)

        assert fetch.calls == [_VALID]
        assert [r.name for r in result.records] == ["Solitário", "Aparador"]

    def test_transport_error_propagates(self) -> None:
        with pytest.raises(TransportError):
            preview(url=_UNREACHABLE, fetch=FakeFetcher({}))

    def test_requires_url_or_html(self) -> None:
        with pytest.raises(ValueError):
            preview()


# ---------------------------------------------------------------------------
# import_from
# ---------------------------------------------------------------------------

class TestImportFrom:
    def test_partial_failure_does_not_abort_batch(self) -> None:
        fetch = FakeFetcher({_VALID: _PAGE_ONE, _VALID_2: _PAGE_TWO})
        store = MemoryStore()

        summary = import_from([_VALID, _UNREACHABLE, _VALID_2], store=store, fetch=fetch)

        assert summary.imported == 4
        assert summary.skipped == 1
        assert len(summary.errors) == 1
        assert summary.errors[0].url == _UNREACHABLE
        assert "connection refused" in summary.errors[0].reason
        assert len(store) == 4
        assert sorted(fetch.calls) == sorted([_VALID, _UNREACHABLE, _VALID_2])

    def test_as_dict_shape(self) -> None:
        fetch = FakeFetcher({_VALID: _PAGE_ONE})
        summary = import_from([_VALID, _UNREACHABLE], fetch=fetch)

        assert summary.as_dict() == {
            "imported": 2,
            "skipped": 0,
            "errors": [
                {"url": _UNREACHABLE, "reason": "Network error: connection refused"}
            ],
        }

    def test_store_upsert_keyed_by_source_url(self) -> None:
        fetch = FakeFetcher({_VALID: _PAGE_ONE, _VALID_2: _PAGE_ONE})
        store = MemoryStore()

        summary = import_from([_VALID, _VALID_2], store=store, fetch=fetch)

        # Both pages list the same two products; no cross-page dedup here.
        assert summary.imported == 4
        assert len(store) == 2
        assert store.get(f"{settings.source_origin}/produto/anel-solitario/") is not None

    def test_store_failure_is_reported_per_url(self) -> None:
        fetch = FakeFetcher({_VALID: _PAGE_ONE})
        store = FailingStore()

        summary = import_from([_VALID], store=store, fetch=fetch)

        assert summary.imported == 1
        assert len(summary.errors) == 1
        assert summary.errors[0].url == _VALID
        assert "duplicate slug" in summary.errors[0].reason

    @pytest.mark.parametrize("urls", [[], None, ["  "], [_VALID, ""]])
    def test_malformed_input_fails_fast(self, urls) -> None:
        with pytest.raises(ValueError):
            import_from(urls, fetch=FakeFetcher({}))

    def test_concurrency_is_bounded(self, monkeypatch) -> None:
        monkeypatch.setattr("backend.importer.coordinator.settings.import_concurrency", 2)
        lock = threading.Lock()
        in_flight = 0
        peak = 0

        def slow_fetch(url: str) -> RawPage:
            nonlocal in_flight, peak
            with lock:
                in_flight += 1
                peak = max(peak, in_flight)
            time.sleep(0.05)
            with lock:
                in_flight -= 1
            return RawPage(url=url, html=_PAGE_ONE, status_code=200)

        urls = [f"https://www.hubjoias.com.br/categoria-produto/c{i}/" for i in range(6)]
        summary = import_from(urls, fetch=slow_fetch)

        assert summary.imported == 12
        assert peak <= 2

    def test_end_to_end_with_http_mock(self) -> None:
        with respx.mock:
            respx.get(_VALID).mock(return_value=httpx.Response(200, text=_PAGE_ONE))
            respx.get(_UNREACHABLE).mock(return_value=httpx.Response(503))
            respx.get(_VALID_2).mock(return_value=httpx.Response(200, text=_PAGE_TWO))

            summary = import_from([_VALID, _UNREACHABLE, _VALID_2])

        assert summary.imported == 4
        assert [e.url for e in summary.errors] == [_UNREACHABLE]
        assert summary.errors[0].reason == "HTTP 503"


class TestImportHtml:
    def test_imports_pasted_markup(self) -> None:
        store = MemoryStore()
        summary = import_html(_PAGE_TWO, _VALID_2, store=store)

        assert summary.imported == 2
        assert summary.skipped == 1
        assert summary.errors == []
        assert {r.name for r in store.all()} == {"Colar Lua", "Brinco Argola"}


class TestImportMarkdown:
    _DUMP = (
        "![Anel Solitário](https://www.hubjoias.com.br/wp-content/uploads/anel-solitario.jpg)\n"
        "[Anel Solitário R$ 39,00](/produto/anel-solitario/)\n"
        "[Anel Brinde R$ 0,00](/produto/anel-brinde/)\n"
        "[Colar Lua R$ 59,9](/produto/colar-lua/)\n"
    )

    def test_imports_dump_with_skips(self) -> None:
        store = MemoryStore()
        summary = import_markdown(self._DUMP, store=store)

        assert summary.imported == 2
        assert summary.skipped == 1
        record = store.get(f"{settings.source_origin}/produto/colar-lua/")
        assert record is not None
        assert record.price == Decimal("59.9")

    def test_extract_markdown_page_normalizes(self) -> None:
        result, skipped = extract_markdown_page(self._DUMP)

        assert result.strategy_used is Strategy.MARKDOWN
        assert skipped == 1
        first = result.records[0]
        assert first.name == "Solitário"
        assert first.source_url == f"{settings.source_origin}/produto/anel-solitario/"
        assert first.images == {
            "https://www.hubjoias.com.br/wp-content/uploads/anel-solitario.jpg"
        }
