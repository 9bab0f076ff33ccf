"""Catalog CLI: entry-point for product ingestion from the command line.

Usage:
    python cli/main.py --help

Commands:
    extract   → preview what a single page yields (no storage)
    import    → batch import a list of catalog pages
"""

from __future__ import annotations

import sys
from pathlib import Path

# Ensure the project root is on sys.path so that `from backend.xxx import ...`
# works when the CLI is invoked as `python cli/main.py` from any directory.
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

import logging
from typing import List, Optional

import typer

from backend.importer import MemoryStore, extract_markdown_page, import_from, preview
from backend.scraper.fetcher import TransportError

app = typer.Typer(
    name="catalog",
    help="Product ingestion CLI.",
    no_args_is_help=True,
)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log pipeline progress."),
) -> None:
    """Extract and import products from third-party catalog pages."""
    if verbose:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )


# ---------------------------------------------------------------------------
# Single page
# ---------------------------------------------------------------------------
@app.command("extract")
def extract(
    url: Optional[str] = typer.Option(None, help="Catalog or product page URL to fetch."),
    file: Optional[Path] = typer.Option(
        None, "--file", exists=True, dir_okay=False, help="Local HTML file to read instead."
    ),
    base_url: str = typer.Option("", "--base-url", help="Page URL the HTML file came from."),
    markdown: bool = typer.Option(
        False, "--markdown", help="Treat --file as a markdown catalog dump."
    ),
) -> None:
    """Show which products a page yields, without importing them."""
    if url is None and file is None:
        typer.echo("[extract] Pass --url or --file.")
        raise typer.Exit(2)
    if markdown and file is None:
        typer.echo("[extract] --markdown needs --file.")
        raise typer.Exit(2)

    text = file.read_text(encoding="utf-8", errors="replace") if file is not None else None
    source = str(file) if file is not None else url
    typer.echo(f"[extract] Reading {source!r} …")

    try:
        if markdown:
            result, skipped = extract_markdown_page(text or "")
        else:
            result, skipped = preview(url=url or base_url, html=text)
    except TransportError as exc:
        typer.echo(f"[extract] ✗ {exc.url}: {exc.reason}")
        raise typer.Exit(1)

    typer.echo(f"[extract] Strategy : {result.strategy_used.value}")
    typer.echo(f"[extract] Matches  : {result.raw_match_count}")
    typer.echo(f"[extract] Records  : {len(result.records)}")
    typer.echo(f"[extract] Skipped  : {skipped}")
    for record in result.records:
        typer.echo(
            f"  R$ {record.price:>9}  {record.name}  ({len(record.images)} image(s))  {record.source_url}"
        )


# ---------------------------------------------------------------------------
# Batch
# ---------------------------------------------------------------------------
@app.command("import")
def import_cmd(
    urls: List[str] = typer.Argument(..., help="Catalog page URLs to import."),
) -> None:
    """Import products from one or more catalog pages (dry run into memory)."""
    store = MemoryStore()
    typer.echo(f"[import] Importing {len(urls)} page(s) …")
    try:
        summary = import_from(urls, store=store)
    except ValueError as exc:
        typer.echo(f"[import] {exc}")
        raise typer.Exit(2)

    typer.echo(f"[import] Imported : {summary.imported}")
    typer.echo(f"[import] Skipped  : {summary.skipped}")
    for error in summary.errors:
        typer.echo(f"[import] ✗ {error.url}: {error.reason}")

    failed_urls = {e.url for e in summary.errors}
    if summary.imported == 0 and failed_urls >= {u.strip() for u in urls}:
        raise typer.Exit(1)


# ---------------------------------------------------------------------------
# Entry-point
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    app()
