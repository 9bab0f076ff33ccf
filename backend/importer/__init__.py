"""Import coordinator package.

Public re-exports so callers can write::

    from backend.importer import import_from, MemoryStore
"""

from backend.importer.coordinator import (
    extract_markdown_page,
    extract_page,
    import_from,
    import_html,
    import_markdown,
    preview,
)
from backend.importer.store import MemoryStore, ProductStore

__all__ = [
    "extract_page",
    "preview",
    "import_from",
    "import_html",
    "extract_markdown_page",
    "import_markdown",
    "MemoryStore",
    "ProductStore",
]
