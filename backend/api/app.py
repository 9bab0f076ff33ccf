"""FastAPI application factory.

Lifespan
--------
On startup the app attaches a product store (shared across all requests via
``request.app.state.store``).  The default is an in-process
:class:`~backend.importer.store.MemoryStore`; a deployment swaps in the real
catalog store.

Routers
-------
    /imports   product extraction preview and batch import
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend.importer.store import MemoryStore, ProductStore

from backend.api.routers import imports as imports_router


def create_app(store: Optional[ProductStore] = None) -> FastAPI:
    """Return a fully-configured FastAPI application instance."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        app.state.store = store if store is not None else MemoryStore()
        yield

    app = FastAPI(
        title="Catalog Import API",
        description=(
            "Admin-facing interface for the product ingestion pipeline. "
            "Previews extraction from a catalog page and batch-imports "
            "products into the storefront catalog."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )

    # Allow the admin console on any origin (tighten for production).
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(imports_router.router, prefix="/imports", tags=["imports"])

    return app


# Module-level instance used by uvicorn:
#   uvicorn backend.api.app:app --reload
app = create_app()
