"""FastAPI application factory.

Lifespan
--------
On startup the app configures logging, opens a single SQLite connection
(shared across all requests via ``request.app.state.db``), initialises the
schema and creates the photo blob store (``request.app.state.blob_store``).
On shutdown both are closed cleanly.

Routers
-------
    /family-tree  -- whole-graph read, add relative to couple, edit, delete,
                     layout and SVG views
    /persons      -- person CRUD, search, couples and photos of a person
    /couple       -- couple creation and linking
    /flip-edge    -- partner <-> child edge flip
    /data-entry   -- incomplete-data queries for the wizard
    /photos       -- batch upload, list, edit and delete

Errors
------
Every error response is ``{"error": "<message>"}``: 400 for validation
problems (including malformed bodies), 404 for unknown ids, 502 when the
blob store fails and 500 for anything else.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from familytree.db import get_connection, init_db
from familytree.errors import (
    FamilyTreeError,
    NotFoundError,
    StorageUnavailableError,
    UploadFailedError,
    ValidationError,
)
from familytree.logging_config import get_logger, setup_logging
from familytree.storage.b2 import B2BlobStore

from familytree.api.routers import couples as couples_router
from familytree.api.routers import data_entry as data_entry_router
from familytree.api.routers import family_tree as family_tree_router
from familytree.api.routers import flip_edge as flip_edge_router
from familytree.api.routers import persons as persons_router
from familytree.api.routers import photos as photos_router

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the DB and blob store on startup and close them on shutdown."""
    setup_logging()
    conn = get_connection()
    init_db(conn)
    app.state.db = conn
    app.state.blob_store = B2BlobStore()
    try:
        yield
    finally:
        app.state.blob_store.close()
        conn.close()


def status_for(exc: FamilyTreeError) -> int:
    if isinstance(exc, ValidationError):
        return 400
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, (StorageUnavailableError, UploadFailedError)):
        return 502
    return 500


def _validation_message(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p not in ("body", "query"))
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "; ".join(parts) or "Invalid request"


def _install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(FamilyTreeError)
    async def _domain_error(request: Request, exc: FamilyTreeError) -> JSONResponse:
        status = status_for(exc)
        if status >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=status, content={"error": str(exc)})

    @app.exception_handler(RequestValidationError)
    async def _bad_request(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": _validation_message(exc)})

    @app.exception_handler(HTTPException)
    async def _http_error(request: Request, exc: HTTPException) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})

    @app.exception_handler(Exception)
    async def _unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": str(exc) or "Internal error"})


def create_app() -> FastAPI:
    """Return a fully-configured FastAPI application instance."""
    app = FastAPI(
        title="Family Tree API",
        description=(
            "REST interface for the family tree editor. Exposes person and "
            "couple CRUD, relationship linking and edge flipping, the "
            "generational layout and SVG diagram, the data-entry wizard "
            "queries and the photo gallery."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )

    # Allow browser frontends on any origin (tighten for production).
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    _install_error_handlers(app)

    app.include_router(family_tree_router.router, prefix="/family-tree", tags=["family-tree"])
    app.include_router(persons_router.router, prefix="/persons", tags=["persons"])
    app.include_router(couples_router.router, prefix="/couple", tags=["couples"])
    app.include_router(flip_edge_router.router, prefix="/flip-edge", tags=["couples"])
    app.include_router(data_entry_router.router, prefix="/data-entry", tags=["data-entry"])
    app.include_router(photos_router.router, prefix="/photos", tags=["photos"])

    return app


# Module-level instance used by uvicorn:
#   uvicorn familytree.api.app:app --reload
app = create_app()
