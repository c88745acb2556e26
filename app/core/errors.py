from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

_LOG = logging.getLogger("app.errors")


class GemCatalogError(Exception):
    """Base class for catalog failures."""


class FilterParseError(GemCatalogError, ValueError):
    pass


class InvalidCursorError(GemCatalogError, ValueError):
    """Raised when a cursor string cannot be decoded."""


class GemNotFoundError(GemCatalogError, LookupError):
    def __init__(self, **ident: str):
        super().__init__(f"Gem not found: {ident}")
        self.ident = ident


class StoreError(GemCatalogError):
    """Backend failure surfaced to the caller as a retryable error."""

    def __init__(self, operation: str, message: str):
        super().__init__(message)
        self.operation = operation
        self.message = message


class DataSourceError(StoreError):
    pass


class CacheError(GemCatalogError):
    pass


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(StoreError)
    async def _store_error_handler(request: Request, exc: StoreError):
        _LOG.error("%s failed on %s %s: %s", exc.operation, request.method, request.url.path, exc.message)
        return JSONResponse(
            status_code=500,
            content={"error": f"Failed to {exc.operation}", "message": exc.message},
        )

    @app.exception_handler(GemNotFoundError)
    async def _not_found_handler(request: Request, exc: GemNotFoundError):
        return JSONResponse(status_code=404, content={"error": "Gem not found", **exc.ident})
