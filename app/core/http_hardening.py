from __future__ import annotations

import logging
import re
from time import perf_counter
from uuid import uuid4

from fastapi import FastAPI, Request, Response

REQUEST_ID_HEADER = "X-Request-ID"
_REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._-]{1,128}$")
_LOG = logging.getLogger("app.http")

# Gem images are embedded cross-origin by the catalog front end.
SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Cross-Origin-Resource-Policy": "cross-origin",
}


def request_id_from_header(raw: str | None) -> str:
    value = str(raw or "").strip()
    if not value or not _REQUEST_ID_RE.fullmatch(value):
        return uuid4().hex
    return value


def _access_log(request: Request, response: Response, request_id: str, started_at: float) -> None:
    # Store failures surface as 500s; keep them visible at the default level.
    level = logging.WARNING if response.status_code >= 500 else logging.INFO
    _LOG.log(
        level,
        "%s %s?%s status=%s duration_ms=%.2f request_id=%s",
        request.method,
        request.url.path,
        request.url.query,
        response.status_code,
        (perf_counter() - started_at) * 1000.0,
        request_id,
    )


def install_http_hardening(app: FastAPI) -> None:
    @app.middleware("http")
    async def _catalog_http_middleware(request: Request, call_next):
        request_id = request_id_from_header(request.headers.get(REQUEST_ID_HEADER))
        started_at = perf_counter()
        response = await call_next(request)
        for key, value in SECURITY_HEADERS.items():
            response.headers.setdefault(key, value)
        response.headers[REQUEST_ID_HEADER] = request_id
        _access_log(request, response, request_id, started_at)
        return response
