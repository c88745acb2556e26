from __future__ import annotations

import logging
from functools import lru_cache

from app.core.config import settings
from app.db.session import SessionLocal
from app.services.gem_data_source import JsonGemDataSource
from app.services.gem_service import GemService
from app.services.memory_gem_service import InMemoryGemService
from app.services.sql_gem_service import SqlGemService

_LOG = logging.getLogger("app.gems")


def build_gem_service(backend: str | None = None) -> GemService:
    choice = str(backend or settings.GEM_BACKEND).strip().lower()
    if choice == "sql":
        _LOG.info("Using SQL gem backend")
        return SqlGemService(SessionLocal)
    if choice == "json":
        _LOG.info("Using in-memory gem backend over %s", settings.GEMS_DATA_FILE)
        return InMemoryGemService(JsonGemDataSource(settings.GEMS_DATA_FILE))
    raise ValueError(f"Unknown GEM_BACKEND: {choice!r}")


@lru_cache(maxsize=1)
def get_gem_service() -> GemService:
    return build_gem_service()
