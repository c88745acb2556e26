from fastapi import Query

from app.core.config import settings
from app.schemas.gems import GemFilters
from app.schemas.pagination import PaginationParams
from app.services.gem_backends import get_gem_service
from app.services.gem_cache import get_versioned_cache
from app.services.gem_filters import normalize
from app.services.s3_storage import get_s3_storage

__all__ = [
    "get_gem_filters",
    "get_gem_service",
    "get_pagination",
    "get_s3_storage",
    "get_versioned_cache",
]


def get_gem_filters(
    search: str | None = Query(None, alias="$search"),
    filter: str | None = Query(None, alias="$filter"),
    order_by: str | None = Query(None, alias="$orderby"),
    name: str | None = Query(None),
    color: str | None = Query(None),
    category: str | None = Query(None),
    chemical_formula: str | None = Query(None),
) -> GemFilters:
    return normalize(
        {
            "$search": search,
            "$filter": filter,
            "$orderby": order_by,
            "name": name,
            "color": color,
            "category": category,
            "chemical_formula": chemical_formula,
        }
    )


def get_pagination(
    limit: int = Query(settings.PAGINATION_DEFAULT_LIMIT, ge=0),
    cursor: str | None = Query(None),
) -> PaginationParams:
    return PaginationParams(limit=limit, cursor=cursor)
