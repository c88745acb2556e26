from __future__ import annotations

import hashlib
import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from app.core.config import settings
from app.core.errors import GemNotFoundError
from app.core.deps import get_gem_filters, get_gem_service, get_pagination, get_s3_storage, get_versioned_cache
from app.schemas.gems import Gem, GemCreate, GemFilters, GemImageUpdate, GemSearchResult
from app.schemas.pagination import PaginationParams
from app.services.gem_cache import GEMS_GROUP, VersionedCache
from app.services.gem_filters import default_image_path
from app.services.gem_service import GemService
from app.services.s3_storage import S3Storage

_LOG = logging.getLogger("app.gems.api")

router = APIRouter()


def _hashed_key(prefix: str, params: dict) -> str:
    # Keys never embed raw client input.
    raw = json.dumps(params, sort_keys=True, ensure_ascii=False)
    return prefix + hashlib.sha256(raw.encode("utf-8")).hexdigest()


def _list_cache_key(filters: GemFilters, page: PaginationParams) -> str:
    return _hashed_key("gems:list:", {"filters": filters.model_dump(), "limit": page.limit, "cursor": page.cursor})


def _dump(gem: Gem) -> dict:
    return gem.model_dump(mode="json")


@router.get("")
def list_gems(
    filters: GemFilters = Depends(get_gem_filters),
    page: PaginationParams = Depends(get_pagination),
    service: GemService = Depends(get_gem_service),
    cache: VersionedCache = Depends(get_versioned_cache),
):
    _LOG.info("GET /api/gems filters=%s limit=%s", filters.model_dump(exclude_none=True), page.limit)
    return cache.read(
        GEMS_GROUP,
        _list_cache_key(filters, page),
        lambda: service.list_gems(filters, page).model_dump(mode="json"),
        settings.CACHE_TTL_LIST_SECONDS,
    )


@router.get("/search")
def search_gems(
    q: str | None = Query(None),
    service: GemService = Depends(get_gem_service),
    cache: VersionedCache = Depends(get_versioned_cache),
):
    term = str(q or "").strip()
    if not term:
        raise HTTPException(status_code=400, detail={"error": "Missing or empty search term 'q'"})

    def _search() -> dict:
        gems = service.search_gems(term)
        _LOG.info("Search returned %s gems for %r", len(gems), term)
        return GemSearchResult(results=gems, count=len(gems), query=term).model_dump(mode="json")

    return cache.read(GEMS_GROUP, _hashed_key("search:", {"q": term}), _search, settings.CACHE_TTL_SEARCH_SECONDS)


@router.get("/metadata/colors")
def get_colors(
    service: GemService = Depends(get_gem_service),
    cache: VersionedCache = Depends(get_versioned_cache),
):
    colors = cache.read(GEMS_GROUP, "metadata:colors", service.unique_colors, settings.CACHE_TTL_METADATA_SECONDS)
    return {"colors": colors}


@router.get("/metadata/categories")
def get_categories(
    service: GemService = Depends(get_gem_service),
    cache: VersionedCache = Depends(get_versioned_cache),
):
    categories = cache.read(
        GEMS_GROUP, "metadata:categories", service.unique_categories, settings.CACHE_TTL_METADATA_SECONDS
    )
    return {"categories": categories}


@router.get("/metadata/formulas")
def get_formulas(
    service: GemService = Depends(get_gem_service),
    cache: VersionedCache = Depends(get_versioned_cache),
):
    formulas = cache.read(GEMS_GROUP, "metadata:formulas", service.unique_formulas, settings.CACHE_TTL_METADATA_SECONDS)
    return {"formulas": formulas}


@router.get("/{gem_id}")
def get_gem(
    gem_id: str,
    service: GemService = Depends(get_gem_service),
    cache: VersionedCache = Depends(get_versioned_cache),
):
    def _lookup():
        gem = service.get_gem(gem_id)
        return _dump(gem) if gem else None

    payload = cache.read(GEMS_GROUP, f"gems:id:{gem_id}", _lookup, settings.CACHE_TTL_DETAIL_SECONDS)
    if payload is None:
        raise GemNotFoundError(id=gem_id)
    return payload


@router.post("", status_code=201)
def create_gem(
    payload: GemCreate,
    service: GemService = Depends(get_gem_service),
    cache: VersionedCache = Depends(get_versioned_cache),
):
    gem = Gem(image=default_image_path(payload.name), **payload.model_dump())
    created = service.add_gem(gem)
    cache.invalidate(GEMS_GROUP)
    return _dump(created)


@router.put("/name/{name}")
def update_gem_by_name(
    name: str,
    payload: GemCreate,
    service: GemService = Depends(get_gem_service),
    cache: VersionedCache = Depends(get_versioned_cache),
):
    existing = service.get_gem_by_name(name)
    if existing is None:
        raise GemNotFoundError(name=name)
    merged = existing.model_copy(update={**payload.model_dump(), "name": name})
    updated = service.update_gem_by_name(name, merged)
    if updated is None:
        raise GemNotFoundError(name=name)
    cache.invalidate(GEMS_GROUP)
    return _dump(updated)


@router.patch("/name/{name}/image")
def update_gem_image_by_name(
    name: str,
    payload: GemImageUpdate,
    service: GemService = Depends(get_gem_service),
    cache: VersionedCache = Depends(get_versioned_cache),
):
    existing = service.get_gem_by_name(name)
    if existing is None:
        raise GemNotFoundError(name=name)
    updated = service.update_gem_by_name(name, existing.model_copy(update={"image": payload.image_url.strip()}))
    if updated is None:
        raise GemNotFoundError(name=name)
    cache.invalidate(GEMS_GROUP)
    return _dump(updated)


@router.put("/{gem_id}")
def update_gem(
    gem_id: str,
    payload: GemCreate,
    service: GemService = Depends(get_gem_service),
    cache: VersionedCache = Depends(get_versioned_cache),
):
    existing = service.get_gem(gem_id)
    if existing is None:
        raise GemNotFoundError(id=gem_id)
    # The image only changes through the image endpoints.
    merged = existing.model_copy(update=payload.model_dump())
    updated = service.update_gem(gem_id, merged)
    if updated is None:
        raise GemNotFoundError(id=gem_id)
    cache.invalidate(GEMS_GROUP)
    return _dump(updated)


@router.delete("/{gem_id}", status_code=204)
def delete_gem(
    gem_id: str,
    service: GemService = Depends(get_gem_service),
    cache: VersionedCache = Depends(get_versioned_cache),
    storage: S3Storage = Depends(get_s3_storage),
):
    existing = service.get_gem(gem_id)
    if existing is None:
        raise GemNotFoundError(id=gem_id)
    if not service.delete_gem(gem_id):
        raise GemNotFoundError(id=gem_id)
    if existing.image:
        storage.delete_image(existing.image)
    cache.invalidate(GEMS_GROUP)
    return Response(status_code=204)
