from __future__ import annotations

import logging

from botocore.exceptions import BotoCoreError, ClientError
from fastapi import APIRouter, Depends, HTTPException

from app.core.config import settings
from app.core.errors import GemNotFoundError
from app.core.deps import get_gem_service, get_s3_storage, get_versioned_cache
from app.schemas.uploads import ImageUploadCompletePayload, ImageUploadInitPayload, ImageUploadInitResponse
from app.services.gem_cache import GEMS_GROUP, VersionedCache
from app.services.gem_service import GemService
from app.services.s3_storage import S3Storage, build_image_key

_LOG = logging.getLogger("app.images")

router = APIRouter()


def _max_image_bytes() -> int:
    return int(settings.MAX_IMAGE_MB) * 1024 * 1024


def _check_image_or_400(mime_type: str, size_bytes: int) -> None:
    if str(mime_type or "").strip().lower() not in settings.image_mime_types:
        raise HTTPException(status_code=400, detail="Invalid file type. Only images are allowed.")
    if int(size_bytes or 0) <= 0:
        raise HTTPException(status_code=400, detail="Empty image file")
    if int(size_bytes) > _max_image_bytes():
        raise HTTPException(status_code=400, detail=f"File too large. Maximum size is {settings.MAX_IMAGE_MB}MB.")


@router.post("/{gem_id}/image/init", response_model=ImageUploadInitResponse)
def image_upload_init(
    gem_id: str,
    payload: ImageUploadInitPayload,
    service: GemService = Depends(get_gem_service),
    storage: S3Storage = Depends(get_s3_storage),
):
    _check_image_or_400(payload.mime_type, payload.size_bytes)
    gem = service.get_gem(gem_id)
    if gem is None:
        raise GemNotFoundError(id=gem_id)
    key = build_image_key(str(gem.id), payload.file_name, payload.mime_type)
    try:
        presigned_url = storage.create_presigned_put_url(key, payload.mime_type.lower())
    except (ClientError, BotoCoreError) as exc:
        _LOG.error("Failed to presign image upload for %s: %s", gem_id, exc)
        raise HTTPException(status_code=502, detail="Image storage unavailable")
    return ImageUploadInitResponse(key=key, presigned_url=presigned_url)


@router.post("/{gem_id}/image/complete")
def image_upload_complete(
    gem_id: str,
    payload: ImageUploadCompletePayload,
    service: GemService = Depends(get_gem_service),
    storage: S3Storage = Depends(get_s3_storage),
    cache: VersionedCache = Depends(get_versioned_cache),
):
    gem = service.get_gem(gem_id)
    if gem is None:
        raise GemNotFoundError(id=gem_id)
    if not str(payload.key or "").startswith(f"gems/{gem.id}/"):
        raise HTTPException(status_code=400, detail="Image key does not belong to this gem")
    try:
        head = storage.head_object(payload.key)
    except ClientError:
        raise HTTPException(status_code=400, detail="Image not found in storage")
    _check_image_or_400(str(head.get("ContentType") or ""), int(head.get("ContentLength") or 0))

    previous_image = gem.image
    updated = service.update_gem(gem_id, gem.model_copy(update={"image": storage.public_url(payload.key)}))
    if updated is None:
        raise GemNotFoundError(id=gem_id)
    if previous_image and previous_image != updated.image:
        storage.delete_image(previous_image)
    cache.invalidate(GEMS_GROUP)
    _LOG.info("Gem %s image set to %s", gem_id, updated.image)
    return updated.model_dump(mode="json")
