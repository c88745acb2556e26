from __future__ import annotations

import logging
import re
import uuid
from functools import lru_cache

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from app.core.config import settings

_LOG = logging.getLogger("app.images")

_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
}


def _safe_file_name(file_name: str) -> str:
    raw = str(file_name or "").strip() or "image"
    return re.sub(r"[^A-Za-z0-9._-]+", "_", raw)


def build_image_key(gem_id: str, file_name: str, mime_type: str) -> str:
    stem = _safe_file_name(file_name).rsplit(".", 1)[0] or "image"
    extension = _EXTENSIONS.get(str(mime_type or "").lower(), "jpg")
    return f"gems/{gem_id}/{uuid.uuid4().hex}-{stem}.{extension}"


class S3Storage:
    def __init__(self):
        self.bucket = settings.S3_BUCKET
        self.public_base = settings.S3_PUBLIC_URL.rstrip("/")
        self.client = boto3.client(
            "s3",
            endpoint_url=settings.S3_ENDPOINT,
            aws_access_key_id=settings.S3_ACCESS_KEY,
            aws_secret_access_key=settings.S3_SECRET_KEY,
            region_name=settings.S3_REGION,
            use_ssl=settings.S3_USE_SSL,
        )
        self._bucket_checked = False

    def ensure_bucket(self) -> None:
        if self._bucket_checked:
            return
        try:
            self.client.head_bucket(Bucket=self.bucket)
        except ClientError as exc:
            code = str(exc.response.get("Error", {}).get("Code", ""))
            if code not in {"404", "NoSuchBucket", "NotFound"}:
                raise
            kwargs: dict = {"Bucket": self.bucket}
            if settings.S3_REGION and settings.S3_REGION != "us-east-1":
                kwargs["CreateBucketConfiguration"] = {"LocationConstraint": settings.S3_REGION}
            try:
                self.client.create_bucket(**kwargs)
            except ClientError as create_exc:
                create_code = str(create_exc.response.get("Error", {}).get("Code", ""))
                if create_code not in {"BucketAlreadyOwnedByYou", "BucketAlreadyExists"}:
                    raise
        self._bucket_checked = True

    def create_presigned_put_url(self, key: str, mime_type: str, expires_sec: int = 900) -> str:
        self.ensure_bucket()
        return self.client.generate_presigned_url(
            "put_object",
            Params={"Bucket": self.bucket, "Key": key, "ContentType": mime_type},
            ExpiresIn=expires_sec,
            HttpMethod="PUT",
        )

    def head_object(self, key: str) -> dict:
        self.ensure_bucket()
        return self.client.head_object(Bucket=self.bucket, Key=key)

    def delete_object(self, key: str) -> None:
        self.ensure_bucket()
        self.client.delete_object(Bucket=self.bucket, Key=key)

    def public_url(self, key: str) -> str:
        return f"{self.public_base}/{self.bucket}/{key}"

    def key_from_url(self, url: str) -> str | None:
        prefix = f"{self.public_base}/{self.bucket}/"
        text = str(url or "").strip()
        if not text.startswith(prefix):
            return None
        return text[len(prefix):] or None

    def delete_image(self, url: str) -> bool:
        """Best-effort removal of a stored gem image; foreign URLs are left alone."""
        key = self.key_from_url(url)
        if key is None:
            return False
        try:
            self.delete_object(key)
        except (ClientError, BotoCoreError) as exc:
            _LOG.warning("Failed to delete gem image %s: %s", key, exc)
            return False
        _LOG.info("Deleted gem image %s", key)
        return True


@lru_cache(maxsize=1)
def get_s3_storage() -> S3Storage:
    return S3Storage()
