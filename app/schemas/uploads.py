from __future__ import annotations

from pydantic import BaseModel, Field


class ImageUploadInitPayload(BaseModel):
    file_name: str = Field(min_length=1, max_length=255)
    mime_type: str
    size_bytes: int


class ImageUploadInitResponse(BaseModel):
    method: str = "PRESIGNED_PUT"
    key: str
    presigned_url: str


class ImageUploadCompletePayload(BaseModel):
    key: str
