from __future__ import annotations

from typing import Generic, List, Literal, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")

CursorDirection = Literal["forward", "backward"]


class Cursor(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    offset: int = Field(ge=0, strict=True)
    direction: CursorDirection = "forward"


class PaginationParams(BaseModel):
    limit: int = Field(default=20, ge=0)
    cursor: Optional[str] = None


class PaginationInfo(BaseModel):
    has_next: bool
    has_previous: bool
    next_cursor: Optional[str] = None
    previous_cursor: Optional[str] = None
    total_count: int
    page_size: int


class Page(BaseModel, Generic[T]):
    data: List[T]
    pagination: PaginationInfo
