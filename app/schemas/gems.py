from __future__ import annotations

import uuid
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

Dir = Literal["asc", "desc"]


class SortField(str, Enum):
    NAME = "name"
    COLOR = "color"
    CATEGORY = "category"
    CHEMICAL_FORMULA = "chemical_formula"


class SortOption(BaseModel):
    field: SortField
    dir: Dir = "asc"


class Gem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    name: str
    image: str = ""
    magical_description: str = ""
    category: str = ""
    color: str = ""
    chemical_formula: str = ""


class GemCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    magical_description: str
    category: str
    color: str
    chemical_formula: str


class GemImageUpdate(BaseModel):
    image_url: str = Field(min_length=1, max_length=500)


class GemFilters(BaseModel):
    """Canonical filter record for gem listings.

    ``search``, ``filter`` and ``order_by`` travel on the wire as ``$search``,
    ``$filter`` and ``$orderby``.
    """

    search: Optional[str] = None
    filter: Optional[str] = None
    name: Optional[str] = None
    color: Optional[str] = None
    category: Optional[str] = None
    chemical_formula: Optional[str] = None
    order_by: Optional[str] = None

    def get_search_term(self) -> Optional[str]:
        if self.search is not None:
            return self.search
        return self.name


class GemSearchResult(BaseModel):
    results: List[Gem]
    count: int
    query: str
