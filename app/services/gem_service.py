from __future__ import annotations

import uuid
from typing import List, Optional, Protocol

from app.schemas.gems import Gem, GemFilters
from app.schemas.pagination import Page, PaginationParams


class GemService(Protocol):
    backend_name: str

    def list_gems(self, filters: GemFilters, pagination: PaginationParams) -> Page[Gem]:
        ...

    def get_gem(self, gem_id: str) -> Optional[Gem]:
        ...

    def get_gem_by_name(self, name: str) -> Optional[Gem]:
        ...

    def add_gem(self, gem: Gem) -> Gem:
        ...

    def update_gem(self, gem_id: str, gem: Gem) -> Optional[Gem]:
        ...

    def update_gem_by_name(self, name: str, gem: Gem) -> Optional[Gem]:
        ...

    def delete_gem(self, gem_id: str) -> bool:
        ...

    def unique_colors(self) -> List[str]:
        ...

    def unique_categories(self) -> List[str]:
        ...

    def unique_formulas(self) -> List[str]:
        ...

    def search_gems(self, term: str) -> List[Gem]:
        ...

    def is_available(self) -> bool:
        ...


def parse_gem_id(raw: str) -> Optional[uuid.UUID]:
    try:
        return uuid.UUID(str(raw or "").strip())
    except ValueError:
        return None
