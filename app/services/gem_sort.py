from __future__ import annotations

from typing import List, Optional, Sequence

from app.schemas.gems import Gem, SortField, SortOption

DEFAULT_SORT = [SortOption(field=SortField.NAME, dir="asc")]

_FIELDS_BY_TOKEN = {field.value: field for field in SortField}


def parse_orderby(raw: Optional[str]) -> List[SortOption]:
    """Parse ``"name asc, color desc"``; unknown fields are dropped."""
    options: List[SortOption] = []
    if not raw:
        return options
    for segment in raw.split(","):
        tokens = segment.strip().split()
        if not tokens:
            continue
        field = _FIELDS_BY_TOKEN.get(tokens[0])
        if field is None:
            continue
        direction = "desc" if len(tokens) > 1 and tokens[1] == "desc" else "asc"
        options.append(SortOption(field=field, dir=direction))
    return options


def resolve_sort(raw: Optional[str]) -> List[SortOption]:
    return parse_orderby(raw) or list(DEFAULT_SORT)


def sort_gems(gems: Sequence[Gem], options: Sequence[SortOption]) -> List[Gem]:
    # Ties fall back to name then id, matching the SQL backend's ORDER BY.
    result = sorted(gems, key=lambda gem: (gem.name, gem.id))
    # Stable sort per key, least significant first, so the first option is primary.
    for option in reversed(list(options) or DEFAULT_SORT):
        attr = option.field.value
        result.sort(key=lambda gem: getattr(gem, attr), reverse=option.dir == "desc")
    return result
