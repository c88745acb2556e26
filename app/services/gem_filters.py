from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

from app.core.errors import FilterParseError
from app.schemas.gems import Gem, GemFilters

_LOG = logging.getLogger("app.gems.filters")

FILTERABLE_FIELDS = ("name", "color", "category", "chemical_formula")

# Query-string aliases accepted for the OData-style parameters.
_PARAM_ALIASES = {
    "search": ("$search", "search"),
    "filter": ("$filter", "filter"),
    "order_by": ("$orderby", "orderby", "order_by"),
}

FOLDED_CHARS = {"á": "a", "é": "e", "í": "i", "ó": "o", "ú": "u", "ñ": "n"}
_FOLD_TABLE = str.maketrans(FOLDED_CHARS)


def normalize_text(value: Optional[str]) -> str:
    return str(value or "").lower().translate(_FOLD_TABLE)


def image_slug(name: str) -> str:
    return normalize_text(name).replace(" ", "-")


def default_image_path(name: str) -> str:
    return f"images/{image_slug(name)}.jpg"


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _strip_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
        return value[1:-1]
    return value


def _parse_clause(clause: str) -> Tuple[str, str]:
    parts = clause.split()
    if len(parts) < 3 or parts[1] != "eq":
        raise FilterParseError(f"Unsupported filter clause: {clause.strip()!r}")
    return parts[0], _strip_quotes(" ".join(parts[2:]))


def parse_filter_expression(expression: Optional[str]) -> Tuple[Dict[str, str], List[str]]:
    """Parse ``"color eq 'Blue' and category eq 'Quartz'"`` into field values.

    Returns the recognised ``{field: value}`` pairs (later clauses win) and the
    clauses that were skipped as malformed or naming an unknown field.
    """
    fields: Dict[str, str] = {}
    skipped: List[str] = []
    if not expression:
        return fields, skipped
    for clause in expression.split(" and "):
        if not clause.strip():
            continue
        try:
            field, value = _parse_clause(clause)
        except FilterParseError:
            skipped.append(clause.strip())
            continue
        if field not in FILTERABLE_FIELDS:
            skipped.append(clause.strip())
            continue
        fields[field] = value
    return fields, skipped


def _pick(raw_params: Mapping[str, Any], key: str) -> Optional[str]:
    for alias in _PARAM_ALIASES.get(key, (key,)):
        if alias in raw_params:
            return _clean(raw_params[alias])
    return None


def normalize(raw_params: Mapping[str, Any]) -> GemFilters:
    filters = GemFilters(
        search=_pick(raw_params, "search"),
        filter=_pick(raw_params, "filter"),
        order_by=_pick(raw_params, "order_by"),
        **{field: _pick(raw_params, field) for field in FILTERABLE_FIELDS},
    )
    return apply_filter_expression(filters)


def apply_filter_expression(filters: GemFilters) -> GemFilters:
    if not filters.filter:
        return filters
    parsed, skipped = parse_filter_expression(filters.filter)
    if skipped:
        _LOG.debug("Skipped filter clauses %s in %r", skipped, filters.filter)
    if not parsed:
        return filters
    return filters.model_copy(update={field: _clean(value) for field, value in parsed.items()})


def _equals_folded(actual: str, expected: Optional[str]) -> bool:
    if not expected:
        return True
    return normalize_text(actual) == normalize_text(expected)


def matches_search(gem: Gem, term: Optional[str]) -> bool:
    if not term:
        return True
    needle = normalize_text(term)
    return (
        needle in normalize_text(gem.name)
        or needle in normalize_text(gem.magical_description)
        or needle in normalize_text(gem.category)
    )


def matches_filters(gem: Gem, filters: GemFilters) -> bool:
    return (
        matches_search(gem, filters.get_search_term())
        and _equals_folded(gem.color, filters.color)
        and _equals_folded(gem.category, filters.category)
        and _equals_folded(gem.chemical_formula, filters.chemical_formula)
    )
