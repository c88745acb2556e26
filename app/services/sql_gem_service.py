from __future__ import annotations

import logging
from typing import Callable, List, Optional, Sequence

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import StoreError
from app.models.gem import GemRow
from app.schemas.gems import Gem, GemFilters, SortOption
from app.schemas.pagination import Page, PaginationParams
from app.services.gem_filters import FOLDED_CHARS, apply_filter_expression, normalize_text
from app.services.gem_service import parse_gem_id
from app.services.gem_sort import DEFAULT_SORT, resolve_sort
from app.services.pagination import paginate_pushdown

_LOG = logging.getLogger("app.gems.sql")

_SORT_COLUMNS = {
    "name": GemRow.name,
    "color": GemRow.color,
    "category": GemRow.category,
    "chemical_formula": GemRow.chemical_formula,
}

_WRITABLE_FIELDS = ("name", "image", "magical_description", "category", "color", "chemical_formula")

# Code point ordering, the same as Python string comparison.
_BINARY_COLLATIONS = {"postgresql": "C", "sqlite": "binary"}


def folded(column):
    # lower() is ASCII-only on some engines, so fold both cases explicitly.
    expr = func.lower(column)
    for accented, plain in FOLDED_CHARS.items():
        expr = func.replace(expr, accented, plain)
        expr = func.replace(expr, accented.upper(), plain)
    return expr


def filter_conditions(filters: GemFilters) -> list:
    conditions = []
    term = filters.get_search_term()
    if term:
        needle = normalize_text(term)
        conditions.append(
            folded(GemRow.name).contains(needle, autoescape=True)
            | folded(GemRow.magical_description).contains(needle, autoescape=True)
            | folded(GemRow.category).contains(needle, autoescape=True)
        )
    for field, column in (
        ("color", GemRow.color),
        ("category", GemRow.category),
        ("chemical_formula", GemRow.chemical_formula),
    ):
        value = getattr(filters, field)
        if value:
            conditions.append(folded(column) == normalize_text(value))
    return conditions


def binary_collation(dialect_name: Optional[str]) -> Optional[str]:
    return _BINARY_COLLATIONS.get(dialect_name or "")


def _collated(column, collation: Optional[str]):
    return column.collate(collation) if collation else column


def order_clauses(options: Sequence[SortOption], collation: Optional[str] = None) -> list:
    clauses = []
    for option in options:
        column = _collated(_SORT_COLUMNS[option.field.value], collation)
        clauses.append(column.desc() if option.dir == "desc" else column.asc())
    # Same tie-breakers as the in-memory sort so both backends agree and offset windows never overlap.
    clauses.extend([_collated(GemRow.name, collation).asc(), GemRow.id.asc()])
    return clauses


def _to_gem(row: GemRow) -> Gem:
    return Gem.model_validate(row)


class SqlGemService:
    backend_name = "sql"

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def _run(self, operation: str, fn: Callable[[Session], object]):
        try:
            with self.session_factory() as db:
                return fn(db)
        except SQLAlchemyError as exc:
            _LOG.error("Failed to %s: %s", operation, exc)
            raise StoreError(operation, str(exc)) from exc

    def count(self, filters: GemFilters) -> int:
        stmt = select(func.count()).select_from(GemRow).where(*filter_conditions(filters))
        return int(self._run("count gems", lambda db: db.scalar(stmt)) or 0)

    def fetch_page(self, filters: GemFilters, sort: Sequence[SortOption], offset: int, limit: int) -> List[Gem]:
        def _fetch(db: Session):
            collation = binary_collation(db.get_bind().dialect.name)
            stmt = (
                select(GemRow)
                .where(*filter_conditions(filters))
                .order_by(*order_clauses(sort, collation))
                .offset(offset)
                .limit(limit)
            )
            return [_to_gem(row) for row in db.scalars(stmt).all()]

        return self._run("retrieve gems", _fetch)

    def list_gems(self, filters: GemFilters, pagination: PaginationParams) -> Page[Gem]:
        filters = apply_filter_expression(filters)
        _LOG.info("Fetching gems with filters %s", filters.model_dump(exclude_none=True))
        sort = resolve_sort(filters.order_by)
        data, info = paginate_pushdown(
            lambda: self.count(filters),
            lambda offset, limit: self.fetch_page(filters, sort, offset, limit),
            pagination.cursor,
            pagination.limit,
        )
        return Page[Gem](data=data, pagination=info)

    def get_gem(self, gem_id: str) -> Optional[Gem]:
        uid = parse_gem_id(gem_id)
        if uid is None:
            return None

        def _get(db: Session):
            row = db.get(GemRow, uid)
            return _to_gem(row) if row else None

        return self._run("retrieve gem", _get)

    def get_gem_by_name(self, name: str) -> Optional[Gem]:
        def _get(db: Session):
            row = db.scalars(select(GemRow).where(GemRow.name == name).order_by(GemRow.created_at.asc())).first()
            return _to_gem(row) if row else None

        return self._run("retrieve gem", _get)

    def add_gem(self, gem: Gem) -> Gem:
        def _add(db: Session):
            row = GemRow(id=gem.id, **{field: getattr(gem, field) for field in _WRITABLE_FIELDS})
            db.add(row)
            db.commit()
            db.refresh(row)
            return _to_gem(row)

        created = self._run("create gem", _add)
        _LOG.info("Gem added: %s", created.name)
        return created

    def _update_row(self, db: Session, row: Optional[GemRow], gem: Gem) -> Optional[Gem]:
        if row is None:
            return None
        for field in _WRITABLE_FIELDS:
            setattr(row, field, getattr(gem, field))
        db.add(row)
        db.commit()
        db.refresh(row)
        return _to_gem(row)

    def update_gem(self, gem_id: str, gem: Gem) -> Optional[Gem]:
        uid = parse_gem_id(gem_id)
        if uid is None:
            return None
        updated = self._run("update gem", lambda db: self._update_row(db, db.get(GemRow, uid), gem))
        if updated is None:
            _LOG.warning("Gem not found for update: %s", gem_id)
        return updated

    def update_gem_by_name(self, name: str, gem: Gem) -> Optional[Gem]:
        def _update(db: Session):
            row = db.scalars(select(GemRow).where(GemRow.name == name).order_by(GemRow.created_at.asc())).first()
            return self._update_row(db, row, gem)

        updated = self._run("update gem", _update)
        if updated is None:
            _LOG.warning("Gem not found for update by name: %s", name)
        return updated

    def delete_gem(self, gem_id: str) -> bool:
        uid = parse_gem_id(gem_id)
        if uid is None:
            return False

        def _delete(db: Session):
            result = db.execute(delete(GemRow).where(GemRow.id == uid))
            db.commit()
            return result.rowcount > 0

        deleted = self._run("delete gem", _delete)
        if not deleted:
            _LOG.warning("Gem not found for deletion: %s", gem_id)
        return deleted

    def _distinct(self, column) -> List[str]:
        def _values(db: Session):
            # DISTINCT needs the ORDER BY expression in the select list.
            value = _collated(column, binary_collation(db.get_bind().dialect.name))
            stmt = select(value).distinct().where(column.is_not(None), column != "").order_by(value.asc())
            return [str(item) for item in db.scalars(stmt).all()]

        return self._run("retrieve metadata", _values)

    def unique_colors(self) -> List[str]:
        return self._distinct(GemRow.color)

    def unique_categories(self) -> List[str]:
        return self._distinct(GemRow.category)

    def unique_formulas(self) -> List[str]:
        return self._distinct(GemRow.chemical_formula)

    def search_gems(self, term: str) -> List[Gem]:
        _LOG.info("Searching gems with term %r", term)
        return self.fetch_page(GemFilters(search=term), DEFAULT_SORT, 0, settings.SEARCH_RESULT_LIMIT)

    def is_available(self) -> bool:
        try:
            self._run("check database", lambda db: db.execute(select(1)).scalar())
            return True
        except StoreError:
            return False
