from __future__ import annotations

import logging
from contextlib import contextmanager
from threading import Condition, Lock
from typing import Iterator, List, Optional

from app.core.config import settings
from app.schemas.gems import Gem, GemFilters
from app.schemas.pagination import Page, PaginationParams
from app.services.gem_data_source import GemDataSource
from app.services.gem_filters import apply_filter_expression, matches_filters, matches_search
from app.services.gem_service import parse_gem_id
from app.services.gem_sort import DEFAULT_SORT, resolve_sort, sort_gems
from app.services.pagination import paginate_sequence

_LOG = logging.getLogger("app.gems.memory")


class ReadWriteLock:
    """Many readers or one writer; waiting writers block new readers."""

    def __init__(self):
        self._cond = Condition(Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class GemRecordCache:
    """Lazily loaded record set shared by all requests of one service."""

    def __init__(self, source: GemDataSource):
        self.source = source
        self.lock = ReadWriteLock()
        self._gems: List[Gem] = []
        self._loaded = False
        self._loaded_lock = ReadWriteLock()

    @property
    def loaded(self) -> bool:
        with self._loaded_lock.read():
            return self._loaded

    def ensure_loaded(self) -> None:
        if self.loaded:
            return
        gems = self.source.load_all()
        with self.lock.write(), self._loaded_lock.write():
            # A concurrent loader may have won and writes may have landed since.
            if self._loaded:
                return
            self._gems = gems
            self._loaded = True

    @contextmanager
    def reading(self) -> Iterator[List[Gem]]:
        self.ensure_loaded()
        with self.lock.read():
            yield self._gems

    @contextmanager
    def writing(self) -> Iterator[List[Gem]]:
        """Yield a working copy; it is persisted and swapped in on clean exit."""
        self.ensure_loaded()
        with self.lock.write():
            working = list(self._gems)
            yield working
            if working != self._gems:
                self.source.persist(working)
                self._gems = working


def _unique_sorted(values: List[str]) -> List[str]:
    return sorted({value for value in values if value})


class InMemoryGemService:
    backend_name = "memory"

    def __init__(self, source: GemDataSource, records: GemRecordCache | None = None):
        self.records = records or GemRecordCache(source)

    def list_gems(self, filters: GemFilters, pagination: PaginationParams) -> Page[Gem]:
        filters = apply_filter_expression(filters)
        with self.records.reading() as gems:
            candidates = [gem for gem in gems if matches_filters(gem, filters)]
        ordered = sort_gems(candidates, resolve_sort(filters.order_by))
        data, info = paginate_sequence(ordered, pagination.cursor, pagination.limit)
        return Page[Gem](data=data, pagination=info)

    def get_gem(self, gem_id: str) -> Optional[Gem]:
        uid = parse_gem_id(gem_id)
        if uid is None:
            return None
        with self.records.reading() as gems:
            return next((gem for gem in gems if gem.id == uid), None)

    def get_gem_by_name(self, name: str) -> Optional[Gem]:
        with self.records.reading() as gems:
            return next((gem for gem in gems if gem.name == name), None)

    def add_gem(self, gem: Gem) -> Gem:
        with self.records.writing() as gems:
            gems.append(gem)
        _LOG.info("Added gem %s (%s)", gem.name, gem.id)
        return gem

    def _replace(self, gems: List[Gem], index: int, gem: Gem) -> Gem:
        updated = gem.model_copy(update={"id": gems[index].id})
        gems[index] = updated
        return updated

    def update_gem(self, gem_id: str, gem: Gem) -> Optional[Gem]:
        uid = parse_gem_id(gem_id)
        if uid is None:
            return None
        with self.records.writing() as gems:
            index = next((i for i, item in enumerate(gems) if item.id == uid), None)
            if index is None:
                _LOG.warning("Gem not found for update: %s", gem_id)
                return None
            updated = self._replace(gems, index, gem)
        _LOG.info("Updated gem %s", gem_id)
        return updated

    def update_gem_by_name(self, name: str, gem: Gem) -> Optional[Gem]:
        with self.records.writing() as gems:
            index = next((i for i, item in enumerate(gems) if item.name == name), None)
            if index is None:
                _LOG.warning("Gem not found for update by name: %s", name)
                return None
            updated = self._replace(gems, index, gem)
        _LOG.info("Updated gem by name %s", name)
        return updated

    def delete_gem(self, gem_id: str) -> bool:
        uid = parse_gem_id(gem_id)
        if uid is None:
            return False
        with self.records.writing() as gems:
            index = next((i for i, item in enumerate(gems) if item.id == uid), None)
            if index is None:
                _LOG.warning("Gem not found for deletion: %s", gem_id)
                return False
            del gems[index]
        _LOG.info("Deleted gem %s", gem_id)
        return True

    def unique_colors(self) -> List[str]:
        with self.records.reading() as gems:
            return _unique_sorted([gem.color for gem in gems])

    def unique_categories(self) -> List[str]:
        with self.records.reading() as gems:
            return _unique_sorted([gem.category for gem in gems])

    def unique_formulas(self) -> List[str]:
        with self.records.reading() as gems:
            return _unique_sorted([gem.chemical_formula for gem in gems])

    def search_gems(self, term: str) -> List[Gem]:
        with self.records.reading() as gems:
            found = [gem for gem in gems if matches_search(gem, term)]
        return sort_gems(found, DEFAULT_SORT)[: settings.SEARCH_RESULT_LIMIT]

    def is_available(self) -> bool:
        return self.records.source.is_available()
