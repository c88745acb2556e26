from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, List, Protocol

from pydantic import ValidationError

from app.core.errors import DataSourceError
from app.schemas.gems import Gem
from app.services.gem_filters import default_image_path

_LOG = logging.getLogger("app.gems.data_source")

DEFAULT_DESCRIPTION = "Una gema con propiedades místicas especiales."
DEFAULT_CATEGORY = "Mineral"
DEFAULT_COLOR = "Desconocido"
DEFAULT_FORMULA = "N/A"


class GemDataSource(Protocol):
    source_type: str

    def load_all(self) -> List[Gem]:
        ...

    def persist(self, gems: List[Gem]) -> None:
        ...

    def is_available(self) -> bool:
        ...


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def fill_gem_defaults(gem: Gem) -> Gem:
    updates = {}
    if not gem.image or gem.image == "images/.jpg":
        updates["image"] = default_image_path(gem.name)
    if not gem.magical_description:
        updates["magical_description"] = DEFAULT_DESCRIPTION
    if not gem.category:
        updates["category"] = DEFAULT_CATEGORY
    if not gem.color:
        updates["color"] = DEFAULT_COLOR
    if not gem.chemical_formula:
        updates["chemical_formula"] = DEFAULT_FORMULA
    return gem.model_copy(update=updates) if updates else gem


def _recover_gem(raw: dict) -> Gem | None:
    name = _text(raw.get("name"))
    if not name:
        return None
    return Gem(
        name=name,
        image=_text(raw.get("image")),
        magical_description=_text(raw.get("magical_description")),
        category=_text(raw.get("category")),
        color=_text(raw.get("color")),
        chemical_formula=_text(raw.get("chemical_formula")),
    )


class JsonGemDataSource:
    source_type = "JSON File"

    def __init__(self, file_path: str | Path):
        self.file_path = Path(file_path)

    def is_available(self) -> bool:
        return self.file_path.exists()

    def load_all(self) -> List[Gem]:
        _LOG.info("Loading gems from JSON file %s", self.file_path)
        if not self.file_path.exists():
            _LOG.error("JSON file not found: %s", self.file_path)
            return []
        try:
            content = self.file_path.read_text(encoding="utf-8")
        except OSError as exc:
            raise DataSourceError("load gems", f"Cannot read {self.file_path}: {exc}") from exc
        try:
            raw_items = json.loads(content)
        except ValueError as exc:
            raise DataSourceError("load gems", f"Failed to parse JSON: {exc}") from exc
        if not isinstance(raw_items, list):
            raise DataSourceError("load gems", "Failed to parse JSON: top-level value is not a list")

        gems: List[Gem] = []
        for index, raw in enumerate(raw_items):
            if not isinstance(raw, dict):
                _LOG.warning("Skipping gem at index %s: not an object", index)
                continue
            try:
                gem = Gem.model_validate(raw)
            except ValidationError as exc:
                gem = _recover_gem(raw)
                if gem is None:
                    _LOG.warning("Skipping gem at index %s: %s", index, exc.errors()[0].get("msg"))
                    continue
                _LOG.info("Recovered partial gem data for %s", gem.name)
            if not gem.name.strip():
                _LOG.warning("Skipping gem at index %s due to empty name", index)
                continue
            gems.append(fill_gem_defaults(gem))
        _LOG.info("Loaded %s gems from %s", len(gems), self.file_path)
        return gems

    def persist(self, gems: List[Gem]) -> None:
        _LOG.info("Saving %s gems to JSON file %s", len(gems), self.file_path)
        payload = json.dumps([gem.model_dump(mode="json") for gem in gems], ensure_ascii=False, indent=2)
        try:
            self.file_path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.file_path.parent, prefix=".gems-", suffix=".json")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(payload)
                os.replace(tmp_name, self.file_path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise DataSourceError("save gems", f"Cannot write {self.file_path}: {exc}") from exc
