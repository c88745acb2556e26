from __future__ import annotations

import sys
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.session import SessionLocal
from app.models.gem import GemRow
from app.schemas.gems import Gem
from app.services.gem_data_source import JsonGemDataSource

_FIELDS = ("image", "magical_description", "category", "color", "chemical_formula")


def upsert_gems(db: Session, gems: list[Gem]) -> tuple[int, int]:
    created = 0
    updated = 0

    for gem in gems:
        row = db.query(GemRow).filter(GemRow.name == gem.name).first()
        if row is None:
            db.add(GemRow(id=gem.id, name=gem.name, **{field: getattr(gem, field) for field in _FIELDS}))
            created += 1
            continue

        changed = False
        for field in _FIELDS:
            value = getattr(gem, field)
            if getattr(row, field) != value:
                setattr(row, field, value)
                changed = True

        if changed:
            row.updated_at = datetime.now(timezone.utc)
            db.add(row)
            updated += 1

    db.commit()
    return created, updated


def main() -> None:
    path = sys.argv[1] if len(sys.argv) > 1 else settings.GEMS_DATA_FILE
    gems = JsonGemDataSource(path).load_all()
    db = SessionLocal()
    try:
        created, updated = upsert_gems(db, gems)
        total = db.query(GemRow).count()
    finally:
        db.close()
    print(f"gems import done: created={created}, updated={updated}, total={total}")


if __name__ == "__main__":
    main()
