from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column
from app.db.session import Base
from app.models.common import UUIDMixin, TimestampMixin

class GemRow(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "gems"
    name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    image: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    magical_description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    category: Mapped[str] = mapped_column(String(200), nullable=False, default="", index=True)
    color: Mapped[str] = mapped_column(String(200), nullable=False, default="", index=True)
    chemical_formula: Mapped[str] = mapped_column(String(200), nullable=False, default="")
