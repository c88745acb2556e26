"""create gems
Revision ID: 0001_create_gems
Revises:
Create Date: 2026-10-17
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_create_gems"
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    op.create_table(
        "gems",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("image", sa.String(length=500), nullable=False, server_default=""),
        sa.Column("magical_description", sa.Text(), nullable=False, server_default=""),
        sa.Column("category", sa.String(length=200), nullable=False, server_default=""),
        sa.Column("color", sa.String(length=200), nullable=False, server_default=""),
        sa.Column("chemical_formula", sa.String(length=200), nullable=False, server_default=""),
    )
    op.create_index("ix_gems_name", "gems", ["name"])
    op.create_index("ix_gems_category", "gems", ["category"])
    op.create_index("ix_gems_color", "gems", ["color"])

def downgrade():
    op.drop_index("ix_gems_color", table_name="gems")
    op.drop_index("ix_gems_category", table_name="gems")
    op.drop_index("ix_gems_name", table_name="gems")
    op.drop_table("gems")
