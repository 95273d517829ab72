"""contact table

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None

_ACTIVE = sa.text("deleted_at IS NULL")


def upgrade() -> None:
    op.create_table(
        "contact",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("phone_number", sa.String(length=20), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("linked_id", sa.Integer(), nullable=True),
        sa.Column("link_precedence", sa.String(length=10), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("link_precedence IN ('primary', 'secondary')", name="ck_contact_link_precedence"),
        sa.ForeignKeyConstraint(["linked_id"], ["contact.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_contact_email", "contact", ["email"], postgresql_where=_ACTIVE, sqlite_where=_ACTIVE)
    op.create_index("idx_contact_phone", "contact", ["phone_number"], postgresql_where=_ACTIVE, sqlite_where=_ACTIVE)
    op.create_index("idx_contact_linked_id", "contact", ["linked_id"], postgresql_where=_ACTIVE, sqlite_where=_ACTIVE)


def downgrade() -> None:
    op.drop_index("idx_contact_linked_id", table_name="contact")
    op.drop_index("idx_contact_phone", table_name="contact")
    op.drop_index("idx_contact_email", table_name="contact")
    op.drop_table("contact")
