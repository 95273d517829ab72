from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, String, func, text
from sqlalchemy.orm import Mapped, mapped_column

from identity_api.db.pg.base import Base

LINK_PRECEDENCES = ("primary", "secondary")

_ACTIVE = text("deleted_at IS NULL")


class Contact(Base):
    __tablename__ = "contact"
    __table_args__ = (
        CheckConstraint("link_precedence IN ('primary', 'secondary')", name="ck_contact_link_precedence"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    phone_number: Mapped[str | None] = mapped_column(String(20), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    linked_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("contact.id"), nullable=True)
    link_precedence: Mapped[str] = mapped_column(String(10), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


Index("idx_contact_email", Contact.email, postgresql_where=_ACTIVE, sqlite_where=_ACTIVE)
Index("idx_contact_phone", Contact.phone_number, postgresql_where=_ACTIVE, sqlite_where=_ACTIVE)
Index("idx_contact_linked_id", Contact.linked_id, postgresql_where=_ACTIVE, sqlite_where=_ACTIVE)
