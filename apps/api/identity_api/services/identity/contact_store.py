from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Literal

from sqlalchemy import or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from identity_api.core.errors import RETRYABLE_SQLSTATES, MalformedContactRow, StoreError
from identity_api.db.pg.models import LINK_PRECEDENCES, Contact

LinkPrecedence = Literal["primary", "secondary"]


@dataclass(frozen=True)
class ContactRecord:
    id: int
    email: str | None
    phone_number: str | None
    linked_id: int | None
    link_precedence: LinkPrecedence
    created_at: datetime
    updated_at: datetime
    deleted_at: datetime | None = None

    @property
    def is_primary(self) -> bool:
        return self.link_precedence == "primary"


def contact_from_row(row: Contact) -> ContactRecord:
    """Map an ORM row to a ContactRecord, rejecting rows that break the link model."""
    if row.id is None:
        raise MalformedContactRow("contact row has no id", operation="map_row")
    if row.link_precedence not in LINK_PRECEDENCES:
        raise MalformedContactRow(
            f"contact {row.id} has invalid link_precedence {row.link_precedence!r}",
            operation="map_row",
        )
    if row.link_precedence == "secondary" and row.linked_id is None:
        raise MalformedContactRow(f"secondary contact {row.id} has no linked_id", operation="map_row")
    if row.link_precedence == "primary" and row.linked_id is not None:
        raise MalformedContactRow(
            f"primary contact {row.id} is linked to {row.linked_id}",
            operation="map_row",
        )
    if row.created_at is None or row.updated_at is None:
        raise MalformedContactRow(f"contact {row.id} is missing timestamps", operation="map_row")
    return ContactRecord(
        id=row.id,
        email=row.email,
        phone_number=row.phone_number,
        linked_id=row.linked_id,
        link_precedence=row.link_precedence,  # type: ignore[arg-type]
        created_at=row.created_at,
        updated_at=row.updated_at,
        deleted_at=row.deleted_at,
    )


def _sqlstate(exc: SQLAlchemyError) -> str | None:
    orig = getattr(exc, "orig", None)
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


@contextmanager
def store_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        raise StoreError(
            f"{operation} failed: {exc}",
            operation=operation,
            retryable=_sqlstate(exc) in RETRYABLE_SQLSTATES,
        ) from exc


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ContactStore:
    """Contact persistence scoped to one session; the caller owns commit/rollback."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def _active(self):
        return select(Contact).where(Contact.deleted_at.is_(None)).execution_options(populate_existing=True)

    def find_connected_component(self, email: str | None, phone_number: str | None) -> list[ContactRecord]:
        matchers = []
        if email is not None:
            matchers.append(Contact.email == email)
        if phone_number is not None:
            matchers.append(Contact.phone_number == phone_number)
        if not matchers:
            return []

        with store_errors("find_connected_component"):
            found: dict[int, Contact] = {row.id: row for row in self.db.scalars(self._active().where(or_(*matchers)))}
            frontier = set(found)
            # Only unseen ids enter the next frontier, so malformed links cannot loop.
            while frontier:
                parent_ids = {found[i].linked_id for i in frontier if found[i].linked_id is not None}
                conditions = [Contact.linked_id.in_(sorted(frontier))]
                if parent_ids:
                    conditions.append(Contact.id.in_(sorted(parent_ids)))
                    conditions.append(Contact.linked_id.in_(sorted(parent_ids)))
                rows = self.db.scalars(self._active().where(or_(*conditions))).all()
                frontier = set()
                for row in rows:
                    if row.id not in found:
                        found[row.id] = row
                        frontier.add(row.id)

        records = [contact_from_row(row) for row in found.values()]
        return sorted(records, key=lambda record: (record.created_at, record.id))

    def insert_contact(
        self,
        email: str | None,
        phone_number: str | None,
        linked_id: int | None,
        link_precedence: LinkPrecedence,
    ) -> ContactRecord:
        now = _utcnow()
        row = Contact(
            email=email,
            phone_number=phone_number,
            linked_id=linked_id,
            link_precedence=link_precedence,
            created_at=now,
            updated_at=now,
        )
        with store_errors("insert_contact"):
            self.db.add(row)
            self.db.flush()
        return contact_from_row(row)

    def repoint_to_primary(self, contact_id: int, new_primary_id: int) -> None:
        with store_errors("repoint_to_primary"):
            self.db.execute(
                update(Contact)
                .where(Contact.id == contact_id, Contact.deleted_at.is_(None))
                .values(linked_id=new_primary_id, link_precedence="secondary", updated_at=_utcnow())
                .execution_options(synchronize_session=False)
            )

    def repoint_dependents(self, old_primary_id: int, new_primary_id: int) -> None:
        with store_errors("repoint_dependents"):
            self.db.execute(
                update(Contact)
                .where(Contact.linked_id == old_primary_id, Contact.deleted_at.is_(None))
                .values(linked_id=new_primary_id, updated_at=_utcnow())
                .execution_options(synchronize_session=False)
            )
