from __future__ import annotations

from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import OperationalError

from identity_api.core.errors import InconsistentState, MalformedContactRow, StoreError
from identity_api.db.pg.base import Base
from identity_api.db.pg.models import Contact
from identity_api.db.pg.session import SessionLocal, engine
from identity_api.services.identity.contact_store import ContactStore, contact_from_row
from identity_api.services.identity.resolver import IdentityResolver

BASE_TIME = datetime(2024, 1, 1, 9, 0, 0)


def reset_db() -> None:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)


def add_contact(db, minute: int, **fields) -> Contact:  # noqa: ANN001
    fields.setdefault("link_precedence", "primary")
    created_at = BASE_TIME + timedelta(minutes=minute)
    row = Contact(created_at=created_at, updated_at=created_at, **fields)
    db.add(row)
    db.flush()
    return row


def test_find_connected_component_follows_links_both_ways() -> None:
    reset_db()
    db = SessionLocal()
    try:
        primary = add_contact(db, 0, email="lorraine@hillvalley.edu", phone_number="123456")
        secondary = add_contact(
            db, 1, email="mcfly@hillvalley.edu", phone_number="123456", linked_id=primary.id, link_precedence="secondary"
        )
        other = add_contact(db, 2, email="biff@hillvalley.edu", phone_number="999999")
        db.commit()

        store = ContactStore(db)
        by_secondary_email = store.find_connected_component("mcfly@hillvalley.edu", None)
        by_primary_phone = store.find_connected_component(None, "123456")

        assert [c.id for c in by_secondary_email] == [primary.id, secondary.id]
        assert [c.id for c in by_primary_phone] == [primary.id, secondary.id]
        assert other.id not in {c.id for c in by_secondary_email}
    finally:
        db.close()


def test_find_connected_component_reaches_siblings_of_a_deleted_primary() -> None:
    reset_db()
    db = SessionLocal()
    try:
        primary = add_contact(db, 0, email="doc@hillvalley.edu", deleted_at=BASE_TIME + timedelta(days=1))
        first = add_contact(
            db, 1, email="emmett@hillvalley.edu", linked_id=primary.id, link_precedence="secondary"
        )
        second = add_contact(db, 2, phone_number="1955", linked_id=primary.id, link_precedence="secondary")
        db.commit()

        group = ContactStore(db).find_connected_component("emmett@hillvalley.edu", None)

        assert [c.id for c in group] == [first.id, second.id]
    finally:
        db.close()


def test_find_connected_component_ignores_soft_deleted_and_missing_identifiers() -> None:
    reset_db()
    db = SessionLocal()
    try:
        add_contact(db, 0, email="gone@example.com", deleted_at=BASE_TIME)
        db.commit()

        store = ContactStore(db)
        assert store.find_connected_component("gone@example.com", None) == []
        assert store.find_connected_component("nobody@example.com", "000") == []
        assert store.find_connected_component(None, None) == []
    finally:
        db.close()


def test_find_connected_component_terminates_on_cyclic_links() -> None:
    reset_db()
    db = SessionLocal()
    try:
        first = add_contact(db, 0, email="a@x.com", link_precedence="secondary")
        second = add_contact(db, 1, phone_number="222", link_precedence="secondary")
        looped = add_contact(db, 2, email="self@x.com", link_precedence="secondary")
        first.linked_id = second.id
        second.linked_id = first.id
        looped.linked_id = looped.id
        db.commit()

        store = ContactStore(db)
        assert [c.id for c in store.find_connected_component("a@x.com", None)] == [first.id, second.id]
        assert [c.id for c in store.find_connected_component(None, "222")] == [first.id, second.id]
        assert [c.id for c in store.find_connected_component("self@x.com", None)] == [looped.id]

        resolver = IdentityResolver(store)
        with pytest.raises(InconsistentState):
            resolver.identify("a@x.com", None)
        with pytest.raises(InconsistentState):
            resolver.identify("self@x.com", None)
    finally:
        db.close()


def test_find_connected_component_orders_by_created_at_then_id() -> None:
    reset_db()
    db = SessionLocal()
    try:
        later = add_contact(db, 5, email="tie@example.com")
        tied_a = add_contact(db, 1, phone_number="42", linked_id=later.id, link_precedence="secondary")
        tied_b = add_contact(db, 1, email="tie@example.com", linked_id=later.id, link_precedence="secondary")
        db.commit()

        group = ContactStore(db).find_connected_component("tie@example.com", None)

        assert [c.id for c in group] == [tied_a.id, tied_b.id, later.id]
    finally:
        db.close()


def test_insert_contact_stamps_both_timestamps() -> None:
    reset_db()
    db = SessionLocal()
    try:
        record = ContactStore(db).insert_contact("marty@hillvalley.edu", None, None, "primary")
        db.commit()

        assert record.id is not None
        assert record.is_primary
        assert record.linked_id is None
        assert record.created_at == record.updated_at
        assert db.get(Contact, record.id).email == "marty@hillvalley.edu"
    finally:
        db.close()


def test_repoint_operations_flatten_a_demoted_primary() -> None:
    reset_db()
    db = SessionLocal()
    try:
        survivor = add_contact(db, 0, email="old@example.com")
        demoted = add_contact(db, 1, phone_number="555")
        dependent = add_contact(db, 2, email="dep@example.com", linked_id=demoted.id, link_precedence="secondary")
        db.commit()

        store = ContactStore(db)
        store.repoint_dependents(demoted.id, survivor.id)
        store.repoint_to_primary(demoted.id, survivor.id)
        db.commit()

        group = store.find_connected_component("old@example.com", None)
        by_id = {c.id: c for c in group}
        assert by_id[demoted.id].link_precedence == "secondary"
        assert by_id[demoted.id].linked_id == survivor.id
        assert by_id[dependent.id].linked_id == survivor.id
        assert by_id[dependent.id].updated_at > by_id[dependent.id].created_at
        assert by_id[survivor.id].is_primary
    finally:
        db.close()


def test_contact_from_row_rejects_unknown_precedence() -> None:
    row = Contact(id=7, link_precedence="tertiary", created_at=BASE_TIME, updated_at=BASE_TIME)

    with pytest.raises(MalformedContactRow) as excinfo:
        contact_from_row(row)

    assert isinstance(excinfo.value, StoreError)
    assert "tertiary" in str(excinfo.value)


def test_contact_from_row_rejects_secondary_without_link() -> None:
    row = Contact(id=8, link_precedence="secondary", created_at=BASE_TIME, updated_at=BASE_TIME)

    with pytest.raises(MalformedContactRow):
        contact_from_row(row)


def test_store_wraps_engine_failures(monkeypatch) -> None:
    reset_db()
    db = SessionLocal()
    try:

        def _boom(*args, **kwargs):  # noqa: ANN002, ANN003
            raise OperationalError("UPDATE contact", {}, Exception("connection refused"))

        monkeypatch.setattr(db, "execute", _boom)

        with pytest.raises(StoreError) as excinfo:
            ContactStore(db).repoint_dependents(1, 2)

        assert excinfo.value.operation == "repoint_dependents"
        assert excinfo.value.retryable is False
        assert isinstance(excinfo.value.__cause__, OperationalError)
    finally:
        db.close()


def test_store_flags_serialization_failures_as_retryable(monkeypatch) -> None:
    reset_db()
    db = SessionLocal()
    try:

        class _SerializationFailure(Exception):
            sqlstate = "40001"

        def _conflict(*args, **kwargs):  # noqa: ANN002, ANN003
            raise OperationalError("UPDATE contact", {}, _SerializationFailure("could not serialize access"))

        monkeypatch.setattr(db, "execute", _conflict)

        with pytest.raises(StoreError) as excinfo:
            ContactStore(db).repoint_to_primary(1, 2)

        assert excinfo.value.retryable is True
    finally:
        db.close()
