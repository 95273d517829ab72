"""Identity reconciliation over the contact store.

Given an (email, phone number) observation the resolver loads the identity
group connected to it, then either creates a new primary, merges several
primaries into the oldest one, or records the observation as a new secondary,
and finally projects the group into the consolidated identity.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from identity_api.core.errors import InconsistentState, InvalidRequest
from identity_api.services.identity.contact_store import ContactRecord, ContactStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IdentifyResult:
    primary_contact_id: int
    emails: list[str] = field(default_factory=list)
    phone_numbers: list[str] = field(default_factory=list)
    secondary_contact_ids: list[int] = field(default_factory=list)


def _clean(value: str | None) -> str | None:
    # Empty strings count as absent; anything else is matched exactly.
    return value or None


def _ordered_unique(first: str | None, values: Iterable[str | None]) -> list[str]:
    ordered: list[str] = []
    seen: set[str] = set()
    for value in (first, *values):
        if value is None or value in seen:
            continue
        seen.add(value)
        ordered.append(value)
    return ordered


def _primaries(group: Sequence[ContactRecord]) -> list[ContactRecord]:
    return sorted((c for c in group if c.is_primary), key=lambda c: (c.created_at, c.id))


def project(group: Sequence[ContactRecord]) -> IdentifyResult:
    primaries = [c for c in group if c.is_primary]
    if len(primaries) != 1:
        raise InconsistentState(
            f"identity group {[c.id for c in group]} has {len(primaries)} primary contacts"
        )
    primary = primaries[0]
    return IdentifyResult(
        primary_contact_id=primary.id,
        emails=_ordered_unique(primary.email, (c.email for c in group)),
        phone_numbers=_ordered_unique(primary.phone_number, (c.phone_number for c in group)),
        secondary_contact_ids=[c.id for c in group if c.id != primary.id],
    )


def needs_new_secondary(group: Sequence[ContactRecord], email: str | None, phone_number: str | None) -> bool:
    # A single identifier is already represented once anything matches it.
    if email is None or phone_number is None:
        return False
    return not any(c.email == email and c.phone_number == phone_number for c in group)


class IdentityResolver:
    def __init__(self, store: ContactStore) -> None:
        self.store = store

    def identify(self, email: str | None, phone_number: str | None) -> IdentifyResult:
        email = _clean(email)
        phone_number = _clean(phone_number)
        if email is None and phone_number is None:
            raise InvalidRequest("Either email or phoneNumber must be provided")

        group = self.store.find_connected_component(email, phone_number)
        if not group:
            created = self.store.insert_contact(email, phone_number, None, "primary")
            logger.info("identity_created_primary", extra={"contact_id": created.id})
            return project([created])

        primaries = _primaries(group)
        if not primaries:
            raise InconsistentState(f"identity group {[c.id for c in group]} has no primary contact")

        if len(primaries) > 1:
            survivor = primaries[0]
            for demoted in primaries[1:]:
                self.store.repoint_dependents(demoted.id, survivor.id)
                self.store.repoint_to_primary(demoted.id, survivor.id)
            logger.info(
                "identity_merged_primaries",
                extra={"primary_contact_id": survivor.id, "demoted_ids": [c.id for c in primaries[1:]]},
            )
            group = self.store.find_connected_component(email, phone_number)
        elif needs_new_secondary(group, email, phone_number):
            primary = primaries[0]
            created = self.store.insert_contact(email, phone_number, primary.id, "secondary")
            logger.info(
                "identity_created_secondary",
                extra={"contact_id": created.id, "primary_contact_id": primary.id},
            )
            group = self.store.find_connected_component(email, phone_number)

        return project(group)
