from __future__ import annotations

import logging
import uuid
from typing import Optional

from ..models import GuestLink, Party, format_created_at
from ..storage import Collection, DataStore
from ..validation import PartyDraft
from .assignments import AssignmentEngine

logger = logging.getLogger(__name__)


class PartyNotFound(LookupError):
    pass


class GuestNotInParty(LookupError):
    pass


class GuestLinkNotFound(LookupError):
    pass


def create_party(
    store: DataStore,
    draft: PartyDraft,
    base_url: str,
    tz_name: str,
) -> tuple[Party, dict[str, str]]:
    """Store a new party and mint one private link per guest.

    Returns the party and {guest_name: url}.
    """
    party = Party(
        id=str(uuid.uuid4()),
        name=draft.name,
        budget=draft.budget,
        criteria=draft.criteria,
        guests=draft.guests,
        created_at=format_created_at(tz_name),
    )
    store.set(Collection.PARTIES, party.id, party.to_dict())

    base_url = base_url.rstrip("/")
    guest_urls: dict[str, str] = {}
    for guest in party.guests:
        link = GuestLink(token=str(uuid.uuid4()), party_id=party.id, guest_name=guest)
        store.set(Collection.GUEST_LINKS, link.token, link.to_dict())
        guest_urls[guest] = f"{base_url}/guest/{link.token}"

    logger.info("Party created: %s (%d guests)", party.id, len(party.guests))
    store.save()
    return party, guest_urls


def get_party(store: DataStore, party_id: str) -> Optional[Party]:
    data = store.get(Collection.PARTIES, party_id)
    return Party.from_dict(data) if data is not None else None


def get_guest_link(store: DataStore, token: str) -> Optional[GuestLink]:
    data = store.get(Collection.GUEST_LINKS, token)
    return GuestLink.from_dict(token, data) if data is not None else None


def assignment_for_guest(
    engine: AssignmentEngine,
    store: DataStore,
    party_id: str,
    guest_name: str,
) -> str:
    party = get_party(store, party_id)
    if party is None:
        raise PartyNotFound(party_id)
    if not party.has_guest(guest_name):
        raise GuestNotInParty(guest_name)
    return engine.assignment_for(party.id)[guest_name]


def guest_view(engine: AssignmentEngine, store: DataStore, token: str) -> dict:
    """What a guest sees through their private link: party info and their own draw only."""
    link = get_guest_link(store, token)
    if link is None:
        raise GuestLinkNotFound(token)
    party = get_party(store, link.party_id)
    if party is None:
        raise PartyNotFound(link.party_id)

    table = engine.assignment_for(party.id)
    return {
        "party": {
            "name": party.name,
            "budget": party.budget,
            "criteria": party.criteria,
        },
        "guestName": link.guest_name,
        "assignment": table[link.guest_name],
    }
