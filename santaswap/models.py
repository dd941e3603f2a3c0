from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from zoneinfo import ZoneInfo


CREATED_AT_FORMAT = "%d/%m/%Y, %H:%M:%S"


def format_created_at(tz_name: str) -> str:
    return datetime.now(ZoneInfo(tz_name)).strftime(CREATED_AT_FORMAT)


@dataclass(frozen=True)
class Party:
    """A Secret Santa party. Guests are ordered, unique and fixed at creation."""

    id: str
    name: str
    budget: str
    criteria: str
    guests: tuple[str, ...]
    created_at: str

    def has_guest(self, name: str) -> bool:
        return name in self.guests

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "budget": self.budget,
            "criteria": self.criteria,
            "guests": list(self.guests),
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Party":
        return cls(
            id=data["id"],
            name=data["name"],
            budget=data.get("budget", ""),
            criteria=data.get("criteria", ""),
            guests=tuple(data["guests"]),
            created_at=data.get("createdAt", ""),
        )


@dataclass(frozen=True)
class GuestLink:
    """Private access token for one guest of one party."""

    token: str
    party_id: str
    guest_name: str

    def to_dict(self) -> dict:
        return {"partyId": self.party_id, "guestName": self.guest_name}

    @classmethod
    def from_dict(cls, token: str, data: dict) -> "GuestLink":
        return cls(token=token, party_id=data["partyId"], guest_name=data["guestName"])
