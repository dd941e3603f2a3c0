from __future__ import annotations

import re
from dataclasses import dataclass

MIN_GUESTS = 2
MAX_GUESTS = 50

PARTY_NAME_MAX = 100
GUEST_NAME_MAX = 50
BUDGET_MAX = 50
CRITERIA_MAX = 500

_UNSAFE_CHARS = re.compile(r"[<>\"'&]")


class ValidationError(ValueError):
    pass


@dataclass(frozen=True)
class PartyDraft:
    name: str
    budget: str
    criteria: str
    guests: tuple[str, ...]


def sanitize_string(value, max_length: int = 100) -> str:
    """Trim, truncate and strip HTML-sensitive characters. Non-strings become ''."""
    if not isinstance(value, str):
        return ""
    return _UNSAFE_CHARS.sub("", value.strip()[:max_length])


def validate_guest_name(name) -> str:
    sanitized = sanitize_string(name, GUEST_NAME_MAX)
    if not sanitized:
        raise ValidationError("Guest name cannot be empty")
    return sanitized


def validate_party_name(name) -> str:
    sanitized = sanitize_string(name, PARTY_NAME_MAX)
    if not sanitized:
        raise ValidationError("Party name cannot be empty")
    return sanitized


def validate_party_payload(payload) -> PartyDraft:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid request data")

    name = payload.get("name")
    guests = payload.get("guests")
    if not name or not isinstance(guests, list) or len(guests) < MIN_GUESTS:
        raise ValidationError(f"Party name and at least {MIN_GUESTS} guests are required")
    if len(guests) > MAX_GUESTS:
        raise ValidationError(f"Maximum {MAX_GUESTS} guests allowed")

    party_name = validate_party_name(name)
    budget = sanitize_string(payload.get("budget") or "", BUDGET_MAX)
    criteria = sanitize_string(payload.get("criteria") or "", CRITERIA_MAX)

    sanitized = []
    for raw in guests:
        try:
            sanitized.append(validate_guest_name(raw))
        except ValidationError as e:
            raise ValidationError(f"Invalid guest name: {raw}") from e

    if len(set(sanitized)) != len(sanitized):
        raise ValidationError("Guest names must be unique")

    return PartyDraft(name=party_name, budget=budget, criteria=criteria, guests=tuple(sanitized))
