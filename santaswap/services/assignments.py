from __future__ import annotations

import logging
import random
import threading
from typing import Optional, Sequence

from ..models import Party
from ..storage import Collection, DataStore

logger = logging.getLogger(__name__)


class AssignmentError(RuntimeError):
    pass


def _shuffle(members: Sequence[str], rng: random.Random) -> list[str]:
    # Fisher-Yates, last index down to 1
    shuffled = list(members)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


def _fixed_points(members: Sequence[str], shuffled: Sequence[str]) -> list[int]:
    return [i for i, (a, b) in enumerate(zip(members, shuffled)) if a == b]


def _repair(members: Sequence[str], shuffled: list[str]) -> None:
    last = len(shuffled) - 1
    for i in range(len(shuffled)):
        if shuffled[i] == members[i]:
            k = i - 1 if i == last else i + 1
            shuffled[i], shuffled[k] = shuffled[k], shuffled[i]


def derange(members: Sequence[str], rng: Optional[random.Random] = None) -> dict[str, str]:
    """Return a random {giver: recipient} mapping with nobody drawing themselves.

    Members must be unique. The shuffle is uniform; fixed points are then
    repaired by swapping with a neighbour, so the result is not uniform over
    all derangements.
    """
    if len(members) < 2:
        raise AssignmentError("Need at least 2 guests to run assignments.")
    if len(set(members)) != len(members):
        raise AssignmentError("Guest names must be unique.")

    rng = rng or random.Random()
    shuffled = _shuffle(members, rng)
    while _fixed_points(members, shuffled):
        _repair(members, shuffled)

    return dict(zip(members, shuffled))


class AssignmentEngine:
    """Computes each party's assignment table once and serves it thereafter.

    Usage:
        engine = AssignmentEngine(store)
        table = engine.assignment_for(party_id)
        recipient = table[guest_name]
    """

    def __init__(self, store: DataStore, rng: Optional[random.Random] = None) -> None:
        self._store = store
        self._rng = rng or random.Random()
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, party_id: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(party_id, threading.Lock())

    def _release_lock(self, party_id: str) -> None:
        # Later callers find the table without locking; waiters keep their reference.
        with self._locks_guard:
            self._locks.pop(party_id, None)

    @property
    def pending_locks(self) -> int:
        return len(self._locks)

    def assignment_for(self, party_id: str) -> dict[str, str]:
        existing = self._store.get(Collection.ASSIGNMENTS, party_id)
        if existing is not None:
            return existing

        # Check-then-create is one step per party; concurrent first requests
        # wait here and then see the table written by the winner.
        try:
            with self._lock_for(party_id):
                existing = self._store.get(Collection.ASSIGNMENTS, party_id)
                if existing is not None:
                    return existing

                data = self._store.get(Collection.PARTIES, party_id)
                if data is None:
                    raise AssignmentError(f"Unknown party: {party_id}")
                party = Party.from_dict(data)

                table = derange(party.guests, self._rng)
                self._store.set(Collection.ASSIGNMENTS, party_id, table)
                logger.info("Assignments created for party %s (%d guests)", party_id, len(table))
        finally:
            self._release_lock(party_id)

        self._store.save()
        return table
