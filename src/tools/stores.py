"""Contracts for the external stores the engine reads from and writes to.

The engine does not care about transport: Firestore (see firestore_tools),
a REST client, or the in-memory stores below all satisfy these protocols.
"""

from __future__ import annotations

import threading
from typing import Iterable, Optional, Protocol

from src.models import PreferenceCriteria, Profile, SwipeRecord


class UserStore(Protocol):
    def get_profile(self, user_id: str) -> Optional[Profile]:
        """Return the profile, or None when it does not exist."""

    def get_candidate_pool(
        self, requester_id: str, criteria: PreferenceCriteria
    ) -> list[Profile]:
        """Candidates for the requester, excluding self and already-swiped users."""


class PreferenceStore(Protocol):
    def load_filters(self, user_id: str) -> PreferenceCriteria:
        """Saved criteria for the user, or defaults when none were saved."""

    def save_filters(self, user_id: str, criteria: PreferenceCriteria) -> None:
        ...


class SwipeRecorder(Protocol):
    def record_swipe(self, record: SwipeRecord) -> None:
        """Persist a swipe so the swiped user leaves later candidate pools."""

    def has_liked(self, swiper_id: str, swiped_id: str) -> bool:
        """Whether ``swiper_id`` has already liked ``swiped_id``."""


class InMemoryUserStore:
    """Dict-backed user store; doubles as a swipe recorder.

    Recorded swipes are excluded from later candidate pools, like the
    production store's swiped-user exclusion.
    """

    def __init__(self, profiles: Iterable[Profile] = ()):
        self._profiles: dict[str, Profile] = {p.id: p for p in profiles}
        self._swiped: dict[str, set[str]] = {}
        self._liked: dict[str, set[str]] = {}
        self._lock = threading.Lock()

    def add_profile(self, profile: Profile) -> None:
        with self._lock:
            self._profiles[profile.id] = profile

    def get_profile(self, user_id: str) -> Optional[Profile]:
        return self._profiles.get(user_id)

    def get_candidate_pool(
        self, requester_id: str, criteria: PreferenceCriteria
    ) -> list[Profile]:
        with self._lock:
            excluded = set(self._swiped.get(requester_id, set()))
            profiles = list(self._profiles.values())
        excluded.add(requester_id)
        return [p for p in profiles if p.id not in excluded]

    def record_swipe(self, record: SwipeRecord) -> None:
        candidate_id = record.features.candidate_id
        with self._lock:
            self._swiped.setdefault(record.requester_id, set()).add(candidate_id)
            if record.is_like or record.is_super_like:
                self._liked.setdefault(record.requester_id, set()).add(candidate_id)

    def has_liked(self, swiper_id: str, swiped_id: str) -> bool:
        with self._lock:
            return swiped_id in self._liked.get(swiper_id, set())


class InMemoryPreferenceStore:
    def __init__(self):
        self._filters: dict[str, PreferenceCriteria] = {}

    def load_filters(self, user_id: str) -> PreferenceCriteria:
        saved = self._filters.get(user_id)
        return saved.model_copy(deep=True) if saved else PreferenceCriteria()

    def save_filters(self, user_id: str, criteria: PreferenceCriteria) -> None:
        self._filters[user_id] = criteria.model_copy(deep=True)
