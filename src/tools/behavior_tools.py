"""Swipe-history learning: behavior sub-score, ranking boost, history store."""

from __future__ import annotations

import threading
from datetime import datetime
from math import floor
from typing import NamedTuple, Optional, Protocol

from src.models import (
    BehaviorProfile,
    Profile,
    RankedCandidate,
    SwipeRecord,
    tag_keys,
)
from src.utils.logging_config import logger

NEUTRAL_SCORE = 0.5
SIMILAR_AGE_WINDOW = 3
COMMON_INTEREST_SHARE = 0.3
MIN_HISTORY_FOR_BOOST = 10

COMPATIBILITY_BLEND = 0.7
BEHAVIOR_BLEND = 0.3
PREMIUM_BOOST = 0.05
VERIFIED_BOOST = 0.03


class BehaviorRepository(Protocol):
    """Storage for per-user swipe history.

    Implementations must serialize writes for a single user; writes for
    different users must not block each other.
    """

    def snapshot(self, user_id: str) -> BehaviorProfile:
        """Return a point-in-time copy, creating an empty profile if needed."""

    def append(self, user_id: str, record: SwipeRecord) -> None:
        """Append a swipe, evicting the oldest once the history is full."""

    def record_activity(
        self,
        user_id: str,
        *,
        messages: int = 0,
        profile_views: int = 0,
        at: Optional[datetime] = None,
    ) -> None:
        """Bump the coarse activity counters."""


class InMemoryBehaviorRepository:
    """Process-lifetime behavior store with one lock per user."""

    def __init__(self, capacity: int = 100):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._profiles: dict[str, BehaviorProfile] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, user_id: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(user_id)
            if lock is None:
                lock = self._locks[user_id] = threading.Lock()
            return lock

    def _get_or_create(self, user_id: str) -> BehaviorProfile:
        profile = self._profiles.get(user_id)
        if profile is None:
            logger.debug("Creating behavior profile for %s", user_id)
            profile = BehaviorProfile(user_id=user_id, capacity=self.capacity)
            self._profiles[user_id] = profile
        return profile

    def snapshot(self, user_id: str) -> BehaviorProfile:
        with self._lock_for(user_id):
            return self._get_or_create(user_id).copy()

    def append(self, user_id: str, record: SwipeRecord) -> None:
        with self._lock_for(user_id):
            profile = self._get_or_create(user_id)
            profile.swipe_history.append(record)
            profile.last_active = record.timestamp

    def record_activity(
        self,
        user_id: str,
        *,
        messages: int = 0,
        profile_views: int = 0,
        at: Optional[datetime] = None,
    ) -> None:
        with self._lock_for(user_id):
            profile = self._get_or_create(user_id)
            profile.message_count += messages
            profile.profile_views += profile_views
            if at is not None:
                profile.last_active = at


def behavior_score(candidate: Profile, behavior: BehaviorProfile) -> float:
    """Like-rate among past swipes on profiles similar to ``candidate``.

    Similar means within 3 years of age and at least one shared interest.
    Neutral 0.5 when no similar swipe exists.
    """

    candidate_interests = tag_keys(candidate.interests)
    similar = [
        swipe
        for swipe in behavior.swipe_history
        if abs(swipe.features.age - candidate.age) <= SIMILAR_AGE_WINDOW
        and tag_keys(swipe.features.interests) & candidate_interests
    ]
    if not similar:
        return NEUTRAL_SCORE

    likes = sum(1 for swipe in similar if swipe.is_like)
    return likes / len(similar)


def find_common_interests(interest_lists: list[list[str]]) -> set[str]:
    """Interests present in at least 30% of the lists (never fewer than 1)."""

    counts: dict[str, int] = {}
    for interests in interest_lists:
        for key in tag_keys(interests):
            counts[key] = counts.get(key, 0) + 1

    threshold = max(1, floor(len(interest_lists) * COMMON_INTEREST_SHARE))
    return {key for key, count in counts.items() if count >= threshold}


class LikedSummary(NamedTuple):
    avg_age: float
    common_interests: set[str]
    avg_photo_count: float


def summarize_likes(behavior: BehaviorProfile) -> LikedSummary | None:
    liked = [swipe.features for swipe in behavior.swipe_history if swipe.is_like]
    if not liked:
        return None

    return LikedSummary(
        avg_age=sum(f.age for f in liked) / len(liked),
        common_interests=find_common_interests([f.interests for f in liked]),
        avg_photo_count=sum(f.photo_count for f in liked) / len(liked),
    )


def _boost_from_summary(candidate: Profile, summary: LikedSummary | None) -> float:
    if summary is None:
        return NEUTRAL_SCORE

    age_affinity = max(0.0, (5 - abs(candidate.age - summary.avg_age)) / 5)

    interests = tag_keys(candidate.interests)
    interest_affinity = len(interests & summary.common_interests) / max(
        len(interests), 1
    )

    photo_affinity = 1 - abs(
        candidate.photo_count - summary.avg_photo_count
    ) / max(summary.avg_photo_count, 1)

    boost = 0.3 * age_affinity + 0.4 * interest_affinity + 0.3 * photo_affinity
    return min(boost, 1.0)


def behavior_boost(candidate: Profile, behavior: BehaviorProfile) -> float:
    """How closely ``candidate`` resembles the profiles this user liked."""

    return _boost_from_summary(candidate, summarize_likes(behavior))


def rank_candidates(
    candidates: list[RankedCandidate],
    behavior: BehaviorProfile,
    *,
    min_history: int = MIN_HISTORY_FOR_BOOST,
) -> list[RankedCandidate]:
    """Blend compatibility with learned preferences and sort descending.

    Equal rank scores keep their input order.
    """

    use_behavior = len(behavior.swipe_history) > min_history
    summary = summarize_likes(behavior) if use_behavior else None

    ranked: list[RankedCandidate] = []
    for candidate in candidates:
        score = candidate.compatibility.overall
        if use_behavior:
            boost = _boost_from_summary(candidate.profile, summary)
            score = score * COMPATIBILITY_BLEND + boost * BEHAVIOR_BLEND

        if candidate.profile.is_premium:
            score += PREMIUM_BOOST
        if candidate.profile.is_verified:
            score += VERIFIED_BOOST

        ranked.append(candidate.model_copy(update={"rank_score": score}))

    ranked.sort(key=lambda c: c.rank_score, reverse=True)
    logger.debug(
        "rank_candidates count=%s behavior_applied=%s", len(ranked), use_behavior
    )
    return ranked
