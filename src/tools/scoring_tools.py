"""Deterministic compatibility scoring for discovery.

Five sub-scores, each in [0, 1], are combined with fixed weights. Weights
are kept simple and explainable for debugging.
"""

from __future__ import annotations

from datetime import datetime, timezone

from src.models import (
    BehaviorProfile,
    CompatibilityScore,
    PreferenceCriteria,
    Profile,
    ScoreBreakdown,
    tag_key,
    tag_keys,
)
from src.tools.behavior_tools import behavior_score
from src.tools.filter_tools import candidate_distance_km, resolve_origin
from src.utils.logging_config import logger

WEIGHTS = {
    "interests": 0.30,
    "demographics": 0.20,
    "activity": 0.20,
    "behavior": 0.15,
    "location": 0.15,
}

POPULAR_INTERESTS = [
    "Travel",
    "Music",
    "Movies",
    "Food",
    "Fitness",
    "Photography",
    "Art",
    "Books",
    "Gaming",
    "Sports",
    "Nature",
    "Dancing",
]
DEFAULT_INTEREST_WEIGHT = 0.5

# Popularity weight: 1.0 for the first tag, 0.05 less per rank.
INTEREST_WEIGHTS = {
    tag_key(interest): 1 - rank * 0.05
    for rank, interest in enumerate(POPULAR_INTERESTS)
}

LIFESTYLE_BUCKETS = {
    "active": tag_keys(["Fitness", "Sports", "Hiking", "Dancing", "Running"]),
    "cultural": tag_keys(["Art", "Music", "Books", "Museums", "Theater"]),
    "social": tag_keys(["Travel", "Food", "Parties", "Bars", "Concerts"]),
}

EDUCATION_BASELINE = 0.3
ACTIVITY_WINDOW_DAYS = 7
MAX_REASONS = 3


def _clamp(value: float) -> float:
    return min(max(value, 0.0), 1.0)


def calculate_interest_score(user: Profile, candidate: Profile) -> float:
    """Shared interests, with popular tags counting for more."""

    user_interests = tag_keys(user.interests)
    candidate_interests = tag_keys(candidate.interests)
    if not user_interests and not candidate_interests:
        return 0.0

    common = user_interests & candidate_interests
    denominator = max(len(user_interests), len(candidate_interests))

    base = len(common) / denominator
    weighted = (
        sum(INTEREST_WEIGHTS.get(i, DEFAULT_INTEREST_WEIGHT) for i in common)
        / denominator
    )
    return _clamp(base * 0.6 + weighted * 0.4)


def _bucket_counts(profile: Profile) -> dict[str, int]:
    interests = tag_keys(profile.interests)
    return {name: len(interests & tags) for name, tags in LIFESTYLE_BUCKETS.items()}


def calculate_lifestyle_similarity(user: Profile, candidate: Profile) -> float:
    """Similarity of active / cultural / social interest mixes."""

    user_counts = _bucket_counts(user)
    candidate_counts = _bucket_counts(candidate)

    similarities = []
    for name in LIFESTYLE_BUCKETS:
        a, b = user_counts[name], candidate_counts[name]
        similarities.append(1 - abs(a - b) / max(a + b, 1))
    return sum(similarities) / len(similarities)


def calculate_demographic_score(user: Profile, candidate: Profile) -> float:
    age_score = max(0.0, (10 - abs(user.age - candidate.age)) / 10)
    score = (
        age_score * 0.4
        + EDUCATION_BASELINE
        + calculate_lifestyle_similarity(user, candidate) * 0.3
    )
    return _clamp(score)


def _activity_level(profile: Profile, now: datetime) -> float:
    days_inactive = (now - profile.last_active).total_seconds() / 86400
    return _clamp((ACTIVITY_WINDOW_DAYS - days_inactive) / ACTIVITY_WINDOW_DAYS)


def calculate_activity_score(user: Profile, candidate: Profile, now: datetime) -> float:
    """Both users should be relatively active."""

    return (_activity_level(user, now) + _activity_level(candidate, now)) / 2


def calculate_location_score(distance_km: float, max_distance_km: float) -> float:
    """Linear decay from 1 at zero distance to 0 at the max distance."""

    if distance_km > max_distance_km:
        return 0.0
    if max_distance_km <= 0:
        return 1.0
    return _clamp((max_distance_km - distance_km) / max_distance_km)


def generate_match_reasons(
    breakdown: ScoreBreakdown, user: Profile, candidate: Profile
) -> list[str]:
    """Short human-readable reasons, highest priority first, at most three."""

    reasons: list[str] = []

    if breakdown.interests > 0.7:
        candidate_interests = tag_keys(candidate.interests)
        common = [i for i in user.interests if tag_key(i) in candidate_interests]
        if common:
            reasons.append(f"You both love {' and '.join(common[:2])}")

    if abs(user.age - candidate.age) <= 3:
        reasons.append("You're close in age")

    if breakdown.activity > 0.7:
        reasons.append("You're both active users")

    if breakdown.location > 0.8:
        reasons.append("You're nearby")

    if candidate.is_verified:
        reasons.append("Verified profile")

    return reasons[:MAX_REASONS]


def score_candidate(
    user: Profile,
    candidate: Profile,
    criteria: PreferenceCriteria,
    behavior: BehaviorProfile,
    *,
    now: datetime | None = None,
    distance_km: float | None = None,
) -> CompatibilityScore:
    """Calculate the weighted compatibility of ``candidate`` for ``user``.

    Args:
        user: The requesting user.
        candidate: The profile being scored.
        criteria: The requester's discovery criteria (for max distance).
        behavior: The requester's swipe history.
        now: Reference time for activity recency.
        distance_km: Precomputed distance; computed when omitted.

    Raises:
        MissingLocationError: If either side has no location.
        InvalidCoordinateError: If either location is invalid.
    """

    now = now or datetime.now(timezone.utc)
    if distance_km is None:
        distance_km = candidate_distance_km(resolve_origin(user, criteria), candidate)

    breakdown = ScoreBreakdown(
        interests=calculate_interest_score(user, candidate),
        demographics=calculate_demographic_score(user, candidate),
        activity=calculate_activity_score(user, candidate, now),
        behavior=_clamp(behavior_score(candidate, behavior)),
        location=calculate_location_score(distance_km, criteria.max_distance_km),
    )

    overall = sum(
        getattr(breakdown, name) * weight for name, weight in WEIGHTS.items()
    )

    score = CompatibilityScore(
        overall=_clamp(overall),
        breakdown=breakdown,
        reasons=generate_match_reasons(breakdown, user, candidate),
    )
    logger.debug(
        "score_candidate candidate=%s overall=%.3f", candidate.id, score.overall
    )
    return score
