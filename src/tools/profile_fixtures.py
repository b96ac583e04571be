"""Seedable synthetic profiles for tests and the demo in-memory store.

Lifestyle, education, and relationship goals are derived from a hash of the
user id so a given (seed, id) pair always yields the same profile. This is
fixture data only; production profiles get these fields from the store.
"""

from __future__ import annotations

import hashlib
import random
from datetime import datetime, timedelta, timezone

from src.models import (
    Diet,
    Drinking,
    EducationLevel,
    Exercise,
    Gender,
    HasKids,
    Lifestyle,
    Location,
    Profile,
    RelationshipGoals,
    RelationshipType,
    Smoking,
    WantsKids,
)

DEFAULT_CENTER = (37.7749, -122.4194)  # San Francisco

INTEREST_CATALOG = [
    "Travel", "Music", "Movies", "Food", "Fitness", "Photography", "Art",
    "Books", "Gaming", "Sports", "Nature", "Dancing", "Hiking", "Running",
    "Museums", "Theater", "Parties", "Bars", "Concerts", "Coffee", "Yoga",
    "Dogs", "Cooking", "Technology",
]

NAMES = [
    "Emma", "Alex", "Sarah", "Jordan", "Maya", "Liam", "Priya", "Noah",
    "Chloe", "Mateo", "Aisha", "Ethan", "Sofia", "Kai", "Zoe", "Lucas",
]


def _rng_for(user_id: str, seed: int) -> random.Random:
    digest = hashlib.sha256(f"{seed}:{user_id}".encode("utf-8")).hexdigest()
    return random.Random(int(digest[:16], 16))


def _choice(rng: random.Random, enum_cls):
    return rng.choice([member for member in enum_cls if member.value != "any"])


def synthesize_attributes(
    user_id: str, seed: int = 0
) -> tuple[Lifestyle, EducationLevel, RelationshipGoals]:
    """Deterministic lifestyle, education, and relationship goals for an id."""

    rng = _rng_for(user_id, seed)
    lifestyle = Lifestyle(
        smoking=_choice(rng, Smoking),
        drinking=_choice(rng, Drinking),
        exercise=_choice(rng, Exercise),
        diet=_choice(rng, Diet),
    )
    education = _choice(rng, EducationLevel)
    relationship = RelationshipGoals(
        type=_choice(rng, RelationshipType),
        has_kids=_choice(rng, HasKids),
        wants_kids=_choice(rng, WantsKids),
    )
    return lifestyle, education, relationship


def synthesize_profile(
    user_id: str,
    *,
    seed: int = 0,
    center: tuple[float, float] = DEFAULT_CENTER,
    radius_km: float = 60.0,
    now: datetime | None = None,
) -> Profile:
    """Build a complete synthetic profile around ``center``."""

    now = now or datetime.now(timezone.utc)
    rng = _rng_for(user_id, seed + 1)
    lifestyle, education, relationship = synthesize_attributes(user_id, seed)

    # ~111 km per degree of latitude; good enough for fixture scatter.
    spread = radius_km / 111.0
    location = Location(
        lat=round(center[0] + rng.uniform(-spread, spread) * 0.7, 6),
        lng=round(center[1] + rng.uniform(-spread, spread) * 0.7, 6),
    )

    interests = rng.sample(INTEREST_CATALOG, rng.randint(2, 5))
    photo_count = rng.randint(0, 6)
    name = rng.choice(NAMES)

    return Profile(
        id=user_id,
        name=name,
        age=rng.randint(18, 45),
        gender=_choice(rng, Gender),
        location=location,
        bio=f"{name} here. Into {', '.join(interests[:2]).lower()}.",
        photos=[f"/photos/{user_id}/{i}.jpg" for i in range(photo_count)],
        interests=interests,
        is_verified=rng.random() < 0.5,
        is_premium=rng.random() < 0.2,
        last_active=now - timedelta(hours=rng.uniform(0, 24 * 10)),
        lifestyle=lifestyle,
        education=education,
        relationship=relationship,
    )


def build_demo_pool(
    size: int,
    *,
    seed: int = 42,
    center: tuple[float, float] = DEFAULT_CENTER,
    now: datetime | None = None,
) -> list[Profile]:
    """``size`` synthetic profiles with ids demo-0 .. demo-(size-1)."""

    now = now or datetime.now(timezone.utc)
    return [
        synthesize_profile(f"demo-{i}", seed=seed, center=center, now=now)
        for i in range(size)
    ]
