"""Domain models shared by the filter, scoring, and ranking stages.

Profiles, criteria, and scores are pydantic models so they validate at the
store/API boundary and serialize cleanly in responses. Profiles and derived
scores are frozen; the only mutable engine state is ``BehaviorProfile``.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def tag_key(tag: str) -> str:
    """Canonical form used whenever two tags are compared."""

    return tag.strip().casefold()


def tag_keys(tags: Iterable[str]) -> set[str]:
    return {tag_key(tag) for tag in tags if tag and tag.strip()}


def ensure_utc(value: datetime) -> datetime:
    """Treat naive timestamps from the store as UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ============================================================
# ENUMERATIONS
# ============================================================
class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    NON_BINARY = "non_binary"


class GenderPreference(str, Enum):
    MALE = "male"
    FEMALE = "female"
    NON_BINARY = "non_binary"
    ANY = "any"


class Smoking(str, Enum):
    NEVER = "never"
    SOMETIMES = "sometimes"
    REGULARLY = "regularly"
    ANY = "any"


class Drinking(str, Enum):
    NEVER = "never"
    SOCIALLY = "socially"
    REGULARLY = "regularly"
    ANY = "any"


class Exercise(str, Enum):
    NEVER = "never"
    SOMETIMES = "sometimes"
    REGULARLY = "regularly"
    ANY = "any"


class Diet(str, Enum):
    OMNIVORE = "omnivore"
    VEGETARIAN = "vegetarian"
    VEGAN = "vegan"
    ANY = "any"


class EducationLevel(str, Enum):
    HIGH_SCHOOL = "high_school"
    COLLEGE = "college"
    GRADUATE = "graduate"
    ANY = "any"


class RelationshipType(str, Enum):
    CASUAL = "casual"
    SERIOUS = "serious"
    MARRIAGE = "marriage"
    ANY = "any"


class HasKids(str, Enum):
    YES = "yes"
    NO = "no"
    ANY = "any"


class WantsKids(str, Enum):
    YES = "yes"
    NO = "no"
    MAYBE = "maybe"
    ANY = "any"


# ============================================================
# PROFILES
# ============================================================
class Location(BaseModel):
    """A point on the globe. Validity is checked by the geo utilities."""

    model_config = ConfigDict(frozen=True)

    lat: float
    lng: float


class Lifestyle(BaseModel):
    """Self-reported lifestyle attributes; any of them may be unknown."""

    model_config = ConfigDict(frozen=True)

    smoking: Optional[Smoking] = None
    drinking: Optional[Drinking] = None
    exercise: Optional[Exercise] = None
    diet: Optional[Diet] = None


class RelationshipGoals(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Optional[RelationshipType] = None
    has_kids: Optional[HasKids] = None
    wants_kids: Optional[WantsKids] = None


class Profile(BaseModel):
    """Immutable snapshot of a user as returned by the user store."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: Optional[str] = None
    age: int = Field(ge=18, le=120)
    gender: Gender
    location: Optional[Location] = None
    bio: str = ""
    photos: list[str] = Field(default_factory=list)
    interests: list[str] = Field(default_factory=list)
    is_verified: bool = False
    is_premium: bool = False
    last_active: datetime
    lifestyle: Optional[Lifestyle] = None
    education: Optional[EducationLevel] = None
    relationship: Optional[RelationshipGoals] = None

    @field_validator("last_active")
    @classmethod
    def _last_active_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @property
    def photo_count(self) -> int:
        return len(self.photos)


# ============================================================
# PREFERENCE CRITERIA
# ============================================================
class LifestylePreferences(BaseModel):
    smoking: Smoking = Smoking.ANY
    drinking: Drinking = Drinking.ANY
    exercise: Exercise = Exercise.ANY
    diet: Diet = Diet.ANY


class EducationPreference(BaseModel):
    level: EducationLevel = EducationLevel.ANY
    required: bool = False


class RelationshipPreferences(BaseModel):
    type: RelationshipType = RelationshipType.ANY
    has_kids: HasKids = HasKids.ANY
    wants_kids: WantsKids = WantsKids.ANY


class PreferenceCriteria(BaseModel):
    """Discovery filters chosen by the requesting user.

    Structural checks (inverted age range, negative distance) live in
    ``filter_tools.validate_criteria`` so they surface as InvalidCriteriaError
    rather than as a pydantic ValidationError.
    """

    age_range: tuple[int, int] = (18, 35)
    max_distance_km: float = 50.0
    gender_preference: GenderPreference = GenderPreference.ANY
    interests: list[str] = Field(default_factory=list)
    lifestyle: LifestylePreferences = Field(default_factory=LifestylePreferences)
    education: EducationPreference = Field(default_factory=EducationPreference)
    relationship: RelationshipPreferences = Field(
        default_factory=RelationshipPreferences
    )
    deal_breakers: list[str] = Field(default_factory=list)
    must_haves: list[str] = Field(default_factory=list)
    verified_only: bool = False
    premium_only: bool = False
    recently_active: bool = False
    location_override: Optional[Location] = None

    @field_validator("gender_preference", mode="before")
    @classmethod
    def _accept_all_alias(cls, value: object) -> object:
        # Older clients stored "all" for no preference.
        if isinstance(value, str) and value.strip().lower() == "all":
            return GenderPreference.ANY
        return value


# ============================================================
# SWIPE HISTORY
# ============================================================
class CandidateFeatures(BaseModel):
    """The parts of a swiped profile remembered for behavioral ranking."""

    model_config = ConfigDict(frozen=True)

    candidate_id: str
    age: int
    interests: list[str] = Field(default_factory=list)
    photo_count: int = 0
    bio_length: int = 0
    is_verified: bool = False
    is_premium: bool = False
    location: Optional[Location] = None

    @classmethod
    def from_profile(cls, profile: Profile) -> "CandidateFeatures":
        return cls(
            candidate_id=profile.id,
            age=profile.age,
            interests=list(profile.interests),
            photo_count=profile.photo_count,
            bio_length=len(profile.bio or ""),
            is_verified=profile.is_verified,
            is_premium=profile.is_premium,
            location=profile.location,
        )


class SwipeRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    requester_id: str
    features: CandidateFeatures
    is_like: bool
    timestamp: datetime
    is_super_like: bool = False


@dataclass
class BehaviorProfile:
    """Rolling swipe history and activity counters for one requesting user."""

    user_id: str
    capacity: int = 100
    swipe_history: deque = field(default_factory=deque)
    message_count: int = 0
    profile_views: int = 0
    last_active: Optional[datetime] = None

    def __post_init__(self) -> None:
        # maxlen makes appends evict the oldest record first.
        self.swipe_history = deque(self.swipe_history, maxlen=self.capacity)

    def copy(self) -> "BehaviorProfile":
        return BehaviorProfile(
            user_id=self.user_id,
            capacity=self.capacity,
            swipe_history=deque(self.swipe_history),
            message_count=self.message_count,
            profile_views=self.profile_views,
            last_active=self.last_active,
        )


# ============================================================
# SCORES
# ============================================================
class ScoreBreakdown(BaseModel):
    model_config = ConfigDict(frozen=True)

    interests: float = Field(ge=0.0, le=1.0)
    demographics: float = Field(ge=0.0, le=1.0)
    activity: float = Field(ge=0.0, le=1.0)
    behavior: float = Field(ge=0.0, le=1.0)
    location: float = Field(ge=0.0, le=1.0)


class CompatibilityScore(BaseModel):
    model_config = ConfigDict(frozen=True)

    overall: float = Field(ge=0.0, le=1.0)
    breakdown: ScoreBreakdown
    reasons: list[str] = Field(default_factory=list, max_length=3)


class CandidateMetrics(BaseModel):
    """How well a candidate fits the requester's filters, independent of
    the compatibility score. Shown next to each discovery card."""

    model_config = ConfigDict(frozen=True)

    last_active_hours: float = Field(ge=0.0)
    profile_completeness: float = Field(ge=0.0, le=1.0)
    filter_score: float = Field(ge=0.0, le=1.0)
    filter_reasons: list[str] = Field(default_factory=list, max_length=3)


class RankedCandidate(BaseModel):
    """A candidate as returned to discovery screens."""

    model_config = ConfigDict(frozen=True)

    profile: Profile
    compatibility: CompatibilityScore
    distance_km: Optional[float] = None
    rank_score: float
    degraded: bool = False
    metrics: Optional[CandidateMetrics] = None
