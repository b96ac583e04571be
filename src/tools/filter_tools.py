"""Hard-constraint filtering of the discovery candidate pool.

Every predicate must hold for a candidate to survive (logical AND). The
order is optimized for performance: cheap attribute checks first, the
Haversine distance check only if needed.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from math import isfinite

from src.models import (
    CandidateMetrics,
    Diet,
    Drinking,
    EducationLevel,
    Exercise,
    GenderPreference,
    HasKids,
    PreferenceCriteria,
    Profile,
    RelationshipType,
    Smoking,
    WantsKids,
    tag_key,
    tag_keys,
)
from src.utils.errors import (
    InvalidCoordinateError,
    InvalidCriteriaError,
    MissingLocationError,
)
from src.utils.geo import haversine_km, validate_coordinate
from src.utils.logging_config import logger

MIN_AGE = 18
MAX_AGE = 120
RECENT_ACTIVITY_WINDOW = timedelta(days=7)
MANY_PHOTOS_THRESHOLD = 5


def validate_criteria(criteria: PreferenceCriteria, limit: int | None = None) -> None:
    """Reject structurally invalid criteria before any filtering starts."""

    low, high = criteria.age_range
    if low > high:
        raise InvalidCriteriaError(f"Age range is inverted: {low} > {high}")
    if low < MIN_AGE or high > MAX_AGE:
        raise InvalidCriteriaError(
            f"Age range must lie within [{MIN_AGE}, {MAX_AGE}], got [{low}, {high}]"
        )

    if not isfinite(criteria.max_distance_km) or criteria.max_distance_km < 0:
        raise InvalidCriteriaError(
            f"Max distance must be a non-negative number, got {criteria.max_distance_km}"
        )

    if limit is not None and (
        isinstance(limit, bool) or not isinstance(limit, int) or limit < 1
    ):
        raise InvalidCriteriaError(f"Limit must be a positive integer, got {limit!r}")

    if criteria.location_override is not None:
        validate_coordinate(
            criteria.location_override.lat, criteria.location_override.lng
        )


def derive_traits(profile: Profile) -> set[str]:
    """Trait tags tested by deal-breakers and must-haves.

    Interests plus lifestyle flags plus account status flags.
    """

    traits = tag_keys(profile.interests)

    lifestyle = profile.lifestyle
    if lifestyle is not None:
        if lifestyle.smoking is not None and lifestyle.smoking != Smoking.NEVER:
            traits.add("smoker")
        if lifestyle.drinking == Drinking.REGULARLY:
            traits.add("drinks_regularly")
        if lifestyle.exercise == Exercise.REGULARLY:
            traits.add("fitness_enthusiast")
        if lifestyle.diet is not None and lifestyle.diet != Diet.OMNIVORE:
            traits.add("special_diet")

    if profile.is_verified:
        traits.add("verified")
    if profile.is_premium:
        traits.add("premium")
    if profile.photo_count >= MANY_PHOTOS_THRESHOLD:
        traits.add("many_photos")

    return traits


def resolve_origin(
    requester: Profile, criteria: PreferenceCriteria
) -> tuple[float, float]:
    """Point distances are measured from: the override, else the requester."""

    location = criteria.location_override or requester.location
    if location is None:
        raise MissingLocationError(
            f"Requester {requester.id} has no location and no override was given"
        )
    validate_coordinate(location.lat, location.lng)
    return location.lat, location.lng


def candidate_distance_km(origin: tuple[float, float], candidate: Profile) -> float:
    if candidate.location is None:
        raise MissingLocationError(f"Candidate {candidate.id} has no location")
    return haversine_km(
        origin[0], origin[1], candidate.location.lat, candidate.location.lng
    )


def _matches_age(candidate: Profile, criteria: PreferenceCriteria) -> bool:
    low, high = criteria.age_range
    return low <= candidate.age <= high


def _matches_gender(candidate: Profile, criteria: PreferenceCriteria) -> bool:
    if criteria.gender_preference == GenderPreference.ANY:
        return True
    return candidate.gender.value == criteria.gender_preference.value


def _matches_interest_filter(candidate: Profile, criteria: PreferenceCriteria) -> bool:
    """At least one overlapping interest (OR semantics)."""

    wanted = tag_keys(criteria.interests)
    if not wanted:
        return True
    return bool(wanted & tag_keys(candidate.interests))


def _matches_lifestyle(candidate: Profile, criteria: PreferenceCriteria) -> bool:
    wanted = criteria.lifestyle
    actual = candidate.lifestyle
    checks = (
        (wanted.smoking, Smoking.ANY, actual.smoking if actual else None),
        (wanted.drinking, Drinking.ANY, actual.drinking if actual else None),
        (wanted.exercise, Exercise.ANY, actual.exercise if actual else None),
        (wanted.diet, Diet.ANY, actual.diet if actual else None),
    )
    return all(want == any_value or have == want for want, any_value, have in checks)


def _matches_education(candidate: Profile, criteria: PreferenceCriteria) -> bool:
    wanted = criteria.education
    if not wanted.required or wanted.level == EducationLevel.ANY:
        return True
    return candidate.education == wanted.level


def _matches_relationship(candidate: Profile, criteria: PreferenceCriteria) -> bool:
    wanted = criteria.relationship
    actual = candidate.relationship
    checks = (
        (wanted.type, RelationshipType.ANY, actual.type if actual else None),
        (wanted.has_kids, HasKids.ANY, actual.has_kids if actual else None),
        (wanted.wants_kids, WantsKids.ANY, actual.wants_kids if actual else None),
    )
    return all(want == any_value or have == want for want, any_value, have in checks)


def _passes_deal_breakers(traits: set[str], criteria: PreferenceCriteria) -> bool:
    return not (traits & tag_keys(criteria.deal_breakers))


def _has_must_haves(traits: set[str], criteria: PreferenceCriteria) -> bool:
    return tag_keys(criteria.must_haves) <= traits


def _matches_status_flags(
    candidate: Profile, criteria: PreferenceCriteria, now: datetime
) -> bool:
    if criteria.verified_only and not candidate.is_verified:
        return False
    if criteria.premium_only and not candidate.is_premium:
        return False
    if criteria.recently_active:
        return now - candidate.last_active <= RECENT_ACTIVITY_WINDOW
    return True


def passes_attribute_filters(candidate: Profile, criteria: PreferenceCriteria) -> bool:
    """Profile predicates that run before the distance check."""

    if not (
        _matches_age(candidate, criteria)
        and _matches_gender(candidate, criteria)
        and _matches_interest_filter(candidate, criteria)
        and _matches_lifestyle(candidate, criteria)
        and _matches_education(candidate, criteria)
        and _matches_relationship(candidate, criteria)
    ):
        return False

    traits = derive_traits(candidate)
    return _passes_deal_breakers(traits, criteria) and _has_must_haves(
        traits, criteria
    )


def filter_candidates(
    pool: list[Profile],
    requester: Profile,
    criteria: PreferenceCriteria,
    *,
    now: datetime | None = None,
) -> list[Profile]:
    """Reduce the pool to candidates satisfying every hard constraint.

    Raises:
        InvalidCriteriaError: If the criteria are structurally invalid.
        MissingLocationError: If the requester has no usable location.
        InvalidCoordinateError: If the requester's location is invalid.
    """

    validate_criteria(criteria)
    if not pool:
        return []

    now = now or datetime.now(timezone.utc)
    origin = resolve_origin(requester, criteria)
    filtered: list[Profile] = []

    for candidate in pool:
        if candidate.id == requester.id:
            continue

        if not passes_attribute_filters(candidate, criteria):
            continue

        try:
            distance = candidate_distance_km(origin, candidate)
        except MissingLocationError:
            logger.debug("Excluding candidate without location: %s", candidate.id)
            continue
        except InvalidCoordinateError as exc:
            logger.warning("Skipping candidate %s: %s", candidate.id, str(exc))
            continue

        if distance > criteria.max_distance_km:
            continue

        if not _matches_status_flags(candidate, criteria, now):
            continue

        filtered.append(candidate)

    logger.debug("filter_candidates pool=%s result=%s", len(pool), len(filtered))
    return filtered


# ============================================================
# PER-RESULT METRICS
# ============================================================
ACTIVITY_HORIZON_HOURS = 168
RECENTLY_ACTIVE_HOURS = 24
PERFECT_AGE_DELTA = 2
MAX_FILTER_REASONS = 3


def last_active_hours(candidate: Profile, now: datetime) -> float:
    """Hours since the candidate was last seen; future timestamps count as 0."""

    return max(0.0, (now - candidate.last_active).total_seconds() / 3600)


def profile_completeness(candidate: Profile) -> float:
    score = 0.0
    if len(candidate.bio or "") > 20:
        score += 0.3
    if candidate.photo_count >= 3:
        score += 0.4
    if len(candidate.interests) >= 3:
        score += 0.3
    return min(score, 1.0)


def _ideal_age(criteria: PreferenceCriteria) -> float:
    low, high = criteria.age_range
    return (low + high) / 2


def _shared_filter_interests(
    candidate: Profile, criteria: PreferenceCriteria
) -> list[str]:
    """Candidate interests named in the criteria, in the candidate's order."""

    wanted = tag_keys(criteria.interests)
    shared: list[str] = []
    seen: set[str] = set()
    for interest in candidate.interests:
        key = tag_key(interest)
        if key in wanted and key not in seen:
            seen.add(key)
            shared.append(interest.strip())
    return shared


def filter_match_score(
    candidate: Profile, criteria: PreferenceCriteria, now: datetime
) -> float:
    """How well a surviving candidate fits the filters, in [0, 1].

    Interest overlap 0.3, closeness to the middle of the age range 0.2,
    profile completeness 0.2, activity over the last week 0.15, plus 0.08
    for verified and 0.07 for premium accounts.
    """

    wanted = tag_keys(criteria.interests)
    if wanted:
        overlap = len(_shared_filter_interests(candidate, criteria))
        score = overlap / len(wanted) * 0.3
    else:
        score = 0.3

    age_gap = abs(candidate.age - _ideal_age(criteria))
    score += max(0.0, (10 - age_gap) / 10) * 0.2

    score += profile_completeness(candidate) * 0.2

    hours = last_active_hours(candidate, now)
    score += max(0.0, (ACTIVITY_HORIZON_HOURS - hours) / ACTIVITY_HORIZON_HOURS) * 0.15

    if candidate.is_verified:
        score += 0.08
    if candidate.is_premium:
        score += 0.07

    return min(score, 1.0)


def filter_match_reasons(
    candidate: Profile, criteria: PreferenceCriteria, now: datetime
) -> list[str]:
    reasons: list[str] = []

    shared = _shared_filter_interests(candidate, criteria)
    if shared:
        reasons.append(f"You both love {' and '.join(shared[:2])}")

    if abs(candidate.age - _ideal_age(criteria)) <= PERFECT_AGE_DELTA:
        reasons.append("Perfect age match")

    if last_active_hours(candidate, now) <= RECENTLY_ACTIVE_HOURS:
        reasons.append("Recently active")

    if candidate.is_verified:
        reasons.append("Verified profile")

    if candidate.photo_count >= 4 and len(candidate.bio or "") > 50:
        reasons.append("Complete profile")

    return reasons[:MAX_FILTER_REASONS]


def candidate_metrics(
    candidate: Profile, criteria: PreferenceCriteria, now: datetime
) -> CandidateMetrics:
    return CandidateMetrics(
        last_active_hours=last_active_hours(candidate, now),
        profile_completeness=profile_completeness(candidate),
        filter_score=filter_match_score(candidate, criteria, now),
        filter_reasons=filter_match_reasons(candidate, criteria, now),
    )
