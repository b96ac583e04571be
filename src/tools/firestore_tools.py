"""Firestore-backed user, preference, and swipe stores.

These helpers centralize document mapping, error handling, and logging so
the discovery graph stays focused on orchestration logic.
"""

from __future__ import annotations

import os
from typing import Any, Optional

import firebase_admin
from firebase_admin import credentials, firestore
from pydantic import ValidationError

from src.config import config
from src.models import PreferenceCriteria, Profile, SwipeRecord
from src.utils.errors import FirestoreUnavailableError
from src.utils.logging_config import logger

PROFILES_COLLECTION = "profiles"
SWIPES_COLLECTION = "swipes"
FILTERS_COLLECTION = "user_filters"

_db: firestore.Client | None = None


def get_db() -> firestore.Client:
    """Get a Firestore client, initializing Firebase lazily."""
    global _db

    if _db is not None:
        return _db

    try:
        if not firebase_admin._apps:
            cred_path = os.environ.get("GOOGLE_APPLICATION_CREDENTIALS")
            if not cred_path:
                raise RuntimeError(
                    "GOOGLE_APPLICATION_CREDENTIALS is not set"
                )

            cred = credentials.Certificate(cred_path)
            firebase_admin.initialize_app(cred)

        _db = firestore.client()
        return _db

    except Exception as exc:
        logger.error("Failed to initialize Firestore: %s", exc)
        raise FirestoreUnavailableError(str(exc)) from exc


def _location_fields(data: dict) -> Optional[dict]:
    """Accept either a nested location map or flat locationLat/locationLng."""

    location = data.get("location")
    if isinstance(location, dict) and "lat" in location and "lng" in location:
        return {"lat": location["lat"], "lng": location["lng"]}

    lat = data.get("locationLat")
    lng = data.get("locationLng")
    if lat is not None and lng is not None:
        return {"lat": lat, "lng": lng}
    return None


def profile_from_document(data: dict, doc_id: str | None = None) -> Profile:
    """Map a profiles/{uid} document to a Profile.

    Raises:
        ValueError: If the document is missing required fields or holds
            values outside the model's ranges.
    """

    relationship = data.get("relationship") or None
    if relationship:
        relationship = {
            "type": relationship.get("type"),
            "has_kids": relationship.get("hasKids"),
            "wants_kids": relationship.get("wantsKids"),
        }

    return Profile.model_validate(
        {
            "id": data.get("uid") or doc_id,
            "name": data.get("name") or data.get("displayName"),
            "age": data.get("age"),
            "gender": data.get("gender"),
            "location": _location_fields(data),
            "bio": data.get("bio") or "",
            "photos": data.get("photos") or [],
            "interests": data.get("interests") or [],
            "is_verified": bool(data.get("isVerified", False)),
            "is_premium": bool(data.get("isPremium", False)),
            "last_active": data.get("lastActive"),
            "lifestyle": data.get("lifestyle") or None,
            "education": data.get("education"),
            "relationship": relationship,
        }
    )


class FirestoreUserStore:
    """User store reading profiles/{uid} and swipes collections."""

    def __init__(self, max_candidates: int | None = None):
        self.max_candidates = max_candidates or config.MAX_CANDIDATES

    def get_profile(self, user_id: str) -> Optional[Profile]:
        """Fetch a profile. Returns None if the user is not found."""

        try:
            doc = get_db().collection(PROFILES_COLLECTION).document(user_id).get()
            if not doc.exists:
                return None
            data = doc.to_dict() or {}
        except Exception as exc:
            logger.error("Failed to fetch user profile: %s", str(exc))
            raise FirestoreUnavailableError(str(exc)) from exc

        return profile_from_document(data, doc.id)

    def _swiped_ids(self, requester_id: str) -> set[str]:
        query = (
            get_db()
            .collection(SWIPES_COLLECTION)
            .where("swiperId", "==", requester_id)
        )
        return {
            (doc.to_dict() or {}).get("swipedId")
            for doc in query.stream()
        } - {None}

    def get_candidate_pool(
        self, requester_id: str, criteria: PreferenceCriteria
    ) -> list[Profile]:
        """Query candidate profiles the requester has not swiped on yet.

        Age, gender, and verified-only are pushed down to Firestore; the
        rest of the criteria are applied by the filter pipeline. Composite
        indexes are required for the multi-field query in production.
        """

        try:
            excluded = self._swiped_ids(requester_id)
            excluded.add(requester_id)

            low, high = criteria.age_range
            query = (
                get_db()
                .collection(PROFILES_COLLECTION)
                .where("age", ">=", low)
                .where("age", "<=", high)
            )
            if criteria.gender_preference.value != "any":
                query = query.where("gender", "==", criteria.gender_preference.value)
            if criteria.verified_only:
                query = query.where("isVerified", "==", True)
            query = query.limit(self.max_candidates)

            documents = [(doc.id, doc.to_dict() or {}) for doc in query.stream()]
        except Exception as exc:
            logger.error("Failed to query candidate pool: %s", str(exc))
            raise FirestoreUnavailableError(str(exc)) from exc

        pool: list[Profile] = []
        for doc_id, data in documents:
            if (data.get("uid") or doc_id) in excluded:
                continue
            try:
                pool.append(profile_from_document(data, doc_id))
            except ValueError as exc:
                logger.warning("Skipping malformed profile %s: %s", doc_id, str(exc))

        logger.debug("get_candidate_pool requester=%s size=%s", requester_id, len(pool))
        return pool


class FirestorePreferenceStore:
    """Discovery filters stored at user_filters/{uid}."""

    def load_filters(self, user_id: str) -> PreferenceCriteria:
        try:
            doc = get_db().collection(FILTERS_COLLECTION).document(user_id).get()
        except Exception as exc:
            logger.error("Failed to load filters: %s", str(exc))
            raise FirestoreUnavailableError(str(exc)) from exc

        if not doc.exists:
            return PreferenceCriteria()

        stored: dict[str, Any] = (doc.to_dict() or {}).get("filters") or {}
        try:
            # Saved filters override defaults field by field.
            return PreferenceCriteria.model_validate(
                {**PreferenceCriteria().model_dump(mode="json"), **stored}
            )
        except ValidationError as exc:
            logger.warning("Ignoring malformed filters for %s: %s", user_id, str(exc))
            return PreferenceCriteria()

    def save_filters(self, user_id: str, criteria: PreferenceCriteria) -> None:
        try:
            get_db().collection(FILTERS_COLLECTION).document(user_id).set(
                {
                    "userId": user_id,
                    "filters": criteria.model_dump(mode="json"),
                    "updatedAt": firestore.SERVER_TIMESTAMP,
                }
            )
        except Exception as exc:
            logger.error("Failed to save filters: %s", str(exc))
            raise FirestoreUnavailableError(str(exc)) from exc


class FirestoreSwipeRecorder:
    """Writes swipes to the swipes collection.

    Persisted swipes drive the swiped-user exclusion in FirestoreUserStore
    and mutual-match lookups. The in-memory behavior history is not
    reloaded from them on restart.
    """

    def record_swipe(self, record: SwipeRecord) -> None:
        try:
            get_db().collection(SWIPES_COLLECTION).add(
                {
                    "swiperId": record.requester_id,
                    "swipedId": record.features.candidate_id,
                    "isLike": record.is_like,
                    "isSuperLike": record.is_super_like,
                    "features": record.features.model_dump(mode="json"),
                    "createdAt": record.timestamp,
                }
            )
        except Exception as exc:
            logger.error("Failed to record swipe: %s", str(exc))
            raise FirestoreUnavailableError(str(exc)) from exc

    def has_liked(self, swiper_id: str, swiped_id: str) -> bool:
        """Look up a like from ``swiper_id`` on ``swiped_id``."""

        try:
            query = (
                get_db()
                .collection(SWIPES_COLLECTION)
                .where("swiperId", "==", swiper_id)
                .where("swipedId", "==", swiped_id)
                .where("isLike", "==", True)
                .limit(1)
            )
            return any(True for _ in query.stream())
        except Exception as exc:
            logger.error("Failed to check mutual like: %s", str(exc))
            raise FirestoreUnavailableError(str(exc)) from exc
