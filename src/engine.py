"""Discovery engine: the entry point callers use for ranking and swipes.

Wires the stores into the discovery graph, validates request parameters up
front, and keeps the behavior repository current as swipes come in.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Optional

from src.config import config
from src.graphs.matching import build_degraded_matches, create_discovery_graph
from src.models import (
    CandidateFeatures,
    PreferenceCriteria,
    Profile,
    RankedCandidate,
    SwipeRecord,
)
from src.tools.behavior_tools import BehaviorRepository, InMemoryBehaviorRepository
from src.tools.filter_tools import validate_criteria
from src.tools.stores import PreferenceStore, SwipeRecorder, UserStore
from src.utils.errors import PRECONDITION_ERRORS
from src.utils.logging_config import logger

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class DiscoveryEngine:
    """Ranked discovery over pluggable user, preference, and swipe stores."""

    def __init__(
        self,
        user_store: UserStore,
        preference_store: PreferenceStore,
        behavior_repository: Optional[BehaviorRepository] = None,
        swipe_recorder: Optional[SwipeRecorder] = None,
        *,
        clock: Clock = utc_now,
        min_history: Optional[int] = None,
    ):
        self.user_store = user_store
        self.preference_store = preference_store
        self.behavior_repository = behavior_repository or InMemoryBehaviorRepository(
            config.SWIPE_HISTORY_LIMIT
        )
        self.swipe_recorder = swipe_recorder
        self.clock = clock
        self._graph = create_discovery_graph(
            user_store,
            self.behavior_repository,
            min_history=(
                config.BEHAVIOR_MIN_HISTORY if min_history is None else min_history
            ),
        )

    def get_ranked_matches(
        self,
        requester_id: str,
        criteria: Optional[PreferenceCriteria] = None,
        limit: Optional[int] = None,
    ) -> list[RankedCandidate]:
        """Return up to ``limit`` candidates ordered by rank score, best first.

        Raises:
            InvalidCriteriaError: If the criteria or limit are invalid.
            InvalidCoordinateError: If the requester's origin is invalid.
            MissingLocationError: If neither the requester nor the criteria
                supply a location.
        """

        limit = config.DEFAULT_MATCH_LIMIT if limit is None else limit
        if criteria is None:
            criteria = self.load_filters(requester_id)
        validate_criteria(criteria, limit)

        initial_state = {
            "requester_id": requester_id,
            "criteria": criteria,
            "limit": limit,
            "now": self.clock(),
        }

        try:
            result = self._graph.invoke(initial_state)
        except PRECONDITION_ERRORS:
            raise
        except Exception as exc:
            logger.error("Discovery graph failed for %s: %s", requester_id, str(exc))
            return build_degraded_matches([], limit)

        return result.get("final_matches", [])

    def record_swipe(
        self,
        requester_id: str,
        candidate: Profile,
        is_like: bool,
        *,
        is_super_like: bool = False,
    ) -> bool:
        """Remember a swipe for behavioral ranking.

        A super-like counts as a like. Returns True when the swipe completes a
        mutual match, which needs a swipe recorder that saw the other side.

        Never raises: a lost swipe only weakens future personalization.
        """

        is_like = is_like or is_super_like
        try:
            record = SwipeRecord(
                requester_id=requester_id,
                features=CandidateFeatures.from_profile(candidate),
                is_like=is_like,
                is_super_like=is_super_like,
                timestamp=self.clock(),
            )
            self.behavior_repository.append(requester_id, record)
        except Exception as exc:
            logger.error("Failed to record swipe for %s: %s", requester_id, str(exc))
            return False

        if self.swipe_recorder is None:
            return False

        try:
            self.swipe_recorder.record_swipe(record)
        except Exception as exc:
            logger.warning("Failed to persist swipe for %s: %s", requester_id, str(exc))
            return False

        if not is_like:
            return False

        try:
            is_match = bool(self.swipe_recorder.has_liked(candidate.id, requester_id))
        except Exception as exc:
            logger.warning("Mutual match check failed for %s: %s", requester_id, str(exc))
            return False

        if is_match:
            logger.info("Mutual match between %s and %s", requester_id, candidate.id)
        return is_match

    def load_filters(self, user_id: str) -> PreferenceCriteria:
        """Saved criteria for ``user_id``; defaults if the store is unavailable."""

        try:
            return self.preference_store.load_filters(user_id)
        except Exception as exc:
            logger.warning("Using default filters for %s: %s", user_id, str(exc))
            return PreferenceCriteria()

    def save_filters(self, user_id: str, criteria: PreferenceCriteria) -> None:
        validate_criteria(criteria)
        self.preference_store.save_filters(user_id, criteria)
        logger.info("Saved discovery filters for %s", user_id)


def build_engine() -> DiscoveryEngine:
    """Create an engine backed by Firestore, or by seeded demo stores."""

    behavior_repository = InMemoryBehaviorRepository(config.SWIPE_HISTORY_LIMIT)

    if config.FIREBASE_PROJECT_ID:
        from src.tools.firestore_tools import (
            FirestorePreferenceStore,
            FirestoreSwipeRecorder,
            FirestoreUserStore,
        )

        logger.info("Using Firestore stores for project %s", config.FIREBASE_PROJECT_ID)
        return DiscoveryEngine(
            FirestoreUserStore(config.MAX_CANDIDATES),
            FirestorePreferenceStore(),
            behavior_repository,
            FirestoreSwipeRecorder() if config.PERSIST_SWIPES else None,
        )

    from src.tools.profile_fixtures import build_demo_pool
    from src.tools.stores import InMemoryPreferenceStore, InMemoryUserStore

    logger.info(
        "FIREBASE_PROJECT_ID not set; seeding %s demo profiles", config.DEMO_POOL_SIZE
    )
    user_store = InMemoryUserStore(
        build_demo_pool(config.DEMO_POOL_SIZE, seed=config.DEMO_SEED)
    )
    return DiscoveryEngine(
        user_store,
        InMemoryPreferenceStore(),
        behavior_repository,
        user_store,
    )
