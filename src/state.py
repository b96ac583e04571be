"""Shared LangGraph state definitions.

Graph states are TypedDicts so state is explicit and consistent across
graph nodes.
"""

from __future__ import annotations

from datetime import datetime
from typing import TypedDict

from src.models import BehaviorProfile, PreferenceCriteria, Profile, RankedCandidate

JsonDict = dict[str, object]


class DiscoveryState(TypedDict, total=False):
    """State for the discovery ranking graph.

    Fields are optional at runtime because nodes populate them progressively.
    """

    # Identifies the requesting user.
    requester_id: str
    # Criteria for this request (already validated by the engine).
    criteria: PreferenceCriteria
    # Maximum number of matches to return.
    limit: int
    # Reference time for recency checks; fixed for the whole run.
    now: datetime
    # Requester profile loaded from the user store.
    requester: Profile
    # Point-in-time copy of the requester's swipe history.
    behavior: BehaviorProfile
    # Raw pool from the user store.
    candidates: list[Profile]
    # Candidates that pass every hard constraint.
    filtered_candidates: list[Profile]
    # Candidates with compatibility scores and distances.
    scored_matches: list[RankedCandidate]
    # Behavior-adjusted ranking, truncated to the limit.
    ranked_matches: list[RankedCandidate]
    # Final matches returned to the caller.
    final_matches: list[RankedCandidate]
    # Error string if any node fails; triggers the degraded fallback.
    error: str
    # Response metadata for observability.
    response_metadata: JsonDict
