"""Discovery graph: fetch, filter, score, and rank candidates."""

from __future__ import annotations

from langgraph.graph import StateGraph

from src.graphs.base_graph import BaseGraph
from src.models import (
    CompatibilityScore,
    Profile,
    RankedCandidate,
    ScoreBreakdown,
)
from src.state import DiscoveryState
from src.tools.behavior_tools import (
    MIN_HISTORY_FOR_BOOST,
    NEUTRAL_SCORE,
    BehaviorRepository,
    rank_candidates,
)
from src.tools.filter_tools import (
    candidate_distance_km,
    candidate_metrics,
    filter_candidates,
    resolve_origin,
)
from src.tools.scoring_tools import score_candidate
from src.tools.stores import UserStore
from src.utils.errors import PRECONDITION_ERRORS, ProfileNotFoundError
from src.utils.logging_config import logger

DEGRADED_REASON = "Suggested for you"


def _with_state(state: DiscoveryState, **updates) -> DiscoveryState:
    """Return a new state dict with updates applied."""

    return {**state, **updates}


def build_degraded_matches(pool: list[Profile], limit: int) -> list[RankedCandidate]:
    """Unscored pool in input order with placeholder scores.

    Used when ranking fails so discovery screens always have something to
    render. Every entry is flagged ``degraded``.
    """

    placeholder = CompatibilityScore(
        overall=NEUTRAL_SCORE,
        breakdown=ScoreBreakdown(
            interests=NEUTRAL_SCORE,
            demographics=NEUTRAL_SCORE,
            activity=NEUTRAL_SCORE,
            behavior=NEUTRAL_SCORE,
            location=NEUTRAL_SCORE,
        ),
        reasons=[DEGRADED_REASON],
    )
    return [
        RankedCandidate(
            profile=profile,
            compatibility=placeholder,
            distance_km=None,
            rank_score=NEUTRAL_SCORE,
            degraded=True,
        )
        for profile in pool[:limit]
    ]


class DiscoveryGraph(BaseGraph):
    """Multi-step discovery pipeline with a degraded fallback."""

    def __init__(
        self,
        user_store: UserStore,
        behavior_repository: BehaviorRepository,
        *,
        min_history: int = MIN_HISTORY_FOR_BOOST,
    ):
        super().__init__()
        self.user_store = user_store
        self.behavior_repository = behavior_repository
        self.min_history = min_history

    def build_graph(self) -> StateGraph:
        graph = StateGraph(DiscoveryState)

        graph.add_node("fetch_requester", self.node_fetch_requester)
        graph.add_node("query_candidates", self.node_query_candidates)
        graph.add_node("filter_candidates", self.node_filter_candidates)
        graph.add_node("score_matches", self.node_score_matches)
        graph.add_node("rank_matches", self.node_rank_matches)
        graph.add_node("finalize_response", self.node_finalize_response)

        graph.set_entry_point("fetch_requester")
        graph.add_edge("fetch_requester", "query_candidates")
        graph.add_edge("query_candidates", "filter_candidates")
        graph.add_edge("filter_candidates", "score_matches")
        graph.add_edge("score_matches", "rank_matches")
        graph.add_edge("rank_matches", "finalize_response")
        graph.set_finish_point("finalize_response")

        return graph

    def node_fetch_requester(self, state: DiscoveryState) -> DiscoveryState:
        """Load the requester's profile and a snapshot of their swipe history."""

        try:
            self._log_node_execution("fetch_requester", state)
            requester_id = state["requester_id"]
            requester = self.user_store.get_profile(requester_id)
            if requester is None:
                raise ProfileNotFoundError(f"User profile not found: {requester_id}")

            return _with_state(
                state,
                requester=requester,
                behavior=self.behavior_repository.snapshot(requester_id),
            )
        except Exception as exc:
            self._log_node_error("fetch_requester", exc)
            return _with_state(
                state, error=f"Failed to load requester: {str(exc)}"
            )

    def node_query_candidates(self, state: DiscoveryState) -> DiscoveryState:
        """Fetch the candidate pool for this requester."""

        if state.get("error"):
            return state

        try:
            self._log_node_execution("query_candidates", state)
            pool = self.user_store.get_candidate_pool(
                state["requester_id"], state["criteria"]
            )
            candidates = [p for p in pool if p.id != state["requester_id"]]
            return _with_state(state, candidates=candidates)
        except Exception as exc:
            self._log_node_error("query_candidates", exc)
            return _with_state(
                state,
                error="Failed to query candidates. Returning degraded matches.",
                candidates=[],
            )

    def node_filter_candidates(self, state: DiscoveryState) -> DiscoveryState:
        """Drop candidates that violate any hard constraint."""

        if state.get("error"):
            return state

        try:
            self._log_node_execution("filter_candidates", state)
            filtered = filter_candidates(
                state.get("candidates", []),
                state["requester"],
                state["criteria"],
                now=state["now"],
            )
            return _with_state(state, filtered_candidates=filtered)
        except PRECONDITION_ERRORS:
            raise
        except Exception as exc:
            self._log_node_error("filter_candidates", exc)
            return _with_state(
                state,
                error="Filtering failed. Returning degraded matches.",
                filtered_candidates=[],
            )

    def node_score_matches(self, state: DiscoveryState) -> DiscoveryState:
        """Score each surviving candidate; skip malformed ones."""

        if state.get("error"):
            return state

        try:
            self._log_node_execution("score_matches", state)
            filtered = state.get("filtered_candidates", [])
            if not filtered:
                return _with_state(state, scored_matches=[])

            requester = state["requester"]
            criteria = state["criteria"]
            origin = resolve_origin(requester, criteria)
            scored: list[RankedCandidate] = []

            for candidate in filtered:
                try:
                    distance = candidate_distance_km(origin, candidate)
                    compatibility = score_candidate(
                        requester,
                        candidate,
                        criteria,
                        state["behavior"],
                        now=state["now"],
                        distance_km=distance,
                    )
                    metrics = candidate_metrics(candidate, criteria, state["now"])
                except (ValueError, ArithmeticError) as exc:
                    logger.warning(
                        "Skipping malformed candidate %s: %s", candidate.id, str(exc)
                    )
                    continue

                scored.append(
                    RankedCandidate(
                        profile=candidate,
                        compatibility=compatibility,
                        distance_km=distance,
                        rank_score=compatibility.overall,
                        metrics=metrics,
                    )
                )

            return _with_state(state, scored_matches=scored)
        except PRECONDITION_ERRORS:
            raise
        except Exception as exc:
            self._log_node_error("score_matches", exc)
            return _with_state(
                state,
                error="Scoring failed. Returning degraded matches.",
                scored_matches=[],
            )

    def node_rank_matches(self, state: DiscoveryState) -> DiscoveryState:
        """Apply the behavioral boost and keep the top ``limit`` matches."""

        if state.get("error"):
            return state

        try:
            self._log_node_execution("rank_matches", state)
            ranked = rank_candidates(
                state.get("scored_matches", []),
                state["behavior"],
                min_history=self.min_history,
            )
            return _with_state(state, ranked_matches=ranked[: state["limit"]])
        except Exception as exc:
            self._log_node_error("rank_matches", exc)
            return _with_state(
                state,
                error="Ranking failed. Returning degraded matches.",
                ranked_matches=[],
            )

    def _fallback_pool(self, state: DiscoveryState) -> list[Profile]:
        if "candidates" in state:
            return state["candidates"]

        # The pool was never fetched (requester lookup failed); try once.
        try:
            pool = self.user_store.get_candidate_pool(
                state["requester_id"], state["criteria"]
            )
        except Exception as exc:
            logger.warning("Fallback pool unavailable: %s", str(exc))
            return []
        return [p for p in pool if p.id != state["requester_id"]]

    def node_finalize_response(self, state: DiscoveryState) -> DiscoveryState:
        """Construct final matches and response metadata."""

        if state.get("error"):
            logger.error(
                "Discovery degraded for %s: %s",
                state.get("requester_id"),
                state.get("error"),
            )
            final_matches = build_degraded_matches(
                self._fallback_pool(state), state["limit"]
            )
            return _with_state(
                state,
                final_matches=final_matches,
                response_metadata={
                    "success": True,
                    "degraded": True,
                    "total_candidates": len(state.get("candidates", [])),
                    "filtered_count": 0,
                    "returned": len(final_matches),
                },
            )

        final_matches = state.get("ranked_matches", [])
        metadata = {
            "success": True,
            "degraded": False,
            "total_candidates": len(state.get("candidates", [])),
            "filtered_count": len(state.get("filtered_candidates", [])),
            "returned": len(final_matches),
        }
        logger.info(
            "Discovery for %s: candidates=%s filtered=%s returned=%s",
            state.get("requester_id"),
            metadata["total_candidates"],
            metadata["filtered_count"],
            metadata["returned"],
        )
        return _with_state(
            state, final_matches=final_matches, response_metadata=metadata
        )


def create_discovery_graph(
    user_store: UserStore,
    behavior_repository: BehaviorRepository,
    *,
    min_history: int = MIN_HISTORY_FOR_BOOST,
):
    """Build and compile the discovery graph."""

    graph_builder = DiscoveryGraph(
        user_store, behavior_repository, min_history=min_history
    )
    return graph_builder.compile()
