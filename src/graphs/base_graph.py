"""Shared plumbing for the discovery service's LangGraph pipelines."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from langgraph.graph import StateGraph

from src.utils.logging_config import logger

# State keys holding candidate lists, reported with each node trace.
CANDIDATE_KEYS = ("candidates", "filtered_candidates", "scored_matches", "ranked_matches")


class BaseGraph(ABC):
    """Base for pipelines whose nodes take and return a state dict.

    Subclasses declare their nodes in ``build_graph``. Node traces name the
    requester and the size of each candidate list reached so far, which is
    enough to see where a discovery run lost its candidates.
    """

    graph_name = "discovery"

    def __init__(self):
        self.logger = logger
        self._compiled: Any = None

    @abstractmethod
    def build_graph(self) -> StateGraph:
        """Declare nodes and edges on a fresh StateGraph."""

    def _log_node_execution(self, node_name: str, state: dict) -> None:
        sizes = " ".join(
            f"{key}={len(state[key])}" for key in CANDIDATE_KEYS if key in state
        )
        self.logger.debug(
            "[%s] %s requester=%s %s",
            self.graph_name,
            node_name,
            state.get("requester_id"),
            sizes,
        )

    def _log_node_error(self, node_name: str, error: Exception) -> None:
        # Only the exception type and message; states carry profile data.
        self.logger.error(
            "[%s] %s failed: %s: %s",
            self.graph_name,
            node_name,
            type(error).__name__,
            str(error),
        )

    def compile(self):
        """Compile once and reuse; the graph shape never changes per instance."""

        if self._compiled is None:
            self._compiled = self.build_graph().compile()
        return self._compiled
