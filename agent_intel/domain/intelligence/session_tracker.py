from typing import Dict, Optional, Tuple
import asyncio

from agent_intel.domain.models.intelligence_state import (
    ContextTree, GlobalStats, PatternMatchResult, RecommendationAction, SessionIntelligence
)

MAX_TOP_PATTERNS = 10


class SessionTracker:
    """Per-session rolling aggregates and process-wide counters.

    All state sits behind one lock. Aggregates are advisory: two concurrent
    queries for the same session are applied one after the other, in
    whatever order they reach the lock.
    """

    def __init__(self):
        self.sessions: Dict[str, SessionIntelligence] = {}
        self.counters = self._empty_counters()
        self.total_context_nodes = 0
        self._lock = asyncio.Lock()

    @staticmethod
    def _empty_counters() -> Dict[str, int]:
        return {
            "total_queries": 0,
            "fast_path_queries": 0,
            "pattern_matches": 0,
            "context_tree_builds": 0,
            "cache_hits": 0,
            "cache_misses": 0
        }

    async def record_query(
        self,
        session_id: str,
        action: RecommendationAction,
        pattern_result: Optional[PatternMatchResult] = None,
        context_tree: Optional[ContextTree] = None,
        context_max_nodes: int = 50
    ) -> SessionIntelligence:
        """Fold one finished query into its session aggregate and the global counters.

        A pattern lookup counts as a cache hit when it matched and a miss
        otherwise; a built tree counts as one context build.
        """

        async with self._lock:
            stats = self.sessions.get(session_id)
            if stats is None:
                stats = SessionIntelligence(session_id=session_id)
                self.sessions[session_id] = stats

            stats.total_queries += 1
            self.counters["total_queries"] += 1

            if pattern_result is not None:
                self.counters["pattern_matches"] += 1
                self.counters["cache_hits" if pattern_result.matched else "cache_misses"] += 1

            if context_tree is not None:
                self.counters["context_tree_builds"] += 1
                self.total_context_nodes += context_tree.total_nodes

            if action == RecommendationAction.FAST_PATH:
                stats.fast_path_usage += 1
                self.counters["fast_path_queries"] += 1

            # Rolling, not a true mean: recent samples weigh more.
            if pattern_result is not None and pattern_result.confidence:
                stats.average_confidence = (stats.average_confidence + pattern_result.confidence) / 2

            match = pattern_result.pattern_match if pattern_result else None
            if match is not None and match.pattern.id not in stats.top_patterns:
                stats.top_patterns.append(match.pattern.id)
                stats.top_patterns = stats.top_patterns[-MAX_TOP_PATTERNS:]

            if context_tree is not None:
                density = min(1.0, context_tree.total_nodes / max(context_max_nodes, 1))
                stats.context_complexity = (stats.context_complexity + density) / 2

            stats.learning_progress = stats.fast_path_usage / stats.total_queries

            return stats.model_copy(deep=True)

    async def record_fallback(self) -> Tuple[int, int]:
        """Count a failed query as a cache miss; returns (hits, misses)"""

        async with self._lock:
            self.counters["cache_misses"] += 1
            return self.counters["cache_hits"], self.counters["cache_misses"]

    async def cache_counters(self) -> Tuple[int, int]:
        async with self._lock:
            return self.counters["cache_hits"], self.counters["cache_misses"]

    async def get_session(self, session_id: str) -> Optional[SessionIntelligence]:
        async with self._lock:
            stats = self.sessions.get(session_id)
            return stats.model_copy(deep=True) if stats else None

    async def session_count(self) -> int:
        async with self._lock:
            return len(self.sessions)

    async def average_context_nodes(self) -> float:
        async with self._lock:
            builds = self.counters["context_tree_builds"]
            return self.total_context_nodes / builds if builds else 0.0

    async def get_global_stats(self) -> GlobalStats:
        async with self._lock:
            total = self.counters["total_queries"]
            return GlobalStats(
                **self.counters,
                sessions=len(self.sessions),
                average_fast_path_rate=self.counters["fast_path_queries"] / total if total else 0.0,
                pattern_match_rate=self.counters["pattern_matches"] / total if total else 0.0
            )

    async def reset(self):
        """Forget all sessions and zero the counters"""

        async with self._lock:
            self.sessions.clear()
            self.counters = self._empty_counters()
            self.total_context_nodes = 0
