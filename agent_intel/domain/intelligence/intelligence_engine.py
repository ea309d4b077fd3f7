from typing import Dict, List, Any, Optional, Union
from datetime import datetime
import json
import re
import time

import structlog

from agent_intel.domain.models.intelligence_state import (
    ContextPriority,
    ContextTree,
    GlobalStats,
    IntelligenceMetadata,
    IntelligenceOptions,
    IntelligenceResult,
    PatternFeedback,
    PatternMatchResult,
    PatternMatchSummary,
    PerformanceStats,
    Recommendation,
    RecommendationAction,
    SessionIntelligence,
)
from agent_intel.domain.exceptions import IntelligenceInitializationError
from agent_intel.domain.models.memory_state import ExecutionRecord
from agent_intel.domain.storage.base import DurableStorage
from agent_intel.infrastructure.config.settings import IntelligenceConfig
from agent_intel.infrastructure.observability.logging import MetricsCollector, intelligence_logger
from .collaborators import ContextTreeBuilder, PatternMatcher
from .session_tracker import SessionTracker

logger = structlog.get_logger(__name__)

SERVICE_VERSION = "1.0.0"

LOW_CONFIDENCE_THRESHOLD = 0.75
COMPLEX_INPUT_LENGTH = 100
ANALYSIS_INTENT = re.compile(r"analyze|explain|understand|context|why|how", re.IGNORECASE)

RICH_CONTEXT_NODES = 10
USABLE_CONTEXT_NODES = 5
ENHANCED_CONFIDENCE_BOOST = 0.1
ENHANCED_CONFIDENCE_CEILING = 0.85
STANDARD_PATH_DEFAULT_CONFIDENCE = 0.3
NO_MATCH_CONFIDENCE = 0.1

FALLBACK_CONFIDENCE = 0.1
FALLBACK_REASONING = "fallback"

FEEDBACK_ADJUSTMENT = {
    PatternFeedback.POSITIVE: 0.05,
    PatternFeedback.NEGATIVE: -0.1,
}
MIN_PATTERN_CONFIDENCE = 0.1
MAX_PATTERN_CONFIDENCE = 0.99
TOP_PATTERNS_LIMIT = 10


def clamp_confidence(value: float) -> float:
    return max(MIN_PATTERN_CONFIDENCE, min(MAX_PATTERN_CONFIDENCE, value))


def is_complex_input(user_input: str) -> bool:
    """Long inputs, questions and analysis requests benefit from context"""
    return (
        len(user_input) > COMPLEX_INPUT_LENGTH
        or "?" in user_input
        or ANALYSIS_INTENT.search(user_input) is not None
    )


def should_build_context(pattern_result: Optional[PatternMatchResult], user_input: str) -> bool:
    if pattern_result is None or not pattern_result.matched:
        return True

    if pattern_result.confidence < LOW_CONFIDENCE_THRESHOLD:
        return True

    return is_complex_input(user_input)


def generate_recommendation(
    pattern_result: Optional[PatternMatchResult],
    context_tree: Optional[ContextTree]
) -> Recommendation:
    """Fuse the pattern and context signals; rules are tried in priority order"""

    matched = pattern_result is not None and pattern_result.matched
    match = pattern_result.pattern_match if pattern_result else None
    suggested_tools = [match.tool_call.name] if match else None

    if matched and pattern_result.should_use_fast_path:
        pattern_id = match.pattern.id if match else None
        return Recommendation(
            action=RecommendationAction.FAST_PATH,
            confidence=pattern_result.confidence,
            reasoning=f'High confidence pattern match ({pattern_result.confidence * 100:.1f}%) for "{pattern_id}"',
            suggested_tools=suggested_tools,
            context_priority=ContextPriority.LOW
        )

    if matched and context_tree is not None and context_tree.total_nodes > RICH_CONTEXT_NODES:
        return Recommendation(
            action=RecommendationAction.ENHANCED_CONTEXT,
            confidence=min(ENHANCED_CONFIDENCE_CEILING, pattern_result.confidence + ENHANCED_CONFIDENCE_BOOST),
            reasoning=f"Pattern match with rich session context ({context_tree.total_nodes} context nodes)",
            suggested_tools=suggested_tools,
            context_priority=ContextPriority.HIGH
        )

    if context_tree is not None and context_tree.total_nodes > USABLE_CONTEXT_NODES:
        confidence = STANDARD_PATH_DEFAULT_CONFIDENCE
        if pattern_result is not None and pattern_result.confidence:
            confidence = pattern_result.confidence
        return Recommendation(
            action=RecommendationAction.STANDARD_PATH,
            confidence=confidence,
            reasoning=(
                f"Using standard path with session context ({context_tree.total_nodes} nodes, "
                f"{context_tree.metadata.total_tool_executions} tool executions)"
            ),
            context_priority=ContextPriority.MEDIUM
        )

    return Recommendation(
        action=RecommendationAction.NO_MATCH,
        confidence=NO_MATCH_CONFIDENCE,
        reasoning="No pattern match and minimal context available",
        context_priority=ContextPriority.LOW
    )


class IntelligenceEngine:
    """Decides how much reasoning an utterance needs and learns from outcomes"""

    def __init__(
        self,
        pattern_matcher: PatternMatcher,
        context_builder: ContextTreeBuilder,
        storage: DurableStorage,
        config: Optional[IntelligenceConfig] = None,
        session_tracker: Optional[SessionTracker] = None,
        metrics: Optional[MetricsCollector] = None
    ):
        self.pattern_matcher = pattern_matcher
        self.context_builder = context_builder
        self.storage = storage
        self.config = config or IntelligenceConfig()
        self.session_tracker = session_tracker or SessionTracker()
        self.metrics = metrics or MetricsCollector()
        self.initialized = False
        self.started_at = time.monotonic()

    async def initialize(self, config: Optional[IntelligenceConfig] = None) -> None:
        """Set up the collaborators the configuration enables"""

        if self.initialized:
            return

        if config:
            self.config = config

        logger.info("Initializing intelligence engine")

        try:
            if self.config.enable_pattern_matching:
                await self.pattern_matcher.initialize(self.config.pattern_source_path)

                if self.config.fast_path_threshold is not None:
                    self.pattern_matcher.set_fast_path_threshold(self.config.fast_path_threshold)

            if self.config.enable_context_trees:
                await self.context_builder.initialize(self.config.context_template_path)

            self.initialized = True
            logger.info("Intelligence engine initialized")
        except Exception as e:
            logger.error("Failed to initialize intelligence engine", error=str(e))
            raise IntelligenceInitializationError(f"Intelligence engine initialization failed: {e}") from e

    async def get_intelligence(
        self,
        user_input: str,
        options: Optional[IntelligenceOptions] = None
    ) -> IntelligenceResult:
        """Recommend fast path, context-scoped or full reasoning for one utterance.

        Never raises: any failure of a collaborator or of the bookkeeping
        yields a ``standard_path`` fallback result.
        """

        start_time = time.perf_counter()
        options = options or IntelligenceOptions()
        session_id = options.session_id

        logger.info("Getting intelligence", input=user_input[:100], session_id=session_id)

        try:
            features_used: List[str] = []
            pattern_result: Optional[PatternMatchResult] = None
            context_tree: Optional[ContextTree] = None
            context_prompt: Optional[str] = None

            use_patterns = self._flag(options.enable_pattern_matching, self.config.enable_pattern_matching)
            use_context = self._flag(options.enable_context_trees, self.config.enable_context_trees)
            max_nodes = options.context_max_nodes or self.config.context_max_nodes
            include_low_priority = self._flag(
                options.include_low_priority_context,
                self.config.include_low_priority_context
            )

            pattern_start = time.perf_counter()

            if use_patterns:
                features_used.append("pattern_matching")
                pattern_result = await self.pattern_matcher.process_user_input(user_input, session_id)

                if pattern_result.matched:
                    logger.info(
                        "Pattern match found",
                        confidence=round(pattern_result.confidence, 3),
                        pattern=pattern_result.pattern_match.pattern.id if pattern_result.pattern_match else None,
                        fast_path=pattern_result.should_use_fast_path
                    )

            pattern_time = self._elapsed_ms(pattern_start)
            context_start = time.perf_counter()

            if use_context and should_build_context(pattern_result, user_input):
                features_used.append("context_trees")

                context_tree = await self.context_builder.build_context_tree(session_id, limit=max_nodes)

                context_prompt = await self.context_builder.get_context_for_prompt(
                    session_id,
                    max_nodes=max_nodes,
                    include_low_priority=include_low_priority
                )

            context_time = self._elapsed_ms(context_start)

            recommendation = generate_recommendation(pattern_result, context_tree)

            # Counters move only once the whole decision succeeded
            await self.session_tracker.record_query(
                session_id,
                recommendation.action,
                pattern_result=pattern_result,
                context_tree=context_tree,
                context_max_nodes=max_nodes
            )
            cache_hits, cache_misses = await self.session_tracker.cache_counters()

            total_time = self._elapsed_ms(start_time)
            self.metrics.record_decision(recommendation.action.value, total_time)
            self.metrics.record_latency("intelligence.pattern_match", pattern_time)
            if context_tree is not None:
                self.metrics.record_latency("intelligence.context_build", context_time)
            self.metrics.set_gauge("intelligence.active_sessions", await self.session_tracker.session_count())
            intelligence_logger.log_decision(
                session_id=session_id,
                action=recommendation.action.value,
                confidence=recommendation.confidence,
                features_used=features_used,
                duration_ms=total_time,
                pattern_id=(
                    pattern_result.pattern_match.pattern.id
                    if pattern_result and pattern_result.pattern_match else None
                )
            )

            return IntelligenceResult(
                pattern_match=PatternMatchSummary(
                    found=pattern_result.matched,
                    confidence=pattern_result.confidence,
                    should_use_fast_path=pattern_result.should_use_fast_path,
                    execution_time_ms=pattern_result.execution_time_ms,
                    match=pattern_result.pattern_match
                ) if pattern_result else None,
                context_tree=context_tree,
                context_prompt=context_prompt,
                recommendation=recommendation,
                performance=PerformanceStats(
                    total_time_ms=total_time,
                    pattern_match_time_ms=pattern_time,
                    context_build_time_ms=context_time,
                    cache_hits=cache_hits,
                    cache_misses=cache_misses
                ),
                metadata=IntelligenceMetadata(
                    session_id=session_id,
                    service_version=SERVICE_VERSION,
                    features_used=features_used
                )
            )

        except Exception as e:
            logger.error(
                "Failed to get intelligence",
                error=str(e),
                error_type=type(e).__name__,
                session_id=session_id,
                input=user_input[:100]
            )
            return await self._fallback_result(session_id, self._elapsed_ms(start_time))

    async def _fallback_result(self, session_id: str, execution_time_ms: float) -> IntelligenceResult:
        cache_hits, cache_misses = await self.session_tracker.record_fallback()
        self.metrics.record_decision(FALLBACK_REASONING, execution_time_ms)

        return IntelligenceResult(
            recommendation=Recommendation(
                action=RecommendationAction.STANDARD_PATH,
                confidence=FALLBACK_CONFIDENCE,
                reasoning=FALLBACK_REASONING,
                context_priority=ContextPriority.LOW
            ),
            performance=PerformanceStats(
                total_time_ms=execution_time_ms,
                cache_hits=cache_hits,
                cache_misses=cache_misses
            ),
            metadata=IntelligenceMetadata(
                session_id=session_id,
                service_version=SERVICE_VERSION,
                features_used=["fallback"]
            )
        )

    # Adaptation

    async def record_tool_execution(
        self,
        session_id: str,
        tool_name: str,
        parameters: Dict[str, Any],
        result: Any,
        success: bool,
        execution_time_ms: float,
        pattern_id: Optional[str] = None
    ) -> None:
        """Feed an execution outcome back to the matcher and persist it"""

        try:
            if pattern_id:
                await self.pattern_matcher.update_pattern_confidence(pattern_id, success, execution_time_ms)

            error_message = None
            if not success:
                error_message = result.get("error") if isinstance(result, dict) else None
                error_message = str(error_message or "Unknown error")

            await self.storage.record_tool_execution(ExecutionRecord(
                tool_name=tool_name,
                session_id=session_id,
                parameters=json.dumps(parameters, default=str),
                result=json.dumps(result, default=str),
                success=success,
                execution_time_ms=execution_time_ms,
                pattern_id=pattern_id,
                error_message=error_message
            ))

            intelligence_logger.log_tool_execution(
                tool_name=tool_name,
                session_id=session_id,
                duration_ms=execution_time_ms,
                success=success,
                pattern_id=pattern_id
            )
        except Exception as e:
            logger.error("Failed to record tool execution", error=str(e), session_id=session_id, tool_name=tool_name)

    async def adapt_pattern(
        self,
        pattern_id: str,
        feedback: Union[PatternFeedback, str],
        context: Optional[Dict[str, Any]] = None
    ) -> Optional[float]:
        """Nudge a pattern's confidence from user feedback; returns the new confidence"""

        feedback = PatternFeedback(feedback)

        try:
            pattern = self.pattern_matcher.get_pattern(pattern_id)
            if pattern is None:
                logger.warning("Cannot adapt unknown pattern", pattern_id=pattern_id)
                return None

            new_confidence = clamp_confidence(pattern.confidence + FEEDBACK_ADJUSTMENT[feedback])

            await self.pattern_matcher.update_pattern_confidence(
                pattern_id,
                feedback == PatternFeedback.POSITIVE,
                0,
                confidence=new_confidence
            )

            intelligence_logger.log_pattern_feedback(
                pattern_id=pattern_id,
                feedback=feedback.value,
                old_confidence=pattern.confidence,
                new_confidence=new_confidence
            )
            return new_confidence

        except Exception as e:
            logger.error("Failed to adapt pattern", error=str(e), pattern_id=pattern_id, context=context)
            return None

    # Analytics and monitoring

    async def get_session_intelligence(self, session_id: str) -> Optional[SessionIntelligence]:
        return await self.session_tracker.get_session(session_id)

    async def get_global_stats(self) -> GlobalStats:
        return await self.session_tracker.get_global_stats()

    async def get_execution_history(self, session_id: str, limit: Optional[int] = None) -> List[ExecutionRecord]:
        return await self.storage.get_tool_executions(session_id, limit)

    async def get_pattern_analytics(self) -> Dict[str, Any]:
        patterns = self.pattern_matcher.get_patterns()

        top_patterns = []
        for pattern in sorted(patterns, key=lambda p: p.usage_stats.success_count, reverse=True)[:TOP_PATTERNS_LIMIT]:
            usage = pattern.usage_stats
            attempts = usage.success_count + usage.failure_count
            top_patterns.append({
                "id": pattern.id,
                "confidence": pattern.confidence,
                "success_count": usage.success_count,
                "failure_count": usage.failure_count,
                "success_rate": usage.success_count / attempts if attempts else 0.0
            })

        patterns_by_tool: Dict[str, List[str]] = {}
        for pattern in patterns:
            patterns_by_tool.setdefault(pattern.tool_name, []).append(pattern.id)

        return {
            "total_patterns": len(patterns),
            "average_confidence": sum(p.confidence for p in patterns) / len(patterns) if patterns else 0.0,
            "top_patterns": top_patterns,
            "patterns_by_tool": patterns_by_tool
        }

    async def get_context_analytics(self) -> Dict[str, Any]:
        global_stats = await self.session_tracker.get_global_stats()

        return {
            "cache_stats": self.context_builder.get_cache_stats(),
            "context_tree_builds": global_stats.context_tree_builds,
            "average_tree_complexity": await self.session_tracker.average_context_nodes()
        }

    def get_metrics(self) -> Dict[str, Any]:
        return self.metrics.get_metrics_summary()

    def clear_caches(self) -> None:
        self.context_builder.clear_cache()
        logger.info("Cleared all caches")

    async def reset_stats(self) -> None:
        """Drop session aggregates, global counters and metrics"""

        await self.session_tracker.reset()
        self.metrics.reset()

    async def health_check(self) -> Dict[str, Any]:
        uptime = time.monotonic() - self.started_at

        try:
            cache_hits, cache_misses = await self.session_tracker.cache_counters()
            return {
                "status": "healthy" if self.initialized else "degraded",
                "cache_hits": cache_hits,
                "cache_misses": cache_misses,
                "total_patterns": len(self.pattern_matcher.get_patterns()),
                "active_contexts": await self.session_tracker.session_count(),
                "uptime_seconds": uptime,
                "checked_at": datetime.utcnow().isoformat()
            }
        except Exception as e:
            logger.error("Intelligence health check failed", error=str(e))
            return {
                "status": "unhealthy",
                "cache_hits": 0,
                "cache_misses": 0,
                "total_patterns": 0,
                "active_contexts": 0,
                "uptime_seconds": uptime,
                "checked_at": datetime.utcnow().isoformat()
            }

    @staticmethod
    def _flag(override: Optional[bool], default: bool) -> bool:
        return default if override is None else override

    @staticmethod
    def _elapsed_ms(start: float) -> float:
        return (time.perf_counter() - start) * 1000
