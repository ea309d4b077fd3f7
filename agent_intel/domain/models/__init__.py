from .intelligence_state import (
    ContextPriority,
    ContextTree,
    ContextTreeMetadata,
    GlobalStats,
    IntelligenceMetadata,
    IntelligenceOptions,
    IntelligenceResult,
    Pattern,
    PatternFeedback,
    PatternMatch,
    PatternMatchResult,
    PatternMatchSummary,
    PatternUsageStats,
    PerformanceStats,
    Recommendation,
    RecommendationAction,
    SessionIntelligence,
    ToolCall,
)
from .memory_state import (
    AggregationResult,
    ExecutionRecord,
    MemoryEntry,
    MemoryQuery,
    MemoryStats,
    MemoryTier,
    PatternFrequency,
    TierStats,
    TimeRange,
)

__all__ = [
    "AggregationResult",
    "ContextPriority",
    "ContextTree",
    "ContextTreeMetadata",
    "ExecutionRecord",
    "GlobalStats",
    "IntelligenceMetadata",
    "IntelligenceOptions",
    "IntelligenceResult",
    "MemoryEntry",
    "MemoryQuery",
    "MemoryStats",
    "MemoryTier",
    "Pattern",
    "PatternFeedback",
    "PatternFrequency",
    "PatternMatch",
    "PatternMatchResult",
    "PatternMatchSummary",
    "PatternUsageStats",
    "PerformanceStats",
    "Recommendation",
    "RecommendationAction",
    "SessionIntelligence",
    "TierStats",
    "TimeRange",
    "ToolCall",
]
