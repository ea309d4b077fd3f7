from typing import Dict, Any, List, Optional
from pydantic import BaseModel, Field
from datetime import datetime
from enum import Enum


class RecommendationAction(str, Enum):
    """Routing decision produced by the intelligence engine"""
    FAST_PATH = "fast_path"
    ENHANCED_CONTEXT = "enhanced_context"
    STANDARD_PATH = "standard_path"
    NO_MATCH = "no_match"


class ContextPriority(str, Enum):
    """How much weight downstream prompts should give session context"""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class PatternFeedback(str, Enum):
    """Explicit user feedback on a matched pattern"""
    POSITIVE = "positive"
    NEGATIVE = "negative"


class PatternUsageStats(BaseModel):
    """Outcome counters kept by the pattern matcher"""
    success_count: int = 0
    failure_count: int = 0
    average_latency: float = 0.0
    last_used: Optional[datetime] = None


class Pattern(BaseModel):
    """A learned utterance pattern owned by the pattern matcher"""
    id: str = Field(description="Pattern identifier")
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    tool_name: str = Field(default="", description="Tool the pattern resolves to")
    usage_stats: PatternUsageStats = Field(default_factory=PatternUsageStats)


class ToolCall(BaseModel):
    """Resolved tool invocation"""
    name: str
    parameters: Dict[str, Any] = Field(default_factory=dict)


class PatternMatch(BaseModel):
    """Pattern hit with its resolved tool call"""
    pattern: Pattern
    confidence: float = Field(ge=0.0, le=1.0)
    extracted_variables: Dict[str, Any] = Field(default_factory=dict)
    tool_call: ToolCall


class PatternMatchResult(BaseModel):
    """Per-call output of the pattern matcher"""
    matched: bool = False
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    should_use_fast_path: bool = False
    execution_time_ms: float = 0.0
    pattern_match: Optional[PatternMatch] = None


class ContextTreeMetadata(BaseModel):
    """Session-level figures reported by the context tree builder"""
    total_tool_executions: int = 0
    workflows_active: int = 0
    user_interactions: int = 0
    average_response_time: float = 0.0
    primary_domain: Optional[str] = None


class ContextTree(BaseModel):
    """Bounded tree of a session's execution history"""
    session_id: str
    total_nodes: int = Field(default=0, ge=0)
    context_depth: int = 0
    root_nodes: List[Dict[str, Any]] = Field(default_factory=list)
    last_updated: datetime = Field(default_factory=datetime.utcnow)
    metadata: ContextTreeMetadata = Field(default_factory=ContextTreeMetadata)


class Recommendation(BaseModel):
    """Fused routing recommendation"""
    action: RecommendationAction
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: str
    suggested_tools: Optional[List[str]] = None
    context_priority: ContextPriority = ContextPriority.LOW


class PatternMatchSummary(BaseModel):
    """Pattern-match portion of an intelligence result"""
    found: bool
    confidence: float
    should_use_fast_path: bool
    execution_time_ms: float
    match: Optional[PatternMatch] = None


class PerformanceStats(BaseModel):
    """Timings for one intelligence call plus cumulative cache counters"""
    total_time_ms: float = 0.0
    pattern_match_time_ms: float = 0.0
    context_build_time_ms: float = 0.0
    cache_hits: int = 0
    cache_misses: int = 0


class IntelligenceMetadata(BaseModel):
    """Bookkeeping attached to every intelligence result"""
    session_id: str
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    service_version: str = "1.0.0"
    features_used: List[str] = Field(default_factory=list)


class IntelligenceResult(BaseModel):
    """Complete output of IntelligenceEngine.get_intelligence"""
    pattern_match: Optional[PatternMatchSummary] = None
    context_tree: Optional[ContextTree] = None
    context_prompt: Optional[str] = None
    recommendation: Recommendation
    performance: PerformanceStats = Field(default_factory=PerformanceStats)
    metadata: IntelligenceMetadata


class IntelligenceOptions(BaseModel):
    """Per-call overrides for get_intelligence"""
    session_id: str = "default"
    enable_pattern_matching: Optional[bool] = None
    enable_context_trees: Optional[bool] = None
    context_max_nodes: Optional[int] = Field(default=None, ge=1)
    include_low_priority_context: Optional[bool] = None


class SessionIntelligence(BaseModel):
    """Rolling per-session aggregate"""
    session_id: str
    total_queries: int = 0
    fast_path_usage: int = 0
    average_confidence: float = 0.0
    top_patterns: List[str] = Field(default_factory=list)
    context_complexity: float = 0.0
    learning_progress: float = 0.0


class GlobalStats(BaseModel):
    """Process-wide counters plus derived rates"""
    total_queries: int = 0
    fast_path_queries: int = 0
    pattern_matches: int = 0
    context_tree_builds: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    sessions: int = 0
    average_fast_path_rate: float = 0.0
    pattern_match_rate: float = 0.0
