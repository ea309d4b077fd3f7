from .collaborators import ContextTreeBuilder, PatternMatcher
from .intelligence_engine import IntelligenceEngine, generate_recommendation, should_build_context
from .session_tracker import SessionTracker

__all__ = [
    "ContextTreeBuilder",
    "IntelligenceEngine",
    "PatternMatcher",
    "SessionTracker",
    "generate_recommendation",
    "should_build_context",
]
