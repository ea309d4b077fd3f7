from abc import ABC, abstractmethod
from typing import Dict, Any, List, Optional

from agent_intel.domain.models.intelligence_state import ContextTree, Pattern, PatternMatchResult


class PatternMatcher(ABC):
    """Contract for the natural-language pattern matcher"""

    @abstractmethod
    async def initialize(self, source_path: Optional[str] = None) -> None:
        """Load patterns, optionally from a source file"""
        pass

    @abstractmethod
    def set_fast_path_threshold(self, threshold: float) -> None:
        """Minimum confidence at which a match recommends the fast path"""
        pass

    @abstractmethod
    async def process_user_input(self, text: str, session_id: str) -> PatternMatchResult:
        """Match an utterance against known patterns"""
        pass

    @abstractmethod
    async def update_pattern_confidence(
        self,
        pattern_id: str,
        success: bool,
        execution_time_ms: float,
        confidence: Optional[float] = None
    ) -> None:
        """Record an outcome for a pattern.

        ``confidence`` carries an already clamped target value when the
        caller computed one (explicit user feedback); otherwise the matcher
        applies its own adjustment rule.
        """
        pass

    @abstractmethod
    def get_pattern(self, pattern_id: str) -> Optional[Pattern]:
        pass

    @abstractmethod
    def get_patterns(self) -> List[Pattern]:
        pass


class ContextTreeBuilder(ABC):
    """Contract for the session context tree builder"""

    @abstractmethod
    async def initialize(self, template_path: Optional[str] = None) -> None:
        pass

    @abstractmethod
    async def build_context_tree(self, session_id: str, limit: int = 50) -> ContextTree:
        """Assemble a bounded tree of the session's execution history"""
        pass

    @abstractmethod
    async def get_context_for_prompt(
        self,
        session_id: str,
        max_nodes: int = 50,
        include_low_priority: bool = False
    ) -> str:
        """Render the session context as a prompt fragment"""
        pass

    @abstractmethod
    def get_cache_stats(self) -> Dict[str, Any]:
        pass

    @abstractmethod
    def clear_cache(self) -> None:
        pass
