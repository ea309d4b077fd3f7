from typing import Dict, Any, List, Optional
from datetime import datetime, timedelta

import pytest

from agent_intel.domain.intelligence import ContextTreeBuilder, IntelligenceEngine, PatternMatcher
from agent_intel.domain.memory import MemoryService
from agent_intel.domain.models import (
    ContextTree,
    ContextTreeMetadata,
    Pattern,
    PatternMatch,
    PatternMatchResult,
    ToolCall,
)
from agent_intel.domain.storage import InMemoryStorage
from agent_intel.infrastructure.config import MemoryConfig


class FakeClock:
    """Manually advanced replacement for datetime.utcnow"""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2024, 1, 1, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> datetime:
        self.now += timedelta(**delta)
        return self.now


def make_match_result(
    confidence: float,
    fast_path: bool = False,
    pattern_id: str = "list_tasks",
    tool_name: str = "list_tasks"
) -> PatternMatchResult:
    pattern = Pattern(id=pattern_id, confidence=confidence, tool_name=tool_name)
    return PatternMatchResult(
        matched=True,
        confidence=confidence,
        should_use_fast_path=fast_path,
        execution_time_ms=1.5,
        pattern_match=PatternMatch(
            pattern=pattern,
            confidence=confidence,
            tool_call=ToolCall(name=tool_name, parameters={"status": "open"})
        )
    )


class FakePatternMatcher(PatternMatcher):

    def __init__(self, patterns: Optional[List[Pattern]] = None, result: Optional[PatternMatchResult] = None):
        self.patterns: Dict[str, Pattern] = {p.id: p for p in patterns or []}
        self.result = result or PatternMatchResult()
        self.error: Optional[Exception] = None
        self.init_error: Optional[Exception] = None
        self.initialized = False
        self.source_path: Optional[str] = None
        self.threshold: Optional[float] = None
        self.calls: List[tuple] = []
        self.updates: List[Dict[str, Any]] = []

    async def initialize(self, source_path: Optional[str] = None) -> None:
        if self.init_error:
            raise self.init_error
        self.initialized = True
        self.source_path = source_path

    def set_fast_path_threshold(self, threshold: float) -> None:
        self.threshold = threshold

    async def process_user_input(self, text: str, session_id: str) -> PatternMatchResult:
        self.calls.append((text, session_id))
        if self.error:
            raise self.error
        return self.result

    async def update_pattern_confidence(
        self,
        pattern_id: str,
        success: bool,
        execution_time_ms: float,
        confidence: Optional[float] = None
    ) -> None:
        self.updates.append({
            "pattern_id": pattern_id,
            "success": success,
            "execution_time_ms": execution_time_ms,
            "confidence": confidence
        })
        pattern = self.patterns.get(pattern_id)
        if pattern and confidence is not None:
            pattern.confidence = confidence

    def get_pattern(self, pattern_id: str) -> Optional[Pattern]:
        return self.patterns.get(pattern_id)

    def get_patterns(self) -> List[Pattern]:
        return list(self.patterns.values())


class FakeContextTreeBuilder(ContextTreeBuilder):

    def __init__(self, total_nodes: int = 0, tool_executions: int = 3):
        self.total_nodes = total_nodes
        self.tool_executions = tool_executions
        self.initialized = False
        self.template_path: Optional[str] = None
        self.builds: List[tuple] = []
        self.prompt_requests: List[tuple] = []
        self.error: Optional[Exception] = None
        self.cleared = False

    async def initialize(self, template_path: Optional[str] = None) -> None:
        self.initialized = True
        self.template_path = template_path

    async def build_context_tree(self, session_id: str, limit: int = 50) -> ContextTree:
        if self.error:
            raise self.error
        self.builds.append((session_id, limit))
        return ContextTree(
            session_id=session_id,
            total_nodes=self.total_nodes,
            context_depth=2 if self.total_nodes else 0,
            metadata=ContextTreeMetadata(total_tool_executions=self.tool_executions)
        )

    async def get_context_for_prompt(
        self,
        session_id: str,
        max_nodes: int = 50,
        include_low_priority: bool = False
    ) -> str:
        self.prompt_requests.append((session_id, max_nodes, include_low_priority))
        return f"## Session {session_id}\n{self.total_nodes} context nodes"

    def get_cache_stats(self) -> Dict[str, Any]:
        return {"cached_trees": len(self.builds)}

    def clear_cache(self) -> None:
        self.cleared = True


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def storage(clock):
    return InMemoryStorage(clock=clock)


@pytest.fixture
def memory_config():
    return MemoryConfig()


@pytest.fixture
async def memory(storage, clock, memory_config):
    service = MemoryService(storage, memory_config, clock=clock)
    await service.initialize()
    yield service
    await service.shutdown()


@pytest.fixture
def matcher():
    return FakePatternMatcher(patterns=[
        Pattern(id="list_tasks", confidence=0.92, tool_name="list_tasks"),
        Pattern(id="create_task", confidence=0.6, tool_name="create_task"),
    ])


@pytest.fixture
def builder():
    return FakeContextTreeBuilder()


@pytest.fixture
async def engine(matcher, builder, storage):
    engine = IntelligenceEngine(matcher, builder, storage)
    await engine.initialize()
    return engine
