from typing import Dict, Any, Optional, List
from pydantic import BaseModel, Field

from agent_intel.domain.models.intelligence_state import IntelligenceOptions, PatternFeedback
from agent_intel.domain.models.memory_state import MemoryTier


class IntelligenceRequest(BaseModel):
    """Utterance to route"""
    user_input: str = Field(min_length=1)
    options: IntelligenceOptions = Field(default_factory=IntelligenceOptions)


class ToolExecutionRequest(BaseModel):
    """Outcome of a tool run, reported back for learning"""
    session_id: str
    tool_name: str
    parameters: Dict[str, Any] = Field(default_factory=dict)
    result: Any = None
    success: bool
    execution_time_ms: float = Field(default=0.0, ge=0.0)
    pattern_id: Optional[str] = None


class PatternFeedbackRequest(BaseModel):
    feedback: PatternFeedback
    context: Optional[Dict[str, Any]] = None


class PatternFeedbackResponse(BaseModel):
    pattern_id: str
    feedback: PatternFeedback
    confidence: float


class StoreMemoryRequest(BaseModel):
    """Memory write; omitted ttl_override uses the tier default"""
    key: str = Field(min_length=1)
    value: Any = None
    tier: MemoryTier = MemoryTier.SHORT_TERM
    session_id: Optional[str] = None
    namespace: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    ttl_override: Optional[int] = Field(default=None, gt=0)


class StoreMemoryResponse(BaseModel):
    key: str
    tier: MemoryTier
    namespace: Optional[str] = None
    stored: bool = True


class DeleteMemoryResponse(BaseModel):
    key: str
    tier: MemoryTier
    deleted: bool


class ClearMemoryResponse(BaseModel):
    deleted_count: int
