from typing import Dict, Any, List, Optional
from pydantic import BaseModel, Field, model_validator
from datetime import datetime
from enum import Enum
import uuid


MEMORY_SCHEMA_VERSION = 1


class MemoryTier(str, Enum):
    """Retention class of a memory entry"""
    SHORT_TERM = "short_term"
    LONG_TERM = "long_term"


class MemoryEntry(BaseModel):
    """One stored fact plus its lifetime envelope"""
    key: str = Field(min_length=1, description="Unique within tier and namespace")
    value: Any = None
    tier: MemoryTier = MemoryTier.SHORT_TERM
    session_id: Optional[str] = None
    namespace: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    expires_at: datetime = Field(default_factory=datetime.utcnow)
    schema_version: int = MEMORY_SCHEMA_VERSION

    @model_validator(mode="after")
    def _check_lifetime(self) -> "MemoryEntry":
        if self.expires_at < self.created_at:
            raise ValueError("expires_at must not precede created_at")
        return self

    def is_expired(self, now: datetime) -> bool:
        """An entry is logically absent once now passes expires_at"""
        return now > self.expires_at


class MemoryQuery(BaseModel):
    """Filter for MemoryService.search; a missing tier means both tiers"""
    tier: Optional[MemoryTier] = None
    session_id: Optional[str] = None
    namespace: Optional[str] = None
    tags: Optional[List[str]] = None
    search_text: Optional[str] = None
    limit: Optional[int] = Field(default=None, ge=1)
    include_expired: bool = False


class ExecutionRecord(BaseModel):
    """Tool execution history row handed to the durable storage"""
    execution_id: str = Field(default_factory=lambda: f"tool_{uuid.uuid4().hex[:12]}")
    tool_name: str
    session_id: str
    parameters: str = "{}"
    result: str = "null"
    success: bool
    execution_time_ms: float = 0.0
    pattern_id: Optional[str] = None
    error_message: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)


class PatternFrequency(BaseModel):
    """Normalized key pattern with its frequency"""
    pattern: str
    frequency: int
    examples: List[str] = Field(default_factory=list)


class TimeRange(BaseModel):
    start: datetime
    end: datetime


class AggregationResult(BaseModel):
    """Heuristic digest of a slice of memory entries"""
    summary: str
    patterns: List[PatternFrequency] = Field(default_factory=list)
    insights: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    time_range: TimeRange
    total_entries_analyzed: int = 0


class TierStats(BaseModel):
    count: int = 0
    size_bytes: int = 0
    oldest_entry: Optional[datetime] = None
    newest_entry: Optional[datetime] = None


class MemoryStats(BaseModel):
    """Snapshot of what the store currently holds"""
    short_term: TierStats = Field(default_factory=TierStats)
    long_term: TierStats = Field(default_factory=TierStats)
    total_entries: int = 0
    total_size_bytes: int = 0
    sessions: int = 0
    namespaces: List[str] = Field(default_factory=list)
