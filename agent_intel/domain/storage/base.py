from abc import ABC, abstractmethod
from typing import Dict, Any, List, Optional

from agent_intel.domain.models.memory_state import ExecutionRecord


class DurableStorage(ABC):
    """Keyed storage beneath the in-memory layer.

    Keys live inside a namespace partition. ``find`` takes a glob pattern
    (``*`` matches any run of characters, including ``:``) and an optional
    equality filter applied to dict values.
    """

    @abstractmethod
    async def get(self, key: str, namespace: str = "default") -> Optional[Any]:
        """Return the stored value or None"""
        pass

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: Optional[int] = None, namespace: str = "default") -> None:
        """Store a value, optionally expiring after ttl seconds"""
        pass

    @abstractmethod
    async def delete(self, key: str, namespace: str = "default") -> bool:
        """Delete a key and report whether it existed"""
        pass

    @abstractmethod
    async def find(
        self,
        pattern: str,
        filter: Optional[Dict[str, Any]] = None,
        namespace: str = "default"
    ) -> List[Dict[str, Any]]:
        """Return ``{"key", "value"}`` rows whose key matches pattern"""
        pass

    @abstractmethod
    async def record_tool_execution(self, record: ExecutionRecord) -> None:
        """Append one tool execution to the history"""
        pass

    @abstractmethod
    async def get_tool_executions(self, session_id: str, limit: Optional[int] = None) -> List[ExecutionRecord]:
        """Return a session's executions, newest first"""
        pass

    @abstractmethod
    async def health_check(self) -> Dict[str, Any]:
        """Report ``{"status": "healthy" | "degraded" | "unhealthy", ...}``"""
        pass
