from typing import Callable, Dict, Any, List, Optional
from collections import defaultdict
from datetime import datetime, timedelta
from fnmatch import fnmatchcase
import asyncio
import copy

import structlog

from agent_intel.domain.models.memory_state import ExecutionRecord
from .base import DurableStorage

logger = structlog.get_logger(__name__)


class InMemoryStorage(DurableStorage):
    """In-process storage with TTL support, partitioned by namespace"""

    def __init__(self, clock: Optional[Callable[[], datetime]] = None, max_executions: int = 1000):
        self.partitions: Dict[str, Dict[str, Dict[str, Any]]] = defaultdict(dict)
        self.tool_executions: List[ExecutionRecord] = []
        self.max_executions = max_executions
        self._clock = clock or datetime.utcnow
        self._lock = asyncio.Lock()

    def _is_expired(self, entry: Dict[str, Any], now: datetime) -> bool:
        return entry["expires_at"] is not None and now > entry["expires_at"]

    async def set(self, key: str, value: Any, ttl: Optional[int] = None, namespace: str = "default") -> None:
        """Set a value with an optional TTL"""

        async with self._lock:
            expires_at = None
            if ttl:
                expires_at = self._clock() + timedelta(seconds=ttl)

            self.partitions[namespace][key] = {
                "value": copy.deepcopy(value),
                "expires_at": expires_at
            }

    async def get(self, key: str, namespace: str = "default") -> Optional[Any]:
        """Get value if present and not expired"""

        async with self._lock:
            partition = self.partitions.get(namespace)
            if not partition or key not in partition:
                return None

            entry = partition[key]

            if self._is_expired(entry, self._clock()):
                del partition[key]
                return None

            return copy.deepcopy(entry["value"])

    async def delete(self, key: str, namespace: str = "default") -> bool:
        """Delete a key"""

        async with self._lock:
            partition = self.partitions.get(namespace)
            if partition and key in partition:
                del partition[key]
                return True
            return False

    async def find(
        self,
        pattern: str,
        filter: Optional[Dict[str, Any]] = None,
        namespace: str = "default"
    ) -> List[Dict[str, Any]]:
        """Find live keys matching a glob pattern"""

        async with self._lock:
            now = self._clock()
            rows = []

            for key, entry in self.partitions.get(namespace, {}).items():
                if self._is_expired(entry, now) or not fnmatchcase(key, pattern):
                    continue

                value = entry["value"]
                if filter:
                    if not isinstance(value, dict):
                        continue
                    if any(value.get(field) != expected for field, expected in filter.items()):
                        continue

                rows.append({"key": key, "value": copy.deepcopy(value)})

            return rows

    async def clear_expired(self) -> int:
        """Clear TTL-expired keys in every partition and return count"""

        async with self._lock:
            now = self._clock()
            removed = 0

            for partition in self.partitions.values():
                expired_keys = [
                    key for key, entry in partition.items()
                    if self._is_expired(entry, now)
                ]
                for key in expired_keys:
                    del partition[key]
                removed += len(expired_keys)

        if removed:
            logger.debug("Cleared expired storage keys", removed=removed)

        return removed

    async def record_tool_execution(self, record: ExecutionRecord) -> None:
        """Append a tool execution, keeping the newest max_executions"""

        async with self._lock:
            self.tool_executions.append(record.model_copy())

            if len(self.tool_executions) > self.max_executions:
                self.tool_executions = self.tool_executions[-self.max_executions:]

    async def get_tool_executions(self, session_id: str, limit: Optional[int] = None) -> List[ExecutionRecord]:
        """Get tool executions for a session, newest first"""

        async with self._lock:
            records = [r for r in reversed(self.tool_executions) if r.session_id == session_id]
            return records[:limit] if limit else records

    async def health_check(self) -> Dict[str, Any]:
        """Report storage statistics"""

        async with self._lock:
            now = self._clock()
            total = sum(len(p) for p in self.partitions.values())
            active = sum(
                1 for partition in self.partitions.values()
                for entry in partition.values()
                if not self._is_expired(entry, now)
            )

            return {
                "status": "healthy",
                "partitions": sorted(self.partitions.keys()),
                "total_keys": total,
                "active_keys": active,
                "expired_keys": total - active,
                "tool_executions": len(self.tool_executions)
            }
