"""Dual-tier working memory.

Entries live in the durable storage under composite keys
``memory:{tier}:{namespace}:{key}``. The service keeps two pieces of
in-memory state on top of the storage: a per-tier registry of
``composite key -> created_at`` used for eviction, and an inverted token
index over the long-term tier. Both are rebuilt from storage on
``initialize``.
"""

from typing import Any, Callable, Dict, List, Optional, Union
from datetime import datetime, timedelta
import asyncio
import contextlib
import glob
import time

import structlog

from agent_intel.domain.exceptions import (
    AggregationUnavailableError,
    MemoryNotInitializedError,
    StorageUnavailableError,
)
from agent_intel.domain.models.memory_state import (
    AggregationResult, MemoryEntry, MemoryQuery, MemoryStats, MemoryTier, TierStats
)
from agent_intel.domain.storage.base import DurableStorage
from agent_intel.infrastructure.config.settings import MemoryConfig
from agent_intel.infrastructure.observability.logging import intelligence_logger
from .aggregation import MemoryAggregator, entry_size
from .inverted_index import InvertedIndex, serialize_value

logger = structlog.get_logger(__name__)

MEMORY_NAMESPACE = "memory"
NO_NAMESPACE = "_"

TierLike = Union[MemoryTier, str]


def build_memory_key(key: str, tier: TierLike, namespace: Optional[str] = None) -> str:
    return ":".join([MEMORY_NAMESPACE, MemoryTier(tier).value, namespace or NO_NAMESPACE, key])


def build_search_pattern(tier: Optional[TierLike] = None, namespace: Optional[str] = None) -> str:
    """Glob over composite keys; absent tier or namespace become wildcards"""
    return ":".join([
        MEMORY_NAMESPACE,
        MemoryTier(tier).value if tier else "*",
        glob.escape(namespace) if namespace else "*",
        "*",
    ])


class MemoryService:
    """Short-term/long-term memory with TTL, eviction and aggregation"""

    def __init__(
        self,
        storage: DurableStorage,
        config: Optional[MemoryConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
        aggregator: Optional[MemoryAggregator] = None
    ):
        self.storage = storage
        self.config = config or MemoryConfig()
        self.aggregator = aggregator or MemoryAggregator()
        self.initialized = False
        self.last_cleanup: Optional[datetime] = None
        self.long_term_index = InvertedIndex(capacity=self.config.long_term.max_entries)
        self._clock = clock or datetime.utcnow
        self._registry: Dict[MemoryTier, Dict[str, datetime]] = {tier: {} for tier in MemoryTier}
        self._reaper_task: Optional[asyncio.Task] = None
        self.stats = self._empty_stats()

    @staticmethod
    def _empty_stats() -> Dict[str, int]:
        return {
            "store_operations": 0,
            "retrieve_operations": 0,
            "search_operations": 0,
            "aggregation_operations": 0,
            "cache_hits": 0,
            "cache_misses": 0,
            "evictions": 0,
            "expired_removed": 0
        }

    # Lifecycle

    async def initialize(self, config: Optional[MemoryConfig] = None) -> None:
        """Verify storage, rebuild in-memory state and start the reaper"""

        if self.initialized:
            return

        logger.info("Initializing memory service")

        try:
            if config:
                self.config = config

            health = await self.storage.health_check()
            if health.get("status") == "unhealthy":
                raise StorageUnavailableError(f"Durable storage unhealthy: {health}")

            await self._load_existing_entries()
            self._start_reaper()
            self.initialized = True

            logger.info(
                "Memory service initialized",
                short_term_ttl=self.config.short_term.ttl,
                long_term_ttl=self.config.long_term.ttl,
                aggregation_enabled=self.config.enable_aggregation,
                loaded_entries=sum(len(keys) for keys in self._registry.values())
            )
        except Exception as e:
            logger.error("Failed to initialize memory service", error=str(e))
            raise

    async def shutdown(self) -> None:
        """Stop the reaper; the service must be initialized again before use"""

        if self._reaper_task:
            self._reaper_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._reaper_task
            self._reaper_task = None

        self.initialized = False
        logger.info("Memory service shut down")

    def _start_reaper(self) -> None:
        if self._reaper_task is None or self._reaper_task.done():
            self._reaper_task = asyncio.create_task(self._reaper_loop())

    async def _reaper_loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.cleanup_interval_seconds)
            await self.cleanup_expired()

    async def _load_existing_entries(self) -> None:
        self._registry = {tier: {} for tier in MemoryTier}
        self.long_term_index = InvertedIndex(capacity=self.config.long_term.max_entries)

        entries = await self._scan()
        entries.sort(key=lambda e: e.created_at)

        for entry in entries:
            memory_key = build_memory_key(entry.key, entry.tier, entry.namespace)
            self._registry[entry.tier][memory_key] = entry.created_at
            if entry.tier == MemoryTier.LONG_TERM:
                await self.long_term_index.add(memory_key, entry.value)

    # Core operations

    async def store(
        self,
        key: str,
        value: Any,
        tier: TierLike = MemoryTier.SHORT_TERM,
        *,
        session_id: Optional[str] = None,
        namespace: Optional[str] = None,
        tags: Optional[List[str]] = None,
        metadata: Optional[Dict[str, Any]] = None,
        ttl_override: Optional[int] = None
    ) -> None:
        """Write an entry, then evict the tier's oldest entries beyond max_entries"""

        if not self.initialized:
            raise MemoryNotInitializedError("MemoryService not initialized")
        if namespace and ":" in namespace:
            raise ValueError("namespace must not contain ':'")
        if ttl_override is not None and ttl_override <= 0:
            raise ValueError("ttl_override must be positive")

        tier = MemoryTier(tier)
        start_time = time.perf_counter()
        self.stats["store_operations"] += 1

        try:
            ttl = ttl_override or self.config.tier(tier).ttl
            now = self._clock()
            entry = MemoryEntry(
                key=key,
                value=value,
                tier=tier,
                session_id=session_id,
                namespace=namespace,
                tags=tags or [],
                metadata=metadata or {},
                created_at=now,
                expires_at=now + timedelta(seconds=ttl)
            )
            envelope = entry.model_dump(mode="json")
            memory_key = build_memory_key(key, tier, namespace)

            await self.storage.set(memory_key, envelope, namespace=MEMORY_NAMESPACE)

            self._registry[tier].pop(memory_key, None)
            self._registry[tier][memory_key] = now
            if tier == MemoryTier.LONG_TERM:
                await self.long_term_index.add(memory_key, envelope["value"])
        except Exception as e:
            logger.error("Failed to store memory entry", key=key, tier=tier.value, error=str(e))
            raise

        await self._enforce_memory_limits(tier)

        logger.debug(
            "Stored memory entry",
            key=key,
            tier=tier.value,
            session_id=session_id,
            namespace=namespace,
            value_size=len(serialize_value(envelope["value"])),
            execution_time_ms=round((time.perf_counter() - start_time) * 1000, 2)
        )

    async def retrieve(
        self,
        key: str,
        tier: TierLike = MemoryTier.SHORT_TERM,
        *,
        namespace: Optional[str] = None,
        include_metadata: bool = False
    ) -> Optional[Any]:
        """Return the value (or full entry) if present and not expired"""

        if not self.initialized:
            return None

        tier = MemoryTier(tier)
        self.stats["retrieve_operations"] += 1

        try:
            memory_key = build_memory_key(key, tier, namespace)
            raw = await self.storage.get(memory_key, MEMORY_NAMESPACE)

            if raw is None:
                self.stats["cache_misses"] += 1
                return None

            entry = MemoryEntry.model_validate(raw)

            if entry.is_expired(self._clock()):
                await self._remove(memory_key, tier)
                self.stats["expired_removed"] += 1
                self.stats["cache_misses"] += 1
                return None

            self.stats["cache_hits"] += 1
            return entry if include_metadata else entry.value

        except Exception as e:
            logger.error("Failed to retrieve memory entry", key=key, tier=tier.value, error=str(e))
            self.stats["cache_misses"] += 1
            return None

    async def search(self, query: Optional[MemoryQuery] = None, **filters) -> List[MemoryEntry]:
        """Filter entries by tier, session, namespace, tags and text, newest first"""

        if not self.initialized:
            return []

        query = query or MemoryQuery(**filters)

        if not self.config.enable_global_access and not (query.session_id or query.namespace):
            logger.warning("Unscoped memory search rejected; global access disabled")
            return []

        self.stats["search_operations"] += 1

        try:
            return await self._search(query)
        except Exception as e:
            logger.error("Failed to search memory", query=query.model_dump(mode="json"), error=str(e))
            return []

    async def recall(self, text: str, limit: Optional[int] = None) -> List[MemoryEntry]:
        """Token lookup over the long-term tier through the inverted index"""

        if not self.initialized:
            return []

        self.stats["search_operations"] += 1

        try:
            keys = await self.long_term_index.search_keys(text)
            now = self._clock()
            entries = []

            for memory_key in keys:
                raw = await self.storage.get(memory_key, MEMORY_NAMESPACE)
                if raw is None:
                    continue
                entry = MemoryEntry.model_validate(raw)
                if not entry.is_expired(now):
                    entries.append(entry)

            entries.sort(key=lambda e: e.created_at, reverse=True)
            return entries[:limit] if limit else entries

        except Exception as e:
            logger.error("Failed to recall long-term memory", text=text[:100], error=str(e))
            return []

    async def delete(
        self,
        key: str,
        tier: TierLike = MemoryTier.SHORT_TERM,
        namespace: Optional[str] = None
    ) -> bool:
        """Delete one entry; deleting an absent key returns False"""

        if not self.initialized:
            raise MemoryNotInitializedError("MemoryService not initialized")

        tier = MemoryTier(tier)

        try:
            removed = await self._remove(build_memory_key(key, tier, namespace), tier)
        except Exception as e:
            logger.error("Failed to delete memory entry", key=key, tier=tier.value, error=str(e))
            raise

        logger.debug("Deleted memory entry", key=key, tier=tier.value, namespace=namespace, removed=removed)
        return removed

    async def clear(self, tier: Optional[TierLike] = None, namespace: Optional[str] = None) -> int:
        """Bulk delete by tier and/or namespace; returns the number removed"""

        if not self.initialized:
            raise MemoryNotInitializedError("MemoryService not initialized")

        tier = MemoryTier(tier) if tier else None

        try:
            rows = await self.storage.find(build_search_pattern(tier, namespace), {}, MEMORY_NAMESPACE)

            deleted = 0
            for row in rows:
                entry_tier = self._tier_of(row["key"])
                if await self._remove(row["key"], entry_tier):
                    deleted += 1

            intelligence_logger.log_memory_operation(
                "clear",
                tier=tier.value if tier else None,
                details={"namespace": namespace, "deleted_count": deleted}
            )
            return deleted

        except Exception as e:
            logger.error("Failed to clear memory", tier=tier.value if tier else None, namespace=namespace, error=str(e))
            return 0

    # Aggregation & statistics

    async def aggregate(self, query: Optional[MemoryQuery] = None, **filters) -> AggregationResult:
        """Mine up to aggregation_limit matching entries for patterns and insights"""

        if not self.config.enable_aggregation:
            raise AggregationUnavailableError("Memory aggregation is disabled")
        if not self.initialized:
            return self.aggregator.empty_result(self._clock())

        query = query or MemoryQuery(**filters)
        start_time = time.perf_counter()
        self.stats["aggregation_operations"] += 1

        try:
            cap = self.config.aggregation_limit
            limit = min(query.limit or cap, cap)
            entries = await self.search(query.model_copy(update={"limit": limit}))

            result = self.aggregator.aggregate(entries, now=self._clock())

            logger.info(
                "Memory aggregation completed",
                entries_analyzed=result.total_entries_analyzed,
                patterns_found=len(result.patterns),
                insights_generated=len(result.insights),
                execution_time_ms=round((time.perf_counter() - start_time) * 1000, 2)
            )
            return result

        except Exception as e:
            logger.error("Failed to aggregate memory", error=str(e))
            return self.aggregator.empty_result(self._clock())

    async def get_stats(self) -> MemoryStats:
        """Counts, sizes and age range of live entries per tier"""

        if not self.initialized:
            raise MemoryNotInitializedError("MemoryService not initialized")

        try:
            limit = self.config.stats_scan_limit
            short_term = await self._search(MemoryQuery(tier=MemoryTier.SHORT_TERM, limit=limit))
            long_term = await self._search(MemoryQuery(tier=MemoryTier.LONG_TERM, limit=limit))

            short_stats = self._tier_stats(short_term)
            long_stats = self._tier_stats(long_term)
            everything = short_term + long_term

            return MemoryStats(
                short_term=short_stats,
                long_term=long_stats,
                total_entries=len(everything),
                total_size_bytes=short_stats.size_bytes + long_stats.size_bytes,
                sessions=len({e.session_id for e in everything if e.session_id}),
                namespaces=sorted({e.namespace for e in everything if e.namespace})
            )
        except Exception as e:
            logger.error("Failed to get memory stats", error=str(e))
            raise

    def get_operational_stats(self) -> Dict[str, Any]:
        retrieves = self.stats["retrieve_operations"]
        return {
            **self.stats,
            "initialized": self.initialized,
            "config": self.config.model_dump(),
            "hit_rate": self.stats["cache_hits"] / retrieves if retrieves > 0 else 0.0,
            "last_cleanup": self.last_cleanup.isoformat() if self.last_cleanup else None
        }

    async def health_check(self) -> Dict[str, Any]:
        try:
            storage_health = await self.storage.health_check()
            stats = await self.get_stats()
            ops = self.get_operational_stats()

            return {
                "status": "healthy" if storage_health.get("status") == "healthy" else "degraded",
                "services": {
                    "initialized": self.initialized,
                    "database": storage_health.get("status") == "healthy",
                    "aggregation": self.config.enable_aggregation
                },
                "performance": {
                    "store_ops": ops["store_operations"],
                    "retrieve_ops": ops["retrieve_operations"],
                    "search_ops": ops["search_operations"],
                    "hit_rate": ops["hit_rate"]
                },
                "memory": {
                    "total_entries": stats.total_entries,
                    "hit_rate": ops["hit_rate"],
                    "last_cleanup": ops["last_cleanup"]
                }
            }
        except Exception as e:
            logger.error("Memory health check failed", error=str(e))
            return {
                "status": "unhealthy",
                "services": {"initialized": self.initialized},
                "performance": {},
                "memory": {"total_entries": 0, "hit_rate": 0.0, "last_cleanup": None}
            }

    # Expiry & eviction

    async def cleanup_expired(self) -> int:
        """Delete every entry whose expires_at has passed, in both tiers"""

        try:
            entries = await self._search(MemoryQuery(include_expired=True))
            now = self._clock()

            cleaned = 0
            for entry in entries:
                if entry.is_expired(now):
                    memory_key = build_memory_key(entry.key, entry.tier, entry.namespace)
                    if await self._remove(memory_key, entry.tier):
                        cleaned += 1

            self.last_cleanup = now
            self.stats["expired_removed"] += cleaned

            if cleaned:
                intelligence_logger.log_memory_operation(
                    "cleanup_expired",
                    details={"cleaned_count": cleaned, "total_entries": len(entries)}
                )
            return cleaned

        except Exception as e:
            logger.error("Failed to cleanup expired entries", error=str(e))
            return 0

    async def _enforce_memory_limits(self, tier: MemoryTier) -> None:
        max_entries = self.config.tier(tier).max_entries
        registry = self._registry[tier]

        if len(registry) <= max_entries:
            return

        try:
            oldest_first = sorted(registry.items(), key=lambda item: item[1])
            to_remove = [memory_key for memory_key, _ in oldest_first[:len(registry) - max_entries]]

            for memory_key in to_remove:
                await self._remove(memory_key, tier)

            self.stats["evictions"] += len(to_remove)
            logger.info(
                "Enforced memory limits",
                tier=tier.value,
                removed_entries=len(to_remove),
                remaining_entries=len(registry)
            )
        except Exception as e:
            logger.error("Failed to enforce memory limits", tier=tier.value, error=str(e))

    # Internals

    async def _remove(self, memory_key: str, tier: MemoryTier) -> bool:
        removed = await self.storage.delete(memory_key, MEMORY_NAMESPACE)
        self._registry[tier].pop(memory_key, None)
        if tier == MemoryTier.LONG_TERM:
            await self.long_term_index.remove(memory_key)
        return removed

    async def _scan(self, tier: Optional[MemoryTier] = None, namespace: Optional[str] = None) -> List[MemoryEntry]:
        rows = await self.storage.find(build_search_pattern(tier, namespace), {}, MEMORY_NAMESPACE)

        entries = []
        for row in rows:
            try:
                entries.append(MemoryEntry.model_validate(row["value"]))
            except Exception as e:
                logger.warning("Skipping unreadable memory entry", key=row.get("key"), error=str(e))
        return entries

    async def _search(self, query: MemoryQuery) -> List[MemoryEntry]:
        start_time = time.perf_counter()
        entries = await self._scan(query.tier, query.namespace)
        now = self._clock()

        results = [
            entry for entry in entries
            if self._matches_query(entry, query)
            and (query.include_expired or not entry.is_expired(now))
        ]
        results.sort(key=lambda e: e.created_at, reverse=True)

        if query.limit:
            results = results[:query.limit]

        logger.debug(
            "Memory search completed",
            results_found=len(results),
            execution_time_ms=round((time.perf_counter() - start_time) * 1000, 2)
        )
        return results

    @staticmethod
    def _matches_query(entry: MemoryEntry, query: MemoryQuery) -> bool:
        if query.tier and entry.tier != query.tier:
            return False

        if query.session_id and entry.session_id != query.session_id:
            return False

        if query.namespace and entry.namespace != query.namespace:
            return False

        if query.tags and not set(query.tags).intersection(entry.tags):
            return False

        if query.search_text:
            searchable = " ".join([
                entry.key,
                serialize_value(entry.value),
                entry.namespace or "",
                *entry.tags
            ]).lower()
            if query.search_text.lower() not in searchable:
                return False

        return True

    @staticmethod
    def _tier_of(memory_key: str) -> MemoryTier:
        return MemoryTier(memory_key.split(":", 2)[1])

    @staticmethod
    def _tier_stats(entries: List[MemoryEntry]) -> TierStats:
        if not entries:
            return TierStats()
        return TierStats(
            count=len(entries),
            size_bytes=sum(entry_size(e) for e in entries),
            oldest_entry=min(e.created_at for e in entries),
            newest_entry=max(e.created_at for e in entries)
        )
