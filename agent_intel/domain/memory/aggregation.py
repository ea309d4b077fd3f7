"""Heuristic mining of memory entries.

The aggregator is pure: it receives an already filtered slice of entries
(usually a MemoryService.search result capped at 1,000) and returns key
pattern frequencies, insights about how memory is being used, and
housekeeping recommendations.
"""

from typing import Dict, List, Optional
from datetime import datetime, timedelta
import json
import re

from agent_intel.domain.models.memory_state import (
    AggregationResult, MemoryEntry, MemoryTier, PatternFrequency, TimeRange
)

_HEX_RUN = re.compile(r"[0-9a-fA-F]{8,}")
_DIGIT_RUN = re.compile(r"\d+")

PLACEHOLDER = "*"
MAX_EXAMPLES = 3
RECENT_WINDOW = timedelta(hours=1)
RECENT_ACTIVITY_RATIO = 0.7
HIGH_SESSION_DIVERSITY = 10
SHORT_TERM_DOMINANCE = 3
LONG_TERM_DOMINANCE = 2
EXPIRED_RATIO = 0.2
HOT_PATTERN_FREQUENCY = 10
MAX_HEALTHY_BYTES = 1024 * 1024


def extract_key_pattern(key: str) -> str:
    """Collapse ids in a key, e.g. ``task:123`` -> ``task:*``"""
    return _DIGIT_RUN.sub(PLACEHOLDER, _HEX_RUN.sub(PLACEHOLDER, key))


def entry_size(entry: MemoryEntry) -> int:
    return len(json.dumps(entry.model_dump(mode="json"), ensure_ascii=False))


class MemoryAggregator:
    """Turns a slice of memory entries into an AggregationResult"""

    def aggregate(self, entries: List[MemoryEntry], now: Optional[datetime] = None) -> AggregationResult:
        now = now or datetime.utcnow()

        if not entries:
            return self.empty_result(now)

        patterns = self.analyze_patterns(entries)

        return AggregationResult(
            summary=self.summarize(entries, patterns),
            patterns=patterns,
            insights=self.generate_insights(entries, now),
            recommendations=self.generate_recommendations(entries, patterns, now),
            time_range=TimeRange(
                start=min(e.created_at for e in entries),
                end=max(e.created_at for e in entries)
            ),
            total_entries_analyzed=len(entries)
        )

    @staticmethod
    def empty_result(now: Optional[datetime] = None) -> AggregationResult:
        now = now or datetime.utcnow()
        return AggregationResult(
            summary="No memory entries found for aggregation",
            time_range=TimeRange(start=now, end=now),
            total_entries_analyzed=0
        )

    def analyze_patterns(self, entries: List[MemoryEntry]) -> List[PatternFrequency]:
        counts: Dict[str, PatternFrequency] = {}

        def count(pattern: str, example: str) -> None:
            bucket = counts.setdefault(pattern, PatternFrequency(pattern=pattern, frequency=0))
            bucket.frequency += 1
            if len(bucket.examples) < MAX_EXAMPLES:
                bucket.examples.append(example)

        for entry in entries:
            count(extract_key_pattern(entry.key), entry.key)

            value_type = entry.metadata.get("valueType", entry.metadata.get("value_type"))
            if value_type:
                count(f"value_type:{value_type}", entry.key)

        # sorted() is stable, so equal frequencies keep first-seen order
        return sorted(counts.values(), key=lambda p: p.frequency, reverse=True)

    def generate_insights(self, entries: List[MemoryEntry], now: datetime) -> List[str]:
        insights = []
        total = len(entries)

        recent = sum(1 for e in entries if now - e.created_at < RECENT_WINDOW)
        if recent > total * RECENT_ACTIVITY_RATIO:
            insights.append("High recent activity detected - most memory entries are from the last hour")

        sessions = {e.session_id for e in entries if e.session_id}
        if len(sessions) == 1:
            insights.append("All memory entries belong to a single session - focused activity")
        elif len(sessions) > HIGH_SESSION_DIVERSITY:
            insights.append("High session diversity - memory spans multiple user interactions")

        short_term, long_term = self._tier_counts(entries)
        if short_term > long_term * SHORT_TERM_DOMINANCE:
            insights.append("Short-term memory dominant - suggests active but transient workflows")
        elif long_term > short_term * LONG_TERM_DOMINANCE:
            insights.append("Long-term memory dominant - suggests knowledge accumulation focus")

        return insights

    def generate_recommendations(
        self,
        entries: List[MemoryEntry],
        patterns: List[PatternFrequency],
        now: datetime
    ) -> List[str]:
        recommendations = []

        expired = sum(1 for e in entries if e.is_expired(now))
        if expired > len(entries) * EXPIRED_RATIO:
            recommendations.append(
                "Consider running memory cleanup - high number of expired entries detected"
            )

        for pattern in patterns:
            if pattern.frequency > HOT_PATTERN_FREQUENCY:
                recommendations.append(
                    f"Consider caching frequently accessed pattern '{pattern.pattern}' "
                    f"({pattern.frequency} entries)"
                )

        if sum(entry_size(e) for e in entries) > MAX_HEALTHY_BYTES:
            recommendations.append(
                "Memory usage is high - consider archiving old entries or reducing retention"
            )

        return recommendations

    def summarize(self, entries: List[MemoryEntry], patterns: List[PatternFrequency]) -> str:
        short_term, long_term = self._tier_counts(entries)
        sessions = len({e.session_id for e in entries if e.session_id})

        return (
            f"Memory contains {len(entries)} entries ({short_term} short-term, {long_term} long-term) "
            f"across {sessions} sessions with {len(patterns)} distinct patterns identified."
        )

    @staticmethod
    def _tier_counts(entries: List[MemoryEntry]):
        short_term = sum(1 for e in entries if e.tier == MemoryTier.SHORT_TERM)
        return short_term, len(entries) - short_term
