from datetime import datetime, timedelta

from agent_intel.domain.memory import MemoryAggregator, extract_key_pattern
from agent_intel.domain.models import MemoryEntry, MemoryTier

NOW = datetime(2024, 1, 1, 12, 0, 0)


def make_entry(key, tier=MemoryTier.SHORT_TERM, session_id="s1", age=timedelta(minutes=5),
               ttl=timedelta(hours=1), value=None, metadata=None):
    created_at = NOW - age
    return MemoryEntry(
        key=key,
        value=value if value is not None else {"key": key},
        tier=tier,
        session_id=session_id,
        metadata=metadata or {},
        created_at=created_at,
        expires_at=created_at + ttl
    )


def test_extract_key_pattern():
    assert extract_key_pattern("task:123") == "task:*"
    assert extract_key_pattern("session:deadbeefcafe:step:4") == "session:*:step:*"
    assert extract_key_pattern("preferences") == "preferences"


def test_empty_aggregation():
    result = MemoryAggregator().aggregate([], now=NOW)

    assert result.summary == "No memory entries found for aggregation"
    assert result.patterns == []
    assert result.insights == []
    assert result.recommendations == []
    assert result.total_entries_analyzed == 0
    assert result.time_range.start == result.time_range.end == NOW


def test_patterns_sorted_with_examples():
    entries = [make_entry(f"task:{i}") for i in range(4)] + [
        make_entry("note:1", metadata={"valueType": "text"}),
        make_entry("note:2", metadata={"value_type": "text"}),
    ]

    patterns = MemoryAggregator().analyze_patterns(entries)

    assert [(p.pattern, p.frequency) for p in patterns] == [
        ("task:*", 4),
        ("note:*", 2),
        ("value_type:text", 2),
    ]
    assert patterns[0].examples == ["task:0", "task:1", "task:2"]


def test_insights_for_focused_recent_short_term_activity():
    entries = [make_entry(f"task:{i}") for i in range(5)]

    insights = MemoryAggregator().generate_insights(entries, NOW)

    assert insights == [
        "High recent activity detected - most memory entries are from the last hour",
        "All memory entries belong to a single session - focused activity",
        "Short-term memory dominant - suggests active but transient workflows",
    ]


def test_insights_for_diverse_long_term_memory():
    entries = [
        make_entry(f"fact:{i}", tier=MemoryTier.LONG_TERM, session_id=f"s{i}", age=timedelta(days=2),
                   ttl=timedelta(days=30))
        for i in range(12)
    ]

    insights = MemoryAggregator().generate_insights(entries, NOW)

    assert insights == [
        "High session diversity - memory spans multiple user interactions",
        "Long-term memory dominant - suggests knowledge accumulation focus",
    ]


def test_recommendations():
    entries = [make_entry(f"task:{i}") for i in range(11)]
    entries += [make_entry(f"stale:{i}", age=timedelta(hours=3)) for i in range(4)]
    aggregator = MemoryAggregator()

    recommendations = aggregator.generate_recommendations(entries, aggregator.analyze_patterns(entries), NOW)

    assert recommendations == [
        "Consider running memory cleanup - high number of expired entries detected",
        "Consider caching frequently accessed pattern 'task:*' (11 entries)",
    ]


def test_large_memory_recommends_archiving():
    entries = [make_entry(f"blob:{i}", value="x" * 300_000) for i in range(4)]
    aggregator = MemoryAggregator()

    recommendations = aggregator.generate_recommendations(entries, aggregator.analyze_patterns(entries), NOW)

    assert recommendations == [
        "Memory usage is high - consider archiving old entries or reducing retention"
    ]


def test_aggregate_summary_and_time_range():
    entries = [
        make_entry("task:1", age=timedelta(minutes=30)),
        make_entry("task:2", session_id="s2", age=timedelta(minutes=10)),
        make_entry("fact:1", tier=MemoryTier.LONG_TERM, age=timedelta(minutes=20)),
    ]

    result = MemoryAggregator().aggregate(entries, now=NOW)

    assert result.summary == (
        "Memory contains 3 entries (2 short-term, 1 long-term) across 2 sessions "
        "with 2 distinct patterns identified."
    )
    assert result.time_range.start == NOW - timedelta(minutes=30)
    assert result.time_range.end == NOW - timedelta(minutes=10)
    assert result.total_entries_analyzed == 3
