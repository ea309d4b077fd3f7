import asyncio

from agent_intel.domain.intelligence import SessionTracker
from agent_intel.domain.models import ContextTree, PatternMatchResult, RecommendationAction
from .conftest import make_match_result


async def test_snapshots_are_copies():
    tracker = SessionTracker()
    snapshot = await tracker.record_query("s1", RecommendationAction.NO_MATCH)

    snapshot.total_queries = 99

    assert (await tracker.get_session("s1")).total_queries == 1


async def test_top_patterns_keep_last_ten_distinct():
    tracker = SessionTracker()

    for i in range(12):
        await tracker.record_query("s1", RecommendationAction.STANDARD_PATH, make_match_result(0.5, pattern_id=f"p{i}"))
    await tracker.record_query("s1", RecommendationAction.STANDARD_PATH, make_match_result(0.5, pattern_id="p11"))

    stats = await tracker.get_session("s1")
    assert stats.top_patterns == [f"p{i}" for i in range(2, 12)]


async def test_context_complexity_is_capped_at_one():
    tracker = SessionTracker()

    stats = await tracker.record_query(
        "s1",
        RecommendationAction.STANDARD_PATH,
        context_tree=ContextTree(session_id="s1", total_nodes=500),
        context_max_nodes=50
    )

    assert stats.context_complexity == 0.5


async def test_concurrent_updates_are_all_counted():
    tracker = SessionTracker()

    await asyncio.gather(*[
        tracker.record_query("s1", RecommendationAction.FAST_PATH) for _ in range(50)
    ])

    stats = await tracker.get_global_stats()
    assert stats.total_queries == 50
    assert stats.fast_path_queries == 50
    assert (await tracker.get_session("s1")).learning_progress == 1.0


async def test_query_counts_lookups_and_context_builds():
    tracker = SessionTracker()

    await tracker.record_query("s1", RecommendationAction.FAST_PATH, make_match_result(0.9, fast_path=True))
    await tracker.record_query("s1", RecommendationAction.NO_MATCH, PatternMatchResult(), ContextTree(session_id="s1", total_nodes=4))
    await tracker.record_query("s1", RecommendationAction.NO_MATCH)

    stats = await tracker.get_global_stats()
    assert (stats.cache_hits, stats.cache_misses) == (1, 1)
    assert stats.pattern_matches == 2
    assert stats.context_tree_builds == 1
    assert await tracker.average_context_nodes() == 4.0


async def test_fallback_counts_a_miss_and_reset_clears():
    tracker = SessionTracker()
    await tracker.record_query("s1", RecommendationAction.FAST_PATH, make_match_result(0.9, fast_path=True))

    assert await tracker.record_fallback() == (1, 1)

    await tracker.reset()

    assert await tracker.cache_counters() == (0, 0)
    assert await tracker.session_count() == 0
