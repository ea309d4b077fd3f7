from agent_intel.domain.models import ExecutionRecord
from agent_intel.domain.storage import InMemoryStorage


async def test_set_get_delete(storage):
    await storage.set("k", {"a": 1}, namespace="memory")

    assert await storage.get("k", "memory") == {"a": 1}
    assert await storage.get("k") is None
    assert await storage.delete("k", "memory") is True
    assert await storage.delete("k", "memory") is False


async def test_values_are_copied(storage):
    value = {"items": [1]}
    await storage.set("k", value)
    value["items"].append(2)

    stored = await storage.get("k")
    stored["items"].append(3)

    assert await storage.get("k") == {"items": [1]}


async def test_ttl_expires_lazily(storage, clock):
    await storage.set("k", "v", ttl=10)

    clock.advance(seconds=5)
    assert await storage.get("k") == "v"

    clock.advance(seconds=6)
    assert await storage.get("k") is None


async def test_find_with_glob_and_filter(storage):
    await storage.set("memory:short_term:_:a", {"tier": "short_term", "n": 1}, namespace="memory")
    await storage.set("memory:long_term:_:b", {"tier": "long_term", "n": 2}, namespace="memory")
    await storage.set("memory:short_term:x:c", {"tier": "short_term", "n": 3}, namespace="memory")

    rows = await storage.find("memory:short_term:*", namespace="memory")
    assert sorted(r["key"] for r in rows) == ["memory:short_term:_:a", "memory:short_term:x:c"]

    rows = await storage.find("memory:*", {"n": 2}, "memory")
    assert rows == [{"key": "memory:long_term:_:b", "value": {"tier": "long_term", "n": 2}}]

    assert await storage.find("memory:*", namespace="other") == []


async def test_clear_expired_and_health(storage, clock):
    await storage.set("a", 1, ttl=1)
    await storage.set("b", 2)
    clock.advance(seconds=2)

    health = await storage.health_check()
    assert health["status"] == "healthy"
    assert health["total_keys"] == 2
    assert health["expired_keys"] == 1

    assert await storage.clear_expired() == 1
    assert (await storage.health_check())["total_keys"] == 1


async def test_execution_history_is_bounded_and_newest_first(clock):
    storage = InMemoryStorage(clock=clock, max_executions=3)

    for i in range(5):
        await storage.record_tool_execution(
            ExecutionRecord(tool_name=f"tool{i}", session_id="s1", success=True)
        )
    await storage.record_tool_execution(ExecutionRecord(tool_name="other", session_id="s2", success=False))

    records = await storage.get_tool_executions("s1")
    assert [r.tool_name for r in records] == ["tool4", "tool3"]
    assert [r.tool_name for r in await storage.get_tool_executions("s1", limit=1)] == ["tool4"]
    assert records[0].execution_id.startswith("tool_")
