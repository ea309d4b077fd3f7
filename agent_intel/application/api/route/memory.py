from typing import Annotated, Dict, Any, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from agent_intel.domain.memory import MemoryService
from agent_intel.domain.models.memory_state import (
    AggregationResult, MemoryEntry, MemoryQuery, MemoryStats, MemoryTier
)
from ..dependencies import get_memory
from ..schema import ClearMemoryResponse, DeleteMemoryResponse, StoreMemoryRequest, StoreMemoryResponse

router = APIRouter(prefix="/api/v1/memory", tags=["memory"])

MemoryDep = Annotated[MemoryService, Depends(get_memory)]


@router.post("/entries", response_model=StoreMemoryResponse, status_code=status.HTTP_201_CREATED)
async def store_entry(request: StoreMemoryRequest, memory: MemoryDep):
    await memory.store(
        request.key,
        request.value,
        request.tier,
        session_id=request.session_id,
        namespace=request.namespace,
        tags=request.tags,
        metadata=request.metadata,
        ttl_override=request.ttl_override
    )
    return StoreMemoryResponse(key=request.key, tier=request.tier, namespace=request.namespace)


@router.get("/entries/{tier}/{key}")
async def retrieve_entry(
    tier: MemoryTier,
    key: str,
    memory: MemoryDep,
    namespace: Optional[str] = None,
    include_metadata: bool = False
):
    value = await memory.retrieve(key, tier, namespace=namespace, include_metadata=True)
    if value is None:
        raise HTTPException(status_code=404, detail=f"Memory entry '{key}' not found in {tier.value}")

    if include_metadata:
        return value
    return {"key": key, "tier": tier, "value": value.value}


@router.delete("/entries/{tier}/{key}", response_model=DeleteMemoryResponse)
async def delete_entry(tier: MemoryTier, key: str, memory: MemoryDep, namespace: Optional[str] = None):
    deleted = await memory.delete(key, tier, namespace)
    return DeleteMemoryResponse(key=key, tier=tier, deleted=deleted)


@router.delete("/entries", response_model=ClearMemoryResponse)
async def clear_entries(memory: MemoryDep, tier: Optional[MemoryTier] = None, namespace: Optional[str] = None):
    return ClearMemoryResponse(deleted_count=await memory.clear(tier, namespace))


@router.post("/search", response_model=List[MemoryEntry])
async def search_entries(query: MemoryQuery, memory: MemoryDep):
    return await memory.search(query)


@router.get("/recall", response_model=List[MemoryEntry])
async def recall_entries(
    memory: MemoryDep,
    text: Annotated[str, Query(min_length=1)],
    limit: Annotated[Optional[int], Query(ge=1)] = None
):
    return await memory.recall(text, limit)


@router.post("/aggregate", response_model=AggregationResult)
async def aggregate_entries(query: MemoryQuery, memory: MemoryDep):
    return await memory.aggregate(query)


@router.get("/stats", response_model=MemoryStats)
async def get_stats(memory: MemoryDep):
    return await memory.get_stats()


@router.get("/stats/operational")
async def get_operational_stats(memory: MemoryDep) -> Dict[str, Any]:
    return memory.get_operational_stats()


@router.post("/cleanup")
async def cleanup_expired(memory: MemoryDep):
    return {"cleaned_count": await memory.cleanup_expired()}


@router.get("/health")
async def health(memory: MemoryDep) -> Dict[str, Any]:
    return await memory.health_check()
