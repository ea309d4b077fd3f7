from typing import Annotated, Dict, Any, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from agent_intel.domain.intelligence import IntelligenceEngine
from agent_intel.domain.models.intelligence_state import GlobalStats, IntelligenceResult, SessionIntelligence
from agent_intel.domain.models.memory_state import ExecutionRecord
from ..dependencies import get_engine
from ..schema import (
    IntelligenceRequest,
    PatternFeedbackRequest,
    PatternFeedbackResponse,
    ToolExecutionRequest,
)

router = APIRouter(prefix="/api/v1/intelligence", tags=["intelligence"])

EngineDep = Annotated[IntelligenceEngine, Depends(get_engine)]


@router.post("/query", response_model=IntelligenceResult)
async def query_intelligence(request: IntelligenceRequest, engine: EngineDep):
    # Collaborator failures come back as a fallback result, never as a 5xx
    return await engine.get_intelligence(request.user_input, request.options)


@router.post("/executions", status_code=status.HTTP_202_ACCEPTED)
async def record_execution(request: ToolExecutionRequest, engine: EngineDep):
    await engine.record_tool_execution(
        session_id=request.session_id,
        tool_name=request.tool_name,
        parameters=request.parameters,
        result=request.result,
        success=request.success,
        execution_time_ms=request.execution_time_ms,
        pattern_id=request.pattern_id
    )
    return {"recorded": True}


@router.post("/patterns/{pattern_id}/feedback", response_model=PatternFeedbackResponse)
async def pattern_feedback(pattern_id: str, request: PatternFeedbackRequest, engine: EngineDep):
    confidence = await engine.adapt_pattern(pattern_id, request.feedback, request.context)
    if confidence is None:
        raise HTTPException(status_code=404, detail=f"Pattern '{pattern_id}' not found")

    return PatternFeedbackResponse(pattern_id=pattern_id, feedback=request.feedback, confidence=confidence)


@router.get("/sessions/{session_id}", response_model=SessionIntelligence)
async def get_session(session_id: str, engine: EngineDep):
    stats = await engine.get_session_intelligence(session_id)
    if stats is None:
        raise HTTPException(status_code=404, detail=f"No intelligence recorded for session '{session_id}'")
    return stats


@router.get("/sessions/{session_id}/executions", response_model=List[ExecutionRecord])
async def get_session_executions(
    session_id: str,
    engine: EngineDep,
    limit: Annotated[Optional[int], Query(ge=1)] = None
):
    return await engine.get_execution_history(session_id, limit)


@router.get("/stats", response_model=GlobalStats)
async def get_global_stats(engine: EngineDep):
    return await engine.get_global_stats()


@router.post("/stats/reset", status_code=status.HTTP_204_NO_CONTENT)
async def reset_stats(engine: EngineDep):
    await engine.reset_stats()


@router.get("/analytics/patterns")
async def pattern_analytics(engine: EngineDep) -> Dict[str, Any]:
    return await engine.get_pattern_analytics()


@router.get("/analytics/context")
async def context_analytics(engine: EngineDep) -> Dict[str, Any]:
    return await engine.get_context_analytics()


@router.post("/caches/clear", status_code=status.HTTP_204_NO_CONTENT)
async def clear_caches(engine: EngineDep):
    engine.clear_caches()


@router.get("/health")
async def health(engine: EngineDep) -> Dict[str, Any]:
    return await engine.health_check()


@router.get("/metrics")
async def metrics(engine: EngineDep) -> Dict[str, Any]:
    return engine.get_metrics()
