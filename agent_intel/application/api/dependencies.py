from fastapi import Request

from agent_intel.domain.intelligence import IntelligenceEngine
from agent_intel.domain.memory import MemoryService


def get_engine(request: Request) -> IntelligenceEngine:
    return request.app.state.engine


def get_memory(request: Request) -> MemoryService:
    return request.app.state.memory
