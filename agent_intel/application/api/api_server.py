from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from agent_intel.domain.exceptions import (
    AggregationUnavailableError,
    IntelligenceInitializationError,
    MemoryNotInitializedError,
    StorageError,
)
from agent_intel.domain.intelligence import IntelligenceEngine
from agent_intel.domain.memory import MemoryService
from agent_intel.infrastructure.config.settings import Settings
from agent_intel.infrastructure.observability.logging import setup_logging
from .route import intelligence, memory as memory_route

logger = structlog.get_logger(__name__)


def create_app(
    engine: IntelligenceEngine,
    memory: MemoryService,
    settings: Optional[Settings] = None
) -> FastAPI:
    """Wire the intelligence engine and memory service behind one HTTP app"""

    if settings:
        setup_logging(settings.logging.level, settings.logging.format, settings.logging.service_name)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await memory.initialize(settings.memory if settings else None)

        try:
            await engine.initialize(settings.intelligence if settings else None)
        except Exception:
            await memory.shutdown()
            raise

        logger.info("Agent intelligence API started")

        try:
            yield
        finally:
            await memory.shutdown()
            logger.info("Agent intelligence API stopped")

    app = FastAPI(title="Agent Intelligence API", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.engine = engine
    app.state.memory = memory

    app.include_router(intelligence.router)
    app.include_router(memory_route.router)

    @app.exception_handler(MemoryNotInitializedError)
    async def memory_not_initialized_handler(request: Request, exc: MemoryNotInitializedError):
        return JSONResponse(status_code=503, content={"detail": str(exc)})

    @app.exception_handler(IntelligenceInitializationError)
    async def intelligence_unavailable_handler(request: Request, exc: IntelligenceInitializationError):
        return JSONResponse(status_code=503, content={"detail": str(exc)})

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError):
        logger.error("Storage failure", path=request.url.path, error=str(exc))
        return JSONResponse(status_code=503, content={"detail": str(exc)})

    @app.exception_handler(AggregationUnavailableError)
    async def aggregation_unavailable_handler(request: Request, exc: AggregationUnavailableError):
        return JSONResponse(status_code=409, content={"detail": str(exc)})

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        return JSONResponse(status_code=422, content={"detail": str(exc)})

    return app
