from .logging import (
    IntelligenceLogger,
    LatencyStats,
    MetricsCollector,
    add_service_context,
    build_processors,
    intelligence_logger,
    setup_logging,
)

__all__ = [
    "IntelligenceLogger",
    "LatencyStats",
    "MetricsCollector",
    "add_service_context",
    "build_processors",
    "intelligence_logger",
    "setup_logging",
]
