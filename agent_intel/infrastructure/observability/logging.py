import structlog
import logging
import sys
from typing import Dict, Any, List, Optional
from datetime import datetime
import os

from agent_intel import __version__

LOG_FORMATS = ("json", "console")


def build_processors(log_format: str = "json") -> List[Any]:
    """structlog processor chain ending in a JSON or console renderer"""

    if log_format not in LOG_FORMATS:
        raise ValueError(f"Unknown log format '{log_format}', expected one of {LOG_FORMATS}")

    renderer = structlog.processors.JSONRenderer() if log_format == "json" else structlog.dev.ConsoleRenderer()

    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        add_service_context,
        renderer,
    ]


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    service_name: str = "agent-intel"
) -> None:
    """Route structlog through stdlib logging on stdout"""

    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    logging.getLogger().setLevel(level)

    structlog.configure(
        processors=build_processors(log_format),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(
        service=service_name,
        environment=os.getenv("ENVIRONMENT", "development"),
        version=__version__
    )


def add_service_context(logger: logging.Logger, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Fill in timestamp and the bound session id when an event lacks them"""

    event_dict.setdefault("timestamp", datetime.utcnow().isoformat())

    session_id = structlog.contextvars.get_contextvars().get("session_id")
    if session_id:
        event_dict.setdefault("session_id", session_id)

    return event_dict


class IntelligenceLogger:
    """Structured events for routing decisions, feedback and memory operations"""

    def __init__(self, name: str):
        self.logger = structlog.get_logger(name)

    def log_decision(
        self,
        session_id: str,
        action: str,
        confidence: float,
        features_used: List[str],
        duration_ms: float,
        pattern_id: Optional[str] = None
    ):
        """Log the recommendation produced for one utterance"""

        self.logger.info(
            "intelligence_decision",
            session_id=session_id,
            action=action,
            confidence=round(confidence, 3),
            features_used=features_used,
            duration_ms=round(duration_ms, 2),
            pattern_id=pattern_id
        )

    def log_pattern_feedback(
        self,
        pattern_id: str,
        feedback: str,
        old_confidence: float,
        new_confidence: float
    ):
        self.logger.info(
            "pattern_feedback",
            pattern_id=pattern_id,
            feedback=feedback,
            old_confidence=round(old_confidence, 3),
            new_confidence=round(new_confidence, 3)
        )

    def log_tool_execution(
        self,
        tool_name: str,
        session_id: str,
        duration_ms: Optional[float] = None,
        success: bool = True,
        pattern_id: Optional[str] = None
    ):
        """Log tool execution feedback"""

        self.logger.info(
            "tool_execution",
            tool_name=tool_name,
            session_id=session_id,
            duration_ms=duration_ms,
            success=success,
            pattern_id=pattern_id
        )

    def log_memory_operation(
        self,
        operation: str,
        tier: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.logger.info(
            "memory_operation",
            operation=operation,
            tier=tier,
            details=details or {}
        )


intelligence_logger = IntelligenceLogger("agent_intel")


class LatencyStats:
    """Running count, mean and extremes of one timed operation"""

    def __init__(self):
        self.count = 0
        self.total_ms = 0.0
        self.min_ms: Optional[float] = None
        self.max_ms = 0.0

    def add(self, duration_ms: float):
        self.count += 1
        self.total_ms += duration_ms
        self.min_ms = duration_ms if self.min_ms is None else min(self.min_ms, duration_ms)
        self.max_ms = max(self.max_ms, duration_ms)

    def summary(self) -> Dict[str, float]:
        return {
            "count": self.count,
            "avg_ms": self.total_ms / self.count if self.count else 0.0,
            "min_ms": self.min_ms or 0.0,
            "max_ms": self.max_ms
        }


class MetricsCollector:
    """In-process latencies, counters and gauges for the decision engine.

    Decisions are tracked twice: once in the overall ``intelligence.total``
    latency and once per recommended action, so fast-path and fallback
    latencies can be compared. ``reset()`` drops everything.
    """

    def __init__(self, event_logger: Optional[IntelligenceLogger] = None):
        self.latencies: Dict[str, LatencyStats] = {}
        self.counters: Dict[str, int] = {}
        self.gauges: Dict[str, float] = {}
        self.event_logger = event_logger or intelligence_logger

    def record_latency(self, operation: str, duration_ms: float, tags: Optional[Dict[str, str]] = None):
        self.latencies.setdefault(operation, LatencyStats()).add(duration_ms)

        self.event_logger.logger.debug(
            "metric",
            metric_type="latency",
            operation=operation,
            duration_ms=round(duration_ms, 2),
            tags=tags or {}
        )

    def record_decision(self, action: str, duration_ms: float):
        """Count one routing decision and time it overall and per action"""

        self.record_latency("intelligence.total", duration_ms)
        self.record_latency(f"intelligence.action.{action}", duration_ms, tags={"action": action})
        self.increment_counter(f"intelligence.action.{action}")

    def increment_counter(self, name: str, value: int = 1, tags: Optional[Dict[str, str]] = None):
        self.counters[name] = self.counters.get(name, 0) + value

        self.event_logger.logger.debug("metric", metric_type="counter", name=name, value=value, tags=tags or {})

    def set_gauge(self, name: str, value: float, tags: Optional[Dict[str, str]] = None):
        self.gauges[name] = value

        self.event_logger.logger.debug("metric", metric_type="gauge", name=name, value=value, tags=tags or {})

    def action_breakdown(self) -> Dict[str, Dict[str, float]]:
        """Decision count and mean latency keyed by recommended action"""

        prefix = "intelligence.action."
        return {
            operation[len(prefix):]: stats.summary()
            for operation, stats in self.latencies.items()
            if operation.startswith(prefix)
        }

    def get_metrics_summary(self) -> Dict[str, Any]:
        return {
            "latency": {operation: stats.summary() for operation, stats in self.latencies.items()},
            "counters": dict(self.counters),
            "gauges": dict(self.gauges),
            "actions": self.action_breakdown()
        }

    def reset(self):
        self.latencies.clear()
        self.counters.clear()
        self.gauges.clear()
