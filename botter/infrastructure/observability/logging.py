import structlog
import logging
import sys
from typing import Dict, Any, Optional
from datetime import datetime, timezone
import os

# Client libraries that log every HTTP request at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "mcp.client", "google_genai")


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    service_name: str = "botter"
) -> None:
    """Route stdlib and structlog output to stdout as JSON or console lines"""

    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    renderer = structlog.processors.JSONRenderer() if log_format == "json" else structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            add_service_context,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(
        service=service_name,
        environment=os.getenv("ENVIRONMENT", "development"),
        version=os.getenv("SERVICE_VERSION", "unknown")
    )


def add_service_context(logger: logging.Logger, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Stamp events with the session of the turn being handled"""

    event_dict.setdefault("timestamp", datetime.now(timezone.utc).isoformat())

    # Bound by the orchestrator for the duration of a turn
    session_id = structlog.contextvars.get_contextvars().get("session_id")
    if session_id:
        event_dict.setdefault("session_id", session_id)

    return event_dict


class TurnLogger:
    """Event helpers for the turn lifecycle and tool dispatch"""

    def __init__(self, name: str):
        self.logger = structlog.get_logger(name)

    def log_turn_event(self, event_type: str, session_id: str, data: Optional[Dict[str, Any]] = None):
        self.logger.info("turn_event", event_type=event_type, session_id=session_id, **(data or {}))

    def log_tool_execution(
        self,
        tool_name: str,
        session_id: str,
        call_id: Optional[str],
        input_data: Dict[str, Any],
        output_text: Optional[str] = None,
        duration_ms: Optional[float] = None,
        success: bool = True,
        error: Optional[str] = None
    ):
        """One record per dispatched tool call; failures are logged at error level"""

        fields = {
            "tool_name": tool_name,
            "session_id": session_id,
            "call_id": call_id,
            "input_data": input_data,
            "duration_ms": round(duration_ms, 2) if duration_ms is not None else None,
            "success": success,
        }
        if success:
            self.logger.info("tool_execution", output_length=len(output_text or ""), **fields)
        else:
            self.logger.error("tool_execution", error=error, **fields)

    def log_workflow_transition(self, session_id: str, from_node: str, to_node: str, condition: Optional[str] = None):
        self.logger.debug(
            "workflow_transition",
            session_id=session_id,
            from_node=from_node,
            to_node=to_node,
            condition=condition
        )


class LatencyStats:
    """Running count/sum/min/max of one operation's latency"""

    def __init__(self):
        self.count = 0
        self.total_ms = 0.0
        self.min_ms = float("inf")
        self.max_ms = 0.0

    def observe(self, duration_ms: float):
        self.count += 1
        self.total_ms += duration_ms
        self.min_ms = min(self.min_ms, duration_ms)
        self.max_ms = max(self.max_ms, duration_ms)

    def summary(self) -> Dict[str, float]:
        return {
            "count": self.count,
            "avg": self.total_ms / self.count if self.count else 0,
            "min": self.min_ms if self.count else 0,
            "max": self.max_ms
        }


class MetricsCollector:
    """In-process turn and tool metrics, each observation also emitted as a log event"""

    def __init__(self, logger_name: str = "botter.metrics"):
        self.latencies: Dict[str, LatencyStats] = {}
        self.counters: Dict[str, int] = {}
        self.logger = structlog.get_logger(logger_name)

    def record_latency(self, operation: str, duration_ms: float, tags: Optional[Dict[str, str]] = None):
        self.latencies.setdefault(operation, LatencyStats()).observe(duration_ms)
        self.logger.info(
            "metric",
            metric_type="latency",
            operation=operation,
            duration_ms=round(duration_ms, 2),
            tags=tags or {}
        )

    def increment_counter(self, name: str, value: int = 1, tags: Optional[Dict[str, str]] = None):
        self.counters[name] = self.counters.get(name, 0) + value
        self.logger.info("metric", metric_type="counter", name=name, value=value, tags=tags or {})

    def get_metrics_summary(self) -> Dict[str, Any]:
        """Snapshot for the health endpoint"""

        summary: Dict[str, Any] = {f"latency.{op}": stats.summary() for op, stats in self.latencies.items()}
        summary.update(self.counters)
        return summary
