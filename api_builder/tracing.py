"""
Logging setup and per-operation performance tracking.

Every traced operation gets a uuid trace id, is kept in memory while it runs
and is logged on start and on completion or failure.
"""

import itertools
import logging
import logging.handlers
import sys
import time
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_FILE_MAX_BYTES = 5 * 1024 * 1024
LOG_FILE_BACKUPS = 5


def setup_logging(level: str = "INFO", log_dir: Optional[str] = None):
    """Configure logging for the application."""
    log_level = getattr(logging, level.upper(), logging.INFO)

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]

    if log_dir:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)

        combined = logging.handlers.RotatingFileHandler(
            log_path / "combined.log",
            maxBytes=LOG_FILE_MAX_BYTES,
            backupCount=LOG_FILE_BACKUPS,
        )
        errors = logging.handlers.RotatingFileHandler(
            log_path / "error.log",
            maxBytes=LOG_FILE_MAX_BYTES,
            backupCount=LOG_FILE_BACKUPS,
        )
        errors.setLevel(logging.ERROR)
        handlers.extend([combined, errors])

    logging.basicConfig(
        level=log_level,
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )
    # outgoing request lines carry API keys in their query strings
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _format_context(**context: Any) -> str:
    parts = [f"{key}={value}" for key, value in context.items() if value is not None]
    return " ".join(parts)


@dataclass
class OperationMetrics:
    """A single traced operation"""
    operation: str
    trace_id: str
    start_time: float
    user_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    end_time: Optional[float] = None
    duration: Optional[float] = None  # milliseconds
    success: bool = False
    error: Optional[str] = None


class PerformanceTracker:
    """Tracks in-flight operations and logs their outcome"""

    def __init__(self):
        self._operations: Dict[str, OperationMetrics] = {}

    def start_operation(
        self,
        operation: str,
        user_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> str:
        trace_id = str(uuid.uuid4())
        self._operations[trace_id] = OperationMetrics(
            operation=operation,
            trace_id=trace_id,
            start_time=time.time(),
            user_id=user_id,
            metadata=dict(metadata or {}),
        )

        logger.debug(
            f"Started operation: {operation} "
            f"{_format_context(trace_id=trace_id, user=user_id)}"
        )
        return trace_id

    def end_operation(
        self,
        trace_id: str,
        success: bool,
        error: Optional[Union[BaseException, str]] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Optional[OperationMetrics]:
        """
        Finish a traced operation and drop it from the active set.

        Returns:
            The completed metrics, or None for an unknown trace id
        """
        metrics = self._operations.pop(trace_id, None)
        if metrics is None:
            logger.warning(f"No metrics found for trace id: {trace_id}")
            return None

        metrics.end_time = time.time()
        metrics.duration = (metrics.end_time - metrics.start_time) * 1000
        metrics.success = success
        if error is not None:
            metrics.error = str(error) or type(error).__name__
        if metadata:
            metrics.metadata.update(metadata)

        context = _format_context(
            trace_id=trace_id,
            user=metrics.user_id,
            duration=f"{metrics.duration:.0f}ms",
        )
        if success:
            logger.debug(f"Completed operation: {metrics.operation} {context}")
        else:
            logger.error(f"Failed operation: {metrics.operation} {context} error={metrics.error}")

        return metrics

    def get_active_operations(self) -> List[OperationMetrics]:
        return list(self._operations.values())

    def get_metrics(self, trace_id: str) -> Optional[OperationMetrics]:
        return self._operations.get(trace_id)


performance_tracker = PerformanceTracker()


@asynccontextmanager
async def track_operation(
    operation: str,
    user_id: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
    tracker: Optional[PerformanceTracker] = None,
):
    """Trace the enclosed block; failures are recorded and re-raised."""
    tracker = tracker or performance_tracker
    trace_id = tracker.start_operation(operation, user_id, metadata)
    try:
        yield trace_id
    except BaseException as e:
        tracker.end_operation(trace_id, False, e)
        raise
    else:
        tracker.end_operation(trace_id, True)


@dataclass
class WorkflowStep:
    """One step of a multi-stage workflow"""
    step_id: str
    name: str
    operation: str
    phase: str
    trace_id: str
    start_time: float
    sequence: int = 0
    user_id: Optional[str] = None
    project_id: Optional[str] = None
    parent_step_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    status: str = "started"
    end_time: Optional[float] = None
    duration: Optional[float] = None  # milliseconds
    result: Any = None
    error: Optional[str] = None


class WorkflowTracker:
    """
    Tracks the steps of multi-stage workflows.

    Steps sharing a trace id belong to the same workflow run. Finished steps
    are kept, newest last, up to max_stored_steps.
    """

    def __init__(self, max_stored_steps: int = 10000):
        self.max_stored_steps = max_stored_steps
        self._active: Dict[str, WorkflowStep] = {}
        self._completed: List[WorkflowStep] = []
        self._sequence = itertools.count()

    def start_step(
        self,
        name: str,
        operation: str,
        phase: str,
        trace_id: str,
        user_id: Optional[str] = None,
        project_id: Optional[str] = None,
        parent_step_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> str:
        step_id = str(uuid.uuid4())
        self._active[step_id] = WorkflowStep(
            step_id=step_id,
            name=name,
            operation=operation,
            phase=phase,
            trace_id=trace_id,
            start_time=time.time(),
            sequence=next(self._sequence),
            user_id=user_id,
            project_id=project_id,
            parent_step_id=parent_step_id,
            metadata=dict(metadata or {}),
        )

        logger.info(
            f"Workflow step started: {name} "
            f"{_format_context(operation=operation, phase=phase, trace_id=trace_id, step_id=step_id)}"
        )
        return step_id

    def _finish(self, step_id: str, status: str) -> Optional[WorkflowStep]:
        step = self._active.pop(step_id, None)
        if step is None:
            logger.warning(f"Workflow step not found: {step_id}")
            return None

        step.status = status
        step.end_time = time.time()
        step.duration = (step.end_time - step.start_time) * 1000

        self._completed.append(step)
        if len(self._completed) > self.max_stored_steps:
            del self._completed[: len(self._completed) - self.max_stored_steps]
        return step

    def complete_step(self, step_id: str, result: Any = None) -> Optional[WorkflowStep]:
        step = self._finish(step_id, "completed")
        if step is not None:
            step.result = result
            logger.info(
                f"Workflow step completed: {step.name} "
                f"{_format_context(trace_id=step.trace_id, duration=f'{step.duration:.0f}ms')}"
            )
        return step

    def fail_step(self, step_id: str, error: Union[BaseException, str]) -> Optional[WorkflowStep]:
        step = self._finish(step_id, "failed")
        if step is not None:
            step.error = str(error) or type(error).__name__
            logger.error(
                f"Workflow step failed: {step.name} "
                f"{_format_context(trace_id=step.trace_id, duration=f'{step.duration:.0f}ms')} "
                f"error={step.error}"
            )
        return step

    def get_steps_by_trace(self, trace_id: str) -> List[WorkflowStep]:
        """Active and finished steps of one workflow run, oldest first"""
        steps = [s for s in self._active.values() if s.trace_id == trace_id]
        steps += [s for s in self._completed if s.trace_id == trace_id]
        return sorted(steps, key=lambda s: s.sequence)

    def get_steps_by_operation(self, operation: str, limit: int = 100) -> List[WorkflowStep]:
        steps = [s for s in self._completed if s.operation == operation]
        return steps[-limit:]

    def get_completed_steps(self, limit: int = 1000) -> List[WorkflowStep]:
        return self._completed[-limit:]

    def active_step_count(self) -> int:
        return len(self._active)

    def get_workflow_analysis(self) -> Dict[str, Any]:
        """
        Success rates and durations per operation and per phase.

        Operations that failed more than one run in five over at least five
        runs are reported as broken.
        """
        operations: Dict[str, Dict[str, Any]] = {}
        phases: Dict[str, Dict[str, Any]] = {}

        for step in self._completed:
            for stats in (
                operations.setdefault(step.operation, {"total": 0, "failed": 0, "durations": []}),
                phases.setdefault(step.phase, {"total": 0, "failed": 0, "durations": []}),
            ):
                stats["total"] += 1
                stats["failed"] += step.status == "failed"
                stats["durations"].append(step.duration or 0)

        def summarize(stats: Dict[str, Any]) -> Dict[str, Any]:
            durations = stats.pop("durations")
            stats["success_rate"] = (stats["total"] - stats["failed"]) / stats["total"]
            stats["average_duration"] = sum(durations) / len(durations)
            return stats

        operation_stats = {name: summarize(stats) for name, stats in operations.items()}
        phase_stats = {name: summarize(stats) for name, stats in phases.items()}

        broken = [
            {
                "operation": name,
                "success_rate": stats["success_rate"],
                "total": stats["total"],
                "recommendation": f"Investigate failures in {name}",
            }
            for name, stats in operation_stats.items()
            if stats["total"] >= 5 and stats["success_rate"] < 0.8
        ]

        return {
            "operation_stats": operation_stats,
            "phase_stats": phase_stats,
            "broken_steps": broken,
            "active_steps": len(self._active),
            "completed_steps": len(self._completed),
        }


workflow_tracker = WorkflowTracker()
