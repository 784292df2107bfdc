"""
API call monitoring for the evaluation dashboard.

Keeps a bounded in-memory history of handled requests, per-endpoint health,
system snapshots and alerts, and persists a trimmed copy of all of it to a
JSON file so the dashboard survives restarts.
"""

import asyncio
import json
import logging
import math
import time
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Tuple

import psutil
from pydantic import BaseModel, Field, ValidationError

from .tracing import PerformanceTracker, performance_tracker

logger = logging.getLogger(__name__)

AlertSeverity = Literal["info", "warning", "error", "critical"]
AlertType = Literal["uptime", "latency", "error_rate", "ssl_expiry", "rate_limit", "memory", "cpu"]

PERSISTED_CALLS = 1000
PERSISTED_METRICS = 100
TIME_SERIES_BUCKET = timedelta(minutes=5)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CallTimings(BaseModel):
    """Timing breakdown of a single request, in milliseconds"""
    dns: Optional[float] = None
    connect: Optional[float] = None
    tls: Optional[float] = None
    ttfb: float
    download: float
    total: float


class APICall(BaseModel):
    """A single handled request"""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    method: str
    url: str
    status_code: Optional[int] = None
    duration: float = Field(..., description="Duration in milliseconds")
    timestamp: datetime = Field(default_factory=utcnow)
    user_id: Optional[str] = None
    user_agent: Optional[str] = None
    ip_address: Optional[str] = None
    request_size: int = 0
    response_size: int = 0
    success: bool
    error: Optional[str] = None
    endpoint: Optional[str] = None
    operation: Optional[str] = None
    timings: Optional[CallTimings] = None


class APIAlert(BaseModel):
    """An alert raised by a threshold breach"""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    severity: AlertSeverity
    type: AlertType
    message: str
    endpoint: Optional[str] = None
    method: Optional[str] = None
    value: Optional[float] = None
    threshold: Optional[float] = None
    timestamp: datetime = Field(default_factory=utcnow)
    resolved: bool = False
    resolved_at: Optional[datetime] = None


class EndpointHealth(BaseModel):
    """Rolling health of one METHOD:endpoint pair"""
    endpoint: str
    method: str
    total_requests: int = 0
    success_rate: float = 100.0
    average_response_time: float = 0.0
    error_rate: float = 0.0
    last_error: Optional[str] = None
    last_error_time: Optional[datetime] = None
    p95_response_time: float = 0.0
    p99_response_time: float = 0.0
    requests_per_minute: int = 0


class MemoryUsage(BaseModel):
    used: int
    total: int
    percentage: float


class SystemMetrics(BaseModel):
    """A periodic snapshot of process health"""
    timestamp: datetime = Field(default_factory=utcnow)
    cpu_usage: Optional[float] = None
    memory_usage: MemoryUsage
    api_calls_per_minute: int = 0
    error_rate: float = 0.0
    average_response_time: float = 0.0
    active_operations: int = 0


class SLAMetrics(BaseModel):
    slo_target: float = 99.9
    actual_uptime: float
    breach_count: int
    mttr: float = Field(..., description="Mean time to recovery in milliseconds")
    mtbf: float = Field(..., description="Mean time between failures in milliseconds")


class MonitoringThresholds(BaseModel):
    error_rate: float = 5.0
    latency: float = 2000.0
    uptime_alert: float = 99.0
    memory_usage: float = 85.0
    response_time_95: float = 1000.0


def percentile(sorted_values: List[float], pct: float) -> float:
    """Nearest-rank percentile of an already sorted list."""
    if not sorted_values:
        return 0.0
    index = math.ceil((pct / 100) * len(sorted_values)) - 1
    return sorted_values[max(index, 0)]


def _mean(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _rate(part: int, whole: int) -> float:
    return (part / whole) * 100 if whole else 0.0


def read_memory_usage() -> MemoryUsage:
    """Resident memory of this process against total system memory."""
    process = psutil.Process()
    return MemoryUsage(
        used=process.memory_info().rss,
        total=psutil.virtual_memory().total,
        percentage=process.memory_percent(),
    )


class APIMonitoringService:
    """Collects request records and derives dashboard statistics from them"""

    def __init__(
        self,
        data_file: Optional[Path] = None,
        max_stored_calls: int = 10000,
        max_stored_metrics: int = 1440,
        thresholds: Optional[Dict[str, float]] = None,
        memory_warmup: float = 30.0,
        tracker: Optional[PerformanceTracker] = None,
    ):
        self.data_file = Path(data_file) if data_file else None
        self.max_stored_calls = max_stored_calls
        self.max_stored_metrics = max_stored_metrics
        self.thresholds = MonitoringThresholds(**(thresholds or {}))
        self.memory_warmup = memory_warmup
        self.tracker = tracker or performance_tracker

        self.calls: List[APICall] = []
        self.system_metrics: List[SystemMetrics] = []
        self.alerts: List[APIAlert] = []
        self.endpoint_health: Dict[str, EndpointHealth] = {}
        self.start_time = time.time()
        self._created = time.monotonic()

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    @staticmethod
    def endpoint_key(method: str, endpoint: Optional[str]) -> str:
        return f"{method}:{endpoint or 'unknown'}"

    def track_call(self, call: APICall) -> None:
        """Record a handled request"""
        self.calls.append(call)

        if len(self.calls) > self.max_stored_calls:
            self.calls = self.calls[-self.max_stored_calls:]

        self._update_endpoint_health(call)
        self._check_alerts(call)

        if call.success:
            logger.info(
                f"API call completed: {call.method} {call.url} "
                f"status={call.status_code} duration={call.duration:.0f}ms "
                f"user={call.user_id} trace_id={call.id}"
            )
        else:
            log = logger.error if (call.status_code or 500) >= 500 else logger.warning
            log(
                f"API call failed: {call.method} {call.url} "
                f"status={call.status_code} duration={call.duration:.0f}ms "
                f"error={call.error} user={call.user_id} trace_id={call.id}"
            )

    def _calls_for(self, method: str, endpoint: str) -> List[APICall]:
        return [
            call for call in self.calls
            if call.method == method and (call.endpoint or "unknown") == endpoint
        ]

    def _update_endpoint_health(self, call: APICall) -> None:
        endpoint = call.endpoint or "unknown"
        key = self.endpoint_key(call.method, endpoint)
        health = self.endpoint_health.get(key)
        if health is None:
            health = EndpointHealth(endpoint=endpoint, method=call.method)
            self.endpoint_health[key] = health

        calls = self._calls_for(call.method, endpoint)
        durations = sorted(c.duration for c in calls)
        successes = sum(1 for c in calls if c.success)
        cutoff = utcnow() - timedelta(minutes=1)

        health.total_requests += 1
        health.success_rate = _rate(successes, len(calls)) if calls else 100.0
        health.error_rate = 100.0 - health.success_rate
        health.average_response_time = _mean(durations)
        health.p95_response_time = percentile(durations, 95)
        health.p99_response_time = percentile(durations, 99)
        health.requests_per_minute = sum(1 for c in calls if c.timestamp > cutoff)

        if not call.success:
            health.last_error = call.error
            health.last_error_time = call.timestamp

    # ------------------------------------------------------------------
    # Alerts
    # ------------------------------------------------------------------

    def _check_alerts(self, call: APICall) -> None:
        endpoint = call.endpoint or "unknown"
        health = self.endpoint_health.get(self.endpoint_key(call.method, endpoint))
        if health is None:
            return

        limits = self.thresholds

        if health.error_rate > limits.error_rate and health.total_requests > 10:
            self._create_alert(
                severity="error",
                type="error_rate",
                message=f"High error rate detected for {endpoint}: {health.error_rate:.1f}%",
                endpoint=endpoint,
                method=call.method,
                value=health.error_rate,
                threshold=limits.error_rate,
            )

        if call.duration > limits.latency:
            self._create_alert(
                severity="warning",
                type="latency",
                message=f"High response time detected for {endpoint}: {call.duration:.0f}ms",
                endpoint=endpoint,
                method=call.method,
                value=call.duration,
                threshold=limits.latency,
            )

        if health.p95_response_time > limits.response_time_95 and health.total_requests > 20:
            self._create_alert(
                severity="warning",
                type="latency",
                message=f"95th percentile response time high for {endpoint}: {health.p95_response_time:.0f}ms",
                endpoint=endpoint,
                method=call.method,
                value=health.p95_response_time,
                threshold=limits.response_time_95,
            )

    def _create_alert(self, **alert_data: Any) -> Optional[APIAlert]:
        """Raise an alert unless an identical one is still open"""
        for existing in self.alerts:
            if (
                not existing.resolved
                and existing.type == alert_data["type"]
                and existing.endpoint == alert_data.get("endpoint")
                and existing.method == alert_data.get("method")
            ):
                return None

        alert = APIAlert(**alert_data)
        self.alerts.append(alert)
        logger.warning(f"API Alert: {alert.message}")
        return alert

    def auto_resolve_alerts(self) -> List[APIAlert]:
        """Resolve open alerts whose condition has cleared"""
        resolved = []
        latest = self.get_current_health()

        for alert in self.alerts:
            if alert.resolved:
                continue

            should_resolve = False
            if alert.type in ("error_rate", "latency") and alert.endpoint and alert.method:
                health = self.endpoint_health.get(self.endpoint_key(alert.method, alert.endpoint))
                if health is not None:
                    if alert.type == "error_rate":
                        should_resolve = health.error_rate <= self.thresholds.error_rate
                    else:
                        should_resolve = health.p95_response_time <= self.thresholds.response_time_95
            elif alert.type == "memory" and latest is not None:
                should_resolve = latest.memory_usage.percentage <= self.thresholds.memory_usage

            if should_resolve:
                alert.resolved = True
                alert.resolved_at = utcnow()
                resolved.append(alert)
                logger.info(f"Auto-resolved alert: {alert.message}")

        return resolved

    def get_active_alerts(self) -> List[APIAlert]:
        active = [alert for alert in self.alerts if not alert.resolved]
        return sorted(active, key=lambda a: a.timestamp, reverse=True)

    def get_all_alerts(self) -> List[APIAlert]:
        return sorted(self.alerts, key=lambda a: a.timestamp, reverse=True)

    def resolve_alert(self, alert_id: str) -> bool:
        """Manually resolve an open alert"""
        for alert in self.alerts:
            if alert.id == alert_id and not alert.resolved:
                alert.resolved = True
                alert.resolved_at = utcnow()
                self.save()
                return True
        return False

    # ------------------------------------------------------------------
    # System snapshots
    # ------------------------------------------------------------------

    def collect_system_metrics(self, memory: Optional[MemoryUsage] = None) -> SystemMetrics:
        """Take a snapshot of process health and recent traffic"""
        now = utcnow()
        memory = memory or read_memory_usage()

        cutoff = now - timedelta(minutes=1)
        recent = [call for call in self.calls if call.timestamp >= cutoff]
        failed = sum(1 for call in recent if not call.success)

        metrics = SystemMetrics(
            timestamp=now,
            cpu_usage=psutil.Process().cpu_percent(interval=None),
            memory_usage=memory,
            api_calls_per_minute=len(recent),
            error_rate=_rate(failed, len(recent)),
            average_response_time=_mean([call.duration for call in recent]),
            active_operations=len(self.tracker.get_active_operations()),
        )
        self.system_metrics.append(metrics)

        warmed_up = time.monotonic() - self._created >= self.memory_warmup
        if warmed_up and memory.percentage > self.thresholds.memory_usage:
            self._create_alert(
                severity="warning",
                type="memory",
                message=f"High memory usage detected: {memory.percentage:.1f}%",
                value=memory.percentage,
                threshold=self.thresholds.memory_usage,
            )

        if len(self.system_metrics) > self.max_stored_metrics:
            self.system_metrics = self.system_metrics[-self.max_stored_metrics:]

        self.auto_resolve_alerts()

        if now.minute % 15 == 0:
            logger.info(
                f"System health check: memory={memory.percentage:.1f}% "
                f"rpm={metrics.api_calls_per_minute} error_rate={metrics.error_rate:.1f}% "
                f"avg={metrics.average_response_time:.0f}ms active={metrics.active_operations}"
            )

        return metrics

    def get_system_metrics(
        self, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> List[SystemMetrics]:
        return [
            metric for metric in self.system_metrics
            if (start is None or metric.timestamp >= start)
            and (end is None or metric.timestamp <= end)
        ]

    def get_current_health(self) -> Optional[SystemMetrics]:
        return self.system_metrics[-1] if self.system_metrics else None

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def get_api_stats(
        self, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """Aggregate statistics over stored calls, optionally within a time range"""
        calls = [
            call for call in self.calls
            if (start is None or call.timestamp >= start)
            and (end is None or call.timestamp <= end)
        ]

        if not calls:
            return {
                "total_calls": 0,
                "success_rate": 0.0,
                "average_response_time": 0.0,
                "calls_per_minute": 0.0,
                "error_rate": 0.0,
                "by_endpoint": {},
                "by_status_code": {},
                "recent_errors": [],
            }

        failed = [call for call in calls if not call.success]

        grouped: Dict[str, List[APICall]] = {}
        by_status_code: Dict[str, int] = {}
        for call in calls:
            grouped.setdefault(call.endpoint or "unknown", []).append(call)
            code = str(call.status_code) if call.status_code is not None else "unknown"
            by_status_code[code] = by_status_code.get(code, 0) + 1

        by_endpoint = {
            endpoint: {
                "calls": len(group),
                "avg_response_time": _mean([c.duration for c in group]),
                "error_rate": _rate(sum(1 for c in group if not c.success), len(group)),
            }
            for endpoint, group in grouped.items()
        }

        recent_errors = [
            {
                "timestamp": call.timestamp,
                "method": call.method,
                "url": call.url,
                "status_code": call.status_code,
                "error": call.error,
                "duration": call.duration,
            }
            for call in failed[-10:]
        ]

        if start is not None and end is not None:
            minutes = (end - start).total_seconds() / 60
        else:
            minutes = 60.0

        return {
            "total_calls": len(calls),
            "success_rate": _rate(len(calls) - len(failed), len(calls)),
            "average_response_time": _mean([c.duration for c in calls]),
            "calls_per_minute": len(calls) / minutes if minutes > 0 else float(len(calls)),
            "error_rate": _rate(len(failed), len(calls)),
            "by_endpoint": by_endpoint,
            "by_status_code": by_status_code,
            "recent_errors": recent_errors,
        }

    def get_slow_endpoints(self, threshold_ms: float = 1000) -> List[Dict[str, Any]]:
        """Endpoints whose average response time exceeds the threshold"""
        stats: Dict[str, Tuple[float, int, int]] = {}
        for call in self.calls:
            endpoint = call.endpoint or "unknown"
            total, count, slow = stats.get(endpoint, (0.0, 0, 0))
            stats[endpoint] = (
                total + call.duration,
                count + 1,
                slow + (1 if call.duration > threshold_ms else 0),
            )

        slow_endpoints = [
            {
                "endpoint": endpoint,
                "average_response_time": total / count,
                "call_count": count,
                "slow_call_percentage": _rate(slow, count),
            }
            for endpoint, (total, count, slow) in stats.items()
            if total / count > threshold_ms
        ]
        return sorted(slow_endpoints, key=lambda s: s["average_response_time"], reverse=True)

    def get_error_analysis(self) -> List[Dict[str, Any]]:
        """Failed calls grouped by error message, most frequent first"""
        failed = [call for call in self.calls if not call.success]
        if not failed:
            return []

        groups: Dict[str, Dict[str, Any]] = {}
        for call in failed:
            error = call.error or "Unknown error"
            group = groups.setdefault(error, {"count": 0, "endpoints": []})
            group["count"] += 1
            endpoint = call.endpoint or "unknown"
            if endpoint not in group["endpoints"]:
                group["endpoints"].append(endpoint)

        analysis = [
            {
                "error": error,
                "count": group["count"],
                "percentage": _rate(group["count"], len(failed)),
                "endpoints": group["endpoints"],
            }
            for error, group in groups.items()
        ]
        return sorted(analysis, key=lambda a: a["count"], reverse=True)

    def get_endpoint_health_summary(self) -> List[EndpointHealth]:
        return sorted(self.endpoint_health.values(), key=lambda h: h.total_requests, reverse=True)

    def get_recent_calls(self, limit: int = 100) -> List[APICall]:
        """Most recent calls, newest first"""
        if limit <= 0:
            return []
        return list(reversed(self.calls[-limit:]))

    def get_time_series_data(self, hours: int = 24) -> List[Dict[str, Any]]:
        """Traffic in 5-minute buckets, oldest first"""
        cutoff = utcnow() - timedelta(hours=hours)
        bucket_seconds = TIME_SERIES_BUCKET.total_seconds()

        buckets: Dict[float, List[APICall]] = {}
        for call in self.calls:
            if call.timestamp <= cutoff:
                continue
            start = math.floor(call.timestamp.timestamp() / bucket_seconds) * bucket_seconds
            buckets.setdefault(start, []).append(call)

        minutes_per_bucket = bucket_seconds / 60
        return [
            {
                "timestamp": datetime.fromtimestamp(start, tz=timezone.utc).isoformat(),
                "requests_per_minute": len(calls) / minutes_per_bucket,
                "average_response_time": _mean([c.duration for c in calls]),
                "error_rate": _rate(sum(1 for c in calls if not c.success), len(calls)),
            }
            for start, calls in sorted(buckets.items())
        ]

    def get_slowest_endpoints(self, limit: int = 10) -> List[Dict[str, Any]]:
        """Slowest endpoints among those with meaningful traffic"""
        busy = [health for health in self.endpoint_health.values() if health.total_requests > 5]
        busy.sort(key=lambda h: h.average_response_time, reverse=True)
        return [
            {
                "endpoint": health.endpoint,
                "method": health.method,
                "average_response_time": health.average_response_time,
                "total_requests": health.total_requests,
            }
            for health in busy[:limit]
        ]

    def get_errors_by_endpoint(self) -> List[Dict[str, Any]]:
        counts: Dict[str, List[int]] = {}
        for call in self.calls:
            total_errors = counts.setdefault(call.endpoint or "unknown", [0, 0])
            total_errors[0] += 1
            if not call.success:
                total_errors[1] += 1

        errors = [
            {"endpoint": endpoint, "error_count": errs, "error_rate": _rate(errs, total)}
            for endpoint, (total, errs) in counts.items()
            if errs > 0
        ]
        return sorted(errors, key=lambda e: e["error_count"], reverse=True)

    def get_requests_by_method(self) -> List[Dict[str, Any]]:
        counts: Dict[str, int] = {}
        for call in self.calls:
            counts[call.method] = counts.get(call.method, 0) + 1

        total = len(self.calls)
        methods = [
            {"method": method, "count": count, "percentage": _rate(count, total)}
            for method, count in counts.items()
        ]
        return sorted(methods, key=lambda m: m["count"], reverse=True)

    def uptime_ms(self) -> float:
        return (time.time() - self.start_time) * 1000

    def get_sla_metrics(self) -> SLAMetrics:
        total = len(self.calls)
        failed = sum(1 for call in self.calls if not call.success)
        breaches = [alert for alert in self.alerts if alert.type in ("error_rate", "latency")]
        recoveries = [
            (alert.resolved_at - alert.timestamp).total_seconds() * 1000
            for alert in self.alerts
            if alert.resolved and alert.resolved_at is not None
        ]

        return SLAMetrics(
            actual_uptime=_rate(total - failed, total) if total else 100.0,
            breach_count=len(breaches),
            mttr=_mean(recoveries),
            mtbf=self.uptime_ms() / max(len(breaches), 1),
        )

    def get_dashboard_data(self) -> Dict[str, Any]:
        """Everything the evaluation dashboard renders, in one payload"""
        cutoff = utcnow() - timedelta(minutes=1)
        total = len(self.calls)
        failed = sum(1 for call in self.calls if not call.success)
        error_rate = _rate(failed, total)

        return {
            "overview": {
                "uptime": self.uptime_ms(),
                "total_requests": total,
                "requests_per_minute": sum(1 for call in self.calls if call.timestamp > cutoff),
                "average_response_time": _mean([call.duration for call in self.calls]),
                "error_rate": error_rate,
                "success_rate": 100.0 - error_rate,
                "memory_usage": read_memory_usage(),
            },
            "endpoints": self.get_endpoint_health_summary(),
            "recent_calls": self.get_recent_calls(50),
            "alerts": self.get_active_alerts(),
            "charts": {
                "time_series": self.get_time_series_data(24),
                "slowest_endpoints": self.get_slowest_endpoints(10),
                "errors_by_endpoint": self.get_errors_by_endpoint(),
                "requests_by_method": self.get_requests_by_method(),
            },
            "sla": self.get_sla_metrics(),
        }

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def snapshot(self) -> Dict[str, Any]:
        """JSON-ready copy of the state that survives restarts"""
        return {
            "calls": [call.model_dump(mode="json") for call in self.calls[-PERSISTED_CALLS:]],
            "alerts": [alert.model_dump(mode="json") for alert in self.alerts],
            "endpoint_health": {
                key: health.model_dump(mode="json") for key, health in self.endpoint_health.items()
            },
            "system_metrics": [
                metric.model_dump(mode="json") for metric in self.system_metrics[-PERSISTED_METRICS:]
            ],
            "start_time": self.start_time,
        }

    def _write(self, payload: Dict[str, Any]) -> None:
        if self.data_file is None:
            return
        try:
            self.data_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.data_file, "w") as f:
                json.dump(payload, f, indent=2)
        except OSError as e:
            logger.error(f"Failed to save API monitoring data: {e}")

    def save(self) -> None:
        self._write(self.snapshot())

    def load(self) -> bool:
        """Restore persisted state; returns False when starting fresh"""
        if self.data_file is None or not self.data_file.exists():
            logger.info("Starting with fresh API monitoring data")
            return False

        try:
            with open(self.data_file) as f:
                data = json.load(f)

            calls = [APICall.model_validate(c) for c in data.get("calls", [])]
            alerts = [APIAlert.model_validate(a) for a in data.get("alerts", [])]
            health = {
                key: EndpointHealth.model_validate(h)
                for key, h in data.get("endpoint_health", {}).items()
            }
            metrics = [SystemMetrics.model_validate(m) for m in data.get("system_metrics", [])]
        except (OSError, json.JSONDecodeError, ValidationError, AttributeError) as e:
            logger.warning(f"Discarding unreadable monitoring data {self.data_file}: {e}")
            return False

        self.calls = calls
        self.alerts = alerts
        self.endpoint_health = health
        self.system_metrics = metrics
        self.start_time = data.get("start_time") or time.time()
        logger.info(f"📊 Restored {len(calls)} API calls and {len(alerts)} alerts from {self.data_file}")
        return True

    async def run_periodic(self, metrics_interval: float = 60.0, save_interval: float = 300.0):
        """Collect snapshots and save on a timer until cancelled"""
        last_save = time.monotonic()
        while True:
            await asyncio.sleep(metrics_interval)
            try:
                self.collect_system_metrics()
            except psutil.Error as e:
                logger.warning(f"Could not collect system metrics: {e}")

            if time.monotonic() - last_save >= save_interval:
                await asyncio.to_thread(self._write, self.snapshot())
                last_save = time.monotonic()
