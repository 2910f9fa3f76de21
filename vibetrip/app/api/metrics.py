"""Metrics and monitoring endpoints for the gateway.

This module collects request, remote-call and pipeline-stage metrics and
exposes them as JSON and in Prometheus text format, together with snapshots
of the rate limiters, circuit breakers and caches.
"""

import asyncio
import time
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from vibetrip.app.api.deps import get_container
from vibetrip.app.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/api", tags=["metrics"])


@dataclass
class RequestMetrics:
    """Metrics for one endpoint."""

    count: int = 0
    total_duration: float = 0.0
    errors: int = 0


@dataclass
class LatencyMetrics:
    """Latency aggregate for a remote operation or pipeline stage."""

    count: int = 0
    failures: int = 0
    total_duration: float = 0.0
    min_duration: float = float("inf")
    max_duration: float = 0.0

    def record(self, duration: float, success: bool) -> None:
        self.count += 1
        if not success:
            self.failures += 1
        self.total_duration += duration
        self.min_duration = min(self.min_duration, duration)
        self.max_duration = max(self.max_duration, duration)

    def summary(self) -> Dict[str, Any]:
        return {
            "count": self.count,
            "failures": self.failures,
            "avg_duration_ms": round(self.total_duration / self.count * 1000, 2)
            if self.count else 0,
            "min_duration_ms": round(self.min_duration * 1000, 2) if self.count else 0,
            "max_duration_ms": round(self.max_duration * 1000, 2),
        }


@dataclass
class MetricsCollector:
    """Collects and stores gateway metrics.

    This class is safe to share between concurrent requests and collects:
    - Request counts and latencies per endpoint
    - Remote model call latencies per operation
    - Pipeline stage durations
    - Error counts by type
    """

    _requests: Dict[str, RequestMetrics] = field(
        default_factory=lambda: defaultdict(RequestMetrics)
    )
    _remote_calls: Dict[str, LatencyMetrics] = field(
        default_factory=lambda: defaultdict(LatencyMetrics)
    )
    _stages: Dict[str, LatencyMetrics] = field(
        default_factory=lambda: defaultdict(LatencyMetrics)
    )
    _errors: Dict[str, int] = field(default_factory=lambda: defaultdict(int))

    _lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    _start_time: float = field(default_factory=time.time)

    @property
    def uptime_seconds(self) -> float:
        return round(time.time() - self._start_time, 2)

    async def record_request(
        self, endpoint: str, duration: float, status_code: int
    ) -> None:
        """Record a request metric.

        Args:
            endpoint: The endpoint path
            duration: Request duration in seconds
            status_code: HTTP status code
        """
        async with self._lock:
            metrics = self._requests[endpoint]
            metrics.count += 1
            metrics.total_duration += duration
            if status_code >= 400:
                metrics.errors += 1

    async def record_remote_call(self, operation: str, duration: float, success: bool) -> None:
        """Record one remote model call (one attempt sequence)."""
        async with self._lock:
            self._remote_calls[operation].record(duration, success)

    async def record_stage(self, stage: str, duration: float, success: bool) -> None:
        async with self._lock:
            self._stages[stage].record(duration, success)

    async def record_error(self, error_type: str) -> None:
        async with self._lock:
            self._errors[error_type] += 1

    async def get_summary(self) -> Dict[str, Any]:
        """Get a summary of all metrics.

        Returns:
            Dictionary with metrics summary
        """
        async with self._lock:
            total_requests = sum(m.count for m in self._requests.values())
            total_errors = sum(m.errors for m in self._requests.values())
            total_duration = sum(m.total_duration for m in self._requests.values())

            avg_latency = total_duration / total_requests if total_requests > 0 else 0
            error_rate = total_errors / total_requests if total_requests > 0 else 0

            endpoint_latencies = {}
            for endpoint, metrics in self._requests.items():
                if metrics.count > 0:
                    endpoint_latencies[endpoint] = {
                        "count": metrics.count,
                        "avg_duration_ms": round(
                            (metrics.total_duration / metrics.count) * 1000, 2
                        ),
                        "error_count": metrics.errors,
                    }

            return {
                "uptime_seconds": self.uptime_seconds,
                "total_requests": total_requests,
                "total_errors": total_errors,
                "error_rate": round(error_rate, 4),
                "average_latency_ms": round(avg_latency * 1000, 2),
                "endpoints": endpoint_latencies,
                "remote_calls": {
                    op: m.summary() for op, m in self._remote_calls.items()
                },
                "stages": {stage: m.summary() for stage, m in self._stages.items()},
                "errors_by_type": dict(self._errors),
            }

    async def get_prometheus_metrics(self) -> str:
        """Get metrics in Prometheus text format."""
        async with self._lock:
            lines = []

            lines.append("# HELP vibetrip_requests_total Total number of requests")
            lines.append("# TYPE vibetrip_requests_total counter")
            for endpoint, metrics in self._requests.items():
                lines.append(
                    f'vibetrip_requests_total{{endpoint="{endpoint}"}} {metrics.count}'
                )

            lines.append(
                "\n# HELP vibetrip_request_duration_seconds Total request duration"
            )
            lines.append("# TYPE vibetrip_request_duration_seconds counter")
            for endpoint, metrics in self._requests.items():
                lines.append(
                    f'vibetrip_request_duration_seconds{{endpoint="{endpoint}"}} {metrics.total_duration}'
                )

            lines.append("\n# HELP vibetrip_errors_total Total number of error responses")
            lines.append("# TYPE vibetrip_errors_total counter")
            total_errors = sum(m.errors for m in self._requests.values())
            lines.append(f"vibetrip_errors_total{{}} {total_errors}")

            lines.append(
                "\n# HELP vibetrip_remote_calls_total Remote model calls per operation"
            )
            lines.append("# TYPE vibetrip_remote_calls_total counter")
            for op, m in self._remote_calls.items():
                lines.append(f'vibetrip_remote_calls_total{{operation="{op}"}} {m.count}')

            lines.append(
                "\n# HELP vibetrip_remote_call_failures_total Failed remote model calls"
            )
            lines.append("# TYPE vibetrip_remote_call_failures_total counter")
            for op, m in self._remote_calls.items():
                lines.append(
                    f'vibetrip_remote_call_failures_total{{operation="{op}"}} {m.failures}'
                )

            lines.append(
                "\n# HELP vibetrip_stage_duration_seconds Total pipeline stage duration"
            )
            lines.append("# TYPE vibetrip_stage_duration_seconds counter")
            for stage, m in self._stages.items():
                lines.append(
                    f'vibetrip_stage_duration_seconds{{stage="{stage}"}} {m.total_duration}'
                )

            lines.append("\n# HELP vibetrip_uptime_seconds Gateway uptime in seconds")
            lines.append("# TYPE vibetrip_uptime_seconds gauge")
            lines.append(f"vibetrip_uptime_seconds{{}} {self.uptime_seconds}")

            return "\n".join(lines) + "\n"


class MetricsMiddleware:
    """Middleware to collect request metrics.

    The collector is taken from the application's service container.
    Requests are keyed by the matched route template so per-trip URLs
    share one entry; requests that match no route share "unmatched".

        Example:
            app.add_middleware(MetricsMiddleware)
    """

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        start_time = time.perf_counter()
        status_code = 500

        async def wrapped_send(message):
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message.get("status", 200)
            await send(message)

        try:
            await self.app(scope, receive, wrapped_send)
        finally:
            duration = time.perf_counter() - start_time
            container = getattr(scope["app"].state, "container", None)
            if container is not None:
                route = scope.get("route")
                endpoint = getattr(route, "path", None) or "unmatched"
                await container.metrics.record_request(endpoint, duration, status_code)


@router.get("/metrics")
async def metrics_summary(container=Depends(get_container)) -> dict[str, Any]:
    """Request, remote-call and stage metrics plus resilience component state."""
    summary = await container.metrics.get_summary()
    summary["rate_limiters"] = {
        name: {"limit": limiter.limit, "buckets": limiter.all_stats()}
        for name, limiter in container.limiters.items()
    }
    summary["circuit_breakers"] = {
        name: breaker.get_stats() for name, breaker in container.breakers.items()
    }
    summary["caches"] = {name: cache.get_stats() for name, cache in container.caches.items()}
    return summary


@router.get("/metrics/prometheus", response_class=PlainTextResponse)
async def prometheus_metrics(container=Depends(get_container)) -> PlainTextResponse:
    """Prometheus-compatible metrics endpoint."""
    content = await container.metrics.get_prometheus_metrics()
    return PlainTextResponse(
        content=content, media_type="text/plain; version=0.0.4; charset=utf-8"
    )
