"""Core monitoring utilities that aggregate metrics and health checks."""

from __future__ import annotations

import os
import socket
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import psutil

from infrastructure.monitoring.metrics import global_metrics


HealthCheckFunc = Callable[[], tuple[bool, Optional[str]]]


@dataclass
class HealthCheckResult:
    name: str
    healthy: bool
    details: Optional[str] = None


def _unconfigured_check() -> tuple[bool, Optional[str]]:
    return False, "check not configured"


def _default_disk_threshold_check(threshold: float = 0.9) -> tuple[bool, Optional[str]]:
    usage = psutil.disk_usage("/")
    ratio = usage.used / usage.total
    return ratio < threshold, f"disk usage at {ratio:.2%}"


def _default_memory_threshold_check(threshold: float = 0.9) -> tuple[bool, Optional[str]]:
    usage = psutil.virtual_memory()
    ratio = usage.percent / 100.0
    return ratio < threshold, f"memory usage at {ratio:.2%}"


class MonitoringCore:
    """Request accounting plus health checks for the catalogue service."""

    def __init__(
        self,
        *,
        store_check: Optional[HealthCheckFunc] = None,
        cache_check: Optional[HealthCheckFunc] = None,
        disk_threshold_check: Optional[HealthCheckFunc] = None,
        memory_threshold_check: Optional[HealthCheckFunc] = None,
        hostname: Optional[str] = None,
    ) -> None:
        self.hostname = hostname or socket.gethostname()
        self._startup_ts = time.time()
        self._store_check = store_check or _unconfigured_check
        self._cache_check = cache_check or _unconfigured_check
        self._disk_check = disk_threshold_check or _default_disk_threshold_check
        self._memory_check = memory_threshold_check or _default_memory_threshold_check

        self._metrics = global_metrics()
        self._lock = threading.RLock()
        self._register_metrics()
        self._request_total = 0

    # ------------------------------------------------------------------
    # Metric recording helpers
    # ------------------------------------------------------------------
    def record_request(self, endpoint: str, status: str, duration_s: float) -> None:
        with self._lock:
            self._request_counter.labels(endpoint=endpoint, status=status).inc()
            self._request_duration.labels(endpoint=endpoint).observe(duration_s)
            self._request_total += 1

    # ------------------------------------------------------------------
    # Data collection
    # ------------------------------------------------------------------
    def system_metrics(self) -> Dict[str, Any]:
        memory = psutil.virtual_memory()
        disk = psutil.disk_usage("/")
        load_avg = os.getloadavg() if hasattr(os, "getloadavg") else None
        uptime = self.uptime_seconds()
        self._uptime_gauge.set(uptime)
        return {
            "hostname": self.hostname,
            "cpu_percent": psutil.cpu_percent(interval=None),
            "load_average": load_avg,
            "memory": {"total": memory.total, "available": memory.available, "percent": memory.percent},
            "disk": {"total": disk.total, "free": disk.free, "percent": disk.percent},
            "uptime_seconds": uptime,
        }

    def application_metrics(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "requests_total": self._request_total,
                "uptime_seconds": self.uptime_seconds(),
            }

    def health_checks(self) -> Dict[str, HealthCheckResult]:
        checks = {
            "store": self._evaluate("store", self._store_check),
            "cache": self._evaluate("cache", self._cache_check),
            "disk": self._evaluate("disk", self._disk_check),
            "memory": self._evaluate("memory", self._memory_check),
        }
        checks["overall"] = HealthCheckResult(
            name="overall",
            healthy=all(check.healthy for check in checks.values()),
        )
        return checks

    def uptime_seconds(self) -> float:
        return time.time() - self._startup_ts

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _evaluate(name: str, check: HealthCheckFunc) -> HealthCheckResult:
        healthy, details = check()
        return HealthCheckResult(name=name, healthy=healthy, details=details)

    def _register_metrics(self) -> None:
        self._request_counter = self._metrics.register_counter(
            "app_requests_total",
            "Total number of processed requests",
            labelnames=("endpoint", "status"),
        )
        self._request_duration = self._metrics.register_summary(
            "request_duration_seconds",
            "Request handling duration",
            labelnames=("endpoint",),
        )
        self._uptime_gauge = self._metrics.register_gauge(
            "app_uptime_seconds",
            "Application uptime",
        )


__all__ = ["MonitoringCore", "HealthCheckResult"]
