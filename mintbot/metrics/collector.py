"""Prometheus metrics collector for transaction submission."""

import time
from typing import Any, Optional

from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    Info,
    start_http_server,
)

from mintbot import __version__

# Submission attempts
submission_attempts_total = Counter(
    "mintbot_submission_attempts_total",
    "Total number of transaction submission attempts",
    ["outcome"],
)

submission_failures_total = Counter(
    "mintbot_submission_failures_total",
    "Total number of failed submission attempts",
    ["category"],
)

confirmation_duration_seconds = Histogram(
    "mintbot_confirmation_duration_seconds",
    "Time from submission to confirmation in seconds",
    buckets=(1, 2, 5, 10, 15, 30, 60, 120, 300),
)

# Fees
fee_bumps_total = Counter(
    "mintbot_fee_bumps_total",
    "Total number of fee escalations",
    ["fee_model"],
)

current_fee_wei = Gauge(
    "mintbot_current_fee_wei",
    "Fee offered by the most recent quote, in wei",
    ["field"],
)

# Signing units
units_total = Counter(
    "mintbot_units_total",
    "Total number of signing units processed",
    ["status"],
)

service_info = Info(
    "mintbot_build",
    "Build information",
)

start_time = time.time()
uptime_seconds = Gauge(
    "mintbot_uptime_seconds",
    "Process uptime in seconds",
)
uptime_seconds.set_function(lambda: time.time() - start_time)


class MetricsCollector:
    """Collects and exposes Prometheus metrics for submissions."""

    def __init__(self):
        service_info.info({"service": "mintbot", "version": __version__})
        self._server_started = False

    def record_attempt(
        self,
        outcome: str,
        category: Optional[str] = None,
        duration_seconds: Optional[float] = None,
    ):
        """Record one submission attempt.

        Args:
            outcome: 'confirmed' or 'failed'
            category: Failure category if failed (timeout, network, underpriced, ...)
            duration_seconds: Submission-to-confirmation time if confirmed
        """
        submission_attempts_total.labels(outcome=outcome).inc()
        if outcome == "failed" and category:
            submission_failures_total.labels(category=category).inc()
        if duration_seconds is not None:
            confirmation_duration_seconds.observe(duration_seconds)

    def record_fee(self, fee: Any):
        for field, value in fee.tx_fields().items():
            current_fee_wei.labels(field=field).set(value)

    def record_fee_bump(self, fee: Any):
        fee_bumps_total.labels(fee_model=fee.fee_model).inc()
        self.record_fee(fee)

    def record_unit(self, status: str):
        units_total.labels(status=status).inc()

    def start_server(self, port: int) -> None:
        """Expose /metrics over HTTP; later calls are no-ops."""
        if not self._server_started:
            start_http_server(port)
            self._server_started = True

