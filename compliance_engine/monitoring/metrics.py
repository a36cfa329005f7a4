"""Prometheus metrics for monitoring the compliance engine."""

import logging
import time
from typing import Optional

from prometheus_client import Counter, Histogram, start_http_server

logger = logging.getLogger(__name__)

# Define metrics
RULE_SYNCS = Counter(
    "compliance_engine_rule_syncs_total",
    "Number of community rule syncs, by outcome",
    ["outcome"],
)

UPSTREAM_ERRORS = Counter(
    "compliance_engine_upstream_errors_total",
    "Number of failed fetches from the external rule source",
    ["source", "error_type"],
)

LINT_VERDICTS = Counter(
    "compliance_engine_lint_verdicts_total",
    "Number of lint evaluations, by policy state",
    ["policy_state"],
)

GATE_DECISIONS = Counter(
    "compliance_engine_gate_decisions_total",
    "Number of preview gate checks, by decision",
    ["decision"],
)

FETCH_DURATION = Histogram(
    "compliance_engine_fetch_duration_seconds",
    "Duration of rule source requests in seconds",
    buckets=[0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0],
)


class PrometheusExporter:
    """Prometheus metrics exporter for the compliance engine."""

    def __init__(self, port: int = 8000):
        """
        Initialize the Prometheus exporter.

        Args:
            port: Port to expose metrics on
        """
        self.port = port
        self.server_started = False

    def start_server(self) -> None:
        """Start the Prometheus metrics server."""
        if not self.server_started:
            try:
                start_http_server(self.port)
                self.server_started = True
                logger.info(f"Started Prometheus metrics server on port {self.port}")
            except Exception as e:
                logger.error(f"Failed to start Prometheus metrics server: {str(e)}")

    def record_sync(self, outcome: str) -> None:
        """
        Record a community sync.

        Args:
            outcome: 'success' or 'failure'
        """
        RULE_SYNCS.labels(outcome=outcome).inc()

    def record_upstream_error(self, source: str, error_type: str) -> None:
        """
        Record a failed rule source fetch.

        Args:
            source: 'about_rules' or 'wiki'
            error_type: HTTP status code, 'timeout' or 'connection'
        """
        UPSTREAM_ERRORS.labels(source=source, error_type=error_type).inc()

    def record_lint_verdict(self, policy_state: str) -> None:
        LINT_VERDICTS.labels(policy_state=policy_state).inc()

    def record_gate_decision(self, allowed: bool) -> None:
        GATE_DECISIONS.labels(decision="allow" if allowed else "deny").inc()

    def time_request(self) -> "RequestTimer":
        """
        Create a context manager for timing rule source requests.

        Returns:
            RequestTimer context manager
        """
        return RequestTimer()


class RequestTimer:
    """Context manager for timing rule source requests."""

    def __init__(self):
        self.start_time: Optional[float] = None

    def __enter__(self) -> "RequestTimer":
        self.start_time = time.time()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self.start_time is not None:
            duration = time.time() - self.start_time
            FETCH_DURATION.observe(duration)
