"""Prometheus metrics exposition."""

from prometheus_client import Counter, Histogram, Info, generate_latest, CONTENT_TYPE_LATEST

from claude_relay import __version__

# Application info
APP_INFO = Info("claude_relay", "Application information")
APP_INFO.info({"version": __version__})

REQUESTS_TOTAL = Counter(
    "claude_relay_requests_total",
    "Messages requests received",
    ["model", "stream"]
)

UPSTREAM_ATTEMPTS_TOTAL = Counter(
    "claude_relay_upstream_attempts_total",
    "Upstream calls by outcome",
    ["outcome"]
)

KEY_FAILURES_TOTAL = Counter(
    "claude_relay_key_failures_total",
    "Keys placed in quarantine",
    ["reason"]
)

STREAM_FRAME_ERRORS_TOTAL = Counter(
    "claude_relay_stream_frame_errors_total",
    "Upstream stream frames that failed to parse"
)

RESPONSE_TIME = Histogram(
    "claude_relay_response_time_seconds",
    "Time until the upstream answered successfully",
    ["model"],
    buckets=[0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0]
)


class MetricsExporter:
    """Exports metrics in Prometheus format."""

    @staticmethod
    def get_prometheus_format() -> tuple[str, bytes]:
        """Get metrics in Prometheus exposition format.

        Returns:
            Tuple of (content_type, metrics_body)
        """
        return CONTENT_TYPE_LATEST, generate_latest()

    @staticmethod
    def record_request(model: str, stream: bool) -> None:
        """Record an inbound Messages request.

        Args:
            model: Model name as sent by the caller
            stream: Whether a streamed response was requested
        """
        REQUESTS_TOTAL.labels(model=model, stream="true" if stream else "false").inc()

    @staticmethod
    def record_attempt(outcome: str) -> None:
        """Count an upstream attempt.

        Args:
            outcome: "success", "http_error" or "network_error"
        """
        UPSTREAM_ATTEMPTS_TOTAL.labels(outcome=outcome).inc()

    @staticmethod
    def record_key_failure(reason: str) -> None:
        """Record a key placed in quarantine.

        Args:
            reason: "network" or "http_<status>"
        """
        KEY_FAILURES_TOTAL.labels(reason=reason).inc()

    @staticmethod
    def record_frame_error() -> None:
        """Record a stream frame skipped as malformed."""
        STREAM_FRAME_ERRORS_TOTAL.inc()

    @staticmethod
    def record_response_time(model: str, seconds: float) -> None:
        """Record time to a successful upstream answer.

        Args:
            model: Upstream model name
            seconds: Elapsed time for the attempt
        """
        RESPONSE_TIME.labels(model=model).observe(seconds)
