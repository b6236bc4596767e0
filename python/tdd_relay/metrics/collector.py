"""
Prometheus Metrics Collector for the TDD relay.

Provides metrics for monitoring:
- Relay phases and their duration
- TDD characters sent and received
- DTMF digits played
- AMI action outcomes
- Inbound event dispositions
"""

import logging
from typing import Optional

logger = logging.getLogger("tdd_relay.metrics")

try:
    from prometheus_client import Counter, Histogram, Gauge, start_http_server
    PROMETHEUS_AVAILABLE = True
except ImportError:
    PROMETHEUS_AVAILABLE = False
    logger.warning("prometheus_client not installed, metrics disabled. pip install prometheus-client")


if PROMETHEUS_AVAILABLE:
    # Relay metrics
    RELAYS_TOTAL = Counter(
        'tdd_relay_relays_total',
        'Relay phases ended',
        ['outcome']  # 'quit', 'hangup', 'disconnected', 'eof'
    )
    RELAY_DURATION = Histogram(
        'tdd_relay_relay_duration_seconds',
        'Duration of relay phases in seconds',
        buckets=[10, 30, 60, 120, 300, 600, 1800, 3600]
    )
    ACTIVE_RELAY = Gauge(
        'tdd_relay_active',
        'Whether a relay phase is active'
    )

    # Text metrics
    CHARS_SENT = Counter(
        'tdd_relay_chars_sent_total',
        'Characters sent to the remote TTY'
    )
    CHARS_RECEIVED = Counter(
        'tdd_relay_chars_received_total',
        'Characters received from the remote TTY'
    )
    DTMF_SENT = Counter(
        'tdd_relay_dtmf_digits_total',
        'DTMF digits played on the channel'
    )

    # AMI metrics
    ACTIONS_TOTAL = Counter(
        'tdd_relay_ami_actions_total',
        'AMI actions sent',
        ['action', 'status']  # status: 'success', 'error'
    )
    EVENTS_TOTAL = Counter(
        'tdd_relay_ami_events_total',
        'AMI events handled',
        ['disposition']  # 'displayed', 'topology', 'ignored'
    )


class MetricsCollector:
    """
    Centralized metrics collector for the relay.

    Every recording method is a no-op when prometheus_client is missing.
    """

    def __init__(self, port: int = 9090, host: str = "127.0.0.1"):
        """
        Initialize metrics collector.

        Args:
            port: Port for Prometheus HTTP server
            host: Host to bind to
        """
        self.port = port
        self.host = host
        self._started = False

    def start(self) -> bool:
        """
        Start the Prometheus HTTP server.

        Returns:
            True if started successfully, False if prometheus not available
        """
        if not PROMETHEUS_AVAILABLE:
            logger.warning("Prometheus not available, metrics server not started")
            return False

        if self._started:
            return True

        try:
            start_http_server(self.port, addr=self.host)
            self._started = True
            logger.info(f"Prometheus metrics server started on {self.host}:{self.port}")
            return True
        except OSError as e:
            logger.error(f"Failed to start metrics server: {e}")
            return False

    # Relay metrics
    def relay_started(self) -> None:
        if PROMETHEUS_AVAILABLE:
            ACTIVE_RELAY.set(1)

    def relay_ended(self, duration: float, outcome: str) -> None:
        if PROMETHEUS_AVAILABLE:
            ACTIVE_RELAY.set(0)
            RELAYS_TOTAL.labels(outcome=outcome).inc()
            RELAY_DURATION.observe(duration)

    # Text metrics
    def text_sent(self, chars: int) -> None:
        if PROMETHEUS_AVAILABLE:
            CHARS_SENT.inc(chars)

    def text_received(self, chars: int) -> None:
        if PROMETHEUS_AVAILABLE:
            CHARS_RECEIVED.inc(chars)

    def digit_sent(self) -> None:
        if PROMETHEUS_AVAILABLE:
            DTMF_SENT.inc()

    # AMI metrics
    def action_result(self, action: str, success: bool) -> None:
        """Record the outcome of an AMI action."""
        if PROMETHEUS_AVAILABLE:
            status = "success" if success else "error"
            ACTIONS_TOTAL.labels(action=action, status=status).inc()

    def event_handled(self, disposition: str) -> None:
        if PROMETHEUS_AVAILABLE:
            EVENTS_TOTAL.labels(disposition=disposition).inc()

    @property
    def is_available(self) -> bool:
        """Check if Prometheus is available."""
        return PROMETHEUS_AVAILABLE


# Global instance
_metrics: Optional[MetricsCollector] = None


def get_metrics() -> MetricsCollector:
    """Get or create the global metrics collector."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics
