"""
Inbound AMI event handling.

Filters events for the active relay and appends received TDD text to the
display. Every event is released back to the client exactly once.
"""

import logging
from typing import TYPE_CHECKING, Callable, Optional

from ..ami import AMIMessage
from .display import TranscriptDisplay
from .session import Phase, Session, Turn
from .text import decode_inbound

if TYPE_CHECKING:
    from ..metrics import MetricsCollector

logger = logging.getLogger("tdd_relay.inbound")

TEXT_EVENT = "TddRxMsg"
TOPOLOGY_EVENTS = frozenset({"Newchannel", "Hangup", "DeviceStateChange"})


class InboundEventHandler:
    """Per-event filter and decoder. Never blocks."""

    def __init__(
        self,
        session: Session,
        display: TranscriptDisplay,
        release: Callable[[AMIMessage], None],
        metrics: Optional["MetricsCollector"] = None,
    ):
        """
        Args:
            session: Shared session state
            display: Transcript display
            release: Hands an event back to the transport (called once per event)
            metrics: Optional metrics collector
        """
        self.session = session
        self.display = display
        self.release = release
        self.metrics = metrics

    def handle(self, event: AMIMessage) -> str:
        """
        Process one event and release it.

        Returns:
            Disposition: "displayed", "topology" or "ignored"
        """
        disposition = "ignored"
        try:
            disposition = self._dispatch(event)
        finally:
            self.release(event)
            if self.metrics is not None:
                self.metrics.event_handled(disposition)
        return disposition

    def _dispatch(self, event: AMIMessage) -> str:
        name = event.get("Event")

        if self.session.phase is not Phase.RELAYING:
            if name in TOPOLOGY_EVENTS and self.session.flag_topology_change():
                logger.debug(f"Channel list changed ({name})")
                return "topology"
            return "ignored"

        if name != TEXT_EVENT:
            return "ignored"

        if not self.session.is_relaying_on(event.get("Channel")):
            return "ignored"

        text = decode_inbound(event.get("Message"))
        if text:
            self.display.emit(Turn.REMOTE, text)
        return "displayed"
