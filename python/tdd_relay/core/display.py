"""
Transcript display.

All screen output of the relay goes through TranscriptDisplay so that
transcript text from the two parties never interleaves mid-line.
"""

import logging
import sys
from typing import TYPE_CHECKING, Callable, Optional, TextIO

from .session import Session, Turn

if TYPE_CHECKING:
    from ..metrics import MetricsCollector
    from ..websocket import TranscriptMirror

logger = logging.getLogger("tdd_relay.display")

TERM_CLEAR = "\x1b[1;1H\x1b[2J"

ROLE_PREFIXES = {
    Turn.OPERATOR: "\nCA : ",
    Turn.REMOTE: "\nTTY: ",
}


class TranscriptDisplay:
    """Append-only relay display guarded by the session lock."""

    def __init__(
        self,
        write: Callable[[str], None],
        session: Session,
        mirror: Optional["TranscriptMirror"] = None,
        metrics: Optional["MetricsCollector"] = None,
        err: Optional[TextIO] = None,
    ):
        """
        Args:
            write: Writes and flushes text to the screen
            session: Shared session (its lock serializes writes)
            mirror: Optional live transcript mirror
            metrics: Optional metrics collector
            err: Stream for error notices (default: sys.stderr)
        """
        self._write = write
        self._session = session
        self._mirror = mirror
        self._metrics = metrics
        self._err = err

    def emit(self, role: Turn, text: str) -> None:
        """Append transcript text, prefixing it when the turn changes."""
        with self._session.lock:
            leg_id = self._session.peek_leg_id()
            if self._session.swap_turn(role):
                self._write(ROLE_PREFIXES[role] + text)
            else:
                self._write(text)

        if self._metrics is not None:
            if role is Turn.OPERATOR:
                self._metrics.text_sent(len(text))
            else:
                self._metrics.text_received(len(text))
        if self._mirror is not None:
            self._mirror.publish_text(leg_id, role.value, text)

    def write(self, text: str) -> None:
        """Write non-transcript output (menus, listings, prompts)."""
        with self._session.lock:
            self._write(text)

    def clear(self) -> None:
        self.write(TERM_CLEAR)

    def notice(self, text: str) -> None:
        """Report an error to standard error."""
        err = self._err or sys.stderr
        err.write(text)
        err.flush()
