"""
Asterisk Manager Interface framing.

Messages are blocks of "Key: Value" lines terminated by CRLF, with an empty
line closing the block. Header names are case-insensitive on lookup.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple

from .errors import AMIProtocolError

CRLF = "\r\n"


@dataclass
class AMIMessage:
    """One parsed AMI block (response or event)."""
    headers: List[Tuple[str, str]] = field(default_factory=list)

    def get(self, key: str, default: str = "") -> str:
        """Return the first value for key (case-insensitive)."""
        lowered = key.lower()
        for name, value in self.headers:
            if name.lower() == lowered:
                return value
        return default

    def __contains__(self, key: str) -> bool:
        lowered = key.lower()
        return any(name.lower() == lowered for name, _ in self.headers)

    @property
    def is_event(self) -> bool:
        return "Event" in self

    @property
    def is_response(self) -> bool:
        return "Response" in self

    @property
    def name(self) -> str:
        """Event name, or response status for responses."""
        return self.get("Event") or self.get("Response")

    @property
    def action_id(self) -> str:
        return self.get("ActionID")

    def to_dict(self) -> Dict[str, str]:
        """Convert to a plain dict (first value wins)."""
        result: Dict[str, str] = {}
        for name, value in self.headers:
            result.setdefault(name, value)
        return result


@dataclass
class AMIResponse:
    """Result of a single action."""
    action: str
    message: AMIMessage

    @property
    def success(self) -> bool:
        return self.message.get("Response").lower() in ("success", "follows", "goodbye")

    @property
    def reason(self) -> str:
        return self.message.get("Message")


@dataclass
class AMIListResponse(AMIResponse):
    """Result of an event-list action (e.g. CoreShowChannels)."""
    events: List[AMIMessage] = field(default_factory=list)
    complete: Optional[AMIMessage] = None

    @property
    def rows(self) -> List[AMIMessage]:
        """Header response, list events and completion event, in wire order."""
        rows = [self.message] + list(self.events)
        if self.complete is not None:
            rows.append(self.complete)
        return rows


def is_list_complete(message: AMIMessage) -> bool:
    """True for the event that closes an event list."""
    return message.get("EventList").lower() == "complete"


def starts_event_list(message: AMIMessage) -> bool:
    """True for a response announcing that list events will follow."""
    if message.get("EventList").lower() == "start":
        return True
    return "will follow" in message.get("Message").lower()


def build_action(action: str, action_id: str, fields: Dict[str, str]) -> bytes:
    """
    Serialize an action block.

    Args:
        action: Action name (e.g. "TddTx")
        action_id: Correlation id echoed back by Asterisk
        fields: Additional headers

    Returns:
        Encoded action, terminated by an empty line

    Raises:
        AMIProtocolError: If a header name or value would break framing
    """
    lines = [f"Action: {action}", f"ActionID: {action_id}"]
    for key, value in fields.items():
        value = str(value)
        if not key or ":" in key or "\r" in key or "\n" in key:
            raise AMIProtocolError(f"Invalid header name: {key!r}")
        if "\r" in value or "\n" in value:
            raise AMIProtocolError(f"Header {key} contains a line break")
        lines.append(f"{key}: {value}")
    return (CRLF.join(lines) + CRLF + CRLF).encode("utf-8")


def parse_header(line: str) -> Optional[Tuple[str, str]]:
    """Split one "Key: Value" line, or return None if it has no colon."""
    name, sep, value = line.partition(":")
    if not sep:
        return None
    return name.strip(), value.lstrip(" ")


class MessageParser:
    """Incremental parser turning lines into AMIMessage blocks."""

    def __init__(self):
        self._headers: List[Tuple[str, str]] = []

    def feed_line(self, raw: bytes) -> Optional[AMIMessage]:
        """
        Feed one line (with or without its terminator).

        Returns:
            A complete message when raw is the closing empty line, else None.
        """
        line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
        if not line:
            if not self._headers:
                return None
            message = AMIMessage(self._headers)
            self._headers = []
            return message

        header = parse_header(line)
        if header is not None:
            self._headers.append(header)
        return None

    def feed(self, data: bytes) -> Iterator[AMIMessage]:
        """Parse a buffer containing whole lines."""
        for raw in data.splitlines():
            message = self.feed_line(raw)
            if message is not None:
                yield message
