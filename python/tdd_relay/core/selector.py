"""
Channel selector.

Lists the active channels, prompts the operator for one and validates the
choice. The prompt wait is bounded so that channel changes reported by AMI
events are picked up between keystrokes.
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Tuple

from ..ami import AMIError, AMIListResponse
from .display import TranscriptDisplay
from .session import Session

if TYPE_CHECKING:
    from ..ami import AMIClient
    from .terminal import Terminal

logger = logging.getLogger("tdd_relay.selector")

SELECTOR_HEADER = (
    "*** TDD Relay ***\n"
    "Target channel number should be the non-TTY side of the call\n"
    "i.e. the channel with which the TTY user is currently bridged\n"
)
PROMPT = "=> Channel No.: "

_HDR_FORMAT = "{:>4} | {:<40} | {:>8} | {:>15} | {:>15}\n"


@dataclass(frozen=True)
class SelectableLeg:
    """One selectable channel row."""
    index: int
    leg_id: str
    duration: str
    caller: str
    called: str


@dataclass(frozen=True)
class LegTable:
    """
    Snapshot of a channel listing.

    size counts the listing's header response and completion event, so only
    ordinals 1..size-2 address real channels.
    """
    legs: Tuple[SelectableLeg, ...] = ()

    @classmethod
    def from_listing(cls, listing: AMIListResponse) -> "LegTable":
        legs = []
        for i, event in enumerate(listing.events, start=1):
            legs.append(
                SelectableLeg(
                    index=i,
                    leg_id=event.get("Channel"),
                    duration=event.get("Duration"),
                    caller=event.get("CallerIDNum"),
                    called=event.get("ConnectedLineNum"),
                )
            )
        return cls(tuple(legs))

    @property
    def size(self) -> int:
        return len(self.legs) + 2

    def is_selectable(self, ordinal: int) -> bool:
        return 1 <= ordinal < self.size - 1

    def leg(self, ordinal: int) -> SelectableLeg:
        if not self.is_selectable(ordinal):
            raise IndexError(f"Channel {ordinal} is not selectable")
        return self.legs[ordinal - 1]

    def render(self) -> str:
        lines = [f"Channels: {len(self.legs)}\n"]
        lines.append(_HDR_FORMAT.format("#", "Channel", "Duration", "Caller ID", "Called No."))
        for leg in self.legs:
            lines.append(_HDR_FORMAT.format(leg.index, leg.leg_id, leg.duration, leg.caller, leg.called))
        return "".join(lines)


def parse_ordinal(text: str) -> int:
    """Parse a leading decimal number; anything unparsable is 0."""
    text = text.strip()
    digits = ""
    for i, ch in enumerate(text):
        if ch.isdigit() or (i == 0 and ch in "+-"):
            digits += ch
        else:
            break
    try:
        return int(digits)
    except ValueError:
        return 0


class ChannelSelector:
    """LIST -> PROMPT -> VALIDATE loop."""

    def __init__(
        self,
        client: "AMIClient",
        terminal: "Terminal",
        display: TranscriptDisplay,
        session: Session,
        always_refresh: bool = False,
        poll_interval: float = 1.0,
    ):
        self.client = client
        self.terminal = terminal
        self.display = display
        self.session = session
        self.always_refresh = always_refresh
        self.poll_interval = poll_interval
        self.table = LegTable()
        self._listing_failed = False

    async def select(self, notice: Optional[str] = None) -> Optional[str]:
        """
        Run the selection loop.

        Args:
            notice: Message from the previous relay phase, shown under the
                header of the first listing

        Returns:
            The chosen channel, or None if the operator quit (or input ended).
        """
        invalid: Optional[str] = None
        listed = False

        while True:
            refresh = self.session.consume_refresh()
            if refresh or not listed or self.always_refresh or self._listing_failed:
                await self._show_listing(invalid, notice)
                invalid = None
                notice = None
                listed = True

            try:
                line = await self.terminal.read_line(timeout=self.poll_interval)
            except EOFError:
                return None
            if line is None:
                continue

            if self.session.refresh_needed:
                # The listing changed while the operator was typing
                logger.debug(f"Discarding selection {line.strip()!r} made on a stale listing")
                continue

            entry = line.strip()
            if entry.lower() == "q":
                return None
            if entry:
                ordinal = parse_ordinal(entry)
                if self.table.is_selectable(ordinal):
                    leg = self.table.leg(ordinal)
                    logger.info(f"Selected channel {ordinal}: {leg.leg_id}")
                    return leg.leg_id
                invalid = line.rstrip("\n")
            self.session.request_refresh()

    async def refresh(self) -> Optional[LegTable]:
        """Query the current channels. Returns None if the listing failed."""
        try:
            listing = await self.client.send_list_action("CoreShowChannels")
        except AMIError as e:
            logger.warning(f"Channel listing failed: {e}")
            return None
        if not listing.success:
            logger.warning(f"Channel listing refused: {listing.reason}")
            return None
        return LegTable.from_listing(listing)

    async def _show_listing(self, invalid: Optional[str], notice: Optional[str] = None) -> None:
        table = await self.refresh()

        self.display.clear()
        self.display.write(SELECTOR_HEADER)
        if notice:
            self.display.write(f"{notice}\n")
        self._listing_failed = table is None
        if table is None:
            self.table = LegTable()
            self.display.write("Failed to get channel list\n")
        else:
            self.table = table
            self.display.write(table.render())

        if invalid is not None:
            self.display.write(f"Invalid channel number: {invalid}\n")
        self.display.write(PROMPT)
