"""
Interactive input loop.

Reads one keystroke at a time while relaying. ESC turns the next key into a
command; otherwise keys are sent as TDD text, or as DTMF digits while
tone-passthrough is on.
"""

import asyncio
import logging
from enum import Enum
from typing import TYPE_CHECKING, Awaitable, Callable, Dict, Optional

from ..ami import AMIError
from .display import TERM_CLEAR, TranscriptDisplay
from .session import Turn
from .text import encode_outbound, is_dtmf

if TYPE_CHECKING:
    from ..ami import AMIClient
    from ..metrics import MetricsCollector
    from .terminal import Terminal

logger = logging.getLogger("tdd_relay.input")

KEY_ESCAPE = "\x1b"
CALL_DISCONNECTED = "*** CALL DISCONNECTED ***"

MENU = (
    "ESC +"
    " [H] Help"
    " [Q] Quit"
    " [1] Dial Number"
    " [2] Hangup"
    " [4] Send Greeting"
    " [8] Clear Screen"
    " [D] DTMF Mode"
    "\n"
)


class LoopResult(Enum):
    """Why the input loop ended."""
    QUIT = "quit"
    HANGUP = "hangup"
    DISCONNECTED = "disconnected"
    EOF = "eof"


class InputLoop:
    """Keystroke interpreter for one relay phase."""

    def __init__(
        self,
        client: "AMIClient",
        terminal: "Terminal",
        display: TranscriptDisplay,
        greeting: str = "HELLO GA",
        dtmf_interval: float = 0.1,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.client = client
        self.terminal = terminal
        self.display = display
        self.greeting = greeting
        self.dtmf_interval = dtmf_interval
        self.metrics = metrics

        self.leg_id = ""
        self.tone_mode = False
        self._commands: Dict[str, Callable[[], Awaitable[Optional[LoopResult]]]] = {
            "q": self._cmd_quit,
            "h": self._cmd_help,
            "1": self._cmd_dial,
            "2": self._cmd_hangup,
            "4": self._cmd_greeting,
            "8": self._cmd_clear,
            "d": self._cmd_toggle_tone,
        }

    async def run(self, leg_id: str) -> LoopResult:
        """Relay keystrokes for leg_id until a command or failure ends the phase."""
        self.leg_id = leg_id
        self.tone_mode = False
        escaped = False

        while True:
            try:
                key = await self.terminal.read_key()
            except EOFError:
                return LoopResult.EOF

            if key == KEY_ESCAPE:
                escaped = True
                continue

            if escaped:
                escaped = False
                result = await self.dispatch_command(key)
                if result is not None:
                    return result
                continue

            if self.tone_mode and is_dtmf(key):
                if not await self.send_digit(key):
                    return self._disconnected()
                continue

            if not await self.send_text(key):
                return self._disconnected()

    async def dispatch_command(self, key: str) -> Optional[LoopResult]:
        """Run the command bound to key. Returns a result if the loop must end."""
        command = self._commands.get(key.lower())
        if command is None:
            logger.debug(f"Ignoring command key {key!r}")
            return None
        return await command()

    def toggle_tone_mode(self) -> bool:
        self.tone_mode = not self.tone_mode
        logger.debug(f"DTMF passthrough {'on' if self.tone_mode else 'off'}")
        return self.tone_mode

    async def send_text(self, text: str) -> bool:
        """Send text as one TddTx action and echo it. Returns False on failure."""
        try:
            response = await self.client.send_action(
                "TddTx", Channel=self.leg_id, Message=encode_outbound(text)
            )
            ok = response.success
        except AMIError as e:
            logger.error(f"TddTx failed on {self.leg_id}: {e}")
            ok = False

        self._record("TddTx", ok)
        if ok:
            self.display.emit(Turn.OPERATOR, text)
        return ok

    async def send_digit(self, digit: str) -> bool:
        """Play one DTMF digit on the leg. Returns False on failure."""
        try:
            response = await self.client.send_action("PlayDTMF", Channel=self.leg_id, Digit=digit)
            ok = response.success
        except AMIError as e:
            logger.error(f"PlayDTMF failed on {self.leg_id}: {e}")
            ok = False

        self._record("PlayDTMF", ok)
        if ok and self.metrics is not None:
            self.metrics.digit_sent()
        return ok

    async def _cmd_quit(self) -> Optional[LoopResult]:
        return LoopResult.QUIT

    async def _cmd_help(self) -> Optional[LoopResult]:
        self.display.write("\n" + MENU)
        return None

    async def _cmd_dial(self) -> Optional[LoopResult]:
        self.display.write("\nNBR: ")
        try:
            with self.terminal.line_mode():
                number = await self.terminal.read_line()
        except EOFError:
            return None

        for digit in number or "":
            if not is_dtmf(digit):
                continue
            if not await self.send_digit(digit):
                return self._disconnected()
            await asyncio.sleep(self.dtmf_interval)
        return None

    async def _cmd_hangup(self) -> Optional[LoopResult]:
        return LoopResult.HANGUP

    async def _cmd_greeting(self) -> Optional[LoopResult]:
        if not await self.send_text(self.greeting):
            return self._disconnected()
        return None

    async def _cmd_clear(self) -> Optional[LoopResult]:
        self.display.write(TERM_CLEAR)
        return None

    async def _cmd_toggle_tone(self) -> Optional[LoopResult]:
        self.toggle_tone_mode()
        return None

    def _disconnected(self) -> LoopResult:
        self.display.notice(f"\n{CALL_DISCONNECTED}\n")
        return LoopResult.DISCONNECTED

    def _record(self, action: str, ok: bool) -> None:
        if self.metrics is not None:
            self.metrics.action_result(action, ok)
