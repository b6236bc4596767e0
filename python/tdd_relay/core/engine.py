"""
Session Relay Engine.

Coordinates all components:
- Channel selector (or a preconfigured channel)
- Relay enable (TddRx) on the chosen channel
- Event pump feeding the inbound event handler
- Interactive input loop
"""

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Optional

from ..ami import AMIError
from ..config import RelayConfig, get_config
from .display import TranscriptDisplay
from .inbound import InboundEventHandler
from .input_loop import CALL_DISCONNECTED, MENU, InputLoop, LoopResult
from .selector import ChannelSelector
from .session import Session

if TYPE_CHECKING:
    from ..ami import AMIClient
    from ..metrics import MetricsCollector
    from ..websocket import TranscriptMirror
    from .terminal import Terminal

logger = logging.getLogger("tdd_relay.engine")

RELAY_BANNER = "*** TDD Relay ***\n"


def enable_failed_notice(leg_id: str) -> str:
    return f"Failed to enable TTY on channel {leg_id}"


class RelayEngine:
    """Selects channels and runs relay phases until the operator quits."""

    def __init__(
        self,
        client: "AMIClient",
        terminal: "Terminal",
        config: Optional[RelayConfig] = None,
        metrics: Optional["MetricsCollector"] = None,
        mirror: Optional["TranscriptMirror"] = None,
    ):
        self.client = client
        self.terminal = terminal
        self.config = config or get_config()
        self.metrics = metrics
        self.mirror = mirror

        self.session = Session()
        self.display = TranscriptDisplay(terminal.write, self.session, mirror=mirror, metrics=metrics)
        self.inbound = InboundEventHandler(
            self.session, self.display, release=client.release_event, metrics=metrics
        )
        self.selector = ChannelSelector(
            client,
            terminal,
            self.display,
            self.session,
            always_refresh=self.config.always_refresh,
            poll_interval=self.config.select_poll_sec,
        )
        self.input_loop = InputLoop(
            client,
            terminal,
            self.display,
            greeting=self.config.greeting,
            dtmf_interval=self.config.dtmf_interval,
            metrics=metrics,
        )
        self._pump_task: Optional[asyncio.Task] = None

    async def run(self) -> int:
        """
        Run until the operator quits or input ends.

        Returns:
            Process exit code (0 on a clean quit)
        """
        self._pump_task = asyncio.create_task(self._pump_events())
        leg_id = self.config.channel
        notice: Optional[str] = None
        try:
            while True:
                self.session.begin_selection()
                if not leg_id:
                    leg_id = await self.selector.select(notice)
                    notice = None
                    if leg_id is None:
                        return 0

                if not await self.enable_relay(leg_id):
                    notice = enable_failed_notice(leg_id)
                    leg_id = ""
                    continue

                result = await self.relay(leg_id)
                if result in (LoopResult.QUIT, LoopResult.EOF):
                    return 0
                if result is LoopResult.DISCONNECTED:
                    notice = CALL_DISCONNECTED
                # Hangup or failed action: pick a new channel
                leg_id = ""
        finally:
            self.session.terminate()
            self._pump_task.cancel()
            try:
                await self._pump_task
            except asyncio.CancelledError:
                pass

    async def enable_relay(self, leg_id: str) -> bool:
        """Ask Asterisk to start TDD reception on leg_id."""
        try:
            response = await self.client.send_action(
                "TddRx", Channel=leg_id, Options=self.config.rx_options
            )
            ok = response.success
            reason = response.reason
        except AMIError as e:
            ok = False
            reason = str(e)

        if self.metrics is not None:
            self.metrics.action_result("TddRx", ok)
        if not ok:
            # Refused e.g. when TDD reception is already active on the channel
            logger.warning(f"TddRx refused on {leg_id}: {reason}")
            self.display.notice(f"{enable_failed_notice(leg_id)}\n")
        return ok

    async def relay(self, leg_id: str) -> LoopResult:
        """Run one relay phase on an enabled channel."""
        self.session.start_relay(leg_id)
        started = time.monotonic()
        if self.metrics is not None:
            self.metrics.relay_started()
        if self.mirror is not None:
            self.mirror.publish_relay_start(leg_id)

        self.display.clear()
        self.display.write(RELAY_BANNER + MENU)

        result = LoopResult.DISCONNECTED
        try:
            with self.terminal.raw_mode():
                result = await self.input_loop.run(leg_id)
        finally:
            self.session.end_relay()
            if self.metrics is not None:
                self.metrics.relay_ended(time.monotonic() - started, result.value)
            if self.mirror is not None:
                self.mirror.publish_relay_end(leg_id, result.value)
            logger.info(f"Relay on {leg_id} ended: {result.value}")
        return result

    async def _pump_events(self) -> None:
        """Deliver AMI events to the inbound handler, one at a time."""
        while True:
            event = await self.client.next_event()
            try:
                self.inbound.handle(event)
            except Exception as e:
                logger.error(f"Event handling error: {e}", exc_info=e)
