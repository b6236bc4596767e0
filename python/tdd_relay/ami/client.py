"""
Async Asterisk Manager Interface client.

Features:
- ActionID correlation of responses, including event-list actions
- Bounded event queue with explicit release of every delivered event
- Disconnect callback when the server drops the connection
"""

import asyncio
import itertools
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from .errors import AMIConnectionError, AMILoginError, AMIProtocolError
from .protocol import (
    AMIListResponse,
    AMIMessage,
    AMIResponse,
    MessageParser,
    build_action,
    is_list_complete,
    starts_event_list,
)

logger = logging.getLogger("tdd_relay.ami")

# Header values never written to the log
SENSITIVE_FIELDS = frozenset({"secret", "key"})


def redact_fields(fields: Dict[str, str]) -> Dict[str, str]:
    """Copy of fields with sensitive values masked for logging."""
    return {k: ("***" if k.lower() in SENSITIVE_FIELDS else v) for k, v in fields.items()}


@dataclass
class _PendingAction:
    """An action waiting for its response (and list events, if any)."""
    action: str
    action_id: str
    future: asyncio.Future
    is_list: bool = False
    response: Optional[AMIMessage] = None
    events: List[AMIMessage] = field(default_factory=list)


class AMIClient:
    """
    Asterisk Manager Interface client over asyncio streams.

    Events that do not belong to a pending action are queued; consumers take
    them with next_event() and must hand each one back with release_event().
    """

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 5038,
        event_queue_size: int = 1000,
        connect_timeout: float = 10.0,
        action_timeout: float = 10.0,
        on_disconnect: Optional[Callable[[], None]] = None,
    ):
        """
        Initialize AMI client.

        Args:
            host: AMI host
            port: AMI TCP port
            event_queue_size: Maximum queued events (reading pauses when full)
            connect_timeout: Seconds allowed for TCP connect and banner
            action_timeout: Seconds to wait for an action response
            on_disconnect: Called once if the server drops the connection
        """
        self.host = host
        self.port = port
        self.connect_timeout = connect_timeout
        self.action_timeout = action_timeout
        self.on_disconnect = on_disconnect

        self.banner: str = ""
        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None
        self._read_task: Optional[asyncio.Task] = None
        self._events: asyncio.Queue = asyncio.Queue(maxsize=event_queue_size)
        self._pending: Dict[str, _PendingAction] = {}
        self._action_ids = itertools.count(1)
        self._closed = asyncio.Event()
        self._closing = False
        self._connected = False
        self._delivered_count = 0
        self._released_count = 0

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def delivered_count(self) -> int:
        """Events handed out by next_event()."""
        return self._delivered_count

    @property
    def released_count(self) -> int:
        """Events handed back through release_event()."""
        return self._released_count

    async def connect(self) -> None:
        """Open the TCP connection and read the server banner."""
        try:
            self._reader, self._writer = await asyncio.wait_for(
                asyncio.open_connection(self.host, self.port),
                timeout=self.connect_timeout,
            )
            banner = await asyncio.wait_for(self._reader.readline(), timeout=self.connect_timeout)
        except (OSError, asyncio.TimeoutError) as e:
            raise AMIConnectionError(f"Cannot connect to AMI at {self.host}:{self.port}: {e}") from e

        if not banner:
            raise AMIConnectionError(f"AMI at {self.host}:{self.port} closed the connection")

        self.banner = banner.decode("utf-8", errors="replace").strip()
        self._connected = True
        self._closed.clear()
        self._read_task = asyncio.create_task(self._read_loop())
        logger.info(f"Connected to {self.host}:{self.port} ({self.banner})")

    async def login(self, username: str, secret: str) -> None:
        """
        Authenticate the session.

        Raises:
            AMILoginError: If Asterisk refuses the credentials
        """
        response = await self.send_action("Login", Username=username, Secret=secret, Events="on")
        if not response.success:
            raise AMILoginError(f"Failed to log in with username {username}: {response.reason}")
        logger.info(f"Logged in as {username}")

    async def send_action(self, action: str, **fields: str) -> AMIResponse:
        """
        Send an action and wait for its response.

        Returns:
            The response; check .success for the outcome

        Raises:
            AMIConnectionError: If the connection is gone or the response times out
        """
        pending = await self._submit(action, fields, is_list=False)
        return await self._wait(pending)

    async def send_list_action(self, action: str, **fields: str) -> AMIListResponse:
        """Send an event-list action and collect every list event until completion."""
        pending = await self._submit(action, fields, is_list=True)
        return await self._wait(pending)

    async def next_event(self) -> AMIMessage:
        """Wait for the next asynchronous event."""
        event = await self._events.get()
        self._delivered_count += 1
        return event

    def release_event(self, event: AMIMessage) -> None:
        """Hand a delivered event back once processing is done."""
        self._released_count += 1
        self._events.task_done()

    async def wait_closed(self) -> None:
        """Wait until the connection is closed (by either side)."""
        await self._closed.wait()

    async def close(self) -> None:
        """Log off and close the connection."""
        if self._closing:
            return
        self._closing = True

        if self._connected and self._writer is not None:
            try:
                self._writer.write(build_action("Logoff", str(next(self._action_ids)), {}))
                await asyncio.wait_for(self._writer.drain(), timeout=1.0)
            except (OSError, asyncio.TimeoutError) as e:
                logger.debug(f"Logoff not sent: {e}")

        if self._writer is not None:
            self._writer.close()
            try:
                await self._writer.wait_closed()
            except OSError:
                pass

        if self._read_task is not None:
            self._read_task.cancel()
            try:
                await self._read_task
            except asyncio.CancelledError:
                pass

        self._mark_closed(AMIConnectionError("AMI connection closed"))
        logger.info("AMI connection closed")

    async def _submit(self, action: str, fields: Dict[str, str], is_list: bool) -> _PendingAction:
        if not self._connected or self._writer is None:
            raise AMIConnectionError("Not connected to AMI")

        action_id = str(next(self._action_ids))
        data = build_action(action, action_id, fields)

        future = asyncio.get_running_loop().create_future()
        pending = _PendingAction(action=action, action_id=action_id, future=future, is_list=is_list)
        self._pending[action_id] = pending

        try:
            self._writer.write(data)
            await self._writer.drain()
        except OSError as e:
            self._pending.pop(action_id, None)
            raise AMIConnectionError(f"Failed to send {action}: {e}") from e

        logger.debug(f"-> {action} ({action_id}) {redact_fields(fields)}")
        return pending

    async def _wait(self, pending: _PendingAction):
        try:
            return await asyncio.wait_for(pending.future, timeout=self.action_timeout)
        except asyncio.TimeoutError as e:
            self._pending.pop(pending.action_id, None)
            raise AMIConnectionError(f"No response to {pending.action}") from e

    async def _read_loop(self) -> None:
        """Read blocks from the socket and route them."""
        parser = MessageParser()
        error: Optional[Exception] = None
        try:
            while True:
                line = await self._reader.readline()
                if not line:
                    break
                message = parser.feed_line(line)
                if message is not None:
                    await self._route(message)
        except asyncio.CancelledError:
            raise
        except (OSError, ValueError, AMIProtocolError) as e:
            error = e
            logger.error(f"AMI read error: {e}")

        self._mark_closed(AMIConnectionError(f"AMI connection lost: {error}" if error else None))
        if not self._closing:
            logger.warning("AMI was disconnected by the server")
            if self.on_disconnect is not None:
                self.on_disconnect()

    async def _route(self, message: AMIMessage) -> None:
        pending = self._pending.get(message.action_id) if message.action_id else None

        if pending is None:
            if message.is_event:
                logger.debug(f"<- event {message.name}")
                await self._events.put(message)
            else:
                logger.debug(f"<- unsolicited {message.to_dict()}")
            return

        action_id = message.action_id
        if message.is_response and pending.response is None:
            pending.response = message
            if pending.is_list and message.get("Response").lower() == "success" and starts_event_list(message):
                return
            self._resolve(action_id, pending)
        elif pending.is_list and message.is_event:
            if is_list_complete(message):
                self._resolve(action_id, pending, complete=message)
            else:
                pending.events.append(message)
        else:
            await self._events.put(message)

    def _resolve(self, action_id: str, pending: _PendingAction, complete: Optional[AMIMessage] = None) -> None:
        self._pending.pop(action_id, None)
        response = pending.response or AMIMessage([("Response", "Error")])
        if pending.is_list:
            result: AMIResponse = AMIListResponse(
                action=pending.action, message=response, events=pending.events, complete=complete
            )
        else:
            result = AMIResponse(action=pending.action, message=response)
        logger.debug(f"<- {pending.action} ({action_id}) success={result.success}")
        if not pending.future.done():
            pending.future.set_result(result)

    def _mark_closed(self, error: AMIConnectionError) -> None:
        self._connected = False
        for pending in self._pending.values():
            if not pending.future.done():
                pending.future.set_exception(error)
        self._pending.clear()
        self._closed.set()
