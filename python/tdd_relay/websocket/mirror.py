"""
Live transcript mirror.

Streams relay transcript events to supervisor WebSocket endpoints with:
- Queue size limit (oldest event dropped when full)
- Automatic reconnection
- Non-blocking publishing from the relay flows
Nothing is persisted.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import websockets
from websockets.exceptions import WebSocketException

logger = logging.getLogger("tdd_relay.websocket")


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


@dataclass
class TranscriptEvent:
    """Event sent to mirror endpoints."""
    type: str
    leg_id: str
    timestamp: str = field(default_factory=_utc_timestamp)
    data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        result = {
            "type": self.type,
            "leg_id": self.leg_id,
            "timestamp": self.timestamp,
        }
        result.update(self.data)
        return result


class TranscriptMirror:
    """
    Fan relay transcript events out to WebSocket endpoints.

    publish_* methods never block; events are queued and sent by a
    background task.
    """

    def __init__(
        self,
        urls: List[str],
        queue_maxsize: int = 1000,
        reconnect_interval: float = 5.0,
        ping_interval: float = 20.0,
        ping_timeout: float = 10.0,
    ):
        """
        Initialize transcript mirror.

        Args:
            urls: WebSocket URLs to mirror to
            queue_maxsize: Maximum queue size (older events dropped when full)
            reconnect_interval: Seconds between reconnection attempts
            ping_interval: WebSocket ping interval
            ping_timeout: WebSocket ping timeout
        """
        self.urls = [u for u in urls if u and not u.strip().startswith("#")]
        self.queue_maxsize = queue_maxsize
        self.reconnect_interval = reconnect_interval
        self.ping_interval = ping_interval
        self.ping_timeout = ping_timeout

        self._connections: Dict[str, Any] = {}
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_maxsize)
        self._running = False
        self._dropped_count = 0
        self._sent_count = 0
        self._send_task: Optional[asyncio.Task] = None
        self._reconnect_tasks: Dict[str, asyncio.Task] = {}

    @property
    def dropped_count(self) -> int:
        """Number of dropped events due to queue overflow."""
        return self._dropped_count

    @property
    def sent_count(self) -> int:
        return self._sent_count

    def publish(self, event: TranscriptEvent) -> None:
        """Queue an event, dropping the oldest one if the queue is full."""
        event_dict = event.to_dict()
        try:
            self._queue.put_nowait(event_dict)
        except asyncio.QueueFull:
            try:
                self._queue.get_nowait()
            except asyncio.QueueEmpty:
                pass
            self._dropped_count += 1
            if self._dropped_count % 100 == 1:
                logger.warning(f"Mirror queue full, dropped {self._dropped_count} events")
            self._queue.put_nowait(event_dict)

    def publish_relay_start(self, leg_id: str) -> None:
        self.publish(TranscriptEvent(type="relay_start", leg_id=leg_id))

    def publish_text(self, leg_id: str, role: str, text: str) -> None:
        self.publish(TranscriptEvent(type="text", leg_id=leg_id, data={"role": role, "text": text}))

    def publish_relay_end(self, leg_id: str, outcome: str) -> None:
        self.publish(TranscriptEvent(type="relay_end", leg_id=leg_id, data={"outcome": outcome}))

    async def _connect_one(self, url: str) -> bool:
        try:
            ws = await websockets.connect(
                url, ping_interval=self.ping_interval, ping_timeout=self.ping_timeout
            )
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            logger.warning(f"Mirror connection failed: {url} - {e}")
            return False
        self._connections[url] = ws
        logger.info(f"Mirror connected: {url}")
        return True

    async def _reconnect_loop(self, url: str) -> None:
        while self._running and url not in self._connections:
            await asyncio.sleep(self.reconnect_interval)
            if await self._connect_one(url):
                break

    def _schedule_reconnect(self, url: str) -> None:
        task = self._reconnect_tasks.get(url)
        if task is None or task.done():
            self._reconnect_tasks[url] = asyncio.create_task(self._reconnect_loop(url))

    async def _send_loop(self) -> None:
        while self._running:
            event_dict = await self._queue.get()
            data = json.dumps(event_dict, ensure_ascii=False)

            for url, ws in list(self._connections.items()):
                try:
                    await ws.send(data)
                    self._sent_count += 1
                except (OSError, WebSocketException) as e:
                    logger.warning(f"Mirror send error ({url}): {e}")
                    self._connections.pop(url, None)
                    self._schedule_reconnect(url)

    async def start(self) -> None:
        """Connect to every endpoint and start sending."""
        self._running = True
        self._send_task = asyncio.create_task(self._send_loop())
        for url in self.urls:
            if not await self._connect_one(url):
                self._schedule_reconnect(url)

    async def stop(self) -> None:
        """Stop sending and close connections."""
        self._running = False

        tasks = list(self._reconnect_tasks.values())
        if self._send_task is not None:
            tasks.append(self._send_task)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._reconnect_tasks.clear()
        self._send_task = None

        for ws in list(self._connections.values()):
            try:
                await ws.close()
            except (OSError, WebSocketException) as e:
                logger.debug(f"Mirror close error: {e}")
        self._connections.clear()

        logger.info(f"Transcript mirror stopped. Sent: {self._sent_count}, Dropped: {self._dropped_count}")

    def get_stats(self) -> dict:
        return {
            "connected": len(self._connections),
            "total_urls": len(self.urls),
            "queue_size": self._queue.qsize(),
            "queue_maxsize": self.queue_maxsize,
            "sent_count": self._sent_count,
            "dropped_count": self._dropped_count,
        }
