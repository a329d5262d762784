"""
Lifecycle of one Server-Sent Events (SSE) stream connection.

A StreamConnection owns a channel, its registration with the event hub and
its heartbeat task. The response body generator opens the connection once
the response headers are on their way and closes it when the client goes
away; a failing heartbeat closes it as well.
"""

import asyncio
from typing import AsyncGenerator, Optional

from .event_hub import EventHub
from .models import EventEnvelope
from .sse_channel import Channel, HEARTBEAT_FRAME, QueueChannel
from .logging_utils import get_logger

logger = get_logger(__name__)

CONNECTED_EVENT = 'connected'
CONNECTED_MESSAGE = 'Connected to real-time events'


class StreamConnection:
    """
    One open event stream.

    Opening writes the "connected" envelope directly to this client (it is
    not broadcast), registers the channel with the hub and starts the
    heartbeat. Closing cancels the heartbeat and unregisters the channel in
    the same step and may be called any number of times.
    """

    def __init__(self, hub: EventHub, channel: Channel, heartbeat_interval: float = 30.0):
        """
        Initialize the connection.

        Args:
            hub: Event hub to register with
            channel: Writable channel of this client
            heartbeat_interval: Seconds between heartbeat comments
        """
        self.hub = hub
        self.channel = channel
        self.heartbeat_interval = heartbeat_interval
        self.connection_id: Optional[str] = None
        self._heartbeat_task: Optional[asyncio.Task] = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def open(self) -> str:
        """
        Confirm the handshake, register with the hub and start the heartbeat.

        Must be called from a running event loop.

        Returns:
            Connection id assigned by the hub
        """
        if self._closed:
            raise RuntimeError("Stream connection already closed")

        connected = EventEnvelope(type=CONNECTED_EVENT, data={'message': CONNECTED_MESSAGE})
        self.channel.write(connected.to_frame())

        self.connection_id = self.hub.register(self.channel)
        self._heartbeat_task = asyncio.create_task(self._heartbeat())
        return self.connection_id

    def close(self) -> None:
        """Cancel the heartbeat, unregister the channel and close it."""
        if self._closed:
            return
        self._closed = True

        if self._heartbeat_task is not None and self._heartbeat_task is not _current_task():
            self._heartbeat_task.cancel()
        self._heartbeat_task = None

        if self.connection_id is not None:
            self.hub.unregister(self.connection_id)

        close_channel = getattr(self.channel, 'close', None)
        if close_channel is not None:
            close_channel()

    async def _heartbeat(self) -> None:
        while not self._closed:
            await asyncio.sleep(self.heartbeat_interval)
            if self._closed:
                return
            try:
                self.channel.write(HEARTBEAT_FRAME)
            except Exception as e:
                logger.warning(f"Heartbeat failed for client {_short(self.connection_id)}: {e}")
                self.close()
                return

    async def stream(self) -> AsyncGenerator[str, None]:
        """
        Response body generator for a QueueChannel backed connection.

        Yields:
            SSE frames, starting with the "connected" envelope
        """
        if not isinstance(self.channel, QueueChannel):
            raise TypeError("stream() requires a QueueChannel")

        self.open()
        try:
            async for frame in self.channel.frames():
                yield frame
        finally:
            logger.debug(f"SSE stream ended for client {_short(self.connection_id)}")
            self.close()


def _current_task() -> Optional[asyncio.Task]:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


def _short(connection_id: Optional[str]) -> str:
    return connection_id[:8] if connection_id else 'unknown'
