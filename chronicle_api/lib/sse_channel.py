"""
Writable channels for Server-Sent Events (SSE) connections.

Provides:
- The Channel protocol accepted by the event hub
- QueueChannel, which buffers frames for a StreamingResponse body
- SSE frame formatting helpers
- Channel error types
"""

import asyncio
import threading
from collections import deque
from typing import AsyncGenerator, Optional, Protocol

HEARTBEAT_FRAME = ': heartbeat\n\n'


class ChannelError(Exception):
    """Base class for failures while writing to a channel."""


class ChannelClosedError(ChannelError):
    """Raised when writing to a channel that has been closed."""


class ChannelOverflowError(ChannelError):
    """Raised when a client has too many undelivered frames."""


class Channel(Protocol):
    """Anything the event hub can write serialized frames to."""

    def write(self, frame: str) -> None:
        ...


def format_data_frame(payload: str) -> str:
    """
    Format a serialized payload as an SSE data frame.

    Args:
        payload: Serialized event (single line JSON)

    Returns:
        Frame string, e.g. 'data: {"type": ...}\\n\\n'
    """
    return f"data: {payload}\n\n"


def format_comment_frame(comment: str) -> str:
    """Format an SSE comment line, ignored by EventSource clients."""
    return f": {comment}\n\n"


class QueueChannel:
    """
    Channel that buffers frames until the response body generator sends them.

    write() never blocks and may be called from the event loop or from worker
    threads. Frames are delivered in write order. The reader side is the
    frames() async generator, which ends once the channel is closed.
    """

    def __init__(self, max_pending: int = 1000, loop: Optional[asyncio.AbstractEventLoop] = None):
        """
        Initialize the channel.

        Args:
            max_pending: Maximum number of undelivered frames before writes fail
            loop: Event loop the reader runs on (defaults to the running loop)
        """
        self.max_pending = max_pending
        self._loop = loop or asyncio.get_running_loop()
        self._pending: deque[str] = deque()
        self._wakeup = asyncio.Event()
        self._lock = threading.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        """Number of frames written but not yet consumed by the reader."""
        return len(self._pending)

    def write(self, frame: str) -> None:
        """
        Append a frame for delivery.

        Raises:
            ChannelClosedError: If the channel was closed
            ChannelOverflowError: If max_pending frames are already waiting
        """
        with self._lock:
            if self._closed:
                raise ChannelClosedError("Channel is closed")
            if len(self._pending) >= self.max_pending:
                raise ChannelOverflowError(
                    f"Client has {len(self._pending)} undelivered frames"
                )
            self._pending.append(frame)
        self._notify()

    def close(self) -> None:
        """Close the channel. Undelivered frames are dropped; idempotent."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._pending.clear()
        self._notify()

    def _notify(self) -> None:
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is self._loop:
            self._wakeup.set()
            return

        try:
            self._loop.call_soon_threadsafe(self._wakeup.set)
        except RuntimeError as e:
            # Event loop already closed, nobody is reading anymore
            with self._lock:
                self._closed = True
                self._pending.clear()
            raise ChannelClosedError("Event loop is closed") from e

    async def frames(self) -> AsyncGenerator[str, None]:
        """
        Yield frames in write order until the channel is closed.

        Yields:
            SSE frame strings
        """
        while True:
            while self._pending:
                try:
                    frame = self._pending.popleft()
                except IndexError:
                    break
                yield frame

            if self._closed:
                return

            self._wakeup.clear()
            # A write may have landed between draining and clearing
            if self._pending or self._closed:
                continue
            await self._wakeup.wait()
