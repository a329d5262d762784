"""Event hub for pushing realtime events to connected stream clients.

Keeps the set of open streaming channels and fans each broadcast out to
all of them. Delivery is best effort: a channel whose write fails is
removed on the spot and the failure is logged, never raised.

Example:
    ```python
    from chronicle_api.lib.event_hub import broadcast_event

    broadcast_event("new-blog", {"id": blog_id, "title": title})
    ```
"""

import threading
import uuid
from typing import Any, Dict, Optional

from .models import EventEnvelope
from .sse_channel import Channel
from .logging_utils import get_logger

logger = get_logger(__name__)


class EventHub:
    """Registry of open stream channels with synchronous fan-out.

    Channels are keyed by a connection id generated at registration. The
    registry is guarded by a lock and broadcasts iterate over a snapshot, so
    registration, removal and broadcast are safe from the event loop and
    from worker threads alike.
    """

    def __init__(self):
        """Initialize the hub with an empty registry."""
        self._clients: Dict[str, Channel] = {}
        self._lock = threading.Lock()

    def register(self, channel: Channel) -> str:
        """Add a channel to the registry.

        Registration cannot fail. A channel that is already unusable is
        removed by the first write that fails on it.

        Args:
            channel: Writable channel of one stream connection

        Returns:
            The connection id assigned to the channel
        """
        connection_id = uuid.uuid4().hex
        with self._lock:
            self._clients[connection_id] = channel
            count = len(self._clients)
        logger.info(f"Client {connection_id[:8]} connected. Total clients: {count}")
        return connection_id

    def unregister(self, connection_id: str) -> bool:
        """Remove a channel from the registry.

        Removing an unknown or already removed connection is a no-op.

        Args:
            connection_id: Id returned by register()

        Returns:
            True if the connection was registered
        """
        with self._lock:
            removed = self._clients.pop(connection_id, None) is not None
            count = len(self._clients)
        if removed:
            logger.info(f"Client {connection_id[:8]} disconnected. Total clients: {count}")
        return removed

    def broadcast(self, event_type: str, payload: Any = None) -> int:
        """Send one event to every registered channel.

        The envelope is built and serialized once; every channel receives the
        same frame. Channels that fail to accept the frame are removed.

        Args:
            event_type: Event tag, e.g. "new-blog"
            payload: JSON-serializable event data

        Returns:
            Number of channels the frame was written to
        """
        frame = EventEnvelope(type=event_type, data=payload).to_frame()

        with self._lock:
            snapshot = list(self._clients.items())

        delivered = 0
        for connection_id, channel in snapshot:
            try:
                channel.write(frame)
                delivered += 1
            except Exception as e:
                logger.warning(f"Error broadcasting to client {connection_id[:8]}: {e}")
                self.unregister(connection_id)
                self._disconnect(connection_id, channel)

        logger.info(f"Broadcasting event: {event_type} ({delivered} client(s))")
        return delivered

    @staticmethod
    def _disconnect(connection_id: str, channel: Channel) -> None:
        # Ends the response stream of a dropped client, if the channel supports it
        close = getattr(channel, 'close', None)
        if close is None:
            return
        try:
            close()
        except Exception as e:
            logger.warning(f"Error closing channel of client {connection_id[:8]}: {e}")

    def count(self) -> int:
        """Return the number of registered channels."""
        with self._lock:
            return len(self._clients)

    def get_connection_ids(self) -> list[str]:
        """Return the ids of all registered connections."""
        with self._lock:
            return list(self._clients.keys())

    def __len__(self) -> int:
        return self.count()

    def __contains__(self, connection_id: object) -> bool:
        with self._lock:
            return connection_id in self._clients


# Singleton instance
_event_hub: Optional[EventHub] = None
_event_hub_lock = threading.Lock()


def get_event_hub() -> EventHub:
    """Get the process-wide event hub instance.

    Returns:
        EventHub: The application-wide event hub
    """
    global _event_hub
    with _event_hub_lock:
        if _event_hub is None:
            _event_hub = EventHub()
            logger.debug("Initialized event hub")
        return _event_hub


def broadcast_event(event_type: str, payload: Any = None) -> int:
    """Broadcast an event through the process-wide hub."""
    return get_event_hub().broadcast(event_type, payload)
