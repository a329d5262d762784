"""
Pydantic models for realtime events and related request bodies.
"""

from pydantic import BaseModel, Field
from typing import Any, Optional

from .server_utils import make_iso_timestamp
from .sse_channel import format_data_frame


class EventEnvelope(BaseModel):
    """
    One event as delivered to every connected stream client.

    The timestamp is the moment of broadcast, not of the action that
    triggered it.
    """
    type: str
    data: Any = None
    timestamp: str = Field(default_factory=make_iso_timestamp)

    def to_frame(self) -> str:
        """Serialize to an SSE data frame."""
        return format_data_frame(self.model_dump_json())


class BroadcastRequest(BaseModel):
    """Request model for a manually triggered broadcast"""
    type: str = Field(min_length=1)
    data: Any = None


class BroadcastResponse(BaseModel):
    """Response model for a manually triggered broadcast"""
    status: str
    type: str
    recipients: int


class ServiceStatus(BaseModel):
    """Response model for the health check"""
    status: str
    realtimeClients: int


class EventsEndpoints(BaseModel):
    local: str
    public: Optional[str] = None


class RootStatus(BaseModel):
    """Response model for the root endpoint"""
    message: str
    realtimeClients: int
    events: EventsEndpoints
