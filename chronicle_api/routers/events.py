"""
Server-Sent Events (SSE) router for realtime notifications.

Clients open one long-lived GET request and receive every broadcast made
through the event hub while they stay connected. Missed events are not
replayed on reconnect.
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from ..config import Settings, get_settings
from ..lib.dependencies import get_event_hub, get_origin_policy
from ..lib.event_hub import EventHub
from ..lib.origin_policy import OriginPolicy
from ..lib.sse_channel import QueueChannel
from ..lib.sse_stream import StreamConnection

router = APIRouter(prefix="/events", tags=["events"])

STREAM_PATH = "/api/events/stream"


@router.get("/stream")
async def stream_events(
    request: Request,
    hub: EventHub = Depends(get_event_hub),
    policy: OriginPolicy = Depends(get_origin_policy),
    settings: Settings = Depends(get_settings)
):
    """
    Subscribe to the realtime event stream.

    Each frame carries one JSON envelope:
    ```
    data: {"type":"new-blog","data":{"id":"abc"},"timestamp":"2024-05-01T12:00:00.000Z"}
    ```

    The first frame always has type "connected". Comment frames
    (": heartbeat") are sent periodically to keep intermediaries from
    closing the idle connection.

    This path is exempt from the CORS middleware: the allow-origin header
    is computed here because it must be part of the streaming response
    headers.

    Returns:
        StreamingResponse with text/event-stream content type
    """
    allow_origin = policy.stream_origin(request.headers.get("origin"))

    channel = QueueChannel(max_pending=settings.SSE_MAX_PENDING_FRAMES)
    connection = StreamConnection(hub, channel, heartbeat_interval=settings.SSE_HEARTBEAT_INTERVAL)

    return StreamingResponse(
        connection.stream(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",  # Disable nginx buffering
            "Access-Control-Allow-Origin": allow_origin,
            "Access-Control-Allow-Credentials": "true",
            "Vary": "Origin"
        }
    )
