"""Server-Sent Events encoding of stream events."""

from collections.abc import AsyncIterator
import json

from gencode.tasks.session import EventKind, StreamEvent, StreamingSession

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

HEARTBEAT_LINE = ": heartbeat\n\n"


def encode_event(event: StreamEvent) -> str:
    """Render one event in SSE wire format."""
    if event.kind is EventKind.HEARTBEAT:
        return HEARTBEAT_LINE
    data = json.dumps(event.payload(), ensure_ascii=False)
    return f"event: {event.kind.value}\ndata: {data}\n\n"


async def sse_stream(session: StreamingSession) -> AsyncIterator[str]:
    """Encode an opened session; the session is closed however the stream ends."""
    try:
        async for event in session.events():
            yield encode_event(event)
    finally:
        session.close()
