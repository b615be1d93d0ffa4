"""Server-Sent Events endpoint for live generation progress.

    const source = new EventSource(`/stream/${projectId}`)
    source.onmessage = (e) => render(JSON.parse(e.data))

Frames are produced by streaming_service.emit(); this route only owns the
per-connection queue and the heartbeat.
"""

import asyncio
import uuid

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from apps.api.auth import get_current_user
from apps.api.config import settings
from apps.api.database import get_db
from apps.api.models.user import User
from apps.api.services.project_service import get_user_project
from apps.api.services.streaming_service import CLOSE_FRAME, streaming_service

router = APIRouter(tags=["stream"])

CONNECTED_FRAME = ": connected\n\n"
HEARTBEAT_FRAME = ": heartbeat\n\n"

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


async def sse_frames(request: Request, project_id: str, heartbeat_seconds: int):
    """Yield frames for one connection until the client leaves or the project closes."""
    queue: asyncio.Queue[str] = asyncio.Queue()
    cleanup = streaming_service.add_connection(project_id, queue.put_nowait)
    try:
        yield CONNECTED_FRAME
        while True:
            if await request.is_disconnected():
                break
            try:
                frame = await asyncio.wait_for(queue.get(), timeout=heartbeat_seconds)
            except asyncio.TimeoutError:
                yield HEARTBEAT_FRAME
                continue
            yield frame
            if frame == CLOSE_FRAME:
                break
    finally:
        cleanup()


@router.get("/stream/{project_id}")
async def stream_project(
    project_id: uuid.UUID,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await get_user_project(db, project_id, current_user)
    return StreamingResponse(
        sse_frames(request, str(project_id), settings.stream_heartbeat_seconds),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
