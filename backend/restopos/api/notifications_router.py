"""Server-sent events stream of staff notifications."""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from restopos.db.models import User
from restopos.db.dependencies import get_stream_user
from restopos.services.notifications import event_stream


router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.get("/stream", summary="Live call-waiter / new-order events (SSE)")
async def notifications_stream(request: Request, user: User = Depends(get_stream_user)):
    """
    Stream notifications as ``text/event-stream``.

    EventSource cannot set headers, so the JWT goes in ``?token=``.
    """
    hub = request.app.state.notifications
    queue = hub.subscribe()
    return StreamingResponse(
        event_stream(hub, queue, is_disconnected=request.is_disconnected),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"}
    )
