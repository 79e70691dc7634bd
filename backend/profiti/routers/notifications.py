"""
Notifications of the current user (users/{uid}/notifications).
"""
import asyncio
import json
import logging
from uuid import uuid4

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse

from profiti.config import USERS, get_db
from profiti.core.errors import service_errors
from profiti.core.security import get_current_user
from profiti.services import notifications
from profiti.services.subscriptions import registry

logger = logging.getLogger("profiti.notifications")

router = APIRouter(prefix="/notifications", tags=["Notifications"])

KEEP_ALIVE_SECONDS = 15


@router.get("")
def list_notifications(
    limit: int = Query(50, ge=1, le=200),
    current_user: dict = Depends(get_current_user),
    db=Depends(get_db),
):
    with service_errors("list notifications"):
        return notifications.list_notifications(db, current_user["id"], limit=limit)


@router.post("/read-all")
def mark_all_read(current_user: dict = Depends(get_current_user), db=Depends(get_db)):
    with service_errors("mark notifications read"):
        changed = notifications.mark_all_read(db, current_user["id"])
    return {"updated": changed}


@router.get("/stream")
async def stream_notifications(
    request: Request,
    current_user: dict = Depends(get_current_user),
    db=Depends(get_db),
):
    """
    Server-sent events: one `data:` line per new notification.
    The snapshot listener lives exactly as long as the client connection.
    """
    uid = current_user["id"]
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue()

    def on_snapshot(_docs, changes, _read_time):
        # Runs on the Firestore watch thread
        for change in changes:
            if getattr(change.type, "name", "") != "ADDED":
                continue
            data = change.document.to_dict() or {}
            data["id"] = change.document.id
            loop.call_soon_threadsafe(queue.put_nowait, data)

    col = db.collection(USERS).document(uid).collection("notifications")
    sub = registry.subscribe(f"notifications:{uid}:{uuid4().hex}", col, on_snapshot)

    async def events():
        try:
            while not await request.is_disconnected():
                try:
                    item = await asyncio.wait_for(queue.get(), timeout=KEEP_ALIVE_SECONDS)
                except asyncio.TimeoutError:
                    yield ": keep-alive\n\n"
                    continue
                yield f"data: {json.dumps(item, default=str)}\n\n"
        finally:
            sub.unsubscribe()
            logger.debug("Notification stream of %s closed", uid)

    return StreamingResponse(events(), media_type="text/event-stream")
