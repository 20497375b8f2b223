import json
import logging
from typing import Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from starlette.concurrency import run_in_threadpool

from ..auth import session_token_from
from ..config import settings
from ..database import session_scope
from ..storage import SessionRepository
from ..ws_manager import ws_manager


logger = logging.getLogger("cityshare.ws")

router = APIRouter()


def _session_user_id(token: Optional[str]) -> Optional[str]:
    if not token:
        return None
    with session_scope() as db:
        user = SessionRepository(db).resolve(token)
        return str(user.id) if user is not None else None


@router.websocket("/ws")
async def ws_notifications(websocket: WebSocket):
    # Session (if any) is resolved once, at connect time
    session_user_id = await run_in_threadpool(_session_user_id, session_token_from(websocket))
    await websocket.accept()
    registered: Optional[str] = None
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                frame = json.loads(raw)
            except ValueError:
                logger.warning("ws ignoring non-JSON frame")
                continue
            if not isinstance(frame, dict) or frame.get("type") != "auth":
                logger.warning("ws ignoring unexpected frame")
                continue
            claimed = str(frame.get("userId") or "") or session_user_id
            if settings.WS_REQUIRE_SESSION:
                if session_user_id is None:
                    await websocket.close(code=4401)
                    return
                if claimed != session_user_id:
                    logger.warning("ws identity mismatch for session user %s", session_user_id)
                    await websocket.close(code=4403)
                    return
            if not claimed:
                logger.warning("ws ignoring auth frame without userId")
                continue
            if registered is not None and registered != claimed:
                await ws_manager.unregister(registered, websocket)
            await ws_manager.register(claimed, websocket)
            registered = claimed
            logger.info("ws registered user %s", claimed)
    except WebSocketDisconnect:
        pass
    finally:
        if registered is not None and await ws_manager.unregister(registered, websocket):
            logger.info("ws disconnected user %s", registered)
