import asyncio
import logging
from typing import Dict, Optional

from fastapi import WebSocket
from prometheus_client import Counter


logger = logging.getLogger("cityshare.ws")

WS_PUSHES = Counter("ws_pushes_total", "Live channel pushes by outcome", ["result"])


class UserWSManager:
    """One live socket per user; a newer registration replaces the older one."""

    def __init__(self) -> None:
        self._conns: Dict[str, WebSocket] = {}
        self._lock = asyncio.Lock()

    async def register(self, user_id: str, ws: WebSocket) -> Optional[WebSocket]:
        key = str(user_id)
        async with self._lock:
            previous = self._conns.get(key)
            self._conns[key] = ws
        if previous is not None and previous is not ws:
            logger.info("ws replaced connection for user %s", key)
            return previous
        return None

    async def unregister(self, user_id: str, ws: WebSocket) -> bool:
        # A stale socket must not evict the connection that replaced it
        key = str(user_id)
        async with self._lock:
            if self._conns.get(key) is ws:
                self._conns.pop(key, None)
                return True
        return False

    async def is_connected(self, user_id: str) -> bool:
        async with self._lock:
            return str(user_id) in self._conns

    async def push(self, user_id: str, payload: dict) -> bool:
        key = str(user_id)
        async with self._lock:
            ws = self._conns.get(key)
        if ws is None:
            WS_PUSHES.labels(result="offline").inc()
            return False
        try:
            await ws.send_json(payload)
        except Exception:
            logger.warning("ws push to user %s failed; dropping connection", key, exc_info=True)
            await self.unregister(key, ws)
            WS_PUSHES.labels(result="failed").inc()
            return False
        WS_PUSHES.labels(result="delivered").inc()
        return True


ws_manager = UserWSManager()
