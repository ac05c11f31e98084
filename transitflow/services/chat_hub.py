import asyncio
from typing import Any, Dict, List, Set, Tuple

import structlog
from fastapi import WebSocket


logger = structlog.get_logger()


class ChatHub:
    """Pushes team chat and todo changes to every connected websocket."""

    def __init__(self) -> None:
        # user_id (str) -> set of WebSocket connections
        self._user_connections: Dict[str, Set[WebSocket]] = {}
        self._lock = asyncio.Lock()

    async def connect(self, user_id: str, ws: WebSocket) -> None:
        async with self._lock:
            conns = self._user_connections.setdefault(user_id, set())
            conns.add(ws)

    async def disconnect(self, user_id: str, ws: WebSocket) -> None:
        async with self._lock:
            conns = self._user_connections.get(user_id)
            if conns is not None:
                conns.discard(ws)
                if not conns:
                    self._user_connections.pop(user_id, None)

    def connection_count(self) -> int:
        return sum(len(conns) for conns in self._user_connections.values())

    async def _send(self, targets: List[Tuple[str, WebSocket]], data: dict) -> int:
        delivered = 0
        dead = []
        for user_id, ws in targets:
            try:
                await ws.send_json(data)
                delivered += 1
            except Exception as e:
                logger.info("chat_socket_dropped", user_id=user_id, error=str(e))
                dead.append((user_id, ws))
        for user_id, ws in dead:
            await self.disconnect(user_id, ws)
        return delivered

    async def send_to_user(self, user_id: str, event: str, payload: Any) -> int:
        async with self._lock:
            targets = [(user_id, ws) for ws in self._user_connections.get(user_id, set())]
        return await self._send(targets, {"event": event, "data": payload})

    async def broadcast(self, event: str, payload: Any) -> int:
        async with self._lock:
            targets = [(uid, ws) for uid, conns in self._user_connections.items() for ws in conns]
        return await self._send(targets, {"event": event, "data": payload})


# Global singleton hub
hub = ChatHub()
