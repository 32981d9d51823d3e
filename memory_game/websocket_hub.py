from __future__ import annotations

import asyncio
from collections import defaultdict

from fastapi import WebSocket


class PlayerWebSocketHub:
    """In-process fan-out of engine updates to a player's open browser tabs.

    A player may have several sockets (one per tab). Sockets that fail to send
    are dropped on the spot.
    """

    def __init__(self) -> None:
        self._by_player: dict[str, set[WebSocket]] = defaultdict(set)
        self._lock = asyncio.Lock()

    def connections(self, player_id: str) -> int:
        return len(self._by_player.get(player_id, ()))

    async def connect(self, player_id: str, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self._lock:
            self._by_player[player_id].add(websocket)

    async def disconnect(self, player_id: str, websocket: WebSocket) -> None:
        async with self._lock:
            self._forget(player_id, [websocket])

    def _forget(self, player_id: str, sockets: list[WebSocket]) -> None:
        conns = self._by_player.get(player_id)
        if conns is None:
            return
        conns.difference_update(sockets)
        if not conns:
            del self._by_player[player_id]

    async def broadcast(self, player_id: str, payload: dict[str, object]) -> None:
        async with self._lock:
            conns = list(self._by_player.get(player_id, ()))
        if not conns:
            return

        results = await asyncio.gather(*(ws.send_json(payload) for ws in conns), return_exceptions=True)
        dead = [ws for ws, res in zip(conns, results) if isinstance(res, Exception)]
        if dead:
            async with self._lock:
                self._forget(player_id, dead)


hub = PlayerWebSocketHub()
