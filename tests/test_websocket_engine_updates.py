from __future__ import annotations

import fakeredis
from fastapi.testclient import TestClient

from memory_game.scheduler import ManualScheduler
from memory_game.websocket_hub import hub


def test_ws_engine_updates_broadcast(
    client_and_scheduler: tuple[TestClient, fakeredis.FakeRedis, ManualScheduler],
) -> None:
    client, _, _ = client_and_scheduler

    cards = client.get("/players/p1/engine").json()["cards"]

    with client.websocket_connect("/ws/players/p1") as ws:
        res = client.post("/players/p1/engine/flip", json={"card_id": cards[0]["id"]})
        assert res.status_code == 200

        msg = ws.receive_json()
        assert msg["type"] == "engine_updated"
        assert msg["player_id"] == "p1"
        assert msg["event"]["type"] == "CARD_FLIPPED"
        assert msg["event"]["payload"] == {"card_id": cards[0]["id"]}
        assert hub.connections("p1") == 1
