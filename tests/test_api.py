import asyncio
import time

import requests
from fastapi.testclient import TestClient

from api.websocket import ConnectionManager
from discovery.models import Peer


def test_device_info(client):
    assert client.get("/api/device").json() == {"id": "B", "name": "Laptop", "ip": "10.0.0.2"}


def test_grab_roundtrip(client, discovery):
    assert client.get("/api/grab").json() == {"isHolding": False, "heldFile": ""}

    response = client.post("/api/grab", json={"filename": "photo.jpg"})
    assert response.status_code == 200
    assert discovery.identity.snapshot().held_file == "photo.jpg"
    assert client.get("/api/grab").json() == {"isHolding": True, "heldFile": "photo.jpg"}

    assert client.delete("/api/grab").status_code == 200
    assert client.get("/api/grab").json() == {"isHolding": False, "heldFile": ""}


def test_grab_requires_filename(client):
    assert client.post("/api/grab", json={"filename": ""}).status_code == 400
    assert client.post("/api/grab", json={}).status_code == 422


def test_manual_connect_and_list(client):
    response = client.post("/api/peers", json={"ip": "192.168.43.7", "name": "Tablet"})
    assert response.status_code == 201
    assert response.json() == {
        "id": "manual-192.168.43.7",
        "ip": "192.168.43.7",
        "name": "Tablet",
        "isHolding": False,
        "heldFile": "",
    }
    assert client.get("/api/peers").json()["peers"] == [response.json()]


def test_download_success(client, monkeypatch, tmp_path):
    class FakeResponse:
        status_code = 200
        reason = "OK"
        content = b"pulled"

    monkeypatch.setattr(requests, "get", lambda url, timeout: FakeResponse())
    dest = tmp_path / "pulled.txt"

    response = client.post(
        "/api/download",
        json={"url": "http://10.0.0.5:8080/file/pulled.txt", "dest_path": str(dest)},
    )

    assert response.status_code == 200
    assert response.json() == {"dest_path": str(dest)}
    assert dest.read_bytes() == b"pulled"


def test_download_failure_is_502(client, monkeypatch, tmp_path):
    class FakeResponse:
        status_code = 404
        reason = "Not Found"
        content = b""

    monkeypatch.setattr(requests, "get", lambda url, timeout: FakeResponse())

    response = client.post(
        "/api/download",
        json={"url": "http://10.0.0.5:8080/file/x", "dest_path": str(tmp_path / "x")},
    )

    assert response.status_code == 502
    assert response.json()["detail"]["status_code"] == 404


def test_lifespan_starts_and_stops_discovery(app, discovery):
    with TestClient(app) as client:
        assert client.get("/health").status_code == 200
        assert discovery.listener.running
        assert discovery.broadcaster.running
    assert not discovery.listener.running
    assert not discovery.broadcaster.running


class FakeWebSocket:
    def __init__(self, fail=False):
        self.sent = []
        self.fail = fail

    async def accept(self):
        pass

    async def send_text(self, text):
        if self.fail:
            raise RuntimeError("closed")
        self.sent.append(text)


def test_peer_events_fan_out_and_drop_dead_sockets():
    manager = ConnectionManager()
    alive, dead = FakeWebSocket(), FakeWebSocket(fail=True)
    peer = Peer(id="A", ip="10.0.0.5", name="Phone", is_holding=True, held_file="photo.jpg")

    async def run():
        await manager.connect(alive)
        await manager.connect(dead)
        await manager.handle_peer_event("grab-update", peer)
        await manager.handle_peer_event("grab-update", peer)

    asyncio.run(run())

    assert len(alive.sent) == 2
    assert alive.sent[0] == (
        '{"event": "grab-update", "data": {"id": "A", "ip": "10.0.0.5", '
        '"name": "Phone", "isHolding": true, "heldFile": "photo.jpg"}}'
    )
    assert dead.sent == []
    assert len(manager) == 1


class StalledWebSocket(FakeWebSocket):
    def __init__(self):
        super().__init__()
        self.release = None

    async def send_text(self, text):
        await self.release.wait()
        self.sent.append(text)


def test_stalled_client_does_not_hold_back_others():
    manager = ConnectionManager()
    stalled, fast = StalledWebSocket(), FakeWebSocket()
    peer = Peer(id="A", ip="10.0.0.5", name="Phone")

    async def run():
        stalled.release = asyncio.Event()
        await manager.connect(stalled)
        await manager.connect(fast)
        pending = asyncio.create_task(manager.handle_peer_event("peer-discovered", peer))
        await asyncio.sleep(0.05)
        delivered_early = list(fast.sent)
        stalled.release.set()
        await pending
        return delivered_early

    delivered_early = asyncio.run(run())
    assert len(delivered_early) == 1
    assert len(stalled.sent) == 1


def test_restarted_app_delivers_each_event_once(app):
    ui = FakeWebSocket()
    asyncio.run(app.state.ws_manager.connect(ui))

    for _ in range(2):
        with TestClient(app):
            pass

    with TestClient(app) as client:
        assert client.post("/api/peers", json={"ip": "10.0.0.9"}).status_code == 201
        deadline = time.monotonic() + 2
        while not ui.sent and time.monotonic() < deadline:
            time.sleep(0.02)
        time.sleep(0.2)

    assert len(ui.sent) == 1
    assert '"id": "manual-10.0.0.9"' in ui.sent[0]
