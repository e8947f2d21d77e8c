import json

import pytest
from fastapi.testclient import TestClient

from discovery.identity import IdentityService
from discovery.service import DiscoveryService
from main import create_app


def beacon(id="A", ip="10.0.0.5", name="Phone", **grab) -> bytes:
    payload = {"id": id, "ip": ip, "name": name}
    payload.update(grab)
    return json.dumps(payload).encode("utf-8")


@pytest.fixture
def identity():
    return IdentityService(device_name="Laptop", local_ip="10.0.0.2", device_id="B")


@pytest.fixture
def discovery(identity):
    # Port 0 and a loopback discard target keep tests off the real LAN
    return DiscoveryService(
        identity,
        port=0,
        interval=0.05,
        targets=[("127.0.0.1", 9)],
        multicast_group=None,
    )


@pytest.fixture
def shared_dir(tmp_path):
    return tmp_path / "shared"


@pytest.fixture
def app(discovery, shared_dir):
    return create_app(discovery_service=discovery, shared_dir=str(shared_dir))


@pytest.fixture
def client(app):
    # Not entered as a context manager: lifespan (and UDP sockets) stay off
    return TestClient(app)
