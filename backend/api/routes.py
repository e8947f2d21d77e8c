"""REST command API used by the desktop UI layer."""

import logging

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from transfer.downloader import DownloadError, fetch

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

# Injected by main.py at startup
_discovery_service = None


def init_routes(discovery_service) -> None:
    """Inject service dependencies into the routes module."""
    global _discovery_service
    _discovery_service = discovery_service


# --- Device ---

@router.get("/device")
async def get_device_info():
    """Return this node's id, name and address."""
    return _discovery_service.identity.device_info()


# --- Grab state ---

class GrabBody(BaseModel):
    filename: str


@router.get("/grab")
async def get_grab():
    snap = _discovery_service.identity.snapshot()
    return {"isHolding": snap.is_holding, "heldFile": snap.held_file}


@router.post("/grab")
async def set_grab(body: GrabBody):
    """Start advertising `filename` as held."""
    if not body.filename:
        raise HTTPException(status_code=400, detail="filename must be non-empty")
    _discovery_service.set_grab(body.filename)
    return {"isHolding": True, "heldFile": body.filename}


@router.delete("/grab")
async def clear_grab():
    _discovery_service.clear_grab()
    return {"isHolding": False, "heldFile": ""}


# --- Peers ---

class ManualPeerBody(BaseModel):
    ip: str
    name: str | None = None


@router.get("/peers")
async def list_peers():
    """Return list of known peers."""
    peers = _discovery_service.get_peers()
    return {"peers": [p.to_wire() for p in peers]}


@router.post("/peers", status_code=201)
async def manual_connect(body: ManualPeerBody):
    """Add a peer by IP when broadcast/multicast discovery is blocked."""
    if not body.ip:
        raise HTTPException(status_code=400, detail="ip must be non-empty")
    peer = _discovery_service.manual_connect(body.ip, body.name)
    return peer.to_wire()


# --- Downloads ---

class DownloadBody(BaseModel):
    url: str
    dest_path: str


@router.post("/download")
async def download(body: DownloadBody):
    """Pull a file from a peer's file server onto local disk."""
    try:
        dest_path = await fetch(body.url, body.dest_path)
    except DownloadError as e:
        logger.error(f"Download failed: {e}")
        raise HTTPException(
            status_code=502,
            detail={"error": str(e), "url": e.url, "status_code": e.status_code},
        )
    return {"dest_path": dest_path}
