"""WebSocket fan-out of peer events to UI clients."""

import asyncio
import json
import logging

from fastapi import WebSocket

from discovery.models import Peer

logger = logging.getLogger(__name__)


class ConnectionManager:
    """
    Tracks connected UI sockets and pushes peer events to them.

    Sends go out concurrently, so one slow client delays a broadcast by its
    own latency only. Clients whose send fails are forgotten.
    """

    def __init__(self) -> None:
        self._clients: set[WebSocket] = set()

    def __len__(self) -> int:
        return len(self._clients)

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self._clients.add(websocket)
        logger.info(f"UI client connected ({len(self._clients)} total)")

    def disconnect(self, websocket: WebSocket) -> None:
        self._clients.discard(websocket)
        logger.info(f"UI client disconnected ({len(self._clients)} total)")

    async def broadcast(self, event: str, data: dict) -> None:
        message = json.dumps({"event": event, "data": data})
        clients = list(self._clients)
        results = await asyncio.gather(
            *(ws.send_text(message) for ws in clients),
            return_exceptions=True,
        )
        for ws, result in zip(clients, results):
            if isinstance(result, Exception):
                logger.debug(f"Dropping UI client after send error: {result}")
                self._clients.discard(ws)

    async def handle_peer_event(self, event: str, peer: Peer) -> None:
        """Callback for DiscoveryService.on_peer_change()."""
        await self.broadcast(event, peer.to_wire())
