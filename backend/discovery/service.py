"""
UDP-based LAN discovery service.

Ties together the local identity, the peer registry, the beacon
broadcaster and the discovery listener, and dispatches peer events to
subscribers from a dedicated task.
"""

import asyncio
import logging

from config import BEACON_INTERVAL, DISCOVERY_PORT, MULTICAST_GROUP
from discovery.broadcaster import BeaconBroadcaster
from discovery.identity import IdentityService
from discovery.listener import DiscoveryListener
from discovery.models import Peer, PeerEvent, PeerEventType
from discovery.registry import PeerRegistry

logger = logging.getLogger(__name__)


class DiscoveryService:
    """Manages LAN device discovery via UDP broadcast and multicast."""

    def __init__(
        self,
        identity: IdentityService,
        port: int = DISCOVERY_PORT,
        interval: float = BEACON_INTERVAL,
        targets: list[tuple[str, int]] | None = None,
        multicast_group: str | None = MULTICAST_GROUP,
    ) -> None:
        self.identity = identity
        self.registry = PeerRegistry(identity.device_id)
        self._events: asyncio.Queue[PeerEvent] = asyncio.Queue()
        self._on_peer_change: list = []  # callbacks: async def fn(event, peer)
        self._dispatch_task: asyncio.Task | None = None

        self.broadcaster = BeaconBroadcaster(identity, interval=interval, targets=targets)
        self.listener = DiscoveryListener(
            identity.device_id,
            self.registry,
            self._events,
            port=port,
            multicast_group=multicast_group,
        )

    def on_peer_change(self, callback) -> None:
        """Register a callback for peer-discovered/grab-update events."""
        self._on_peer_change.append(callback)

    async def start(self) -> None:
        """
        Start the dispatcher, broadcaster and listener.

        A bind failure in the broadcaster or the listener only disables that
        component; the rest of the service keeps running.
        """
        logger.info(f"Starting discovery on UDP port {self.listener.port}")
        self._rebind_queue()
        self._dispatch_task = asyncio.create_task(self._dispatch_loop())
        await self.broadcaster.start()
        await self.listener.start()
        logger.info("Discovery service started")

    async def stop(self) -> None:
        """Stop the discovery service."""
        await self.broadcaster.stop()
        await self.listener.stop()
        if self._dispatch_task:
            self._dispatch_task.cancel()
            try:
                await self._dispatch_task
            except asyncio.CancelledError:
                pass
            self._dispatch_task = None
        logger.info("Discovery service stopped")

    # --- Commands ---

    def set_grab(self, filename: str) -> None:
        self.identity.set_grab(filename)

    def clear_grab(self) -> None:
        self.identity.clear_grab()

    def manual_connect(self, ip: str, name: str | None = None) -> Peer:
        """
        Register a peer by address, for networks that drop broadcast and
        multicast traffic. The synthesized id is stable per address so
        repeated calls refresh the same entry.
        """
        peer = Peer(id=f"manual-{ip}", ip=ip, name=name or ip)
        previous = self.registry.replace(peer)
        if previous is None:
            logger.info(f"Manually added peer: {peer.name} ({peer.ip})")
            self._events.put_nowait(
                PeerEvent(event=PeerEventType.PEER_DISCOVERED, peer=peer)
            )
        return peer

    def get_peers(self) -> list[Peer]:
        """Return a list of currently known peers."""
        return self.registry.get_peers()

    # --- Event dispatch ---

    def _rebind_queue(self) -> None:
        # A waited-on asyncio.Queue is tied to its loop; a restart may run on a new one
        pending = self._events
        self._events = asyncio.Queue()
        while not pending.empty():
            self._events.put_nowait(pending.get_nowait())
        self.listener.events = self._events

    async def _dispatch_loop(self) -> None:
        """Deliver queued peer events to subscribers, one at a time."""
        while True:
            event = await self._events.get()
            for cb in self._on_peer_change:
                try:
                    await cb(event.event.value, event.peer)
                except Exception as e:
                    logger.error(f"Peer event callback error: {e}")
            self._events.task_done()
