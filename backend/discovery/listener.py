"""
UDP discovery listener.

Receives beacons from other devices, keeps the peer registry current and
classifies each beacon into a peer event. Events are only queued here; a
separate dispatcher delivers them so a slow subscriber never stalls
reception.
"""

import asyncio
import logging
import socket
import struct

from pydantic import ValidationError

from config import DISCOVERY_PORT, MULTICAST_GROUP
from discovery.models import Peer, PeerEvent, PeerEventType, WirePacket
from discovery.registry import PeerRegistry

logger = logging.getLogger(__name__)


class DiscoveryProtocol(asyncio.DatagramProtocol):
    """asyncio UDP protocol for receiving discovery beacons."""

    def __init__(self, listener: "DiscoveryListener"):
        self.listener = listener

    def datagram_received(self, data: bytes, addr: tuple[str, int]) -> None:
        self.listener.handle_datagram(data, addr)

    def error_received(self, exc: Exception) -> None:
        logger.warning(f"Discovery UDP error: {exc}")


class DiscoveryListener:
    """Turns incoming beacons into registry updates and peer events."""

    def __init__(
        self,
        own_id: str,
        registry: PeerRegistry,
        events: asyncio.Queue,
        port: int = DISCOVERY_PORT,
        multicast_group: str | None = MULTICAST_GROUP,
    ) -> None:
        self.own_id = own_id
        self.registry = registry
        self.events = events
        self.port = port
        self.multicast_group = multicast_group
        self._transport: asyncio.DatagramTransport | None = None

    @property
    def running(self) -> bool:
        return self._transport is not None

    @property
    def bound_port(self) -> int | None:
        """Actual UDP port in use; differs from `port` when started with port 0."""
        if not self._transport:
            return None
        return self._transport.get_extra_info("sockname")[1]

    async def start(self) -> bool:
        """Bind the discovery port. Returns False if binding failed."""
        loop = asyncio.get_running_loop()
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.setblocking(False)
            sock.bind(("0.0.0.0", self.port))
        except OSError as e:
            sock.close()
            logger.error(f"Failed to bind listener on port {self.port}: {e}")
            logger.error("This may be due to firewall or another process using the port.")
            return False

        if self.multicast_group:
            self._join_multicast(sock)

        transport, _ = await loop.create_datagram_endpoint(
            lambda: DiscoveryProtocol(self),
            sock=sock,
        )
        self._transport = transport
        logger.info(f"Listener started on port {self.port}")
        return True

    async def stop(self) -> None:
        if self._transport:
            self._transport.close()
            self._transport = None
        logger.info("Listener stopped")

    def _join_multicast(self, sock: socket.socket) -> None:
        # "=4s4s" avoids platform-dependent "long" sizes
        mreq = struct.pack(
            "=4s4s",
            socket.inet_aton(self.multicast_group),
            socket.inet_aton("0.0.0.0"),
        )
        try:
            sock.setsockopt(socket.IPPROTO_IP, socket.IP_ADD_MEMBERSHIP, mreq)
        except OSError as e:
            logger.warning(f"Could not join multicast group {self.multicast_group}: {e}")

    def handle_datagram(self, data: bytes, addr: tuple[str, int]) -> PeerEvent | None:
        """Process one beacon. Returns the event it queued, if any."""
        try:
            packet = WirePacket.model_validate_json(data.decode("utf-8"))
        except (UnicodeDecodeError, ValidationError) as e:
            logger.debug(f"Ignoring invalid discovery packet from {addr}: {e}")
            return None

        # Loopback of our own broadcast
        if packet.id == self.own_id:
            return None

        if not packet.ip:
            packet.ip = addr[0]

        peer = Peer.from_packet(packet)
        previous = self.registry.replace(peer)

        if previous is None:
            logger.info(f"New peer: {peer.name} at {peer.ip}")
            event = PeerEvent(event=PeerEventType.PEER_DISCOVERED, peer=peer)
        elif previous.grab_differs(peer):
            logger.info(f"Grab update from {peer.name}: holding={peer.is_holding}")
            event = PeerEvent(event=PeerEventType.GRAB_UPDATE, peer=peer)
        else:
            return None

        self.events.put_nowait(event)
        return event
