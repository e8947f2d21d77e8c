"""
UDP beacon broadcaster.

Every tick the current identity and grab state are sent to the LAN
broadcast address and to a multicast group. UDP is lossy, so there is no
acknowledgement: the next tick simply carries the full state again.
"""

import asyncio
import logging
import socket

from config import BEACON_INTERVAL, BROADCAST_ADDR, DISCOVERY_PORT, MULTICAST_GROUP
from discovery.identity import IdentityService

logger = logging.getLogger(__name__)


class BeaconProtocol(asyncio.DatagramProtocol):
    """Send-only protocol; errors on individual packets are ignored."""

    def error_received(self, exc: Exception) -> None:
        logger.debug(f"Beacon send error: {exc}")


class BeaconBroadcaster:
    """Periodically announces this device over UDP."""

    def __init__(
        self,
        identity: IdentityService,
        interval: float = BEACON_INTERVAL,
        targets: list[tuple[str, int]] | None = None,
    ) -> None:
        self.identity = identity
        self.interval = interval
        self.targets = targets or [
            (BROADCAST_ADDR, DISCOVERY_PORT),
            (MULTICAST_GROUP, DISCOVERY_PORT),
        ]
        self._transport: asyncio.DatagramTransport | None = None
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> bool:
        """Bind the send socket and start ticking. Returns False if binding failed."""
        loop = asyncio.get_running_loop()
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
            sock.setblocking(False)
            sock.bind(("0.0.0.0", 0))
        except OSError as e:
            sock.close()
            logger.error(f"Failed to bind beacon socket: {e}")
            return False

        transport, _ = await loop.create_datagram_endpoint(BeaconProtocol, sock=sock)
        self._transport = transport
        self._task = asyncio.create_task(self._broadcast_loop())
        logger.info(f"Beacon started, broadcasting every {self.interval * 1000:.0f}ms")
        return True

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        if self._transport:
            self._transport.close()
            self._transport = None
        logger.info("Beacon stopped")

    def send_beacon(self) -> None:
        """Send one beacon with the current state to every target."""
        if not self._transport:
            return
        data = self.identity.snapshot().to_packet().encode()
        for target in self.targets:
            try:
                self._transport.sendto(data, target)
            except OSError:
                # Some interfaces refuse broadcast or multicast; the other target may still work
                pass

    async def _broadcast_loop(self) -> None:
        while True:
            self.send_beacon()
            await asyncio.sleep(self.interval)
