"""
Local device identity and grab state.

The identity is fixed for the lifetime of the process. The grab state
("this device is holding a file") is the only mutable part and is what the
beacon advertises to the rest of the LAN.
"""

import logging
import socket
import threading
import uuid
from dataclasses import dataclass

from config import DEVICE_NAME
from discovery.models import WirePacket

logger = logging.getLogger(__name__)


def get_local_ip() -> str:
    """Return the first non-loopback IPv4 address, or 127.0.0.1."""
    try:
        _, _, ips = socket.gethostbyname_ex(socket.gethostname())
    except OSError as e:
        logger.debug(f"Error resolving local IPs: {e}")
        return "127.0.0.1"
    for ip in ips:
        if not ip.startswith("127."):
            return ip
    return "127.0.0.1"


@dataclass(frozen=True)
class IdentitySnapshot:
    device_id: str
    device_name: str
    local_ip: str
    is_holding: bool
    held_file: str

    def to_packet(self) -> WirePacket:
        return WirePacket(
            id=self.device_id,
            ip=self.local_ip,
            name=self.device_name,
            isHolding=self.is_holding,
            heldFile=self.held_file,
        )


class IdentityService:
    """Manages the current node's identity and the file it is holding."""

    def __init__(
        self,
        device_name: str = DEVICE_NAME,
        local_ip: str | None = None,
        device_id: str | None = None,
    ):
        self.device_id = device_id or str(uuid.uuid4())
        self.device_name = device_name
        self.local_ip = local_ip or get_local_ip()

        self._lock = threading.Lock()
        self._is_holding = False
        self._held_file = ""

        logger.info(
            f"Initialized identity {self.device_id} "
            f"({self.device_name} @ {self.local_ip})"
        )

    def set_grab(self, filename: str) -> None:
        """Start holding `filename`; the next beacon advertises it."""
        if not filename:
            raise ValueError("filename must be non-empty")
        with self._lock:
            self._is_holding = True
            self._held_file = filename
        logger.info(f"Now holding: {filename}")

    def clear_grab(self) -> None:
        """Release whatever file is held."""
        with self._lock:
            self._is_holding = False
            self._held_file = ""
        logger.info("Released file")

    def snapshot(self) -> IdentitySnapshot:
        with self._lock:
            return IdentitySnapshot(
                device_id=self.device_id,
                device_name=self.device_name,
                local_ip=self.local_ip,
                is_holding=self._is_holding,
                held_file=self._held_file,
            )

    def device_info(self) -> dict:
        return {"id": self.device_id, "name": self.device_name, "ip": self.local_ip}
