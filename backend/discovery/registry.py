"""In-memory registry of remote peers, keyed by device id."""

import logging
import threading

from discovery.models import Peer

logger = logging.getLogger(__name__)


class PeerRegistry:
    """Thread-safe map of peer id to the latest observed Peer."""

    def __init__(self, own_id: str) -> None:
        self._own_id = own_id
        self._peers: dict[str, Peer] = {}
        self._lock = threading.Lock()

    def replace(self, peer: Peer) -> Peer | None:
        """
        Insert or overwrite the entry for `peer.id`.

        Returns the record it replaced, or None if the peer is new. The
        lookup and the write happen under one lock so concurrent writers
        cannot both observe "new".
        """
        if peer.id == self._own_id:
            raise ValueError("refusing to register our own device id")
        with self._lock:
            previous = self._peers.get(peer.id)
            self._peers[peer.id] = peer
        return previous

    def get(self, peer_id: str) -> Peer | None:
        with self._lock:
            return self._peers.get(peer_id)

    def get_peers(self) -> list[Peer]:
        """Return a list of currently known peers."""
        with self._lock:
            return list(self._peers.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._peers)

    def __contains__(self, peer_id: object) -> bool:
        with self._lock:
            return peer_id in self._peers
