"""Pydantic models for peer discovery."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class WirePacket(BaseModel):
    """
    The JSON payload broadcast over UDP.

    Parsing is strict: only the camelCase keys are accepted, booleans must be
    JSON booleans, and unknown keys reject the packet.
    """
    model_config = ConfigDict(strict=True, extra="forbid")

    id: str
    ip: str
    name: str
    is_holding: bool = Field(default=False, alias="isHolding")
    held_file: str = Field(default="", alias="heldFile")

    def encode(self) -> bytes:
        return self.model_dump_json(by_alias=True).encode("utf-8")


class Peer(BaseModel):
    """Most recently observed state of a remote device."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    ip: str
    name: str
    is_holding: bool = Field(default=False, alias="isHolding")
    held_file: str = Field(default="", alias="heldFile")

    @classmethod
    def from_packet(cls, packet: WirePacket) -> "Peer":
        return cls(
            id=packet.id,
            ip=packet.ip,
            name=packet.name,
            is_holding=packet.is_holding,
            held_file=packet.held_file,
        )

    def grab_differs(self, other: "Peer") -> bool:
        return (
            self.is_holding != other.is_holding
            or self.held_file != other.held_file
        )

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True)


class PeerEventType(str, Enum):
    PEER_DISCOVERED = "peer-discovered"
    GRAB_UPDATE = "grab-update"


class PeerEvent(BaseModel):
    """A classified change in the peer registry."""
    event: PeerEventType
    peer: Peer
