"""
packet_codec.py - Gateway <-> network server UDP packet codec

Decodes the datagrams exchanged between a LoRa packet forwarder (gateway)
and a network server.

Wire Format (big endian):
    Offset  Size  Field
    0       1     version (0x01)
    1       2     token, opaque
    3       1     identifier
    4       8     gateway id        (PUSH_DATA, PULL_DATA only)
    ...     n     JSON payload      (PUSH_DATA, PULL_RESP only)

Bytes trailing a packet that carries no payload are ignored.

Usage:
    from packet_codec import parse, decode

    packet = parse(datagram)            # raises PacketError
    result = decode(datagram)           # never raises PacketError
    if result.success:
        handle(result.packet)
"""

import logging
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, NamedTuple, Optional

from packet_errors import (
    PacketError, TruncatedGatewayId, TruncatedHeader, UnknownIdentifier,
    UnsupportedVersion,
)
from packet_payload import Payload, decode_payload

logger = logging.getLogger(__name__)


VERSION = 0x01
HEADER_SIZE = 4
GATEWAY_ID_SIZE = 8


class Identifier(IntEnum):
    """Packet identifiers (byte 3)."""
    PUSH_DATA = 0x00
    PUSH_ACK = 0x01
    PULL_DATA = 0x02
    PULL_RESP = 0x03
    PULL_ACK = 0x04


class Layout(NamedTuple):
    has_gateway_id: bool
    may_have_payload: bool


# What follows the header, per identifier
LAYOUTS = {
    Identifier.PUSH_DATA: Layout(has_gateway_id=True, may_have_payload=True),
    Identifier.PUSH_ACK: Layout(has_gateway_id=False, may_have_payload=False),
    Identifier.PULL_DATA: Layout(has_gateway_id=True, may_have_payload=False),
    Identifier.PULL_RESP: Layout(has_gateway_id=False, may_have_payload=True),
    Identifier.PULL_ACK: Layout(has_gateway_id=False, may_have_payload=False),
}


@dataclass(frozen=True)
class Header:
    version: int
    token: bytes
    identifier: Identifier


@dataclass(frozen=True)
class Packet:
    """A decoded datagram."""
    version: int
    token: bytes
    identifier: Identifier
    gateway_id: Optional[bytes] = None
    payload: Optional[Payload] = None

    def to_dict(self) -> Dict[str, Any]:
        """JSON/YAML friendly view; bytes rendered as hex."""
        return {
            'version': self.version,
            'token': self.token.hex(),
            'identifier': self.identifier.name,
            'gateway_id': self.gateway_id.hex() if self.gateway_id is not None else None,
            'payload': self.payload.to_dict() if self.payload is not None else None,
        }


@dataclass(frozen=True)
class ParseResult:
    """Outcome of decode(): either a packet or the error that rejected it."""
    packet: Optional[Packet] = None
    error: Optional[PacketError] = None

    @property
    def success(self) -> bool:
        return self.error is None


def decode_header(raw: bytes):
    """
    Decode the fixed 4-byte header.

    Returns:
        (Header, remainder) where remainder is a memoryview over the
        bytes following the header

    Raises:
        TruncatedHeader, UnsupportedVersion, UnknownIdentifier
    """
    buf = memoryview(raw)
    if len(buf) < HEADER_SIZE:
        raise TruncatedHeader(len(buf))

    version = buf[0]
    if version != VERSION:
        raise UnsupportedVersion(version)

    token = bytes(buf[1:3])
    try:
        identifier = Identifier(buf[3])
    except ValueError:
        raise UnknownIdentifier(buf[3]) from None

    return Header(version, token, identifier), buf[HEADER_SIZE:]


def parse(raw: bytes) -> Packet:
    """
    Decode a datagram into a Packet.

    Args:
        raw: Complete UDP datagram

    Returns:
        Packet; gateway_id and payload are None when the identifier does
        not carry them or, for the payload, when no bytes follow

    Raises:
        PacketError subclass describing the first failure
    """
    header, rest = decode_header(raw)
    layout = LAYOUTS[header.identifier]

    gateway_id = None
    if layout.has_gateway_id:
        if len(rest) < GATEWAY_ID_SIZE:
            raise TruncatedGatewayId(len(rest))
        gateway_id = bytes(rest[:GATEWAY_ID_SIZE])
        rest = rest[GATEWAY_ID_SIZE:]

    payload = None
    if layout.may_have_payload and len(rest) > 0:
        payload = decode_payload(rest)

    return Packet(
        version=header.version,
        token=header.token,
        identifier=header.identifier,
        gateway_id=gateway_id,
        payload=payload,
    )


def decode(raw: bytes) -> ParseResult:
    """Like parse(), but reports rejection in the result instead of raising."""
    try:
        return ParseResult(packet=parse(raw))
    except PacketError as e:
        if len(raw) >= HEADER_SIZE:
            logger.debug("Dropping %d byte packet (identifier=0x%02x token=%s): %s: %s",
                         len(raw), raw[3], bytes(raw[1:3]).hex(), type(e).__name__, e)
        else:
            logger.debug("Dropping %d byte packet: %s: %s", len(raw), type(e).__name__, e)
        return ParseResult(error=e)


def encode_packet(packet: Packet) -> bytes:
    """
    Serialize a Packet back to its wire form.

    The payload is written as its original raw bytes, so decoding and
    re-encoding a datagram gives back the same bytes (minus any trailing
    bytes the identifier does not carry).
    """
    if not 0 <= packet.version <= 0xFF:
        raise ValueError(f"Version out of range: {packet.version}")
    if len(packet.token) != 2:
        raise ValueError(f"Token must be 2 bytes, got {len(packet.token)}")

    layout = LAYOUTS[Identifier(packet.identifier)]
    out = bytearray([packet.version])
    out.extend(packet.token)
    out.append(packet.identifier)

    if layout.has_gateway_id:
        if packet.gateway_id is None or len(packet.gateway_id) != GATEWAY_ID_SIZE:
            raise ValueError(f"{Identifier(packet.identifier).name} requires an 8 byte gateway id")
        out.extend(packet.gateway_id)
    elif packet.gateway_id is not None:
        raise ValueError(f"{Identifier(packet.identifier).name} carries no gateway id")

    if packet.payload is not None:
        if not layout.may_have_payload:
            raise ValueError(f"{Identifier(packet.identifier).name} carries no payload")
        out.extend(packet.payload.raw)

    return bytes(out)
