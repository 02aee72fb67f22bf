"""
packet_errors.py - Error taxonomy for gateway packet decoding

Every failure the codec reports is a PacketError. Callers that only want
to drop bad packets catch the base class; tests and tools can tell the
classes apart.
"""

from typing import Optional


class PacketError(ValueError):
    """Base class for all packet decoding errors."""
    pass


class TruncatedHeader(PacketError):
    """Fewer bytes than the fixed header were supplied."""

    def __init__(self, length: int):
        self.length = length
        super().__init__(f"Buffer too short for header: got {length} bytes, need 4")


class UnsupportedVersion(PacketError):
    def __init__(self, version: int):
        self.version = version
        super().__init__(f"Unsupported protocol version: 0x{version:02X}")


class UnknownIdentifier(PacketError):
    def __init__(self, identifier: int):
        self.identifier = identifier
        super().__init__(f"Unknown packet identifier: 0x{identifier:02X}")


class TruncatedGatewayId(PacketError):
    def __init__(self, available: int):
        self.available = available
        super().__init__(f"Buffer too short for gateway id: got {available} bytes, need 8")


class MalformedPayload(PacketError):
    """Payload bytes are not a well-formed JSON object."""
    pass


class InvalidSubStructure(PacketError):
    """
    A present stat / rxpk / txpk structure failed validation.

    Attributes:
        kind: 'stat', 'rxpk' or 'txpk'
        field: offending key, or None when the structure itself is wrong
        reason: human readable description
    """

    def __init__(self, kind: str, field: Optional[str], reason: str):
        self.kind = kind
        self.field = field
        self.reason = reason
        where = f"{kind}.{field}" if field else kind
        super().__init__(f"Invalid {where}: {reason}")


class InvalidTimestamp(PacketError):
    def __init__(self, text, kind: str):
        self.text = text
        self.kind = kind
        super().__init__(f"Invalid {kind} time: {text!r}")
