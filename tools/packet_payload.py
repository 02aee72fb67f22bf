"""
packet_payload.py - JSON payload decoding for gateway packets

A payload body is a JSON object with up to three known top-level keys:

    stat    gateway status record                -> Stat
    rxpk    array of received radio frames       -> tuple of RXPK
    txpk    single frame for the gateway to send -> TXPK

Keys are independent: a PUSH_DATA body may carry both `stat` and `rxpk`.
Unknown keys are ignored. A present key with malformed content fails the
whole payload; nothing is partially populated.

Decoding is two-phase: the bytes are parsed to plain JSON values, then
each known key is checked and converted field by field using the tables
below.

Usage:
    from packet_payload import decode_payload

    payload = decode_payload(b'{"stat": {...}}')
    payload.stat.rxnb
"""

import json
import math
from dataclasses import dataclass, fields
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Tuple

from packet_errors import InvalidSubStructure, MalformedPayload
from packet_time import (
    format_rxpk_time, format_stat_time, parse_rxpk_time, parse_stat_time,
)


UINT32_MAX = 2**32 - 1


@dataclass(frozen=True)
class Stat:
    """Gateway status record."""
    time: datetime
    rxnb: int
    rxok: int
    rxfw: int
    ackr: float
    dwnb: int
    txnb: int
    lati: Optional[float] = None
    long: Optional[float] = None
    alti: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return _record_to_dict(self, {'time': format_stat_time})


@dataclass(frozen=True)
class RXPK:
    """One received radio frame."""
    chan: int
    data: str
    datr: str
    freq: float
    modu: str
    rfch: int
    rssi: int
    size: int
    stat: int
    time: datetime
    tmst: int
    codr: Optional[str] = None
    lsnr: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return _record_to_dict(self, {'time': format_rxpk_time})


@dataclass(frozen=True)
class TXPK:
    """One frame the gateway is asked to transmit."""
    freq: float
    rfch: int
    powe: int
    modu: str
    datr: str
    size: int
    data: str
    imme: bool = False
    ipol: bool = False
    codr: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _record_to_dict(self, {})


@dataclass(frozen=True)
class Payload:
    """
    Decoded JSON body.

    `raw` always holds the exact bytes the body was decoded from, whichever
    of the typed fields are populated.
    """
    raw: bytes
    stat: Optional[Stat] = None
    rxpk: Optional[Tuple[RXPK, ...]] = None
    txpk: Optional[TXPK] = None

    def to_dict(self) -> Dict[str, Any]:
        out = {}
        if self.stat is not None:
            out['stat'] = self.stat.to_dict()
        if self.rxpk is not None:
            out['rxpk'] = [frame.to_dict() for frame in self.rxpk]
        if self.txpk is not None:
            out['txpk'] = self.txpk.to_dict()
        return out


def _record_to_dict(record, formatters: Dict[str, Callable]) -> Dict[str, Any]:
    out = {}
    for f in fields(record):
        value = getattr(record, f.name)
        if value is None:
            continue
        if f.name in formatters:
            value = formatters[f.name](value)
        out[f.name] = value
    return out


# =============================================================================
# Field coercions
# =============================================================================

class _WrongType(Exception):
    """Raised by a coercion; turned into InvalidSubStructure by the caller."""
    pass


def _as_float(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise _WrongType("expected number")
    value = float(value)
    if not math.isfinite(value):
        raise _WrongType("expected finite number")
    return value


def _as_int(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise _WrongType("expected integer")
    return value


def _as_uint(value: Any) -> int:
    value = _as_int(value)
    if value < 0:
        raise _WrongType("expected unsigned integer")
    return value


def _as_uint32(value: Any) -> int:
    value = _as_uint(value)
    if value > UINT32_MAX:
        raise _WrongType("exceeds 32 bits")
    return value


def _as_str(value: Any) -> str:
    if not isinstance(value, str):
        raise _WrongType("expected string")
    return value


def _as_bool(value: Any) -> bool:
    if not isinstance(value, bool):
        raise _WrongType("expected boolean")
    return value


def _as_datr(value: Any) -> str:
    # LoRa datarates are strings ("SF7BW125"), FSK datarates are bit rates
    if isinstance(value, str):
        return value
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise _WrongType("expected string or number")
    if isinstance(value, float) and not math.isfinite(value):
        raise _WrongType("expected finite number")
    return str(value)


def _as_stat_time(value: Any) -> datetime:
    return parse_stat_time(_as_str(value))


def _as_rxpk_time(value: Any) -> datetime:
    return parse_rxpk_time(_as_str(value))


# (key, coercion, required)
STAT_FIELDS = [
    ('time', _as_stat_time, True),
    ('lati', _as_float, False),
    ('long', _as_float, False),
    ('alti', _as_int, False),
    ('rxnb', _as_uint, True),
    ('rxok', _as_uint, True),
    ('rxfw', _as_uint, True),
    ('ackr', _as_float, True),
    ('dwnb', _as_uint, True),
    ('txnb', _as_uint, True),
]

RXPK_FIELDS = [
    ('chan', _as_uint, True),
    ('codr', _as_str, False),
    ('data', _as_str, True),
    ('datr', _as_datr, True),
    ('freq', _as_float, True),
    ('lsnr', _as_float, False),
    ('modu', _as_str, True),
    ('rfch', _as_uint, True),
    ('rssi', _as_int, True),
    ('size', _as_uint, True),
    ('stat', _as_int, True),
    ('time', _as_rxpk_time, True),
    ('tmst', _as_uint32, True),
]

TXPK_FIELDS = [
    ('imme', _as_bool, False),
    ('freq', _as_float, True),
    ('rfch', _as_uint, True),
    ('powe', _as_int, True),
    ('modu', _as_str, True),
    ('datr', _as_datr, True),
    ('codr', _as_str, False),
    ('ipol', _as_bool, False),
    ('size', _as_uint, True),
    ('data', _as_str, True),
]


def _decode_record(kind: str, obj: Any, table: list,
                   where: str = '') -> Dict[str, Any]:
    """Check and convert one JSON object against a field table."""
    if not isinstance(obj, dict):
        raise InvalidSubStructure(kind, None, f"{where}expected object, got {type(obj).__name__}")

    values = {}
    for key, coerce, required in table:
        # null counts as absent, as for top-level keys
        raw_value = obj.get(key)
        if raw_value is None:
            if required:
                raise InvalidSubStructure(kind, key, f"{where}missing required field")
            continue
        try:
            values[key] = coerce(raw_value)
        except _WrongType as e:
            raise InvalidSubStructure(kind, key, f"{where}{e}, got {raw_value!r}") from None
    return values


def decode_stat(obj: Any) -> Stat:
    return Stat(**_decode_record('stat', obj, STAT_FIELDS))


def decode_rxpk(obj: Any, index: int = 0) -> RXPK:
    return RXPK(**_decode_record('rxpk', obj, RXPK_FIELDS, where=f"entry {index}: "))


def decode_rxpk_list(obj: Any) -> Tuple[RXPK, ...]:
    """
    Decode the rxpk array, preserving order.

    An empty array is accepted and yields an empty tuple.
    """
    if not isinstance(obj, list):
        raise InvalidSubStructure('rxpk', None, f"expected array, got {type(obj).__name__}")
    return tuple(decode_rxpk(entry, i) for i, entry in enumerate(obj))


def decode_txpk(obj: Any) -> TXPK:
    return TXPK(**_decode_record('txpk', obj, TXPK_FIELDS))


SUB_DECODERS = {
    'stat': decode_stat,
    'rxpk': decode_rxpk_list,
    'txpk': decode_txpk,
}


def _reject_constant(name: str):
    raise ValueError(f"Non-standard JSON constant: {name}")


def load_json(raw: bytes) -> Any:
    """Parse payload bytes as strict UTF-8 JSON."""
    try:
        text = bytes(raw).decode('utf-8')
        return json.loads(text, parse_constant=_reject_constant)
    except UnicodeDecodeError as e:
        raise MalformedPayload(f"Payload is not UTF-8: {e}") from e
    except ValueError as e:
        raise MalformedPayload(f"Payload is not valid JSON: {e}") from e
    except RecursionError as e:
        raise MalformedPayload("Payload nesting too deep") from e


def decode_payload(raw: bytes) -> Payload:
    """
    Decode a JSON payload body.

    Args:
        raw: Payload bytes following the packet header (and gateway id)

    Returns:
        Payload holding `raw` plus whichever of stat/rxpk/txpk are present

    Raises:
        MalformedPayload: bytes are not a JSON object
        InvalidSubStructure: a present stat/rxpk/txpk is malformed
        InvalidTimestamp: a time field does not parse
    """
    raw = bytes(raw)
    document = load_json(raw)
    if not isinstance(document, dict):
        raise MalformedPayload(f"Payload root must be an object, got {type(document).__name__}")

    decoded = {}
    for key, decoder in SUB_DECODERS.items():
        value = document.get(key)
        if value is not None:
            decoded[key] = decoder(value)

    return Payload(raw=raw, **decoded)
