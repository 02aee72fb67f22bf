"""
packet_time.py - Timestamp parsing for gateway packet payloads

The protocol uses two unrelated textual time formats:

    stat.time   "2014-01-12 08:59:28 GMT"       whole seconds, zone abbreviation
    rxpk.time   "2013-03-31T16:21:17.528002Z"   RFC 3339 with fractional seconds

Both are parsed into timezone-aware UTC datetimes. Each format has its own
parser; neither tries to guess the other.

Usage:
    from packet_time import parse_timestamp

    when = parse_timestamp("2014-01-12 08:59:28 GMT", 'stat')
"""

import re
from datetime import datetime, timedelta, timezone

from packet_errors import InvalidTimestamp


STAT_TIME_RE = re.compile(
    r'(\d{4})-(\d{2})-(\d{2}) (\d{2}):(\d{2}):(\d{2})(?:\.\d+)? ([A-Za-z]{1,5})',
    re.ASCII,
)

RXPK_TIME_RE = re.compile(
    r'(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})'
    r'(?:\.(\d{1,6}))?'
    r'(Z|[+-]\d{2}:\d{2})',
    re.ASCII,
)


def parse_stat_time(text: str) -> datetime:
    """
    Parse a status record time.

    The zone abbreviation is not resolved: gateways report UTC system time
    and label it GMT or UTC, so any abbreviation is read as offset zero.
    Fractional seconds, if a gateway sends them, are dropped.
    """
    if not isinstance(text, str):
        raise InvalidTimestamp(text, 'stat')
    match = STAT_TIME_RE.fullmatch(text)
    if not match:
        raise InvalidTimestamp(text, 'stat')

    year, month, day, hour, minute, second = (int(g) for g in match.groups()[:6])
    try:
        return datetime(year, month, day, hour, minute, second, tzinfo=timezone.utc)
    except ValueError as e:
        raise InvalidTimestamp(text, 'stat') from e


def parse_rxpk_time(text: str) -> datetime:
    """
    Parse a received frame time (RFC 3339, UTC offset required).

    Fractional seconds are kept exactly, so at most six digits (microseconds,
    which is what packet forwarders emit) are accepted.
    """
    if not isinstance(text, str):
        raise InvalidTimestamp(text, 'rxpk')
    match = RXPK_TIME_RE.fullmatch(text)
    if not match:
        raise InvalidTimestamp(text, 'rxpk')

    year, month, day, hour, minute, second = (int(g) for g in match.groups()[:6])
    fraction = match.group(7) or ''
    microsecond = int(fraction.ljust(6, '0'))

    offset = match.group(8)
    if offset == 'Z':
        tz = timezone.utc
    else:
        off_hours, off_minutes = int(offset[1:3]), int(offset[4:6])
        if off_hours > 23 or off_minutes > 59:
            raise InvalidTimestamp(text, 'rxpk')
        delta = timedelta(hours=off_hours, minutes=off_minutes)
        tz = timezone(-delta if offset[0] == '-' else delta)

    try:
        value = datetime(year, month, day, hour, minute, second, microsecond, tzinfo=tz)
    except ValueError as e:
        raise InvalidTimestamp(text, 'rxpk') from e
    try:
        return value.astimezone(timezone.utc)
    except OverflowError as e:
        # e.g. 0001-01-01T00:00:00+01:00 has no UTC representation
        raise InvalidTimestamp(text, 'rxpk') from e


_PARSERS = {
    'stat': parse_stat_time,
    'rxpk': parse_rxpk_time,
}


def parse_timestamp(text: str, kind: str) -> datetime:
    """
    Parse a payload timestamp.

    Args:
        text: Timestamp text as found in the JSON body
        kind: 'stat' or 'rxpk', selecting the expected format

    Returns:
        Timezone-aware datetime in UTC

    Raises:
        InvalidTimestamp: text does not match the format for `kind`
    """
    if kind not in _PARSERS:
        raise ValueError(f"Unknown timestamp kind: {kind}")
    return _PARSERS[kind](text)


def format_stat_time(value: datetime) -> str:
    v = value.astimezone(timezone.utc)
    return (f"{v.year:04d}-{v.month:02d}-{v.day:02d} "
            f"{v.hour:02d}:{v.minute:02d}:{v.second:02d} GMT")


def format_rxpk_time(value: datetime) -> str:
    v = value.astimezone(timezone.utc)
    return (f"{v.year:04d}-{v.month:02d}-{v.day:02d}T"
            f"{v.hour:02d}:{v.minute:02d}:{v.second:02d}.{v.microsecond:06d}Z")
