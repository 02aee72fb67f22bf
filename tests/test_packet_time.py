"""Tests for the two payload timestamp formats."""

from datetime import datetime, timezone

import pytest

from packet_errors import InvalidTimestamp
from packet_time import (
    format_rxpk_time, format_stat_time, parse_rxpk_time, parse_stat_time,
    parse_timestamp,
)


UTC = timezone.utc


class TestStatTime:
    """'2014-01-12 08:59:28 GMT'"""

    def test_parse(self):
        assert parse_stat_time("2014-01-12 08:59:28 GMT") == datetime(2014, 1, 12, 8, 59, 28, tzinfo=UTC)

    def test_is_utc(self):
        assert parse_stat_time("2014-01-12 08:59:28 GMT").tzinfo == UTC

    @pytest.mark.parametrize("zone", ['GMT', 'UTC', 'UT', 'Z'])
    def test_zone_abbreviations(self, zone):
        assert parse_stat_time(f"2014-01-12 08:59:28 {zone}") == datetime(2014, 1, 12, 8, 59, 28, tzinfo=UTC)

    def test_fraction_dropped(self):
        value = parse_stat_time("2014-01-12 08:59:28.750 GMT")
        assert value == datetime(2014, 1, 12, 8, 59, 28, tzinfo=UTC)
        assert value.microsecond == 0

    @pytest.mark.parametrize("text", [
        "null",
        "",
        "2014-01-12 08:59:28",
        "2014-01-12T08:59:28 GMT",
        "2014-01-12T08:59:28Z",
        "2014-1-12 08:59:28 GMT",
        "2014-02-30 08:59:28 GMT",
        "2014-01-12 25:59:28 GMT",
        "2014-01-12 08:59:28 +0100",
        " 2014-01-12 08:59:28 GMT",
    ])
    def test_invalid(self, text):
        with pytest.raises(InvalidTimestamp) as exc:
            parse_stat_time(text)
        assert exc.value.kind == 'stat'
        assert exc.value.text == text

    def test_not_a_string(self):
        with pytest.raises(InvalidTimestamp):
            parse_stat_time(None)

    def test_format(self):
        assert format_stat_time(datetime(2014, 1, 12, 8, 59, 28, tzinfo=UTC)) == "2014-01-12 08:59:28 GMT"


class TestRXPKTime:
    """'2013-03-31T16:21:17.528002Z'"""

    def test_parse(self):
        assert parse_rxpk_time("2013-03-31T16:21:17.528002Z") == \
            datetime(2013, 3, 31, 16, 21, 17, 528002, tzinfo=UTC)

    def test_without_fraction(self):
        assert parse_rxpk_time("2013-03-31T16:21:17Z") == datetime(2013, 3, 31, 16, 21, 17, tzinfo=UTC)

    @pytest.mark.parametrize("text,microsecond", [
        ("2013-03-31T16:21:17.5Z", 500000),
        ("2013-03-31T16:21:17.000001Z", 1),
    ])
    def test_fraction_precision(self, text, microsecond):
        assert parse_rxpk_time(text).microsecond == microsecond

    def test_offset_normalized_to_utc(self):
        value = parse_rxpk_time("2013-03-31T18:21:17.528002+02:00")
        assert value == datetime(2013, 3, 31, 16, 21, 17, 528002, tzinfo=UTC)
        assert value.tzinfo == UTC
        assert value.utcoffset().total_seconds() == 0

    def test_negative_offset(self):
        value = parse_rxpk_time("2013-03-31T11:21:17-05:00")
        assert value == datetime(2013, 3, 31, 16, 21, 17, tzinfo=UTC)

    @pytest.mark.parametrize("text", [
        "null",
        "",
        "2013-03-31T16:21:17.528002",
        "2013-03-31 16:21:17.528002Z",
        "2013-03-31t16:21:17.528002z",
        "2013-03-31T16:21:17.Z",
        "2013-03-31T16:21:17.1234567Z",
        "2013-03-31T16:21:17.123456789Z",
        "2013-03-31T16:21:17.1234567890Z",
        "2013-03-31T16:21:17+0200",
        "2013-03-31T16:21:17+24:00",
        "2013-03-32T16:21:17Z",
        "2014-01-12 08:59:28 GMT",
    ])
    def test_invalid(self, text):
        with pytest.raises(InvalidTimestamp) as exc:
            parse_rxpk_time(text)
        assert exc.value.kind == 'rxpk'

    def test_format(self):
        value = datetime(2013, 3, 31, 16, 21, 17, 530974, tzinfo=UTC)
        assert format_rxpk_time(value) == "2013-03-31T16:21:17.530974Z"

    def test_format_parse(self):
        text = "2013-03-31T16:21:17.532038Z"
        assert format_rxpk_time(parse_rxpk_time(text)) == text


class TestParseTimestamp:

    def test_dispatch(self):
        assert parse_timestamp("2014-01-12 08:59:28 GMT", 'stat') == \
            parse_timestamp("2014-01-12T08:59:28.000Z", 'rxpk')

    def test_no_format_guessing(self):
        with pytest.raises(InvalidTimestamp):
            parse_timestamp("2014-01-12T08:59:28Z", 'stat')
        with pytest.raises(InvalidTimestamp):
            parse_timestamp("2014-01-12 08:59:28 GMT", 'rxpk')

    def test_unknown_kind(self):
        with pytest.raises(ValueError):
            parse_timestamp("2014-01-12 08:59:28 GMT", 'txpk')
