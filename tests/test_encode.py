import datetime

import pytest

from pqtypes.encode import (
    Format,
    NullTime,
    ParameterStatus,
    Timestamp,
    binary_decode,
    binary_encode,
    decode,
    disable_infinity_ts,
    enable_infinity_ts,
    encode,
    encode_bytea,
    encode_copy_text,
    escape_copy_text,
    format_timestamp,
    parse_bytea,
    parse_timestamp,
    text_decode,
)
from pqtypes.oid import Oid

PS = ParameterStatus(server_version=90000)


@pytest.fixture
def infinity_reset():
    disable_infinity_ts()
    yield
    disable_infinity_ts()


def test_null_time_scan_timestamp():
    nt = NullTime()
    now = datetime.datetime.now(datetime.timezone.utc)
    nt.scan(now)
    assert nt.valid
    assert nt.time == now
    assert nt.value() == now


def test_null_time_scan_nil():
    nt = NullTime()
    nt.scan(None)
    assert not nt.valid
    assert nt.value() is None


TIME_TESTS = [
    ("22001-02-03", Timestamp(22001, 2, 3)),
    ("2001-02-03", Timestamp(2001, 2, 3)),
    ("0001-12-31 BC", Timestamp(0, 12, 31)),
    ("2001-02-03 BC", Timestamp(-2000, 2, 3)),
    ("2001-02-03 04:05:06", Timestamp(2001, 2, 3, 4, 5, 6)),
    ("2001-02-03 04:05:06.000001", Timestamp(2001, 2, 3, 4, 5, 6, 1000)),
    ("2001-02-03 04:05:06.00001", Timestamp(2001, 2, 3, 4, 5, 6, 10000)),
    ("2001-02-03 04:05:06.0001", Timestamp(2001, 2, 3, 4, 5, 6, 100000)),
    ("2001-02-03 04:05:06.001", Timestamp(2001, 2, 3, 4, 5, 6, 1000000)),
    ("2001-02-03 04:05:06.01", Timestamp(2001, 2, 3, 4, 5, 6, 10000000)),
    ("2001-02-03 04:05:06.1", Timestamp(2001, 2, 3, 4, 5, 6, 100000000)),
    ("2001-02-03 04:05:06.12", Timestamp(2001, 2, 3, 4, 5, 6, 120000000)),
    ("2001-02-03 04:05:06.123", Timestamp(2001, 2, 3, 4, 5, 6, 123000000)),
    ("2001-02-03 04:05:06.1234", Timestamp(2001, 2, 3, 4, 5, 6, 123400000)),
    ("2001-02-03 04:05:06.12345", Timestamp(2001, 2, 3, 4, 5, 6, 123450000)),
    ("2001-02-03 04:05:06.123456", Timestamp(2001, 2, 3, 4, 5, 6, 123456000)),
    ("2001-02-03 04:05:06.123-07", Timestamp(2001, 2, 3, 4, 5, 6, 123000000, -7 * 3600)),
    ("2001-02-03 04:05:06-07", Timestamp(2001, 2, 3, 4, 5, 6, 0, -7 * 3600)),
    ("2001-02-03 04:05:06-07:42", Timestamp(2001, 2, 3, 4, 5, 6, 0, -(7 * 3600 + 42 * 60))),
    ("2001-02-03 04:05:06-07:30:09", Timestamp(2001, 2, 3, 4, 5, 6, 0, -(7 * 3600 + 30 * 60 + 9))),
    ("2001-02-03 04:05:06+07:30:09", Timestamp(2001, 2, 3, 4, 5, 6, 0, 7 * 3600 + 30 * 60 + 9)),
    ("2001-02-03 04:05:06+07", Timestamp(2001, 2, 3, 4, 5, 6, 0, 7 * 3600)),
    ("0011-02-03 04:05:06 BC", Timestamp(-10, 2, 3, 4, 5, 6)),
    ("0011-02-03 04:05:06.123 BC", Timestamp(-10, 2, 3, 4, 5, 6, 123000000)),
    ("0011-02-03 04:05:06.123-07 BC", Timestamp(-10, 2, 3, 4, 5, 6, 123000000, -7 * 3600)),
    ("0001-02-03 04:05:06.123", Timestamp(1, 2, 3, 4, 5, 6, 123000000)),
    ("0001-02-03 04:05:06.123 BC", Timestamp(0, 2, 3, 4, 5, 6, 123000000)),
    ("0002-02-03 04:05:06.123 BC", Timestamp(-1, 2, 3, 4, 5, 6, 123000000)),
    ("12345-02-03 04:05:06.1", Timestamp(12345, 2, 3, 4, 5, 6, 100000000)),
    ("123456-02-03 04:05:06.1", Timestamp(123456, 2, 3, 4, 5, 6, 100000000)),
]


@pytest.mark.parametrize("text,expected", TIME_TESTS)
def test_parse_timestamp(text, expected):
    assert parse_timestamp(None, text) == expected


TIME_ERROR_TESTS = [
    "BC",
    " BC",
    "2001",
    "2001-2-03",
    "2001-02-3",
    "2001-02-03 ",
    "2001-02-03 B",
    "2001-02-03 04",
    "2001-02-03 04:",
    "2001-02-03 04:05",
    "2001-02-03 04:05 B",
    "2001-02-03 04:05 BC",
    "2001-02-03 04:05:",
    "2001-02-03 04:05:6",
    "2001-02-03 04:05:06 B",
    "2001-02-03 04:05:06BC",
    "2001-02-03 04:05:06.123 B",
]


@pytest.mark.parametrize("text", TIME_ERROR_TESTS)
def test_parse_timestamp_errors(text):
    with pytest.raises(ValueError):
        parse_timestamp(None, text)


def test_parse_timestamp_attaches_matching_location():
    loc = datetime.timezone(datetime.timedelta(hours=-7))
    result = parse_timestamp(loc, "2001-02-03 04:05:06-07")
    assert result.tz is loc
    assert result == Timestamp(2001, 2, 3, 4, 5, 6, 0, -7 * 3600)


def test_parse_timestamp_keeps_fixed_offset_when_location_disagrees():
    result = parse_timestamp(datetime.timezone.utc, "2001-02-03 04:05:06-07")
    assert result.tz is None
    assert result.utcoffset == -7 * 3600


FORMAT_TIME_TESTS = [
    (Timestamp(), "0001-01-01 00:00:00Z"),
    (Timestamp(2001, 2, 3, 4, 5, 6, 123456789), "2001-02-03 04:05:06.123456789Z"),
    (Timestamp(2001, 2, 3, 4, 5, 6, 123456789, 2 * 3600), "2001-02-03 04:05:06.123456789+02:00"),
    (Timestamp(2001, 2, 3, 4, 5, 6, 123456789, -6 * 3600), "2001-02-03 04:05:06.123456789-06:00"),
    (Timestamp(2001, 2, 3, 4, 5, 6, 0, -(7 * 3600 + 30 * 60 + 9)), "2001-02-03 04:05:06-07:30:09"),
    (Timestamp(1, 2, 3, 4, 5, 6, 123456789), "0001-02-03 04:05:06.123456789Z"),
    (Timestamp(1, 2, 3, 4, 5, 6, 123456789, 2 * 3600), "0001-02-03 04:05:06.123456789+02:00"),
    (Timestamp(1, 2, 3, 4, 5, 6, 123456789, -6 * 3600), "0001-02-03 04:05:06.123456789-06:00"),
    (Timestamp(0, 2, 3, 4, 5, 6, 123456789), "0001-02-03 04:05:06.123456789Z BC"),
    (Timestamp(0, 2, 3, 4, 5, 6, 123456789, 2 * 3600), "0001-02-03 04:05:06.123456789+02:00 BC"),
    (Timestamp(0, 2, 3, 4, 5, 6, 123456789, -6 * 3600), "0001-02-03 04:05:06.123456789-06:00 BC"),
    (Timestamp(1, 2, 3, 4, 5, 6, 0, -(7 * 3600 + 30 * 60 + 9)), "0001-02-03 04:05:06-07:30:09"),
    (Timestamp(0, 2, 3, 4, 5, 6, 0, -(7 * 3600 + 30 * 60 + 9)), "0001-02-03 04:05:06-07:30:09 BC"),
]


@pytest.mark.parametrize("value,expected", FORMAT_TIME_TESTS)
def test_format_timestamp(value, expected):
    assert format_timestamp(value) == expected.encode()


@pytest.mark.parametrize("value,expected", FORMAT_TIME_TESTS)
def test_format_and_parse_timestamp(value, expected):
    assert parse_timestamp(None, format_timestamp(value).decode()) == value


def test_format_datetime():
    dt = datetime.datetime(2001, 2, 3, 4, 5, 6, 123456, tzinfo=datetime.timezone.utc)
    assert format_timestamp(dt) == b"2001-02-03 04:05:06.123456Z"


def test_timestamp_to_datetime():
    ts = Timestamp(2001, 2, 3, 4, 5, 6, 123456789, 7200)
    expected = datetime.datetime(
        2001, 2, 3, 4, 5, 6, 123456, tzinfo=datetime.timezone(datetime.timedelta(hours=2))
    )
    assert ts.to_datetime() == expected


def test_timestamp_to_datetime_out_of_range():
    with pytest.raises(ValueError):
        Timestamp(0, 1, 1).to_datetime()


@pytest.mark.parametrize("typ", [Oid.CHAR, Oid.VARCHAR, Oid.TEXT])
def test_text_decode_into_string(typ):
    assert decode(ParameterStatus(), b"hello world", typ, Format.TEXT) == "hello world"


def test_bytea_output_format_encoding():
    data = b"\\x\x00\x01\x02\xff\xfeabcdefg0123"
    assert encode(ParameterStatus(server_version=90000), data, Oid.BYTEA) == (
        b"\\x5c78000102fffe6162636465666730313233"
    )
    assert encode(ParameterStatus(server_version=84000), data, Oid.BYTEA) == (
        b"\\\\x\\000\\001\\002\\377\\376abcdefg0123"
    )


@pytest.mark.parametrize("version", [84000, 90000])
def test_bytea_round_trip(version):
    data = bytes(range(256))
    assert parse_bytea(encode_bytea(version, data)) == data


def test_parse_bytea_escape():
    assert parse_bytea(b"\\\\x\\000\\377abc") == b"\\x\x00\xffabc"


@pytest.mark.parametrize("bad", [b"\\x123", b"\\xzz", b"ab\\1", b"\\999", b"\\400"])
def test_parse_bytea_errors(bad):
    with pytest.raises(ValueError):
        parse_bytea(bad)


def test_encode_copy_text_row():
    row = b"\t".join(
        [
            encode_copy_text(PS, 10),
            encode_copy_text(PS, 42.0000000001),
            encode_copy_text(PS, "hello\tworld"),
            encode_copy_text(PS, bytes([0, 128, 255])),
        ]
    )
    assert row == b"10\t42.0000000001\thello\\tworld\t\\\\x0080ff"


def test_encode_copy_text_null_and_bool():
    assert encode_copy_text(PS, None) == b"\\N"
    assert encode_copy_text(PS, True) == b"true"


def test_encode_copy_text_unknown_type():
    with pytest.raises(TypeError):
        encode_copy_text(PS, object())


@pytest.mark.parametrize(
    "text,expected",
    [
        ("hallo\tescape", "hallo\\tescape"),
        ("hallo\\tescape\n", "hallo\\\\tescape\\n"),
        ("\n\r\t\f", "\\n\\r\\t\f"),
        ("no escapes", "no escapes"),
    ],
)
def test_escape_copy_text(text, expected):
    assert escape_copy_text(text) == expected


@pytest.mark.parametrize(
    "value,expected",
    [
        (12345678, b"12345678"),
        (-5, b"-5"),
        (1.0, b"1"),
        (0.5, b"0.5"),
        (1e16, b"10000000000000000"),
        (True, b"true"),
        (False, b"false"),
        ("hello", b"hello"),
        (b"raw", b"raw"),
    ],
)
def test_encode_values(value, expected):
    assert encode(PS, value, Oid.TEXT) == expected


def test_encode_string_as_bytea():
    assert encode(PS, "hi", Oid.BYTEA) == b"\\x6869"


def test_encode_naive_datetime_as_utc():
    dt = datetime.datetime(2001, 2, 3, 4, 5, 6)
    assert encode(PS, dt, Oid.TIMESTAMP) == b"2001-02-03 04:05:06Z"


def test_encode_unknown_type():
    with pytest.raises(TypeError):
        encode(PS, object(), Oid.TEXT)


def test_binary_encode():
    assert binary_encode(PS, b"\x00\x01") == b"\x00\x01"
    assert binary_encode(PS, 42) == b"42"


def test_binary_decode_integers():
    assert binary_decode(PS, b"\x00\xbc\x61\x4e", Oid.INT4) == 12345678
    assert binary_decode(PS, b"\xff\xfe", Oid.INT2) == -2
    assert binary_decode(PS, b"\xff" * 8, Oid.INT8) == -1


def test_binary_decode_uuid():
    raw = bytes.fromhex("a0eebc999c0b4ef8bb006bb9bd380a11")
    assert binary_decode(PS, raw, Oid.UUID) == b"a0eebc99-9c0b-4ef8-bb00-6bb9bd380a11"


def test_binary_decode_unknown_type():
    with pytest.raises(ValueError):
        binary_decode(PS, b"x", Oid.TEXT)


def test_decode_binary_dispatch():
    assert decode(PS, b"\x00\x00\x00\x07", Oid.INT4, Format.BINARY) == 7


def test_decode_bad_format():
    with pytest.raises(ValueError):
        decode(PS, b"1", Oid.INT4, 5)


def test_text_decode_scalars():
    assert text_decode(PS, b"t", Oid.BOOL) is True
    assert text_decode(PS, b"f", Oid.BOOL) is False
    assert text_decode(PS, b"-42", Oid.INT8) == -42
    assert text_decode(PS, b"1.5", Oid.FLOAT8) == 1.5
    assert text_decode(PS, b"Infinity", Oid.FLOAT4) == float("inf")
    assert text_decode(PS, b"\\x6869", Oid.BYTEA) == b"hi"
    assert text_decode(PS, b"{1,2}", Oid.INT4_ARRAY) == b"{1,2}"


def test_text_decode_bad_int():
    with pytest.raises(ValueError):
        text_decode(PS, b"12a", Oid.INT4)


def test_text_decode_date():
    assert text_decode(PS, b"2001-02-03", Oid.DATE) == Timestamp(2001, 2, 3)


@pytest.mark.parametrize(
    "text,expected",
    [
        (b"11:59:59", Timestamp(0, 1, 1, 11, 59, 59)),
        (b"24:00", Timestamp(0, 1, 2)),
        (b"24:00:00", Timestamp(0, 1, 2)),
        (b"24:00:00.0", Timestamp(0, 1, 2)),
        (b"24:00:00.000000", Timestamp(0, 1, 2)),
        (b"10:00:00.25", Timestamp(0, 1, 1, 10, 0, 0, 250000000)),
    ],
)
def test_text_decode_time(text, expected):
    assert text_decode(PS, text, Oid.TIME) == expected


@pytest.mark.parametrize(
    "text,expected",
    [
        (b"11:59:59+00", Timestamp(0, 1, 1, 11, 59, 59)),
        (b"11:59:59+04", Timestamp(0, 1, 1, 11, 59, 59, 0, 4 * 3600)),
        (b"11:59:59+04:01:02", Timestamp(0, 1, 1, 11, 59, 59, 0, 4 * 3600 + 62)),
        (b"11:59:59-04:01:02", Timestamp(0, 1, 1, 11, 59, 59, 0, -(4 * 3600 + 62))),
        (b"24:00:00+00", Timestamp(0, 1, 2)),
        (b"24:00:00-04", Timestamp(0, 1, 2, 0, 0, 0, 0, -4 * 3600)),
        (b"24:00:00.000000+00", Timestamp(0, 1, 2)),
    ],
)
def test_text_decode_timetz(text, expected):
    assert text_decode(PS, text, Oid.TIMETZ) == expected


def test_text_decode_time_errors():
    with pytest.raises(ValueError):
        text_decode(PS, b"25:00:00", Oid.TIME)
    with pytest.raises(ValueError):
        text_decode(PS, b"11:59:59", Oid.TIMETZ)


def test_infinity_without_mapping(infinity_reset):
    assert text_decode(PS, b"infinity", Oid.TIMESTAMP) == b"infinity"
    assert text_decode(PS, b"-infinity", Oid.TIMESTAMPTZ) == b"-infinity"


def test_infinity_mapping(infinity_reset):
    y1500 = Timestamp(1500, 1, 1)
    y2500 = Timestamp(2500, 1, 1)
    enable_infinity_ts(y1500, y2500)
    assert text_decode(PS, b"infinity", Oid.TIMESTAMP) == y2500
    assert text_decode(PS, b"infinity", Oid.TIMESTAMPTZ) == y2500
    assert text_decode(PS, b"-infinity", Oid.TIMESTAMP) == y1500
    assert text_decode(PS, b"-infinity", Oid.TIMESTAMPTZ) == y1500
    assert encode(PS, Timestamp(-1500, 1, 1), Oid.TIMESTAMP) == b"-infinity"
    assert encode(PS, Timestamp(11500, 1, 1), Oid.TIMESTAMPTZ) == b"infinity"
    assert encode(PS, Timestamp(2000, 1, 1), Oid.TIMESTAMP) == b"2000-01-01 00:00:00Z"
    assert encode_copy_text(PS, y2500) == b"infinity"


def test_infinity_enabled_twice(infinity_reset):
    enable_infinity_ts(Timestamp(1500, 1, 1), Timestamp(2500, 1, 1))
    with pytest.raises(RuntimeError, match="enabled already"):
        enable_infinity_ts(Timestamp(1500, 1, 1), Timestamp(2500, 1, 1))


def test_infinity_negative_must_be_smaller(infinity_reset):
    with pytest.raises(ValueError, match="negative value must be smaller"):
        enable_infinity_ts(Timestamp(2500, 1, 1), Timestamp(1500, 1, 1))
    assert text_decode(PS, b"infinity", Oid.TIMESTAMP) == b"infinity"