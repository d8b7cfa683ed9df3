"""Conversion of values to and from the PostgreSQL wire formats."""

from __future__ import annotations

import binascii
import datetime
import re
import struct
import uuid
from dataclasses import dataclass, field, replace
from decimal import Decimal
from enum import IntEnum

from .oid import Oid

_NS_PER_SECOND = 10**9
_SECONDS_PER_DAY = 86400
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1

_INFINITY_TS_ENABLED_ALREADY = "pq: infinity timestamp enabled already"
_INFINITY_TS_NEGATIVE_MUST_BE_SMALLER = (
    "pq: infinity timestamp: negative value must be smaller (before) than positive"
)

_TIME_2400 = re.compile(r"(24:00(?::00(?:\.0+)?)?)(?:[Z+-].*)?", re.DOTALL)
_TIME_NO_TZ = re.compile(r"([0-9]{2}):([0-9]{2}):([0-9]{2})(?:[.,]([0-9]+))?")
_TIME_WITH_TZ = re.compile(
    r"([0-9]{2}):([0-9]{2}):([0-9]{2})(?:[.,]([0-9]+))?"
    r"([+-])([0-9]{2})(?::([0-9]{2}))?(?::([0-9]{2}))?"
)
_ATOI = re.compile(r"[+-]?[0-9]+")
_FRACTION_END = re.compile(r"[-+Z ]")
_COPY_ESCAPES = str.maketrans({"\\": "\\\\", "\n": "\\n", "\r": "\\r", "\t": "\\t"})
_OCTAL_TRIPLE = re.compile(rb"[0-7]{3}")


class Format(IntEnum):
    """Format code of a value on the wire."""

    TEXT = 0
    BINARY = 1


@dataclass
class ParameterStatus:
    """Session settings that affect how values are encoded and decoded."""

    server_version: int = 0
    current_location: datetime.tzinfo | None = None


def _days_from_civil(year: int, month: int, day: int) -> int:
    year -= 1 if month <= 2 else 0
    era = year // 400
    yoe = year - era * 400
    doy = (153 * (month + (-3 if month > 2 else 9)) + 2) // 5 + day - 1
    doe = yoe * 365 + yoe // 4 - yoe // 100 + doy
    return era * 146097 + doe - 719468


def _civil_from_days(days: int) -> tuple[int, int, int]:
    days += 719468
    era = days // 146097
    doe = days - era * 146097
    yoe = (doe - doe // 1460 + doe // 36524 - doe // 146096) // 365
    doy = doe - (365 * yoe + yoe // 4 - yoe // 100)
    mp = (5 * doy + 2) // 153
    day = doy - (153 * mp + 2) // 5 + 1
    month = mp + (3 if mp < 10 else -9)
    year = yoe + era * 400 + (1 if month <= 2 else 0)
    return year, month, day


@dataclass(frozen=True)
class Timestamp:
    """A point in time with a fixed UTC offset.

    Unlike :class:`datetime.datetime` it covers years before 1 (year 0 is
    1 BC) and after 9999, and keeps nanoseconds. ``utcoffset`` is in
    seconds east of UTC; ``tz`` optionally names the session time zone the
    value was read in and takes no part in comparisons.
    """

    year: int = 1
    month: int = 1
    day: int = 1
    hour: int = 0
    minute: int = 0
    second: int = 0
    nanosecond: int = 0
    utcoffset: int = 0
    tz: datetime.tzinfo | None = field(default=None, compare=False)

    @classmethod
    def from_datetime(cls, dt: datetime.datetime) -> Timestamp:
        """Build a timestamp from a datetime; a naive datetime counts as UTC."""
        delta = dt.utcoffset()
        offset = int(delta.total_seconds()) if delta is not None else 0
        return cls(
            dt.year,
            dt.month,
            dt.day,
            dt.hour,
            dt.minute,
            dt.second,
            dt.microsecond * 1000,
            offset,
            dt.tzinfo,
        )

    def to_datetime(self) -> datetime.datetime:
        """Return an aware datetime, truncated to microseconds.

        Raises ValueError for years outside 1..9999.
        """
        tzinfo = self.tz
        if tzinfo is None:
            if self.utcoffset == 0:
                tzinfo = datetime.timezone.utc
            else:
                tzinfo = datetime.timezone(datetime.timedelta(seconds=self.utcoffset))
        return datetime.datetime(
            self.year,
            self.month,
            self.day,
            self.hour,
            self.minute,
            self.second,
            self.nanosecond // 1000,
            tzinfo=tzinfo,
        )

    def _instant(self) -> int:
        days = _days_from_civil(self.year, self.month, self.day)
        seconds = (
            days * _SECONDS_PER_DAY
            + self.hour * 3600
            + self.minute * 60
            + self.second
            - self.utcoffset
        )
        return seconds * _NS_PER_SECOND + self.nanosecond


def _make_timestamp(
    year: int,
    month: int,
    day: int,
    hour: int = 0,
    minute: int = 0,
    second: int = 0,
    nanosecond: int = 0,
    utcoffset: int = 0,
) -> Timestamp:
    """Build a timestamp, carrying out-of-range fields into larger ones."""
    second += nanosecond // _NS_PER_SECOND
    nanosecond %= _NS_PER_SECOND
    year += (month - 1) // 12
    month = (month - 1) % 12 + 1
    days = _days_from_civil(year, month, 1) + day - 1
    seconds = hour * 3600 + minute * 60 + second
    days += seconds // _SECONDS_PER_DAY
    seconds %= _SECONDS_PER_DAY
    y, m, d = _civil_from_days(days)
    return Timestamp(
        y, m, d, seconds // 3600, seconds // 60 % 60, seconds % 60, nanosecond, utcoffset
    )


def _as_timestamp(value: object) -> Timestamp:
    if isinstance(value, Timestamp):
        return value
    if isinstance(value, datetime.datetime):
        return Timestamp.from_datetime(value)
    raise TypeError(f"pq: expected a timestamp, got {type(value).__name__}")


class _InfinitySettings:
    def __init__(self) -> None:
        self.enabled = False
        self.negative = Timestamp()
        self.positive = Timestamp()


_infinity = _InfinitySettings()


def enable_infinity_ts(negative: Timestamp | datetime.datetime, positive: Timestamp | datetime.datetime) -> None:
    """Map the server's ``-infinity``/``infinity`` timestamps to the given values.

    Raises RuntimeError if already enabled and ValueError unless
    ``negative`` is before ``positive``.
    """
    if _infinity.enabled:
        raise RuntimeError(_INFINITY_TS_ENABLED_ALREADY)
    neg = _as_timestamp(negative)
    pos = _as_timestamp(positive)
    if not neg._instant() < pos._instant():
        raise ValueError(_INFINITY_TS_NEGATIVE_MUST_BE_SMALLER)
    _infinity.enabled = True
    _infinity.negative = neg
    _infinity.positive = pos


def disable_infinity_ts() -> None:
    """Turn the infinity timestamp mapping off again."""
    _infinity.enabled = False


class _TimestampParser:
    def __init__(self, text: str) -> None:
        self.text = text
        self.err: str | None = None

    def expect(self, char: str, pos: int) -> None:
        if self.err is not None:
            return
        if pos + 1 > len(self.text):
            self.err = "invalid timestamp"
            return
        got = self.text[pos]
        if got != char:
            self.err = f"expected '{char}' at position {pos}; got '{got}'"

    def atoi(self, begin: int, end: int) -> int:
        if self.err is not None:
            return 0
        if begin < 0 or end < 0 or begin > end or end > len(self.text):
            self.err = "invalid timestamp"
            return 0
        part = self.text[begin:end]
        if not _ATOI.fullmatch(part):
            self.err = f"expected number; got '{self.text}'"
            return 0
        return int(part)


def parse_timestamp(current_location: datetime.tzinfo | None, s: str) -> Timestamp:
    """Parse a timestamp or date in the server's ISO text format.

    The result is placed in ``current_location`` when that zone agrees with
    the offset sent by the server; otherwise it keeps the fixed offset.
    Raises ValueError on malformed input.
    """
    p = _TimestampParser(s)

    mon_sep = s.find("-")
    year = p.atoi(0, mon_sep)
    day_sep = mon_sep + 3
    month = p.atoi(mon_sep + 1, day_sep)
    p.expect("-", day_sep)
    time_sep = day_sep + 3
    day = p.atoi(day_sep + 1, time_sep)

    min_len = mon_sep + len("01-01") + 1
    is_bc = s.endswith(" BC")
    if is_bc:
        min_len += 3

    hour = minute = second = 0
    if len(s) > min_len:
        p.expect(" ", time_sep)
        min_sep = time_sep + 3
        p.expect(":", min_sep)
        hour = p.atoi(time_sep + 1, min_sep)
        sec_sep = min_sep + 3
        p.expect(":", sec_sep)
        minute = p.atoi(min_sep + 1, sec_sep)
        second = p.atoi(sec_sep + 1, sec_sep + 3)

    remainder = mon_sep + len("01-01 00:00:00") + 1
    nanosecond = 0
    tz_offset = 0

    if remainder < len(s) and s[remainder] == ".":
        frac_start = remainder + 1
        match = _FRACTION_END.search(s, frac_start)
        frac_len = match.start() - frac_start if match else len(s) - frac_start
        fraction = p.atoi(frac_start, frac_start + frac_len)
        nanosecond = fraction * (_NS_PER_SECOND // 10**frac_len)
        remainder += frac_len + 1

    tz_start = remainder
    if tz_start < len(s) and s[tz_start] in ("-", "+"):
        sign = -1 if s[tz_start] == "-" else 1
        tz_hours = p.atoi(tz_start + 1, tz_start + 3)
        remainder += 3
        tz_minutes = tz_seconds = 0
        if remainder < len(s) and s[remainder] == ":":
            tz_minutes = p.atoi(remainder + 1, remainder + 3)
            remainder += 3
        if remainder < len(s) and s[remainder] == ":":
            tz_seconds = p.atoi(remainder + 1, remainder + 3)
            remainder += 3
        tz_offset = sign * (tz_hours * 3600 + tz_minutes * 60 + tz_seconds)
    elif tz_start < len(s) and s[tz_start] == "Z":
        remainder += 1

    if is_bc:
        iso_year = 1 - year
        remainder += 3
    else:
        iso_year = year
    if remainder < len(s):
        raise ValueError(f"expected end of input, got {s[remainder:]}")
    if p.err is not None:
        raise ValueError(p.err)

    t = _make_timestamp(iso_year, month, day, hour, minute, second, nanosecond, tz_offset)

    if current_location is not None and 1 <= t.year <= 9999:
        try:
            local = t.to_datetime().astimezone(current_location)
        except (OverflowError, ValueError):
            return t
        if local.utcoffset() == datetime.timedelta(seconds=tz_offset):
            t = replace(t, tz=current_location)
    return t


def _parse_ts(current_location: datetime.tzinfo | None, s: str) -> Timestamp | bytes:
    if s == "-infinity":
        return _infinity.negative if _infinity.enabled else s.encode()
    if s == "infinity":
        return _infinity.positive if _infinity.enabled else s.encode()
    return parse_timestamp(current_location, s)


def _parse_time_of_day(typ: int, s: bytes) -> Timestamp:
    text = s.decode("utf-8")
    is_2400 = False
    match = _TIME_2400.fullmatch(text)
    if match:
        text = "00:00:00" + text[len(match.group(1)):]
        is_2400 = True

    with_tz = typ == Oid.TIMETZ
    pattern = _TIME_WITH_TZ if with_tz else _TIME_NO_TZ
    parts = pattern.fullmatch(text)
    if parts is None:
        raise ValueError(f"pq: decode: cannot parse {text!r} as a time")
    hour, minute, second = (int(parts.group(i)) for i in (1, 2, 3))
    if hour >= 24:
        raise ValueError(f"pq: decode: hour out of range in {text!r}")
    if minute >= 60:
        raise ValueError(f"pq: decode: minute out of range in {text!r}")
    if second >= 60:
        raise ValueError(f"pq: decode: second out of range in {text!r}")
    fraction = parts.group(4)
    nanosecond = int(fraction[:9].ljust(9, "0")) if fraction else 0

    offset = 0
    if with_tz:
        sign = -1 if parts.group(5) == "-" else 1
        tz_hours = int(parts.group(6))
        tz_minutes = int(parts.group(7) or 0)
        tz_seconds = int(parts.group(8) or 0)
        offset = sign * (tz_hours * 3600 + tz_minutes * 60 + tz_seconds)

    day = 2 if is_2400 else 1
    return _make_timestamp(0, 1, day, hour, minute, second, nanosecond, offset)


def format_timestamp(t: Timestamp | datetime.datetime) -> bytes:
    """Format a timestamp in the server's text format, with " BC" for years before 1."""
    ts = _as_timestamp(t)
    bc = False
    if ts.year <= 0:
        ts = _make_timestamp(
            ts.year + (-ts.year) * 2 + 1,
            ts.month,
            ts.day,
            ts.hour,
            ts.minute,
            ts.second,
            ts.nanosecond,
            ts.utcoffset,
        )
        bc = True

    out = (
        f"{ts.year:04d}-{ts.month:02d}-{ts.day:02d} "
        f"{ts.hour:02d}:{ts.minute:02d}:{ts.second:02d}"
    )
    if ts.nanosecond:
        out += "." + f"{ts.nanosecond:09d}".rstrip("0")

    offset = ts.utcoffset
    if offset == 0:
        out += "Z"
    else:
        sign = "-" if offset < 0 else "+"
        magnitude = abs(offset)
        out += f"{sign}{magnitude // 3600:02d}:{magnitude // 60 % 60:02d}"
        if magnitude % 60:
            out += f":{magnitude % 60:02d}"

    if bc:
        out += " BC"
    return out.encode("ascii")


def _format_ts(t: Timestamp | datetime.datetime) -> bytes:
    ts = _as_timestamp(t)
    if _infinity.enabled:
        instant = ts._instant()
        if instant <= _infinity.negative._instant():
            return b"-infinity"
        if instant >= _infinity.positive._instant():
            return b"infinity"
    return format_timestamp(ts)


def parse_bytea(s: bytes) -> bytes:
    """Decode a bytea value in either the hex or the legacy escape format."""
    if s[:2] == b"\\x":
        try:
            return binascii.unhexlify(s[2:])
        except binascii.Error as exc:
            raise ValueError(f"invalid hex bytea: {exc}") from exc

    result = bytearray()
    rest = bytes(s)
    while rest:
        if rest[0] == ord("\\"):
            if len(rest) >= 2 and rest[1] == ord("\\"):
                result.append(ord("\\"))
                rest = rest[2:]
                continue
            if len(rest) < 4:
                raise ValueError(f"invalid bytea sequence {rest!r}")
            digits = rest[1:4]
            if not _OCTAL_TRIPLE.fullmatch(digits) or int(digits, 8) > 255:
                raise ValueError(f"could not parse bytea value: invalid octal {digits!r}")
            result.append(int(digits, 8))
            rest = rest[4:]
        else:
            index = rest.find(b"\\")
            if index == -1:
                result += rest
                break
            result += rest[:index]
            rest = rest[index:]
    return bytes(result)


def encode_bytea(server_version: int, v: bytes) -> bytes:
    """Encode bytes as bytea text: hex from server 9.0 on, escape format before."""
    if server_version >= 90000:
        return b"\\x" + binascii.hexlify(v)
    out = bytearray()
    for byte in v:
        if byte == ord("\\"):
            out += b"\\\\"
        elif byte < 0x20 or byte > 0x7E:
            out += b"\\%03o" % byte
        else:
            out.append(byte)
    return bytes(out)


def _format_float(v: float) -> str:
    if v != v:
        return "NaN"
    if v == float("inf"):
        return "+Inf"
    if v == float("-inf"):
        return "-Inf"
    return format(Decimal(repr(v)).normalize(), "f")


def encode(parameter_status: ParameterStatus, x: object, type_oid: int) -> bytes:
    """Encode a parameter value in text format for a column of type ``type_oid``."""
    if isinstance(x, bool):
        return b"true" if x else b"false"
    if isinstance(x, int):
        return str(x).encode("ascii")
    if isinstance(x, float):
        return _format_float(x).encode("ascii")
    if isinstance(x, (bytes, bytearray, memoryview)):
        if type_oid == Oid.BYTEA:
            return encode_bytea(parameter_status.server_version, bytes(x))
        return bytes(x)
    if isinstance(x, str):
        raw = x.encode("utf-8")
        if type_oid == Oid.BYTEA:
            return encode_bytea(parameter_status.server_version, raw)
        return raw
    if isinstance(x, (datetime.datetime, Timestamp)):
        return _format_ts(x)
    raise TypeError(f"pq: encode: unknown type for {type(x).__name__}")


def binary_encode(parameter_status: ParameterStatus, x: object) -> bytes:
    """Encode a parameter for binary transfer: raw bytes as-is, the rest as text."""
    if isinstance(x, (bytes, bytearray, memoryview)):
        return bytes(x)
    return encode(parameter_status, x, Oid.UNKNOWN)


def decode(parameter_status: ParameterStatus, s: bytes, typ: int, fmt: Format | int) -> object:
    """Decode a value received from the server in the given format."""
    if fmt == Format.BINARY:
        return binary_decode(parameter_status, s, typ)
    if fmt == Format.TEXT:
        return text_decode(parameter_status, s, typ)
    raise ValueError(f"pq: unknown format code {fmt}")


def _unpack(fmt: str, s: bytes) -> int:
    size = struct.calcsize(fmt)
    if len(s) < size:
        raise ValueError(f"pq: binary value too short: need {size} bytes, got {len(s)}")
    return struct.unpack_from(fmt, s)[0]


def binary_decode(parameter_status: ParameterStatus, s: bytes, typ: int) -> object:
    """Decode a binary-format value of type ``typ``."""
    if typ == Oid.BYTEA:
        return s
    if typ == Oid.INT8:
        return _unpack(">q", s)
    if typ == Oid.INT4:
        return _unpack(">i", s)
    if typ == Oid.INT2:
        return _unpack(">h", s)
    if typ == Oid.UUID:
        if len(s) != 16:
            raise ValueError(f"pq: unable to decode uuid; bad length: {len(s)}")
        return str(uuid.UUID(bytes=bytes(s))).encode("ascii")
    raise ValueError(f"pq: don't know how to decode binary parameter of type {int(typ)}")


def _parse_int(text: str) -> int:
    if not _ATOI.fullmatch(text):
        raise ValueError(f'pq: strconv.ParseInt: parsing "{text}": invalid syntax')
    value = int(text)
    if not _INT64_MIN <= value <= _INT64_MAX:
        raise ValueError(f'pq: strconv.ParseInt: parsing "{text}": value out of range')
    return value


def text_decode(parameter_status: ParameterStatus, s: bytes, typ: int) -> object:
    """Decode a text-format value of type ``typ``; unknown types come back as bytes."""
    if typ in (Oid.CHAR, Oid.VARCHAR, Oid.TEXT):
        return s.decode("utf-8")
    if typ == Oid.BYTEA:
        try:
            return parse_bytea(s)
        except ValueError as exc:
            raise ValueError(f"pq: {exc}") from exc
    if typ == Oid.TIMESTAMPTZ:
        return _parse_ts(parameter_status.current_location, s.decode("utf-8"))
    if typ in (Oid.TIMESTAMP, Oid.DATE):
        return _parse_ts(None, s.decode("utf-8"))
    if typ in (Oid.TIME, Oid.TIMETZ):
        return _parse_time_of_day(typ, s)
    if typ == Oid.BOOL:
        return s[0] == ord("t")
    if typ in (Oid.INT8, Oid.INT4, Oid.INT2):
        return _parse_int(s.decode("utf-8"))
    if typ in (Oid.FLOAT4, Oid.FLOAT8):
        text = s.decode("utf-8")
        try:
            return float(text)
        except ValueError as exc:
            raise ValueError(f'pq: strconv.ParseFloat: parsing "{text}": invalid syntax') from exc
    return s


def escape_copy_text(text: str) -> str:
    """Escape backslash, newline, carriage return and tab for COPY text format."""
    return text.translate(_COPY_ESCAPES)


def encode_copy_text(parameter_status: ParameterStatus, x: object) -> bytes:
    """Encode one value as a field of a COPY text-format row."""
    if x is None:
        return b"\\N"
    if isinstance(x, bool):
        return b"true" if x else b"false"
    if isinstance(x, int):
        return str(x).encode("ascii")
    if isinstance(x, float):
        return _format_float(x).encode("ascii")
    if isinstance(x, (bytes, bytearray, memoryview)):
        encoded = encode_bytea(parameter_status.server_version, bytes(x))
        return escape_copy_text(encoded.decode("latin-1")).encode("latin-1")
    if isinstance(x, str):
        return escape_copy_text(x).encode("utf-8")
    if isinstance(x, (datetime.datetime, Timestamp)):
        return _format_ts(x)
    raise TypeError(f"pq: encode: unknown type for {type(x).__name__}")


@dataclass
class NullTime:
    """A timestamp that may be NULL."""

    time: Timestamp | datetime.datetime | None = None
    valid: bool = False

    def scan(self, value: object) -> None:
        """Take a value read from the database; anything but a timestamp is NULL."""
        if isinstance(value, (Timestamp, datetime.datetime)):
            self.time = value
            self.valid = True
        else:
            self.time = None
            self.valid = False

    def value(self) -> Timestamp | datetime.datetime | None:
        """Return the timestamp, or None when NULL."""
        if not self.valid:
            return None
        return self.time