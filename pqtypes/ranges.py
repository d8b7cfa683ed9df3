"""Range and multirange values in the server's text format."""

from __future__ import annotations

import datetime
import math
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable

from .encode import Timestamp, format_timestamp, parse_timestamp

RANGE_EMPTY = "empty"

_BOOL_TEXT = {
    "1": True,
    "t": True,
    "T": True,
    "TRUE": True,
    "true": True,
    "True": True,
    "0": False,
    "f": False,
    "F": False,
    "FALSE": False,
    "false": False,
    "False": False,
}


class RangeLowerBound(str, Enum):
    """Character that opens a range literal."""

    INCLUSIVE = "["
    EXCLUSIVE = "("
    DEFAULT = "["


class RangeUpperBound(str, Enum):
    """Character that closes a range literal."""

    INCLUSIVE = "]"
    EXCLUSIVE = ")"
    DEFAULT = ")"


def _to_bytes(src: object, what: str) -> bytes:
    if isinstance(src, str):
        return src.encode("utf-8")
    if isinstance(src, (bytes, bytearray, memoryview)):
        return bytes(src)
    raise TypeError(f"pq: cannot convert {type(src).__name__} to {what}")


def _format_float(v: float) -> str:
    """Shortest representation, switching to exponent form like ``%g``."""
    if math.isnan(v):
        return "NaN"
    if math.isinf(v):
        return "+Inf" if v > 0 else "-Inf"
    if v == 0:
        return "-0" if math.copysign(1.0, v) < 0 else "0"
    sign, digit_tuple, exponent = Decimal(repr(v)).as_tuple()
    digits = list(digit_tuple)
    while len(digits) > 1 and digits[-1] == 0:
        digits.pop()
        exponent += 1
    text = "".join(str(d) for d in digits)
    point = len(digits) + exponent
    exp = point - 1
    prefix = "-" if sign else ""
    if exp < -4 or exp >= 6:
        mantissa = text[0] + ("." + text[1:] if len(text) > 1 else "")
        exp_sign = "-" if exp < 0 else "+"
        return f"{prefix}{mantissa}e{exp_sign}{abs(exp):02d}"
    if point <= 0:
        return prefix + "0." + "0" * (-point) + text
    if point >= len(text):
        return prefix + text + "0" * (point - len(text))
    return prefix + text[:point] + "." + text[point:]


def _to_string(v: object) -> str:
    if v is None:
        raise TypeError("pq: converting NULL to string is unsupported")
    if isinstance(v, bool):
        return "true" if v else "false"
    if isinstance(v, float):
        return _format_float(v)
    if isinstance(v, (bytes, bytearray, memoryview)):
        return bytes(v).decode("utf-8")
    return str(v)


def _convert_bound(element_type: type | None, raw: bytes) -> Any:
    raw = raw.strip(b'"')
    text = raw.decode("utf-8")
    if element_type is None:
        return text
    if isinstance(element_type, type):
        if issubclass(element_type, Timestamp):
            return parse_timestamp(None, text)
        if issubclass(element_type, datetime.datetime):
            return parse_timestamp(None, text).to_datetime()
        if issubclass(element_type, datetime.date):
            return parse_timestamp(None, text).to_datetime().date()
    if callable(getattr(element_type, "scan", None)):
        target = element_type()
        target.scan(raw)
        return target
    if element_type is bool:
        try:
            return _BOOL_TEXT[text]
        except KeyError:
            raise ValueError(f"pq: cannot parse {text!r} as a boolean") from None
    if element_type is str:
        return text
    if element_type is bytes:
        return raw
    try:
        return element_type(text)
    except (ValueError, ArithmeticError) as exc:
        name = getattr(element_type, "__name__", repr(element_type))
        raise ValueError(f"pq: converting {text!r} to {name}: {exc}") from exc


def _format_bound(v: object) -> str:
    if v is None:
        return ""
    if isinstance(v, (Timestamp, datetime.datetime)):
        return '"' + format_timestamp(v).decode("ascii") + '"'
    to_value = getattr(v, "value", None)
    if callable(to_value):
        return '"' + _to_string(to_value()) + '"'
    return '"' + _to_string(v) + '"'


@dataclass
class Range:
    """A range value; a bound of None stands for infinity.

    ``element_type`` tells :meth:`scan` what to convert the bounds to: a
    type with a ``scan`` method is built empty and handed the raw bytes,
    timestamps and dates are parsed from the server's format, and anything
    else is called with the bound's text. Without it bounds stay strings.
    """

    lower: Any = None
    upper: Any = None
    lower_bound: RangeLowerBound | None = None
    upper_bound: RangeUpperBound | None = None
    element_type: type | None = field(default=None, compare=False)

    def scan(self, src: str | bytes) -> None:
        """Read a range literal such as ``[1,10)`` or ``empty``."""
        data = _to_bytes(src, "Range").strip()
        if not data:
            raise ValueError("pq: could not parse range: range is empty")
        if data == RANGE_EMPTY.encode("ascii"):
            return

        try:
            self.lower_bound = RangeLowerBound(chr(data[0]))
            self.upper_bound = RangeUpperBound(chr(data[-1]))
        except ValueError:
            raise ValueError(
                f"pq: could not parse range: invalid bounds in {data!r}"
            ) from None
        inner = data[1:-1]
        if not inner:
            raise ValueError("pq: could not parse range: range is empty")

        low, sep, high = inner.partition(b",")
        if not sep:
            raise ValueError("pq: could not parse range: missing comma")
        if low:
            self.lower = _convert_bound(self.element_type, low)
        if high:
            self.upper = _convert_bound(self.element_type, high)

    def is_empty(self) -> bool:
        """Return True for an unset range or equal bounds not both inclusive."""
        if self.lower_bound is None and self.upper_bound is None:
            return True
        if self.lower is None or self.upper is None:
            return False
        if (
            self.lower_bound == RangeLowerBound.INCLUSIVE
            and self.upper_bound == RangeUpperBound.INCLUSIVE
        ):
            return False
        return self.lower == self.upper

    def value(self) -> str:
        """Return the range as a literal the server accepts."""
        if self.is_empty():
            return RANGE_EMPTY
        lower_char = self.lower_bound.value if self.lower_bound is not None else ""
        upper_char = self.upper_bound.value if self.upper_bound is not None else ""
        return (
            lower_char
            + _format_bound(self.lower)
            + ","
            + _format_bound(self.upper)
            + upper_char
        )


def new_range(lower: Any, upper: Any) -> Range:
    """Make a range with the default bounds ``[lower,upper)``."""
    sample = lower if lower is not None else upper
    return Range(
        lower=lower,
        upper=upper,
        lower_bound=RangeLowerBound.DEFAULT,
        upper_bound=RangeUpperBound.DEFAULT,
        element_type=type(sample) if sample is not None else None,
    )


class MultiRange(list):
    """A list of ranges, read from and written as ``{range,range,...}``."""

    def __init__(self, ranges: Iterable[Range] = (), element_type: type | None = None) -> None:
        super().__init__(ranges)
        self.element_type = element_type

    def _scan_one(self, part: bytes) -> None:
        r = Range(element_type=self.element_type)
        r.scan(part.strip())
        self.append(r)

    def scan(self, src: str | bytes) -> None:
        """Read a multirange literal and append its ranges."""
        data = _to_bytes(src, "MultiRange").strip()
        if not data:
            raise ValueError("pq: could not parse multirange: multirange is empty")
        if data[:1] != b"{" or data[-1:] != b"}":
            raise ValueError("pq: invalid multirange format: missing braces")
        body = data[1:-1]

        opening = {ord(b.value) for b in RangeLowerBound}
        closing = {ord(b.value) for b in RangeUpperBound}
        block_start = 0
        depth = 0
        in_quote = False
        escaping = False
        for i, c in enumerate(body):
            if escaping:
                escaping = False
                continue
            if c == ord("\\"):
                escaping = True
            elif c == ord('"'):
                in_quote = not in_quote
            elif c in opening:
                if not in_quote:
                    depth += 1
            elif c in closing:
                if not in_quote:
                    depth -= 1
            elif c == ord(","):
                if not in_quote and depth == 0:
                    self._scan_one(body[block_start:i])
                    block_start = i + 1

        if block_start < len(body):
            self._scan_one(body[block_start:])

    def value(self) -> str:
        """Return the multirange as a literal the server accepts."""
        if not self:
            return "{}"
        return "{" + ",".join(r.value() for r in self) + "}"