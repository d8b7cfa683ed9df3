# pqtypes

Codecs and metadata helpers for values exchanged with a PostgreSQL server
in its text and binary formats. Every function works on plain Python
values and bytes; no database connection is involved.

## What it covers

- `pqtypes.oid` – the `Oid` enumeration of built-in type OIDs (array types
  carry an `_ARRAY` suffix, e.g. `Oid.INT4_ARRAY`) and `type_name(oid)`,
  which gives the server's upper-case type name (`"INT8"`, `"_INT4"`, ...)
  or `""` for an unknown OID.
- `pqtypes.fielddesc` – `FieldDesc(oid, size, mod)`, a column description
  with `scan_type()`, `name()`, `length()` (or `None` for fixed-width types)
  and `precision_scale()` (or `None` for non-numeric types).
- `pqtypes.pgerror` – `PGError`, an exception built from the body of an
  ErrorResponse or NoticeResponse message by `parse_error(data)`, with
  `fatal()`, `sqlstate()` and `get(k)`; `ErrorCode` and `ErrorClass` give
  the condition names of SQLSTATE codes; `Severity` lists the severity levels.
- `pqtypes.encode` – `encode`, `binary_encode`, `decode`, `text_decode` and
  `binary_decode` for parameter and result values (`Format`,
  `ParameterStatus`); `Timestamp`, a fixed-offset time with nanoseconds that
  also covers BC years and years past 9999; `parse_timestamp` and
  `format_timestamp` for the ISO, MDY date style; `parse_bytea` and
  `encode_bytea` for the hex and escape formats; `encode_copy_text` and
  `escape_copy_text` for COPY text rows; `enable_infinity_ts` /
  `disable_infinity_ts` to map `-infinity` and `infinity` to chosen
  timestamps; and `NullTime`, a timestamp that may be NULL.
- `pqtypes.ranges` – `Range` and `MultiRange` with their text format,
  `RangeLowerBound` / `RangeUpperBound`, and `new_range(lower, upper)` for a
  range with the default `[lower,upper)` bounds.
- `pqtypes.hstore` – `Hstore`, reading and writing the hstore text format.

## Install

```
pip install pqtypes
```

## Examples

```python
from pqtypes.encode import parse_timestamp, format_timestamp, encode_bytea, parse_bytea

ts = parse_timestamp(None, "2001-02-03 04:05:06.123-07")
format_timestamp(ts)                  # b"2001-02-03 04:05:06.123-07:00"

encode_bytea(90000, b"\x00\xff")      # b"\\x00ff"
parse_bytea(b"\\x00ff")               # b"\x00\xff"
```

```python
from pqtypes.pgerror import parse_error

err = parse_error(b"SERROR\x00C23505\x00Mduplicate key\x00\x00")
err.sqlstate()                        # "23505"
err.code.name()                       # "unique_violation"
str(err)                              # "pq: duplicate key"
```

```python
from pqtypes.ranges import Range, new_range
from pqtypes.hstore import Hstore

r = Range(element_type=int)
r.scan("[1,6)")                       # r.lower == 1, r.upper == 6
new_range(1, 6).value()               # '["1","6")'

h = Hstore()
h.scan(b'"a"=>"1", "b"=>NULL')
h.map                                 # {"a": "1", "b": None}
```

## What it does not do

This package only converts values. It does not open connections, speak
the client protocol, run queries, stream COPY data or listen for
notifications; pair it with code that does.

## Running the tests

```
pip install -e ".[test]"
pytest
```