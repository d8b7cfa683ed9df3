"""Values of the hstore key/value extension type."""

from __future__ import annotations

from dataclasses import dataclass

_WHITESPACE = frozenset(b" \t\n\r")


def _quote(s: str | None) -> str:
    if s is None:
        return "NULL"
    return '"' + s.replace("\\", "\\\\").replace('"', '\\"') + '"'


def _store(target: dict[str, str | None], key: bytearray, value: bytearray, did_quote: bool) -> None:
    text = value.decode("utf-8")
    if not did_quote and len(value) == 4 and text.lower() == "null":
        target[key.decode("utf-8")] = None
    else:
        target[key.decode("utf-8")] = text


@dataclass
class Hstore:
    """An hstore value: a mapping of keys to strings or None, or None for NULL."""

    map: dict[str, str | None] | None = None

    def scan(self, value: bytes | str | None) -> None:
        """Replace the mapping with one read from the server's text form."""
        if value is None:
            self.map = None
            return
        if isinstance(value, str):
            data = value.encode("utf-8")
        elif isinstance(value, (bytes, bytearray, memoryview)):
            data = bytes(value)
        else:
            raise TypeError(f"pq: cannot convert {type(value).__name__} to Hstore")

        result: dict[str, str | None] = {}
        pair = [bytearray(), bytearray()]
        side = 0
        in_quote = False
        did_quote = False
        saw_slash = False
        for b in data:
            if saw_slash:
                pair[side].append(b)
                saw_slash = False
                continue
            if b == ord("\\"):
                saw_slash = True
                continue
            if b == ord('"'):
                in_quote = not in_quote
                did_quote = True
                continue
            if not in_quote:
                if b in _WHITESPACE or b == ord("="):
                    continue
                if b == ord(">"):
                    side = 1
                    did_quote = False
                    continue
                if b == ord(","):
                    _store(result, pair[0], pair[1], did_quote)
                    pair = [bytearray(), bytearray()]
                    side = 0
                    continue
            pair[side].append(b)
        if len(data) > 1:
            _store(result, pair[0], pair[1], did_quote)
        self.map = result

    def value(self) -> bytes | None:
        """Return the text form to send to the server, or None for NULL."""
        if self.map is None:
            return None
        parts = (_quote(key) + "=>" + _quote(val) for key, val in self.map.items())
        return ",".join(parts).encode("utf-8")