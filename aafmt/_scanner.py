"""AA lexical scanner — turns a byte buffer into a stream of tokens.

Four unit shapes, each announced by a one-byte marker:

    S<len>,<bytes>     STRING    scalar, exactly <len> raw bytes
    N<len>,<digits>    NUMBER    scalar, exactly <len> bytes of numeric text
    L<count>,...       SEQUENCE  header, followed by <count> values
    H<count>,...       MAP       header, followed by <count> key/value pairs

The scanner never recurses and never interprets scalar bodies: a scalar
comes back as a memoryview into the caller's buffer, so the payload is
not copied until someone asks for it.
"""

from __future__ import annotations

import enum
from typing import Any, Optional

from ._constants import (
    DELIMITER,
    MARKER_MAP,
    MARKER_NUMBER,
    MARKER_SEQUENCE,
    MARKER_STRING,
    MAX_LENGTH_DIGITS,
    MIN_PAIR_BYTES,
    MIN_VALUE_BYTES,
)
from ._errors import (
    ERR_MALFORMED_LENGTH,
    ERR_TRUNCATED_INPUT,
    ERR_UNKNOWN_MARKER,
    AaError,
    position_at,
)


class TokenKind(enum.Enum):
    STRING = "string"
    NUMBER = "number"
    SEQUENCE = "sequence"
    MAP = "map"

    @property
    def is_scalar(self) -> bool:
        return self in (TokenKind.STRING, TokenKind.NUMBER)


_MARKERS = {
    MARKER_STRING: TokenKind.STRING,
    MARKER_NUMBER: TokenKind.NUMBER,
    MARKER_SEQUENCE: TokenKind.SEQUENCE,
    MARKER_MAP: TokenKind.MAP,
}


class Token:
    """One syntactic unit.

    For scalars `size` is the declared byte length and `data` the borrowed
    body; for headers `size` is the element (SEQUENCE) or pair (MAP) count
    and `data` is None.
    """

    __slots__ = ("kind", "offset", "start", "size", "data")

    def __init__(self, kind: TokenKind, offset: int, start: int, size: int,
                 data: Optional[memoryview] = None) -> None:
        self.kind = kind
        self.offset = offset
        self.start = start
        self.size = size
        self.data = data

    def __repr__(self) -> str:
        return "Token({}, offset={}, size={})".format(self.kind.name, self.offset, self.size)


def _as_view(data: Any) -> memoryview:
    view = memoryview(data)
    if view.ndim != 1 or view.itemsize != 1 or view.format != "B":
        view = view.cast("B")
    return view


class Scanner:
    """Pull tokens one at a time from an in-memory buffer.

    The first error poisons the scanner: the cursor is left where the
    failure was detected and every later next_token() re-raises the same
    error, since the stream cannot be re-synchronized after it.
    """

    def __init__(self, data: Any, *, source: Optional[str] = None) -> None:
        self._buf = _as_view(data)
        self._pos = 0
        self._error: Optional[AaError] = None
        self.source = source

    @property
    def offset(self) -> int:
        return self._pos

    @property
    def remaining(self) -> int:
        return len(self._buf) - self._pos

    @property
    def at_end(self) -> bool:
        return self._pos >= len(self._buf)

    @property
    def buffer(self) -> memoryview:
        return self._buf

    def fail(self, code: str, msg: str, offset: int, **context: Any) -> AaError:
        """Build an AaError positioned at `offset` in this scanner's input."""
        return AaError(code, msg, offset=offset,
                       position=position_at(self._buf, offset, self.source), **context)

    def _poison(self, code: str, msg: str, **context: Any) -> AaError:
        self._error = self.fail(code, msg, self._pos, **context)
        return self._error

    def next_token(self) -> Optional[Token]:
        """Return the next token, or None at end of input."""
        if self._error is not None:
            raise self._error

        buf = self._buf
        if self._pos >= len(buf):
            return None

        offset = self._pos
        kind = _MARKERS.get(buf[offset])
        if kind is None:
            raise self._poison(ERR_UNKNOWN_MARKER,
                               "unknown marker byte 0x{:02x}".format(buf[offset]),
                               found="0x{:02x}".format(buf[offset]))
        self._pos += 1

        if kind.is_scalar:
            size = self._read_decimal("length")
            start = self._pos
            if size > len(buf) - start:
                raise self._poison(
                    ERR_TRUNCATED_INPUT,
                    "{} declares {} bytes but only {} remain".format(
                        kind.value, size, len(buf) - start))
            self._pos = start + size
            return Token(kind, offset, start, size, buf[start:start + size])

        count = self._read_decimal("count")
        # A declared count the rest of the input cannot hold is truncation;
        # catching it here keeps huge bogus counts from driving long loops.
        per_entry = MIN_PAIR_BYTES if kind is TokenKind.MAP else MIN_VALUE_BYTES
        if count * per_entry > len(buf) - self._pos:
            raise self._poison(
                ERR_TRUNCATED_INPUT,
                "{} declares {} entries but only {} bytes remain".format(
                    kind.value, count, len(buf) - self._pos))
        return Token(kind, offset, self._pos, count)

    def _read_decimal(self, what: str) -> int:
        """Read an unsigned decimal prefix terminated by DELIMITER."""
        buf = self._buf
        end = len(buf)
        start = self._pos
        value = 0
        while True:
            if self._pos >= end:
                raise self._poison(ERR_TRUNCATED_INPUT,
                                   "input ends inside {} prefix".format(what))
            b = buf[self._pos]
            if b == DELIMITER:
                break
            if not 0x30 <= b <= 0x39:
                raise self._poison(ERR_MALFORMED_LENGTH,
                                   "invalid byte 0x{:02x} in {} prefix".format(b, what),
                                   found="0x{:02x}".format(b))
            if self._pos - start >= MAX_LENGTH_DIGITS:
                raise self._poison(ERR_MALFORMED_LENGTH,
                                   "{} prefix longer than {} digits".format(
                                       what, MAX_LENGTH_DIGITS))
            value = value * 10 + (b - 0x30)
            self._pos += 1

        if self._pos == start:
            raise self._poison(ERR_MALFORMED_LENGTH, "missing {} prefix".format(what))
        self._pos += 1  # the delimiter
        return value
