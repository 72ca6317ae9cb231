"""AA structured decoder — type-directed, pull-based access over the scanner.

The decoder offers the calls a data-binding layer needs:

    expect_string / expect_bytes / expect_number / expect_int /
    expect_float / expect_bool / expect_char      one scalar
    begin_sequence / begin_map                   a collection cursor
    peek / peek_kind                             one-token lookahead
    skip_value                                   discard any value
    read_value                                   untyped decode

Collection protocol.  A cursor returned by begin_sequence()/begin_map() is
bound to the declared count.  Each value inside it is read through a slot:
SequenceAccess.next_element() (or MapAccess.next_key() + next_value())
opens one, and the next scalar read or collection close fills it.  Reading
past the declared count raises ERR_EXHAUSTED_COLLECTION; moving on while a
slot or a nested collection still has unread entries raises
ERR_UNCONSUMED_ELEMENTS.  A nested collection whose entries have all been
read is closed implicitly when its parent continues, so the `with` block
is optional for well-behaved callers.

Text is decoded lazily: a STRING scalar is only checked against the
session's encoding when someone asks for it as text.  Skipped values and
values read with expect_bytes() never pay for validation.

The first AaError poisons the session; every later call re-raises it.
"""

from __future__ import annotations

import codecs
import logging
import math
import re
from typing import Any, Callable, Iterator, List, Optional, Tuple, Union

from ._constants import (
    BOOL_FALSE,
    BOOL_TRUE,
    DEFAULT_ENCODING,
    MAX_DEPTH,
    MAX_DEPTH_LIMIT,
)
from ._errors import (
    ERR_DEPTH_EXCEEDED,
    ERR_EXHAUSTED_COLLECTION,
    ERR_INVALID_BOOL,
    ERR_INVALID_TEXT,
    ERR_NUMBER_FORMAT,
    ERR_TRAILING_DATA,
    ERR_TRUNCATED_INPUT,
    ERR_TYPE_MISMATCH,
    ERR_UNCONSUMED_ELEMENTS,
    AaError,
)
from ._scanner import Scanner, Token, TokenKind

logger = logging.getLogger(__name__)

_ANY_KIND = tuple(TokenKind)

# Numeric bodies.  Python's int()/float() also accept "1_000", "inf",
# "nan" and surrounding whitespace, none of which are AA numbers, so the
# text is matched before conversion.
_INT_RE = re.compile(rb"[+-]?[0-9]+")
_FLOAT_RE = re.compile(rb"[+-]?(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)(?:[eE][+-]?[0-9]+)?")


def _int_bounds(bits: Optional[int], signed: bool) -> Tuple[Optional[int], Optional[int]]:
    if bits is None:
        return (None, None) if signed else (0, None)
    if signed:
        return -(1 << (bits - 1)), (1 << (bits - 1)) - 1
    return 0, (1 << bits) - 1


def _int_type_name(bits: Optional[int], signed: bool) -> str:
    if bits is None:
        return "integer" if signed else "unsigned integer"
    return "{}int{}".format("" if signed else "u", bits)


class _Frame:
    """Book-keeping for one open collection."""

    __slots__ = ("kind", "size", "offset", "remaining", "slot_open", "key_pending", "closed")

    def __init__(self, kind: TokenKind, size: int, offset: int) -> None:
        self.kind = kind
        self.size = size
        self.offset = offset
        self.remaining = size
        self.slot_open = False     # a value slot was handed out and not yet filled
        self.key_pending = False   # map only: key read, next_value() not yet called
        self.closed = False

    @property
    def finished(self) -> bool:
        return self.remaining == 0 and not self.slot_open and not self.key_pending

    def describe(self) -> str:
        unit = "pairs" if self.kind is TokenKind.MAP else "elements"
        return "{} of {} {} at offset {}".format(self.kind.value, self.size, unit, self.offset)


class Decoder:
    """One decode session over an in-memory buffer.

    Strings and byte views handed out by expect_bytes()/next_key_bytes()
    borrow from `data`: keep the buffer alive and unmodified while they
    are in use, or ask for owned copies.
    """

    def __init__(self, data: Any, *,
                 max_depth: int = MAX_DEPTH,
                 encoding: str = DEFAULT_ENCODING,
                 source: Optional[str] = None) -> None:
        if not 1 <= max_depth <= MAX_DEPTH_LIMIT:
            raise ValueError("max_depth must be between 1 and {}".format(MAX_DEPTH_LIMIT))
        codecs.lookup(encoding)  # unknown encodings fail here, not mid-document
        self._scanner = Scanner(data, source=source)
        self._peeked: Optional[Token] = None
        self._frames: List[_Frame] = []
        self._error: Optional[AaError] = None
        self.max_depth = max_depth
        self.encoding = encoding

    # ── Introspection ─────────────────────────────────────────

    @property
    def source(self) -> Optional[str]:
        return self._scanner.source

    @property
    def depth(self) -> int:
        """Number of collections currently open."""
        return len(self._frames)

    @property
    def offset(self) -> int:
        """Byte offset of the next unread token."""
        if self._peeked is not None:
            return self._peeked.offset
        return self._scanner.offset

    @property
    def error(self) -> Optional[AaError]:
        """The error that poisoned this session, if any."""
        return self._error

    def is_self_describing(self) -> bool:
        return True

    # ── Session plumbing ──────────────────────────────────────

    def _check(self) -> None:
        if self._error is not None:
            raise self._error

    def _fail(self, code: str, msg: str, offset: Optional[int] = None, **context: Any) -> AaError:
        err = self._scanner.fail(code, msg, self.offset if offset is None else offset, **context)
        self._poisoned(err)
        return err

    def fail(self, code: str, msg: str, offset: Optional[int] = None, **context: Any) -> AaError:
        """Record an error raised by a layer above the decoder and return it.

        Binding code calls this so that its own failures poison the
        session and carry a position, exactly like the decoder's.
        """
        self._check()
        return self._fail(code, msg, offset, **context)

    def _poisoned(self, err: AaError) -> None:
        self._error = err
        logger.debug("decode session poisoned: [%s] %s", err.code, err)

    def _peek_token(self) -> Optional[Token]:
        if self._peeked is None:
            try:
                self._peeked = self._scanner.next_token()
            except AaError as e:
                self._poisoned(e)
                raise
        return self._peeked

    def _take(self, expected: str, *kinds: TokenKind) -> Token:
        """Consume the next token if it is one of `kinds`.

        On a mismatch the token stays in the peek slot, so the failed
        request has no effect on the stream.
        """
        tok = self._peek_token()
        if tok is None:
            raise self._fail(ERR_TRUNCATED_INPUT,
                             "expected {}, found end of input".format(expected),
                             expected=expected, found="end of input")
        if tok.kind not in kinds:
            raise self._fail(ERR_TYPE_MISMATCH,
                             "expected {}, found {}".format(expected, tok.kind.value),
                             tok.offset, expected=expected, found=tok.kind.value)
        self._peeked = None
        return tok

    def _begin_value(self, what: str) -> None:
        self._check()
        if self._frames and not self._frames[-1].slot_open:
            top = self._frames[-1]
            raise self._fail(
                ERR_EXHAUSTED_COLLECTION,
                "{} read with no open slot in {}".format(what, top.describe()))

    def _end_value(self) -> None:
        if self._frames:
            self._frames[-1].slot_open = False

    def _push(self, tok: Token) -> _Frame:
        if len(self._frames) >= self.max_depth:
            raise self._fail(ERR_DEPTH_EXCEEDED,
                             "nesting deeper than {} levels".format(self.max_depth),
                             tok.offset)
        frame = _Frame(tok.kind, tok.size, tok.offset)
        self._frames.append(frame)
        return frame

    def _pop(self) -> None:
        self._frames.pop().closed = True
        self._end_value()

    def _settle(self, frame: _Frame) -> None:
        """Make `frame` the innermost open collection again.

        Collections opened inside it must be fully read; those are closed
        here on the caller's behalf.
        """
        self._check()
        if frame.closed:
            raise self._fail(ERR_EXHAUSTED_COLLECTION,
                             "{} is already closed".format(frame.describe()))
        while self._frames[-1] is not frame:
            top = self._frames[-1]
            if not top.finished:
                raise self._fail(ERR_UNCONSUMED_ELEMENTS,
                                 "{} was left with unread entries".format(top.describe()))
            self._pop()

    def _decode_text(self, tok: Token) -> str:
        try:
            return str(tok.data, self.encoding)
        except UnicodeDecodeError as e:
            raise self._fail(ERR_INVALID_TEXT,
                             "string is not valid {}: {}".format(self.encoding, e.reason),
                             tok.start + e.start, raw=bytes(tok.data))

    # ── Scalars ───────────────────────────────────────────────

    def expect_string(self) -> str:
        self._begin_value("string")
        tok = self._take("string", TokenKind.STRING)
        text = self._decode_text(tok)
        self._end_value()
        return text

    def expect_char(self) -> str:
        self._begin_value("character")
        tok = self._take("character", TokenKind.STRING)
        text = self._decode_text(tok)
        if len(text) != 1:
            raise self._fail(ERR_TYPE_MISMATCH,
                             "expected a single character, found {} characters".format(len(text)),
                             tok.offset, expected="character", found="string")
        self._end_value()
        return text

    def expect_bytes(self, copy: bool = False) -> Union[memoryview, bytes]:
        """Return the next scalar's raw body, STRING or NUMBER alike.

        By default the result is a view into the input buffer; pass
        copy=True for an owned bytes object.
        """
        self._begin_value("bytes")
        tok = self._take("scalar", TokenKind.STRING, TokenKind.NUMBER)
        self._end_value()
        return bytes(tok.data) if copy else tok.data

    def _number_token(self, expected: str) -> Tuple[Token, bytes]:
        self._begin_value(expected)
        tok = self._take(expected, TokenKind.NUMBER)
        return tok, bytes(tok.data)

    def _parse_number(self, tok: Token, raw: bytes,
                      parse_int: Optional[Callable[[str], Any]] = None,
                      parse_float: Optional[Callable[[str], Any]] = None) -> Any:
        if _INT_RE.fullmatch(raw):
            if parse_int is not None:
                return parse_int(raw.decode("ascii"))
            return self._to_int(tok, raw, "number")
        if _FLOAT_RE.fullmatch(raw):
            text = raw.decode("ascii")
            if parse_float is not None:
                return parse_float(text)
            return self._finite_float(tok, raw, text)
        raise self._fail(ERR_NUMBER_FORMAT, "not a number: {!r}".format(raw),
                         tok.start, raw=raw)

    def _to_int(self, tok: Token, raw: bytes, expected: str) -> int:
        # Python 3.11+ refuses to convert integer text past
        # sys.get_int_max_str_digits() and raises ValueError.
        try:
            return int(raw.decode("ascii"))
        except ValueError:
            raise self._fail(ERR_NUMBER_FORMAT,
                             "integer too long to convert: {} digits".format(len(raw)),
                             tok.start, raw=raw, expected=expected)

    def _finite_float(self, tok: Token, raw: bytes, text: str) -> float:
        value = float(text)
        if math.isinf(value):
            raise self._fail(ERR_NUMBER_FORMAT, "number overflows float: {!r}".format(raw),
                             tok.start, raw=raw)
        return value

    def expect_number(self) -> Union[int, float]:
        """Integral text gives an int, anything else numeric a float."""
        tok, raw = self._number_token("number")
        value = self._parse_number(tok, raw)
        self._end_value()
        return value

    def expect_int(self, bits: Optional[int] = None, signed: bool = True) -> int:
        """Parse the next NUMBER as an integer of the given width.

        bits=None means unbounded (non-negative when signed=False).
        """
        name = _int_type_name(bits, signed)
        tok, raw = self._number_token(name)
        if not _INT_RE.fullmatch(raw):
            raise self._fail(ERR_NUMBER_FORMAT, "not an integer: {!r}".format(raw),
                             tok.start, raw=raw, expected=name)
        lo, hi = _int_bounds(bits, signed)
        if bits is not None:
            digits = len(raw.lstrip(b"+-").lstrip(b"0"))
            if digits > len(str(max(-lo, hi))):
                raise self._fail(ERR_NUMBER_FORMAT,
                                 "{}-digit number out of range for {}".format(digits, name),
                                 tok.start, raw=raw, expected=name)
        value = self._to_int(tok, raw, name)
        if (lo is not None and value < lo) or (hi is not None and value > hi):
            raise self._fail(ERR_NUMBER_FORMAT,
                             "{} out of range for {}".format(value, name),
                             tok.start, raw=raw, expected=name)
        self._end_value()
        return value

    def expect_float(self) -> float:
        tok, raw = self._number_token("float")
        if not _FLOAT_RE.fullmatch(raw):
            raise self._fail(ERR_NUMBER_FORMAT, "not a float: {!r}".format(raw),
                             tok.start, raw=raw, expected="float")
        value = self._finite_float(tok, raw, raw.decode("ascii"))
        self._end_value()
        return value

    def expect_bool(self) -> bool:
        self._begin_value("boolean")
        tok = self._take("boolean", TokenKind.NUMBER, TokenKind.STRING)
        raw = bytes(tok.data)
        if raw in BOOL_TRUE:
            value = True
        elif raw in BOOL_FALSE:
            value = False
        else:
            raise self._fail(ERR_INVALID_BOOL, "not a boolean: {!r}".format(raw),
                             tok.start, raw=raw, expected="boolean")
        self._end_value()
        return value

    # ── Collections ───────────────────────────────────────────

    def begin_sequence(self) -> "SequenceAccess":
        self._begin_value("sequence")
        tok = self._take("sequence", TokenKind.SEQUENCE)
        return SequenceAccess(self, self._push(tok))

    def begin_map(self) -> "MapAccess":
        self._begin_value("map")
        tok = self._take("map", TokenKind.MAP)
        return MapAccess(self, self._push(tok))

    # ── Lookahead ─────────────────────────────────────────────

    def peek(self) -> Optional[Token]:
        """Return the next token without consuming it (None at end of input)."""
        self._check()
        return self._peek_token()

    def peek_kind(self) -> Optional[TokenKind]:
        tok = self.peek()
        return None if tok is None else tok.kind

    # ── Skip / untyped ────────────────────────────────────────

    def skip_value(self) -> None:
        """Discard the next value, however deeply nested, without decoding it.

        Walks the structure with an explicit stack, so skipping costs no
        Python recursion; the depth bound and the string-key rule still
        apply.
        """
        self._begin_value("value")
        tok = self._take("value", *_ANY_KIND)
        # One [units_left, is_map] entry per collection being skipped; a map
        # of n pairs contributes 2n units, keys at even counts.
        pending: List[List[Any]] = []
        while True:
            if tok.kind is TokenKind.SEQUENCE or tok.kind is TokenKind.MAP:
                if len(self._frames) + len(pending) >= self.max_depth:
                    raise self._fail(ERR_DEPTH_EXCEEDED,
                                     "nesting deeper than {} levels".format(self.max_depth),
                                     tok.offset)
                if tok.kind is TokenKind.MAP:
                    pending.append([2 * tok.size, True])
                else:
                    pending.append([tok.size, False])
            while pending and pending[-1][0] == 0:
                pending.pop()
            if not pending:
                break
            entry = pending[-1]
            is_key = entry[1] and entry[0] % 2 == 0
            entry[0] -= 1
            if is_key:
                tok = self._take("map key (string)", TokenKind.STRING)
            else:
                tok = self._take("value", *_ANY_KIND)
        self._end_value()

    def read_value(self, *,
                   object_pairs_hook: Optional[Callable[[List[Tuple[str, Any]]], Any]] = None,
                   parse_int: Optional[Callable[[str], Any]] = None,
                   parse_float: Optional[Callable[[str], Any]] = None) -> Any:
        """Decode the next value into plain Python data.

        STRING -> str, NUMBER -> int or float, SEQUENCE -> list, MAP -> dict
        (later duplicate keys overwrite earlier ones).  The hooks behave as
        in json.loads: object_pairs_hook receives every (key, value) pair in
        document order, duplicates included.

        Nesting is walked with an explicit stack, so only max_depth bounds
        how deep a document may go.
        """
        self._check()
        # One (cursor, collected items) entry per open collection; a map
        # collects keys and values alternately.
        stack: List[Tuple[_CollectionAccess, List[Any]]] = []
        while True:
            kind = self.peek_kind()
            if kind is TokenKind.SEQUENCE:
                stack.append((self.begin_sequence(), []))
            elif kind is TokenKind.MAP:
                stack.append((self.begin_map(), []))
            else:
                value = self._read_scalar(kind, parse_int, parse_float)
                if not stack:
                    return value
                stack[-1][1].append(value)

            while stack:
                access, items = stack[-1]
                if access.remaining:
                    if isinstance(access, MapAccess):
                        items.append(access.next_key())
                        access.next_value()
                    else:
                        access.next_element()
                    break
                access.close()
                stack.pop()
                if isinstance(access, MapAccess):
                    pairs = list(zip(items[::2], items[1::2]))
                    if object_pairs_hook is not None:
                        value = object_pairs_hook(pairs)
                    else:
                        value = dict(pairs)
                else:
                    value = items
                if not stack:
                    return value
                stack[-1][1].append(value)

    def _read_scalar(self, kind: Optional[TokenKind],
                     parse_int: Optional[Callable[[str], Any]],
                     parse_float: Optional[Callable[[str], Any]]) -> Any:
        if kind is TokenKind.STRING:
            return self.expect_string()
        # NUMBER, or end of input (which _take reports as truncation).
        self._begin_value("number")
        tok = self._take("value", *_ANY_KIND)
        value = self._parse_number(tok, bytes(tok.data), parse_int, parse_float)
        self._end_value()
        return value

    # ── End of session ────────────────────────────────────────

    def finish(self, *, allow_trailing: bool = True) -> None:
        """Check that every collection was fully read.

        With allow_trailing=False, any byte left after the last value is
        an error.
        """
        self._check()
        while self._frames:
            top = self._frames[-1]
            if not top.finished:
                raise self._fail(ERR_UNCONSUMED_ELEMENTS,
                                 "{} was left with unread entries".format(top.describe()))
            self._pop()
        if allow_trailing:
            return
        if self._peeked is not None or not self._scanner.at_end:
            left = len(self._scanner.buffer) - self.offset
            raise self._fail(ERR_TRAILING_DATA,
                             "{} bytes of trailing data after the document".format(left))


class _CollectionAccess:
    """Shared cursor behaviour: counting, closing, context management."""

    def __init__(self, decoder: Decoder, frame: _Frame) -> None:
        self._decoder = decoder
        self._frame = frame

    @property
    def size(self) -> int:
        """Declared element/pair count."""
        return self._frame.size

    @property
    def remaining(self) -> int:
        return self._frame.remaining

    def __len__(self) -> int:
        return self._frame.remaining

    def close(self) -> None:
        """Close the collection; every declared entry must have been read."""
        dec = self._decoder
        dec._check()
        if self._frame.closed:
            return
        dec._settle(self._frame)
        if not self._frame.finished:
            raise dec._fail(ERR_UNCONSUMED_ELEMENTS,
                            "{} closed with unread entries".format(self._frame.describe()))
        dec._pop()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is None:
            self.close()
        return False


class SequenceAccess(_CollectionAccess):
    """Cursor over the elements of one SEQUENCE."""

    def next_element(self) -> Decoder:
        """Open the slot for the next element and return the decoder to read it with."""
        dec = self._decoder
        frame = self._frame
        dec._settle(frame)
        if frame.slot_open:
            raise dec._fail(ERR_UNCONSUMED_ELEMENTS,
                            "previous element of {} was not read".format(frame.describe()))
        if frame.remaining == 0:
            raise dec._fail(ERR_EXHAUSTED_COLLECTION,
                            "{} has no more elements".format(frame.describe()))
        frame.remaining -= 1
        frame.slot_open = True
        return dec

    def __iter__(self) -> Iterator[Decoder]:
        for _ in range(self._frame.remaining):
            yield self.next_element()


class MapAccess(_CollectionAccess):
    """Cursor over the pairs of one MAP.  Keys and values strictly alternate."""

    def _next_key_token(self) -> Token:
        dec = self._decoder
        frame = self._frame
        dec._settle(frame)
        if frame.slot_open:
            raise dec._fail(ERR_UNCONSUMED_ELEMENTS,
                            "value for the previous key of {} was not read".format(frame.describe()))
        if frame.key_pending:
            raise dec._fail(ERR_UNCONSUMED_ELEMENTS,
                            "previous key of {} has no value read".format(frame.describe()))
        if frame.remaining == 0:
            raise dec._fail(ERR_EXHAUSTED_COLLECTION,
                            "{} has no more pairs".format(frame.describe()))
        tok = dec._take("map key (string)", TokenKind.STRING)
        frame.key_pending = True
        return tok

    def next_key(self) -> str:
        return self._decoder._decode_text(self._next_key_token())

    def next_key_bytes(self) -> memoryview:
        """Like next_key(), but return the raw key bytes borrowed from the input."""
        return self._next_key_token().data

    def next_value(self) -> Decoder:
        """Open the slot for the current key's value and return the decoder to read it with."""
        dec = self._decoder
        frame = self._frame
        dec._settle(frame)
        if frame.slot_open:
            raise dec._fail(ERR_UNCONSUMED_ELEMENTS,
                            "previous value of {} was not read".format(frame.describe()))
        if not frame.key_pending:
            raise dec._fail(ERR_EXHAUSTED_COLLECTION,
                            "value requested with no key pending in {}".format(frame.describe()))
        frame.key_pending = False
        frame.remaining -= 1
        frame.slot_open = True
        return dec

    def __iter__(self) -> Iterator[str]:
        for _ in range(self._frame.remaining):
            yield self.next_key()
