"""AA error codes, the exception class, and error positions.

Every failure is fatal to the decode session that raised it.  The
`.code` attribute is one of the ERR_* strings below; callers and tests
compare against it rather than against message text.
"""

from __future__ import annotations

from typing import Any, Optional

# ── Scanner errors ───────────────────────────────────────────
ERR_UNKNOWN_MARKER: str = "ERR_UNKNOWN_MARKER"          # leading byte not a marker
ERR_MALFORMED_LENGTH: str = "ERR_MALFORMED_LENGTH"      # prefix missing / not decimal
ERR_TRUNCATED_INPUT: str = "ERR_TRUNCATED_INPUT"        # fewer bytes than declared

# ── Decoder errors ───────────────────────────────────────────
ERR_TYPE_MISMATCH: str = "ERR_TYPE_MISMATCH"            # wrong shape requested
ERR_EXHAUSTED_COLLECTION: str = "ERR_EXHAUSTED_COLLECTION"  # over-read
ERR_UNCONSUMED_ELEMENTS: str = "ERR_UNCONSUMED_ELEMENTS"    # under-read
ERR_DEPTH_EXCEEDED: str = "ERR_DEPTH_EXCEEDED"          # nesting > max_depth
ERR_INVALID_TEXT: str = "ERR_INVALID_TEXT"              # undecodable string scalar
ERR_NUMBER_FORMAT: str = "ERR_NUMBER_FORMAT"            # bad / out-of-range number
ERR_INVALID_BOOL: str = "ERR_INVALID_BOOL"              # scalar not a boolean token
ERR_TRAILING_DATA: str = "ERR_TRAILING_DATA"            # bytes after the document

# ── Binding errors ───────────────────────────────────────────
ERR_BINDING: str = "ERR_BINDING"                        # missing field, bad hint, ...


class Position:
    """Where in the input an error occurred.

    Lines and columns are 1-based and computed from the byte offset only
    when an error is built, so the happy path never pays for them.
    """

    __slots__ = ("source", "line", "column", "offset")

    def __init__(self, source: Optional[str], line: int, column: int, offset: int) -> None:
        self.source = source
        self.line = line
        self.column = column
        self.offset = offset

    def __str__(self) -> str:
        return "{}:{}:{}".format(self.source or "<input>", self.line, self.column)

    def __repr__(self) -> str:
        return "Position({!r}, line={}, column={}, offset={})".format(
            self.source, self.line, self.column, self.offset)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Position):
            return NotImplemented
        return (self.source, self.line, self.column, self.offset) == \
            (other.source, other.line, other.column, other.offset)


def position_at(buf: Any, offset: int, source: Optional[str] = None) -> Position:
    """Translate a byte offset in `buf` into a line/column Position.

    A CR+LF pair counts as one line break, like a bare CR or LF.
    """
    head = bytes(buf[:offset])
    head = head.replace(b"\r\n", b"\n").replace(b"\r", b"\n")
    line = head.count(b"\n") + 1
    column = len(head) - (head.rfind(b"\n") + 1) + 1
    return Position(source, line, column, offset)


class AaError(Exception):
    """Exception for AA decoding errors.

    Besides `.code`, the exception carries whatever context the raising
    layer had: the byte `.offset` and its `.position`, the `.expected`
    and `.found` shapes for mismatches, and the offending `.raw` bytes
    for number and boolean failures.
    """

    def __init__(self, code: str, msg: str = "", *,
                 offset: Optional[int] = None,
                 position: Optional[Position] = None,
                 expected: Optional[str] = None,
                 found: Optional[str] = None,
                 raw: Optional[bytes] = None) -> None:
        text = msg or code
        if position is not None:
            text = "{}: {}".format(position, text)
        super().__init__(text)
        self.code = code
        self.offset = offset if offset is not None or position is None else position.offset
        self.position = position
        self.expected = expected
        self.found = found
        self.raw = raw
