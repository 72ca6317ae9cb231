"""aafmt — decoder for the AA length-prefixed catalog format.

Decode AA documents into plain Python data, into typed objects, or
straight to JSON.

Quick start:
    >>> from aafmt import decode_document
    >>> decode_document(b"H2,S2,okN1,1S1,0N1,0")
    {'ok': 1, '0': 0}

Typed decoding binds documents onto dataclasses and type hints:
    >>> from dataclasses import dataclass
    >>> from aafmt import from_bytes
    >>> @dataclass
    ... class Item:
    ...     sku: str
    ...     qty: int
    >>> from_bytes(b"H2,S3,skuS4,A-17S3,qtyN1,3", Item)
    Item(sku='A-17', qty=3)

For pull-style access, drive a Decoder directly:
    >>> from aafmt import Decoder
    >>> dec = Decoder(b"L2,S1,aS1,b")
    >>> with dec.begin_sequence() as seq:
    ...     [item.expect_string() for item in seq]
    ['a', 'b']
"""

from __future__ import annotations

import logging
import os
from typing import Any, Callable, List, Optional, Tuple, Union

from ._binding import AA_NAME, aa_field, bind, from_bytes
from ._constants import DEFAULT_ENCODING, MAX_DEPTH, MAX_DEPTH_LIMIT
from ._decoder import Decoder, MapAccess, SequenceAccess
from ._errors import (
    ERR_BINDING,
    ERR_DEPTH_EXCEEDED,
    ERR_EXHAUSTED_COLLECTION,
    ERR_INVALID_BOOL,
    ERR_INVALID_TEXT,
    ERR_MALFORMED_LENGTH,
    ERR_NUMBER_FORMAT,
    ERR_TRAILING_DATA,
    ERR_TRUNCATED_INPUT,
    ERR_TYPE_MISMATCH,
    ERR_UNCONSUMED_ELEMENTS,
    ERR_UNKNOWN_MARKER,
    AaError,
    Position,
)
from ._json_adapter import to_json
from ._scanner import Scanner, Token, TokenKind

__version__ = "0.3.0"

__all__ = [
    # Public API functions
    "decode_document",
    "decode_file",
    "from_bytes",
    "bind",
    "aa_field",
    "aa_to_json",
    "to_json",
    # Pull API
    "Decoder",
    "SequenceAccess",
    "MapAccess",
    "Scanner",
    "Token",
    "TokenKind",
    # Exception
    "AaError",
    "Position",
    # Error codes
    "ERR_UNKNOWN_MARKER",
    "ERR_MALFORMED_LENGTH",
    "ERR_TRUNCATED_INPUT",
    "ERR_TYPE_MISMATCH",
    "ERR_EXHAUSTED_COLLECTION",
    "ERR_UNCONSUMED_ELEMENTS",
    "ERR_DEPTH_EXCEEDED",
    "ERR_INVALID_TEXT",
    "ERR_NUMBER_FORMAT",
    "ERR_INVALID_BOOL",
    "ERR_TRAILING_DATA",
    "ERR_BINDING",
    # Constants
    "AA_NAME",
    "MAX_DEPTH",
    "MAX_DEPTH_LIMIT",
    "DEFAULT_ENCODING",
    # Types
    "DynamicValue",
]

logger = logging.getLogger(__name__)

DynamicValue = Union[str, int, float, bool, List[Any], dict]


# ── Untyped API ───────────────────────────────────────────────

def decode_document(data: Any, *,
                    max_depth: int = MAX_DEPTH,
                    encoding: str = DEFAULT_ENCODING,
                    object_pairs_hook: Optional[Callable[[List[Tuple[str, Any]]], Any]] = None,
                    parse_int: Optional[Callable[[str], Any]] = None,
                    parse_float: Optional[Callable[[str], Any]] = None,
                    allow_trailing: bool = True,
                    source: Optional[str] = None) -> DynamicValue:
    """Decode one AA document into str/int/float/list/dict values.

    Maps become dicts in document order; for duplicate keys the last value
    wins.  Pass object_pairs_hook=list to keep every pair verbatim.
    Bytes after the document are ignored unless allow_trailing=False.
    """
    decoder = Decoder(data, max_depth=max_depth, encoding=encoding, source=source)
    value = decoder.read_value(object_pairs_hook=object_pairs_hook,
                               parse_int=parse_int, parse_float=parse_float)
    decoder.finish(allow_trailing=allow_trailing)
    logger.debug("decoded %d-byte document from %s", decoder.offset, source or "<input>")
    return value


def decode_file(path: Union[str, "os.PathLike[str]"], **options: Any) -> DynamicValue:
    """Read and decode an AA file; error positions name the file."""
    with open(path, "rb") as f:
        data = f.read()
    options.setdefault("source", os.fspath(path))
    return decode_document(data, **options)


def aa_to_json(data: Any, *,
               pretty: bool = False,
               indent: Optional[int] = None,
               indent_tabs: bool = False,
               **options: Any) -> str:
    """Decode an AA document and render it as JSON text.

    Remaining keyword options go to decode_document().
    """
    value = decode_document(data, **options)
    return to_json(value, pretty=pretty, indent=indent, indent_tabs=indent_tabs)
