"""AA → JSON adapter.

Renders a decoded DynamicValue as JSON text.

Type mapping:
    MAP       → JSON object   (keys in document order)
    SEQUENCE  → JSON array
    STRING    → JSON string   (re-escaped by the json module)
    NUMBER    → JSON number   (re-parsed: int or float)

Non-ASCII text is written as-is rather than as \\u escapes, so the
output must be stored as UTF-8.
"""

from __future__ import annotations

import json
from typing import Any, Optional, Union

DEFAULT_INDENT: int = 4

_COMPACT_SEPARATORS = (",", ":")
_PRETTY_SEPARATORS = (",", ": ")


def to_json(value: Any, *,
            pretty: bool = False,
            indent: Optional[int] = None,
            indent_tabs: bool = False) -> str:
    """Serialize a DynamicValue to JSON text (no trailing newline).

    Compact output has no whitespace at all.  Pretty output indents by
    `indent` spaces (default 4), or by one tab per level with
    indent_tabs=True.
    """
    if not pretty:
        if indent is not None or indent_tabs:
            raise ValueError("indentation options require pretty=True")
        return json.dumps(value, ensure_ascii=False, separators=_COMPACT_SEPARATORS,
                          allow_nan=False)

    if indent is not None and indent_tabs:
        raise ValueError("indent and indent_tabs are mutually exclusive")
    if indent is not None and indent < 1:
        raise ValueError("indent must be at least 1")

    step: Union[int, str] = "\t" if indent_tabs else (indent or DEFAULT_INDENT)
    return json.dumps(value, ensure_ascii=False, indent=step,
                      separators=_PRETTY_SEPARATORS, allow_nan=False)

