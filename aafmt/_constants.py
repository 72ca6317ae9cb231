"""AA wire constants — unit markers, delimiter, boolean tokens, and limits.

The marker and delimiter bytes below are the structural placeholders this
package decodes; real ShopSite sample files should be checked against them
before claiming byte-level compatibility.
"""

from __future__ import annotations

from typing import FrozenSet

# ── Unit markers (single byte each) ──────────────────────────
# Every unit starts with one of these, followed by a decimal
# length/count prefix and DELIMITER.
MARKER_STRING: int = ord("S")
MARKER_NUMBER: int = ord("N")
MARKER_SEQUENCE: int = ord("L")
MARKER_MAP: int = ord("H")

# Terminates every length/count prefix.
DELIMITER: int = ord(",")

# ── Boolean tokens ───────────────────────────────────────────
# Booleans have no marker of their own; they ride on a scalar whose
# body is one of these literals.
BOOL_TRUE: FrozenSet[bytes] = frozenset({b"1", b"true"})
BOOL_FALSE: FrozenSet[bytes] = frozenset({b"0", b"false"})

# ── Limits ───────────────────────────────────────────────────
# Nesting bound for collections.  Protects against hostile or corrupt
# input.
MAX_DEPTH: int = 64

# Largest max_depth a session may ask for.  Typed binding still spends a
# few interpreter frames per level; this keeps the deepest allowed
# document well inside the default recursion limit of 1000.
MAX_DEPTH_LIMIT: int = 128

# A prefix longer than this is malformed, not merely large.
MAX_LENGTH_DIGITS: int = 18

# Smallest possible encoding of one value ("S0,") and of one map pair.
# Used to reject counts the remaining input cannot possibly hold.
MIN_VALUE_BYTES: int = 3
MIN_PAIR_BYTES: int = 2 * MIN_VALUE_BYTES

DEFAULT_ENCODING: str = "utf-8"
