"""Unit tests for the AA lexical scanner."""

from __future__ import annotations

import os
import sys
import unittest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from aafmt import (
    AaError,
    ERR_MALFORMED_LENGTH,
    ERR_TRUNCATED_INPUT,
    ERR_UNKNOWN_MARKER,
    Scanner,
    TokenKind,
)


def _tokens(data: bytes) -> list:
    sc = Scanner(data)
    out = []
    while True:
        tok = sc.next_token()
        if tok is None:
            return out
        out.append(tok)


# ── Recognized units ──────────────────────────────────────────

class TestUnits(unittest.TestCase):
    def test_string_scalar(self):
        (tok,) = _tokens(b"S5,hello")
        self.assertIs(tok.kind, TokenKind.STRING)
        self.assertEqual(tok.size, 5)
        self.assertEqual(bytes(tok.data), b"hello")
        self.assertEqual(tok.offset, 0)
        self.assertEqual(tok.start, 3)

    def test_number_scalar(self):
        (tok,) = _tokens(b"N4,-1.5")
        self.assertIs(tok.kind, TokenKind.NUMBER)
        self.assertEqual(bytes(tok.data), b"-1.5")

    def test_empty_scalar(self):
        (tok,) = _tokens(b"S0,")
        self.assertEqual(tok.size, 0)
        self.assertEqual(bytes(tok.data), b"")

    def test_headers_do_not_recurse(self):
        toks = _tokens(b"H1,S1,kL2,N1,1N1,2")
        self.assertEqual([t.kind for t in toks], [
            TokenKind.MAP, TokenKind.STRING, TokenKind.SEQUENCE,
            TokenKind.NUMBER, TokenKind.NUMBER,
        ])
        self.assertEqual(toks[0].size, 1)
        self.assertIsNone(toks[0].data)
        self.assertEqual(toks[2].size, 2)

    def test_multi_digit_length(self):
        body = b"x" * 123
        (tok,) = _tokens(b"S123," + body)
        self.assertEqual(bytes(tok.data), body)

    def test_end_of_input(self):
        sc = Scanner(b"")
        self.assertIsNone(sc.next_token())
        self.assertTrue(sc.at_end)
        # Still None, not an error.
        self.assertIsNone(sc.next_token())


# ── Length exactness ──────────────────────────────────────────

class TestLengthExactness(unittest.TestCase):
    def test_body_holding_grammar_bytes(self):
        """Markers, delimiters and newlines inside a body are just bytes."""
        body = b"S3,H2,\nL9,,N"
        toks = _tokens(b"S12," + body + b"N1,7")
        self.assertEqual(bytes(toks[0].data), body)
        self.assertEqual(bytes(toks[1].data), b"7")

    def test_body_is_zero_copy_view(self):
        buf = bytearray(b"S3,abc")
        (tok,) = _tokens(buf)
        self.assertIsInstance(tok.data, memoryview)
        buf[3] = ord("z")
        self.assertEqual(bytes(tok.data), b"zbc")

    def test_accepts_memoryview_input(self):
        (tok,) = _tokens(memoryview(b"..S2,hi")[2:])
        self.assertEqual(bytes(tok.data), b"hi")


# ── Errors ────────────────────────────────────────────────────

class TestScanErrors(unittest.TestCase):
    def _error(self, data: bytes) -> AaError:
        sc = Scanner(data)
        with self.assertRaises(AaError) as ctx:
            while sc.next_token() is not None:
                pass
        return ctx.exception

    def test_unknown_marker(self):
        err = self._error(b"X1,a")
        self.assertEqual(err.code, ERR_UNKNOWN_MARKER)
        self.assertEqual(err.offset, 0)

    def test_unknown_marker_after_valid_token(self):
        err = self._error(b"S1,a?")
        self.assertEqual(err.code, ERR_UNKNOWN_MARKER)
        self.assertEqual(err.offset, 4)

    def test_missing_length(self):
        err = self._error(b"S,abc")
        self.assertEqual(err.code, ERR_MALFORMED_LENGTH)

    def test_signed_length_rejected(self):
        for data in (b"S-1,", b"S+1,a", b"S 1,a"):
            with self.subTest(data=data):
                self.assertEqual(self._error(data).code, ERR_MALFORMED_LENGTH)

    def test_non_digit_in_length(self):
        err = self._error(b"S1x,a")
        self.assertEqual(err.code, ERR_MALFORMED_LENGTH)
        self.assertEqual(err.offset, 2)

    def test_too_many_digits(self):
        err = self._error(b"S" + b"1" * 30 + b",")
        self.assertEqual(err.code, ERR_MALFORMED_LENGTH)

    def test_input_ends_in_prefix(self):
        self.assertEqual(self._error(b"S12").code, ERR_TRUNCATED_INPUT)
        self.assertEqual(self._error(b"S").code, ERR_TRUNCATED_INPUT)

    def test_truncated_body(self):
        err = self._error(b"S10,short")
        self.assertEqual(err.code, ERR_TRUNCATED_INPUT)
        self.assertEqual(err.offset, 4)

    def test_count_larger_than_input_can_hold(self):
        err = self._error(b"L999999999,S0,")
        self.assertEqual(err.code, ERR_TRUNCATED_INPUT)
        err = self._error(b"H2,S0,S0,")
        self.assertEqual(err.code, ERR_TRUNCATED_INPUT)

    def test_error_position_has_line_and_column(self):
        err = self._error(b"S3,a\nbQ")
        self.assertEqual(err.position.line, 2)
        self.assertEqual(err.position.column, 2)
        self.assertTrue(str(err).startswith("<input>:2:2: "))

    def test_source_name_in_message(self):
        sc = Scanner(b"?", source="catalog.aa")
        with self.assertRaises(AaError) as ctx:
            sc.next_token()
        self.assertTrue(str(ctx.exception).startswith("catalog.aa:1:1: "))


class TestPoisoning(unittest.TestCase):
    def test_error_is_sticky(self):
        sc = Scanner(b"S9,abc")
        with self.assertRaises(AaError) as first:
            sc.next_token()
        with self.assertRaises(AaError) as second:
            sc.next_token()
        self.assertIs(first.exception, second.exception)

    def test_cursor_left_at_failure(self):
        sc = Scanner(b"N1,1S9,abc")
        sc.next_token()
        with self.assertRaises(AaError):
            sc.next_token()
        self.assertEqual(sc.offset, 7)


if __name__ == "__main__":
    unittest.main()
