"""Tests for the aa2json command-line entry point."""

from __future__ import annotations

import contextlib
import io
import json
import os
import sys
import tempfile
import unittest
from unittest import mock

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from aafmt import DEFAULT_ENCODING, MAX_DEPTH, MAX_DEPTH_LIMIT, __version__
from aafmt._cli import EXIT_DECODE, EXIT_IO, _build_parser, main

from aa_samples import PRODUCT, PRODUCT_DOC, SCENARIO_DOC, nested_sequences


def _stdin(data: bytes) -> io.TextIOWrapper:
    return io.TextIOWrapper(io.BytesIO(data), encoding="utf-8")


class CliTestCase(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.dir = self._tmp.name

    def tearDown(self):
        self._tmp.cleanup()

    def write(self, name: str, data: bytes) -> str:
        path = os.path.join(self.dir, name)
        with open(path, "wb") as f:
            f.write(data)
        return path

    def run_cli(self, argv, stdin: bytes = b""):
        """Run main(argv); return (exit code, stdout, stderr)."""
        out, err = io.StringIO(), io.StringIO()
        code = 0
        with mock.patch.object(sys, "stdin", _stdin(stdin)), \
                contextlib.redirect_stdout(out), contextlib.redirect_stderr(err):
            try:
                main(argv)
            except SystemExit as e:
                code = e.code
        return code, out.getvalue(), err.getvalue()


# ── Conversion ────────────────────────────────────────────────

class TestConvert(CliTestCase):
    def test_file_to_stdout(self):
        path = self.write("scenario.aa", SCENARIO_DOC)
        code, out, err = self.run_cli([path])
        self.assertEqual(code, 0)
        self.assertEqual(out, '{"ok":1,"0":0}\n')
        self.assertEqual(err, "")

    def test_stdin(self):
        code, out, _ = self.run_cli([], stdin=SCENARIO_DOC)
        self.assertEqual(code, 0)
        self.assertEqual(out, '{"ok":1,"0":0}\n')

    def test_pretty(self):
        code, out, _ = self.run_cli(["-p"], stdin=b"H1,S1,aN1,1")
        self.assertEqual(code, 0)
        self.assertEqual(out, '{\n    "a": 1\n}\n')

    def test_pretty_spaces(self):
        code, out, _ = self.run_cli(["-p", "-s", "2"], stdin=b"L1,N1,1")
        self.assertEqual(code, 0)
        self.assertEqual(out, "[\n  1\n]\n")

    def test_pretty_tabs(self):
        code, out, _ = self.run_cli(["-tp"], stdin=b"L1,N1,1")
        self.assertEqual(code, 0)
        self.assertEqual(out, "[\n\t1\n]\n")

    def test_output_file(self):
        src = self.write("product.aa", PRODUCT_DOC)
        dst = os.path.join(self.dir, "product.json")
        code, out, _ = self.run_cli(["-p", src, "-o", dst])
        self.assertEqual(code, 0)
        self.assertEqual(out, "")
        with open(dst, encoding="utf-8") as f:
            self.assertEqual(json.load(f), PRODUCT)

    def test_encoding(self):
        code, out, _ = self.run_cli(["--encoding", "cp1252"], stdin=b"S1,\xe9")
        self.assertEqual(code, 0)
        self.assertEqual(out, '"é"\n')

    def test_trailing_data_ignored_unless_strict(self):
        code, out, _ = self.run_cli([], stdin=b"N1,1\n")
        self.assertEqual((code, out), (0, "1\n"))
        code, out, err = self.run_cli(["--strict"], stdin=b"N1,1\n")
        self.assertEqual(code, EXIT_DECODE)
        self.assertIn("ERR_TRAILING_DATA", err)

    def test_version(self):
        code, out, _ = self.run_cli(["--version"])
        self.assertEqual(code, 0)
        self.assertIn(__version__, out)


# ── Failures ──────────────────────────────────────────────────

class TestFailures(CliTestCase):
    def test_decode_error(self):
        path = self.write("bad.aa", b"H1,S1,kX")
        code, out, err = self.run_cli([path])
        self.assertEqual(code, EXIT_DECODE)
        self.assertEqual(out, "")
        self.assertIn("aa2json: error [ERR_", err)
        self.assertIn(path + ":1:", err)

    def test_stdin_source_name(self):
        code, _, err = self.run_cli([], stdin=b"?")
        self.assertEqual(code, EXIT_DECODE)
        self.assertIn("[ERR_UNKNOWN_MARKER]", err)
        self.assertIn("<stdin>:1:1", err)

    def test_depth_limit(self):
        code, _, err = self.run_cli(["--max-depth", "2"], stdin=b"L1,L1,L1,S0,")
        self.assertEqual(code, EXIT_DECODE)
        self.assertIn("ERR_DEPTH_EXCEEDED", err)

    def test_deepest_allowed_document(self):
        code, out, _ = self.run_cli(["--max-depth", str(MAX_DEPTH_LIMIT)],
                                    stdin=nested_sequences(MAX_DEPTH_LIMIT))
        self.assertEqual(code, 0)
        self.assertEqual(out, "[" * MAX_DEPTH_LIMIT + '""' + "]" * MAX_DEPTH_LIMIT + "\n")

    @unittest.skipUnless(0 < getattr(sys, "get_int_max_str_digits", lambda: 0)() < 5000,
                         "interpreter has no integer string conversion limit")
    def test_long_integer(self):
        code, out, err = self.run_cli([], stdin=b"N5000," + b"9" * 5000)
        self.assertEqual(code, EXIT_DECODE)
        self.assertEqual(out, "")
        self.assertIn("[ERR_NUMBER_FORMAT]", err)

    def test_unknown_encoding(self):
        code, _, _ = self.run_cli(["--encoding", "no-such-codec"], stdin=b"S0,")
        self.assertEqual(code, EXIT_DECODE)

    def test_missing_input_file(self):
        code, out, err = self.run_cli([os.path.join(self.dir, "nope.aa")])
        self.assertEqual(code, EXIT_IO)
        self.assertEqual(out, "")
        self.assertIn("error opening input file", err)

    def test_unwritable_output(self):
        dst = os.path.join(self.dir, "missing-dir", "out.json")
        code, _, err = self.run_cli(["-o", dst], stdin=SCENARIO_DOC)
        self.assertEqual(code, EXIT_IO)
        self.assertIn("error writing output file", err)


# ── Argument validation ───────────────────────────────────────

class TestArguments(CliTestCase):
    def test_indent_requires_pretty(self):
        for argv in (["-s", "2"], ["-t"]):
            with self.subTest(argv=argv):
                code, _, err = self.run_cli(argv, stdin=SCENARIO_DOC)
                self.assertEqual(code, 2)
                self.assertIn("require --pretty", err)

    def test_spaces_and_tabs_conflict(self):
        code, _, err = self.run_cli(["-p", "-s", "2", "-t"], stdin=SCENARIO_DOC)
        self.assertEqual(code, 2)
        self.assertIn("not allowed with", err)

    def test_spaces_must_be_positive(self):
        code, _, _ = self.run_cli(["-p", "-s", "0"], stdin=SCENARIO_DOC)
        self.assertEqual(code, 2)

    def test_defaults_follow_package_constants(self):
        args = _build_parser().parse_args([])
        self.assertEqual(args.encoding, DEFAULT_ENCODING)
        self.assertEqual(args.max_depth, MAX_DEPTH)

    def test_max_depth_must_be_positive(self):
        code, _, _ = self.run_cli(["--max-depth", "0"], stdin=SCENARIO_DOC)
        self.assertEqual(code, 2)

    def test_max_depth_capped(self):
        code, out, err = self.run_cli(["--max-depth", "5000"],
                                      stdin=nested_sequences(3000))
        self.assertEqual(code, 2)
        self.assertEqual(out, "")
        self.assertIn("--max-depth must be between 1 and {}".format(MAX_DEPTH_LIMIT), err)


if __name__ == "__main__":
    unittest.main()
