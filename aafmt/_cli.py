"""aa2json — convert an AA file to JSON.

Usage:
    aa2json catalog.aa                      compact JSON on stdout
    aa2json -p catalog.aa -o catalog.json   pretty, 4-space indent
    aa2json -p -s 2 catalog.aa              pretty, 2-space indent
    aa2json -tp < catalog.aa                pretty, tab indent, from stdin
    python3 -m aafmt --version

Exit status: 0 on success, 1 if a file cannot be read or written, 2 if
the input is not a valid AA document.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from . import (
    DEFAULT_ENCODING,
    MAX_DEPTH,
    MAX_DEPTH_LIMIT,
    AaError,
    __version__,
    decode_document,
    to_json,
)

logger = logging.getLogger(__name__)

EXIT_IO = 1
EXIT_DECODE = 2


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="aa2json",
        description="Converts an AA file to JSON.",
    )
    parser.add_argument("input", nargs="?", metavar="FILE",
                        help="AA file to read from, instead of standard input")
    parser.add_argument("-o", "--output", metavar="FILE",
                        help="JSON file to write to, instead of standard output")
    parser.add_argument("-p", "--pretty", action="store_true",
                        help="pretty-print the output JSON")

    indent_g = parser.add_mutually_exclusive_group()
    indent_g.add_argument("-s", "--indent-spaces", type=int, metavar="N",
                          help="indent size in spaces when pretty-printing [default: 4]")
    indent_g.add_argument("-t", "--indent-tabs", action="store_true",
                          help="indent with tabs instead of spaces when pretty-printing")

    parser.add_argument("--encoding", default=DEFAULT_ENCODING,
                        help="text encoding of string values [default: {}]".format(
                            DEFAULT_ENCODING))
    parser.add_argument("--max-depth", type=int, default=MAX_DEPTH, metavar="N",
                        help="maximum collection nesting, at most {} [default: {}]".format(
                            MAX_DEPTH_LIMIT, MAX_DEPTH))
    parser.add_argument("--strict", action="store_true",
                        help="reject trailing data after the document")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="log debug information to standard error")
    parser.add_argument("--version", action="version",
                        version="aa2json {}".format(__version__))
    return parser


def _read_input(filepath: Optional[str]) -> bytes:
    """Read AA bytes from a file or stdin."""
    if filepath:
        with open(filepath, "rb") as f:
            return f.read()
    if sys.stdin.isatty():
        print("aa2json: reading from stdin (Ctrl-D to end)...", file=sys.stderr)
    return sys.stdin.buffer.read()


def _write_output(filepath: Optional[str], text: str) -> None:
    if filepath:
        with open(filepath, "w", encoding="utf-8", newline="\n") as f:
            f.write(text)
            f.write("\n")
        return
    sys.stdout.write(text)
    sys.stdout.write("\n")
    sys.stdout.flush()


def main(argv: Optional[List[str]] = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if (args.indent_spaces is not None or args.indent_tabs) and not args.pretty:
        parser.error("--indent-spaces/--indent-tabs require --pretty")
    if args.indent_spaces is not None and args.indent_spaces < 1:
        parser.error("--indent-spaces must be at least 1")
    if not 1 <= args.max_depth <= MAX_DEPTH_LIMIT:
        parser.error("--max-depth must be between 1 and {}".format(MAX_DEPTH_LIMIT))

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(name)s: %(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        raw = _read_input(args.input)
    except OSError as e:
        print(f"aa2json: error opening input file {args.input}: {e}", file=sys.stderr)
        sys.exit(EXIT_IO)

    try:
        value = decode_document(
            raw,
            max_depth=args.max_depth,
            encoding=args.encoding,
            allow_trailing=not args.strict,
            source=args.input or "<stdin>",
        )
    except AaError as e:
        print(f"aa2json: error [{e.code}]: {e}", file=sys.stderr)
        sys.exit(EXIT_DECODE)
    except LookupError as e:
        print(f"aa2json: {e}", file=sys.stderr)
        sys.exit(EXIT_DECODE)

    text = to_json(value, pretty=args.pretty, indent=args.indent_spaces,
                   indent_tabs=args.indent_tabs)
    logger.debug("rendered %d characters of JSON", len(text))

    try:
        _write_output(args.output, text)
    except OSError as e:
        print(f"aa2json: error writing output file {args.output}: {e}", file=sys.stderr)
        sys.exit(EXIT_IO)


if __name__ == "__main__":
    main()
