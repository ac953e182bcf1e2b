"""PPP entry point."""

from __future__ import annotations
import argparse
import sys
from typing import List, Optional

from interpreter import DEFAULT_WORD_BITS, Interpreter, PPPRuntimeError, TracebackFormatter
from lexer import PPPLexError, PPPSyntaxError

DEFAULT_FILENAME = "test.ppp"


def _word_bits(text: str) -> Optional[int]:
    if text.lower() in ("none", "0"):
        return None
    try:
        bits = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid word size: {text!r}")
    if bits not in (8, 16, 32, 64):
        raise argparse.ArgumentTypeError("word size must be 8, 16, 32, 64 or none")
    return bits


def _positive_int(text: str) -> int:
    try:
        value = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer: {text!r}")
    if value < 1:
        raise argparse.ArgumentTypeError("value must be >= 1")
    return value


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="PPP reference interpreter")
    parser.add_argument("program", nargs="?", help="Source file path or literal source with -source")
    parser.add_argument("-source", "--source", dest="source_mode", action="store_true", help="Treat program argument as literal source text")
    parser.add_argument("-verbose", "--verbose", dest="verbose", action="store_true", help="Emit variable snapshots in tracebacks")
    parser.add_argument("--traceback-json", action="store_true", help="Also emit JSON traceback")
    parser.add_argument("--word-bits", type=_word_bits, default=DEFAULT_WORD_BITS, help="Integer width in bits (8, 16, 32, 64 or none)")
    parser.add_argument("--max-variables", type=_positive_int, default=None, help="Abort when more variables than this are defined")
    parser.add_argument("--max-token-length", type=_positive_int, default=None, help="Truncate longer lexemes to this many characters")
    return parser


def run_cli(argv: Optional[List[str]] = None) -> int:
    args = build_arg_parser().parse_args(argv)

    if args.source_mode:
        if args.program is None:
            print("-source requires a program string", file=sys.stderr)
            return 1
        source_text = args.program
        filename = "<string>"
    else:
        filename = args.program
        if filename is None:
            filename = DEFAULT_FILENAME
            print(f"Warning: No file specified, defaulting to '{DEFAULT_FILENAME}'.", file=sys.stderr)
        try:
            with open(filename, "r", encoding="utf-8") as handle:
                source_text = handle.read()
        except (OSError, UnicodeDecodeError) as exc:
            print(f"Failed to read {filename}: {exc}", file=sys.stderr)
            return 1

    interpreter = Interpreter(
        source=source_text,
        filename=filename,
        verbose=args.verbose,
        max_variables=args.max_variables,
        word_bits=args.word_bits,
        max_token_length=args.max_token_length,
    )
    try:
        interpreter.run()
    except (PPPLexError, PPPSyntaxError) as error:
        sys.stdout.flush()
        print(f"{error.__class__.__name__}: {error}", file=sys.stderr)
        return 1
    except PPPRuntimeError as error:
        sys.stdout.flush()
        formatter = TracebackFormatter(interpreter)
        print(formatter.format_text(error, verbose=args.verbose), file=sys.stderr)
        if args.traceback_json:
            print(formatter.to_json(error), file=sys.stderr)
        return 1
    return 0


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
