"""
Shakespeare CLI
===============
Command-line front end for the toolchain.

Usage:
    shakespeare run examples/hello.spl
    shakespeare run examples/countdown.spl --verify
    shakespeare tokens examples/hello.spl
    shakespeare ast examples/hello.spl
    shakespeare verify examples/hello.spl
    shakespeare words [category]
    shakespeare serve --port 8000

Program output goes to stdout; diagnostics go to stderr.
"""
import argparse
import os
import sys
from typing import Optional, TextIO

from .config import Settings
from .errors import InputExhausted, ShakespeareError
from .lexer import Lexer
from .lexicon import WordCategory, describe_all
from .parser import Parser
from .simulator import Simulator
from .verifier import ProgramVerifier, ViolationLevel


class ConsoleIO:
    """Reads numbers line by line and characters one at a time from a stream."""

    def __init__(self, stream: Optional[TextIO] = None, out: Optional[TextIO] = None):
        self.stream = stream or sys.stdin
        self.out = out or sys.stdout

    def next_number(self) -> int:
        line = self.stream.readline()
        if not line:
            raise InputExhausted("End of input while reading a number")
        try:
            return int(line.strip())
        except ValueError:
            raise InputExhausted(f"Expected a number, got {line.strip()!r}")

    def next_character(self) -> str:
        return self.stream.read(1)

    def write(self, value):
        self.out.write(str(value))
        self.out.flush()


# ─────────────────────────────────────────────────────────────
#  Helpers
# ─────────────────────────────────────────────────────────────

def _read_source(filepath: str) -> Optional[str]:
    if not os.path.exists(filepath):
        print(f"Error: File not found: {filepath}", file=sys.stderr)
        return None
    with open(filepath, "r", encoding="utf-8") as f:
        return f.read()


def _report(error: ShakespeareError) -> int:
    print(f"⚠ {error.kind}: {error}", file=sys.stderr)
    return 1


def _print_violations(violations) -> bool:
    """Print violations; return True when any of them is an error."""
    errors = [v for v in violations if v.level == ViolationLevel.ERROR]
    warnings = [v for v in violations if v.level == ViolationLevel.WARNING]
    if warnings:
        print(f"⚠ {len(warnings)} warning(s):", file=sys.stderr)
        for v in warnings:
            print(v, file=sys.stderr)
    if errors:
        print(f"✘ {len(errors)} error(s):", file=sys.stderr)
        for v in errors:
            print(v, file=sys.stderr)
    return bool(errors)


# ─────────────────────────────────────────────────────────────
#  Commands
# ─────────────────────────────────────────────────────────────

def cmd_run(args, settings: Settings) -> int:
    """Execute a play."""
    source = _read_source(args.file)
    if source is None:
        return 1
    try:
        nodes = Parser.from_source(source, settings.lexicon()).parse()
        if args.verify and _print_violations(ProgramVerifier().verify(nodes)):
            return 1
        io = ConsoleIO()
        Simulator(io.next_number, io.next_character, io.write, max_steps=settings.max_steps).run(nodes)
    except ShakespeareError as e:
        return _report(e)
    return 0


def cmd_tokens(args, settings: Settings) -> int:
    """Print the token transcript, one token per line."""
    source = _read_source(args.file)
    if source is None:
        return 1
    try:
        tokens = Lexer(source, settings.lexicon()).tokenize()
    except ShakespeareError as e:
        return _report(e)
    for token in tokens:
        print(token)
    return 0


def cmd_ast(args, settings: Settings) -> int:
    """Print the node transcript, one node per line."""
    source = _read_source(args.file)
    if source is None:
        return 1
    try:
        nodes = Parser.from_source(source, settings.lexicon()).parse()
    except ShakespeareError as e:
        return _report(e)
    for node in nodes:
        print(node)
    return 0


def cmd_verify(args, settings: Settings) -> int:
    """Parse and statically check a play."""
    source = _read_source(args.file)
    if source is None:
        return 1
    try:
        nodes = Parser.from_source(source, settings.lexicon()).parse()
    except ShakespeareError as e:
        return _report(e)
    violations = ProgramVerifier().verify(nodes)
    if _print_violations(violations):
        return 1
    print("✔ Verification passed")
    return 0


def cmd_words(args, settings: Settings) -> int:
    """List word classes, or every word of one class."""
    lexicon = settings.lexicon()
    try:
        if args.category:
            for word in lexicon.words_for(WordCategory(args.category)):
                print(word)
        else:
            print(describe_all(lexicon))
    except ValueError:
        known = ", ".join(c.value for c in WordCategory)
        print(f"Unknown category {args.category!r}. Known: {known}", file=sys.stderr)
        return 1
    except ShakespeareError as e:
        return _report(e)
    return 0


def cmd_serve(args, settings: Settings) -> int:
    """Launch the HTTP service."""
    from .server import run_server

    run_server(settings)
    return 0


# ─────────────────────────────────────────────────────────────
#  Main
# ─────────────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shakespeare",
        description="Shakespeare Programming Language toolchain",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  shakespeare run examples/hello.spl\n"
            "  shakespeare ast examples/countdown.spl\n"
            "  shakespeare verify examples/countdown.spl\n"
            "  shakespeare words positive_noun\n"
        ),
    )
    parser.add_argument("--wordlists", default=None, help="Directory of *.wordlist files")
    parser.add_argument("--log-level", default=None, help="Logging level (default: WARNING)")
    parser.add_argument("--max-steps", default=None, type=int, help="Abort a run after N nodes")
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    p_run = subparsers.add_parser("run", help="Execute a play")
    p_run.add_argument("file", help="Path to a .spl file")
    p_run.add_argument("--verify", action="store_true", help="Run the verifier before executing")

    p_tokens = subparsers.add_parser("tokens", help="Print the token transcript")
    p_tokens.add_argument("file", help="Path to a .spl file")

    p_ast = subparsers.add_parser("ast", help="Print the node transcript")
    p_ast.add_argument("file", help="Path to a .spl file")

    p_verify = subparsers.add_parser("verify", help="Statically check a play")
    p_verify.add_argument("file", help="Path to a .spl file")

    p_words = subparsers.add_parser("words", help="List the lexicon")
    p_words.add_argument("category", nargs="?", help="Word category, e.g. positive_noun")

    p_serve = subparsers.add_parser("serve", help="Launch the HTTP service")
    p_serve.add_argument("--host", default=None, help="Bind address")
    p_serve.add_argument("--port", default=None, type=int, help="Port number")

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = Settings.from_env()
    if args.wordlists:
        settings.wordlist_dir = args.wordlists
    if args.log_level:
        settings.log_level = args.log_level.upper()
    if args.max_steps is not None:
        settings.max_steps = args.max_steps
    if getattr(args, "host", None):
        settings.host = args.host
    if getattr(args, "port", None):
        settings.port = args.port
    settings.configure_logging()

    commands = {
        "run": cmd_run,
        "tokens": cmd_tokens,
        "ast": cmd_ast,
        "verify": cmd_verify,
        "words": cmd_words,
        "serve": cmd_serve,
    }

    if args.command in commands:
        return commands[args.command](args, settings)
    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
