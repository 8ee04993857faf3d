"""Interactive read-eval-print loop and file evaluator for expressions."""

from __future__ import annotations

import argparse
import os
import sys
from typing import Optional, TextIO

from milu.parser import ScriptSyntaxError, parse
from milu.script import ScriptContext, ScriptError, Type, Value
from milu.stdlib import default_context

_VERSION = "0.2.1"
_HISTORY_FILE = "history.txt"
_TERMINATOR = ";;"


def evaluate(source: str, ctx: Optional[ScriptContext] = None) -> tuple[Value, Type]:
    """Parse, type-check and evaluate ``source``; return its value and type.

    Raises ScriptSyntaxError for malformed text and ScriptError when type
    inference or evaluation fails.
    """
    if ctx is None:
        ctx = default_context()
    expr = parse(source)
    rtype = expr.type_of(ctx)
    return expr.value_of(ctx), rtype


def run_source(
    ctx: Optional[ScriptContext],
    source: str,
    out: Optional[TextIO] = None,
    err: Optional[TextIO] = None,
) -> bool:
    """Evaluate ``source`` and print ``value : type``; report failures to ``err``.

    Returns True when the expression was evaluated.
    """
    out = sys.stdout if out is None else out
    err = sys.stderr if err is None else err
    if ctx is None:
        ctx = default_context()
    try:
        expr = parse(source)
    except ScriptSyntaxError as exc:
        print(f"parser error: {exc}", file=err)
        return False
    try:
        rtype = expr.type_of(ctx)
    except ScriptError as exc:
        print(f"type inference error: {exc}", file=err)
        return False
    try:
        value = expr.value_of(ctx)
    except ScriptError as exc:
        print(f"eval error: {exc}", file=err)
        return False
    print(f"{value} : {rtype}", file=out)
    return True


class _History:
    """Line-editing history kept in a file when readline is available."""

    def __init__(self, enabled: bool) -> None:
        self._readline = None
        self._added = 0
        if not enabled:
            return
        try:
            import readline
        except ImportError:
            return
        self._readline = readline
        readline.set_auto_history(False)

    @property
    def active(self) -> bool:
        return self._readline is not None

    def load(self) -> bool:
        if self._readline is None:
            return False
        try:
            self._readline.read_history_file(_HISTORY_FILE)
        except OSError:
            return False
        return True

    def add(self, entry: str) -> None:
        if self._readline is not None:
            self._readline.add_history(entry)
            self._added += 1

    def save(self) -> None:
        if self._readline is None:
            return
        try:
            if os.path.exists(_HISTORY_FILE):
                self._readline.append_history_file(self._added, _HISTORY_FILE)
            else:
                self._readline.write_history_file(_HISTORY_FILE)
        except OSError as exc:
            print(f"Error: {exc}", file=sys.stderr)


def repl(ctx: Optional[ScriptContext] = None, interactive: Optional[bool] = None) -> None:
    """Read expressions from standard input, each ended by ``;;``, and evaluate them."""
    if interactive is None:
        interactive = sys.stdin.isatty()
    if ctx is None:
        ctx = default_context()

    def say(*lines: str) -> None:
        if interactive:
            for line in lines:
                print(line)

    history = _History(interactive)
    if not history.load():
        say("No previous history.")

    say("\n", f"This is the milu-repl {_VERSION}", "Use `;;' to end an expression",
        "Press Ctrl-D to exit.", "\n")

    count = 1
    buffer: list[str] = []
    while True:
        plain = f"{count}> "
        if not interactive:
            prompt = ""
        elif history.active:
            prompt = f"\001\x1b[1;32m\002{plain}\001\x1b[0m\002"
        else:
            prompt = f"\x1b[1;32m{plain}\x1b[0m"
        try:
            line = input(prompt)
        except KeyboardInterrupt:
            say("Interrupted")
            break
        except EOFError:
            say("Ctrl-D")
            break
        line = line.rstrip()
        buffer.append(line)
        if line.endswith(_TERMINATOR):
            source = " ".join(buffer)
            run_source(ctx, source, sys.stdout, sys.stderr)
            history.add(source)
            count += 1
            buffer.clear()

    history.save()


def main(argv: Optional[list[str]] = None) -> int:
    """Evaluate the file named on the command line, or start the interactive loop."""
    parser = argparse.ArgumentParser(prog="milu-repl")
    parser.add_argument("--version", "-V", action="version", version=f"milu-repl {_VERSION}")
    parser.add_argument("input", metavar="INPUT", nargs="?", help="filename")
    args = parser.parse_args(argv)
    if args.input is not None:
        try:
            with open(args.input, "rb") as handle:
                source = handle.read().decode("utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            print(f"Error: {exc}", file=sys.stderr)
            return 1
        run_source(default_context(), source, sys.stdout, sys.stderr)
        return 0
    repl()
    return 0