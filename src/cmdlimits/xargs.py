"""A small ``xargs`` built on ``CommandBuilder``.

``xargs`` reads items from standard input and runs a command with as
many of them as will fit, then runs it again with the rest.  "As many
as will fit" is exactly what ``CommandBuilder`` answers, so the tool
is mostly bookkeeping:

1. Build a *base* command from the utility and its fixed arguments.
2. Clone the base and add items until one is rejected.
3. ``TooManyError`` / ``InsufficientSpaceError`` — run the batch, start
   a fresh clone and retry the item there.
4. ``TooLargeError`` — the item can never fit; give up.

The pieces are pure and testable (``split_items``, ``plan_batches``,
``format_limits``); ``run_xargs`` takes the process runner as a
parameter and ``main`` wires it to ``subprocess``.
"""

import argparse
import os
import subprocess
import sys
from collections.abc import Callable, Iterable, Iterator
from typing import BinaryIO, TextIO, TypeAlias

from cmdlimits.builder import CommandBuilder, Invocation
from cmdlimits.errors import LimitError, TooLargeError

# Type alias for something that runs an invocation and returns its exit status.
Runner: TypeAlias = Callable[[Invocation], int]

DEFAULT_COMMAND = "/bin/echo"

# Exit statuses, following GNU xargs.
EXIT_ABORT = 255
EXIT_SIGNALED = 125
EXIT_NOT_FOUND = 127

_QUOTES = "'\""


class XargsError(Exception):
    """Raise when input cannot be split into items."""


def split_items(text: str, *, null: bool = False) -> Iterator[str]:
    """Yield the items in *text* the way ``xargs`` reads them.

    Items are separated by whitespace.  Single and double quotes group
    characters (but may not span a newline) and a backslash escapes the
    next character.  With *null*, items are separated by NUL characters
    and taken literally.  Empty items are skipped.

    Raises:
        XargsError: On an unterminated quote or a trailing backslash.

    """
    if null:
        yield from (item for item in text.split("\0") if item)
        return

    item: list[str] = []
    quote: str | None = None
    escape = False
    for ch in text:
        if escape:
            escape = False
            item.append(ch)
        elif quote is not None:
            if ch == quote:
                quote = None
            elif ch == "\n":
                msg = "unterminated quote"
                raise XargsError(msg)
            else:
                item.append(ch)
        elif ch == "\\":
            escape = True
        elif ch in _QUOTES:
            quote = ch
        elif ch.isspace():
            if item:
                yield "".join(item)
                item = []
        else:
            item.append(ch)

    if quote is not None:
        msg = "unterminated quote"
        raise XargsError(msg)
    if escape:
        msg = "backslash at EOF"
        raise XargsError(msg)
    if item:
        yield "".join(item)


def plan_batches(base: CommandBuilder, items: Iterable[str]) -> Iterator[CommandBuilder]:
    """Pack *items* into as few commands as the limits allow.

    Each yielded builder is a clone of *base* with one or more items
    appended.  *base* itself is never modified.

    Raises:
        LimitError: An item does not fit even in a fresh clone of *base*.

    """
    cmd = base.clone()
    pending = False
    for item in items:
        try:
            cmd.arg(item)
        except TooLargeError:
            raise
        except LimitError:
            if not pending:
                raise
            yield cmd
            cmd = base.clone().arg(item)
        pending = True
    if pending:
        yield cmd


def format_limits(builder: CommandBuilder) -> str:
    """Describe the limits and current usage, as ``xargs --show-limits`` does."""
    limits = builder.limits
    lines = [f"Available argument space: {limits.arg_size}"]
    if limits.env_size is not None:
        lines.append(f"Available environment space: {limits.env_size}")
    if limits.individual_arg_size is not None:
        lines.append(f"Maximum length of one argument: {limits.individual_arg_size}")
    if limits.arg_count is not None:
        lines.append(f"Maximum number of arguments: {limits.arg_count}")
    lines.append(f"Space used by initial arguments: {builder.arg_accounting.bytes_used}")
    lines.append(f"Space used by environment: {builder.env_accounting.bytes_used}")
    lines.append(f"Argument space remaining: {builder.remaining_arg_bytes()}")
    return "\n".join(lines)


def spawn(invocation: Invocation) -> int:
    """Run *invocation* to completion and return its exit status."""
    env = None if invocation.environment is None else dict(invocation.environment)
    return subprocess.run(list(invocation.argv), env=env, check=False).returncode


def run_xargs(
    base: CommandBuilder,
    items: Iterable[str],
    *,
    runner: Runner = spawn,
    verbose: bool = False,
    stderr: TextIO | None = None,
) -> int:
    """Run *base* over *items* in as few batches as fit.

    Args:
        base: The command every batch starts from.
        items: Arguments to distribute across batches.
        runner: Runs one invocation and returns its exit status
            (negative for death by signal, as ``subprocess`` reports).
        verbose: Echo each command line to *stderr* before running it.
        stderr: Stream for diagnostics (default ``sys.stderr``).

    Returns:
        0 if every batch succeeded, 255 if one exited with 255, 125 if
        one was killed by a signal, otherwise the last non-zero status.

    """
    err = sys.stderr if stderr is None else stderr
    program = os.fsdecode(base.executable)
    rc = 0
    for cmd in plan_batches(base, items):
        invocation = cmd.invocation()
        if verbose:
            print(" ".join(os.fsdecode(a) for a in invocation.argv), file=err)
        status = runner(invocation)
        if status < 0:
            print(f"{program}: terminated with signal {-status}; aborting", file=err)
            return EXIT_SIGNALED
        if status == EXIT_ABORT:
            print(f"{program}: exited with status 255; aborting", file=err)
            return EXIT_ABORT
        if status != 0:
            rc = status
    return rc


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="xargs",
        description="Build and run commands from standard input within argument limits.",
    )
    parser.add_argument(
        "-l", "--show-limits", action="store_true", help="report argument space to stderr"
    )
    parser.add_argument(
        "-0", "--null", action="store_true", help="items are separated by NUL, not whitespace"
    )
    parser.add_argument(
        "-t", "--verbose", action="store_true", help="print each command before running it"
    )
    parser.add_argument("command", nargs=argparse.REMAINDER, help="utility and its arguments")
    return parser


def main(argv: list[str] | None = None, *, stdin: BinaryIO | None = None) -> int:
    """Entry point for the ``cmdlimits-xargs`` script.

    Input is read as bytes and decoded with ``os.fsdecode``, so items
    that are not valid in the filesystem encoding still reach the
    command byte for byte.
    """
    options = _build_parser().parse_args(argv)
    command = options.command or [DEFAULT_COMMAND]
    source = sys.stdin.buffer if stdin is None else stdin

    try:
        # Every batch inherits the host environment, so it is charged up front.
        base = CommandBuilder(command[0]).inherit_env().args(command[1:])
        if options.show_limits:
            print(format_limits(base), file=sys.stderr)
        items = split_items(os.fsdecode(source.read()), null=options.null)
        return run_xargs(base, items, runner=spawn, verbose=options.verbose)
    except (LimitError, XargsError) as e:
        print(f"xargs: {e}", file=sys.stderr)
        return 1
    except FileNotFoundError as e:
        print(f"xargs: {e}", file=sys.stderr)
        return EXIT_NOT_FOUND
