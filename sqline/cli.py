import argparse
import asyncio
import logging
import os
import signal
import sys

from . import completion
from .errors import CloseError, OpenError
from .interrupts import InterruptChannel
from .lines import DEFAULT_PROMPT, LineSource
from .output import open_sink
from .repl import Repl, session

log = logging.getLogger(__name__)

COLORS = {"always": True, "never": False, "auto": None}
LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Run SQLite statements one line at a time, streaming result rows as JSON lines.")
    parser.add_argument(
        "path",
        nargs="?",
        default="",
        help="Database file (default: an anonymous temporary database)"
    )
    parser.add_argument(
        "--prompt",
        default=DEFAULT_PROMPT,
        help="Prompt shown before each line in interactive mode"
    )
    parser.add_argument(
        "--interactive",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Force interactive mode on or off (default: on when stdin and stderr are terminals)"
    )
    parser.add_argument(
        "--color",
        choices=["auto", "always", "never"],
        default="auto",
        help="Colorize diagnostics (auto: when stderr is a terminal)"
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        default=os.environ.get("SQLINE_LOG_LEVEL", "WARNING"),
        help="Logging level for internal diagnostics (env: SQLINE_LOG_LEVEL)"
    )
    args = parser.parse_args(argv)
    # a default from the environment skips the choices check
    if args.log_level not in LOG_LEVELS:
        parser.error(f"invalid SQLINE_LOG_LEVEL: {args.log_level!r} (choose from {', '.join(LOG_LEVELS)})")
    return args


async def start(args, stdin=None, stdout=None, stderr=None):
    stdin = stdin if stdin is not None else sys.stdin
    stdout = stdout if stdout is not None else sys.stdout
    stderr = stderr if stderr is not None else sys.stderr

    interrupts = InterruptChannel()
    lines = LineSource(stdin, stderr, prompt=args.prompt, interactive=args.interactive)
    if lines.interactive and stdin is sys.stdin:
        completion.install()

    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, interrupts.interrupt)
        handling_sigint = True
    except (NotImplementedError, RuntimeError) as e:
        log.debug("SIGINT not routed to the interrupt channel: %s", e)
        handling_sigint = False

    output = await open_sink(stdout)
    errors = await open_sink(stderr)
    try:
        async with session(args.path) as connection:
            repl = Repl(connection, lines, output, errors, interrupts, COLORS[args.color])
            return await repl.run()
    finally:
        if handling_sigint:
            loop.remove_signal_handler(signal.SIGINT)
        lines.close()
        for sink in (output, errors):
            try:
                await sink.close()
            except OSError as e:
                log.warning("unable to flush output: %s", e)


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(
        level=args.log_level,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    try:
        asyncio.run(start(args))
    except (OpenError, CloseError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
