import asyncio
import logging
import sys
import threading

from .interrupts import discard

log = logging.getLogger(__name__)

DEFAULT_PROMPT = "sqlite> "


def isatty(stream):
    check = getattr(stream, "isatty", None)
    return bool(check and check())


class LineSource:
    """
    Produces operator input one line at a time, or None once input has ended.

    Each read runs on its own daemon thread, one read at a time. A read that
    outlives the coroutine waiting on it (because that coroutine was
    abandoned) stays pending and is handed to the next caller, so lines are
    never dropped or read twice and the prompt is only shown when a new read
    actually starts.
    """

    def __init__(self, stream=None, prompt_stream=None, prompt=DEFAULT_PROMPT, interactive=None):
        self.stream = stream if stream is not None else sys.stdin
        self.prompt_stream = prompt_stream if prompt_stream is not None else sys.stderr
        self.prompt = prompt
        if interactive is None:
            interactive = isatty(self.stream) and isatty(self.prompt_stream)
        self.interactive = interactive
        self._pending = None
        self._eof = False

    def _read(self):
        if self.interactive and self.stream is sys.stdin and isatty(sys.stdout):
            # input() edits through readline but prompts on stdout, so only
            # when stdout is the terminal too
            try:
                return input(self.prompt)
            except EOFError:
                return None
        if self.interactive:
            self.prompt_stream.write(self.prompt)
            self.prompt_stream.flush()
        line = self.stream.readline()
        if not line:
            return None
        if line.endswith("\n"):
            line = line[:-1]
            if line.endswith("\r"):
                line = line[:-1]
        return line

    def _start_read(self):
        loop = asyncio.get_running_loop()
        future = loop.create_future()

        def settle(line, error):
            if future.done():
                return
            if error is not None:
                future.set_exception(error)
            else:
                future.set_result(line)

        def run():
            line, error = None, None
            try:
                line = self._read()
            except Exception as e:
                error = e
            if not loop.is_closed():
                loop.call_soon_threadsafe(settle, line, error)

        # daemon: a read still blocked on the terminal must not keep the
        # process alive once the session is over
        threading.Thread(target=run, name="sqline-input", daemon=True).start()
        return future

    async def next_line(self):
        if self._eof:
            return None
        if self._pending is None:
            self._pending = self._start_read()
        line = await asyncio.shield(self._pending)
        self._pending = None
        if line is None:
            log.debug("end of input")
            self._eof = True
        return line

    def close(self):
        if self._pending is not None:
            self._pending.add_done_callback(discard)
            self._pending = None
