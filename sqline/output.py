import asyncio
import base64
import json
import logging
import math
import os
import stat
import sys

from .errors import WriteError

log = logging.getLogger(__name__)

RED = "\033[31m"
RESET = "\033[0m"


class FileSink:
    """
    Sink over a plain file object. Writes are buffered by the file; drain()
    flushes.
    """

    def __init__(self, file):
        self.file = file

    def write(self, chunk):
        self.file.write(chunk)

    async def drain(self):
        self.file.flush()

    def isatty(self):
        isatty = getattr(self.file, "isatty", None)
        return bool(isatty and isatty())

    async def close(self):
        self.file.flush()


class StreamSink:
    """
    Sink over an asyncio.StreamWriter, with real flow control: drain()
    suspends while the transport is above its high-water mark.
    """

    def __init__(self, writer):
        self.writer = writer

    def write(self, chunk):
        if isinstance(chunk, str):
            chunk = chunk.encode()
        self.writer.write(chunk)

    async def drain(self):
        await self.writer.drain()

    def isatty(self):
        return False

    async def close(self):
        # the transport owns a dup of the descriptor, the process keeps its own
        self.writer.close()


def is_streamable(fd):
    # not terminals: the transport switches the descriptor to non-blocking,
    # which a tty shares with stdin
    mode = os.fstat(fd).st_mode
    return stat.S_ISFIFO(mode) or stat.S_ISSOCK(mode)


async def open_sink(file):
    """
    Pipes and sockets get an asyncio transport with backpressure; anything
    else (terminals, regular files, in-memory buffers) is written directly.
    """
    try:
        fd = file.fileno()
    except (AttributeError, OSError, ValueError):
        return FileSink(file)
    if not is_streamable(fd):
        return FileSink(file)

    file.flush()
    loop = asyncio.get_running_loop()
    pipe = os.fdopen(os.dup(fd), "wb", buffering=0)
    transport, protocol = await loop.connect_write_pipe(
        lambda: asyncio.streams.FlowControlMixin(loop=loop), pipe)
    writer = asyncio.StreamWriter(transport, protocol, None, loop)
    return StreamSink(writer)


async def write(sink, chunks, on_error=None):
    """
    Send each chunk to the sink in order, waiting for the sink to accept it
    before sending the next.

    A sink failure is not retried. When on_error is given it receives the
    failure, the remaining chunks are dropped and False is returned; otherwise
    the failure is raised.
    """
    for chunk in chunks:
        try:
            sink.write(chunk)
            await sink.drain()
        except (OSError, RuntimeError) as e:
            if on_error is None:
                raise WriteError(f"write failed: {e}") from e
            error = WriteError(f"write failed: {e}")
            error.__cause__ = e
            log.debug("write failed, escalating: %s", e)
            on_error(error)
            return False
    return True


def encode_value(value):
    if isinstance(value, (bytes, bytearray, memoryview)):
        return base64.b64encode(bytes(value)).decode("ascii")
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def finite(value):
    # JSON has no Infinity or NaN
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return value


def encode_row(row):
    row = {column: finite(value) for column, value in row.items()}
    return json.dumps(row, separators=(",", ":"), ensure_ascii=False, allow_nan=False, default=encode_value)


def format_error(e, colors=False):
    message = str(e) or e.__class__.__name__
    text = f"{e.__class__.__name__}: {message}"
    # one diagnostic, one line
    text = " ".join(text.splitlines())
    if colors:
        return f"{RED}{text}{RESET}"
    return text
