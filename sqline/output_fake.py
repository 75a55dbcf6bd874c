import asyncio
import io


class OutputFake:
    """
    In-memory sink. test_block() holds every drain() until test_release();
    test_fail_after(n) makes writes fail once n chunks were accepted.
    """

    def __init__(self, tty=False):
        self._buffer = io.StringIO('')
        self._tty = tty
        self._ready = asyncio.Event()
        self._ready.set()
        self._fail_after = None
        self.chunks = 0
        self.drains = 0

    def write(self, chunk):
        if self._fail_after is not None and self.chunks >= self._fail_after:
            raise BrokenPipeError("sink closed")
        self.chunks += 1
        self._buffer.write(chunk)

    async def drain(self):
        self.drains += 1
        await self._ready.wait()

    def isatty(self):
        return self._tty

    async def close(self):
        pass

    def test_block(self):
        self._ready.clear()

    def test_release(self):
        self._ready.set()

    def test_fail_after(self, chunks):
        self._fail_after = chunks

    def test_get_output(self):
        return self._buffer.getvalue()

    def test_get_lines(self):
        return self._buffer.getvalue().splitlines()

