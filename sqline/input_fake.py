import asyncio


class LinesFake:
    """
    Line source fed by the test: test_send() delivers a line, test_end() ends
    input. Counts how many reads were started.
    """

    def __init__(self, lines=(), end=False):
        self._queue = asyncio.Queue()
        self._pending = None
        self.reads = 0
        for line in lines:
            self.test_send(line)
        if end:
            self.test_end()

    def test_send(self, line):
        self._queue.put_nowait(line)

    def test_end(self):
        self._queue.put_nowait(None)

    async def next_line(self):
        if self._pending is None:
            self.reads += 1
            self._pending = asyncio.ensure_future(self._queue.get())
        line = await asyncio.shield(self._pending)
        self._pending = None
        if line is None:
            # end of input stays ended
            self._queue.put_nowait(None)
        return line
