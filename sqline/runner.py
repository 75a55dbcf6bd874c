import asyncio
import logging

from .interrupts import discard
from .output import encode_row, write

log = logging.getLogger(__name__)


class StatementRunner:
    """
    Runs one line of SQL: prepare, stream rows to the output sink, finalize.

    Each row fetch is raced against the interrupt channel, and the next fetch
    is issued before the current row is written. The statement is finalized
    exactly once whichever way the run ends.
    """

    def __init__(self, interrupts, output):
        self.interrupts = interrupts
        self.output = output

    async def run(self, connection, sql):
        statement = await connection.prepare(sql)
        log.debug("prepared %r", sql)
        written = 0
        try:
            fetch = asyncio.ensure_future(statement.next_row())
            while True:
                row = await self.interrupts.race(fetch)
                if row is None:
                    break
                fetch = asyncio.ensure_future(statement.next_row())
                ok = await write(self.output, [encode_row(row), "\n"], on_error=self.interrupts.interrupt)
                if ok:
                    written += 1
        except BaseException:
            if not fetch.done():
                # settle the abandoned fetch so none runs after finalize
                fetch.cancel()
                await asyncio.wait((fetch,))
            discard(fetch)
            try:
                await statement.finalize()
            except Exception as e:
                log.warning("%s (while handling an earlier error)", e)
            raise
        await statement.finalize()
        log.debug("finalized %r after %d rows", sql, written)
        return written
