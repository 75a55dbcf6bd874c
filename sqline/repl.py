import contextlib
import logging

from .interrupts import InterruptChannel
from .output import format_error, write
from .runner import StatementRunner
from .storage import open_database

log = logging.getLogger(__name__)


@contextlib.asynccontextmanager
async def session(path, opener=open_database):
    """
    Open the database for the lifetime of a session and close it exactly once
    on the way out, however the session ends.
    """
    connection = await opener(path)
    try:
        yield connection
    except BaseException:
        try:
            await connection.close()
        except Exception as e:
            log.warning("%s (while handling an earlier error)", e)
        raise
    await connection.close()


class Repl:
    """
    Read a line, run it, repeat until input ends.

    Errors and interruptions are reported on the error sink and never end the
    session; only end of input does.
    """

    def __init__(self, connection, lines, output, errors, interrupts=None, colors=None):
        self.connection = connection
        self.lines = lines
        self.output = output
        self.errors = errors
        self.interrupts = interrupts if interrupts is not None else InterruptChannel()
        if colors is None:
            colors = errors.isatty()
        self.colors = colors
        self.runner = StatementRunner(self.interrupts, output)

    async def report(self, e):
        log.debug("reporting %r", e)
        await write(self.errors, [format_error(e, self.colors), "\n"])

    async def run(self):
        statements = 0
        while True:
            try:
                line = await self.interrupts.race(self.lines.next_line())
            except Exception as e:
                await self.report(e)
                continue

            if line is None:
                break
            if not line.strip():
                continue

            try:
                await self.runner.run(self.connection, line)
            except Exception as e:
                await self.report(e)
            statements += 1
        log.debug("input ended after %d statements", statements)
        return statements
