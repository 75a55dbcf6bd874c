import asyncio

from .errors import CloseError, FinalizeError, PrepareError, QueryError


class FakeStatement:
    def __init__(self, sql, rows, fail_at=None, block_at=None, finalize_error=None):
        self.sql = sql
        self._rows = list(rows)
        self._fail_at = fail_at
        self._block_at = block_at
        self._finalize_error = finalize_error
        self.fetches = 0
        self.finalized = 0
        self.fetched_after_finalize = 0
        self.released = asyncio.Event()

    async def next_row(self):
        index = self.fetches
        self.fetches += 1
        if self.finalized:
            self.fetched_after_finalize += 1
        if index == self._block_at:
            await self.released.wait()
        if index == self._fail_at:
            raise QueryError(f"fetch {index} failed")
        if index < len(self._rows):
            return dict(self._rows[index])
        return None

    async def finalize(self):
        self.finalized += 1
        if self._finalize_error:
            raise FinalizeError(self._finalize_error)


class FakeConnection:
    """
    Scriptable stand-in for storage.Connection.

    test_set_result() maps statement text to the rows it returns and the ways
    it should misbehave; unknown statement text fails to prepare.
    """

    def __init__(self, close_error=None):
        self._results = {}
        self._close_error = close_error
        self.statements = []
        self.closed = 0

    def test_set_result(self, sql, rows=(), **behaviour):
        self._results[sql] = (rows, behaviour)

    async def prepare(self, sql):
        await asyncio.sleep(0)
        if sql not in self._results:
            raise PrepareError(f'near "{sql.split()[0]}": syntax error')
        rows, behaviour = self._results[sql]
        statement = FakeStatement(sql, rows, **behaviour)
        self.statements.append(statement)
        return statement

    async def close(self):
        self.closed += 1
        if self._close_error:
            raise CloseError(self._close_error)

    def test_finalize_counts(self):
        return [statement.finalized for statement in self.statements]
