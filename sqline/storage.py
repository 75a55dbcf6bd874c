import asyncio
import logging
import sqlite3

import aiosqlite

from .errors import CloseError, FinalizeError, OpenError, PrepareError, QueryError
from .interrupts import discard

log = logging.getLogger(__name__)

ENGINE_ERRORS = (sqlite3.Error, sqlite3.Warning, ValueError)


async def open_database(path):
    """
    Open the database at path; an empty path is SQLite's anonymous temporary
    database. The file is read once so a corrupt or foreign file is rejected
    here rather than on the first statement.
    """
    try:
        db = await aiosqlite.connect(path, isolation_level=None)
    except ENGINE_ERRORS as e:
        raise OpenError(f"unable to open database {path!r}: {e}") from e
    try:
        await db.execute_fetchall("PRAGMA schema_version")
    except ENGINE_ERRORS as e:
        await db.close()
        raise OpenError(f"unable to open database {path!r}: {e}") from e
    log.debug("opened %r", path)
    return Connection(db, path)


class Connection:
    def __init__(self, db, path=""):
        self.db = db
        self.path = path

    async def prepare(self, sql):
        try:
            cursor = await self.db.execute(sql)
        except ENGINE_ERRORS as e:
            raise PrepareError(str(e)) from e
        return Statement(cursor, sql)

    async def close(self):
        try:
            await self.db.close()
        except ENGINE_ERRORS as e:
            raise CloseError(f"unable to close database {self.path!r}: {e}") from e
        log.debug("closed %r", self.path)


class Statement:
    """
    One running statement. Rows are handed out one at a time by next_row();
    finalize() releases the cursor.

    The fetch behind next_row() is shielded: abandoning the caller leaves the
    fetch running on the connection thread, and finalize() waits for it to
    settle before closing the cursor.
    """

    def __init__(self, cursor, sql):
        self.cursor = cursor
        self.sql = sql
        self._fetch = None
        self._finalized = False

    def columns(self):
        if self.cursor.description is None:
            return []
        return [description[0] for description in self.cursor.description]

    async def _fetchone(self):
        try:
            values = await self.cursor.fetchone()
        except ENGINE_ERRORS as e:
            raise QueryError(str(e)) from e
        if values is None:
            return None
        return dict(zip(self.columns(), values))

    async def next_row(self):
        if self._finalized:
            raise QueryError("statement is finalized")
        self._fetch = asyncio.ensure_future(self._fetchone())
        return await asyncio.shield(self._fetch)

    async def finalize(self):
        self._finalized = True
        fetch, self._fetch = self._fetch, None
        if fetch is not None:
            if not fetch.done():
                await asyncio.wait((fetch,))
            discard(fetch)
        try:
            await self.cursor.close()
        except ENGINE_ERRORS as e:
            raise FinalizeError(f"unable to finalize statement: {e}") from e
