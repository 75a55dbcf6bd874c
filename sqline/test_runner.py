import asyncio
import json
import logging

import pytest

from sqline.errors import FinalizeError, Interrupted, PrepareError, QueryError, StatementError, WriteError
from sqline.interrupts import InterruptChannel
from sqline.output_fake import OutputFake
from sqline.runner import StatementRunner
from sqline.storage_fake import FakeConnection

pytestmark = pytest.mark.asyncio

ROWS = [{"id": i, "name": f"row{i}"} for i in range(5)]


def make_runner():
    output = OutputFake()
    return StatementRunner(InterruptChannel(), output), output


async def wait_for(condition):
    for _ in range(1000):
        if condition():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition never became true")


async def test_streams_every_row_in_order():
    runner, output = make_runner()
    conn = FakeConnection()
    conn.test_set_result("SELECT * FROM t", ROWS)

    assert await runner.run(conn, "SELECT * FROM t") == 5
    assert [json.loads(line) for line in output.test_get_lines()] == ROWS
    assert conn.test_finalize_counts() == [1]


async def test_statement_without_rows_writes_nothing():
    runner, output = make_runner()
    conn = FakeConnection()
    conn.test_set_result("CREATE TABLE t (x)")

    assert await runner.run(conn, "CREATE TABLE t (x)") == 0
    assert output.test_get_output() == ""
    assert conn.test_finalize_counts() == [1]


async def test_prepare_failure_acquires_nothing():
    runner, output = make_runner()
    conn = FakeConnection()

    with pytest.raises(PrepareError, match="syntax error") as info:
        await runner.run(conn, "not sql")
    assert isinstance(info.value, StatementError)
    assert conn.statements == []
    assert output.test_get_output() == ""


@pytest.mark.parametrize("k", [0, 2, 5])
async def test_query_error_after_k_rows_finalizes_once(k):
    runner, output = make_runner()
    conn = FakeConnection()
    conn.test_set_result("SELECT * FROM t", ROWS, fail_at=k)

    with pytest.raises(QueryError):
        await runner.run(conn, "SELECT * FROM t")
    assert len(output.test_get_lines()) == k
    assert conn.test_finalize_counts() == [1]


@pytest.mark.parametrize("k", [0, 3, 5])
async def test_interrupt_after_k_rows(k):
    runner, output = make_runner()
    conn = FakeConnection()
    conn.test_set_result("SELECT * FROM t", ROWS, block_at=k)

    run = asyncio.ensure_future(runner.run(conn, "SELECT * FROM t"))
    await wait_for(lambda: conn.statements and conn.statements[0].fetches > k)
    await wait_for(lambda: len(output.test_get_lines()) == k)
    runner.interrupts.interrupt()

    with pytest.raises(Interrupted):
        await run
    statement = conn.statements[0]
    assert [json.loads(line) for line in output.test_get_lines()] == ROWS[:k]
    assert statement.finalized == 1

    # releasing the abandoned fetch delivers nothing more
    statement.released.set()
    await asyncio.sleep(0)
    await asyncio.sleep(0)
    assert len(output.test_get_lines()) == k
    assert runner.interrupts.pending() == 0
    assert statement.fetched_after_finalize == 0


async def test_next_fetch_is_issued_before_row_is_written():
    runner, output = make_runner()
    conn = FakeConnection()
    conn.test_set_result("SELECT * FROM t", ROWS)
    output.test_block()

    run = asyncio.ensure_future(runner.run(conn, "SELECT * FROM t"))
    await wait_for(lambda: conn.statements and conn.statements[0].fetches == 2)
    # first row still waiting on the sink
    assert output.chunks == 1
    assert output.test_get_output() == '{"id":0,"name":"row0"}'

    output.test_release()
    assert await run == 5
    assert [json.loads(line) for line in output.test_get_lines()] == ROWS


async def test_write_failure_interrupts_the_statement():
    runner, output = make_runner()
    conn = FakeConnection()
    conn.test_set_result("SELECT * FROM t", ROWS)
    output.test_fail_after(2)

    with pytest.raises(WriteError):
        await runner.run(conn, "SELECT * FROM t")
    assert output.test_get_lines() == ['{"id":0,"name":"row0"}']
    assert conn.test_finalize_counts() == [1]
    assert runner.interrupts.pending() == 0
    await asyncio.sleep(0)
    # the prefetch issued before the failed write never reaches the statement
    assert conn.statements[0].fetched_after_finalize == 0


async def test_finalize_failure_is_raised_after_clean_run():
    runner, output = make_runner()
    conn = FakeConnection()
    conn.test_set_result("SELECT 1", [{"1": 1}], finalize_error="disk I/O error")

    with pytest.raises(FinalizeError, match="disk I/O error"):
        await runner.run(conn, "SELECT 1")
    assert output.test_get_lines() == ['{"1":1}']


async def test_earlier_error_wins_over_finalize_failure(caplog):
    runner, output = make_runner()
    conn = FakeConnection()
    conn.test_set_result("SELECT * FROM t", ROWS, fail_at=1, finalize_error="disk I/O error")

    with caplog.at_level(logging.WARNING, logger="sqline.runner"):
        with pytest.raises(QueryError):
            await runner.run(conn, "SELECT * FROM t")
    assert conn.test_finalize_counts() == [1]
    assert "disk I/O error" in caplog.text
