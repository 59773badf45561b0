from __future__ import annotations

import asyncio
import contextlib
import logging

import pytest

from syrja.utils.tasks import spawn_guarded_background_task
from syrja.utils.tasks import spawn_periodic_task


def test_background_task_exits_on_error() -> None:
    async def okay_task() -> None:
        return

    async def bad_task() -> None:
        raise RuntimeError()

    async def run(task) -> None:
        await spawn_guarded_background_task(task)

    with contextlib.redirect_stdout(
        None,
    ), contextlib.redirect_stderr(None):
        asyncio.run(run(okay_task))
        with pytest.raises(SystemExit):
            asyncio.run(run(bad_task))


def test_background_task_error_is_logged(caplog) -> None:
    caplog.set_level(logging.ERROR)

    async def bad_task() -> None:
        raise RuntimeError('Oh no!')

    async def run(task) -> None:
        await spawn_guarded_background_task(task)

    with contextlib.redirect_stdout(
        None,
    ), contextlib.redirect_stderr(None):
        with pytest.raises(SystemExit):
            asyncio.run(run(bad_task))

    assert any(['Traceback' in record.message for record in caplog.records])
    assert any(['Oh no!' in record.message for record in caplog.records])


@pytest.mark.asyncio()
async def test_background_task_name() -> None:
    async def okay_task() -> None:
        return

    task = spawn_guarded_background_task(okay_task, name='my-task')
    assert task.get_name() == 'my-task'
    await task


@pytest.mark.asyncio()
async def test_periodic_task_calls_callback() -> None:
    calls: list[int] = []

    task = spawn_periodic_task(lambda: calls.append(1), 0.001, name='tick')
    await asyncio.sleep(0.05)
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass

    assert len(calls) > 1
    assert task.get_name() == 'tick'
