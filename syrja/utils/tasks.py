"""Spawn periodic asyncio background tasks with error handling."""
from __future__ import annotations

import asyncio
import logging
import traceback
from typing import Any
from typing import Callable
from typing import Coroutine

logger = logging.getLogger(__name__)


async def _execute_and_log_traceback(
    coro: Callable[..., Coroutine[Any, Any, None]],
    *args: Any,
    **kwargs: Any,
) -> None:
    """Execute a coroutine and log any tracebacks.

    Catches any exceptions raised by the coroutine, logs the traceback,
    and re-raises the exception.
    """
    try:
        await coro(*args, **kwargs)
    except Exception:
        logger.error(traceback.format_exc())
        raise


def exit_on_error(task: asyncio.Task[Any]) -> None:
    """Task callback that raises SystemExit on task exception."""
    if not task.cancelled() and task.exception() is not None:
        logger.error(
            f'Exception in background task (name="{task.get_name()}"): '
            f'{task.exception()!r}',
        )
        raise SystemExit(1)


def spawn_guarded_background_task(
    coro: Callable[..., Coroutine[Any, Any, None]],
    *args: Any,
    name: str | None = None,
    **kwargs: Any,
) -> asyncio.Task[Any]:
    """Run a coroutine safely in the background.

    Launches the coroutine as an asyncio task and sets the done
    callback to [`exit_on_error()`][syrja.utils.tasks.exit_on_error].
    Background tasks that are never awaited would otherwise swallow their
    exceptions and leave the server running without, for example, its
    rate limiter sweeper.

    Args:
        coro: Coroutine to run as task.
        args: Positional arguments for the coroutine.
        name: Optional name of the task.
        kwargs: Keyword arguments for the coroutine.

    Returns:
        Asyncio task handle.
    """
    task = asyncio.create_task(
        _execute_and_log_traceback(coro, *args, **kwargs),
        name=name,
    )
    task.add_done_callback(exit_on_error)
    return task


def spawn_periodic_task(
    callback: Callable[[], Any],
    interval: float,
    *,
    name: str | None = None,
) -> asyncio.Task[Any]:
    """Call a synchronous function every `interval` seconds.

    Args:
        callback: Zero argument function to invoke.
        interval: Seconds to sleep between calls.
        name: Optional name of the task.

    Returns:
        Asyncio task handle. Cancel the task to stop the calls.
    """

    async def _loop() -> None:
        while True:
            await asyncio.sleep(interval)
            callback()

    return spawn_guarded_background_task(_loop, name=name)
