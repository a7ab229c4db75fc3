"""Async utilities for bridging blocking HTTP provider calls to the async coordinator."""

import asyncio
import logging
from typing import Any, Callable, TypeVar

from ..exceptions import RemoteTransportError

T = TypeVar("T")
logger = logging.getLogger(__name__)


async def run_sync(
    func: Callable[..., T], *args: Any, **kwargs: Any
) -> T:
    """Run a synchronous function in a thread pool without blocking the event loop.

    Args:
        func: Synchronous function to call
        *args: Positional arguments for func
        **kwargs: Keyword arguments for func

    Returns:
        Result of func(*args, **kwargs)

    Example:
        items = await run_sync(provider.list_directory_recursive, "collections")
    """
    return await asyncio.to_thread(func, *args, **kwargs)


async def run_with_timeout(
    func: Callable[..., T],
    *args: Any,
    timeout: float | None = None,
    **kwargs: Any,
) -> T:
    """Run a synchronous function in a thread, bounded by ``timeout`` seconds.

    The awaiting task is cancelled when the deadline passes; the worker
    thread itself is left to finish on its own HTTP timeout.

    Args:
        func: Synchronous function to call
        *args: Positional arguments for func
        timeout: Deadline in seconds, or ``None`` for no deadline
        **kwargs: Keyword arguments for func

    Returns:
        Result of func(*args, **kwargs)

    Raises:
        RemoteTransportError: If the deadline passes first.
    """
    if timeout is None:
        return await run_sync(func, *args, **kwargs)
    try:
        return await asyncio.wait_for(
            asyncio.to_thread(func, *args, **kwargs), timeout
        )
    except asyncio.TimeoutError:
        name = getattr(func, "__name__", repr(func))
        logger.warning("%s timed out after %.1fs", name, timeout)
        raise RemoteTransportError(
            f"{name} timed out after {timeout:g}s"
        ) from None
