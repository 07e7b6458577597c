"""Async bridge for running blocking storage and HTTP calls from MCP handlers."""

import asyncio
from typing import Any, Callable, TypeVar

T = TypeVar("T")


async def run_sync(
    func: Callable[..., T], *args: Any, **kwargs: Any
) -> T:
    """Run a synchronous function in a worker thread.

    Args:
        func: Synchronous function to call
        *args: Positional arguments for func
        **kwargs: Keyword arguments for func

    Returns:
        Result of func(*args, **kwargs)

    Example:
        result = await run_sync(coordinator.synchronize, post_id, request)
    """
    return await asyncio.to_thread(func, *args, **kwargs)
