"""Async utilities for git-super."""

import asyncio
from collections.abc import Callable
from functools import partial
from typing import Any, TypeVar


T = TypeVar("T")


async def run_in_executor(func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """Run a synchronous function in an executor.

    Keychain calls, credential file I/O and key derivation block; running
    them here keeps the event loop free for other tasks.

    Args:
        func: The synchronous function to run
        *args: Positional arguments to pass to the function
        **kwargs: Keyword arguments to pass to the function

    Returns:
        The result of the function call
    """
    loop = asyncio.get_running_loop()

    if kwargs:
        func = partial(func, **kwargs)

    return await loop.run_in_executor(None, func, *args)
