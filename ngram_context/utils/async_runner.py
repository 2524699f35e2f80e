# async_runner.py - collaborators may be sync or async; the core awaits whatever they return.

import inspect
from typing import Any


async def maybe_await(value: Any) -> Any:
    """Await value when it is awaitable, otherwise return it unchanged."""
    if inspect.isawaitable(value):
        return await value
    return value
