"""Thread pool for blocking CLI work.

git and gh invocations are plain ``subprocess.run`` calls. They run on a
dedicated pool so slow pushes or API calls never starve the default executor
used by ``asyncio.to_thread`` elsewhere in the process.
"""

import asyncio
import functools
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, TypeVar

T = TypeVar("T")

_cli_executor = ThreadPoolExecutor(max_workers=8, thread_name_prefix="prflow-cli")


async def run_blocking(func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """Run ``func(*args, **kwargs)`` on the CLI pool and await its result."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(_cli_executor, functools.partial(func, *args, **kwargs))
