"""PULSE — All-or-nothing fan-out."""

import asyncio
from typing import Any, Awaitable, List


async def gather_all(*aws: Awaitable[Any]) -> List[Any]:
    """Run awaitables concurrently; on the first failure cancel the rest.

    The same happens when the caller itself is cancelled. No partial
    result is ever returned: either every value or the first exception.
    """
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
