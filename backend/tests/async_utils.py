from __future__ import annotations

import asyncio
from typing import Any, Awaitable


def run(coro: Awaitable[Any]) -> Any:
    return asyncio.run(coro)
