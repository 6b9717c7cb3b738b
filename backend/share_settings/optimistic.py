from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

from share_access_core.errors import ShareAccessError
from share_client.observability import log_event

logger = logging.getLogger("optimistic_updates")

T = TypeVar("T")
Sender = Callable[[dict[str, Any]], Awaitable[Any]]


@dataclass(frozen=True)
class UpdateResult:
    key: str
    applied: bool
    value: Any
    error: str | None = None


class OptimisticUpdater:
    """Apply locally, await the backend, revert on rejection.

    Changes that share a ``group`` (one wire block, such as ``publicFields``)
    run one at a time: the next one waits for the previous to settle, so a
    payload never carries another change that has not been confirmed yet.
    ``in_flight`` still answers per key, from the moment a change is queued.
    """

    def __init__(self, send: Sender) -> None:
        self._send = send
        self._locks: dict[str, asyncio.Lock] = {}
        self._pending: dict[str, int] = {}
        self.last_error: str | None = None

    def _lock(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def in_flight(self, key: str) -> bool:
        return self._pending.get(key, 0) > 0

    async def apply(
        self,
        key: str,
        *,
        group: str | None = None,
        read: Callable[[], T],
        write: Callable[[T], None],
        compute: Callable[[T], T],
        payload: Callable[[], dict[str, Any]],
    ) -> UpdateResult:
        self._pending[key] = self._pending.get(key, 0) + 1
        try:
            async with self._lock(group or key):
                previous = read()
                value = compute(previous)
                write(value)
                try:
                    await self._send(payload())
                except ShareAccessError as exc:
                    write(previous)
                    self.last_error = exc.message
                    log_event(
                        logger, "policy_update_rolled_back", level="warning", key=key, error=type(exc).__name__
                    )
                    return UpdateResult(key=key, applied=False, value=previous, error=exc.message)
                self.last_error = None
                return UpdateResult(key=key, applied=True, value=value)
        finally:
            self._pending[key] -= 1
            if not self._pending[key]:
                del self._pending[key]
