import asyncio
import logging
from collections.abc import Callable, Hashable
from dataclasses import dataclass
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
R = TypeVar("R")


@dataclass
class _PendingCall(Generic[R]):
    future: "asyncio.Future[R]"
    handle: asyncio.TimerHandle | None = None


class KeyedDebouncer(Generic[K, R]):
    """Run ``action(key)`` once per quiescence window per key.

    Every ``trigger`` inside a window resets that key's timer and returns the
    same future, which resolves with the result of the single run.
    """

    def __init__(self, delay: float, action: Callable[[K], R]) -> None:
        self._delay = delay
        self._action = action
        self._pending: dict[K, _PendingCall[R]] = {}

    @property
    def delay(self) -> float:
        return self._delay

    def trigger(self, key: K) -> "asyncio.Future[R]":
        loop = asyncio.get_running_loop()
        pending = self._pending.get(key)
        if pending is None:
            pending = _PendingCall(future=loop.create_future())
            self._pending[key] = pending
        elif pending.handle is not None:
            pending.handle.cancel()
        pending.handle = loop.call_later(self._delay, self._fire, key)
        return pending.future

    async def __call__(self, key: K) -> R:
        return await asyncio.shield(self.trigger(key))

    def is_pending(self, key: K) -> bool:
        return key in self._pending

    def discard(self, key: K, result: R) -> bool:
        """Drop the pending run for ``key``, resolving its waiters with ``result``."""
        pending = self._pending.pop(key, None)
        if pending is None:
            return False
        if pending.handle is not None:
            pending.handle.cancel()
        if not pending.future.done():
            pending.future.set_result(result)
        return True

    def cancel_all(self) -> None:
        for pending in self._pending.values():
            if pending.handle is not None:
                pending.handle.cancel()
            pending.future.cancel()
        self._pending.clear()

    def _fire(self, key: K) -> None:
        pending = self._pending.pop(key, None)
        if pending is None or pending.future.done():
            return
        try:
            result = self._action(key)
        except Exception as exc:
            logger.exception("Debounced action failed for %s", key)
            pending.future.set_exception(exc)
            return
        pending.future.set_result(result)
