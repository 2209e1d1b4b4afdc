from __future__ import annotations

import time
from collections.abc import Callable, Hashable
from typing import Generic, TypeVar

K = TypeVar("K", bound=Hashable)

COOLDOWN_SECONDS = 3.0
COOLDOWN_MESSAGE = "⏳ Please wait a moment before trying again."


def control_key(space_id: str | None, user_id: str, custom_id: str) -> str:
    return f"{space_id or 'dm'}:{user_id}:{custom_id}"


class CooldownGate(Generic[K]):
    """Fixed-window throttle: one pass per key per `window_s`.

    A rejected activation does not extend the window.
    """

    def __init__(
        self,
        *,
        window_s: float = COOLDOWN_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._window_s = window_s
        self._clock = clock
        self._last: dict[K, float] = {}

    def try_acquire(self, key: K) -> bool:
        now = self._clock()
        last = self._last.get(key)
        if last is not None and now - last < self._window_s:
            return False
        self._last[key] = now
        self._prune(now)
        return True

    def _prune(self, now: float) -> None:
        if len(self._last) < 1024:
            return
        expired = [key for key, at in self._last.items() if now - at >= self._window_s]
        for key in expired:
            del self._last[key]
