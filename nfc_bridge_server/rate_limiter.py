from __future__ import annotations

import threading
import time
from collections import OrderedDict
from typing import Callable, Optional

DEFAULT_WINDOW_MS = 5000


def monotonic_ms() -> int:
    return int(time.monotonic() * 1000)


class RateLimiter:
    """
    按 UID 限流（去重）
    同一 UID 在窗口期内只接受一次；窗口边界包含在内（now - last >= window 即接受）
    """

    def __init__(
        self,
        window_ms: int = DEFAULT_WINDOW_MS,
        clock: Optional[Callable[[], int]] = None,
        prune_expired: bool = False,
    ):
        self.window_ms = int(window_ms)
        self.clock = clock or monotonic_ms
        # 开启后按接受时间排序，过期条目在每次 accept 时淘汰
        self.prune_expired = prune_expired
        self.lock = threading.Lock()
        self._last_seen: "OrderedDict[str, int]" = OrderedDict()

    def accept(self, identifier: str, now: Optional[int] = None) -> bool:
        if now is None:
            now = self.clock()
        with self.lock:
            if self.prune_expired:
                self._prune(now)
            prev = self._last_seen.get(identifier)
            if prev is not None and now - prev < self.window_ms:
                return False
            self._last_seen[identifier] = now
            if self.prune_expired:
                self._last_seen.move_to_end(identifier)
            return True

    def _prune(self, now: int) -> None:
        while self._last_seen:
            key, ts = next(iter(self._last_seen.items()))
            if now - ts < self.window_ms:
                break
            del self._last_seen[key]

    def clear(self) -> None:
        with self.lock:
            self._last_seen.clear()

    def __len__(self) -> int:
        return len(self._last_seen)

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._last_seen
