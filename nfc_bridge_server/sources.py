from __future__ import annotations

import logging
import threading
from typing import Optional

from .broadcaster import EventBroadcaster
from .rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


class IngestionSource:
    """
    标签读取来源的基类（BLE / 串口）

    失败即停用：启动或运行中出错只记录日志并标记为不可用，不做重连。
    """

    name = "source"

    def __init__(self, broadcaster: EventBroadcaster, limiter: Optional[RateLimiter] = None):
        self.broadcaster = broadcaster
        self.limiter = limiter
        self.active = False
        self.failed = False
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self.failed:
            logger.info("[%s] 已停用，不再启动", self.name)
            return
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name=f"Source[{self.name}]", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread and self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join(timeout=2.0)
        self.active = False

    def deactivate(self, reason: str) -> None:
        logger.error("[%s] %s，来源已停用", self.name, reason)
        self.active = False
        self.failed = True
        self._stop.set()

    def is_running(self) -> bool:
        return bool(self._thread and self._thread.is_alive())

    def status(self) -> dict:
        return {"name": self.name, "active": self.active, "failed": self.failed}

    def _run(self) -> None:  # pragma: no cover
        raise NotImplementedError
