from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, List, Optional

from .models import EventSource, NormalizedEvent, RawBleEvent
from .rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

DEFAULT_CHANNEL = "/"
STREAM_CHANNEL = "/stream"

# listener(event, payload, channel)
Listener = Callable[[str, Any, str], None]


def now_ms() -> int:
    return int(time.time() * 1000)


class EventBroadcaster:
    """将事件分发给所有订阅者（Socket.IO、MQTT 等）"""

    def __init__(self):
        self.lock = threading.Lock()
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        with self.lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self.lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def publish(self, event: str, payload: Any, channel: str = DEFAULT_CHANNEL) -> None:
        with self.lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event, payload, channel)
            except Exception as e:
                # 单个订阅者失败不影响其他订阅者
                logger.exception("事件分发失败 (%s -> %r): %s", event, listener, e)

    # ---------- Typed helpers ----------
    def emit_nfc(self, event: NormalizedEvent) -> None:
        self.publish("nfc", event.to_dict())

    def emit_ble(self, raw: RawBleEvent) -> None:
        self.publish("ble", raw.to_dict())

    def emit_uid(self, payload: Any) -> None:
        self.publish("uid", payload, channel=STREAM_CHANNEL)

    def publish_sighting(
        self,
        uid: str,
        source: EventSource,
        limiter: Optional[RateLimiter] = None,
    ) -> Optional[NormalizedEvent]:
        """限流通过后以接收时间为时间戳发送 `nfc` 事件"""
        if limiter is not None and not limiter.accept(uid):
            return None
        event = NormalizedEvent(id=uid, ts=now_ms(), device=source)
        self.emit_nfc(event)
        return event
