from __future__ import annotations

import logging
import re
from typing import Iterable, Optional, Union

import serial
import serial.tools.list_ports

from .broadcaster import EventBroadcaster
from .models import EventSource, NormalizedEvent
from .rate_limiter import RateLimiter
from .sources import IngestionSource

logger = logging.getLogger(__name__)

UID_PATTERN = re.compile(r"^[0-9A-F]{8,32}$")
DEFAULT_BAUD = 115200

# 自动选择端口时的优先顺序：tty.（macOS/部分 Linux）、cu.（macOS）、COMx（Windows）
_PORT_PATTERNS = (
    re.compile(r"tty\.", re.IGNORECASE),
    re.compile(r"cu\.", re.IGNORECASE),
    re.compile(r"COM\d+", re.IGNORECASE),
)


def normalize_line(line: Union[str, bytes]) -> str:
    if isinstance(line, bytes):
        line = line.decode("ascii", errors="replace")
    return line.replace("\r", "").strip().upper()


def is_hex_uid(uid: str) -> bool:
    return UID_PATTERN.fullmatch(uid) is not None


def pick_port_path(ports: Optional[Iterable[str]] = None) -> Optional[str]:
    """在可用串口中挑选读卡器端口，没有可用端口返回 None"""
    if ports is None:
        ports = [p.device for p in serial.tools.list_ports.comports()]
    paths = [p for p in ports if p]
    for pattern in _PORT_PATTERNS:
        for path in paths:
            if pattern.search(path):
                return path
    return paths[0] if paths else None


class SerialBridge(IngestionSource):
    """
    从串口读卡器逐行读取 UID

    打开失败、读写错误或端口关闭后来源永久停用（不重连）。
    """

    name = "serial"

    def __init__(
        self,
        broadcaster: EventBroadcaster,
        limiter: Optional[RateLimiter] = None,
        port: Optional[str] = None,
        baud: int = DEFAULT_BAUD,
        timeout_s: float = 0.5,
    ):
        super().__init__(broadcaster, limiter)
        self.port = port
        self.baud = int(baud)
        self.timeout_s = timeout_s

    def handle_line(self, line: Union[str, bytes]) -> Optional[NormalizedEvent]:
        uid = normalize_line(line)
        if not is_hex_uid(uid):
            return None
        event = self.broadcaster.publish_sighting(uid, EventSource.SERIAL, self.limiter)
        if event is not None:
            logger.info("NFC UID: %s", uid)
        return event

    def _run(self) -> None:
        port_path = self.port or pick_port_path()
        if not port_path:
            self.deactivate("no serial port found")
            return

        try:
            ser = serial.Serial(port_path, self.baud, timeout=self.timeout_s)
        except (serial.SerialException, OSError, ValueError) as e:
            self.deactivate(f"failed to open {port_path}: {e}")
            return

        logger.info("opened %s @ %s", port_path, self.baud)
        self.active = True
        pending = b""
        try:
            with ser:
                while not self._stop.is_set():
                    raw = ser.readline()
                    if not raw:
                        continue
                    # 超时可能只读到半行
                    pending += raw
                    if not pending.endswith(b"\n"):
                        continue
                    line, pending = pending, b""
                    self.handle_line(line)
        except (serial.SerialException, OSError) as e:
            self.deactivate(f"error on {port_path}: {e}")
            return

        self.active = False
        if not self.failed:
            logger.info("[%s] port closed", self.name)
