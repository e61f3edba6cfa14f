from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional


class EventSource(Enum):
    BLE = "ble"
    SERIAL = "serial"
    GATEWAY = "gateway"


class BeaconStatus(Enum):
    IDLE = "idle"
    IDENTIFIED = "identified"
    UNRECOGNIZED = "unrecognized"


@dataclass(frozen=True)
class BeaconClassification:
    """
    广播负载分类结果
    """

    status: BeaconStatus
    uid: Optional[str] = None

    @classmethod
    def idle(cls) -> "BeaconClassification":
        return cls(status=BeaconStatus.IDLE)

    @classmethod
    def identified(cls, uid: str) -> "BeaconClassification":
        return cls(status=BeaconStatus.IDENTIFIED, uid=uid)

    @classmethod
    def unrecognized(cls) -> "BeaconClassification":
        return cls(status=BeaconStatus.UNRECOGNIZED)

    @property
    def is_idle(self) -> bool:
        return self.status is BeaconStatus.IDLE

    @property
    def is_identified(self) -> bool:
        return self.status is BeaconStatus.IDENTIFIED


@dataclass(frozen=True)
class NormalizedEvent:
    """
    统一后的标签事件，对外以 `nfc` 事件发送
    """

    id: str
    ts: int
    device: EventSource

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "ts": self.ts, "device": self.device.value}


@dataclass(frozen=True)
class RawBleEvent:
    """BLE 原始负载（去重前），对外以 `ble` 事件发送"""

    bytes: List[int] = field(default_factory=list)
    uid: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"bytes": list(self.bytes), "uid": self.uid}

    @classmethod
    def from_payload(cls, data: bytes, uid: Optional[str]) -> "RawBleEvent":
        return cls(bytes=list(data), uid=uid)


@dataclass(frozen=True)
class GatewaySighting:
    """
    网关上报的 `uid` 消息
    uid 已规范化为大写；payload 保留原始内容用于原样转发
    """

    uid: str
    payload: Dict[str, Any]

    @classmethod
    def parse(cls, payload: Any) -> Optional["GatewaySighting"]:
        if not isinstance(payload, Mapping):
            return None
        raw = payload.get("uid")
        if raw is None:
            return None
        uid = str(raw).strip().upper()
        if not uid or any(c not in "0123456789ABCDEF" for c in uid):
            return None
        return cls(uid=uid, payload=dict(payload))
