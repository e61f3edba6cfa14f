from __future__ import annotations

from typing import Optional

from .models import BeaconClassification

# 'I','D','L','E'
IDLE_MARKER = b"IDLE"
# 'U','I','D',':'
UID_MARKER = b"UID:"
# 2 字节厂商前缀 + 4 字节标记
MIN_PAYLOAD_LEN = 6

_HEX_BYTES = frozenset(b"0123456789ABCDEFabcdef")


def company_id_le(data: Optional[bytes]) -> Optional[int]:
    """厂商数据前 2 字节（小端）的 Company ID，长度不足返回 None"""
    if not data or len(data) < 2:
        return None
    return data[0] | (data[1] << 8)


def is_idle_beacon(data: Optional[bytes]) -> bool:
    """负载中任意位置出现 'IDLE' 即为空闲信标"""
    if not data or len(data) < MIN_PAYLOAD_LEN:
        return False
    return bytes(data).find(IDLE_MARKER) != -1


def extract_uid(data: Optional[bytes]) -> Optional[str]:
    """
    读取第一个 'UID:' 标记后的十六进制字符（转大写）
    遇到非十六进制字节或结尾即停止；没有读到任何字符返回 None
    """
    if not data or len(data) < MIN_PAYLOAD_LEN:
        return None
    data = bytes(data)
    start = data.find(UID_MARKER)
    if start == -1:
        return None

    out = []
    for c in data[start + len(UID_MARKER):]:
        if c not in _HEX_BYTES:
            break
        out.append(chr(c).upper())
    return "".join(out) or None


def classify_payload(data: Optional[bytes]) -> BeaconClassification:
    """空闲检测优先于 UID 提取"""
    if not data or len(data) < MIN_PAYLOAD_LEN:
        return BeaconClassification.unrecognized()
    if is_idle_beacon(data):
        return BeaconClassification.idle()
    uid = extract_uid(data)
    if uid is None:
        return BeaconClassification.unrecognized()
    return BeaconClassification.identified(uid)
