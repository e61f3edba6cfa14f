"""NFC Bridge Server package.

This package provides:
- payload: UID extraction / idle detection for BLE manufacturer data
- RateLimiter: per-UID dedup window shared by the ingestion sources
- EventBroadcaster: fan-out of `nfc` / `ble` / `uid` events
- BleBridge / SerialBridge: BLE scanner and serial reader sources
- GatewayRelay: Socket.IO relay with shared-secret gateway channel
- ConfigManager: YAML-based configuration management
"""

from .ble_bridge import BleBridge
from .broadcaster import EventBroadcaster
from .config_manager import ConfigManager
from .models import BeaconClassification, BeaconStatus, EventSource, NormalizedEvent, RawBleEvent
from .payload import classify_payload, extract_uid, is_idle_beacon
from .rate_limiter import RateLimiter
from .relay import GatewayRelay
from .serial_bridge import SerialBridge
from .server import BridgeServer

__all__ = [
    "BeaconClassification",
    "BeaconStatus",
    "BleBridge",
    "BridgeServer",
    "ConfigManager",
    "EventBroadcaster",
    "EventSource",
    "GatewayRelay",
    "NormalizedEvent",
    "RawBleEvent",
    "RateLimiter",
    "SerialBridge",
    "classify_payload",
    "extract_uid",
    "is_idle_beacon",
]
