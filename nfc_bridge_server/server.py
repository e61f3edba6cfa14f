from __future__ import annotations

import logging
import threading
from typing import List, Optional

from .ble_bridge import POWERED_ON, BleBridge
from .broadcaster import EventBroadcaster
from .config_manager import ConfigManager
from .mqtt_publisher import MQTTEventPublisher
from .rate_limiter import RateLimiter
from .relay import GatewayRelay
from .serial_bridge import SerialBridge
from .sources import IngestionSource

logger = logging.getLogger(__name__)


class BridgeServer:
    """
    按配置组装各组件：
    - profile=local        : BLE 扫描 + 串口读卡器 + 网关中继
    - profile=gateway_only : 仅网关中继
    """

    def __init__(self, config_manager: ConfigManager):
        self.config_manager = config_manager
        self.profile = config_manager.get_profile()
        self.broadcaster = EventBroadcaster()
        self._stopped = threading.Event()

        rl_config = config_manager.get_rate_limiter_config()
        self.prune_expired = bool(rl_config.get("prune_expired", False))
        self.share_limiter = bool(rl_config.get("shared", False))
        # 需要互相抑制重复的来源显式共用这一实例
        self.shared_limiter = RateLimiter(
            window_ms=int(rl_config.get("window_ms", 5000)), prune_expired=self.prune_expired
        )

        self.ble: Optional[BleBridge] = None
        self.serial: Optional[SerialBridge] = None
        self.sources: List[IngestionSource] = []
        if self.profile == "local":
            self._build_local_sources()

        self.relay: Optional[GatewayRelay] = None
        gw_config = config_manager.get_gateway_config()
        if gw_config.get("enabled", True):
            self.relay = GatewayRelay(
                self.broadcaster,
                gateway_token=gw_config.get("token") or None,
                limiter=self._gateway_limiter(),
                cors_origins=gw_config.get("cors_origins", "*"),
            )
        elif self.profile == "gateway_only":
            logger.warning("profile=gateway_only 但网关已禁用，不会有任何事件来源")

        self.mqtt: Optional[MQTTEventPublisher] = None
        if config_manager.get_mqtt_config().get("enabled", False):
            self.mqtt = MQTTEventPublisher(config_manager, self.broadcaster)

    def _limiter(self, window_ms: int) -> RateLimiter:
        if self.share_limiter:
            return self.shared_limiter
        return RateLimiter(window_ms=window_ms, prune_expired=self.prune_expired)

    def _build_local_sources(self) -> None:
        ble_config = self.config_manager.get_ble_config()
        if ble_config.get("enabled", True):
            self.ble = BleBridge(
                self.broadcaster,
                self._limiter(int(ble_config.get("rate_window_ms", 5000))),
                company_id=self.config_manager.get_company_id(),
                adapter=ble_config.get("adapter"),
            )
            self.sources.append(self.ble)
        else:
            logger.info("[ble] disabled")

        serial_config = self.config_manager.get_serial_config()
        if serial_config.get("enabled", True):
            self.serial = SerialBridge(
                self.broadcaster,
                self._limiter(int(serial_config.get("rate_window_ms", 5000))),
                port=serial_config.get("port"),
                baud=int(serial_config.get("baud", 115200)),
            )
            self.sources.append(self.serial)
        else:
            logger.info("[serial] disabled")

    def _gateway_limiter(self) -> Optional[RateLimiter]:
        mode = self.config_manager.get_gateway_rate_limit()
        if mode == "shared":
            return self.shared_limiter
        if mode == "own":
            window_ms = int(self.config_manager.get_gateway_config().get("rate_window_ms", 5000))
            return RateLimiter(window_ms=window_ms, prune_expired=self.prune_expired)
        return None

    # ---------- Lifecycle ----------
    def start(self) -> None:
        logger.info("启动 NFC Bridge (profile=%s)", self.profile)
        if self.ble:
            self.ble.on_radio_state(POWERED_ON)
        if self.serial:
            self.serial.start()
        if self.mqtt:
            threading.Thread(target=self.mqtt.start_mqtt_client, name="MQTT", daemon=True).start()

    def serve_forever(self) -> None:
        """阻塞运行：有中继时运行 Socket.IO 服务，否则等待停止信号"""
        if self.relay:
            gw_config = self.config_manager.get_gateway_config()
            self.relay.run(host=gw_config.get("host", "0.0.0.0"), port=int(gw_config.get("port", 3000)))
        else:
            self._stopped.wait()

    def stop(self) -> None:
        for source in self.sources:
            source.stop()
        if self.mqtt:
            self.mqtt.stop_mqtt_client()
        if self.relay:
            self.relay.stop()
        self._stopped.set()
        logger.info("NFC Bridge 已停止")

    def status(self) -> dict:
        return {
            "profile": self.profile,
            "sources": [s.status() for s in self.sources],
            "relay": self.relay is not None,
            "mqtt": bool(self.mqtt and self.mqtt.connected),
        }
