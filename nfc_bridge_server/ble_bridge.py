from __future__ import annotations

import asyncio
import logging
from typing import Optional

from bleak import BleakScanner
from bleak.backends.device import BLEDevice
from bleak.backends.scanner import AdvertisementData
from bleak.exc import BleakError

from .broadcaster import EventBroadcaster
from .models import EventSource, NormalizedEvent, RawBleEvent
from .payload import classify_payload, company_id_le
from .rate_limiter import RateLimiter
from .sources import IngestionSource

logger = logging.getLogger(__name__)

DEFAULT_COMPANY_ID = 0xFFFF
POWERED_ON = "poweredOn"


class BleBridge(IngestionSource):
    """扫描 BLE 广播，从厂商数据中提取 UID 并广播 `ble` / `nfc` 事件"""

    name = "ble"

    def __init__(
        self,
        broadcaster: EventBroadcaster,
        limiter: Optional[RateLimiter] = None,
        company_id: int = DEFAULT_COMPANY_ID,
        adapter: Optional[str] = None,
    ):
        super().__init__(broadcaster, limiter)
        self.company_id = company_id
        self.adapter = adapter

    # ---------- Core processing ----------
    def handle_payload(self, data: bytes, address: Optional[str] = None) -> Optional[NormalizedEvent]:
        """
        处理一条厂商数据（含 2 字节小端 Company ID 前缀）：
        - Company ID 不匹配或长度不足：丢弃
        - 原始 `ble` 事件在去重前发送，空闲/无法识别时 uid 为 None
        - 空闲信标、无 UID、限流拒绝：不发送 `nfc`
        """
        if company_id_le(data) != self.company_id:
            return None

        data = bytes(data)
        classification = classify_payload(data)
        self.broadcaster.emit_ble(RawBleEvent.from_payload(data, classification.uid))

        if not classification.is_identified or classification.uid is None:
            return None

        event = self.broadcaster.publish_sighting(classification.uid, EventSource.BLE, self.limiter)
        if event is not None:
            logger.info("UID: %s from %s", event.id, address or "unknown")
        return event

    def _detection_callback(self, device: BLEDevice, advertisement: AdvertisementData) -> None:
        # bleak 已按 Company ID 拆分厂商数据，这里还原完整负载
        for company_id, data in (advertisement.manufacturer_data or {}).items():
            if company_id != self.company_id:
                continue
            self.handle_payload(company_id.to_bytes(2, "little") + bytes(data), device.address)

    # ---------- Radio ----------
    def on_radio_state(self, state: str) -> None:
        logger.info("adapter state: %s", state)
        if state == POWERED_ON:
            self.start()
        else:
            self.stop()

    def _run(self) -> None:
        try:
            asyncio.run(self._scan())
        except (BleakError, OSError) as e:
            self.deactivate(f"扫描失败: {e}")
        except Exception as e:
            # dbus / 后端的其他异常同样停用来源，不让线程静默退出
            logger.exception("[%s] 扫描线程异常: %s", self.name, e)
            self.deactivate(f"扫描异常: {e}")

    async def _scan(self) -> None:
        kwargs = {}
        if self.adapter:
            kwargs["adapter"] = self.adapter
        # 允许重复广播，由限流器去重
        scanner = BleakScanner(
            detection_callback=self._detection_callback,
            scanning_mode="active",
            **kwargs,
        )
        await scanner.start()
        self.active = True
        logger.info("scanning started (companyId: 0x%04x)", self.company_id)
        try:
            while not self._stop.is_set():
                await asyncio.sleep(0.2)
        finally:
            await scanner.stop()
            self.active = False
            logger.info("scanning stopped")
