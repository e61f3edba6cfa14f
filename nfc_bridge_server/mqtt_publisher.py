from __future__ import annotations

import json
import logging
from typing import Any, Callable, Optional

import paho.mqtt.client as mqtt

from .broadcaster import DEFAULT_CHANNEL, EventBroadcaster
from .config_manager import ConfigManager


logger = logging.getLogger(__name__)


class MQTTEventPublisher:
    """把广播事件以 JSON 发布到 MQTT：<topic_prefix>/<event>"""

    def __init__(self, config_manager: ConfigManager, broadcaster: EventBroadcaster):
        self.config_manager = config_manager
        self.broadcaster = broadcaster
        self.client: Optional[mqtt.Client] = None
        self.connected = False
        self._unsubscribe: Optional[Callable[[], None]] = None

    def topic_for(self, event: str, channel: str = DEFAULT_CHANNEL) -> str:
        prefix = self.config_manager.get_mqtt_config().get("topic_prefix", "nfc-bridge").rstrip("/")
        if channel and channel != DEFAULT_CHANNEL:
            return f"{prefix}/{channel.strip('/')}/{event}"
        return f"{prefix}/{event}"

    # ---------- Broadcaster -> MQTT ----------
    def publish_event(self, event: str, payload: Any, channel: str = DEFAULT_CHANNEL) -> bool:
        if not self.client or not self.connected:
            return False
        topic = self.topic_for(event, channel)
        result = self.client.publish(topic, json.dumps(payload, ensure_ascii=False))
        if result.rc != mqtt.MQTT_ERR_SUCCESS:
            logger.warning("MQTT发布失败 %s: %s", topic, result.rc)
            return False
        return True

    # ---------- MQTT ----------
    def start_mqtt_client(self):
        self.client = mqtt.Client(callback_api_version=mqtt.CallbackAPIVersion.VERSION2)
        self.client.on_connect = self.on_connect
        self.client.on_disconnect = self.on_disconnect
        self._unsubscribe = self.broadcaster.subscribe(self.publish_event)
        try:
            mqtt_config = self.config_manager.get_mqtt_config()
            self.client.connect(mqtt_config["ip"], int(mqtt_config["port"]), 60)
            logger.info("连接到MQTT服务器 %s:%s", mqtt_config["ip"], mqtt_config["port"])
            self.client.loop_forever()
        except (OSError, ValueError) as e:
            logger.error("MQTT连接错误: %s", e)
            self.stop_mqtt_client()

    def stop_mqtt_client(self):
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None
        if self.client:
            try:
                self.client.disconnect()
                self.client.loop_stop()
                logger.info("MQTT连接已断开")
            except Exception as e:
                logger.error("断开MQTT连接时出错: %s", e)
        self.connected = False

    # ---------- MQTT handlers ----------
    def on_connect(self, client, userdata, flags, reason_code, properties=None):
        if reason_code.is_failure:
            logger.error("连接失败，返回码: %s", reason_code)
            return
        self.connected = True
        logger.info("成功连接到MQTT服务器")

    def on_disconnect(self, client, userdata, flags, reason_code, properties=None):
        self.connected = False
        logger.info("与MQTT服务器断开: %s", reason_code)
