from __future__ import annotations

import copy
import logging
import os
import yaml

from typing import Callable, Any


logger = logging.getLogger(__name__)


def _to_bool(v: str) -> bool:
    return v.strip().lower() in ("1", "true", "yes", "on")


def _to_int(v: Any) -> int:
    # 支持 "0xFFFF" 这样的十六进制字符串
    if isinstance(v, str):
        return int(v.strip(), 0)
    return int(v)


def _env_or_default(env_key: str, default: Any, cast: Callable[[str], Any] = str) -> Any:
    v = os.environ.get(env_key)
    if v is not None:
        try:
            return cast(v)
        except Exception:
            return v
    return default


DEFAULT_CONFIG_PATH = _env_or_default(
    "NFC_BRIDGE_CONFIG",
    os.path.join(".", "config", "config.yaml"),
)

PROFILES = ("local", "gateway_only")
GATEWAY_RATE_LIMITS = ("none", "shared", "own")

# 环境变量 -> 配置项，每次加载后覆盖文件中的值（不写回文件）
ENV_OVERRIDES = (
    ("NFC_BRIDGE_PROFILE", ("profile",), str),
    ("ENABLE_BLE", ("ble", "enabled"), _to_bool),
    ("BLE_COMPANY_ID", ("ble", "company_id"), _to_int),
    ("BLE_RATE_MS", ("ble", "rate_window_ms"), int),
    ("BLE_ADAPTER", ("ble", "adapter"), str),
    ("ENABLE_SERIAL", ("serial", "enabled"), _to_bool),
    ("SERIAL_PORT", ("serial", "port"), str),
    ("SERIAL_BAUD", ("serial", "baud"), int),
    ("SERIAL_RATE_MS", ("serial", "rate_window_ms"), int),
    ("ENABLE_GATEWAY", ("gateway", "enabled"), _to_bool),
    ("GATEWAY_TOKEN", ("gateway", "token"), str),
    ("GATEWAY_HOST", ("gateway", "host"), str),
    ("GATEWAY_PORT", ("gateway", "port"), int),
    ("GATEWAY_RATE_LIMIT", ("gateway", "rate_limit"), str),
    ("ENABLE_MQTT", ("mqtt", "enabled"), _to_bool),
    ("NFC_MQTT_IP", ("mqtt", "ip"), str),
    ("NFC_MQTT_PORT", ("mqtt", "port"), int),
    ("NFC_MQTT_TOPIC_PREFIX", ("mqtt", "topic_prefix"), str),
    ("NFC_BRIDGE_LOG_LEVEL", ("logging", "level"), str),
)


class ConfigManager:
    """配置管理类，负责读写YAML配置文件"""

    def __init__(self, config_file: str | None = None):
        self.config_file = config_file or DEFAULT_CONFIG_PATH
        self.default_config = {
            "profile": "local",
            "ble": {
                "enabled": True,
                "company_id": 0xFFFF,
                "rate_window_ms": 5000,
                "adapter": None,
            },
            "serial": {
                "enabled": True,
                "port": None,
                "baud": 115200,
                "rate_window_ms": 5000,
            },
            "gateway": {
                "enabled": True,
                # 密钥建议通过 GATEWAY_TOKEN 提供
                "token": "",
                "host": "0.0.0.0",
                "port": 3000,
                "cors_origins": "*",
                "rate_limit": "none",
                "rate_window_ms": 5000,
            },
            "rate_limiter": {
                "shared": False,
                "window_ms": 5000,
                "prune_expired": False,
            },
            "mqtt": {
                "enabled": False,
                "ip": "localhost",
                "port": 1883,
                "topic_prefix": "nfc-bridge",
            },
            "logging": {
                "level": "INFO",
            },
        }
        self.load_config()

    def load_config(self) -> None:
        """加载配置文件，如果不存在则创建默认配置；最后叠加环境变量"""
        try:
            if os.path.exists(self.config_file):
                with open(self.config_file, "r", encoding="utf-8") as f:
                    self.config = yaml.safe_load(f) or {}
                if not isinstance(self.config, dict):
                    raise yaml.YAMLError("配置文件根节点必须是映射")
                self._merge_default_config()
            else:
                self.config = copy.deepcopy(self.default_config)
                self.save_config()
        except (OSError, yaml.YAMLError) as e:
            # 回退到内存中的默认配置，不覆盖用户文件
            logger.warning("加载配置文件失败，使用默认配置: %s", e)
            self.config = copy.deepcopy(self.default_config)
        self._apply_env_overrides()

    def _apply_env_overrides(self) -> None:
        for env_key, path, cast in ENV_OVERRIDES:
            v = os.environ.get(env_key)
            if v is None:
                continue
            try:
                value = cast(v)
            except ValueError:
                logger.warning("忽略无效的环境变量 %s=%r", env_key, v)
                continue
            section = self.config
            for key in path[:-1]:
                if not isinstance(section.get(key), dict):
                    section[key] = {}
                section = section[key]
            section[path[-1]] = value

    def _merge_default_config(self) -> None:
        def merge_dict(default, current):
            for key, value in default.items():
                if key not in current:
                    current[key] = copy.deepcopy(value)
                elif isinstance(value, dict) and isinstance(current[key], dict):
                    merge_dict(value, current[key])

        merge_dict(self.default_config, self.config)

    def save_config(self) -> None:
        try:
            os.makedirs(os.path.dirname(self.config_file) or ".", exist_ok=True)
            with open(self.config_file, "w", encoding="utf-8") as f:
                yaml.dump(
                    self.config,
                    f,
                    default_flow_style=False,
                    allow_unicode=True,
                    indent=2,
                )
        except OSError as e:
            # 忽略保存异常
            logger.debug("保存配置文件失败: %s", e)

    # ---------- Accessors ----------
    def get_profile(self) -> str:
        profile = str(self.config.get("profile") or "local")
        if profile not in PROFILES:
            raise ValueError(f"未知的 profile: {profile}（可选 {', '.join(PROFILES)}）")
        return profile

    def get_ble_config(self):
        return self.config["ble"]

    def get_serial_config(self):
        return self.config["serial"]

    def get_gateway_config(self):
        return self.config["gateway"]

    def get_rate_limiter_config(self):
        return self.config["rate_limiter"]

    def get_mqtt_config(self):
        return self.config["mqtt"]

    def get_log_level(self) -> str:
        return str(self.config.get("logging", {}).get("level", "INFO")).upper()

    def get_company_id(self) -> int:
        return _to_int(self.get_ble_config().get("company_id", 0xFFFF))

    def get_gateway_rate_limit(self) -> str:
        mode = str(self.get_gateway_config().get("rate_limit") or "none").lower()
        if mode not in GATEWAY_RATE_LIMITS:
            raise ValueError(f"未知的 gateway.rate_limit: {mode}（可选 {', '.join(GATEWAY_RATE_LIMITS)}）")
        return mode

