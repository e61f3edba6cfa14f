from __future__ import annotations

import argparse
import logging
import signal
import sys

from .config_manager import ConfigManager
from .server import BridgeServer


def setup_logging(level: str = "INFO") -> None:
    numeric_level = getattr(logging, str(level).upper(), logging.INFO)
    root = logging.getLogger()
    root.setLevel(numeric_level)
    # 重复调用时不叠加 handler
    if not any(getattr(h, "_nfc_bridge", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        handler._nfc_bridge = True  # type: ignore[attr-defined]
        root.addHandler(handler)


def run_server(args):
    # 先装好 handler，加载配置时的告警也按统一格式输出；读取配置后再调整级别
    setup_logging(args.log_level or "INFO")
    config = ConfigManager(args.config)
    setup_logging(args.log_level or config.get_log_level())
    server = BridgeServer(config)

    # graceful shutdown
    def handle_sigint(sig, frame):
        server.stop()
        sys.exit(0)

    signal.signal(signal.SIGINT, handle_sigint)
    signal.signal(signal.SIGTERM, handle_sigint)

    server.start()
    server.serve_forever()


def main(argv=None):
    parser = argparse.ArgumentParser(prog="nfc-bridge-server", description="NFC/BLE Bridge Server CLI")
    parser.add_argument("--config", default=None, help="配置文件路径，默认读取 ./config/config.yaml 或环境变量 NFC_BRIDGE_CONFIG")
    parser.add_argument("--log-level", default=None, help="日志级别（DEBUG/INFO/WARNING/ERROR），默认取配置文件")
    sub = parser.add_subparsers(dest="cmd")

    p_run = sub.add_parser("run", help="运行 BLE/串口/网关中继服务")
    p_run.set_defaults(func=run_server)

    args = parser.parse_args(argv)
    # 无子命令/无参数时默认启动服务器
    if not hasattr(args, "func"):
        return run_server(args)
    return args.func(args)


if __name__ == "__main__":
    main()
