"""
入口转发

  - 包名: nfc_bridge_server
  - CLI: nfc-bridge-server

此文件仅用于兼容 `python main.py` 的运行方式，会转发到 `nfc_bridge_server.cli:main`。
"""

from nfc_bridge_server.cli import main as _cli_main


def main():
    _cli_main()


if __name__ == "__main__":  # pragma: no cover
    main()
