from __future__ import annotations

import logging

from nfc_bridge_server import cli


def test_logging_is_configured_before_config_is_loaded(monkeypatch, tmp_path) -> None:
    calls = []

    class _Config:
        def __init__(self, path):
            calls.append("config")

        def get_log_level(self) -> str:
            return "DEBUG"

    class _Server:
        def __init__(self, config):
            pass

        def start(self) -> None:
            calls.append("start")

        def serve_forever(self) -> None:
            calls.append("serve")

    monkeypatch.setattr(cli, "setup_logging", lambda level: calls.append(("logging", level)))
    monkeypatch.setattr(cli, "ConfigManager", _Config)
    monkeypatch.setattr(cli, "BridgeServer", _Server)
    monkeypatch.setattr(cli.signal, "signal", lambda *args: None)

    cli.main(["--config", str(tmp_path / "config.yaml"), "run"])

    assert calls == [("logging", "INFO"), "config", ("logging", "DEBUG"), "start", "serve"]


def test_setup_logging_does_not_stack_handlers() -> None:
    root = logging.getLogger()
    before = list(root.handlers)
    level = root.level
    try:
        cli.setup_logging("WARNING")
        cli.setup_logging("DEBUG")
        added = [h for h in root.handlers if h not in before]
        assert len(added) <= 1
        assert root.level == logging.DEBUG
    finally:
        for handler in root.handlers[:]:
            if handler not in before:
                root.removeHandler(handler)
        root.setLevel(level)
