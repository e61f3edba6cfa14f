from __future__ import annotations

from typing import Any, List, Tuple

import pytest

from nfc_bridge_server.broadcaster import EventBroadcaster


class Recorder:
    def __init__(self) -> None:
        self.events: List[Tuple[str, Any, str]] = []

    def __call__(self, event: str, payload: Any, channel: str) -> None:
        self.events.append((event, payload, channel))

    def named(self, event: str) -> List[Any]:
        return [payload for name, payload, _ in self.events if name == event]


@pytest.fixture
def broadcaster() -> EventBroadcaster:
    return EventBroadcaster()


@pytest.fixture
def recorder(broadcaster: EventBroadcaster) -> Recorder:
    rec = Recorder()
    broadcaster.subscribe(rec)
    return rec
