from __future__ import annotations

import pytest

from reckoning.db.store import Store
from reckoning.models.entities import EntityRef
from reckoning.notifications import Notification, NotificationEmitter

PLAYER = EntityRef(type="player", id="p1")


class RecordingEmitter(NotificationEmitter):
    def __init__(self) -> None:
        self.events: list[Notification] = []

    def emit(self, event: Notification) -> None:
        self.events.append(event)

    def types(self) -> list[str]:
        return [event.type for event in self.events]


@pytest.fixture
def store(tmp_path):
    db = Store(str(tmp_path / "reckoning.db"))
    yield db
    db.close()


@pytest.fixture
def emitter():
    return RecordingEmitter()
