from __future__ import annotations

import logging

import pytest

from reckoning.config import Settings
from reckoning.main import build_core, log_notification
from reckoning.models.events import CanonicalEvent


def test_commit_event_uses_rule_based_suggestions(tmp_path):
    core = build_core(Settings(db_path=str(tmp_path / "core.db")))
    seen: list[str] = []
    core.hub.on_any(lambda event: seen.append(event.type))

    event = CanonicalEvent(
        id="e1",
        game_id="g1",
        turn=1,
        content="You betray the guard.",
        actor_type="player",
        actor_id="p1",
        target_type="npc",
        target_id="guard",
    )
    pending, notifications = core.commit_event(event)

    assert [p.dimension for p in pending] == ["trust", "resentment"]
    assert pending[0].new_value == pytest.approx(0.2)
    assert pending[1].new_value == pytest.approx(0.2)
    assert notifications == []
    assert seen == ["evolution:created", "evolution:created"]
    assert core.store.count_events_between("g1", 0) == 1


def test_repeated_cruelty_surfaces_one_villain(tmp_path, caplog):
    core = build_core(Settings(db_path=str(tmp_path / "cycle.db")))
    base = {"game_id": "g1", "actor_type": "player", "actor_id": "p1", "target_type": "npc", "target_id": "guard"}
    surfaced = []

    with caplog.at_level(logging.INFO):
        for turn in range(1, 6):
            pending, notifications = core.commit_event(
                CanonicalEvent(id=f"e{turn}", turn=turn, content="You torture the prisoner.", **base)
            )
            surfaced.extend(notifications)
            for item in pending:
                core.evolutions.approve(item.id)

    assert [(n.opportunity.entity.id, n.opportunity.type) for n in surfaced] == [("guard", "villain")]
    assert len(core.notifications.get_pending_notifications("g1")) == 1
    assert "emergence_opportunity" in caplog.text
    summary = core.evolutions.get_entity_summary("g1", "npc", "guard")
    assert summary.relationships[0].label == "terrified"


def test_catch_all_listener_logs_readable_line(tmp_path, caplog):
    core = build_core(Settings(db_path=str(tmp_path / "log.db")))
    core.hub.on_any(log_notification)

    with caplog.at_level(logging.INFO, logger="reckoning.main"):
        scene = core.scenes.create_scene("g1", 1, name="Gate")

    assert f"notification type=scene:created scene {scene.id} created" in caplog.text
