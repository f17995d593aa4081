from __future__ import annotations

import itertools

import pytest

from reckoning.engine.emergence_engine import EmergenceObserver, normalize_above_threshold
from reckoning.models.emergence import EmergenceThresholds
from reckoning.models.entities import DIMENSIONS, EntityRef, RelationshipDimensions
from reckoning.models.events import CanonicalEvent

PLAYER = EntityRef(type="player", id="p1")
GUARD = EntityRef(type="npc", id="guard")


def _event(**overrides) -> CanonicalEvent:
    fields = {"id": "e1", "game_id": "g1", "turn": 3, "actor_type": "player", "actor_id": "p1"}
    fields.update(overrides)
    return CanonicalEvent(**fields)


def test_villain_detected_from_fear_and_resentment(store, emitter):
    store.upsert_relationship(
        "g1", GUARD, PLAYER, 1, {"fear": 0.85, "resentment": 0.8, "trust": 0.1, "respect": 0.2}
    )
    result = EmergenceObserver(store, emitter).on_event_committed(_event())

    [opportunity] = result.opportunities
    assert opportunity.type == "villain"
    assert opportunity.entity == GUARD
    assert opportunity.confidence > 0.3
    assert opportunity.triggering_event_id == "e1"
    assert opportunity.reason == (
        "NPC deeply fears the party, harbors deep resentment, with no trust or respect remaining. "
        "May seek revenge or opposition."
    )
    assert [f.dimension for f in opportunity.contributing_factors] == ["fear", "resentment", "trust", "respect"]
    assert emitter.types() == ["emergence:villain", "emergence:detected"]


def test_villain_needs_both_gates(store):
    store.upsert_relationship(
        "g1", GUARD, PLAYER, 1, {"fear": 0.4, "resentment": 0.8, "trust": 0.1, "respect": 0.2}
    )
    assert EmergenceObserver(store).on_event_committed(_event()).opportunities == []


def test_ally_detected_from_trust_and_respect(store, emitter):
    store.upsert_relationship("g1", GUARD, PLAYER, 1, {"trust": 0.85, "respect": 0.85, "fear": 0.0, "resentment": 0.0})
    result = EmergenceObserver(store, emitter).on_event_committed(_event())

    [opportunity] = result.opportunities
    assert opportunity.type == "ally"
    assert opportunity.reason == (
        "NPC has earned deep trust and respect and has befriended them. May offer aid or join the party."
    )
    assert emitter.types() == ["emergence:ally", "emergence:detected"]


def test_ally_blocked_by_fear(store, emitter):
    store.upsert_relationship("g1", GUARD, PLAYER, 1, {"trust": 0.85, "respect": 0.85, "fear": 0.6, "resentment": 0.0})
    result = EmergenceObserver(store, emitter).on_event_committed(_event())
    assert result.opportunities == []
    assert emitter.events == []


def test_ally_blocked_by_resentment(store):
    store.upsert_relationship("g1", GUARD, PLAYER, 1, {"trust": 0.9, "respect": 0.9, "resentment": 0.5})
    assert EmergenceObserver(store).on_event_committed(_event()).opportunities == []


def test_debt_path_alone_can_qualify(store):
    store.upsert_relationship(
        "g1", GUARD, PLAYER, 1, {"trust": 0.4, "respect": 0.5, "affection": 0.2, "debt": 1.0}
    )
    [opportunity] = EmergenceObserver(store).on_event_committed(_event()).opportunities
    assert opportunity.type == "ally"
    assert opportunity.reason == "NPC feels indebted to the party. May offer aid or join the party."
    assert opportunity.confidence == pytest.approx(0.8)
    assert [f.dimension for f in opportunity.contributing_factors] == ["debt"]


def test_low_confidence_is_suppressed(store, emitter):
    # qualifies on trust/respect but sits right at the thresholds
    store.upsert_relationship("g1", GUARD, PLAYER, 1, {"trust": 0.6, "respect": 0.6, "affection": 0.2})
    result = EmergenceObserver(store, emitter).on_event_committed(_event())
    assert result.opportunities == []
    assert emitter.events == []


def test_system_and_missing_actor_return_empty(store, emitter):
    store.upsert_relationship("g1", GUARD, PLAYER, 1, {"fear": 0.9, "resentment": 0.9})
    observer = EmergenceObserver(store, emitter)
    assert observer.on_event_committed(_event(actor_type="system", actor_id="narrator")).opportunities == []
    assert observer.on_event_committed(_event(actor_type=None, actor_id=None)).opportunities == []
    assert emitter.events == []


def test_non_npc_counterparts_are_ignored(store):
    store.upsert_relationship(
        "g1", EntityRef(type="character", id="c1"), PLAYER, 1, {"fear": 0.9, "resentment": 0.9}
    )
    assert EmergenceObserver(store).on_event_committed(_event()).opportunities == []


def test_target_scan_uses_npc_feelings_toward_others(store):
    store.upsert_relationship(
        "g1", GUARD, EntityRef(type="character", id="c2"), 1, {"fear": 0.9, "resentment": 0.9, "trust": 0.1}
    )
    result = EmergenceObserver(store).on_event_committed(_event(target_type="npc", target_id="guard"))
    assert [(o.entity.id, o.type) for o in result.opportunities] == [("guard", "villain")]


def test_same_npc_found_by_both_scans_is_reported_once(store, emitter):
    store.upsert_relationship("g1", GUARD, PLAYER, 1, {"fear": 0.9, "resentment": 0.9, "trust": 0.1})
    store.upsert_relationship(
        "g1", GUARD, EntityRef(type="character", id="c2"), 1, {"fear": 0.9, "resentment": 0.9, "trust": 0.1}
    )
    observer = EmergenceObserver(store, emitter)
    event = _event(target_type="npc", target_id="guard")

    for _ in range(2):
        result = observer.on_event_committed(event)
        assert [(o.entity.id, o.type) for o in result.opportunities] == [("guard", "villain")]
    assert emitter.types().count("emergence:villain") == 2
    assert emitter.types().count("emergence:detected") == 2


def test_custom_thresholds_are_honored(store):
    store.upsert_relationship("g1", GUARD, PLAYER, 1, {"fear": 0.5, "resentment": 0.9, "trust": 0.1, "respect": 0.1})
    strict = EmergenceObserver(store)
    loose = EmergenceObserver(store, thresholds=EmergenceThresholds(villain_fear=0.4))
    assert strict.on_event_committed(_event()).opportunities == []
    assert [o.type for o in loose.on_event_committed(_event()).opportunities] == ["villain"]


@pytest.mark.parametrize("kind", ["villain", "ally"])
def test_confidence_stays_in_unit_range(store, kind):
    observer = EmergenceObserver(store)
    grid = (-1.0, 0.0, 0.3, 0.5, 0.8, 1.0, 2.0)
    for values in itertools.product(grid, repeat=3):
        fear, trust, debt = values
        d = RelationshipDimensions(
            trust=trust, respect=trust, affection=debt, fear=fear, resentment=fear, debt=debt
        )
        assert 0.0 <= observer.calculate_confidence(kind, d) <= 1.0
    for edge in (0.0, 1.0):
        d = RelationshipDimensions(**{name: edge for name in DIMENSIONS})
        assert 0.0 <= observer.calculate_confidence(kind, d) <= 1.0


def test_normalize_above_threshold():
    assert normalize_above_threshold(0.5, 0.6) == 0.0
    assert normalize_above_threshold(0.6, 0.6) == 0.0
    assert normalize_above_threshold(0.8, 0.6) == pytest.approx(0.5)
    assert normalize_above_threshold(1.0, 0.6) == 1.0
    assert normalize_above_threshold(3.0, 0.6) == 1.0


def test_failing_listener_is_logged_not_raised(store, caplog):
    class Exploding:
        def emit(self, event):
            raise RuntimeError("boom")

    store.upsert_relationship("g1", GUARD, PLAYER, 1, {"fear": 0.9, "resentment": 0.9, "trust": 0.1})
    result = EmergenceObserver(store, Exploding()).on_event_committed(_event())
    assert len(result.opportunities) == 1
    assert "notification_listener_failed" in caplog.text
