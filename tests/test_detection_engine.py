from __future__ import annotations

import pytest

from reckoning.engine.detection_engine import (
    aggregate_relationship_changes,
    detect_relationship_suggestions,
    detect_system_suggestions,
    detect_trait_patterns,
    detect_trait_suggestions,
)
from reckoning.models.entities import EntityRef
from reckoning.models.events import CanonicalEvent

PLAYER = EntityRef(type="player", id="p1")
GUARD = EntityRef(type="npc", id="guard")


def _event(content: str, turn: int = 1, **fields) -> CanonicalEvent:
    base = {"id": f"e{turn}", "game_id": "g1", "turn": turn, "content": content, "actor_type": "player", "actor_id": "p1"}
    base.update(fields)
    return CanonicalEvent(**base)


def test_trait_keywords_suggest_each_trait_once():
    suggestions = detect_trait_suggestions(_event("I Spare him, show mercy and forgive the thief."))
    assert [(s.trait, s.entity_id) for s in suggestions] == [("merciful", "p1")]
    assert suggestions[0].reason == 'Event contains "spare" suggesting merciful behavior'
    assert suggestions[0].evolution_type == "trait_add"


def test_system_actor_yields_nothing():
    event = _event("The storm rages on; it will destroy the village.", actor_type="system", actor_id="narrator")
    assert detect_system_suggestions(event) == []


def test_relationship_change_targets_the_targets_feelings():
    event = _event("You betray the guard.", target_type="npc", target_id="guard")
    suggestions = detect_relationship_suggestions(event)
    assert [(s.entity_id, s.target_id, s.dimension, s.change) for s in suggestions] == [
        ("guard", "p1", "trust", -0.3),
        ("guard", "p1", "resentment", 0.2),
    ]


def test_witnesses_feel_half_strength():
    event = _event("You protect the child.", witnesses=["baker", "smith"])
    suggestions = detect_relationship_suggestions(event)
    assert [(s.entity_type, s.entity_id, s.dimension) for s in suggestions] == [
        ("npc", "baker", "trust"),
        ("npc", "smith", "trust"),
    ]
    assert all(s.change == pytest.approx(0.05) for s in suggestions)
    assert suggestions[0].reason == 'Witnessed event containing "protect"'


def test_no_target_and_no_witnesses_yields_nothing():
    assert detect_relationship_suggestions(_event("You help the stranger.")) == []


def test_trait_patterns_require_threshold():
    events = [_event("A fierce battle", 1), _event("Another fight", 2), _event("We study", 3)]
    assert detect_trait_patterns(events, PLAYER) == []
    events.append(_event("Victory in combat", 4))
    [suggestion] = detect_trait_patterns(events, PLAYER)
    assert suggestion.trait == "battle-hardened"
    assert suggestion.reason.startswith("Repeated battle-hardened actions (3 occurrences): Turn 1:")


def test_aggregate_keeps_significant_totals():
    events = [
        _event("You help the guard.", 1, target_type="npc", target_id="guard"),
        _event("You help again.", 2, target_type="npc", target_id="guard"),
        _event("You mock him a little.", 3, target_type="npc", target_id="guard"),
    ]
    suggestions = aggregate_relationship_changes(events, PLAYER, GUARD)
    by_dimension = {s.dimension: s.change for s in suggestions}
    assert set(by_dimension) == {"trust", "respect"}
    assert by_dimension["trust"] == pytest.approx(0.2)
    assert by_dimension["respect"] == pytest.approx(-0.1)
    assert all(s.entity_id == "guard" and s.target_id == "p1" for s in suggestions)


def test_aggregate_drops_small_totals():
    events = [_event("You tell the truth.", 1, target_type="npc", target_id="guard")]
    assert aggregate_relationship_changes(events, PLAYER, GUARD) == []
