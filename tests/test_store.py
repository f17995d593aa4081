from __future__ import annotations

import logging
import sqlite3

import pytest

from reckoning.db.store import Store
from reckoning.models.entities import DIMENSIONS, EntityRef
from reckoning.models.events import CanonicalEvent
from reckoning.models.evolutions import PendingEvolutionChanges

NPC = EntityRef(type="npc", id="guard")
PLAYER = EntityRef(type="player", id="p1")


def test_new_relationship_starts_from_defaults(store):
    rel = store.upsert_relationship("g1", NPC, PLAYER, 3, {"fear": 0.4})
    assert (rel.trust, rel.respect, rel.affection) == (0.5, 0.5, 0.5)
    assert rel.fear == 0.4
    assert rel.resentment == 0.0
    assert rel.debt == 0.0
    assert rel.updated_turn == 3


def test_upsert_keeps_one_row_and_only_touches_named_dimension(store):
    first = store.upsert_relationship("g1", NPC, PLAYER, 1, {"trust": 0.9, "fear": 0.2})
    second = store.upsert_relationship("g1", NPC, PLAYER, 4, {"fear": 0.7})

    assert second.id == first.id
    assert second.trust == 0.9
    assert second.fear == 0.7
    assert second.updated_turn == 4
    assert len(store.find_relationships_by_game("g1")) == 1


def test_relationship_direction_matters(store):
    store.upsert_relationship("g1", NPC, PLAYER, 1, {"trust": 0.1})
    store.upsert_relationship("g1", PLAYER, NPC, 1, {"trust": 0.9})
    assert store.find_relationship_between("g1", NPC, PLAYER).trust == 0.1
    assert store.find_relationship_between("g1", PLAYER, NPC).trust == 0.9


@pytest.mark.parametrize("raw", [-5.0, -0.01, 1.01, 42.0, 0.0, 1.0])
def test_written_dimensions_are_always_in_range(store, raw):
    rel = store.upsert_relationship("g1", NPC, PLAYER, 1, {name: raw for name in DIMENSIONS})
    for name in DIMENSIONS:
        assert 0.0 <= getattr(rel, name) <= 1.0


def test_unknown_dimension_is_rejected(store):
    with pytest.raises(ValueError):
        store.upsert_relationship("g1", NPC, PLAYER, 1, {"loyalty": 0.5})


def test_lookups_return_empty_results(store):
    assert store.find_relationship_between("g1", NPC, PLAYER) is None
    assert store.find_relationships_by_entity("g1", NPC) == []
    assert store.find_traits_by_entity("g1", NPC) == []
    assert store.get_pending_evolution("missing") is None
    assert store.get_scene("missing") is None
    assert store.get_current_scene_id("g1") is None


def test_relationships_by_entity_cover_both_directions_and_games(store):
    other = EntityRef(type="npc", id="smith")
    store.upsert_relationship("g1", NPC, PLAYER, 1)
    store.upsert_relationship("g1", PLAYER, other, 1)
    store.upsert_relationship("g2", NPC, PLAYER, 1)
    assert len(store.find_relationships_by_entity("g1", PLAYER)) == 2
    assert len(store.find_relationships_by_entity("g1", NPC)) == 1


def test_threshold_query_validates_inputs(store):
    store.upsert_relationship("g1", NPC, PLAYER, 1, {"fear": 0.8})
    store.upsert_relationship("g1", PLAYER, NPC, 1, {"fear": 0.1})
    found = store.find_relationships_by_threshold("g1", "fear", 0.5)
    assert [rel.from_entity.id for rel in found] == ["guard"]
    assert len(store.find_relationships_by_threshold("g1", "fear", 0.5, "<")) == 1
    with pytest.raises(ValueError):
        store.find_relationships_by_threshold("g1", "fear; DROP TABLE relationships", 0.5)
    with pytest.raises(ValueError):
        store.find_relationships_by_threshold("g1", "fear", 0.5, "!=")


def test_trait_add_is_idempotent_and_remove_keeps_history(store):
    store.add_trait("g1", NPC, "haunted", 2, "e1")
    store.add_trait("g1", NPC, "haunted", 5, "e2")
    traits = store.find_traits_by_entity("g1", NPC)
    assert len(traits) == 1
    assert traits[0].acquired_turn == 2

    assert store.remove_trait("g1", NPC, "haunted")
    assert store.find_traits_by_entity("g1", NPC) == []
    history = store.get_trait_history("g1", NPC)
    assert [(t.trait, t.status) for t in history] == [("haunted", "removed")]
    assert not store.remove_trait("g1", NPC, "haunted")


def test_readding_removed_trait_reactivates_it(store):
    store.add_trait("g1", NPC, "bitter", 1)
    store.remove_trait("g1", NPC, "bitter")
    trait = store.add_trait("g1", NPC, "bitter", 7, "e7")
    assert trait.status == "active"
    assert trait.acquired_turn == 7
    assert trait.source_event_id == "e7"
    assert len(store.get_trait_history("g1", NPC)) == 1
    assert store.has_trait("g1", NPC, "bitter")
    assert [t.entity_id for t in store.find_entities_with_trait("g1", "bitter")] == ["guard"]


def test_pending_evolution_resolves_only_once(store):
    pending = store.create_pending_evolution(
        game_id="g1",
        turn=1,
        evolution_type="trait_add",
        entity_type="npc",
        entity_id="guard",
        trait="haunted",
        reason="nightmares",
    )
    assert pending.status == "pending"
    resolved = store.resolve_pending_evolution(pending.id, "refused", "no")
    assert resolved.status == "refused"
    assert resolved.dm_notes == "no"
    assert resolved.resolved_at is not None
    assert store.resolve_pending_evolution(pending.id, "approved") is None
    assert store.find_pending_evolutions("g1") == []
    assert len(store.find_pending_evolutions("g1", None)) == 1


def test_update_pending_evolution_applies_only_supplied_fields(store):
    pending = store.create_pending_evolution(
        game_id="g1",
        turn=1,
        evolution_type="relationship_change",
        entity_type="npc",
        entity_id="guard",
        target_type="player",
        target_id="p1",
        dimension="trust",
        old_value=0.5,
        new_value=0.6,
        reason="helped",
    )
    updated = store.update_pending_evolution(pending.id, PendingEvolutionChanges(dimension="respect", new_value=3.0))
    assert updated.dimension == "respect"
    assert updated.new_value == 1.0
    assert updated.old_value == 0.5
    assert updated.reason == "helped"


def test_status_columns_reject_unknown_values(store):
    pending = store.create_pending_evolution(
        game_id="g1", turn=1, evolution_type="trait_add", entity_type="npc", entity_id="guard", trait="x", reason="r"
    )
    with pytest.raises(sqlite3.IntegrityError):
        store.resolve_pending_evolution(pending.id, "maybe")
    assert store.get_pending_evolution(pending.id).status == "pending"


def test_failed_transaction_rolls_back_and_logs(store, caplog):
    trait = store.add_trait("g1", NPC, "guarded", 1)
    with caplog.at_level(logging.INFO):
        with pytest.raises(sqlite3.IntegrityError):
            store.set_trait_status(trait.id, "bogus")
    assert "transaction_rollback" in caplog.text
    assert store.has_trait("g1", NPC, "guarded")


def test_unlock_is_idempotent_and_keeps_first_turn(store):
    scene = store.create_scene("g1", 1)
    store.unlock_scene("g1", scene.id, 2, "key")
    info = store.unlock_scene("g1", scene.id, 9)
    assert info.unlocked_turn == 2
    assert info.unlocked_by == "key"
    assert store.lock_scene("g1", scene.id)
    assert not store.is_scene_unlocked("g1", scene.id)


def test_event_counts_respect_turn_window(store):
    for turn in (1, 2, 3, 4, 5):
        store.write_event(CanonicalEvent(id=f"e{turn}", game_id="g1", turn=turn))
    store.write_event(CanonicalEvent(id="other", game_id="g2", turn=3))
    assert store.count_events_between("g1", 2) == 4
    assert store.count_events_between("g1", 2, 4) == 3


def test_memory_database_is_supported():
    store = Store(":memory:")
    store.create_game("g1")
    store.set_current_scene_id("g1", "s1")
    assert store.get_current_scene_id("g1") == "s1"


def test_secondary_lookups(store):
    store.create_pending_evolution(
        game_id="g1", turn=1, evolution_type="trait_add", entity_type="npc", entity_id="guard", trait="x", reason="r"
    )
    store.create_pending_evolution(
        game_id="g1", turn=2, evolution_type="trait_add", entity_type="npc", entity_id="smith", trait="y", reason="r"
    )
    assert [p.trait for p in store.find_pending_evolutions_by_entity("g1", NPC)] == ["x"]

    first = store.create_scene("g1", 1, name="first")
    store.create_scene("g1", 2, name="second")
    store.mark_scene_ended(first.id, "completed", 3)
    assert [s.name for s in store.find_scenes_by_game("g1")] == ["first", "second"]
    assert [s.name for s in store.find_scenes_by_game("g1", "active")] == ["second"]

    assert store.get_game("g1") is None
    store.create_game("g1", turn=4)
    assert store.get_game("g1")["turn"] == 4


def test_recent_events_are_oldest_first_and_round_trip_fields(store):
    for turn in (1, 2, 3):
        store.write_event(CanonicalEvent(id=f"e{turn}", game_id="g1", turn=turn))
    store.write_event(
        CanonicalEvent(id="e4", game_id="g1", turn=4, action="spare_enemy", tags=["peace_made"], witnesses=["smith"])
    )
    recent = store.find_recent_events("g1", 2)
    assert [event.id for event in recent] == ["e3", "e4"]
    assert recent[1].action == "spare_enemy"
    assert recent[1].tags == ["peace_made"]
    assert store.get_event("e4").witnesses == ["smith"]
    assert store.get_event("missing") is None


def test_perceived_relationship_upsert_keeps_unnamed_values(store):
    first = store.upsert_perceived_relationship("g1", "p1", "guard", 2, {"trust": 0.8})
    assert first.perceived_trust == 0.8
    assert first.perceived_respect is None
    assert first.perceived_affection is None

    second = store.upsert_perceived_relationship("g1", "p1", "guard", 5, {"respect": 3.0})
    assert second.id == first.id
    assert second.perceived_trust == 0.8
    assert second.perceived_respect == 1.0
    assert second.last_updated_turn == 5

    cleared = store.upsert_perceived_relationship("g1", "p1", "guard", 6, {"trust": None})
    assert cleared.perceived_trust is None
    assert cleared.perceived_respect == 1.0
    assert len(store.find_perceived_by_game("g1")) == 1


def test_perceived_relationship_hides_fear(store):
    with pytest.raises(ValueError):
        store.upsert_perceived_relationship("g1", "p1", "guard", 1, {"fear": 0.5})


def test_perceived_relationship_lookups_and_deletes(store):
    kept = store.upsert_perceived_relationship("g1", "p1", "guard", 1, {"affection": 0.2})
    store.upsert_perceived_relationship("g1", "p1", "smith", 1)
    store.upsert_perceived_relationship("g1", "guard", "p1", 1)
    store.upsert_perceived_relationship("g2", "p1", "guard", 1)

    assert store.find_perceived_relationship("g1", "p1", "guard").perceived_affection == 0.2
    assert store.find_perceived_relationship("g1", "guard", "smith") is None
    assert [p.target_id for p in store.find_perceived_by_perceiver("g1", "p1")] == ["guard", "smith"]

    assert store.delete_perceived_relationship(kept.id)
    assert not store.delete_perceived_relationship(kept.id)
    assert store.delete_perceived_by_perceiver("g1", "p1") == 1
    assert store.delete_perceived_by_game("g1") == 1
    assert store.find_perceived_by_game("g1") == []
    assert len(store.find_perceived_by_game("g2")) == 1
