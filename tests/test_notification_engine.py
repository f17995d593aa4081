from __future__ import annotations

from reckoning.engine.emergence_engine import EmergenceObserver
from reckoning.engine.notification_engine import EmergenceNotificationService
from reckoning.models.entities import EntityRef
from reckoning.models.events import CanonicalEvent

PLAYER = EntityRef(type="player", id="p1")
GUARD = EntityRef(type="npc", id="guard")


def _event(event_id: str) -> CanonicalEvent:
    return CanonicalEvent(id=event_id, game_id="g1", turn=2, actor_type="player", actor_id="p1")


def _service(store) -> EmergenceNotificationService:
    return EmergenceNotificationService(store, EmergenceObserver(store))


def test_opportunity_is_persisted_once_while_pending(store):
    store.upsert_relationship("g1", GUARD, PLAYER, 1, {"fear": 0.9, "resentment": 0.9, "trust": 0.1})
    service = _service(store)

    [notification] = service.process_event(_event("e1"))
    assert notification.status == "pending"
    assert notification.opportunity.type == "villain"
    assert notification.opportunity.entity == GUARD
    assert notification.opportunity.contributing_factors[0].dimension == "fear"

    assert service.process_event(_event("e2")) == []
    assert len(service.get_pending_notifications("g1")) == 1


def test_resolved_notification_allows_a_new_one(store):
    store.upsert_relationship("g1", GUARD, PLAYER, 1, {"fear": 0.9, "resentment": 0.9, "trust": 0.1})
    service = _service(store)
    [first] = service.process_event(_event("e1"))

    acknowledged = service.acknowledge(first.id, "planning an ambush")
    assert acknowledged.status == "acknowledged"
    assert acknowledged.dm_notes == "planning an ambush"
    assert service.get_pending_notifications("g1") == []

    [second] = service.process_event(_event("e2"))
    dismissed = service.dismiss(second.id)
    assert dismissed.status == "dismissed"
    assert dismissed.resolved_at is not None


def test_unknown_notification_resolves_to_none(store):
    assert _service(store).dismiss("missing") is None
