from __future__ import annotations

import logging

from reckoning.db.store import Store
from reckoning.engine.emergence_engine import EmergenceObserver
from reckoning.models.emergence import EmergenceNotification
from reckoning.models.events import CanonicalEvent

log = logging.getLogger(__name__)


class EmergenceNotificationService:
    """Turns emergence opportunities into DM notifications that stay pending
    until acknowledged or dismissed."""

    def __init__(self, store: Store, observer: EmergenceObserver) -> None:
        self.store = store
        self.observer = observer

    def process_event(self, event: CanonicalEvent) -> list[EmergenceNotification]:
        result = self.observer.on_event_committed(event)
        created: list[EmergenceNotification] = []
        for opportunity in result.opportunities:
            if self.store.has_pending_notification(event.game_id, opportunity.entity, opportunity.type):
                log.debug(
                    "emergence_notification_skipped game=%s entity=%s type=%s",
                    event.game_id,
                    opportunity.entity.id,
                    opportunity.type,
                )
                continue
            notification = self.store.create_emergence_notification(event.game_id, opportunity)
            log.info(
                "emergence_notification_created id=%s game=%s entity=%s type=%s",
                notification.id,
                event.game_id,
                opportunity.entity.id,
                opportunity.type,
            )
            created.append(notification)
        return created

    def get_pending_notifications(self, game_id: str) -> list[EmergenceNotification]:
        return self.store.find_pending_notifications(game_id)

    def acknowledge(self, notification_id: str, dm_notes: str | None = None) -> EmergenceNotification | None:
        notification = self.store.resolve_emergence_notification(notification_id, "acknowledged", dm_notes)
        if notification is not None:
            log.info("emergence_notification_acknowledged id=%s", notification_id)
        return notification

    def dismiss(self, notification_id: str, dm_notes: str | None = None) -> EmergenceNotification | None:
        notification = self.store.resolve_emergence_notification(notification_id, "dismissed", dm_notes)
        if notification is not None:
            log.info("emergence_notification_dismissed id=%s", notification_id)
        return notification
