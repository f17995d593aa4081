from __future__ import annotations

import logging
from dataclasses import dataclass

from reckoning.config import Settings, configure_logging
from reckoning.db.store import Store
from reckoning.engine.boundary_engine import SceneBoundaryDetector
from reckoning.engine.detection_engine import detect_system_suggestions
from reckoning.engine.emergence_engine import EmergenceObserver
from reckoning.engine.evolution_engine import EvolutionService
from reckoning.engine.notification_engine import EmergenceNotificationService
from reckoning.engine.scene_engine import SceneManager
from reckoning.models.emergence import EmergenceNotification
from reckoning.models.events import CanonicalEvent
from reckoning.models.evolutions import EvolutionSuggestion, PendingEvolution
from reckoning.notifications import Notification, NotificationHub, describe_notification

log = logging.getLogger(__name__)


@dataclass
class Core:
    store: Store
    hub: NotificationHub
    evolutions: EvolutionService
    observer: EmergenceObserver
    notifications: EmergenceNotificationService
    scenes: SceneManager
    boundaries: SceneBoundaryDetector

    def commit_event(
        self,
        event: CanonicalEvent,
        suggestions: list[EvolutionSuggestion] | None = None,
    ) -> tuple[list[PendingEvolution], list[EmergenceNotification]]:
        """Record a finalized event, queue its evolutions and check for emergence.

        Without explicit suggestions the rule-based detector supplies them.
        """
        self.store.write_event(event)
        if suggestions is None:
            suggestions = detect_system_suggestions(event)
        pending = self.evolutions.detect_evolutions(event.game_id, event.ref(), suggestions)
        notifications = self.notifications.process_event(event)
        log.info(
            "event_committed id=%s game=%s pending=%s notifications=%s",
            event.id,
            event.game_id,
            len(pending),
            len(notifications),
        )
        return pending, notifications


def build_core(settings: Settings) -> Core:
    store = Store(settings.db_path)
    hub = NotificationHub()
    observer = EmergenceObserver(store, hub, settings.thresholds())
    return Core(
        store=store,
        hub=hub,
        evolutions=EvolutionService(store, hub),
        observer=observer,
        notifications=EmergenceNotificationService(store, observer),
        scenes=SceneManager(store, hub),
        boundaries=SceneBoundaryDetector(store, settings.boundary_config()),
    )


def log_notification(event: Notification) -> None:
    log.info("notification type=%s %s", event.type, describe_notification(event))


def main() -> None:
    settings = Settings()
    configure_logging(settings.dev_mode)
    log.info("app_start %s", settings.redacted())
    core = build_core(settings)
    core.hub.on_any(log_notification)
    log.info("core_ready db=%s", settings.db_path)


if __name__ == "__main__":
    main()
