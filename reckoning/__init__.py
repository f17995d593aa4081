from reckoning.db.store import Store
from reckoning.engine.boundary_engine import SceneBoundaryDetector
from reckoning.engine.detection_engine import (
    aggregate_relationship_changes,
    detect_relationship_suggestions,
    detect_system_suggestions,
    detect_trait_patterns,
    detect_trait_suggestions,
)
from reckoning.engine.emergence_engine import EmergenceObserver
from reckoning.engine.evolution_engine import (
    EvolutionService,
    EvolutionStateError,
    MalformedEvolutionError,
    PendingEvolutionNotFoundError,
    compute_aggregate_label,
)
from reckoning.engine.notification_engine import EmergenceNotificationService
from reckoning.engine.scene_engine import SceneGameMismatchError, SceneManager, SceneNotFoundError, SceneStateError
from reckoning.notifications import NotificationEmitter, NotificationHub

__all__ = [
    "EmergenceNotificationService",
    "EmergenceObserver",
    "EvolutionService",
    "EvolutionStateError",
    "MalformedEvolutionError",
    "NotificationEmitter",
    "NotificationHub",
    "PendingEvolutionNotFoundError",
    "SceneBoundaryDetector",
    "SceneGameMismatchError",
    "SceneManager",
    "SceneNotFoundError",
    "SceneStateError",
    "Store",
    "aggregate_relationship_changes",
    "compute_aggregate_label",
    "detect_relationship_suggestions",
    "detect_system_suggestions",
    "detect_trait_patterns",
    "detect_trait_suggestions",
]
