from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Annotated, Callable, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter

from reckoning.models.emergence import EmergenceDetectionResult, EmergenceOpportunity
from reckoning.models.evolutions import PendingEvolution
from reckoning.models.scenes import Scene

log = logging.getLogger(__name__)


class EvolutionCreated(BaseModel):
    type: Literal["evolution:created"] = "evolution:created"
    pending: PendingEvolution


class EvolutionApproved(BaseModel):
    type: Literal["evolution:approved"] = "evolution:approved"
    pending: PendingEvolution


class EvolutionEdited(BaseModel):
    type: Literal["evolution:edited"] = "evolution:edited"
    pending: PendingEvolution


class EvolutionRefused(BaseModel):
    type: Literal["evolution:refused"] = "evolution:refused"
    pending: PendingEvolution


class EmergenceDetected(BaseModel):
    type: Literal["emergence:detected"] = "emergence:detected"
    game_id: str
    result: EmergenceDetectionResult


class EmergenceVillain(BaseModel):
    type: Literal["emergence:villain"] = "emergence:villain"
    game_id: str
    opportunity: EmergenceOpportunity


class EmergenceAlly(BaseModel):
    type: Literal["emergence:ally"] = "emergence:ally"
    game_id: str
    opportunity: EmergenceOpportunity


class SceneCreated(BaseModel):
    type: Literal["scene:created"] = "scene:created"
    scene: Scene


class SceneStarted(BaseModel):
    type: Literal["scene:started"] = "scene:started"
    game_id: str
    scene: Scene


class SceneCompleted(BaseModel):
    type: Literal["scene:completed"] = "scene:completed"
    game_id: str
    scene: Scene


class SceneAbandoned(BaseModel):
    type: Literal["scene:abandoned"] = "scene:abandoned"
    game_id: str
    scene: Scene


Notification = Annotated[
    Union[
        EvolutionCreated,
        EvolutionApproved,
        EvolutionEdited,
        EvolutionRefused,
        EmergenceDetected,
        EmergenceVillain,
        EmergenceAlly,
        SceneCreated,
        SceneStarted,
        SceneCompleted,
        SceneAbandoned,
    ],
    Field(discriminator="type"),
]

NOTIFICATION_TYPES: tuple[str, ...] = (
    "evolution:created",
    "evolution:approved",
    "evolution:edited",
    "evolution:refused",
    "emergence:detected",
    "emergence:villain",
    "emergence:ally",
    "scene:created",
    "scene:started",
    "scene:completed",
    "scene:abandoned",
)

_ADAPTER: TypeAdapter[Notification] = TypeAdapter(Notification)


def parse_notification(payload: dict) -> Notification:
    """Rebuild a notification from its JSON-ready dict form."""
    return _ADAPTER.validate_python(payload)


def describe_notification(event: Notification) -> str:
    """One-line human summary, used for DM-facing log lines."""
    if isinstance(event, EvolutionCreated):
        return f"evolution proposed for {event.pending.entity_type}:{event.pending.entity_id}"
    elif isinstance(event, EvolutionApproved):
        return f"evolution {event.pending.id} approved"
    elif isinstance(event, EvolutionEdited):
        return f"evolution {event.pending.id} edited and applied"
    elif isinstance(event, EvolutionRefused):
        return f"evolution {event.pending.id} refused"
    elif isinstance(event, EmergenceDetected):
        return f"{len(event.result.opportunities)} emergence opportunities from event {event.result.event_id}"
    elif isinstance(event, EmergenceVillain):
        return f"{event.opportunity.entity.id} may emerge as a villain ({event.opportunity.confidence:.2f})"
    elif isinstance(event, EmergenceAlly):
        return f"{event.opportunity.entity.id} may emerge as an ally ({event.opportunity.confidence:.2f})"
    elif isinstance(event, SceneCreated):
        return f"scene {event.scene.id} created"
    elif isinstance(event, SceneStarted):
        return f"scene {event.scene.id} started"
    elif isinstance(event, SceneCompleted):
        return f"scene {event.scene.id} completed"
    elif isinstance(event, SceneAbandoned):
        return f"scene {event.scene.id} abandoned"
    raise TypeError(f"unhandled notification: {type(event).__name__}")


Listener = Callable[[Notification], None]


class NotificationEmitter(ABC):
    @abstractmethod
    def emit(self, event: Notification) -> None:
        raise NotImplementedError


class NotificationHub(NotificationEmitter):
    """Synchronous fan-out of notifications to registered listeners.

    Listeners run in registration order. A listener that raises is logged and
    skipped; remaining listeners still run.
    """

    def __init__(self, history_limit: int = 100) -> None:
        self._listeners: dict[str, list[Listener]] = {}
        self._any: list[Listener] = []
        self._history: list[Notification] = []
        self._history_limit = history_limit

    def on(self, event_type: str, listener: Listener) -> None:
        if event_type not in NOTIFICATION_TYPES:
            raise ValueError(f"unknown notification type: {event_type}")
        listeners = self._listeners.setdefault(event_type, [])
        if listener not in listeners:
            listeners.append(listener)

    def on_any(self, listener: Listener) -> None:
        if listener not in self._any:
            self._any.append(listener)

    def off(self, event_type: str, listener: Listener) -> None:
        listeners = self._listeners.get(event_type, [])
        if listener in listeners:
            listeners.remove(listener)
        if listener in self._any:
            self._any.remove(listener)

    def listener_count(self, event_type: str) -> int:
        return len(self._listeners.get(event_type, [])) + len(self._any)

    def history(self, event_type: str | None = None) -> list[Notification]:
        if event_type is None:
            return list(self._history)
        return [event for event in self._history if event.type == event_type]

    def emit(self, event: Notification) -> None:
        self._history.append(event)
        if len(self._history) > self._history_limit:
            self._history = self._history[-self._history_limit :]
        log.debug("notification_emit type=%s", event.type)
        for listener in [*self._listeners.get(event.type, []), *self._any]:
            try:
                listener(event)
            except Exception:
                log.exception("notification_listener_failed type=%s", event.type)


def emit_safely(emitter: NotificationEmitter | None, event: Notification) -> None:
    """Emit through an optional emitter. State is already committed by the time
    this runs, so emitter failures are logged rather than raised."""
    if emitter is None:
        return
    try:
        emitter.emit(event)
    except Exception:
        log.exception("notification_listener_failed type=%s", event.type)
