from __future__ import annotations

import logging

from reckoning.db.store import Store
from reckoning.models.events import CanonicalEvent
from reckoning.models.scenes import (
    BoundaryDetectionConfig,
    BoundarySceneContext,
    BoundarySignal,
    BoundarySuggestion,
    Scene,
)

log = logging.getLogger(__name__)

CONFRONTATION_END_TAGS = ("confrontation_end", "battle_end", "combat_end", "conflict_resolved", "peace_made")
CONFRONTATION_TAGS = ("confrontation", "battle", "combat", "conflict", "fight")

VIOLENCE_ACTIONS = ("kill", "execute", "attack_first", "threaten", "torture")
MERCY_ACTIONS = ("spare_enemy", "show_mercy", "forgive", "heal_enemy", "release_prisoner")
SOCIAL_ACTIONS = ("persuade", "befriend", "help", "bribe", "intimidate")
EXPLORATION_ACTIONS = ("enter_location", "examine", "search", "unlock")
DIALOGUE_EVENT_TYPES = ("npc_dialogue", "party_dialogue")

CONTRASTING_MOODS = (
    ("action", "peaceful"),
    ("tense", "peaceful"),
    ("tense", "comedic"),
    ("action", "emotional"),
    ("ominous", "comedic"),
)

# Each signal after the strongest counts this much less than the one before it.
SIGNAL_DECAY = 0.3


def _last_index(events: list[CanonicalEvent], actions: tuple[str, ...]) -> int:
    for index in range(len(events) - 1, -1, -1):
        if events[index].action in actions:
            return index
    return -1


def moods_contrast(first: str, second: str) -> bool:
    return (first, second) in CONTRASTING_MOODS or (second, first) in CONTRASTING_MOODS


def infer_mood(events: list[CanonicalEvent]) -> str | None:
    """Dominant mood of a run of events, or None when nothing stands out."""
    violence = mercy = social = exploration = 0
    for event in events:
        if event.action in VIOLENCE_ACTIONS:
            violence += 1
        elif event.action in MERCY_ACTIONS:
            mercy += 1
        elif event.action in SOCIAL_ACTIONS:
            social += 1
        elif event.action in EXPLORATION_ACTIONS:
            exploration += 1
        if event.event_type in DIALOGUE_EVENT_TYPES:
            social += 1

    total = violence + mercy + social + exploration
    if total == 0:
        return None
    if violence > total * 0.4:
        return "action"
    if mercy > total * 0.3:
        return "peaceful"
    if social > total * 0.4:
        return "emotional"
    if exploration > total * 0.4:
        return "mysterious"
    return None


def combine_strengths(signals: list[BoundarySignal]) -> float:
    confidence = 0.0
    weight = 1.0
    for strength in sorted((signal.strength for signal in signals), reverse=True):
        confidence += strength * weight
        weight *= SIGNAL_DECAY
    return min(confidence, 1.0)


class SceneBoundaryDetector:
    """Suggests when the current scene has run its course.

    Advisory only: nothing here ends a scene. The strongest signal counts in
    full and each further one adds a decaying share.
    """

    def __init__(self, store: Store, config: BoundaryDetectionConfig | None = None) -> None:
        self.store = store
        self.config = config or BoundaryDetectionConfig()

    def update_config(self, **changes) -> BoundaryDetectionConfig:
        self.config = BoundaryDetectionConfig(**{**self.config.model_dump(), **changes})
        return self.config

    def analyze(self, game_id: str, current_turn: int) -> BoundarySuggestion:
        scene = self._current_scene(game_id)
        if scene is None:
            return BoundarySuggestion(scene_context=BoundarySceneContext(current_turn=current_turn))

        recent = sorted(
            self.store.find_recent_events(game_id, self.config.recent_event_window),
            key=lambda event: event.turn,
        )
        event_count = self.store.count_events_between(game_id, scene.started_turn, scene.completed_turn)

        signals = [
            signal
            for signal in (
                self.detect_location_change(scene, recent),
                self.detect_confrontation_resolved(recent),
                self.detect_mood_shift(scene, recent),
                self.detect_long_duration(scene, current_turn, event_count),
            )
            if signal is not None
        ]
        confidence = combine_strengths(signals)
        suggestion = BoundarySuggestion(
            should_end_scene=confidence >= self.config.confidence_threshold,
            confidence=confidence,
            signals=signals,
            scene_context=BoundarySceneContext(
                scene_id=scene.id,
                current_turn=current_turn,
                started_turn=scene.started_turn,
                event_count=event_count,
                current_location_id=(recent[-1].location_id or None) if recent else scene.location_id,
                current_mood=scene.mood,
            ),
        )
        log.debug(
            "scene_boundary_analyzed game=%s scene=%s confidence=%.2f signals=%s",
            game_id,
            scene.id,
            confidence,
            [signal.type for signal in signals],
        )
        if suggestion.should_end_scene:
            log.info("scene_boundary_suggested game=%s scene=%s confidence=%.2f", game_id, scene.id, confidence)
        return suggestion

    def detect_location_change(self, scene: Scene, events: list[CanonicalEvent]) -> BoundarySignal | None:
        if not events:
            return None
        for event in events:
            if event.action == "enter_location":
                return BoundarySignal(
                    type="location_change",
                    strength=self.config.location_change_weight,
                    reason="Party entered a new location",
                    trigger_event_id=event.id,
                )

        last = events[-1]
        if scene.location_id and last.location_id != scene.location_id:
            previous = scene.location_id
            for event in events:
                if event.location_id != previous:
                    return BoundarySignal(
                        type="location_change",
                        strength=self.config.location_change_weight * 0.8,
                        reason=f"Location changed from scene start ({scene.location_id} to {last.location_id})",
                        trigger_event_id=event.id,
                    )
                previous = event.location_id
        return None

    def detect_confrontation_resolved(self, events: list[CanonicalEvent]) -> BoundarySignal | None:
        if not events:
            return None
        for event in events:
            if any(tag in CONFRONTATION_END_TAGS for tag in event.tags):
                return BoundarySignal(
                    type="confrontation_resolved",
                    strength=self.config.confrontation_resolved_weight,
                    reason="Confrontation explicitly ended",
                    trigger_event_id=event.id,
                )

        last_violence = _last_index(events, VIOLENCE_ACTIONS)
        last_mercy = _last_index(events, MERCY_ACTIONS)
        if last_violence >= 0 and last_mercy > last_violence:
            return BoundarySignal(
                type="confrontation_resolved",
                strength=self.config.confrontation_resolved_weight * 0.7,
                reason="Violence followed by mercy action suggests resolution",
                trigger_event_id=events[last_mercy].id,
            )

        ongoing = any(tag in CONFRONTATION_TAGS for event in events for tag in event.tags)
        if last_violence >= 0 and not ongoing and events[-1].action not in VIOLENCE_ACTIONS:
            return BoundarySignal(
                type="confrontation_resolved",
                strength=self.config.confrontation_resolved_weight * 0.5,
                reason="Violence occurred but no ongoing confrontation markers",
            )
        return None

    def detect_mood_shift(self, scene: Scene, events: list[CanonicalEvent]) -> BoundarySignal | None:
        if not scene.mood or len(events) < 3:
            return None
        inferred = infer_mood(events)
        if inferred is None or not moods_contrast(scene.mood, inferred):
            return None
        return BoundarySignal(
            type="mood_shift",
            strength=self.config.mood_shift_weight,
            reason=f"Scene mood ({scene.mood}) contrasts with recent events ({inferred})",
        )

    def detect_long_duration(self, scene: Scene, current_turn: int, event_count: int) -> BoundarySignal | None:
        turns = current_turn - scene.started_turn
        if turns >= self.config.long_duration_turns:
            over = turns - self.config.long_duration_turns
            return BoundarySignal(
                type="long_duration",
                strength=min(self.config.long_duration_weight * (1 + over * 0.1), 1.0),
                reason=f"Scene has lasted {turns} turns (threshold: {self.config.long_duration_turns})",
            )
        if event_count >= self.config.long_duration_events:
            over = event_count - self.config.long_duration_events
            return BoundarySignal(
                type="long_duration",
                strength=min(self.config.long_duration_weight * (1 + over * 0.05), 1.0),
                reason=f"Scene has {event_count} events (threshold: {self.config.long_duration_events})",
            )
        return None

    def _current_scene(self, game_id: str) -> Scene | None:
        scene_id = self.store.get_current_scene_id(game_id)
        if scene_id is None:
            return None
        scene = self.store.get_scene(scene_id)
        if scene is None or scene.status != "active":
            return None
        return scene
