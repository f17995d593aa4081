from __future__ import annotations

import logging

from reckoning.db.store import Store
from reckoning.models.scenes import (
    ConnectionRequirements,
    RequirementContext,
    Scene,
    SceneConnection,
    SceneSummary,
    SceneUnlockInfo,
)
from reckoning.notifications import (
    NotificationEmitter,
    SceneAbandoned,
    SceneCompleted,
    SceneCreated,
    SceneStarted,
    emit_safely,
)

log = logging.getLogger(__name__)

TERMINAL_STATUSES = {"completed", "abandoned"}


class SceneNotFoundError(LookupError):
    pass


class SceneGameMismatchError(RuntimeError):
    pass


class SceneStateError(RuntimeError):
    pass


class SceneManager:
    """Scene lifecycle plus the unlock/connection graph that decides which
    scenes can be played next."""

    def __init__(self, store: Store, emitter: NotificationEmitter | None = None) -> None:
        self.store = store
        self.emitter = emitter

    def create_scene(
        self,
        game_id: str,
        turn: int,
        *,
        name: str | None = None,
        description: str | None = None,
        scene_type: str | None = None,
        location_id: str | None = None,
        mood: str | None = None,
        stakes: str | None = None,
        auto_unlock: bool = True,
        unlocked_by: str | None = None,
    ) -> Scene:
        scene = self.store.create_scene(
            game_id,
            turn,
            name=name,
            description=description,
            scene_type=scene_type,
            location_id=location_id,
            mood=mood,
            stakes=stakes,
        )
        if auto_unlock:
            self.store.unlock_scene(game_id, scene.id, turn, unlocked_by)
        log.info("scene_created id=%s game=%s turn=%s unlocked=%s", scene.id, game_id, turn, auto_unlock)
        emit_safely(self.emitter, SceneCreated(scene=scene))
        return scene

    def start_scene(self, game_id: str, scene_id: str, turn: int) -> Scene:
        scene = self._require_scene(game_id, scene_id)
        self._require_open(scene, "start")
        if not self.store.is_scene_unlocked(game_id, scene_id):
            self.store.unlock_scene(game_id, scene_id, turn)
            log.info("scene_auto_unlocked id=%s game=%s turn=%s", scene_id, game_id, turn)
        self.store.mark_scene_started(scene_id, turn)
        self.store.set_current_scene_id(game_id, scene_id)
        started = self._require_scene(game_id, scene_id)
        log.info("scene_started id=%s game=%s turn=%s", scene_id, game_id, turn)
        emit_safely(self.emitter, SceneStarted(game_id=game_id, scene=started))
        return started

    def complete_scene(self, game_id: str, scene_id: str, turn: int) -> Scene:
        completed = self._end_scene(game_id, scene_id, turn, "completed")
        emit_safely(self.emitter, SceneCompleted(game_id=game_id, scene=completed))
        return completed

    def abandon_scene(self, game_id: str, scene_id: str, turn: int) -> Scene:
        abandoned = self._end_scene(game_id, scene_id, turn, "abandoned")
        emit_safely(self.emitter, SceneAbandoned(game_id=game_id, scene=abandoned))
        return abandoned

    def unlock_scene(self, game_id: str, scene_id: str, turn: int, unlocked_by: str | None = None) -> SceneUnlockInfo:
        self._require_scene(game_id, scene_id)
        info = self.store.unlock_scene(game_id, scene_id, turn, unlocked_by)
        log.info("scene_unlocked id=%s game=%s turn=%s by=%s", scene_id, game_id, info.unlocked_turn, info.unlocked_by)
        return info

    def is_scene_unlocked(self, game_id: str, scene_id: str) -> bool:
        return self.store.is_scene_unlocked(game_id, scene_id)

    def get_current_scene(self, game_id: str) -> Scene | None:
        scene_id = self.store.get_current_scene_id(game_id)
        if scene_id is None:
            return None
        return self.store.get_scene(scene_id)

    def get_available_scenes(self, game_id: str) -> list[Scene]:
        return self.store.find_available_scenes(game_id)

    def connect_scenes(
        self,
        game_id: str,
        from_scene_id: str,
        to_scene_id: str,
        *,
        connection_type: str = "path",
        requirements: ConnectionRequirements | None = None,
        description: str | None = None,
    ) -> SceneConnection:
        self._require_scene(game_id, from_scene_id)
        self._require_scene(game_id, to_scene_id)
        connection = self.store.create_scene_connection(
            game_id,
            from_scene_id,
            to_scene_id,
            connection_type=connection_type,
            requirements=requirements,
            description=description,
        )
        log.info("scene_connected game=%s from=%s to=%s type=%s", game_id, from_scene_id, to_scene_id, connection_type)
        return connection

    def get_connected_scenes(self, game_id: str, from_scene_id: str) -> list[Scene]:
        scenes: list[Scene] = []
        for connection in self.store.find_unlocked_connections_from(game_id, from_scene_id):
            scene = self.store.get_scene(connection.to_scene_id)
            if scene is not None and scene.game_id == game_id:
                scenes.append(scene)
        return scenes

    def get_scene_summary(self, game_id: str, scene_id: str) -> SceneSummary | None:
        scene = self.store.get_scene(scene_id)
        if scene is None or scene.game_id != game_id:
            return None
        unlock = self.store.get_unlock_info(game_id, scene_id)
        return SceneSummary(
            scene=scene,
            event_count=self.store.count_events_between(game_id, scene.started_turn, scene.completed_turn),
            is_current_scene=self.store.get_current_scene_id(game_id) == scene_id,
            is_unlocked=unlock is not None,
            unlocked_turn=unlock.unlocked_turn if unlock else None,
        )

    def evaluate_requirements(
        self,
        requirements: ConnectionRequirements | None,
        context: RequirementContext,
    ) -> bool:
        """All flags set, all traits held by the player, and every relationship
        threshold met. No requirements always passes."""
        if requirements is None:
            return True
        for flag in requirements.flags:
            if not context.flags.get(flag):
                return False
        for trait in requirements.traits:
            if trait not in context.player_traits:
                return False
        for requirement in requirements.relationships:
            relationship = next(
                (
                    r
                    for r in context.relationships
                    if r.from_entity.type == "player"
                    and r.to_entity.type == requirement.entity_type
                    and r.to_entity.id == requirement.entity_id
                ),
                None,
            )
            if relationship is None:
                return False
            value = getattr(relationship, requirement.dimension)
            if requirement.min_value is not None and value < requirement.min_value:
                return False
            if requirement.max_value is not None and value > requirement.max_value:
                return False
        return True

    def _end_scene(self, game_id: str, scene_id: str, turn: int, status: str) -> Scene:
        scene = self._require_scene(game_id, scene_id)
        self._require_open(scene, "complete" if status == "completed" else "abandon")
        self.store.mark_scene_ended(scene_id, status, turn)
        if self.store.get_current_scene_id(game_id) == scene_id:
            self.store.set_current_scene_id(game_id, None)
        ended = self._require_scene(game_id, scene_id)
        log.info("scene_ended id=%s game=%s status=%s turn=%s", scene_id, game_id, status, turn)
        return ended

    def _require_scene(self, game_id: str, scene_id: str) -> Scene:
        scene = self.store.get_scene(scene_id)
        if scene is None:
            raise SceneNotFoundError(f"Scene not found: {scene_id}")
        if scene.game_id != game_id:
            raise SceneGameMismatchError(f"Scene {scene_id} does not belong to game {game_id}")
        return scene

    def _require_open(self, scene: Scene, action: str) -> None:
        if scene.status in TERMINAL_STATUSES:
            raise SceneStateError(f"Cannot {action} scene {scene.id} with status: {scene.status}")
