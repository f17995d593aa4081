from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from reckoning.models.entities import Dimension, EntityType, Relationship

SceneStatus = Literal["active", "completed", "abandoned"]

ConnectionType = Literal["path", "conditional", "hidden", "one-way", "teleport"]


class Scene(BaseModel):
    id: str
    game_id: str
    name: str | None = None
    description: str | None = None
    scene_type: str | None = None
    location_id: str | None = None
    started_turn: int
    completed_turn: int | None = None
    status: SceneStatus = "active"
    mood: str | None = None
    stakes: str | None = None
    created_at: str
    updated_at: str


class SceneUnlockInfo(BaseModel):
    game_id: str
    scene_id: str
    unlocked_turn: int
    unlocked_by: str | None = None
    created_at: str


class RelationshipRequirement(BaseModel):
    entity_type: EntityType
    entity_id: str
    dimension: Dimension
    min_value: float | None = None
    max_value: float | None = None


class ConnectionRequirements(BaseModel):
    flags: list[str] = Field(default_factory=list)
    traits: list[str] = Field(default_factory=list)
    relationships: list[RelationshipRequirement] = Field(default_factory=list)


class SceneConnection(BaseModel):
    id: str
    game_id: str
    from_scene_id: str
    to_scene_id: str
    connection_type: ConnectionType = "path"
    requirements: ConnectionRequirements | None = None
    description: str | None = None
    created_at: str


class RequirementContext(BaseModel):
    flags: dict[str, bool] = Field(default_factory=dict)
    player_traits: list[str] = Field(default_factory=list)
    relationships: list[Relationship] = Field(default_factory=list)


class SceneSummary(BaseModel):
    scene: Scene
    event_count: int
    is_current_scene: bool
    is_unlocked: bool
    unlocked_turn: int | None = None


BoundarySignalType = Literal["location_change", "confrontation_resolved", "mood_shift", "long_duration"]


class BoundaryDetectionConfig(BaseModel):
    confidence_threshold: float = 0.6
    long_duration_turns: int = 8
    long_duration_events: int = 15
    location_change_weight: float = 0.9
    confrontation_resolved_weight: float = 0.8
    mood_shift_weight: float = 0.6
    long_duration_weight: float = 0.4
    recent_event_window: int = 10


class BoundarySignal(BaseModel):
    type: BoundarySignalType
    strength: float = Field(ge=0.0, le=1.0)
    reason: str
    trigger_event_id: str | None = None


class BoundarySceneContext(BaseModel):
    scene_id: str | None = None
    current_turn: int
    started_turn: int = 0
    event_count: int = 0
    current_location_id: str | None = None
    current_mood: str | None = None


class BoundarySuggestion(BaseModel):
    should_end_scene: bool = False
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    signals: list[BoundarySignal] = Field(default_factory=list)
    scene_context: BoundarySceneContext
