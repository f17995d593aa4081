from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from reckoning.models.entities import Dimension, EntityRef, EntityType, RelationshipDimensions

EvolutionType = Literal["trait_add", "trait_remove", "relationship_change"]

EvolutionStatus = Literal["pending", "approved", "edited", "refused"]

AggregateLabel = Literal[
    "devoted",
    "terrified",
    "enemy",
    "rival",
    "resentful",
    "ally",
    "friend",
    "indebted",
    "wary",
    "indifferent",
]


class EvolutionSuggestion(BaseModel):
    evolution_type: EvolutionType
    entity_type: EntityType
    entity_id: str
    reason: str
    trait: str | None = None
    target_type: EntityType | None = None
    target_id: str | None = None
    dimension: Dimension | None = None
    change: float | None = None


class PendingEvolution(BaseModel):
    id: str
    game_id: str
    turn: int
    evolution_type: EvolutionType
    entity_type: EntityType
    entity_id: str
    trait: str | None = None
    target_type: EntityType | None = None
    target_id: str | None = None
    dimension: Dimension | None = None
    old_value: float | None = None
    new_value: float | None = None
    reason: str
    source_event_id: str | None = None
    status: EvolutionStatus = "pending"
    dm_notes: str | None = None
    created_at: str
    resolved_at: str | None = None

    @property
    def entity(self) -> EntityRef:
        return EntityRef(type=self.entity_type, id=self.entity_id)


class PendingEvolutionChanges(BaseModel):
    """Reviewer overrides applied to a pending record before it is applied."""

    trait: str | None = None
    target_type: EntityType | None = None
    target_id: str | None = None
    dimension: Dimension | None = None
    old_value: float | None = None
    new_value: float | None = None
    reason: str | None = None


class RelationshipSummary(BaseModel):
    target_type: EntityType
    target_id: str
    label: AggregateLabel
    dimensions: RelationshipDimensions


class EntitySummary(BaseModel):
    entity_type: EntityType
    entity_id: str
    traits: list[str] = Field(default_factory=list)
    relationships: list[RelationshipSummary] = Field(default_factory=list)
