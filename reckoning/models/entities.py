from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

EntityType = Literal["player", "character", "npc", "location"]

Dimension = Literal["trust", "respect", "affection", "fear", "resentment", "debt"]

DIMENSIONS: tuple[str, ...] = ("trust", "respect", "affection", "fear", "resentment", "debt")

DIMENSION_DEFAULTS: dict[str, float] = {
    "trust": 0.5,
    "respect": 0.5,
    "affection": 0.5,
    "fear": 0.0,
    "resentment": 0.0,
    "debt": 0.0,
}


def clamp_dimension(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


class EntityRef(BaseModel):
    type: EntityType
    id: str

    def matches(self, other: EntityRef) -> bool:
        return self.type == other.type and self.id == other.id


class RelationshipDimensions(BaseModel):
    trust: float = DIMENSION_DEFAULTS["trust"]
    respect: float = DIMENSION_DEFAULTS["respect"]
    affection: float = DIMENSION_DEFAULTS["affection"]
    fear: float = DIMENSION_DEFAULTS["fear"]
    resentment: float = DIMENSION_DEFAULTS["resentment"]
    debt: float = DIMENSION_DEFAULTS["debt"]


class Relationship(BaseModel):
    id: str
    game_id: str
    from_entity: EntityRef
    to_entity: EntityRef
    trust: float = Field(ge=0.0, le=1.0)
    respect: float = Field(ge=0.0, le=1.0)
    affection: float = Field(ge=0.0, le=1.0)
    fear: float = Field(ge=0.0, le=1.0)
    resentment: float = Field(ge=0.0, le=1.0)
    debt: float = Field(ge=0.0, le=1.0)
    updated_turn: int
    created_at: str
    updated_at: str

    def dimensions(self) -> RelationshipDimensions:
        return RelationshipDimensions(**{name: getattr(self, name) for name in DIMENSIONS})

    def other_end(self, entity: EntityRef) -> EntityRef:
        """Return the endpoint that is not ``entity``."""
        return self.to_entity if self.from_entity.matches(entity) else self.from_entity


PERCEIVED_DIMENSIONS: tuple[str, ...] = ("trust", "respect", "affection")


class PerceivedRelationship(BaseModel):
    """What a perceiver believes about a relationship. Unknown values are None;
    fear and resentment are never visible to the perceiver."""

    id: str
    game_id: str
    perceiver_id: str
    target_id: str
    perceived_trust: float | None = Field(default=None, ge=0.0, le=1.0)
    perceived_respect: float | None = Field(default=None, ge=0.0, le=1.0)
    perceived_affection: float | None = Field(default=None, ge=0.0, le=1.0)
    last_updated_turn: int
    created_at: str
    updated_at: str
