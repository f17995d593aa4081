from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from reckoning.models.entities import EntityRef

EmergenceType = Literal["villain", "ally"]

NotificationStatus = Literal["pending", "acknowledged", "dismissed"]


class EmergenceThresholds(BaseModel):
    villain_fear: float = 0.6
    villain_resentment: float = 0.5
    ally_trust: float = 0.6
    ally_respect: float = 0.6
    ally_affection: float = 0.5
    high: float = 0.8
    medium: float = 0.6
    min_confidence: float = 0.3


class ContributingFactor(BaseModel):
    dimension: str
    value: float
    threshold: float


class EmergenceOpportunity(BaseModel):
    type: EmergenceType
    entity: EntityRef
    confidence: float = Field(ge=0.0, le=1.0)
    reason: str
    triggering_event_id: str
    contributing_factors: list[ContributingFactor] = Field(default_factory=list)


class EmergenceDetectionResult(BaseModel):
    event_id: str
    opportunities: list[EmergenceOpportunity] = Field(default_factory=list)
    timestamp: str


class EmergenceNotification(BaseModel):
    id: str
    game_id: str
    opportunity: EmergenceOpportunity
    status: NotificationStatus = "pending"
    dm_notes: str | None = None
    created_at: str
    resolved_at: str | None = None
