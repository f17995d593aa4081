from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

ActorType = Literal["player", "character", "npc", "location", "system"]


class GameEventRef(BaseModel):
    id: str
    game_id: str
    turn: int


class CanonicalEvent(BaseModel):
    id: str
    game_id: str
    turn: int
    event_type: str = "narration"
    content: str = ""
    location_id: str = ""
    speaker: str | None = None
    actor_type: ActorType | None = None
    actor_id: str | None = None
    target_type: ActorType | None = None
    target_id: str | None = None
    action: str | None = None
    witnesses: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)

    def ref(self) -> GameEventRef:
        return GameEventRef(id=self.id, game_id=self.game_id, turn=self.turn)
