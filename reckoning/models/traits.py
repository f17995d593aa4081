from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from reckoning.models.entities import EntityType

TraitStatus = Literal["active", "faded", "removed"]

TraitCategory = Literal["moral", "emotional", "capability", "reputation"]


class Trait(BaseModel):
    id: str
    game_id: str
    entity_type: EntityType
    entity_id: str
    trait: str
    acquired_turn: int
    source_event_id: str | None = None
    status: TraitStatus = "active"
    created_at: str


class TraitCatalogEntry(BaseModel):
    trait: str
    category: TraitCategory
    description: str
    opposites: list[str] = Field(default_factory=list)


def _entry(trait: str, category: TraitCategory, description: str, *opposites: str) -> TraitCatalogEntry:
    return TraitCatalogEntry(trait=trait, category=category, description=description, opposites=list(opposites))


TRAIT_CATALOG: tuple[TraitCatalogEntry, ...] = (
    _entry("honorable", "moral", "Keeps promises, fights fairly", "ruthless", "deceitful"),
    _entry("ruthless", "moral", "Will do anything to achieve goals", "honorable", "merciful"),
    _entry("merciful", "moral", "Shows compassion to enemies", "ruthless", "cruel"),
    _entry("pragmatic", "moral", "Prioritizes practical outcomes", "idealistic"),
    _entry("idealistic", "moral", "Holds to principles despite cost", "pragmatic", "corruptible"),
    _entry("corruptible", "moral", "Can be swayed from principles", "idealistic", "honorable"),
    _entry("haunted", "emotional", "Troubled by past events", "serene"),
    _entry("hopeful", "emotional", "Believes in positive outcomes", "bitter", "cynical"),
    _entry("bitter", "emotional", "Resentful of past wrongs", "hopeful", "serene"),
    _entry("serene", "emotional", "At peace despite circumstances", "volatile", "haunted"),
    _entry("volatile", "emotional", "Prone to sudden emotional shifts", "serene", "guarded"),
    _entry("guarded", "emotional", "Keeps emotions hidden", "volatile"),
    _entry("battle-hardened", "capability", "Experienced in combat", "naive"),
    _entry("scholarly", "capability", "Well-read and knowledgeable"),
    _entry("street-wise", "capability", "Knows how to survive", "naive"),
    _entry("naive", "capability", "Inexperienced with the world", "street-wise", "battle-hardened"),
    _entry("cunning", "capability", "Clever and strategic"),
    _entry("broken", "capability", "Damaged by experiences"),
    _entry("feared", "reputation", "Others are afraid", "beloved"),
    _entry("beloved", "reputation", "Others feel affection", "feared", "notorious"),
    _entry("notorious", "reputation", "Known for bad deeds", "beloved", "mysterious"),
    _entry("mysterious", "reputation", "Little is known about them", "notorious", "legendary"),
    _entry("disgraced", "reputation", "Fallen from honor", "legendary"),
    _entry("legendary", "reputation", "Known for great deeds", "disgraced", "mysterious"),
)


def traits_by_category(category: TraitCategory) -> list[TraitCatalogEntry]:
    return [entry for entry in TRAIT_CATALOG if entry.category == category]


def find_catalog_entry(trait: str) -> TraitCatalogEntry | None:
    for entry in TRAIT_CATALOG:
        if entry.trait == trait:
            return entry
    return None
