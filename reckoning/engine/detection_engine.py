"""Rule-based evolution suggestions drawn from committed event text.

Used when no AI-extracted suggestions are available for an event. Matching is a
case-insensitive substring test on the event content.
"""

from __future__ import annotations

from reckoning.models.entities import DIMENSIONS, EntityRef
from reckoning.models.events import CanonicalEvent
from reckoning.models.evolutions import EvolutionSuggestion

SIGNIFICANCE_THRESHOLD = 0.1
WITNESS_DAMPING = 0.5

TRAIT_KEYWORDS: dict[str, tuple[str, ...]] = {
    "merciful": ("spare", "mercy", "forgive", "let go", "compassion", "release"),
    "ruthless": ("kill", "execute", "destroy", "crush", "eliminate", "no mercy"),
    "honorable": ("promise", "oath", "honor", "fair fight", "keep word", "honest"),
    "pragmatic": ("practical", "efficient", "expedient", "necessary evil"),
    "idealistic": ("principle", "belief", "ideal", "moral", "righteous"),
    "haunted": ("nightmare", "trauma", "regret", "guilt", "torment", "haunt"),
    "hopeful": ("hope", "optimistic", "bright side", "believe", "faith"),
    "bitter": ("resent", "bitter", "grudge", "never forget", "vengeance"),
    "battle-hardened": ("combat", "fight", "battle", "victory", "defeat enemy", "slay"),
    "scholarly": ("study", "research", "learn", "knowledge", "tome", "book", "ancient text"),
    "street-wise": ("survive", "street", "hustle", "quick thinking", "resourceful"),
    "cunning": ("clever", "trick", "outsmart", "scheme", "manipulate", "deceive"),
    "feared": ("terror", "flee", "cower", "intimidate", "fear me"),
    "beloved": ("beloved", "adore", "love", "cherish", "grateful"),
    "notorious": ("infamous", "notorious", "criminal", "villain"),
    "legendary": ("legend", "famous", "renowned", "hero", "great deed"),
}

RELATIONSHIP_KEYWORDS: dict[str, tuple[tuple[str, float], ...]] = {
    "help": (("trust", 0.1),),
    "save": (("trust", 0.15), ("affection", 0.1)),
    "protect": (("trust", 0.1),),
    "honest": (("trust", 0.1),),
    "truth": (("trust", 0.05),),
    "betray": (("trust", -0.3), ("resentment", 0.2)),
    "lie": (("trust", -0.15),),
    "deceive": (("trust", -0.2),),
    "abandon": (("trust", -0.2), ("resentment", 0.15)),
    "impress": (("respect", 0.1),),
    "skill": (("respect", 0.05),),
    "wise": (("respect", 0.1),),
    "victory": (("respect", 0.1),),
    "honor": (("respect", 0.1),),
    "humiliate": (("respect", -0.2), ("resentment", 0.15)),
    "mock": (("respect", -0.1),),
    "coward": (("respect", -0.15),),
    "threaten": (("fear", 0.15),),
    "intimidate": (("fear", 0.2),),
    "torture": (("fear", 0.3), ("resentment", 0.2)),
    "kill": (("fear", 0.25),),
    "owe": (("debt", 0.2),),
    "favor": (("debt", 0.15),),
    "gift": (("affection", 0.1), ("debt", 0.1)),
}


def _actor(event: CanonicalEvent) -> EntityRef | None:
    if event.actor_type is None or event.actor_id is None or event.actor_type == "system":
        return None
    return EntityRef(type=event.actor_type, id=event.actor_id)


def _first_trait_keyword(content: str, keywords: tuple[str, ...]) -> str | None:
    for keyword in keywords:
        if keyword in content:
            return keyword
    return None


def detect_trait_suggestions(event: CanonicalEvent, actor: EntityRef | None = None) -> list[EvolutionSuggestion]:
    actor = actor or _actor(event)
    if actor is None:
        return []
    content = event.content.lower()
    suggestions: list[EvolutionSuggestion] = []
    for trait, keywords in TRAIT_KEYWORDS.items():
        keyword = _first_trait_keyword(content, keywords)
        if keyword is None:
            continue
        suggestions.append(
            EvolutionSuggestion(
                evolution_type="trait_add",
                entity_type=actor.type,
                entity_id=actor.id,
                trait=trait,
                reason=f'Event contains "{keyword}" suggesting {trait} behavior',
            )
        )
    return suggestions


def detect_relationship_suggestions(
    event: CanonicalEvent,
    actor: EntityRef | None = None,
    target: EntityRef | None = None,
) -> list[EvolutionSuggestion]:
    """Suggest changes to how the target feels about the actor.

    Without a target every witness (assumed to be an NPC) is affected at half
    strength.
    """
    actor = actor or _actor(event)
    if actor is None:
        return []
    if target is None and event.target_type not in (None, "system") and event.target_id is not None:
        target = EntityRef(type=event.target_type, id=event.target_id)
    content = event.content.lower()

    if target is None:
        suggestions: list[EvolutionSuggestion] = []
        for keyword, impacts in RELATIONSHIP_KEYWORDS.items():
            if keyword not in content:
                continue
            for witness_id in event.witnesses:
                for dimension, change in impacts:
                    suggestions.append(
                        EvolutionSuggestion(
                            evolution_type="relationship_change",
                            entity_type="npc",
                            entity_id=witness_id,
                            target_type=actor.type,
                            target_id=actor.id,
                            dimension=dimension,
                            change=change * WITNESS_DAMPING,
                            reason=f'Witnessed event containing "{keyword}"',
                        )
                    )
        return suggestions

    suggestions = []
    for keyword, impacts in RELATIONSHIP_KEYWORDS.items():
        if keyword not in content:
            continue
        for dimension, change in impacts:
            suggestions.append(
                EvolutionSuggestion(
                    evolution_type="relationship_change",
                    entity_type=target.type,
                    entity_id=target.id,
                    target_type=actor.type,
                    target_id=actor.id,
                    dimension=dimension,
                    change=change,
                    reason=f'Event contains "{keyword}" affecting {dimension}',
                )
            )
    return suggestions


def detect_system_suggestions(event: CanonicalEvent) -> list[EvolutionSuggestion]:
    return detect_trait_suggestions(event) + detect_relationship_suggestions(event)


def detect_trait_patterns(
    events: list[CanonicalEvent],
    actor: EntityRef,
    threshold: int = 3,
) -> list[EvolutionSuggestion]:
    counts: dict[str, list[str]] = {}
    for event in events:
        content = event.content.lower()
        for trait, keywords in TRAIT_KEYWORDS.items():
            keyword = _first_trait_keyword(content, keywords)
            if keyword is not None:
                counts.setdefault(trait, []).append(f'Turn {event.turn}: "{keyword}"')

    suggestions: list[EvolutionSuggestion] = []
    for trait, reasons in counts.items():
        if len(reasons) < threshold:
            continue
        more = "..." if len(reasons) > 3 else ""
        suggestions.append(
            EvolutionSuggestion(
                evolution_type="trait_add",
                entity_type=actor.type,
                entity_id=actor.id,
                trait=trait,
                reason=f"Repeated {trait} actions ({len(reasons)} occurrences): {', '.join(reasons[:3])}{more}",
            )
        )
    return suggestions


def aggregate_relationship_changes(
    events: list[CanonicalEvent],
    actor: EntityRef,
    target: EntityRef,
) -> list[EvolutionSuggestion]:
    totals: dict[str, float] = {name: 0.0 for name in DIMENSIONS}
    reasons: dict[str, list[str]] = {name: [] for name in DIMENSIONS}
    for event in events:
        for suggestion in detect_relationship_suggestions(event, actor, target):
            totals[suggestion.dimension] += suggestion.change
            reasons[suggestion.dimension].append(suggestion.reason)

    suggestions: list[EvolutionSuggestion] = []
    for dimension in DIMENSIONS:
        total = totals[dimension]
        # round away float noise such as 0.1 + 0.05 - 0.05
        if abs(round(total, 9)) < SIGNIFICANCE_THRESHOLD:
            continue
        more = "..." if len(reasons[dimension]) > 2 else ""
        suggestions.append(
            EvolutionSuggestion(
                evolution_type="relationship_change",
                entity_type=target.type,
                entity_id=target.id,
                target_type=actor.type,
                target_id=actor.id,
                dimension=dimension,
                change=total,
                reason=f"Cumulative {dimension} change: {'; '.join(reasons[dimension][:2])}{more}",
            )
        )
    return suggestions
