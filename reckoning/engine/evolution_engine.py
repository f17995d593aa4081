from __future__ import annotations

import logging
from typing import Callable

from reckoning.db.store import Store
from reckoning.models.entities import DIMENSION_DEFAULTS, EntityRef, RelationshipDimensions, clamp_dimension
from reckoning.models.events import GameEventRef
from reckoning.models.evolutions import (
    AggregateLabel,
    EntitySummary,
    EvolutionSuggestion,
    PendingEvolution,
    PendingEvolutionChanges,
    RelationshipSummary,
)
from reckoning.notifications import (
    EvolutionApproved,
    EvolutionCreated,
    EvolutionEdited,
    EvolutionRefused,
    NotificationEmitter,
    emit_safely,
)

log = logging.getLogger(__name__)


class PendingEvolutionNotFoundError(LookupError):
    pass


class EvolutionStateError(RuntimeError):
    pass


class MalformedEvolutionError(ValueError):
    pass


# Evaluated top to bottom; the first matching predicate wins.
LABEL_RULES: list[tuple[Callable[[RelationshipDimensions], bool], AggregateLabel]] = [
    (lambda d: d.trust > 0.7 and d.affection > 0.7 and d.respect > 0.6, "devoted"),
    (lambda d: d.fear > 0.7 and d.resentment > 0.5, "terrified"),
    (lambda d: d.fear > 0.5 and d.resentment > 0.6, "enemy"),
    (lambda d: d.respect > 0.5 and d.resentment > 0.5, "rival"),
    (lambda d: d.resentment > 0.6, "resentful"),
    (lambda d: d.trust > 0.6 and d.respect > 0.6, "ally"),
    (lambda d: d.affection > 0.6 and d.trust > 0.5, "friend"),
    (lambda d: d.debt > 0.6, "indebted"),
    (lambda d: d.trust < 0.3 or d.fear > 0.4, "wary"),
]


def compute_aggregate_label(dimensions: RelationshipDimensions) -> AggregateLabel:
    for predicate, label in LABEL_RULES:
        if predicate(dimensions):
            return label
    return "indifferent"


class EvolutionService:
    """Queues proposed trait and relationship changes for DM review and applies
    them once approved or edited."""

    def __init__(self, store: Store, emitter: NotificationEmitter | None = None) -> None:
        self.store = store
        self.emitter = emitter

    def detect_evolutions(
        self,
        game_id: str,
        event_ref: GameEventRef,
        suggestions: list[EvolutionSuggestion],
    ) -> list[PendingEvolution]:
        created: list[PendingEvolution] = []
        for suggestion in suggestions:
            old_value: float | None = None
            new_value: float | None = None
            if (
                suggestion.evolution_type == "relationship_change"
                and suggestion.target_type is not None
                and suggestion.target_id is not None
                and suggestion.dimension is not None
            ):
                current = self._current_value(
                    game_id,
                    EntityRef(type=suggestion.entity_type, id=suggestion.entity_id),
                    EntityRef(type=suggestion.target_type, id=suggestion.target_id),
                    suggestion.dimension,
                )
                old_value = clamp_dimension(current)
                new_value = clamp_dimension(current + (suggestion.change or 0.0))

            pending = self.store.create_pending_evolution(
                game_id=game_id,
                turn=event_ref.turn,
                evolution_type=suggestion.evolution_type,
                entity_type=suggestion.entity_type,
                entity_id=suggestion.entity_id,
                reason=suggestion.reason,
                trait=suggestion.trait,
                target_type=suggestion.target_type,
                target_id=suggestion.target_id,
                dimension=suggestion.dimension,
                old_value=old_value,
                new_value=new_value,
                source_event_id=event_ref.id,
            )
            log.info(
                "evolution_created id=%s game=%s type=%s entity=%s:%s",
                pending.id,
                game_id,
                pending.evolution_type,
                pending.entity_type,
                pending.entity_id,
            )
            emit_safely(self.emitter, EvolutionCreated(pending=pending))
            created.append(pending)
        return created

    def approve(self, pending_id: str, dm_notes: str | None = None) -> PendingEvolution:
        pending = self._require_pending(pending_id, "approve")
        self._apply(pending)
        resolved = self._resolve(pending_id, "approved", dm_notes)
        log.info("evolution_approved id=%s game=%s", pending_id, resolved.game_id)
        emit_safely(self.emitter, EvolutionApproved(pending=resolved))
        return resolved

    def edit(
        self,
        pending_id: str,
        changes: PendingEvolutionChanges | dict,
        dm_notes: str | None = None,
    ) -> PendingEvolution:
        pending = self._require_pending(pending_id, "edit")
        if isinstance(changes, dict):
            changes = PendingEvolutionChanges(**changes)
        # Overrides are only persisted once the merged record is applicable.
        self._check_applicable(pending.model_copy(update=changes.model_dump(exclude_none=True)))
        updated = self.store.update_pending_evolution(pending_id, changes)
        if updated is None:
            raise PendingEvolutionNotFoundError(f"Pending evolution not found: {pending_id}")
        self._apply(updated)
        resolved = self._resolve(pending_id, "edited", dm_notes)
        log.info("evolution_edited id=%s game=%s", pending_id, resolved.game_id)
        emit_safely(self.emitter, EvolutionEdited(pending=resolved))
        return resolved

    def refuse(self, pending_id: str, dm_notes: str | None = None) -> PendingEvolution:
        self._require_pending(pending_id, "refuse")
        resolved = self._resolve(pending_id, "refused", dm_notes)
        log.info("evolution_refused id=%s game=%s", pending_id, resolved.game_id)
        emit_safely(self.emitter, EvolutionRefused(pending=resolved))
        return resolved

    def get_pending_evolutions(self, game_id: str, pending_only: bool = True) -> list[PendingEvolution]:
        return self.store.find_pending_evolutions(game_id, "pending" if pending_only else None)

    def get_entity_summary(self, game_id: str, entity_type: str, entity_id: str) -> EntitySummary:
        entity = EntityRef(type=entity_type, id=entity_id)
        traits = [trait.trait for trait in self.store.find_traits_by_entity(game_id, entity)]
        relationships: list[RelationshipSummary] = []
        for relationship in self.store.find_relationships_by_entity(game_id, entity):
            other = relationship.other_end(entity)
            dimensions = relationship.dimensions()
            relationships.append(
                RelationshipSummary(
                    target_type=other.type,
                    target_id=other.id,
                    label=compute_aggregate_label(dimensions),
                    dimensions=dimensions,
                )
            )
        return EntitySummary(entity_type=entity.type, entity_id=entity.id, traits=traits, relationships=relationships)

    def _current_value(self, game_id: str, from_entity: EntityRef, to_entity: EntityRef, dimension: str) -> float:
        relationship = self.store.find_relationship_between(game_id, from_entity, to_entity)
        if relationship is None:
            return DIMENSION_DEFAULTS[dimension]
        return getattr(relationship, dimension)

    def _require_pending(self, pending_id: str, action: str) -> PendingEvolution:
        pending = self.store.get_pending_evolution(pending_id)
        if pending is None:
            raise PendingEvolutionNotFoundError(f"Pending evolution not found: {pending_id}")
        if pending.status != "pending":
            raise EvolutionStateError(f"Cannot {action} evolution {pending_id} with status: {pending.status}")
        return pending

    def _resolve(self, pending_id: str, status: str, dm_notes: str | None) -> PendingEvolution:
        resolved = self.store.resolve_pending_evolution(pending_id, status, dm_notes)
        if resolved is None:
            raise EvolutionStateError(f"Evolution {pending_id} was resolved concurrently")
        return resolved

    def _check_applicable(self, pending: PendingEvolution) -> None:
        if pending.evolution_type in ("trait_add", "trait_remove"):
            if not pending.trait:
                raise MalformedEvolutionError(f"{pending.evolution_type} evolution {pending.id} has no trait")
        elif pending.evolution_type == "relationship_change":
            if (
                pending.target_type is None
                or pending.target_id is None
                or pending.dimension is None
                or pending.new_value is None
            ):
                raise MalformedEvolutionError(
                    f"relationship_change evolution {pending.id} needs target, dimension and new value"
                )
        else:
            raise MalformedEvolutionError(f"unknown evolution type: {pending.evolution_type}")

    def _apply(self, pending: PendingEvolution) -> None:
        self._check_applicable(pending)
        entity = pending.entity
        if pending.evolution_type == "trait_add":
            self.store.add_trait(pending.game_id, entity, pending.trait, pending.turn, pending.source_event_id)
        elif pending.evolution_type == "trait_remove":
            self.store.remove_trait(pending.game_id, entity, pending.trait)
        else:
            self.store.upsert_relationship(
                pending.game_id,
                entity,
                EntityRef(type=pending.target_type, id=pending.target_id),
                pending.turn,
                {pending.dimension: pending.new_value},
            )
        log.debug("evolution_applied id=%s type=%s", pending.id, pending.evolution_type)
