from __future__ import annotations

import logging
from datetime import UTC, datetime

from reckoning.db.store import Store
from reckoning.models.emergence import (
    ContributingFactor,
    EmergenceDetectionResult,
    EmergenceOpportunity,
    EmergenceThresholds,
    EmergenceType,
)
from reckoning.models.entities import EntityRef, Relationship, RelationshipDimensions
from reckoning.models.events import CanonicalEvent
from reckoning.notifications import (
    EmergenceAlly,
    EmergenceDetected,
    EmergenceVillain,
    NotificationEmitter,
    emit_safely,
)

log = logging.getLogger(__name__)

# Fixed policy constants around the configurable thresholds.
VILLAIN_LOW_TRUST = 0.3
VILLAIN_LOW_RESPECT = 0.4
FRIENDSHIP_MIN_TRUST = 0.5
DEBT_PATH_DEBT = 0.6
DEBT_PATH_RESPECT = 0.5
ALLY_BLOCK = 0.5
ALLY_PENALTY = 0.3


def normalize_above_threshold(value: float, threshold: float) -> float:
    """0 at or below the threshold, rising linearly to 1 at value 1.0."""
    if value < threshold:
        return 0.0
    if threshold >= 1.0:
        return 1.0
    return min(1.0, (value - threshold) / (1.0 - threshold))


def _clamp_unit(value: float) -> float:
    return max(0.0, min(1.0, value))


class EmergenceObserver:
    """Looks at the relationships around a committed event and reports NPCs
    that are ready to surface as villains or allies."""

    def __init__(
        self,
        store: Store,
        emitter: NotificationEmitter | None = None,
        thresholds: EmergenceThresholds | None = None,
    ) -> None:
        self.store = store
        self.emitter = emitter
        self.thresholds = thresholds or EmergenceThresholds()

    def on_event_committed(self, event: CanonicalEvent) -> EmergenceDetectionResult:
        if event.actor_id is None or event.actor_type is None or event.actor_type == "system":
            return self._result(event.id, [])

        actor = EntityRef(type=event.actor_type, id=event.actor_id)
        opportunities: list[EmergenceOpportunity] = []
        seen: set[tuple[str, str, str]] = set()

        def consider(relationship: Relationship, npc: EntityRef) -> None:
            for opportunity in (
                self.check_villain_emergence(relationship, npc, event),
                self.check_ally_emergence(relationship, npc, event),
            ):
                if opportunity is None:
                    continue
                key = (opportunity.entity.type, opportunity.entity.id, opportunity.type)
                if key in seen:
                    continue
                seen.add(key)
                opportunities.append(opportunity)

        for relationship in self.store.find_relationships_by_entity(event.game_id, actor):
            other = relationship.other_end(actor)
            if other.type != "npc":
                continue
            consider(relationship, other)

        if event.target_type == "npc" and event.target_id is not None:
            target = EntityRef(type="npc", id=event.target_id)
            for relationship in self.store.find_relationships_by_entity(event.game_id, target):
                # the NPC's own feelings only; the edge back to the actor was covered above
                if not relationship.from_entity.matches(target):
                    continue
                if relationship.to_entity.matches(actor):
                    continue
                consider(relationship, target)

        result = self._result(event.id, opportunities)
        if not opportunities:
            return result

        for opportunity in opportunities:
            log.info(
                "emergence_opportunity game=%s type=%s entity=%s confidence=%.2f",
                event.game_id,
                opportunity.type,
                opportunity.entity.id,
                opportunity.confidence,
            )
            if opportunity.type == "villain":
                emit_safely(self.emitter, EmergenceVillain(game_id=event.game_id, opportunity=opportunity))
            elif opportunity.type == "ally":
                emit_safely(self.emitter, EmergenceAlly(game_id=event.game_id, opportunity=opportunity))
            else:
                raise ValueError(f"unknown emergence type: {opportunity.type}")
        emit_safely(self.emitter, EmergenceDetected(game_id=event.game_id, result=result))
        return result

    def check_villain_emergence(
        self,
        relationship: Relationship,
        npc: EntityRef,
        event: CanonicalEvent,
    ) -> EmergenceOpportunity | None:
        t = self.thresholds
        fear = relationship.fear
        resentment = relationship.resentment
        if fear < t.villain_fear or resentment < t.villain_resentment:
            return None

        low_trust = relationship.trust < VILLAIN_LOW_TRUST
        low_respect = relationship.respect < VILLAIN_LOW_RESPECT
        factors = [
            ContributingFactor(dimension="fear", value=fear, threshold=t.villain_fear),
            ContributingFactor(dimension="resentment", value=resentment, threshold=t.villain_resentment),
        ]
        if low_trust:
            factors.append(ContributingFactor(dimension="trust", value=relationship.trust, threshold=VILLAIN_LOW_TRUST))
        if low_respect:
            factors.append(
                ContributingFactor(dimension="respect", value=relationship.respect, threshold=VILLAIN_LOW_RESPECT)
            )

        confidence = self.calculate_confidence("villain", relationship.dimensions())
        if confidence < t.min_confidence:
            log.debug("emergence_suppressed type=villain entity=%s confidence=%.2f", npc.id, confidence)
            return None

        parts = [
            "deeply fears the party" if fear >= t.high else "fears the party",
            "harbors deep resentment" if resentment >= t.high else "harbors resentment",
        ]
        if low_trust and low_respect:
            parts.append("with no trust or respect remaining")
        elif low_trust:
            parts.append("with broken trust")
        elif low_respect:
            parts.append("with no respect")

        return EmergenceOpportunity(
            type="villain",
            entity=npc,
            confidence=confidence,
            reason=f"NPC {', '.join(parts)}. May seek revenge or opposition.",
            triggering_event_id=event.id,
            contributing_factors=factors,
        )

    def check_ally_emergence(
        self,
        relationship: Relationship,
        npc: EntityRef,
        event: CanonicalEvent,
    ) -> EmergenceOpportunity | None:
        t = self.thresholds
        d = relationship.dimensions()
        trust_respect, friendship, indebted = self._ally_paths(d)
        if not (trust_respect or friendship or indebted):
            return None
        if d.fear >= ALLY_BLOCK or d.resentment >= ALLY_BLOCK:
            log.debug("emergence_blocked type=ally entity=%s fear=%.2f resentment=%.2f", npc.id, d.fear, d.resentment)
            return None

        factors: list[ContributingFactor] = []
        if trust_respect:
            factors.append(ContributingFactor(dimension="trust", value=d.trust, threshold=t.ally_trust))
            factors.append(ContributingFactor(dimension="respect", value=d.respect, threshold=t.ally_respect))
        if friendship:
            factors.append(ContributingFactor(dimension="affection", value=d.affection, threshold=t.ally_affection))
        if indebted:
            factors.append(ContributingFactor(dimension="debt", value=d.debt, threshold=DEBT_PATH_DEBT))

        confidence = self.calculate_confidence("ally", d)
        if confidence < t.min_confidence:
            log.debug("emergence_suppressed type=ally entity=%s confidence=%.2f", npc.id, confidence)
            return None

        paths: list[str] = []
        if trust_respect:
            if d.trust >= t.high and d.respect >= t.high:
                paths.append("has earned deep trust and respect")
            else:
                paths.append("has earned trust and respect")
        if friendship:
            paths.append("has formed a strong bond" if d.affection >= t.high else "has befriended them")
        if indebted:
            paths.append("feels indebted to the party")

        return EmergenceOpportunity(
            type="ally",
            entity=npc,
            confidence=confidence,
            reason=f"NPC {' and '.join(paths)}. May offer aid or join the party.",
            triggering_event_id=event.id,
            contributing_factors=factors,
        )

    def calculate_confidence(self, emergence_type: EmergenceType, dimensions: RelationshipDimensions) -> float:
        t = self.thresholds
        d = dimensions
        if emergence_type == "villain":
            fear_score = normalize_above_threshold(d.fear, t.villain_fear)
            resentment_score = normalize_above_threshold(d.resentment, t.villain_resentment)
            confidence = (fear_score + resentment_score) / 2
            if d.fear >= t.high:
                confidence += 0.1
            if d.resentment >= t.high:
                confidence += 0.1
            if d.trust < VILLAIN_LOW_TRUST:
                confidence += 0.1
            if d.respect >= 0.5:
                confidence -= 0.15
            if d.affection >= 0.4:
                confidence -= 0.1
            return _clamp_unit(confidence)
        elif emergence_type == "ally":
            trust_respect, friendship, indebted = self._ally_paths(d)
            scores: list[float] = []
            if trust_respect:
                scores.append(
                    (normalize_above_threshold(d.trust, t.ally_trust) + normalize_above_threshold(d.respect, t.ally_respect))
                    / 2
                )
            if friendship:
                scores.append(normalize_above_threshold(d.affection, t.ally_affection))
            if indebted:
                # debt is a weaker signal than earned trust or affection
                scores.append(normalize_above_threshold(d.debt, DEBT_PATH_DEBT) * 0.8)
            confidence = sum(scores) / len(scores) if scores else 0.0
            if len(scores) >= 2:
                confidence += 0.1
            if len(scores) >= 3:
                confidence += 0.1
            if d.fear >= ALLY_PENALTY:
                confidence -= 0.15
            if d.resentment >= ALLY_PENALTY:
                confidence -= 0.15
            return _clamp_unit(confidence)
        raise ValueError(f"unknown emergence type: {emergence_type}")

    def _ally_paths(self, d: RelationshipDimensions) -> tuple[bool, bool, bool]:
        t = self.thresholds
        return (
            d.trust >= t.ally_trust and d.respect >= t.ally_respect,
            d.affection >= t.ally_affection and d.trust >= FRIENDSHIP_MIN_TRUST,
            d.debt >= DEBT_PATH_DEBT and d.respect >= DEBT_PATH_RESPECT,
        )

    def _result(self, event_id: str, opportunities: list[EmergenceOpportunity]) -> EmergenceDetectionResult:
        return EmergenceDetectionResult(
            event_id=event_id,
            opportunities=opportunities,
            timestamp=datetime.now(UTC).isoformat(),
        )
