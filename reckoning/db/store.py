from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Iterator

from reckoning.db.schema import init_db
from reckoning.models.emergence import ContributingFactor, EmergenceNotification, EmergenceOpportunity
from reckoning.models.entities import (
    DIMENSION_DEFAULTS,
    DIMENSIONS,
    PERCEIVED_DIMENSIONS,
    EntityRef,
    PerceivedRelationship,
    Relationship,
    clamp_dimension,
)
from reckoning.models.events import CanonicalEvent
from reckoning.models.evolutions import PendingEvolution, PendingEvolutionChanges
from reckoning.models.scenes import ConnectionRequirements, Scene, SceneConnection, SceneUnlockInfo
from reckoning.models.traits import Trait

log = logging.getLogger(__name__)

THRESHOLD_OPERATORS = {">=", "<=", ">", "<"}

_RELATIONSHIP_COLUMNS = (
    "id, game_id, from_type, from_id, to_type, to_id, "
    "trust, respect, affection, fear, resentment, debt, updated_turn, created_at, updated_at"
)
_TRAIT_COLUMNS = "id, game_id, entity_type, entity_id, trait, acquired_turn, source_event_id, status, created_at"
_PENDING_COLUMNS = (
    "id, game_id, turn, evolution_type, entity_type, entity_id, trait, target_type, target_id, "
    "dimension, old_value, new_value, reason, source_event_id, status, dm_notes, created_at, resolved_at"
)
_SCENE_COLUMNS = (
    "id, game_id, name, description, scene_type, location_id, started_turn, completed_turn, "
    "status, mood, stakes, created_at, updated_at"
)
_CONNECTION_COLUMNS = (
    "id, game_id, from_scene_id, to_scene_id, requirements_json, connection_type, description, created_at"
)
_NOTIFICATION_COLUMNS = (
    "id, game_id, emergence_type, entity_type, entity_id, confidence, reason, triggering_event_id, "
    "contributing_factors_json, status, dm_notes, created_at, resolved_at"
)
_EVENT_COLUMNS = (
    "id, game_id, turn, event_type, content, speaker, location_id, "
    "actor_type, actor_id, target_type, target_id, action, witnesses_json, tags_json"
)
_PERCEIVED_COLUMNS = (
    "id, game_id, perceiver_id, target_id, perceived_trust, perceived_respect, perceived_affection, "
    "last_updated_turn, created_at, updated_at"
)


def _now() -> str:
    return datetime.now(UTC).isoformat()


def _new_id() -> str:
    return str(uuid.uuid4())


def _check_dimension(name: str) -> None:
    if name not in DIMENSIONS:
        raise ValueError(f"unknown relationship dimension: {name}")


class Store:
    def __init__(self, db_path: str) -> None:
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(db_path)
        self.conn.row_factory = sqlite3.Row
        init_db(self.conn)

    @contextmanager
    def tx(self) -> Iterator[sqlite3.Connection]:
        log.debug("transaction_start")
        try:
            yield self.conn
            self.conn.commit()
            log.debug("transaction_commit")
        except Exception:
            self.conn.rollback()
            log.exception("transaction_rollback")
            raise

    def close(self) -> None:
        self.conn.close()

    # games

    def create_game(self, game_id: str | None = None, turn: int = 0) -> str:
        game_id = game_id or _new_id()
        now = _now()
        with self.tx() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO games(id, turn, current_scene_id, created_at, updated_at) VALUES (?, ?, NULL, ?, ?)",
                (game_id, turn, now, now),
            )
        return game_id

    def get_game(self, game_id: str) -> sqlite3.Row | None:
        return self.conn.execute("SELECT * FROM games WHERE id = ?", (game_id,)).fetchone()

    def get_current_scene_id(self, game_id: str) -> str | None:
        row = self.conn.execute("SELECT current_scene_id FROM games WHERE id = ?", (game_id,)).fetchone()
        return row["current_scene_id"] if row else None

    def set_current_scene_id(self, game_id: str, scene_id: str | None) -> None:
        now = _now()
        with self.tx() as conn:
            conn.execute(
                """
                INSERT INTO games(id, turn, current_scene_id, created_at, updated_at)
                VALUES (?, 0, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET current_scene_id = excluded.current_scene_id, updated_at = excluded.updated_at
                """,
                (game_id, scene_id, now, now),
            )

    # events

    def write_event(self, event: CanonicalEvent) -> None:
        log.info("event_write game=%s turn=%s type=%s", event.game_id, event.turn, event.event_type)
        with self.tx() as conn:
            conn.execute(
                """
                INSERT INTO events(
                    id, game_id, turn, event_type, content, speaker, location_id,
                    actor_type, actor_id, target_type, target_id, action, witnesses_json, tags_json
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    event.id,
                    event.game_id,
                    event.turn,
                    event.event_type,
                    event.content,
                    event.speaker,
                    event.location_id,
                    event.actor_type,
                    event.actor_id,
                    event.target_type,
                    event.target_id,
                    event.action,
                    json.dumps(event.witnesses),
                    json.dumps(event.tags),
                ),
            )

    def count_events_between(self, game_id: str, start_turn: int, end_turn: int | None = None) -> int:
        if end_turn is None:
            row = self.conn.execute(
                "SELECT COUNT(*) AS c FROM events WHERE game_id = ? AND turn >= ?",
                (game_id, start_turn),
            ).fetchone()
        else:
            row = self.conn.execute(
                "SELECT COUNT(*) AS c FROM events WHERE game_id = ? AND turn >= ? AND turn <= ?",
                (game_id, start_turn, end_turn),
            ).fetchone()
        return int(row["c"])

    def _row_to_event(self, row: sqlite3.Row) -> CanonicalEvent:
        data = {key: row[key] for key in row.keys() if key not in ("witnesses_json", "tags_json")}
        return CanonicalEvent(
            **data,
            witnesses=json.loads(row["witnesses_json"]),
            tags=json.loads(row["tags_json"]),
        )

    def get_event(self, event_id: str) -> CanonicalEvent | None:
        row = self.conn.execute(f"SELECT {_EVENT_COLUMNS} FROM events WHERE id = ?", (event_id,)).fetchone()
        return self._row_to_event(row) if row else None

    def find_recent_events(self, game_id: str, limit: int = 10) -> list[CanonicalEvent]:
        """Latest ``limit`` events of a game, oldest first."""
        rows = self.conn.execute(
            f"SELECT {_EVENT_COLUMNS} FROM events WHERE game_id = ? ORDER BY turn DESC, rowid DESC LIMIT ?",
            (game_id, limit),
        ).fetchall()
        return [self._row_to_event(row) for row in reversed(rows)]

    # relationships

    def _row_to_relationship(self, row: sqlite3.Row) -> Relationship:
        return Relationship(
            id=row["id"],
            game_id=row["game_id"],
            from_entity=EntityRef(type=row["from_type"], id=row["from_id"]),
            to_entity=EntityRef(type=row["to_type"], id=row["to_id"]),
            trust=row["trust"],
            respect=row["respect"],
            affection=row["affection"],
            fear=row["fear"],
            resentment=row["resentment"],
            debt=row["debt"],
            updated_turn=row["updated_turn"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def upsert_relationship(
        self,
        game_id: str,
        from_entity: EntityRef,
        to_entity: EntityRef,
        updated_turn: int,
        dimensions: dict[str, float] | None = None,
    ) -> Relationship:
        """Create or update the (game, from, to) relationship.

        Only the dimensions named in ``dimensions`` change on an existing row; a new
        row starts from the defaults. Every written value is clamped to [0, 1].
        """
        values = dict(dimensions or {})
        for name in values:
            _check_dimension(name)
        clamped = {name: clamp_dimension(value) for name, value in values.items()}
        existing = self.find_relationship_between(game_id, from_entity, to_entity)
        now = _now()
        with self.tx() as conn:
            if existing is not None:
                merged = {name: clamped.get(name, getattr(existing, name)) for name in DIMENSIONS}
                conn.execute(
                    """
                    UPDATE relationships
                    SET trust = ?, respect = ?, affection = ?, fear = ?, resentment = ?, debt = ?,
                        updated_turn = ?, updated_at = ?
                    WHERE id = ?
                    """,
                    (*(merged[name] for name in DIMENSIONS), updated_turn, now, existing.id),
                )
                relationship_id = existing.id
            else:
                merged = {name: clamped.get(name, DIMENSION_DEFAULTS[name]) for name in DIMENSIONS}
                relationship_id = _new_id()
                conn.execute(
                    f"INSERT INTO relationships({_RELATIONSHIP_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        relationship_id,
                        game_id,
                        from_entity.type,
                        from_entity.id,
                        to_entity.type,
                        to_entity.id,
                        *(merged[name] for name in DIMENSIONS),
                        updated_turn,
                        now,
                        now,
                    ),
                )
        log.info(
            "relationship_upsert game=%s from=%s:%s to=%s:%s turn=%s",
            game_id,
            from_entity.type,
            from_entity.id,
            to_entity.type,
            to_entity.id,
            updated_turn,
        )
        row = self.conn.execute(
            f"SELECT {_RELATIONSHIP_COLUMNS} FROM relationships WHERE id = ?", (relationship_id,)
        ).fetchone()
        return self._row_to_relationship(row)

    def find_relationship_between(self, game_id: str, from_entity: EntityRef, to_entity: EntityRef) -> Relationship | None:
        row = self.conn.execute(
            f"""
            SELECT {_RELATIONSHIP_COLUMNS} FROM relationships
            WHERE game_id = ? AND from_type = ? AND from_id = ? AND to_type = ? AND to_id = ?
            """,
            (game_id, from_entity.type, from_entity.id, to_entity.type, to_entity.id),
        ).fetchone()
        return self._row_to_relationship(row) if row else None

    def find_relationships_by_entity(self, game_id: str, entity: EntityRef) -> list[Relationship]:
        rows = self.conn.execute(
            f"""
            SELECT {_RELATIONSHIP_COLUMNS} FROM relationships
            WHERE game_id = ? AND ((from_type = ? AND from_id = ?) OR (to_type = ? AND to_id = ?))
            ORDER BY rowid
            """,
            (game_id, entity.type, entity.id, entity.type, entity.id),
        ).fetchall()
        return [self._row_to_relationship(row) for row in rows]

    def find_relationships_by_game(self, game_id: str) -> list[Relationship]:
        rows = self.conn.execute(
            f"SELECT {_RELATIONSHIP_COLUMNS} FROM relationships WHERE game_id = ? ORDER BY rowid",
            (game_id,),
        ).fetchall()
        return [self._row_to_relationship(row) for row in rows]

    def find_relationships_by_threshold(
        self,
        game_id: str,
        dimension: str,
        threshold: float,
        operator: str = ">=",
    ) -> list[Relationship]:
        _check_dimension(dimension)
        if operator not in THRESHOLD_OPERATORS:
            raise ValueError(f"unsupported threshold operator: {operator}")
        rows = self.conn.execute(
            f"SELECT {_RELATIONSHIP_COLUMNS} FROM relationships WHERE game_id = ? AND {dimension} {operator} ? ORDER BY rowid",
            (game_id, threshold),
        ).fetchall()
        return [self._row_to_relationship(row) for row in rows]

    # perceived relationships

    def _row_to_perceived(self, row: sqlite3.Row) -> PerceivedRelationship:
        return PerceivedRelationship(**{key: row[key] for key in row.keys()})

    def upsert_perceived_relationship(
        self,
        game_id: str,
        perceiver_id: str,
        target_id: str,
        last_updated_turn: int,
        values: dict[str, float | None] | None = None,
    ) -> PerceivedRelationship:
        """Create or update what ``perceiver_id`` believes about ``target_id``.

        Keys are trust, respect and affection. An omitted key keeps its stored
        value; an explicit None marks it unknown. Numbers are clamped to [0, 1].
        """
        updates = dict(values or {})
        for name in updates:
            if name not in PERCEIVED_DIMENSIONS:
                raise ValueError(f"unknown perceived dimension: {name}")
        updates = {name: None if value is None else clamp_dimension(value) for name, value in updates.items()}
        existing = self.find_perceived_relationship(game_id, perceiver_id, target_id)
        now = _now()
        with self.tx() as conn:
            if existing is not None:
                merged = {
                    name: updates.get(name, getattr(existing, f"perceived_{name}")) for name in PERCEIVED_DIMENSIONS
                }
                conn.execute(
                    """
                    UPDATE perceived_relationships
                    SET perceived_trust = ?, perceived_respect = ?, perceived_affection = ?,
                        last_updated_turn = ?, updated_at = ?
                    WHERE id = ?
                    """,
                    (*(merged[name] for name in PERCEIVED_DIMENSIONS), last_updated_turn, now, existing.id),
                )
                perceived_id = existing.id
            else:
                perceived_id = _new_id()
                conn.execute(
                    f"INSERT INTO perceived_relationships({_PERCEIVED_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        perceived_id,
                        game_id,
                        perceiver_id,
                        target_id,
                        *(updates.get(name) for name in PERCEIVED_DIMENSIONS),
                        last_updated_turn,
                        now,
                        now,
                    ),
                )
        log.info(
            "perceived_relationship_upsert game=%s perceiver=%s target=%s turn=%s",
            game_id,
            perceiver_id,
            target_id,
            last_updated_turn,
        )
        row = self.conn.execute(
            f"SELECT {_PERCEIVED_COLUMNS} FROM perceived_relationships WHERE id = ?", (perceived_id,)
        ).fetchone()
        return self._row_to_perceived(row)

    def find_perceived_relationship(self, game_id: str, perceiver_id: str, target_id: str) -> PerceivedRelationship | None:
        row = self.conn.execute(
            f"""
            SELECT {_PERCEIVED_COLUMNS} FROM perceived_relationships
            WHERE game_id = ? AND perceiver_id = ? AND target_id = ?
            """,
            (game_id, perceiver_id, target_id),
        ).fetchone()
        return self._row_to_perceived(row) if row else None

    def find_perceived_by_perceiver(self, game_id: str, perceiver_id: str) -> list[PerceivedRelationship]:
        rows = self.conn.execute(
            f"SELECT {_PERCEIVED_COLUMNS} FROM perceived_relationships WHERE game_id = ? AND perceiver_id = ? ORDER BY rowid",
            (game_id, perceiver_id),
        ).fetchall()
        return [self._row_to_perceived(row) for row in rows]

    def find_perceived_by_game(self, game_id: str) -> list[PerceivedRelationship]:
        rows = self.conn.execute(
            f"SELECT {_PERCEIVED_COLUMNS} FROM perceived_relationships WHERE game_id = ? ORDER BY rowid",
            (game_id,),
        ).fetchall()
        return [self._row_to_perceived(row) for row in rows]

    def delete_perceived_relationship(self, perceived_id: str) -> bool:
        with self.tx() as conn:
            cursor = conn.execute("DELETE FROM perceived_relationships WHERE id = ?", (perceived_id,))
        return cursor.rowcount > 0

    def delete_perceived_by_perceiver(self, game_id: str, perceiver_id: str) -> int:
        with self.tx() as conn:
            cursor = conn.execute(
                "DELETE FROM perceived_relationships WHERE game_id = ? AND perceiver_id = ?",
                (game_id, perceiver_id),
            )
        return cursor.rowcount

    def delete_perceived_by_game(self, game_id: str) -> int:
        with self.tx() as conn:
            cursor = conn.execute("DELETE FROM perceived_relationships WHERE game_id = ?", (game_id,))
        return cursor.rowcount

    # traits

    def _row_to_trait(self, row: sqlite3.Row) -> Trait:
        return Trait(
            id=row["id"],
            game_id=row["game_id"],
            entity_type=row["entity_type"],
            entity_id=row["entity_id"],
            trait=row["trait"],
            acquired_turn=row["acquired_turn"],
            source_event_id=row["source_event_id"],
            status=row["status"],
            created_at=row["created_at"],
        )

    def add_trait(
        self,
        game_id: str,
        entity: EntityRef,
        trait: str,
        turn: int,
        source_event_id: str | None = None,
    ) -> Trait:
        """Add an active trait. Re-adding an active trait is a no-op; a faded or
        removed one is reactivated with the new turn and source."""
        with self.tx() as conn:
            conn.execute(
                f"""
                INSERT INTO entity_traits({_TRAIT_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, 'active', ?)
                ON CONFLICT(game_id, entity_type, entity_id, trait) DO UPDATE SET
                    status = 'active',
                    acquired_turn = excluded.acquired_turn,
                    source_event_id = excluded.source_event_id
                WHERE entity_traits.status != 'active'
                """,
                (_new_id(), game_id, entity.type, entity.id, trait, turn, source_event_id, _now()),
            )
        log.info("trait_add game=%s entity=%s:%s trait=%s turn=%s", game_id, entity.type, entity.id, trait, turn)
        row = self.conn.execute(
            f"SELECT {_TRAIT_COLUMNS} FROM entity_traits WHERE game_id = ? AND entity_type = ? AND entity_id = ? AND trait = ?",
            (game_id, entity.type, entity.id, trait),
        ).fetchone()
        return self._row_to_trait(row)

    def remove_trait(self, game_id: str, entity: EntityRef, trait: str) -> bool:
        with self.tx() as conn:
            cursor = conn.execute(
                """
                UPDATE entity_traits SET status = 'removed'
                WHERE game_id = ? AND entity_type = ? AND entity_id = ? AND trait = ? AND status != 'removed'
                """,
                (game_id, entity.type, entity.id, trait),
            )
        log.info("trait_remove game=%s entity=%s:%s trait=%s changed=%s", game_id, entity.type, entity.id, trait, cursor.rowcount)
        return cursor.rowcount > 0

    def set_trait_status(self, trait_id: str, status: str) -> None:
        with self.tx() as conn:
            conn.execute("UPDATE entity_traits SET status = ? WHERE id = ?", (status, trait_id))

    def find_traits_by_entity(self, game_id: str, entity: EntityRef) -> list[Trait]:
        rows = self.conn.execute(
            f"""
            SELECT {_TRAIT_COLUMNS} FROM entity_traits
            WHERE game_id = ? AND entity_type = ? AND entity_id = ? AND status = 'active'
            ORDER BY acquired_turn ASC, rowid ASC
            """,
            (game_id, entity.type, entity.id),
        ).fetchall()
        return [self._row_to_trait(row) for row in rows]

    def get_trait_history(self, game_id: str, entity: EntityRef) -> list[Trait]:
        rows = self.conn.execute(
            f"""
            SELECT {_TRAIT_COLUMNS} FROM entity_traits
            WHERE game_id = ? AND entity_type = ? AND entity_id = ?
            ORDER BY acquired_turn ASC, rowid ASC
            """,
            (game_id, entity.type, entity.id),
        ).fetchall()
        return [self._row_to_trait(row) for row in rows]

    def has_trait(self, game_id: str, entity: EntityRef, trait: str) -> bool:
        row = self.conn.execute(
            """
            SELECT 1 FROM entity_traits
            WHERE game_id = ? AND entity_type = ? AND entity_id = ? AND trait = ? AND status = 'active'
            LIMIT 1
            """,
            (game_id, entity.type, entity.id, trait),
        ).fetchone()
        return row is not None

    def find_entities_with_trait(self, game_id: str, trait: str) -> list[Trait]:
        rows = self.conn.execute(
            f"""
            SELECT {_TRAIT_COLUMNS} FROM entity_traits
            WHERE game_id = ? AND trait = ? AND status = 'active'
            ORDER BY acquired_turn ASC, rowid ASC
            """,
            (game_id, trait),
        ).fetchall()
        return [self._row_to_trait(row) for row in rows]

    # pending evolutions

    def _row_to_pending(self, row: sqlite3.Row) -> PendingEvolution:
        return PendingEvolution(**{key: row[key] for key in row.keys()})

    def create_pending_evolution(
        self,
        *,
        game_id: str,
        turn: int,
        evolution_type: str,
        entity_type: str,
        entity_id: str,
        reason: str,
        trait: str | None = None,
        target_type: str | None = None,
        target_id: str | None = None,
        dimension: str | None = None,
        old_value: float | None = None,
        new_value: float | None = None,
        source_event_id: str | None = None,
    ) -> PendingEvolution:
        pending_id = _new_id()
        with self.tx() as conn:
            conn.execute(
                f"""
                INSERT INTO pending_evolutions({_PENDING_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 'pending', NULL, ?, NULL)
                """,
                (
                    pending_id,
                    game_id,
                    turn,
                    evolution_type,
                    entity_type,
                    entity_id,
                    trait,
                    target_type,
                    target_id,
                    dimension,
                    old_value,
                    new_value,
                    reason,
                    source_event_id,
                    _now(),
                ),
            )
        pending = self.get_pending_evolution(pending_id)
        assert pending is not None
        return pending

    def get_pending_evolution(self, pending_id: str) -> PendingEvolution | None:
        row = self.conn.execute(
            f"SELECT {_PENDING_COLUMNS} FROM pending_evolutions WHERE id = ?", (pending_id,)
        ).fetchone()
        return self._row_to_pending(row) if row else None

    def find_pending_evolutions(self, game_id: str, status: str | None = "pending") -> list[PendingEvolution]:
        if status is None:
            rows = self.conn.execute(
                f"SELECT {_PENDING_COLUMNS} FROM pending_evolutions WHERE game_id = ? ORDER BY turn ASC, rowid ASC",
                (game_id,),
            ).fetchall()
        else:
            rows = self.conn.execute(
                f"""
                SELECT {_PENDING_COLUMNS} FROM pending_evolutions
                WHERE game_id = ? AND status = ?
                ORDER BY turn ASC, rowid ASC
                """,
                (game_id, status),
            ).fetchall()
        return [self._row_to_pending(row) for row in rows]

    def find_pending_evolutions_by_entity(self, game_id: str, entity: EntityRef) -> list[PendingEvolution]:
        rows = self.conn.execute(
            f"""
            SELECT {_PENDING_COLUMNS} FROM pending_evolutions
            WHERE game_id = ? AND entity_type = ? AND entity_id = ?
            ORDER BY turn ASC, rowid ASC
            """,
            (game_id, entity.type, entity.id),
        ).fetchall()
        return [self._row_to_pending(row) for row in rows]

    def update_pending_evolution(self, pending_id: str, changes: PendingEvolutionChanges) -> PendingEvolution | None:
        updates = changes.model_dump(exclude_none=True)
        if "dimension" in updates:
            _check_dimension(updates["dimension"])
        for key in ("old_value", "new_value"):
            if key in updates:
                updates[key] = clamp_dimension(updates[key])
        if updates:
            assignments = ", ".join(f"{key} = ?" for key in updates)
            with self.tx() as conn:
                conn.execute(
                    f"UPDATE pending_evolutions SET {assignments} WHERE id = ?",
                    (*updates.values(), pending_id),
                )
        return self.get_pending_evolution(pending_id)

    def resolve_pending_evolution(self, pending_id: str, status: str, dm_notes: str | None = None) -> PendingEvolution | None:
        """Move a pending record to a terminal status. Returns None when the record
        is missing or no longer pending."""
        with self.tx() as conn:
            cursor = conn.execute(
                """
                UPDATE pending_evolutions SET status = ?, dm_notes = ?, resolved_at = ?
                WHERE id = ? AND status = 'pending'
                """,
                (status, dm_notes, _now(), pending_id),
            )
        if cursor.rowcount == 0:
            return None
        return self.get_pending_evolution(pending_id)

    # scenes

    def _row_to_scene(self, row: sqlite3.Row) -> Scene:
        return Scene(**{key: row[key] for key in row.keys()})

    def create_scene(
        self,
        game_id: str,
        started_turn: int,
        *,
        name: str | None = None,
        description: str | None = None,
        scene_type: str | None = None,
        location_id: str | None = None,
        mood: str | None = None,
        stakes: str | None = None,
    ) -> Scene:
        scene_id = _new_id()
        now = _now()
        with self.tx() as conn:
            conn.execute(
                f"""
                INSERT INTO scenes({_SCENE_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?, NULL, 'active', ?, ?, ?, ?)
                """,
                (scene_id, game_id, name, description, scene_type, location_id, started_turn, mood, stakes, now, now),
            )
        scene = self.get_scene(scene_id)
        assert scene is not None
        return scene

    def get_scene(self, scene_id: str) -> Scene | None:
        row = self.conn.execute(f"SELECT {_SCENE_COLUMNS} FROM scenes WHERE id = ?", (scene_id,)).fetchone()
        return self._row_to_scene(row) if row else None

    def find_scenes_by_game(self, game_id: str, status: str | None = None) -> list[Scene]:
        if status is None:
            rows = self.conn.execute(
                f"SELECT {_SCENE_COLUMNS} FROM scenes WHERE game_id = ? ORDER BY started_turn ASC, rowid ASC",
                (game_id,),
            ).fetchall()
        else:
            rows = self.conn.execute(
                f"SELECT {_SCENE_COLUMNS} FROM scenes WHERE game_id = ? AND status = ? ORDER BY started_turn ASC, rowid ASC",
                (game_id, status),
            ).fetchall()
        return [self._row_to_scene(row) for row in rows]

    def find_available_scenes(self, game_id: str) -> list[Scene]:
        rows = self.conn.execute(
            """
            SELECT s.id, s.game_id, s.name, s.description, s.scene_type, s.location_id, s.started_turn,
                   s.completed_turn, s.status, s.mood, s.stakes, s.created_at, s.updated_at
            FROM scenes s
            JOIN scene_availability sa ON sa.scene_id = s.id AND sa.game_id = s.game_id
            WHERE s.game_id = ? AND s.status = 'active'
            ORDER BY sa.unlocked_turn ASC, s.rowid ASC
            """,
            (game_id,),
        ).fetchall()
        return [self._row_to_scene(row) for row in rows]

    def mark_scene_started(self, scene_id: str, turn: int) -> None:
        with self.tx() as conn:
            conn.execute(
                "UPDATE scenes SET status = 'active', started_turn = ?, completed_turn = NULL, updated_at = ? WHERE id = ?",
                (turn, _now(), scene_id),
            )

    def mark_scene_ended(self, scene_id: str, status: str, turn: int) -> None:
        with self.tx() as conn:
            conn.execute(
                "UPDATE scenes SET status = ?, completed_turn = ?, updated_at = ? WHERE id = ?",
                (status, turn, _now(), scene_id),
            )

    # scene availability

    def unlock_scene(self, game_id: str, scene_id: str, turn: int, unlocked_by: str | None = None) -> SceneUnlockInfo:
        with self.tx() as conn:
            conn.execute(
                """
                INSERT OR IGNORE INTO scene_availability(game_id, scene_id, unlocked_turn, unlocked_by, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (game_id, scene_id, turn, unlocked_by, _now()),
            )
        info = self.get_unlock_info(game_id, scene_id)
        assert info is not None
        return info

    def is_scene_unlocked(self, game_id: str, scene_id: str) -> bool:
        row = self.conn.execute(
            "SELECT 1 FROM scene_availability WHERE game_id = ? AND scene_id = ? LIMIT 1",
            (game_id, scene_id),
        ).fetchone()
        return row is not None

    def get_unlock_info(self, game_id: str, scene_id: str) -> SceneUnlockInfo | None:
        row = self.conn.execute(
            """
            SELECT game_id, scene_id, unlocked_turn, unlocked_by, created_at
            FROM scene_availability WHERE game_id = ? AND scene_id = ?
            """,
            (game_id, scene_id),
        ).fetchone()
        return SceneUnlockInfo(**{key: row[key] for key in row.keys()}) if row else None

    def lock_scene(self, game_id: str, scene_id: str) -> bool:
        with self.tx() as conn:
            cursor = conn.execute(
                "DELETE FROM scene_availability WHERE game_id = ? AND scene_id = ?",
                (game_id, scene_id),
            )
        return cursor.rowcount > 0

    # scene connections

    def _row_to_connection(self, row: sqlite3.Row) -> SceneConnection:
        requirements = None
        if row["requirements_json"]:
            requirements = ConnectionRequirements(**json.loads(row["requirements_json"]))
        return SceneConnection(
            id=row["id"],
            game_id=row["game_id"],
            from_scene_id=row["from_scene_id"],
            to_scene_id=row["to_scene_id"],
            connection_type=row["connection_type"],
            requirements=requirements,
            description=row["description"],
            created_at=row["created_at"],
        )

    def create_scene_connection(
        self,
        game_id: str,
        from_scene_id: str,
        to_scene_id: str,
        *,
        connection_type: str = "path",
        requirements: ConnectionRequirements | None = None,
        description: str | None = None,
    ) -> SceneConnection:
        connection_id = _new_id()
        requirements_json = json.dumps(requirements.model_dump(), sort_keys=True) if requirements else None
        with self.tx() as conn:
            conn.execute(
                f"INSERT INTO scene_connections({_CONNECTION_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (connection_id, game_id, from_scene_id, to_scene_id, requirements_json, connection_type, description, _now()),
            )
        row = self.conn.execute(
            f"SELECT {_CONNECTION_COLUMNS} FROM scene_connections WHERE id = ?", (connection_id,)
        ).fetchone()
        return self._row_to_connection(row)

    def find_connections_from(self, game_id: str, from_scene_id: str) -> list[SceneConnection]:
        rows = self.conn.execute(
            f"""
            SELECT {_CONNECTION_COLUMNS} FROM scene_connections
            WHERE game_id = ? AND from_scene_id = ?
            ORDER BY rowid
            """,
            (game_id, from_scene_id),
        ).fetchall()
        return [self._row_to_connection(row) for row in rows]

    def find_unlocked_connections_from(self, game_id: str, from_scene_id: str) -> list[SceneConnection]:
        rows = self.conn.execute(
            """
            SELECT sc.id, sc.game_id, sc.from_scene_id, sc.to_scene_id, sc.requirements_json,
                   sc.connection_type, sc.description, sc.created_at
            FROM scene_connections sc
            JOIN scene_availability sa ON sa.scene_id = sc.to_scene_id AND sa.game_id = sc.game_id
            WHERE sc.game_id = ? AND sc.from_scene_id = ?
            ORDER BY sc.rowid
            """,
            (game_id, from_scene_id),
        ).fetchall()
        return [self._row_to_connection(row) for row in rows]

    # emergence notifications

    def _row_to_notification(self, row: sqlite3.Row) -> EmergenceNotification:
        factors = [ContributingFactor(**item) for item in json.loads(row["contributing_factors_json"])]
        return EmergenceNotification(
            id=row["id"],
            game_id=row["game_id"],
            opportunity=EmergenceOpportunity(
                type=row["emergence_type"],
                entity=EntityRef(type=row["entity_type"], id=row["entity_id"]),
                confidence=row["confidence"],
                reason=row["reason"],
                triggering_event_id=row["triggering_event_id"],
                contributing_factors=factors,
            ),
            status=row["status"],
            dm_notes=row["dm_notes"],
            created_at=row["created_at"],
            resolved_at=row["resolved_at"],
        )

    def create_emergence_notification(self, game_id: str, opportunity: EmergenceOpportunity) -> EmergenceNotification:
        notification_id = _new_id()
        factors = [factor.model_dump() for factor in opportunity.contributing_factors]
        with self.tx() as conn:
            conn.execute(
                f"""
                INSERT INTO emergence_notifications({_NOTIFICATION_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, 'pending', NULL, ?, NULL)
                """,
                (
                    notification_id,
                    game_id,
                    opportunity.type,
                    opportunity.entity.type,
                    opportunity.entity.id,
                    opportunity.confidence,
                    opportunity.reason,
                    opportunity.triggering_event_id,
                    json.dumps(factors, sort_keys=True),
                    _now(),
                ),
            )
        notification = self.get_emergence_notification(notification_id)
        assert notification is not None
        return notification

    def get_emergence_notification(self, notification_id: str) -> EmergenceNotification | None:
        row = self.conn.execute(
            f"SELECT {_NOTIFICATION_COLUMNS} FROM emergence_notifications WHERE id = ?", (notification_id,)
        ).fetchone()
        return self._row_to_notification(row) if row else None

    def find_pending_notifications(self, game_id: str) -> list[EmergenceNotification]:
        rows = self.conn.execute(
            f"""
            SELECT {_NOTIFICATION_COLUMNS} FROM emergence_notifications
            WHERE game_id = ? AND status = 'pending'
            ORDER BY rowid DESC
            """,
            (game_id,),
        ).fetchall()
        return [self._row_to_notification(row) for row in rows]

    def find_notifications_by_game(self, game_id: str, limit: int | None = None) -> list[EmergenceNotification]:
        rows = self.conn.execute(
            f"""
            SELECT {_NOTIFICATION_COLUMNS} FROM emergence_notifications
            WHERE game_id = ?
            ORDER BY rowid DESC
            LIMIT ?
            """,
            (game_id, -1 if limit is None else limit),
        ).fetchall()
        return [self._row_to_notification(row) for row in rows]

    def has_pending_notification(self, game_id: str, entity: EntityRef, emergence_type: str) -> bool:
        row = self.conn.execute(
            """
            SELECT 1 FROM emergence_notifications
            WHERE game_id = ? AND entity_type = ? AND entity_id = ? AND emergence_type = ? AND status = 'pending'
            LIMIT 1
            """,
            (game_id, entity.type, entity.id, emergence_type),
        ).fetchone()
        return row is not None

    def resolve_emergence_notification(
        self,
        notification_id: str,
        status: str,
        dm_notes: str | None = None,
    ) -> EmergenceNotification | None:
        with self.tx() as conn:
            cursor = conn.execute(
                "UPDATE emergence_notifications SET status = ?, dm_notes = ?, resolved_at = ? WHERE id = ?",
                (status, dm_notes, _now(), notification_id),
            )
        if cursor.rowcount == 0:
            return None
        return self.get_emergence_notification(notification_id)
