from __future__ import annotations

import sqlite3

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS games (
    id TEXT PRIMARY KEY,
    turn INTEGER NOT NULL DEFAULT 0,
    current_scene_id TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS events (
    id TEXT PRIMARY KEY,
    game_id TEXT NOT NULL,
    turn INTEGER NOT NULL,
    event_type TEXT NOT NULL,
    content TEXT NOT NULL DEFAULT '',
    speaker TEXT,
    location_id TEXT NOT NULL DEFAULT '',
    actor_type TEXT,
    actor_id TEXT,
    target_type TEXT,
    target_id TEXT,
    action TEXT,
    witnesses_json TEXT NOT NULL DEFAULT '[]',
    tags_json TEXT NOT NULL DEFAULT '[]',
    ts DATETIME DEFAULT CURRENT_TIMESTAMP
);
CREATE TABLE IF NOT EXISTS relationships (
    id TEXT PRIMARY KEY,
    game_id TEXT NOT NULL,
    from_type TEXT NOT NULL CHECK (from_type IN ('player', 'character', 'npc', 'location')),
    from_id TEXT NOT NULL,
    to_type TEXT NOT NULL CHECK (to_type IN ('player', 'character', 'npc', 'location')),
    to_id TEXT NOT NULL,
    trust REAL NOT NULL DEFAULT 0.5 CHECK (trust >= 0.0 AND trust <= 1.0),
    respect REAL NOT NULL DEFAULT 0.5 CHECK (respect >= 0.0 AND respect <= 1.0),
    affection REAL NOT NULL DEFAULT 0.5 CHECK (affection >= 0.0 AND affection <= 1.0),
    fear REAL NOT NULL DEFAULT 0.0 CHECK (fear >= 0.0 AND fear <= 1.0),
    resentment REAL NOT NULL DEFAULT 0.0 CHECK (resentment >= 0.0 AND resentment <= 1.0),
    debt REAL NOT NULL DEFAULT 0.0 CHECK (debt >= 0.0 AND debt <= 1.0),
    updated_turn INTEGER NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    UNIQUE(game_id, from_type, from_id, to_type, to_id)
);
CREATE TABLE IF NOT EXISTS perceived_relationships (
    id TEXT PRIMARY KEY,
    game_id TEXT NOT NULL,
    perceiver_id TEXT NOT NULL,
    target_id TEXT NOT NULL,
    perceived_trust REAL CHECK (perceived_trust IS NULL OR (perceived_trust >= 0.0 AND perceived_trust <= 1.0)),
    perceived_respect REAL CHECK (perceived_respect IS NULL OR (perceived_respect >= 0.0 AND perceived_respect <= 1.0)),
    perceived_affection REAL CHECK (perceived_affection IS NULL OR (perceived_affection >= 0.0 AND perceived_affection <= 1.0)),
    last_updated_turn INTEGER NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    UNIQUE(game_id, perceiver_id, target_id)
);
CREATE TABLE IF NOT EXISTS entity_traits (
    id TEXT PRIMARY KEY,
    game_id TEXT NOT NULL,
    entity_type TEXT NOT NULL CHECK (entity_type IN ('player', 'character', 'npc', 'location')),
    entity_id TEXT NOT NULL,
    trait TEXT NOT NULL,
    acquired_turn INTEGER NOT NULL,
    source_event_id TEXT,
    status TEXT NOT NULL DEFAULT 'active' CHECK (status IN ('active', 'faded', 'removed')),
    created_at TEXT NOT NULL,
    UNIQUE(game_id, entity_type, entity_id, trait)
);
CREATE TABLE IF NOT EXISTS pending_evolutions (
    id TEXT PRIMARY KEY,
    game_id TEXT NOT NULL,
    turn INTEGER NOT NULL,
    evolution_type TEXT NOT NULL CHECK (evolution_type IN ('trait_add', 'trait_remove', 'relationship_change')),
    entity_type TEXT NOT NULL,
    entity_id TEXT NOT NULL,
    trait TEXT,
    target_type TEXT,
    target_id TEXT,
    dimension TEXT CHECK (dimension IS NULL OR dimension IN ('trust', 'respect', 'affection', 'fear', 'resentment', 'debt')),
    old_value REAL CHECK (old_value IS NULL OR (old_value >= 0.0 AND old_value <= 1.0)),
    new_value REAL CHECK (new_value IS NULL OR (new_value >= 0.0 AND new_value <= 1.0)),
    reason TEXT NOT NULL,
    source_event_id TEXT,
    status TEXT NOT NULL DEFAULT 'pending' CHECK (status IN ('pending', 'approved', 'edited', 'refused')),
    dm_notes TEXT,
    created_at TEXT NOT NULL,
    resolved_at TEXT
);
CREATE TABLE IF NOT EXISTS scenes (
    id TEXT PRIMARY KEY,
    game_id TEXT NOT NULL,
    name TEXT,
    description TEXT,
    scene_type TEXT,
    location_id TEXT,
    started_turn INTEGER NOT NULL,
    completed_turn INTEGER,
    status TEXT NOT NULL DEFAULT 'active' CHECK (status IN ('active', 'completed', 'abandoned')),
    mood TEXT,
    stakes TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS scene_availability (
    game_id TEXT NOT NULL,
    scene_id TEXT NOT NULL,
    unlocked_turn INTEGER NOT NULL,
    unlocked_by TEXT,
    created_at TEXT NOT NULL,
    PRIMARY KEY(game_id, scene_id)
);
CREATE TABLE IF NOT EXISTS scene_connections (
    id TEXT PRIMARY KEY,
    game_id TEXT NOT NULL,
    from_scene_id TEXT NOT NULL,
    to_scene_id TEXT NOT NULL,
    requirements_json TEXT,
    connection_type TEXT NOT NULL DEFAULT 'path'
        CHECK (connection_type IN ('path', 'conditional', 'hidden', 'one-way', 'teleport')),
    description TEXT,
    created_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS emergence_notifications (
    id TEXT PRIMARY KEY,
    game_id TEXT NOT NULL,
    emergence_type TEXT NOT NULL CHECK (emergence_type IN ('villain', 'ally')),
    entity_type TEXT NOT NULL,
    entity_id TEXT NOT NULL,
    confidence REAL NOT NULL CHECK (confidence >= 0.0 AND confidence <= 1.0),
    reason TEXT NOT NULL,
    triggering_event_id TEXT NOT NULL,
    contributing_factors_json TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'pending' CHECK (status IN ('pending', 'acknowledged', 'dismissed')),
    dm_notes TEXT,
    created_at TEXT NOT NULL,
    resolved_at TEXT
);
CREATE INDEX IF NOT EXISTS idx_events_game_turn ON events(game_id, turn);
CREATE INDEX IF NOT EXISTS idx_relationships_from ON relationships(game_id, from_type, from_id);
CREATE INDEX IF NOT EXISTS idx_relationships_to ON relationships(game_id, to_type, to_id);
CREATE INDEX IF NOT EXISTS idx_perceived_relationships_perceiver ON perceived_relationships(game_id, perceiver_id);
CREATE INDEX IF NOT EXISTS idx_entity_traits_entity ON entity_traits(game_id, entity_type, entity_id);
CREATE INDEX IF NOT EXISTS idx_pending_evolutions_status ON pending_evolutions(game_id, status);
CREATE INDEX IF NOT EXISTS idx_scenes_game ON scenes(game_id, status);
CREATE INDEX IF NOT EXISTS idx_scene_connections_from ON scene_connections(game_id, from_scene_id);
CREATE INDEX IF NOT EXISTS idx_emergence_notifications_lookup ON emergence_notifications(game_id, entity_id, emergence_type, status);
"""


def init_db(conn: sqlite3.Connection) -> None:
    conn.executescript(SCHEMA_SQL)
    conn.commit()
