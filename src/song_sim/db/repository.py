from __future__ import annotations

import json
from typing import Any

from song_sim.db.connection import DBClient
from song_sim.utils.types import ChronicleEvent

SCHEMA = """
CREATE TABLE IF NOT EXISTS world_snapshots (
    slot TEXT PRIMARY KEY,
    payload TEXT NOT NULL,
    updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
);
CREATE TABLE IF NOT EXISTS chronicle_events (
    id BIGSERIAL PRIMARY KEY,
    slot TEXT NOT NULL,
    turn INTEGER NOT NULL,
    kind TEXT NOT NULL,
    message TEXT NOT NULL,
    subject TEXT,
    verse_id TEXT,
    payload JSONB NOT NULL DEFAULT '{}'::jsonb,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now()
);
CREATE INDEX IF NOT EXISTS chronicle_events_slot_turn ON chronicle_events (slot, turn);
"""


class SnapshotRepository:
    """Postgres-backed snapshot store plus an append-only chronicle log."""

    def __init__(self, db: DBClient) -> None:
        self.db = db

    def ensure_schema(self) -> None:
        with self.db.cursor() as cur:
            cur.execute(SCHEMA)

    def save(self, slot: str, payload: str) -> None:
        with self.db.cursor() as cur:
            cur.execute(
                """
                INSERT INTO world_snapshots (slot, payload)
                VALUES (%s, %s)
                ON CONFLICT (slot)
                DO UPDATE SET
                  payload = EXCLUDED.payload,
                  updated_at = now()
                """,
                (slot, payload),
            )

    def load(self, slot: str) -> str | None:
        with self.db.cursor() as cur:
            cur.execute(
                "SELECT payload FROM world_snapshots WHERE slot = %s",
                (slot,),
            )
            row = cur.fetchone()
        if row is None:
            return None
        return str(row[0])

    def append_events(self, slot: str, events: list[ChronicleEvent]) -> None:
        if not events:
            return
        with self.db.cursor() as cur:
            for event in events:
                cur.execute(
                    """
                    INSERT INTO chronicle_events (
                        slot, turn, kind, message, subject, verse_id, payload
                    )
                    VALUES (%s, %s, %s, %s, %s, %s, %s::jsonb)
                    """,
                    (
                        slot,
                        event.turn,
                        event.kind,
                        event.message,
                        event.subject,
                        event.verse_id,
                        json.dumps(event.as_dict()),
                    ),
                )

    def get_events(self, slot: str) -> list[dict[str, Any]]:
        with self.db.cursor() as cur:
            cur.execute(
                """
                SELECT turn, kind, message, subject, verse_id
                FROM chronicle_events
                WHERE slot = %s
                ORDER BY id
                """,
                (slot,),
            )
            rows = cur.fetchall()

        output: list[dict[str, Any]] = []
        for row in rows:
            output.append(
                {
                    "turn": int(row[0]),
                    "kind": str(row[1]),
                    "message": str(row[2]),
                    "subject": row[3],
                    "verse_id": row[4],
                }
            )
        return output
