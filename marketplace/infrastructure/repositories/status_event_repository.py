from __future__ import annotations

from marketplace.infrastructure.repositories.base import BaseRepository


class StatusEventRepository(BaseRepository):
    def add_event(
        self,
        db,
        *,
        entity: str,
        entity_id: str,
        from_status: str | None,
        to_status: str | None,
        reason: str | None,
        actor_id: str | None = None,
    ) -> None:
        db.execute(
            """
            INSERT INTO status_events (entity, entity_id, from_status, to_status, reason, actor_id)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (entity, entity_id, from_status, to_status, reason, actor_id),
        )

    def list_for_entity(self, db, *, entity: str, entity_id: str, limit: int = 120) -> list[dict]:
        rows = db.execute(
            """
            SELECT id, entity, entity_id, from_status, to_status, reason, actor_id, occurred_at
            FROM status_events
            WHERE entity = ? AND entity_id = ?
            ORDER BY id ASC
            LIMIT ?
            """,
            (entity, entity_id, int(limit)),
        ).fetchall()
        return self.rows_to_dicts(rows)
