from __future__ import annotations

import json

from erp_obras.domain.models import StatusEvent
from erp_obras.infrastructure.repositories.base import BaseRepository


class StatusEventRepository(BaseRepository):
    def append(self, db, event: StatusEvent) -> None:
        db.execute(
            """
            INSERT INTO status_events (workspace_id, entity, entity_id, from_status, to_status, reason, payload)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            self.scoped_params(
                (
                    event.entity,
                    event.entity_id,
                    event.from_status,
                    event.to_status,
                    event.reason,
                    json.dumps(event.payload or {}, ensure_ascii=False, default=str),
                )
            ),
        )

    def list_for(self, db, entity: str, entity_id: str) -> list[dict]:
        rows = db.execute(
            """
            SELECT entity, entity_id, from_status, to_status, reason, payload, occurred_at
            FROM status_events
            WHERE workspace_id = ? AND entity = ? AND entity_id = ?
            ORDER BY id ASC
            """,
            self.scoped_params((entity, entity_id)),
        ).fetchall()
        history = []
        for row in self.rows_to_dicts(rows):
            row["payload"] = json.loads(row.get("payload") or "{}")
            row["occurred_at"] = str(row.get("occurred_at") or "")
            history.append(row)
        return history
