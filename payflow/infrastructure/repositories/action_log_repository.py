from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Dict, List

from payflow.infrastructure.repositories.base import BaseRepository, to_db_timestamp


def _dump(data: Dict[str, Any] | None) -> str | None:
    if data is None:
        return None
    return json.dumps(data, ensure_ascii=False, default=str, sort_keys=True)


class ActionLogRepository(BaseRepository):
    def append(
        self,
        db,
        *,
        action_type: str,
        table_name: str,
        record_id: str | None,
        user_id: str | None,
        created_at: datetime,
        description: str | None = None,
        old_data: Dict[str, Any] | None = None,
        new_data: Dict[str, Any] | None = None,
    ) -> None:
        db.execute(
            """
            INSERT INTO action_logs (
                action_type, table_name, record_id, user_id, description, old_data, new_data, created_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                action_type,
                table_name,
                record_id,
                user_id,
                description,
                _dump(old_data),
                _dump(new_data),
                to_db_timestamp(created_at),
            ),
        )

    def list_for_record(self, db, table_name: str, record_id: str) -> List[dict]:
        rows = db.execute(
            """
            SELECT id, action_type, table_name, record_id, user_id, description, old_data, new_data, created_at
            FROM action_logs
            WHERE table_name = ? AND record_id = ?
            ORDER BY created_at ASC, id ASC
            """,
            (table_name, record_id),
        ).fetchall()
        items = self.rows_to_dicts(rows)
        for item in items:
            for key in ("old_data", "new_data"):
                raw = item.get(key)
                item[key] = json.loads(raw) if raw else None
        return items
