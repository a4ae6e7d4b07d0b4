from __future__ import annotations

from datetime import timedelta
from typing import Any, Dict, List

from payflow.domain.contracts import HistoryRecord
from payflow.infrastructure.repositories.base import BaseRepository, from_db_timestamp, to_db_timestamp


def row_to_record(row: Dict[str, Any]) -> HistoryRecord:
    seconds = row.get("time_in_previous_status_seconds")
    return HistoryRecord(
        id=int(row["id"]) if row.get("id") is not None else None,
        request_id=str(row["request_id"]),
        previous_status=row.get("previous_status"),
        new_status=str(row["new_status"]),
        actor_id=row.get("actor_id"),
        actor_name=str(row.get("actor_name") or ""),
        created_at=from_db_timestamp(row["created_at"]),
        comment=row.get("comment"),
        rejection_reason=row.get("rejection_reason"),
        days_to_due=int(row["days_to_due"]) if row.get("days_to_due") is not None else None,
        time_in_previous_status=timedelta(seconds=float(seconds)) if seconds is not None else None,
    )


class HistoryRepository(BaseRepository):
    """Append-only store of status changes; rows are never updated or deleted."""

    def append(self, db, record: HistoryRecord) -> None:
        elapsed = record.time_in_previous_status
        db.execute(
            """
            INSERT INTO request_history (
                request_id, previous_status, new_status, actor_id, actor_name,
                comment, rejection_reason, days_to_due, time_in_previous_status_seconds, created_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record.request_id,
                record.previous_status,
                record.new_status,
                record.actor_id,
                record.actor_name,
                record.comment,
                record.rejection_reason,
                record.days_to_due,
                elapsed.total_seconds() if elapsed is not None else None,
                to_db_timestamp(record.created_at),
            ),
        )

    def list_for_request(self, db, request_id: str) -> List[HistoryRecord]:
        rows = db.execute(
            """
            SELECT *
            FROM request_history
            WHERE request_id = ?
            ORDER BY created_at ASC, id ASC
            """,
            (request_id,),
        ).fetchall()
        return [row_to_record(item) for item in self.rows_to_dicts(rows)]

    def last_for_request(self, db, request_id: str) -> HistoryRecord | None:
        row = db.execute(
            """
            SELECT *
            FROM request_history
            WHERE request_id = ?
            ORDER BY created_at DESC, id DESC
            LIMIT 1
            """,
            (request_id,),
        ).fetchone()
        return row_to_record(dict(row)) if row else None
