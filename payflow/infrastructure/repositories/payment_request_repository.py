from __future__ import annotations

from dataclasses import fields as dataclass_fields
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List

from payflow.approvals.authorization import VisibleScope
from payflow.domain.contracts import ListFilters, PaymentRequest
from payflow.infrastructure.repositories.base import (
    BaseRepository,
    WriteConflict,
    from_cents,
    from_db_date,
    from_db_timestamp,
    to_cents,
    to_db_date,
    to_db_timestamp,
)


_DATE_COLUMNS = {"issue_date", "due_date", "planned_payment_date"}
_TIMESTAMP_COLUMNS = {
    "submitted_at",
    "manager_decided_at",
    "finance_decided_at",
    "created_at",
    "updated_at",
}
_SORT_COLUMNS = {
    "due_date": "due_date",
    "total_amount": "total_amount_cents",
    "created_at": "created_at",
}


def _to_column(name: str, value: Any) -> tuple[str, Any]:
    if name == "total_amount":
        return "total_amount_cents", to_cents(Decimal(value)) if value is not None else None
    if isinstance(value, datetime):
        return name, to_db_timestamp(value)
    if isinstance(value, date):
        return name, to_db_date(value)
    return name, value


def row_to_request(row: Dict[str, Any]) -> PaymentRequest:
    values: Dict[str, Any] = {}
    for item in dataclass_fields(PaymentRequest):
        name = item.name
        if name == "total_amount":
            values[name] = from_cents(row.get("total_amount_cents"))
        elif name in _DATE_COLUMNS:
            values[name] = from_db_date(row.get(name))
        elif name in _TIMESTAMP_COLUMNS:
            values[name] = from_db_timestamp(row.get(name))
        elif name == "version":
            values[name] = int(row.get("version") or 1)
        else:
            values[name] = row.get(name)
    return PaymentRequest(**values)


class PaymentRequestRepository(BaseRepository):
    table = "payment_requests"

    def insert(self, db, request: PaymentRequest) -> None:
        columns = []
        params = []
        for item in dataclass_fields(PaymentRequest):
            column, value = _to_column(item.name, getattr(request, item.name))
            columns.append(column)
            params.append(value)
        placeholders = ", ".join("?" for _ in columns)
        db.execute(
            f"INSERT INTO payment_requests ({', '.join(columns)}) VALUES ({placeholders})",
            tuple(params),
        )

    def get_by_id(self, db, request_id: str) -> PaymentRequest | None:
        row = db.execute(
            """
            SELECT *
            FROM payment_requests
            WHERE id = ?
            LIMIT 1
            """,
            (request_id,),
        ).fetchone()
        return row_to_request(dict(row)) if row else None

    def update_if_version(
        self,
        db,
        request_id: str,
        *,
        expected_version: int,
        changes: Dict[str, Any],
    ) -> int:
        """Write ``changes`` only if the row is still at ``expected_version``.

        Returns the new version. ``version`` itself is managed here and must
        not appear in ``changes``.
        """
        assignments = []
        params: List[Any] = []
        for name, value in changes.items():
            if name in {"id", "version"}:
                continue
            column, db_value = _to_column(name, value)
            assignments.append(f"{column} = ?")
            params.append(db_value)
        assignments.append("version = version + 1")
        params.extend([request_id, int(expected_version)])
        cursor = db.execute(
            f"UPDATE payment_requests SET {', '.join(assignments)} WHERE id = ? AND version = ?",
            tuple(params),
        )
        if self.rowcount(cursor) != 1:
            raise WriteConflict(self.table, request_id, expected_version)
        return int(expected_version) + 1

    def delete_if_version(self, db, request_id: str, *, expected_version: int) -> None:
        cursor = db.execute(
            "DELETE FROM payment_requests WHERE id = ? AND version = ?",
            (request_id, int(expected_version)),
        )
        if self.rowcount(cursor) != 1:
            raise WriteConflict(self.table, request_id, expected_version)

    def _scope_clause(self, scope: VisibleScope, requester_id: str | None) -> tuple[str, List[Any]]:
        if scope.all_companies:
            return "", []
        parts = []
        params: List[Any] = []
        if scope.company_ids:
            marks = ", ".join("?" for _ in scope.company_ids)
            parts.append(f"company_id IN ({marks})")
            params.extend(sorted(scope.company_ids))
        if requester_id:
            parts.append("requester_id = ?")
            params.append(requester_id)
        if not parts:
            return "1 = 0", []
        return "(" + " OR ".join(parts) + ")", params

    def list(
        self,
        db,
        *,
        scope: VisibleScope,
        requester_id: str | None,
        filters: ListFilters,
    ) -> List[PaymentRequest]:
        where, params = self._scope_clause(scope, requester_id)
        clauses = [where] if where else []
        if filters.status:
            clauses.append("status = ?")
            params.append(filters.status)
        if filters.company_id:
            clauses.append("company_id = ?")
            params.append(filters.company_id)
        if filters.search:
            needle = f"%{filters.search.lower()}%"
            clauses.append(
                "(LOWER(supplier_name) LIKE ? OR LOWER(invoice_number) LIKE ? OR LOWER(COALESCE(requester_name, '')) LIKE ?)"
            )
            params.extend([needle, needle, needle])
        order_column = _SORT_COLUMNS.get(filters.sort_by, "due_date")
        direction = "DESC" if filters.sort_order == "desc" else "ASC"
        sql = "SELECT * FROM payment_requests"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += f" ORDER BY {order_column} {direction}, id ASC LIMIT ?"
        params.append(int(filters.limit))
        rows = db.execute(sql, tuple(params)).fetchall()
        return [row_to_request(item) for item in self.rows_to_dicts(rows)]

    def count_by_status(self, db, *, scope: VisibleScope, requester_id: str | None) -> Dict[str, int]:
        where, params = self._scope_clause(scope, requester_id)
        sql = "SELECT status, COUNT(*) AS total FROM payment_requests"
        if where:
            sql += f" WHERE {where}"
        sql += " GROUP BY status"
        rows = db.execute(sql, tuple(params)).fetchall()
        return {str(row["status"]): int(row["total"]) for row in rows}


__all__ = ["PaymentRequestRepository", "WriteConflict", "row_to_request"]
