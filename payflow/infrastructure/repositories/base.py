from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Iterable


_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"
_CENTS = Decimal("100")


class WriteConflict(Exception):
    """Raised when a versioned update finds the row at another version."""

    def __init__(self, table: str, record_id: str, expected_version: int) -> None:
        self.table = table
        self.record_id = record_id
        self.expected_version = expected_version
        super().__init__(f"{table} {record_id} is no longer at version {expected_version}")


def to_db_timestamp(value: datetime | None) -> str | None:
    """Fixed-width UTC text, so lexical and chronological order agree."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(_TIMESTAMP_FORMAT)


def from_db_timestamp(value: Any) -> datetime | None:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    raw = str(value).strip()
    try:
        return datetime.strptime(raw, _TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def to_db_date(value: date | None) -> str | None:
    return value.isoformat() if value is not None else None


def from_db_date(value: Any) -> date | None:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def to_cents(amount: Decimal) -> int:
    return int((amount * _CENTS).to_integral_value())


def from_cents(value: Any) -> Decimal:
    return (Decimal(int(value or 0)) / _CENTS).quantize(Decimal("0.01"))


class BaseRepository:
    @staticmethod
    def rows_to_dicts(rows: Iterable[Any]) -> list[dict]:
        return [dict(row) for row in rows]

    @staticmethod
    def rowcount(cursor) -> int:
        count = getattr(cursor, "rowcount", -1)
        return int(count) if count is not None else -1
