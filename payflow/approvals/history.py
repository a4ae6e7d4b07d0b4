from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable

from payflow.approvals.state_machine import INITIAL_STATUS, REJECTED_STATUSES
from payflow.approvals.validation import days_until_due
from payflow.domain.contracts import Actor, HistoryRecord, PaymentRequest


_MIN_STEP = timedelta(microseconds=1)


def resolve_display_name(actor: Actor, lookup: Callable[[str], str | None] | None = None) -> str:
    """Name frozen into the history row, so renames never rewrite the past."""
    name = None
    if lookup is not None and actor.user_id:
        name = lookup(actor.user_id)
    name = str(name or actor.display_name or "").strip()
    return name or str(actor.user_id or "sistema")


def _stamp_after(now: datetime, previous: HistoryRecord | None) -> datetime:
    if previous is None or now > previous.created_at:
        return now
    return previous.created_at + _MIN_STEP


def build_creation_record(
    request: PaymentRequest,
    *,
    actor_id: str | None,
    actor_name: str,
    now: datetime,
    comment: str | None = None,
) -> HistoryRecord:
    return HistoryRecord(
        request_id=request.id,
        previous_status=None,
        new_status=INITIAL_STATUS,
        actor_id=actor_id,
        actor_name=actor_name,
        created_at=now,
        comment=comment,
        days_to_due=days_until_due(request.submitted_at, request.due_date),
    )


def build_transition_record(
    *,
    request_id: str,
    previous_status: str,
    new_status: str,
    actor_id: str | None,
    actor_name: str,
    now: datetime,
    last_record: HistoryRecord | None,
    comment: str | None = None,
    rejection_reason: str | None = None,
) -> HistoryRecord:
    created_at = _stamp_after(now, last_record)
    elapsed = created_at - last_record.created_at if last_record is not None else None
    reason = None
    if new_status in REJECTED_STATUSES:
        reason = (rejection_reason or comment or "").strip() or None
    return HistoryRecord(
        request_id=request_id,
        previous_status=previous_status,
        new_status=new_status,
        actor_id=actor_id,
        actor_name=actor_name,
        created_at=created_at,
        comment=comment,
        rejection_reason=reason,
        time_in_previous_status=elapsed,
    )


def classify_payment_term(days: int | None) -> str | None:
    if days is None:
        return None
    if days < 25:
        return "short"
    if days <= 30:
        return "ideal"
    return "comfortable"


def format_duration(value: timedelta | None) -> str:
    if value is None:
        return ""
    total_minutes = int(value.total_seconds() // 60)
    days, rest = divmod(total_minutes, 24 * 60)
    hours, minutes = divmod(rest, 60)
    segments = []
    if days > 0:
        segments.append(f"{days}d")
    if hours > 0:
        segments.append(f"{hours}h")
    if minutes > 0 and days == 0:
        segments.append(f"{minutes}min")
    return " ".join(segments) if segments else "< 1min"
