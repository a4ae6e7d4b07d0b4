from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields as dataclass_fields
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Tuple


EDITABLE_FIELDS: Tuple[str, ...] = (
    "company_id",
    "sector_id",
    "cost_center_id",
    "requester_name",
    "supplier_name",
    "supplier_tax_id",
    "invoice_number",
    "issue_date",
    "due_date",
    "description",
    "total_amount",
    "payment_method",
    "bank",
    "branch",
    "account_number",
    "pix_key",
    "holder_name",
    "holder_tax_id",
    "invoice_document_ref",
    "slip_document_ref",
    "early_due_justification",
    "titular_divergence_justification",
)


@dataclass(frozen=True)
class RoleGrant:
    role: str
    company_id: str | None = None


@dataclass(frozen=True)
class Actor:
    user_id: str
    grants: Tuple[RoleGrant, ...] = ()
    display_name: str | None = None


@dataclass(frozen=True)
class PaymentRequest:
    id: str
    company_id: str
    requester_id: str
    sector_id: str
    supplier_name: str
    supplier_tax_id: str
    invoice_number: str
    issue_date: date
    due_date: date
    description: str
    total_amount: Decimal
    status: str
    submitted_at: datetime
    requester_name: str | None = None
    cost_center_id: str | None = None
    payment_method: str | None = None
    bank: str | None = None
    branch: str | None = None
    account_number: str | None = None
    pix_key: str | None = None
    holder_name: str | None = None
    holder_tax_id: str | None = None
    invoice_document_ref: str | None = None
    slip_document_ref: str | None = None
    early_due_justification: str | None = None
    titular_divergence_justification: str | None = None
    manager_comment: str | None = None
    finance_comment: str | None = None
    manager_decided_at: datetime | None = None
    finance_decided_at: datetime | None = None
    planned_payment_date: date | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    version: int = 1

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        for key, value in asdict(self).items():
            if isinstance(value, (datetime, date)):
                payload[key] = value.isoformat()
            elif isinstance(value, Decimal):
                payload[key] = f"{value:.2f}"
            else:
                payload[key] = value
        return payload


@dataclass(frozen=True)
class HistoryRecord:
    request_id: str
    previous_status: str | None
    new_status: str
    actor_id: str | None
    actor_name: str
    created_at: datetime
    comment: str | None = None
    rejection_reason: str | None = None
    days_to_due: int | None = None
    time_in_previous_status: timedelta | None = None
    id: int | None = None

    def to_dict(self) -> Dict[str, Any]:
        elapsed = self.time_in_previous_status
        return {
            "id": self.id,
            "request_id": self.request_id,
            "previous_status": self.previous_status,
            "new_status": self.new_status,
            "actor_id": self.actor_id,
            "actor_name": self.actor_name,
            "comment": self.comment,
            "rejection_reason": self.rejection_reason,
            "days_to_due": self.days_to_due,
            "time_in_previous_status_seconds": elapsed.total_seconds() if elapsed is not None else None,
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class PaymentRequestInput:
    """Raw request fields as received from a form or API payload.

    Values are kept unparsed; ``payflow.approvals.validation`` turns them into
    typed column values and reports problems per field.
    """

    company_id: Any = None
    sector_id: Any = None
    cost_center_id: Any = None
    requester_name: Any = None
    supplier_name: Any = None
    supplier_tax_id: Any = None
    invoice_number: Any = None
    issue_date: Any = None
    due_date: Any = None
    description: Any = None
    total_amount: Any = None
    payment_method: Any = None
    bank: Any = None
    branch: Any = None
    account_number: Any = None
    pix_key: Any = None
    holder_name: Any = None
    holder_tax_id: Any = None
    invoice_document_ref: Any = None
    slip_document_ref: Any = None
    early_due_justification: Any = None
    titular_divergence_justification: Any = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any] | None) -> "PaymentRequestInput":
        data = dict(payload or {})
        known = {item.name for item in dataclass_fields(cls)}
        return cls(**{key: value for key, value in data.items() if key in known})

    @classmethod
    def from_request(cls, request: PaymentRequest) -> "PaymentRequestInput":
        return cls(**{name: getattr(request, name) for name in EDITABLE_FIELDS})

    def provided(self) -> Dict[str, Any]:
        return {name: getattr(self, name) for name in EDITABLE_FIELDS if getattr(self, name) is not None}

    def merged_over(self, base: "PaymentRequestInput") -> "PaymentRequestInput":
        values = {name: getattr(base, name) for name in EDITABLE_FIELDS}
        values.update(self.provided())
        return PaymentRequestInput(**values)


@dataclass(frozen=True)
class TransitionPayload:
    comment: str | None = None
    planned_payment_date: Any = None
    changes: PaymentRequestInput | None = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any] | None) -> "TransitionPayload":
        data = dict(payload or {})
        raw_changes = data.get("changes")
        return cls(
            comment=(str(data.get("comment") or "").strip() or None),
            planned_payment_date=data.get("planned_payment_date"),
            changes=PaymentRequestInput.from_payload(raw_changes) if isinstance(raw_changes, dict) else None,
        )


@dataclass(frozen=True)
class TransitionOutcome:
    request: PaymentRequest
    history: HistoryRecord
    previous_status: str | None
    acting_role: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "request": self.request.to_dict(),
            "history": self.history.to_dict(),
            "previous_status": self.previous_status,
            "acting_role": self.acting_role,
        }


@dataclass
class BatchResult:
    action: str
    succeeded: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action": self.action,
            "succeeded": list(self.succeeded),
            "failed": [{"id": request_id, "error": code} for request_id, code in self.failed.items()],
            "total": len(self.succeeded) + len(self.failed),
        }


@dataclass(frozen=True)
class ListFilters:
    status: str | None = None
    search: str | None = None
    company_id: str | None = None
    sort_by: str = "due_date"
    sort_order: str = "asc"
    limit: int = 200

    @classmethod
    def from_args(cls, args: Dict[str, Any] | None) -> "ListFilters":
        data = dict(args or {})
        status = str(data.get("status") or "").strip()
        sort_by = str(data.get("sort_by") or "due_date").strip()
        sort_order = str(data.get("sort_order") or "asc").strip().lower()
        try:
            limit = int(data.get("limit") or 200)
        except (TypeError, ValueError):
            limit = 200
        return cls(
            status=None if status in {"", "all"} else status,
            search=str(data.get("search") or "").strip() or None,
            company_id=str(data.get("company_id") or "").strip() or None,
            sort_by=sort_by if sort_by in {"due_date", "total_amount", "created_at"} else "due_date",
            sort_order=sort_order if sort_order in {"asc", "desc"} else "asc",
            limit=max(1, min(limit, 500)),
        )
