from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List

from payflow.approvals.validation import parse_date
from payflow.ui_strings import action_label, status_label


SUBMITTED = "submitted"
FINANCE_REVIEW = "finance_review"
APPROVED = "approved"
PAYMENT_SCHEDULED = "payment_scheduled"
PAID = "paid"
MANAGER_REJECTED = "manager_rejected"
FINANCE_REJECTED = "finance_rejected"

INITIAL_STATUS = SUBMITTED
STATUSES = (
    SUBMITTED,
    FINANCE_REVIEW,
    APPROVED,
    PAYMENT_SCHEDULED,
    PAID,
    MANAGER_REJECTED,
    FINANCE_REJECTED,
)
REJECTED_STATUSES = frozenset({MANAGER_REJECTED, FINANCE_REJECTED})
OWNER_EDITABLE_STATUSES = frozenset({SUBMITTED, MANAGER_REJECTED})

TRANSITION_ACTIONS = ("approve", "reject", "schedule", "mark_paid", "resubmit")
REQUEST_ACTIONS = ("submit", "edit", "delete") + TRANSITION_ACTIONS


# status -> action -> rule. "comment" is one of:
#   required  the action needs a non-empty comment, written to comment_field
#   optional  the comment (or None) is written to comment_field
#   keep      comment_field is only overwritten when a comment is given
TRANSITION_TABLE: Dict[str, Dict[str, Dict[str, Any]]] = {
    SUBMITTED: {
        "approve": {
            "to": FINANCE_REVIEW,
            "roles": ["manager"],
            "comment": "optional",
            "comment_field": "manager_comment",
            "decided_at_field": "manager_decided_at",
            "requires_valid_tax_id": True,
        },
        "reject": {
            "to": MANAGER_REJECTED,
            "roles": ["manager"],
            "comment": "required",
            "comment_field": "manager_comment",
            "decided_at_field": "manager_decided_at",
        },
    },
    FINANCE_REVIEW: {
        "approve": {
            "to": APPROVED,
            "roles": ["finance", "admin"],
            "comment": "optional",
            "comment_field": "finance_comment",
            "decided_at_field": "finance_decided_at",
        },
        "reject": {
            "to": FINANCE_REJECTED,
            "roles": ["finance", "admin"],
            "comment": "required",
            "comment_field": "finance_comment",
            "decided_at_field": "finance_decided_at",
        },
    },
    APPROVED: {
        "schedule": {
            "to": PAYMENT_SCHEDULED,
            "roles": ["finance", "admin"],
            "requires_planned_date": True,
        },
        "mark_paid": {
            "to": PAID,
            "roles": ["finance", "admin"],
            "comment": "keep",
            "comment_field": "finance_comment",
        },
    },
    PAYMENT_SCHEDULED: {
        "mark_paid": {
            "to": PAID,
            "roles": ["finance", "admin"],
            "comment": "keep",
            "comment_field": "finance_comment",
        },
    },
    MANAGER_REJECTED: {
        "resubmit": {
            "to": SUBMITTED,
            "roles": ["requester"],
            "clears": ["manager_comment", "manager_decided_at"],
        },
    },
}


@dataclass(frozen=True)
class TransitionDecision:
    accepted: bool
    status: str | None
    action: str
    role: str | None
    next_status: str | None = None
    writes: Dict[str, Any] = field(default_factory=dict)
    reason: str | None = None


def transition_rule(status: str | None, action: str) -> Dict[str, Any] | None:
    if not status:
        return None
    return TRANSITION_TABLE.get(str(status), {}).get(str(action or ""))


def evaluate(
    status: str | None,
    action: str,
    role: str | None,
    *,
    now: datetime,
    comment: str | None = None,
    planned_payment_date: Any = None,
    tax_id_valid: bool = True,
) -> TransitionDecision:
    """Decide one transition. Pure: nothing is written here."""

    def _reject(reason: str) -> TransitionDecision:
        return TransitionDecision(accepted=False, status=status, action=action, role=role, reason=reason)

    if status not in STATUSES:
        return _reject("unknown_status")
    rule = transition_rule(status, action)
    if rule is None:
        return _reject("action_not_in_table")
    if role not in rule["roles"]:
        return _reject("role_not_allowed")
    if rule.get("requires_valid_tax_id") and not tax_id_valid:
        return _reject("tax_id_invalid")

    comment = (comment or "").strip() or None
    mode = rule.get("comment")
    if mode == "required" and not comment:
        return _reject("comment_required")

    writes: Dict[str, Any] = {}
    if mode in {"required", "optional"} or (mode == "keep" and comment):
        writes[rule["comment_field"]] = comment
    if rule.get("decided_at_field"):
        writes[rule["decided_at_field"]] = now
    if rule.get("requires_planned_date"):
        planned = parse_date(planned_payment_date)
        if planned is None:
            return _reject("planned_payment_date_required")
        writes["planned_payment_date"] = planned
    for name in rule.get("clears", ()):
        writes[name] = None

    return TransitionDecision(
        accepted=True,
        status=status,
        action=action,
        role=role,
        next_status=rule["to"],
        writes=writes,
    )


def allowed_actions(status: str | None, role: str | None = None) -> List[str]:
    actions = TRANSITION_TABLE.get(str(status or ""), {})
    return [action for action, rule in actions.items() if role is None or role in rule["roles"]]


def is_terminal(status: str | None) -> bool:
    return status in STATUSES and not TRANSITION_TABLE.get(str(status))


def requires_comment(action: str) -> bool:
    return any(rules.get(action, {}).get("comment") == "required" for rules in TRANSITION_TABLE.values())


def requires_planned_date(action: str) -> bool:
    return any(rules.get(action, {}).get("requires_planned_date") for rules in TRANSITION_TABLE.values())


def flow_meta(status: str | None, role: str | None = None) -> Dict[str, object]:
    actions = allowed_actions(status, role)
    return {
        "status": status,
        "label": status_label(status),
        "terminal": is_terminal(status),
        "allowed_actions": actions,
        "action_labels": {action: action_label(action) for action in actions},
    }


def frontend_bundle() -> Dict[str, object]:
    return {
        "initial_status": INITIAL_STATUS,
        "statuses": list(STATUSES),
        "transitions": {
            status: {action: {"to": rule["to"], "roles": list(rule["roles"])} for action, rule in rules.items()}
            for status, rules in TRANSITION_TABLE.items()
        },
    }
