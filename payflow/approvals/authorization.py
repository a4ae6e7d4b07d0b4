"""Who may ask for which action on which request.

Roles are data: an actor is a set of ``RoleGrant`` rows and every decision is
a plain function of those grants, the request's company and its owner. Whether
the action is legal for the request's *current status* is the state machine's
call, so an authorized actor asking for an impossible move gets
``InvalidTransitionError`` instead of ``UnauthorizedError``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Iterable, List

from payflow.domain.contracts import Actor, RoleGrant
from payflow.errors import UnauthorizedError
from payflow.policies import ROLE_PRIORITY


OWNER_ACTIONS: FrozenSet[str] = frozenset({"edit", "resubmit", "delete"})

ROLE_ACTIONS: Dict[str, FrozenSet[str]] = {
    "requester": frozenset({"submit", "edit", "resubmit", "delete"}),
    "manager": frozenset({"approve", "reject"}),
    "finance": frozenset({"approve", "reject", "schedule", "mark_paid"}),
    # admin carries finance's request-transition rights, nothing more.
    "admin": frozenset({"approve", "reject", "schedule", "mark_paid"}),
}

GLOBAL_ROLES: FrozenSet[str] = frozenset({"finance", "admin"})


@dataclass(frozen=True)
class VisibleScope:
    all_companies: bool
    company_ids: FrozenSet[str]

    def covers(self, company_id: str | None) -> bool:
        return self.all_companies or (company_id is not None and company_id in self.company_ids)

    def to_dict(self) -> Dict[str, Any]:
        return {"all_companies": self.all_companies, "company_ids": sorted(self.company_ids)}


def _grant_covers(grant: RoleGrant, company_id: str | None) -> bool:
    if grant.role in GLOBAL_ROLES:
        return True
    if grant.role == "manager":
        # Managers are company scoped; a grant without company gives no scope.
        return grant.company_id is not None and grant.company_id == company_id
    if grant.role == "requester":
        return grant.company_id is None or grant.company_id == company_id
    return False


def acting_roles(actor: Actor, request: Any, action: str) -> List[str]:
    """Roles under which ``actor`` may invoke ``action`` on ``request``.

    ``request`` only needs ``company_id`` and ``requester_id`` attributes.
    Highest-priority role first.
    """
    company_id = getattr(request, "company_id", None)
    owner_id = getattr(request, "requester_id", None)
    roles = set()
    for grant in actor.grants:
        if action not in ROLE_ACTIONS.get(grant.role, ()):
            continue
        if grant.role == "requester" and action in OWNER_ACTIONS:
            if not actor.user_id or owner_id != actor.user_id:
                continue
            roles.add(grant.role)
            continue
        if _grant_covers(grant, company_id):
            roles.add(grant.role)
    return sorted(roles, key=lambda role: ROLE_PRIORITY.get(role, 0), reverse=True)


def can_transition(actor: Actor, request: Any, action: str) -> bool:
    return bool(acting_roles(actor, request, action))


def require_transition(actor: Actor, request: Any, action: str) -> List[str]:
    roles = acting_roles(actor, request, action)
    if roles:
        return roles
    raise UnauthorizedError(
        details=f"user '{actor.user_id}' may not '{action}' request of company '{getattr(request, 'company_id', None)}'",
        payload={"action": action},
    )


def visible_scope(grants: Iterable[RoleGrant]) -> VisibleScope:
    company_ids = set()
    for grant in grants:
        if grant.role in GLOBAL_ROLES:
            return VisibleScope(all_companies=True, company_ids=frozenset())
        if grant.role == "manager" and grant.company_id is not None:
            company_ids.add(grant.company_id)
    return VisibleScope(all_companies=False, company_ids=frozenset(company_ids))


@dataclass(frozen=True)
class _NewRequest:
    company_id: str | None
    requester_id: str | None


def require_submit(actor: Actor, company_id: str | None) -> None:
    """A requester files requests only for companies its grants cover."""
    if acting_roles(actor, _NewRequest(company_id, actor.user_id), "submit"):
        return
    raise UnauthorizedError(
        details=f"user '{actor.user_id}' may not submit requests for company '{company_id}'",
        payload={"action": "submit"},
    )
