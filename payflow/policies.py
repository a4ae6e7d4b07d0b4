from __future__ import annotations

import logging
from typing import Any, Iterable, List, Set, Tuple

from payflow.domain.contracts import RoleGrant


logger = logging.getLogger(__name__)


VALID_ROLES: Set[str] = {"requester", "manager", "finance", "admin"}

ROLE_ALIASES = {
    "solicitante": "requester",
    "gestor": "manager",
    "financeiro": "finance",
    "administrador": "admin",
}

# admin > finance > manager > requester, used only to pick a primary role for display.
ROLE_PRIORITY = {"admin": 4, "finance": 3, "manager": 2, "requester": 1}


def normalize_role(role: str | None, default: str = "") -> str:
    normalized = str(role or "").strip().lower()
    normalized = ROLE_ALIASES.get(normalized, normalized)
    if normalized in VALID_ROLES:
        return normalized
    return default if default in VALID_ROLES else ""


def normalize_company_id(value: Any) -> str | None:
    company_id = str(value or "").strip()
    return company_id or None


def normalize_grants(raw_grants: Iterable[Any], user_id: str | None = None) -> Tuple[RoleGrant, ...]:
    grants: List[RoleGrant] = []
    seen = set()
    for item in raw_grants or ():
        if isinstance(item, RoleGrant):
            role, company_id = item.role, item.company_id
        elif isinstance(item, dict):
            role, company_id = item.get("role"), item.get("company_id")
        else:
            role, company_id = item[0], (item[1] if len(item) > 1 else None)
        grant = RoleGrant(role=normalize_role(role), company_id=normalize_company_id(company_id))
        if not grant.role or grant in seen:
            continue
        if grant.role == "manager" and grant.company_id is None:
            logger.warning("manager_grant_without_company_ignored", extra={"user_id": user_id})
        seen.add(grant)
        grants.append(grant)
    return tuple(grants)


def roles_of(grants: Iterable[RoleGrant]) -> Set[str]:
    return {grant.role for grant in grants}


def primary_role(grants: Iterable[RoleGrant]) -> str | None:
    roles = roles_of(grants)
    if not roles:
        return None
    return max(roles, key=lambda role: ROLE_PRIORITY.get(role, 0))
