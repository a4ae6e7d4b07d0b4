from __future__ import annotations

from flask import current_app, g, jsonify, request, session

from payflow.db import get_db
from payflow.domain.contracts import Actor
from payflow.errors import AuthRequiredError
from payflow.infrastructure.repositories import DirectoryRepository
from payflow.observability import ensure_request_id


_DIRECTORY = DirectoryRepository()

_PUBLIC_PATHS = {"/health", "/api/meta"}


def _headers_trusted() -> bool:
    return bool(current_app.testing or current_app.config.get("TRUST_IDENTITY_HEADERS", False))


def current_user_id() -> str | None:
    user_id = str(session.get("user_id") or "").strip()
    if user_id:
        return user_id
    if _headers_trusted():
        return str(request.headers.get("X-User-Id") or "").strip() or None
    return None


def current_actor() -> Actor:
    """The identity provider's view of the caller, loaded once per request."""
    actor = getattr(g, "actor", None)
    if actor is not None:
        return actor
    user_id = current_user_id()
    if not user_id:
        raise AuthRequiredError(details="no user identity on request")
    db = get_db()
    actor = Actor(
        user_id=user_id,
        grants=_DIRECTORY.grants_for(db, user_id),
        display_name=session.get("display_name") or _DIRECTORY.display_name(db, user_id),
    )
    g.actor = actor
    return actor


def register_auth(app) -> None:
    @app.before_request
    def _require_identity():
        if not app.config.get("AUTH_ENABLED", True):
            return None
        path = request.path or "/"
        if path in _PUBLIC_PATHS or not path.startswith("/api/"):
            return None
        if current_user_id():
            return None
        error = AuthRequiredError(details=f"no identity for {path}")
        return jsonify(error.to_response_payload(ensure_request_id())), error.http_status
