from __future__ import annotations

from flask import current_app

from payflow.application.request_service import BATCH_APPROVE_COMMENT, RequestService
from payflow.db import connect_database


_EXTENSION_KEY = "payflow.request_service"


def build_request_service(app, **overrides) -> RequestService:
    db_path = app.config["DB_PATH"]
    options = {
        "db_factory": lambda: connect_database(db_path),
        "batch_max_workers": app.config.get("BATCH_MAX_WORKERS", 4),
        "early_due_days": app.config.get("EARLY_DUE_DAYS", 10),
        "notifications_enabled": app.config.get("NOTIFICATIONS_ENABLED", True),
    }
    options.update(overrides)
    service = RequestService(**options)
    app.extensions[_EXTENSION_KEY] = service
    return service


def get_request_service() -> RequestService:
    service = current_app.extensions.get(_EXTENSION_KEY)
    if service is None:
        service = build_request_service(current_app)
    return service


__all__ = ["BATCH_APPROVE_COMMENT", "RequestService", "build_request_service", "get_request_service"]
