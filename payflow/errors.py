from __future__ import annotations

from typing import Any, Dict, Iterable

from payflow.ui_strings import error_message


class AppError(Exception):
    default_code = "system_error"
    default_message_key = "unexpected_error"
    default_http_status = 500
    default_critical = True
    retryable = False

    def __init__(
        self,
        code: str | None = None,
        message_key: str | None = None,
        http_status: int | None = None,
        critical: bool | None = None,
        details: str | None = None,
        payload: Dict[str, Any] | None = None,
    ) -> None:
        self.code = (code or self.default_code).strip()
        self.message_key = (message_key or self.default_message_key).strip()
        self.http_status = int(http_status or self.default_http_status)
        self.critical = bool(self.default_critical if critical is None else critical)
        self.details = (details or "").strip() or None
        self.payload = dict(payload or {})
        super().__init__(self.details or self.code)

    def user_message(self) -> str:
        fallback = error_message("unexpected_error", "Nao foi possivel concluir a operacao.")
        return error_message(self.message_key, fallback)

    def to_response_payload(self, request_id: str) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "error": self.code,
            "message": self.user_message(),
            "request_id": request_id,
        }
        if self.payload:
            payload.update(self.payload)
        return payload


class UserActionError(AppError):
    default_code = "action_invalid"
    default_message_key = "action_invalid"
    default_http_status = 400
    default_critical = False


class ValidationError(UserActionError):
    default_code = "validation_error"
    default_message_key = "validation_error"
    default_http_status = 400
    default_critical = False

    @classmethod
    def for_field(cls, field: str, message_key: str, details: str | None = None) -> "ValidationError":
        return cls(
            code=message_key,
            message_key=message_key,
            details=details or f"{field}: {message_key}",
            payload={"field": field},
        )

    @classmethod
    def for_fields(cls, problems: Iterable[tuple[str, str]]) -> "ValidationError":
        problems = list(problems)
        first_field, first_key = problems[0]
        return cls(
            code=first_key,
            message_key=first_key,
            details="; ".join(f"{field}: {key}" for field, key in problems),
            payload={
                "field": first_field,
                "fields": [{"field": field, "error": key} for field, key in problems],
            },
        )


class AuthRequiredError(UserActionError):
    default_code = "auth_required"
    default_message_key = "auth_required"
    default_http_status = 401
    default_critical = False


class UnauthorizedError(UserActionError):
    default_code = "unauthorized"
    default_message_key = "permission_denied"
    default_http_status = 403
    default_critical = False


class NotFoundError(UserActionError):
    default_code = "request_not_found"
    default_message_key = "request_not_found"
    default_http_status = 404
    default_critical = False


class InvalidTransitionError(UserActionError):
    default_code = "invalid_transition"
    default_message_key = "action_not_allowed_for_status"
    default_http_status = 409
    default_critical = False

    @classmethod
    def build(
        cls,
        *,
        status: str | None,
        action: str,
        role: str | None,
        reason: str | None = None,
    ) -> "InvalidTransitionError":
        return cls(
            details=f"action '{action}' not allowed from '{status}' for role '{role}'"
            + (f" ({reason})" if reason else ""),
            payload={"status": status, "action": action, "role": role, "reason": reason},
        )


class ConflictError(AppError):
    default_code = "conflict"
    default_message_key = "concurrent_update"
    default_http_status = 409
    default_critical = False


class DependencyUnavailableError(AppError):
    default_code = "dependency_unavailable"
    default_message_key = "dependency_unavailable"
    default_http_status = 503
    default_critical = False
    retryable = True


class SystemError(AppError):
    default_code = "system_error"
    default_message_key = "unexpected_error"
    default_http_status = 500
    default_critical = True
