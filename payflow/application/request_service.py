from __future__ import annotations

import functools
import logging
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List

from payflow.approvals import state_machine
from payflow.approvals.authorization import require_submit, require_transition, visible_scope
from payflow.approvals.history import build_creation_record, build_transition_record, resolve_display_name
from payflow.approvals.validation import EARLY_DUE_DAYS, normalize_request_fields, parse_date, validate_tax_id
from payflow.core.event_bus import EventBus, RequestStatusChanged, get_event_bus
from payflow.db import DATABASE_ERRORS
from payflow.domain.contracts import (
    EDITABLE_FIELDS,
    Actor,
    BatchResult,
    HistoryRecord,
    ListFilters,
    PaymentRequest,
    PaymentRequestInput,
    TransitionOutcome,
    TransitionPayload,
)
from payflow.errors import (
    AppError,
    ConflictError,
    DependencyUnavailableError,
    InvalidTransitionError,
    NotFoundError,
    SystemError,
    ValidationError,
)
from payflow.infrastructure.repositories import (
    ActionLogRepository,
    DirectoryRepository,
    HistoryRepository,
    PaymentRequestRepository,
    WriteConflict,
)
from payflow.observability import bind_request_id, current_request_id, observe_transition, observe_write_conflict


BATCH_APPROVE_COMMENT = "Aprovado em lote"

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _persistence_guard(method):
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except DATABASE_ERRORS as exc:
            self._logger.error(
                "persistence_unavailable",
                extra={"operation": method.__name__, "error": str(exc)},
            )
            raise DependencyUnavailableError(details=f"{method.__name__}: {exc}") from exc

    return wrapper


def _as_input(data: PaymentRequestInput | Dict[str, Any] | None) -> PaymentRequestInput:
    if isinstance(data, PaymentRequestInput):
        return data
    return PaymentRequestInput.from_payload(data)


def _as_payload(payload: TransitionPayload | Dict[str, Any] | None) -> TransitionPayload:
    if isinstance(payload, TransitionPayload):
        return payload
    return TransitionPayload.from_payload(payload)


class RequestService:
    """Every write to a payment request goes through here.

    Methods take the ``db`` handle first, like the repositories. A mutation is
    validate payload, authorize, evaluate the state machine, then one database
    transaction holding the versioned row update and the history append.
    """

    def __init__(
        self,
        *,
        requests: PaymentRequestRepository | None = None,
        history: HistoryRepository | None = None,
        action_logs: ActionLogRepository | None = None,
        directory: DirectoryRepository | None = None,
        event_bus: EventBus | None = None,
        clock: Clock | None = None,
        db_factory: Callable[[], Any] | None = None,
        batch_max_workers: int = 4,
        early_due_days: int = EARLY_DUE_DAYS,
        notifications_enabled: bool = True,
    ) -> None:
        self.requests = requests or PaymentRequestRepository()
        self.history_repository = history or HistoryRepository()
        self.action_logs = action_logs or ActionLogRepository()
        self.directory = directory or DirectoryRepository()
        self.event_bus = event_bus or get_event_bus()
        self.clock = clock or _utc_now
        self.db_factory = db_factory
        self.batch_max_workers = max(1, int(batch_max_workers or 1))
        self.early_due_days = int(early_due_days)
        self.notifications_enabled = bool(notifications_enabled)
        self._logger = logging.getLogger("payflow")

    # -- reads -----------------------------------------------------------

    def _load(self, db, request_id: str) -> PaymentRequest:
        request = self.requests.get_by_id(db, str(request_id or "").strip())
        if request is None:
            raise NotFoundError(details=f"request '{request_id}' not found", payload={"id": request_id})
        return request

    @staticmethod
    def _is_visible(actor: Actor, request: PaymentRequest) -> bool:
        if actor.user_id and request.requester_id == actor.user_id:
            return True
        return visible_scope(actor.grants).covers(request.company_id)

    @_persistence_guard
    def get(self, db, actor: Actor, request_id: str) -> PaymentRequest:
        request = self._load(db, request_id)
        # Out-of-scope requests look missing to the caller.
        if not self._is_visible(actor, request):
            raise NotFoundError(details=f"request '{request_id}' not visible", payload={"id": request_id})
        return request

    @_persistence_guard
    def history(self, db, actor: Actor, request_id: str) -> List[HistoryRecord]:
        request = self.get(db, actor, request_id)
        return self.history_repository.list_for_request(db, request.id)

    @_persistence_guard
    def list_for(self, db, actor: Actor, filters: ListFilters | Dict[str, Any] | None = None) -> List[PaymentRequest]:
        if not isinstance(filters, ListFilters):
            filters = ListFilters.from_args(filters)
        return self.requests.list(
            db,
            scope=visible_scope(actor.grants),
            requester_id=actor.user_id,
            filters=filters,
        )

    @_persistence_guard
    def status_counts(self, db, actor: Actor) -> Dict[str, int]:
        counts = {status: 0 for status in state_machine.STATUSES}
        counts.update(
            self.requests.count_by_status(db, scope=visible_scope(actor.grants), requester_id=actor.user_id)
        )
        counts["total"] = sum(value for key, value in counts.items() if key in state_machine.STATUSES)
        return counts

    # -- helpers ---------------------------------------------------------

    def _display_name(self, db, actor: Actor) -> str:
        return resolve_display_name(actor, lambda user_id: self.directory.display_name(db, user_id))

    def _normalize(self, db, data: PaymentRequestInput, *, submitted_at: datetime) -> Dict[str, Any]:
        fields, problems = normalize_request_fields(
            data,
            submitted_at=submitted_at,
            early_due_days=self.early_due_days,
        )
        if not problems:
            if not self.directory.company_exists(db, fields["company_id"]):
                problems.append(("company_id", "company_not_found"))
            if not self.directory.sector_exists(db, fields["sector_id"]):
                problems.append(("sector_id", "sector_not_found"))
            if fields["cost_center_id"] and not self.directory.cost_center_exists(db, fields["cost_center_id"]):
                problems.append(("cost_center_id", "cost_center_not_found"))
        if problems:
            raise ValidationError.for_fields(problems)
        return fields

    @staticmethod
    def _changed_fields(request: PaymentRequest, fields: Dict[str, Any]) -> Dict[str, Any]:
        return {
            name: value
            for name, value in fields.items()
            if name in EDITABLE_FIELDS and getattr(request, name) != value
        }

    def _with_retry(self, operation: str, request_id: str, attempt: Callable[[], Any]):
        try:
            return attempt()
        except WriteConflict:
            observe_write_conflict(retried=True)
            self._logger.warning(
                "request_write_conflict",
                extra={"operation": operation, "payment_request_id": request_id, "retry": True},
            )
        try:
            return attempt()
        except WriteConflict as exc:
            observe_write_conflict(retried=False)
            self._logger.warning(
                "request_write_conflict",
                extra={"operation": operation, "payment_request_id": request_id, "retry": False},
            )
            raise ConflictError(details=str(exc), payload={"id": request_id}) from exc

    def _notify(self, request_id: str, new_status: str | None, previous_status: str | None, action: str) -> None:
        if not self.notifications_enabled:
            return
        self.event_bus.publish(
            RequestStatusChanged(
                request_id=request_id,
                new_status=new_status,
                previous_status=previous_status,
                action=action,
            )
        )

    # -- writes ----------------------------------------------------------

    @_persistence_guard
    def create(self, db, actor: Actor, data: PaymentRequestInput | Dict[str, Any]) -> PaymentRequest:
        now = self.clock()
        fields = self._normalize(db, _as_input(data), submitted_at=now)
        require_submit(actor, fields["company_id"])

        actor_name = self._display_name(db, actor)
        fields["requester_name"] = fields.get("requester_name") or actor_name
        request = PaymentRequest(
            id=uuid.uuid4().hex,
            requester_id=actor.user_id,
            status=state_machine.INITIAL_STATUS,
            submitted_at=now,
            created_at=now,
            updated_at=now,
            version=1,
            **fields,
        )
        record = build_creation_record(request, actor_id=actor.user_id, actor_name=actor_name, now=now)
        with db.transaction():
            self.requests.insert(db, request)
            self.history_repository.append(db, record)

        observe_transition("submit", "applied")
        self._logger.info(
            "request_transition_applied",
            extra={
                "payment_request_id": request.id,
                "action": "submit",
                "previous_status": None,
                "new_status": request.status,
                "user_id": actor.user_id,
            },
        )
        self._notify(request.id, request.status, None, "submit")
        return request

    @_persistence_guard
    def edit(self, db, actor: Actor, request_id: str, changes: PaymentRequestInput | Dict[str, Any]) -> PaymentRequest:
        changes = _as_input(changes)
        if not changes.provided():
            raise ValidationError.for_field("changes", "no_changes")

        def attempt() -> PaymentRequest:
            request = self._load(db, request_id)
            roles = require_transition(actor, request, "edit")
            if request.status not in state_machine.OWNER_EDITABLE_STATUSES:
                raise InvalidTransitionError.build(
                    status=request.status, action="edit", role=roles[0], reason="status_not_editable"
                )
            merged = changes.merged_over(PaymentRequestInput.from_request(request))
            fields = self._normalize(db, merged, submitted_at=request.submitted_at)
            diff = self._changed_fields(request, fields)
            if not diff:
                raise ValidationError.for_field("changes", "no_changes")
            if "company_id" in diff:
                require_submit(actor, diff["company_id"])

            now = self.clock()
            with db.transaction():
                version = self.requests.update_if_version(
                    db, request.id, expected_version=request.version, changes={**diff, "updated_at": now}
                )
                self.action_logs.append(
                    db,
                    action_type="update",
                    table_name="payment_requests",
                    record_id=request.id,
                    user_id=actor.user_id,
                    created_at=now,
                    description="request_edited",
                    old_data={name: getattr(request, name) for name in diff},
                    new_data=diff,
                )
            return replace(request, **diff, updated_at=now, version=version)

        updated = self._with_retry("edit", str(request_id), attempt)
        self._logger.info(
            "request_edited",
            extra={"payment_request_id": updated.id, "user_id": actor.user_id, "version": updated.version},
        )
        return updated

    @_persistence_guard
    def delete(self, db, actor: Actor, request_id: str) -> None:
        def attempt() -> PaymentRequest:
            request = self._load(db, request_id)
            roles = require_transition(actor, request, "delete")
            if request.status not in state_machine.OWNER_EDITABLE_STATUSES:
                raise InvalidTransitionError.build(
                    status=request.status, action="delete", role=roles[0], reason="status_not_deletable"
                )
            with db.transaction():
                self.requests.delete_if_version(db, request.id, expected_version=request.version)
                self.action_logs.append(
                    db,
                    action_type="delete",
                    table_name="payment_requests",
                    record_id=request.id,
                    user_id=actor.user_id,
                    created_at=self.clock(),
                    description="request_deleted",
                    old_data=request.to_dict(),
                )
            return request

        deleted = self._with_retry("delete", str(request_id), attempt)
        self._logger.info("request_deleted", extra={"payment_request_id": deleted.id, "user_id": actor.user_id})
        self._notify(deleted.id, None, deleted.status, "delete")

    @staticmethod
    def _validate_transition_payload(action: str, payload: TransitionPayload) -> None:
        if action not in state_machine.REQUEST_ACTIONS:
            raise ValidationError.for_field("action", "action_invalid", details=f"unknown action '{action}'")
        if state_machine.requires_comment(action) and not payload.comment:
            raise ValidationError.for_field("comment", "comment_required")
        if state_machine.requires_planned_date(action) and parse_date(payload.planned_payment_date) is None:
            raise ValidationError.for_field("planned_payment_date", "planned_payment_date_required")

    def _decide(self, request: PaymentRequest, roles: List[str], action: str, payload: TransitionPayload, now: datetime):
        tax_id_valid = validate_tax_id(request.supplier_tax_id)
        first = None
        for role in roles:
            decision = state_machine.evaluate(
                request.status,
                action,
                role,
                now=now,
                comment=payload.comment,
                planned_payment_date=payload.planned_payment_date,
                tax_id_valid=tax_id_valid,
            )
            if decision.accepted:
                return decision
            first = first or decision
        if first.reason == "comment_required":
            raise ValidationError.for_field("comment", "comment_required")
        if first.reason == "planned_payment_date_required":
            raise ValidationError.for_field("planned_payment_date", "planned_payment_date_required")
        raise InvalidTransitionError.build(
            status=request.status, action=action, role=first.role, reason=first.reason
        )

    def _apply_transition(
        self,
        db,
        actor: Actor,
        request_id: str,
        action: str,
        payload: TransitionPayload,
        first_read: Dict[str, str],
    ) -> TransitionOutcome:
        request = self._load(db, request_id)
        roles = require_transition(actor, request, action)
        # A retry only covers a version bump; a moved status is never re-decided.
        read_status = first_read.setdefault("status", request.status)
        if request.status != read_status:
            raise InvalidTransitionError.build(
                status=request.status, action=action, role=roles[0], reason="status_changed"
            )
        now = self.clock()
        decision = self._decide(request, roles, action, payload, now)

        writes: Dict[str, Any] = dict(decision.writes)
        if action == "resubmit" and payload.changes is not None:
            merged = payload.changes.merged_over(PaymentRequestInput.from_request(request))
            fields = self._normalize(db, merged, submitted_at=now)
            diff = self._changed_fields(request, fields)
            if "company_id" in diff:
                require_submit(actor, diff["company_id"])
            writes.update(diff)
        writes["status"] = decision.next_status
        writes["updated_at"] = now

        record = build_transition_record(
            request_id=request.id,
            previous_status=request.status,
            new_status=decision.next_status,
            actor_id=actor.user_id,
            actor_name=self._display_name(db, actor),
            now=now,
            last_record=self.history_repository.last_for_request(db, request.id),
            comment=payload.comment,
        )
        with db.transaction():
            version = self.requests.update_if_version(
                db, request.id, expected_version=request.version, changes=writes
            )
            self.history_repository.append(db, record)
        return TransitionOutcome(
            request=replace(request, **writes, version=version),
            history=record,
            previous_status=request.status,
            acting_role=decision.role,
        )

    @_persistence_guard
    def transition(
        self,
        db,
        actor: Actor,
        request_id: str,
        action: str,
        payload: TransitionPayload | Dict[str, Any] | None = None,
    ) -> TransitionOutcome:
        action = str(action or "").strip()
        payload = _as_payload(payload)
        try:
            self._validate_transition_payload(action, payload)
            first_read: Dict[str, str] = {}
            outcome = self._with_retry(
                action,
                str(request_id),
                lambda: self._apply_transition(db, actor, request_id, action, payload, first_read),
            )
        except AppError as exc:
            observe_transition(action or "unknown", exc.code)
            self._logger.info(
                "request_transition_rejected",
                extra={
                    "payment_request_id": request_id,
                    "action": action,
                    "user_id": actor.user_id,
                    "error": exc.code,
                    "reason": exc.payload.get("reason"),
                },
            )
            raise

        observe_transition(action, "applied")
        self._logger.info(
            "request_transition_applied",
            extra={
                "payment_request_id": outcome.request.id,
                "action": action,
                "previous_status": outcome.previous_status,
                "new_status": outcome.request.status,
                "role": outcome.acting_role,
                "user_id": actor.user_id,
            },
        )
        self._notify(outcome.request.id, outcome.request.status, outcome.previous_status, action)
        return outcome

    def batch_transition(
        self,
        db,
        actor: Actor,
        request_ids: Iterable[str],
        action: str,
        payload: TransitionPayload | Dict[str, Any] | None = None,
    ) -> BatchResult:
        """Apply one action to many requests, each on its own.

        There is no cross-request atomicity: every id succeeds or fails by
        itself and the result reports the partition.
        """
        ids = list(dict.fromkeys(str(item).strip() for item in request_ids or () if str(item or "").strip()))
        if not ids:
            raise ValidationError.for_field("ids", "ids_required")
        action = str(action or "").strip()
        payload = _as_payload(payload)
        if action == "approve" and not payload.comment:
            payload = replace(payload, comment=BATCH_APPROVE_COMMENT)
        self._validate_transition_payload(action, payload)

        outcomes: Dict[str, str | None] = {}
        if self.db_factory is not None and self.batch_max_workers > 1 and len(ids) > 1:
            log_request_id = current_request_id(default="n/a")
            with ThreadPoolExecutor(max_workers=min(self.batch_max_workers, len(ids))) as pool:
                futures = {
                    request_id: pool.submit(self._worker_item, log_request_id, actor, request_id, action, payload)
                    for request_id in ids
                }
                for request_id, future in futures.items():
                    outcomes[request_id] = future.result()
        else:
            for request_id in ids:
                outcomes[request_id] = self._batch_item(db, actor, request_id, action, payload)

        result = BatchResult(action=action)
        for request_id in ids:
            error_code = outcomes[request_id]
            if error_code is None:
                result.succeeded.append(request_id)
            else:
                result.failed[request_id] = error_code
        self._logger.info(
            "batch_transition_done",
            extra={
                "action": action,
                "user_id": actor.user_id,
                "succeeded": len(result.succeeded),
                "failed": len(result.failed),
            },
        )
        return result

    def _worker_item(self, log_request_id: str, actor: Actor, request_id: str, action: str, payload: TransitionPayload) -> str | None:
        # Pool threads start with an empty context.
        with bind_request_id(log_request_id):
            return self._batch_item(None, actor, request_id, action, payload)

    def _batch_item(self, db, actor: Actor, request_id: str, action: str, payload: TransitionPayload) -> str | None:
        own_connection = db is None
        try:
            if own_connection:
                db = self.db_factory()
            self.transition(db, actor, request_id, action, payload)
            return None
        except AppError as exc:
            return exc.code
        except DATABASE_ERRORS:
            self._logger.exception("batch_item_failed", extra={"payment_request_id": request_id, "action": action})
            return DependencyUnavailableError.default_code
        except Exception:  # noqa: BLE001
            self._logger.exception("batch_item_failed", extra={"payment_request_id": request_id, "action": action})
            return SystemError.default_code
        finally:
            if own_connection and db is not None:
                db.close()
