from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from payflow.application import get_request_service
from payflow.approvals import state_machine
from payflow.approvals.history import classify_payment_term, format_duration
from payflow.auth import current_actor
from payflow.db import get_db
from payflow.domain.contracts import ListFilters, PaymentRequestInput, TransitionPayload
from payflow.errors import ValidationError
from payflow.infrastructure.repositories import DirectoryRepository
from payflow.policies import primary_role
from payflow.ui_strings import frontend_bundle as ui_frontend_bundle
from payflow.ui_strings import status_label, success_message


request_bp = Blueprint("requests", __name__)

_DIRECTORY = DirectoryRepository()


def _json_body() -> dict:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError.for_field("body", "validation_error", details="JSON object expected")
    return payload


def _request_payload(payment_request, actor) -> dict:
    item = payment_request.to_dict()
    item["status_label"] = status_label(payment_request.status)
    item["flow"] = state_machine.flow_meta(payment_request.status, primary_role(actor.grants))
    return item


@request_bp.route("/api/meta", methods=["GET"])
def api_meta():
    return jsonify({"ui": ui_frontend_bundle(), "flow": state_machine.frontend_bundle()})


@request_bp.route("/api/directory", methods=["GET"])
def api_directory():
    current_actor()
    db = get_db()
    return jsonify({"companies": _DIRECTORY.list_companies(db), "sectors": _DIRECTORY.list_sectors(db)})


@request_bp.route("/api/requests", methods=["GET", "POST"])
def api_requests():
    actor = current_actor()
    db = get_db()
    service = get_request_service()
    if request.method == "POST":
        created = service.create(db, actor, PaymentRequestInput.from_payload(_json_body()))
        return (
            jsonify({"request": _request_payload(created, actor), "message": success_message("request_created")}),
            201,
        )

    items = service.list_for(db, actor, ListFilters.from_args(request.args.to_dict()))
    return jsonify({"items": [_request_payload(item, actor) for item in items], "total": len(items)})


@request_bp.route("/api/requests/status-counts", methods=["GET"])
def api_status_counts():
    actor = current_actor()
    counts = get_request_service().status_counts(get_db(), actor)
    return jsonify({"counts": counts})


@request_bp.route("/api/requests/<request_id>", methods=["GET", "PUT", "DELETE"])
def api_request_detail(request_id: str):
    actor = current_actor()
    db = get_db()
    service = get_request_service()
    if request.method == "PUT":
        updated = service.edit(db, actor, request_id, PaymentRequestInput.from_payload(_json_body()))
        return jsonify({"request": _request_payload(updated, actor), "message": success_message("request_updated")})
    if request.method == "DELETE":
        service.delete(db, actor, request_id)
        return jsonify({"deleted": request_id, "message": success_message("request_deleted")})

    found = service.get(db, actor, request_id)
    return jsonify({"request": _request_payload(found, actor)})


@request_bp.route("/api/requests/<request_id>/history", methods=["GET"])
def api_request_history(request_id: str):
    actor = current_actor()
    records = get_request_service().history(get_db(), actor, request_id)
    items = []
    for record in records:
        item = record.to_dict()
        item["new_status_label"] = status_label(record.new_status)
        item["time_in_previous_status_label"] = format_duration(record.time_in_previous_status)
        items.append(item)
    days_to_due = records[0].days_to_due if records else None
    return jsonify(
        {
            "items": items,
            "days_to_due": days_to_due,
            "payment_term": classify_payment_term(days_to_due),
        }
    )


@request_bp.route("/api/requests/<request_id>/transitions", methods=["POST"])
def api_request_transition(request_id: str):
    actor = current_actor()
    body = _json_body()
    outcome = get_request_service().transition(
        get_db(),
        actor,
        request_id,
        str(body.get("action") or ""),
        TransitionPayload.from_payload(body),
    )
    payload = outcome.to_dict()
    payload["request"] = _request_payload(outcome.request, actor)
    if outcome.previous_status == state_machine.MANAGER_REJECTED:
        payload["message"] = success_message("request_resubmitted")
    return jsonify(payload)


@request_bp.route("/api/requests/batch-transitions", methods=["POST"])
def api_batch_transitions():
    actor = current_actor()
    body = _json_body()
    ids = body.get("ids")
    if not isinstance(ids, list):
        raise ValidationError.for_field("ids", "ids_required")
    result = get_request_service().batch_transition(
        get_db(),
        actor,
        ids,
        str(body.get("action") or ""),
        TransitionPayload.from_payload(body),
    )
    current_app.logger.info(
        "batch_transition_requested",
        extra={"action": result.action, "size": len(ids), "user_id": actor.user_id},
    )
    payload = result.to_dict()
    payload["message"] = success_message("batch_done")
    return jsonify(payload)
