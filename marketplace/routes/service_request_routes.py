from __future__ import annotations

from typing import Any, Dict, Mapping

from flask import Blueprint, current_app, jsonify, request

from marketplace.application.request_service import RequestService
from marketplace.auth import current_actor
from marketplace.db import get_db
from marketplace.domain.contracts import (
    QuotationCreateInput,
    QuotationResolveInput,
    ServiceRequestCreateInput,
    ServiceRequestFilters,
    ServiceRequestPatch,
)
from marketplace.domain.values import utc_now_iso
from marketplace.errors import INVALID_FILTER, QUOTATION_NOT_FOUND, not_found_error, validation_error
from marketplace.infrastructure.repositories.service_request_repository import PATCHABLE_FIELDS
from marketplace.messages import status_keys_for_group, success_message
from marketplace.negotiation.flow_policy import REQUEST_CATEGORIES, REQUEST_PRIORITIES, flow_meta
from marketplace import policies


service_request_bp = Blueprint("service_requests", __name__)


ALLOWED_REQUEST_STATUSES = set(status_keys_for_group("service_request"))

# camelCase aliases accepted from older clients.
_FIELD_ALIASES: Dict[str, str] = {
    "budgetMin": "budget_min",
    "budgetMax": "budget_max",
    "assignedEmployeeId": "assigned_employee_id",
    "estimatedDuration": "estimated_duration",
    "termsConditions": "terms_conditions",
    "validUntil": "valid_until",
    "clientId": "client_id",
    "assignedSupplierId": "assigned_supplier_id",
}


def _service() -> RequestService:
    return current_app.extensions["request_service"]


def _ok(key: str, data: Any, status_code: int = 200, **extra: Any):
    payload: Dict[str, Any] = {
        "success": True,
        "data": data,
        "message": success_message(key),
        "timestamp": utc_now_iso(),
    }
    payload.update(extra)
    return jsonify(payload), status_code


def _normalized(source: Mapping[str, Any]) -> Dict[str, Any]:
    normalized: Dict[str, Any] = {}
    for key, value in source.items():
        normalized[_FIELD_ALIASES.get(key, key)] = value
    return normalized


def _json_body() -> Dict[str, Any]:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return {}
    return _normalized(payload)


def _load_request(request_id: str) -> dict:
    record = _service().get_request(get_db(), request_id)
    if not record:
        raise not_found_error("service_request_not_found", service_request_id=request_id)
    return record


def _choice_filter(name: str, value: str | None, allowed) -> str | None:
    value = (value or "").strip() or None
    if value is not None and value not in allowed:
        raise validation_error(INVALID_FILTER, filter=name, allowed=sorted(allowed))
    return value


@service_request_bp.route("/api/service-requests", methods=["GET", "POST"])
def service_requests_api():
    actor = current_actor()
    db = get_db()

    if request.method == "POST":
        policies.require(actor.role in (policies.Role.CLIENT, policies.Role.ADMIN))
        payload = _json_body()
        record = _service().create_request(
            db,
            client_id=actor.id,
            create_input=ServiceRequestCreateInput(
                title=payload.get("title"),
                description=payload.get("description"),
                category=payload.get("category") or "other",
                priority=payload.get("priority") or "medium",
                budget_min=payload.get("budget_min"),
                budget_max=payload.get("budget_max"),
                deadline=payload.get("deadline"),
                location=payload.get("location"),
                requirements=payload.get("requirements"),
            ),
        )
        return _ok("service_request_created", record, 201)

    args = _normalized(request.args)
    requested = {
        "status": _choice_filter("status", args.get("status"), ALLOWED_REQUEST_STATUSES),
        "category": _choice_filter("category", args.get("category"), REQUEST_CATEGORIES),
        "priority": _choice_filter("priority", args.get("priority"), REQUEST_PRIORITIES),
        "client_id": args.get("client_id"),
        "assigned_supplier_id": args.get("assigned_supplier_id"),
    }
    scoped = policies.list_scope(actor, requested)
    filters = ServiceRequestFilters(**scoped, page=args.get("page"), limit=args.get("limit"))
    result = _service().list_requests(db, filters)
    return _ok("service_requests_retrieved", result["data"], pagination=result["pagination"])


@service_request_bp.route("/api/service-requests/<request_id>", methods=["GET", "PATCH", "DELETE"])
def service_request_detail_api(request_id: str):
    actor = current_actor()
    db = get_db()
    record = _load_request(request_id)

    if request.method == "GET":
        policies.require(policies.can_view(record, actor))
        data = dict(record)
        data["flow"] = flow_meta(record["status"], status_before_hold=record.get("status_before_hold"))
        return _ok("service_request_retrieved", data)

    if request.method == "DELETE":
        policies.require(policies.can_delete(record, actor))
        if not _service().delete_request(db, request_id):
            raise not_found_error("service_request_not_found", service_request_id=request_id)
        return _ok("service_request_deleted", {"id": request_id, "deleted": True})

    policies.require(policies.can_mutate(record, actor))
    payload = _json_body()
    fields = {key: payload[key] for key in PATCHABLE_FIELDS if key in payload}
    updated = _service().update_request(db, request_id, ServiceRequestPatch(fields=fields, actor_id=actor.id))
    if updated is None:
        raise not_found_error("service_request_not_found", service_request_id=request_id)
    return _ok("service_request_updated", updated)


@service_request_bp.route("/api/service-requests/<request_id>/history", methods=["GET"])
def service_request_history_api(request_id: str):
    actor = current_actor()
    record = _load_request(request_id)
    policies.require(policies.can_view(record, actor))
    return _ok("status_history_retrieved", _service().status_history(get_db(), request_id))


@service_request_bp.route("/api/service-requests/<request_id>/quotations", methods=["GET", "POST"])
def quotations_api(request_id: str):
    actor = current_actor()
    db = get_db()
    record = _load_request(request_id)

    if request.method == "POST":
        policies.require(policies.can_quote(actor) and policies.can_view(record, actor))
        payload = _json_body()
        quotation = _service().create_quotation(
            db,
            request_id=request_id,
            supplier_id=actor.id,
            create_input=QuotationCreateInput(
                amount=payload.get("amount"),
                description=payload.get("description"),
                estimated_duration=payload.get("estimated_duration"),
                terms_conditions=payload.get("terms_conditions"),
                valid_until=payload.get("valid_until"),
            ),
        )
        if quotation is None:
            raise not_found_error("service_request_not_found", service_request_id=request_id)
        return _ok("quotation_created", quotation, 201)

    rows = _service().list_quotations(db, request_id)
    has_quoted = any(row.get("supplier_id") == actor.id for row in rows)
    policies.require(policies.can_view_quotations(record, actor, has_quoted=has_quoted))
    rows = policies.visible_quotations(rows, actor)
    return _ok("quotations_retrieved", rows)


@service_request_bp.route("/api/service-requests/<request_id>/quotations/<quotation_id>", methods=["PATCH"])
def quotation_resolve_api(request_id: str, quotation_id: str):
    actor = current_actor()
    policies.require(policies.can_resolve_quotation(actor))
    record = _load_request(request_id)
    policies.require(policies.can_mutate(record, actor))
    return _resolve(quotation_id, expected_request_id=request_id, actor=actor)


@service_request_bp.route("/api/quotations/<quotation_id>", methods=["PATCH"])
def quotation_status_api(quotation_id: str):
    actor = current_actor()
    policies.require(policies.can_resolve_quotation(actor))
    quotation = _service().get_quotation(get_db(), quotation_id)
    if not quotation:
        raise not_found_error(QUOTATION_NOT_FOUND, quotation_id=quotation_id)
    record = _load_request(quotation["service_request_id"])
    policies.require(policies.can_mutate(record, actor))
    return _resolve(quotation_id, expected_request_id=None, actor=actor)


def _resolve(quotation_id: str, *, expected_request_id: str | None, actor: policies.Actor):
    payload = _json_body()
    resolved = _service().resolve_quotation(
        get_db(),
        QuotationResolveInput(
            quotation_id=quotation_id,
            status=str(payload.get("status") or ""),
            expected_request_id=expected_request_id,
            actor_id=actor.id,
        ),
    )
    if resolved is None:
        raise not_found_error(QUOTATION_NOT_FOUND, quotation_id=quotation_id)
    return _ok("quotation_status_updated", resolved)
