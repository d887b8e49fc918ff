from __future__ import annotations

from typing import Any, Dict, Mapping

from marketplace.domain.contracts import ServiceRequestCreateInput
from marketplace.domain.values import clean_text, new_id, utc_now_iso
from marketplace.errors import (
    HAS_QUOTATIONS,
    INVALID_DEADLINE,
    INVALID_STATUS_TRANSITION,
    NO_FIELDS_TO_UPDATE,
    conflict_error,
    validation_error,
)
from marketplace.infrastructure.pagination import PageRequest, build_filter_clause, page_payload
from marketplace.infrastructure.repositories.base import BaseRepository
from marketplace.infrastructure.repositories.status_event_repository import StatusEventRepository
from marketplace.negotiation import flow_policy
from marketplace.negotiation.validation import (
    budget_value,
    check_budget_range,
    future_timestamp,
    require_category,
    require_priority,
    require_title,
)


FILTER_COLUMNS: Dict[str, str] = {
    "status": "sr.status",
    "category": "sr.category",
    "priority": "sr.priority",
    "client_id": "sr.client_id",
    "assigned_supplier_id": "sr.assigned_supplier_id",
    "assigned_employee_id": "sr.assigned_employee_id",
}

PATCHABLE_FIELDS = (
    "title",
    "description",
    "category",
    "priority",
    "status",
    "budget_min",
    "budget_max",
    "deadline",
    "location",
    "requirements",
    "assigned_employee_id",
)

_DETAIL_SELECT = """
    SELECT sr.*,
        NULLIF(TRIM(COALESCE(uc.first_name, '') || ' ' || COALESCE(uc.last_name, '')), '') AS client_name,
        NULLIF(TRIM(COALESCE(us.first_name, '') || ' ' || COALESCE(us.last_name, '')), '') AS supplier_name,
        NULLIF(TRIM(COALESCE(ue.first_name, '') || ' ' || COALESCE(ue.last_name, '')), '') AS employee_name
    FROM service_requests sr
    LEFT JOIN users uc ON uc.id = sr.client_id
    LEFT JOIN users us ON us.id = sr.assigned_supplier_id
    LEFT JOIN users ue ON ue.id = sr.assigned_employee_id
"""


class ServiceRequestRepository(BaseRepository):
    def __init__(self, status_events: StatusEventRepository | None = None) -> None:
        self.status_events = status_events or StatusEventRepository()

    def create(self, db, *, client_id: str, data: ServiceRequestCreateInput) -> dict:
        title = require_title(data.title)
        category = require_category(data.category)
        priority = require_priority(data.priority)
        budget_min = budget_value(data.budget_min)
        budget_max = budget_value(data.budget_max)
        check_budget_range(budget_min, budget_max)
        deadline = future_timestamp(data.deadline, INVALID_DEADLINE)

        request_id = new_id()
        now = utc_now_iso()
        with db.transaction():
            db.execute(
                """
                INSERT INTO service_requests (
                    id, client_id, title, description, category, priority, status,
                    budget_min, budget_max, deadline, location, requirements, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    request_id,
                    client_id,
                    title,
                    clean_text(data.description),
                    category,
                    priority,
                    flow_policy.INITIAL_REQUEST_STATUS,
                    budget_min,
                    budget_max,
                    deadline,
                    clean_text(data.location),
                    clean_text(data.requirements),
                    now,
                    now,
                ),
            )
            self.status_events.add_event(
                db,
                entity="service_request",
                entity_id=request_id,
                from_status=None,
                to_status=flow_policy.INITIAL_REQUEST_STATUS,
                reason="service_request_created",
                actor_id=client_id,
            )
        return self.get_by_id(db, request_id)

    def get_by_id(self, db, request_id: str) -> dict | None:
        row = db.execute(f"{_DETAIL_SELECT} WHERE sr.id = ?", (request_id,)).fetchone()
        return self.row_to_dict(row)

    def get_for_update(self, db, request_id: str) -> dict | None:
        row = db.execute(
            f"SELECT * FROM service_requests WHERE id = ?{db.for_update()}",
            (request_id,),
        ).fetchone()
        return self.row_to_dict(row)

    def list(self, db, *, filters: Mapping[str, Any], page: PageRequest) -> dict:
        clause = build_filter_clause(filters, FILTER_COLUMNS)
        where = clause.where()
        rows = db.execute(
            f"""
            {_DETAIL_SELECT}
            {where}
            ORDER BY sr.created_at DESC, sr.id DESC
            LIMIT ? OFFSET ?
            """,
            (*clause.params, page.limit, page.offset),
        ).fetchall()
        count_row = db.execute(
            f"SELECT COUNT(*) AS total FROM service_requests sr {where}",
            clause.params,
        ).fetchone()
        total = int(self.scalar(count_row, "total") or 0)
        return page_payload(self.rows_to_dicts(rows), page, total)

    def update(self, db, request_id: str, patch: Mapping[str, Any], *, actor_id: str | None = None) -> dict | None:
        fields = {key: patch[key] for key in PATCHABLE_FIELDS if key in patch}
        if not fields:
            raise validation_error(NO_FIELDS_TO_UPDATE)

        with db.transaction():
            current = self.get_for_update(db, request_id)
            if not current:
                return None

            updates = self._normalize_patch(current, fields)
            previous_status = current["status"]
            next_status = updates.get("status", previous_status)
            if next_status != previous_status:
                updates.update(self._hold_bookkeeping(current, next_status))

            assignments = [f"{column} = ?" for column in updates]
            params = list(updates.values())
            params.extend([utc_now_iso(), request_id])
            db.execute(
                f"""
                UPDATE service_requests
                SET {", ".join(assignments)}, updated_at = ?
                WHERE id = ?
                """,
                tuple(params),
            )
            if next_status != previous_status:
                self.status_events.add_event(
                    db,
                    entity="service_request",
                    entity_id=request_id,
                    from_status=previous_status,
                    to_status=next_status,
                    reason="service_request_updated",
                    actor_id=actor_id,
                )
        return self.get_by_id(db, request_id)

    def delete(self, db, request_id: str) -> bool:
        with db.transaction():
            if not self.get_for_update(db, request_id):
                return False
            count_row = db.execute(
                "SELECT COUNT(*) AS total FROM quotations WHERE service_request_id = ?",
                (request_id,),
            ).fetchone()
            quotation_count = int(self.scalar(count_row, "total") or 0)
            if quotation_count > 0:
                raise conflict_error(HAS_QUOTATIONS, quotation_count=quotation_count)
            cursor = db.execute("DELETE FROM service_requests WHERE id = ?", (request_id,))
            return self.rowcount(cursor) > 0

    def set_in_progress(self, db, request_id: str, *, supplier_id: str, assigned_at: str) -> None:
        db.execute(
            """
            UPDATE service_requests
            SET status = ?, assigned_supplier_id = ?, supplier_assigned_at = ?,
                status_before_hold = NULL, updated_at = ?
            WHERE id = ?
            """,
            (flow_policy.ACTIVE_REQUEST_STATUS, supplier_id, assigned_at, assigned_at, request_id),
        )

    @staticmethod
    def _normalize_patch(current: Mapping[str, Any], fields: Mapping[str, Any]) -> Dict[str, Any]:
        updates: Dict[str, Any] = {}
        for key, value in fields.items():
            if key == "title":
                updates[key] = require_title(value)
            elif key == "category":
                updates[key] = require_category(value)
            elif key == "priority":
                updates[key] = require_priority(value)
            elif key in {"budget_min", "budget_max"}:
                updates[key] = budget_value(value)
            elif key == "deadline":
                updates[key] = future_timestamp(value, INVALID_DEADLINE)
            elif key == "status":
                target = str(value or "").strip()
                if target not in flow_policy.REQUEST_STATUSES or not flow_policy.can_transition(
                    current["status"],
                    target,
                    status_before_hold=current.get("status_before_hold"),
                ):
                    raise validation_error(
                        INVALID_STATUS_TRANSITION,
                        from_status=current["status"],
                        to_status=target,
                        allowed=flow_policy.next_statuses(
                            current["status"],
                            status_before_hold=current.get("status_before_hold"),
                        ),
                    )
                updates[key] = target
            else:
                updates[key] = clean_text(value)

        check_budget_range(
            updates.get("budget_min", current.get("budget_min")),
            updates.get("budget_max", current.get("budget_max")),
        )
        return updates

    @staticmethod
    def _hold_bookkeeping(current: Mapping[str, Any], next_status: str) -> Dict[str, Any]:
        if next_status == flow_policy.HOLD_REQUEST_STATUS:
            return {"status_before_hold": current["status"]}
        return {"status_before_hold": None}
