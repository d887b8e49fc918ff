from __future__ import annotations

from marketplace.db import INTEGRITY_ERRORS
from marketplace.domain.contracts import QuotationCreateInput
from marketplace.domain.values import clean_text, new_id, utc_now_iso
from marketplace.errors import DUPLICATE_QUOTATION, INVALID_VALID_UNTIL, REQUEST_NOT_OPEN, conflict_error
from marketplace.infrastructure.repositories.base import BaseRepository
from marketplace.infrastructure.repositories.service_request_repository import ServiceRequestRepository
from marketplace.negotiation import flow_policy
from marketplace.negotiation.validation import future_timestamp, require_amount


_LIST_SELECT = """
    SELECT q.*,
        NULLIF(TRIM(COALESCE(u.first_name, '') || ' ' || COALESCE(u.last_name, '')), '') AS supplier_name,
        sp.company_name AS supplier_company,
        sp.rating AS supplier_rating
    FROM quotations q
    LEFT JOIN users u ON u.id = q.supplier_id
    LEFT JOIN supplier_profiles sp ON sp.user_id = q.supplier_id
"""


class QuotationRepository(BaseRepository):
    def __init__(self, requests: ServiceRequestRepository | None = None) -> None:
        self.requests = requests or ServiceRequestRepository()

    def create(self, db, *, request_id: str, supplier_id: str, data: QuotationCreateInput) -> dict | None:
        amount = require_amount(data.amount)
        valid_until = future_timestamp(data.valid_until, INVALID_VALID_UNTIL)

        with db.transaction():
            # Locks the parent so a concurrent delete or status change waits for us.
            request = self.requests.get_for_update(db, request_id)
            if not request:
                return None
            if not flow_policy.is_open_for_quotations(request["status"]):
                raise conflict_error(REQUEST_NOT_OPEN, status=request["status"])
            existing = self.find_for_supplier(db, request_id=request_id, supplier_id=supplier_id)
            if existing:
                raise conflict_error(DUPLICATE_QUOTATION, quotation_id=existing["id"])

            quotation_id = new_id()
            now = utc_now_iso()
            try:
                db.execute(
                    """
                    INSERT INTO quotations (
                        id, service_request_id, supplier_id, amount, description,
                        estimated_duration, terms_conditions, status, valid_until, created_at, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, 'pending', ?, ?, ?)
                    """,
                    (
                        quotation_id,
                        request_id,
                        supplier_id,
                        amount,
                        clean_text(data.description),
                        clean_text(data.estimated_duration),
                        clean_text(data.terms_conditions),
                        valid_until,
                        now,
                        now,
                    ),
                )
            except INTEGRITY_ERRORS as exc:
                raise conflict_error(DUPLICATE_QUOTATION) from exc
            self.requests.status_events.add_event(
                db,
                entity="quotation",
                entity_id=quotation_id,
                from_status=None,
                to_status="pending",
                reason="quotation_submitted",
                actor_id=supplier_id,
            )
        return self.get_by_id(db, quotation_id)

    def get_by_id(self, db, quotation_id: str) -> dict | None:
        row = db.execute("SELECT * FROM quotations WHERE id = ?", (quotation_id,)).fetchone()
        return self.row_to_dict(row)

    def get_for_update(self, db, quotation_id: str) -> dict | None:
        row = db.execute(
            f"SELECT * FROM quotations WHERE id = ?{db.for_update()}",
            (quotation_id,),
        ).fetchone()
        return self.row_to_dict(row)

    def find_for_supplier(self, db, *, request_id: str, supplier_id: str) -> dict | None:
        row = db.execute(
            "SELECT * FROM quotations WHERE service_request_id = ? AND supplier_id = ?",
            (request_id, supplier_id),
        ).fetchone()
        return self.row_to_dict(row)

    def find_accepted(self, db, request_id: str) -> dict | None:
        row = db.execute(
            "SELECT * FROM quotations WHERE service_request_id = ? AND status = 'accepted'",
            (request_id,),
        ).fetchone()
        return self.row_to_dict(row)

    def list_for_request(self, db, request_id: str) -> list[dict]:
        rows = db.execute(
            f"""
            {_LIST_SELECT}
            WHERE q.service_request_id = ?
            ORDER BY q.created_at ASC, q.id ASC
            """,
            (request_id,),
        ).fetchall()
        return self.rows_to_dicts(rows)

    def reject_pending_siblings(self, db, *, request_id: str, keep_id: str, resolved_at: str) -> list[str]:
        rows = db.execute(
            """
            SELECT id FROM quotations
            WHERE service_request_id = ? AND id <> ? AND status = 'pending'
            ORDER BY created_at ASC, id ASC
            """,
            (request_id, keep_id),
        ).fetchall()
        rejected_ids = [str(self.scalar(row, "id")) for row in rows]
        if rejected_ids:
            db.execute(
                """
                UPDATE quotations
                SET status = 'rejected', resolved_at = ?, updated_at = ?
                WHERE service_request_id = ? AND id <> ? AND status = 'pending'
                """,
                (resolved_at, resolved_at, request_id, keep_id),
            )
        return rejected_ids

    def update_status(self, db, quotation_id: str, status: str, *, resolved_at: str | None = None) -> dict | None:
        resolved_at = resolved_at or utc_now_iso()
        cursor = db.execute(
            """
            UPDATE quotations
            SET status = ?, resolved_at = ?, updated_at = ?
            WHERE id = ?
            """,
            (status, resolved_at, resolved_at, quotation_id),
        )
        if self.rowcount(cursor) == 0:
            return None
        return self.get_by_id(db, quotation_id)
