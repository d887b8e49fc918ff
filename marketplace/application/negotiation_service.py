from __future__ import annotations

import logging

from marketplace.domain.contracts import QuotationResolveInput, ResolutionOutcome
from marketplace.domain.values import utc_now_iso
from marketplace.errors import (
    ALREADY_RESOLVED,
    INVALID_QUOTATION_STATUS,
    QUOTATION_NOT_FOUND,
    ConflictError,
    conflict_error,
    not_found_error,
    validation_error,
)
from marketplace.infrastructure.repositories import (
    QuotationRepository,
    ServiceRequestRepository,
    StatusEventRepository,
)
from marketplace.negotiation import flow_policy
from marketplace.observability import observe_negotiation_conflict, observe_quotation_resolution


class NegotiationService:
    """Compound writes over a request and its quotation set.

    Each public method runs inside a single ``db.transaction()``. The parent
    request row is locked before any quotation is read for a decision, so two
    concurrent accepts on the same request are serialized and the second one
    observes the first one's ``accepted`` row.
    """

    def __init__(
        self,
        requests: ServiceRequestRepository | None = None,
        quotations: QuotationRepository | None = None,
        status_events: StatusEventRepository | None = None,
    ) -> None:
        self.status_events = status_events or StatusEventRepository()
        self.requests = requests or ServiceRequestRepository(status_events=self.status_events)
        self.quotations = quotations or QuotationRepository(requests=self.requests)
        self._logger = logging.getLogger("marketplace")

    def resolve_quotation(self, db, resolve_input: QuotationResolveInput) -> ResolutionOutcome | None:
        target = str(resolve_input.status or "").strip().lower()
        if target not in flow_policy.QUOTATION_TERMINAL_STATUSES:
            raise validation_error(
                INVALID_QUOTATION_STATUS,
                allowed=sorted(flow_policy.QUOTATION_TERMINAL_STATUSES),
            )

        try:
            if target == "accepted":
                outcome = self._accept(db, resolve_input)
            else:
                outcome = self._close(db, resolve_input, target)
        except ConflictError as exc:
            observe_negotiation_conflict(exc.code)
            self._logger.info(
                "quotation_resolution_conflict",
                extra={"quotation_id": resolve_input.quotation_id, "target_status": target, "error": exc.code},
            )
            raise

        if outcome is not None:
            observe_quotation_resolution(target)
            self._logger.info(
                "quotation_resolved",
                extra={
                    "quotation_id": resolve_input.quotation_id,
                    "service_request_id": outcome.quotation["service_request_id"],
                    "status": target,
                    "rejected_count": len(outcome.rejected_quotation_ids),
                },
            )
        return outcome

    def delete_request(self, db, request_id: str) -> bool:
        try:
            deleted = self.requests.delete(db, request_id)
        except ConflictError as exc:
            observe_negotiation_conflict(exc.code)
            raise
        if deleted:
            self._logger.info("service_request_deleted", extra={"service_request_id": request_id})
        return deleted

    def _load_target(self, db, resolve_input: QuotationResolveInput) -> dict | None:
        quotation = self.quotations.get_by_id(db, resolve_input.quotation_id)
        if not quotation:
            raise not_found_error(QUOTATION_NOT_FOUND, quotation_id=resolve_input.quotation_id)
        expected = resolve_input.expected_request_id
        if expected is not None and quotation["service_request_id"] != expected:
            return None
        return quotation

    def _accept(self, db, resolve_input: QuotationResolveInput) -> ResolutionOutcome | None:
        with db.transaction():
            located = self._load_target(db, resolve_input)
            if located is None:
                return None
            request_id = located["service_request_id"]

            request = self.requests.get_for_update(db, request_id)
            quotation = self.quotations.get_for_update(db, resolve_input.quotation_id)
            if not request or not quotation:
                raise not_found_error(QUOTATION_NOT_FOUND, quotation_id=resolve_input.quotation_id)

            accepted = self.quotations.find_accepted(db, request_id)
            if accepted:
                raise conflict_error(ALREADY_RESOLVED, accepted_quotation_id=accepted["id"])
            if flow_policy.is_quotation_terminal(quotation["status"]):
                raise conflict_error(ALREADY_RESOLVED, status=quotation["status"])
            if not flow_policy.can_accept_quotations(request["status"]):
                raise conflict_error(ALREADY_RESOLVED, request_status=request["status"])

            resolved_at = utc_now_iso()
            rejected_ids = self.quotations.reject_pending_siblings(
                db,
                request_id=request_id,
                keep_id=quotation["id"],
                resolved_at=resolved_at,
            )
            for rejected_id in rejected_ids:
                self.status_events.add_event(
                    db,
                    entity="quotation",
                    entity_id=rejected_id,
                    from_status="pending",
                    to_status="rejected",
                    reason="sibling_quotation_accepted",
                    actor_id=resolve_input.actor_id,
                )

            accepted_row = self.quotations.update_status(db, quotation["id"], "accepted", resolved_at=resolved_at)
            self.status_events.add_event(
                db,
                entity="quotation",
                entity_id=quotation["id"],
                from_status="pending",
                to_status="accepted",
                reason="quotation_accepted",
                actor_id=resolve_input.actor_id,
            )

            self.requests.set_in_progress(
                db,
                request_id,
                supplier_id=quotation["supplier_id"],
                assigned_at=resolved_at,
            )
            self.status_events.add_event(
                db,
                entity="service_request",
                entity_id=request_id,
                from_status=request["status"],
                to_status=flow_policy.ACTIVE_REQUEST_STATUS,
                reason="quotation_accepted",
                actor_id=resolve_input.actor_id,
            )
            service_request = self.requests.get_by_id(db, request_id)

        return ResolutionOutcome(
            quotation=accepted_row,
            service_request=service_request,
            rejected_quotation_ids=tuple(rejected_ids),
        )

    def _close(self, db, resolve_input: QuotationResolveInput, target: str) -> ResolutionOutcome | None:
        with db.transaction():
            located = self._load_target(db, resolve_input)
            if located is None:
                return None
            quotation = self.quotations.get_for_update(db, located["id"])
            if flow_policy.is_quotation_terminal(quotation["status"]):
                raise conflict_error(ALREADY_RESOLVED, status=quotation["status"])

            updated = self.quotations.update_status(db, quotation["id"], target)
            self.status_events.add_event(
                db,
                entity="quotation",
                entity_id=quotation["id"],
                from_status="pending",
                to_status=target,
                reason=f"quotation_{target}",
                actor_id=resolve_input.actor_id,
            )
        return ResolutionOutcome(quotation=updated)
