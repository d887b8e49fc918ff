from __future__ import annotations

from typing import Any, Dict, List

from marketplace.application.negotiation_service import NegotiationService
from marketplace.core import (
    EventBus,
    QuotationResolved,
    QuotationSubmitted,
    ServiceRequestCreated,
    get_event_bus,
)
from marketplace.domain.contracts import (
    QuotationCreateInput,
    QuotationResolveInput,
    ServiceRequestCreateInput,
    ServiceRequestFilters,
    ServiceRequestPatch,
)
from marketplace.infrastructure.pagination import page_request


class RequestService:
    """Application facade over the request store, the quotation ledger and the coordinator.

    Events are published only after the corresponding write has committed.
    """

    def __init__(
        self,
        negotiation: NegotiationService | None = None,
        event_bus: EventBus | None = None,
        *,
        default_limit: int = 10,
        max_limit: int = 100,
    ) -> None:
        self.negotiation = negotiation or NegotiationService()
        self.requests = self.negotiation.requests
        self.quotations = self.negotiation.quotations
        self.status_events = self.negotiation.status_events
        self.event_bus = event_bus or get_event_bus()
        self.default_limit = default_limit
        self.max_limit = max_limit

    def _publish(self, event) -> None:
        self.event_bus.publish(event)

    def create_request(self, db, *, client_id: str, create_input: ServiceRequestCreateInput) -> dict:
        record = self.requests.create(db, client_id=client_id, data=create_input)
        self._publish(
            ServiceRequestCreated(
                service_request_id=record["id"],
                client_id=client_id,
                status=record["status"],
                title=record.get("title") or "",
            )
        )
        return record

    def get_request(self, db, request_id: str) -> dict | None:
        return self.requests.get_by_id(db, request_id)

    def list_requests(self, db, filters: ServiceRequestFilters) -> Dict[str, Any]:
        page = page_request(
            filters.page,
            filters.limit,
            default_limit=self.default_limit,
            max_limit=self.max_limit,
        )
        return self.requests.list(db, filters=filters.predicates(), page=page)

    def update_request(self, db, request_id: str, patch: ServiceRequestPatch) -> dict | None:
        return self.requests.update(db, request_id, patch.fields, actor_id=patch.actor_id)

    def delete_request(self, db, request_id: str) -> bool:
        return self.negotiation.delete_request(db, request_id)

    def create_quotation(
        self,
        db,
        *,
        request_id: str,
        supplier_id: str,
        create_input: QuotationCreateInput,
    ) -> dict | None:
        quotation = self.quotations.create(db, request_id=request_id, supplier_id=supplier_id, data=create_input)
        if quotation is None:
            return None
        owner = self.requests.get_by_id(db, request_id) or {}
        self._publish(
            QuotationSubmitted(
                service_request_id=request_id,
                quotation_id=quotation["id"],
                supplier_id=supplier_id,
                client_id=str(owner.get("client_id") or ""),
            )
        )
        return quotation

    def list_quotations(self, db, request_id: str) -> List[dict]:
        return self.quotations.list_for_request(db, request_id)

    def get_quotation(self, db, quotation_id: str) -> dict | None:
        return self.quotations.get_by_id(db, quotation_id)

    def resolve_quotation(self, db, resolve_input: QuotationResolveInput) -> dict | None:
        outcome = self.negotiation.resolve_quotation(db, resolve_input)
        if outcome is None:
            return None
        quotation = outcome.quotation
        self._publish(
            QuotationResolved(
                service_request_id=quotation["service_request_id"],
                quotation_id=quotation["id"],
                supplier_id=quotation["supplier_id"],
                status=quotation["status"],
                rejected_quotation_ids=outcome.rejected_quotation_ids,
                actor_id=resolve_input.actor_id,
            )
        )
        return quotation

    def status_history(self, db, request_id: str) -> List[dict]:
        return self.status_events.list_for_entity(db, entity="service_request", entity_id=request_id)
