from marketplace.infrastructure.repositories.quotation_repository import QuotationRepository
from marketplace.infrastructure.repositories.service_request_repository import ServiceRequestRepository
from marketplace.infrastructure.repositories.status_event_repository import StatusEventRepository

__all__ = [
    "QuotationRepository",
    "ServiceRequestRepository",
    "StatusEventRepository",
]
