from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Tuple


@dataclass(frozen=True)
class ServiceRequestCreateInput:
    title: str
    description: str | None = None
    category: str = "other"
    priority: str = "medium"
    budget_min: float | None = None
    budget_max: float | None = None
    deadline: str | None = None
    location: str | None = None
    requirements: str | None = None


@dataclass(frozen=True)
class ServiceRequestFilters:
    status: str | None = None
    category: str | None = None
    priority: str | None = None
    client_id: str | None = None
    assigned_supplier_id: str | None = None
    assigned_employee_id: str | None = None
    page: int | None = None
    limit: int | None = None

    def predicates(self) -> Dict[str, Any]:
        values = asdict(self)
        values.pop("page")
        values.pop("limit")
        return {key: value for key, value in values.items() if value not in (None, "")}


@dataclass(frozen=True)
class QuotationCreateInput:
    amount: float | None
    description: str | None = None
    estimated_duration: str | None = None
    terms_conditions: str | None = None
    valid_until: str | None = None


@dataclass(frozen=True)
class QuotationResolveInput:
    quotation_id: str
    status: str
    expected_request_id: str | None = None
    actor_id: str | None = None


@dataclass(frozen=True)
class ServiceRequestPatch:
    """Only keys present in ``fields`` are written."""

    fields: Dict[str, Any] = field(default_factory=dict)
    actor_id: str | None = None


@dataclass(frozen=True)
class ResolutionOutcome:
    quotation: Dict[str, Any]
    service_request: Dict[str, Any] | None = None
    rejected_quotation_ids: Tuple[str, ...] = ()
