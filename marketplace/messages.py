from __future__ import annotations

from typing import Dict, List


STATUS_GROUPS: Dict[str, List[Dict[str, str]]] = {
    "service_request": [
        {"key": "draft", "label": "Draft", "description": "Visible only to the owner; may still be deleted."},
        {"key": "published", "label": "Published", "description": "Open on the marketplace for quotations."},
        {"key": "in_progress", "label": "In progress", "description": "A quotation was accepted and work started."},
        {"key": "on_hold", "label": "On hold", "description": "Paused; resumes to the previous active state."},
        {"key": "completed", "label": "Completed", "description": "Work delivered. Terminal."},
        {"key": "cancelled", "label": "Cancelled", "description": "Closed without completion. Terminal."},
    ],
    "quotation": [
        {"key": "pending", "label": "Pending", "description": "Waiting for the client decision."},
        {"key": "accepted", "label": "Accepted", "description": "Chosen bid for the request."},
        {"key": "rejected", "label": "Rejected", "description": "Declined or superseded by another bid."},
        {"key": "expired", "label": "Expired", "description": "No longer valid."},
    ],
}


MESSAGES: Dict[str, Dict[str, str]] = {
    "error": {
        "unexpected_error": "The operation could not be completed.",
        "action_invalid": "This action is not valid.",
        "validation_error": "The submitted data is invalid.",
        "conflict": "The resource changed; reload and try again.",
        "auth_required": "Authentication required.",
        "permission_denied": "You do not have permission for this action.",
        "service_request_not_found": "Service request not found.",
        "INVALID_BUDGET_RANGE": "Minimum budget cannot exceed the maximum budget.",
        "INVALID_DEADLINE": "The deadline must be in the future.",
        "NO_FIELDS_TO_UPDATE": "No valid fields to update.",
        "INVALID_STATUS_TRANSITION": "The status change is not allowed from the current status.",
        "INVALID_CATEGORY": "Unknown category.",
        "INVALID_PRIORITY": "Unknown priority.",
        "TITLE_REQUIRED": "A title is required.",
        "INVALID_AMOUNT": "The amount must be a non-negative number.",
        "INVALID_VALID_UNTIL": "The validity date must be in the future.",
        "INVALID_QUOTATION_STATUS": "Unknown quotation status.",
        "QUOTATION_NOT_FOUND": "Quotation not found.",
        "ALREADY_RESOLVED": "A quotation for this request has already been resolved.",
        "DUPLICATE_QUOTATION": "The supplier has already submitted a quotation for this request.",
        "HAS_QUOTATIONS": "Cannot delete a service request with existing quotations.",
        "REQUEST_NOT_OPEN": "The service request is not open for quotations.",
        "INVALID_FILTER": "Unknown value for a listing filter.",
    },
    "success": {
        "service_request_created": "Service request created successfully.",
        "service_request_retrieved": "Service request retrieved successfully.",
        "service_requests_retrieved": "Service requests retrieved successfully.",
        "service_request_updated": "Service request updated successfully.",
        "service_request_deleted": "Service request deleted successfully.",
        "status_history_retrieved": "Status history retrieved successfully.",
        "quotation_created": "Quotation created successfully.",
        "quotations_retrieved": "Quotations retrieved successfully.",
        "quotation_status_updated": "Quotation status updated successfully.",
    },
}


def status_keys_for_group(group: str) -> List[str]:
    return [item["key"] for item in STATUS_GROUPS.get(group, [])]


def get_message(category: str, key: str, default: str | None = None) -> str:
    value = MESSAGES.get(category, {}).get(key)
    if value:
        return value
    if default is not None:
        return default
    return key


def error_message(key: str, default: str | None = None) -> str:
    return get_message("error", key, default)


def success_message(key: str, default: str | None = None) -> str:
    return get_message("success", key, default)
