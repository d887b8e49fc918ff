from __future__ import annotations

from typing import Any, Dict

from marketplace.messages import error_message


class AppError(Exception):
    default_code = "system_error"
    default_message_key = "unexpected_error"
    default_http_status = 500
    default_critical = True

    def __init__(
        self,
        code: str | None = None,
        message_key: str | None = None,
        http_status: int | None = None,
        critical: bool | None = None,
        details: str | None = None,
        payload: Dict[str, Any] | None = None,
    ) -> None:
        self.code = (code or self.default_code).strip()
        self.message_key = (message_key or code or self.default_message_key).strip()
        self.http_status = int(http_status or self.default_http_status)
        self.critical = bool(self.default_critical if critical is None else critical)
        self.details = (details or "").strip() or None
        self.payload = dict(payload or {})
        super().__init__(self.details or self.code)

    def user_message(self) -> str:
        fallback = error_message("unexpected_error", "The operation could not be completed.")
        return error_message(self.message_key, fallback)

    def to_response_payload(self, request_id: str) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "success": False,
            "error": self.code,
            "message": self.user_message(),
            "request_id": request_id,
        }
        if self.payload:
            payload.update(self.payload)
        return payload


class UserActionError(AppError):
    default_code = "action_invalid"
    default_message_key = "action_invalid"
    default_http_status = 400
    default_critical = False


class ValidationError(UserActionError):
    default_code = "validation_error"
    default_message_key = "validation_error"
    default_http_status = 400
    default_critical = False


class ConflictError(UserActionError):
    """Legitimate concurrent-use condition; callers re-fetch state and decide."""

    default_code = "conflict"
    default_message_key = "conflict"
    default_http_status = 409
    default_critical = False


class AuthenticationError(UserActionError):
    default_code = "auth_required"
    default_message_key = "auth_required"
    default_http_status = 401
    default_critical = False


class PermissionError(UserActionError):
    default_code = "permission_denied"
    default_message_key = "permission_denied"
    default_http_status = 403
    default_critical = False


class SystemError(AppError):
    default_code = "system_error"
    default_message_key = "unexpected_error"
    default_http_status = 500
    default_critical = True


INVALID_BUDGET_RANGE = "INVALID_BUDGET_RANGE"
INVALID_DEADLINE = "INVALID_DEADLINE"
NO_FIELDS_TO_UPDATE = "NO_FIELDS_TO_UPDATE"
INVALID_STATUS_TRANSITION = "INVALID_STATUS_TRANSITION"
INVALID_CATEGORY = "INVALID_CATEGORY"
INVALID_PRIORITY = "INVALID_PRIORITY"
TITLE_REQUIRED = "TITLE_REQUIRED"
INVALID_AMOUNT = "INVALID_AMOUNT"
INVALID_VALID_UNTIL = "INVALID_VALID_UNTIL"
INVALID_QUOTATION_STATUS = "INVALID_QUOTATION_STATUS"

QUOTATION_NOT_FOUND = "QUOTATION_NOT_FOUND"
ALREADY_RESOLVED = "ALREADY_RESOLVED"
DUPLICATE_QUOTATION = "DUPLICATE_QUOTATION"
HAS_QUOTATIONS = "HAS_QUOTATIONS"
REQUEST_NOT_OPEN = "REQUEST_NOT_OPEN"
INVALID_FILTER = "INVALID_FILTER"


def validation_error(code: str, **payload: Any) -> ValidationError:
    return ValidationError(code=code, message_key=code, payload=payload or None)


def conflict_error(code: str, **payload: Any) -> ConflictError:
    return ConflictError(code=code, message_key=code, payload=payload or None)


def not_found_error(code: str, **payload: Any) -> UserActionError:
    return UserActionError(code=code, message_key=code, http_status=404, payload=payload or None)
