from __future__ import annotations

from datetime import datetime
from typing import Any

from marketplace.domain.values import clean_text, is_strictly_future, parse_optional_float, parse_timestamp, to_iso
from marketplace.errors import (
    INVALID_AMOUNT,
    INVALID_BUDGET_RANGE,
    INVALID_CATEGORY,
    INVALID_PRIORITY,
    TITLE_REQUIRED,
    validation_error,
)
from marketplace.negotiation.flow_policy import REQUEST_CATEGORIES, REQUEST_PRIORITIES


def require_title(value: Any) -> str:
    title = clean_text(value)
    if not title:
        raise validation_error(TITLE_REQUIRED)
    return title


def require_category(value: Any) -> str:
    category = str(value or "").strip().lower()
    if category not in REQUEST_CATEGORIES:
        raise validation_error(INVALID_CATEGORY, allowed=sorted(REQUEST_CATEGORIES))
    return category


def require_priority(value: Any) -> str:
    priority = str(value or "").strip().lower()
    if priority not in REQUEST_PRIORITIES:
        raise validation_error(INVALID_PRIORITY, allowed=sorted(REQUEST_PRIORITIES))
    return priority


def budget_value(value: Any) -> float | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    parsed = parse_optional_float(value)
    if parsed is None or parsed < 0:
        raise validation_error(INVALID_BUDGET_RANGE)
    return parsed


def check_budget_range(budget_min: float | None, budget_max: float | None) -> None:
    if budget_min is not None and budget_max is not None and budget_min > budget_max:
        raise validation_error(INVALID_BUDGET_RANGE, budget_min=budget_min, budget_max=budget_max)


def future_timestamp(value: Any, code: str, *, now: datetime | None = None) -> str | None:
    """Normalize an optional timestamp that must lie strictly in the future."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    parsed = parse_timestamp(value)
    if parsed is None or not is_strictly_future(parsed, now=now):
        raise validation_error(code)
    return to_iso(parsed)


def require_amount(value: Any) -> float:
    amount = parse_optional_float(value)
    if amount is None or amount < 0:
        raise validation_error(INVALID_AMOUNT)
    return amount
