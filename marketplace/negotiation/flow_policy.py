from __future__ import annotations

from typing import Dict, FrozenSet, List


REQUEST_CATEGORIES: FrozenSet[str] = frozenset(
    {"construction", "maintenance", "consulting", "technology", "legal", "other"}
)
REQUEST_PRIORITIES: FrozenSet[str] = frozenset({"low", "medium", "high", "urgent"})

INITIAL_REQUEST_STATUS = "draft"
OPEN_REQUEST_STATUS = "published"
ACTIVE_REQUEST_STATUS = "in_progress"
HOLD_REQUEST_STATUS = "on_hold"

REQUEST_STATUSES: FrozenSet[str] = frozenset(
    {"draft", "published", "in_progress", "on_hold", "completed", "cancelled"}
)
QUOTATION_STATUSES: FrozenSet[str] = frozenset({"pending", "accepted", "rejected", "expired"})
QUOTATION_TERMINAL_STATUSES: FrozenSet[str] = frozenset({"accepted", "rejected", "expired"})


# Transitions reachable through a plain status patch. "in_progress" is absent
# from every target list: it is entered only when a quotation is accepted.
# "on_hold" resumes to whatever is stored in status_before_hold.
REQUEST_FLOW: Dict[str, Dict[str, object]] = {
    "draft": {
        "next_statuses": ["published", "cancelled"],
        "primary_action": "publish",
    },
    "published": {
        "next_statuses": ["on_hold", "cancelled"],
        "primary_action": "review_quotations",
    },
    "in_progress": {
        "next_statuses": ["on_hold", "completed", "cancelled"],
        "primary_action": "complete",
    },
    "on_hold": {
        "next_statuses": ["cancelled"],
        "primary_action": "resume",
    },
    "completed": {
        "next_statuses": [],
        "primary_action": None,
    },
    "cancelled": {
        "next_statuses": [],
        "primary_action": None,
    },
}

# Request statuses in which a pending quotation may still be accepted.
ACCEPTING_REQUEST_STATUSES: FrozenSet[str] = frozenset({"published", "on_hold"})


def next_statuses(status: str | None, *, status_before_hold: str | None = None) -> List[str]:
    policy = REQUEST_FLOW.get(str(status or ""), {})
    targets = [str(item) for item in (policy.get("next_statuses") or [])]
    if status == HOLD_REQUEST_STATUS and status_before_hold in {OPEN_REQUEST_STATUS, ACTIVE_REQUEST_STATUS}:
        targets.insert(0, str(status_before_hold))
    return targets


def can_transition(current: str | None, target: str | None, *, status_before_hold: str | None = None) -> bool:
    if not current or not target:
        return False
    if current == target:
        return True
    return target in next_statuses(current, status_before_hold=status_before_hold)


def is_terminal(status: str | None) -> bool:
    return str(status or "") in REQUEST_STATUSES and not next_statuses(status)


def is_open_for_quotations(status: str | None) -> bool:
    return status == OPEN_REQUEST_STATUS


def can_accept_quotations(status: str | None) -> bool:
    return str(status or "") in ACCEPTING_REQUEST_STATUSES


def is_quotation_terminal(status: str | None) -> bool:
    return str(status or "") in QUOTATION_TERMINAL_STATUSES


def primary_action(status: str | None) -> str | None:
    action = REQUEST_FLOW.get(str(status or ""), {}).get("primary_action")
    return str(action) if action else None


def flow_meta(status: str | None, *, status_before_hold: str | None = None) -> Dict[str, object]:
    return {
        "status": status,
        "next_statuses": next_statuses(status, status_before_hold=status_before_hold),
        "primary_action": primary_action(status),
        "terminal": is_terminal(status),
    }
