"""Access policy for service requests and quotations.

Every predicate is a total function of the actor and the target record; none
performs I/O. Role dispatch goes through ``_dispatch`` so that adding a member
to ``Role`` without teaching each predicate about it fails loudly instead of
silently granting or denying access.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Mapping

from marketplace.errors import PermissionError as AppPermissionError
from marketplace.negotiation.flow_policy import INITIAL_REQUEST_STATUS, OPEN_REQUEST_STATUS


class Role(str, enum.Enum):
    ADMIN = "admin"
    CLIENT = "client"
    SUPPLIER = "supplier"
    EMPLOYEE = "employee"


VALID_ROLES = frozenset(role.value for role in Role)


@dataclass(frozen=True)
class Actor:
    id: str
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


def normalize_role(role: str | Role | None) -> Role | None:
    if isinstance(role, Role):
        return role
    normalized = str(role or "").strip().lower()
    if normalized in VALID_ROLES:
        return Role(normalized)
    return None


def _dispatch(actor: Actor, branches: Mapping[Role, Callable[[], bool]]) -> bool:
    missing = set(Role) - set(branches)
    if missing:
        raise NotImplementedError(f"access branch missing for roles: {sorted(r.value for r in missing)}")
    return bool(branches[actor.role]())


def _field(record: Mapping[str, Any] | None, key: str) -> Any:
    if not record:
        return None
    return record.get(key)


def _is_owner(request: Mapping[str, Any], actor: Actor) -> bool:
    return bool(actor.id) and _field(request, "client_id") == actor.id


def _is_assignee(request: Mapping[str, Any], actor: Actor) -> bool:
    if not actor.id:
        return False
    return actor.id in {_field(request, "assigned_supplier_id"), _field(request, "assigned_employee_id")}


def can_view(request: Mapping[str, Any], actor: Actor) -> bool:
    return _dispatch(
        actor,
        {
            Role.ADMIN: lambda: True,
            Role.CLIENT: lambda: _is_owner(request, actor) or _is_assignee(request, actor),
            Role.SUPPLIER: lambda: _is_assignee(request, actor)
            or _is_owner(request, actor)
            or _field(request, "status") == OPEN_REQUEST_STATUS,
            Role.EMPLOYEE: lambda: _is_owner(request, actor) or _is_assignee(request, actor),
        },
    )


def can_mutate(request: Mapping[str, Any], actor: Actor) -> bool:
    return _dispatch(
        actor,
        {
            Role.ADMIN: lambda: True,
            Role.CLIENT: lambda: _is_owner(request, actor),
            Role.SUPPLIER: lambda: False,
            Role.EMPLOYEE: lambda: False,
        },
    )


def can_delete(request: Mapping[str, Any], actor: Actor) -> bool:
    return _dispatch(
        actor,
        {
            Role.ADMIN: lambda: True,
            Role.CLIENT: lambda: _is_owner(request, actor)
            and _field(request, "status") == INITIAL_REQUEST_STATUS,
            Role.SUPPLIER: lambda: False,
            Role.EMPLOYEE: lambda: False,
        },
    )


def can_quote(actor: Actor) -> bool:
    return _dispatch(
        actor,
        {
            Role.ADMIN: lambda: False,
            Role.CLIENT: lambda: False,
            Role.SUPPLIER: lambda: True,
            Role.EMPLOYEE: lambda: False,
        },
    )


def can_resolve_quotation(actor: Actor) -> bool:
    return _dispatch(
        actor,
        {
            Role.ADMIN: lambda: True,
            Role.CLIENT: lambda: True,
            Role.SUPPLIER: lambda: False,
            Role.EMPLOYEE: lambda: False,
        },
    )


def can_view_quotations(request: Mapping[str, Any], actor: Actor, *, has_quoted: bool = False) -> bool:
    # Suppliers pass here but only ever see their own row (see visible_quotations).
    # A supplier keeps access to its own quotation after the request leaves the marketplace.
    return _dispatch(
        actor,
        {
            Role.ADMIN: lambda: True,
            Role.CLIENT: lambda: _is_owner(request, actor),
            Role.SUPPLIER: lambda: has_quoted or can_view(request, actor),
            Role.EMPLOYEE: lambda: False,
        },
    )


def visible_quotations(quotations: Iterable[Mapping[str, Any]], actor: Actor) -> list[dict]:
    rows = [dict(row) for row in quotations]
    if actor.role is Role.SUPPLIER:
        return [row for row in rows if row.get("supplier_id") == actor.id]
    return rows


def list_scope(actor: Actor, requested: Mapping[str, Any]) -> Dict[str, Any]:
    """Implicit listing filters for the actor, merged over the requested ones."""
    scoped = {key: value for key, value in requested.items() if value not in (None, "")}
    if actor.role is Role.ADMIN:
        return scoped
    if actor.role is Role.CLIENT:
        scoped["client_id"] = actor.id
        return scoped
    if actor.role is Role.SUPPLIER:
        if scoped.get("assigned_supplier_id") not in (None, actor.id):
            scoped["assigned_supplier_id"] = actor.id
        if not scoped.get("status") and not scoped.get("assigned_supplier_id"):
            scoped["status"] = OPEN_REQUEST_STATUS
        elif scoped.get("status") != OPEN_REQUEST_STATUS:
            scoped["assigned_supplier_id"] = actor.id
        return scoped
    if actor.role is Role.EMPLOYEE:
        scoped["assigned_employee_id"] = actor.id
        return scoped
    raise NotImplementedError(f"listing scope missing for role: {actor.role}")


def require(allowed: bool) -> None:
    if allowed:
        return
    raise AppPermissionError(
        code="permission_denied",
        message_key="permission_denied",
        http_status=403,
        critical=False,
    )
