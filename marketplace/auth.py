from __future__ import annotations

from flask import current_app, g, request, session

from marketplace.errors import AuthenticationError
from marketplace.policies import Actor, Role, normalize_role


LOCAL_ADMIN_ID = "local-admin"


def register_auth(app) -> None:
    @app.before_request
    def _load_actor():
        g.actor = _resolve_actor()
        if g.actor is not None:
            return None
        if not app.config.get("AUTH_ENABLED", True):
            g.actor = Actor(id=LOCAL_ADMIN_ID, role=Role.ADMIN)
            return None

        path = request.path or "/"
        if path.startswith("/api/"):
            raise AuthenticationError()
        return None


def _resolve_actor() -> Actor | None:
    # Session issued by the login collaborator wins over gateway headers.
    user_id = str(session.get("user_id") or "").strip()
    role = normalize_role(session.get("user_role"))
    if user_id and role is not None:
        return Actor(id=user_id, role=role)

    user_id = str(request.headers.get("X-User-Id") or "").strip()
    role = normalize_role(request.headers.get("X-User-Role"))
    if user_id and role is not None:
        return Actor(id=user_id, role=role)
    return None


def current_actor() -> Actor:
    actor = getattr(g, "actor", None)
    if actor is None:
        current_app.logger.warning("actor_missing", extra={"request_path": request.path})
        raise AuthenticationError()
    return actor
