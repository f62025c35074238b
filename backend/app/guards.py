"""Route and role guards that enact resolver decisions in Flask views."""
from __future__ import annotations

from functools import wraps
from http import HTTPStatus
from typing import Any, Callable
from urllib.parse import urlsplit

from flask import current_app, g, jsonify, redirect, render_template, request

from backend.app.services.session_service import build_snapshot, current_user
from workflow.roles import Role, has_any_role
from workflow.routing import RoutingDecision, SessionSnapshot, resolve_route

SnapshotProvider = Callable[[], SessionSnapshot]


def default_snapshot() -> SessionSnapshot:
    return build_snapshot(current_user())


def _request_location() -> str:
    query = request.query_string.decode("utf-8")
    return f"{request.path}?{query}" if query else request.path


def _points_at(location: str, target: str) -> bool:
    here, there = urlsplit(location), urlsplit(target)
    return here.path == there.path and (not there.query or here.query == there.query)


def enact_decision(decision: RoutingDecision, location: str, render: Callable[[], Any]) -> Any:
    """Turn a routing decision into a Flask response.

    A redirect that would land on ``location`` again renders the access-denied
    page instead of looping.
    """

    if not decision.is_terminal:
        return render_template("guard/loading.html", reason=decision.reason), HTTPStatus.ACCEPTED

    if decision.allow_access:
        return render()

    target = decision.redirect_path or "/"
    if _points_at(location, target):
        current_app.logger.warning(
            "Redirect loop avoided for %s: %s", location, decision.reason
        )
        return (
            render_template("guard/forbidden.html", reason=decision.reason),
            HTTPStatus.FORBIDDEN,
        )
    return redirect(target)


def route_guard(
    view: Callable[..., Any] | None = None, *, snapshot_provider: SnapshotProvider | None = None
):
    """Resolve the current location before rendering ``view``.

    The resolved decision is exposed to the view as ``g.routing_decision``.
    """

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            provider = snapshot_provider or current_app.config.get(
                "SNAPSHOT_PROVIDER", default_snapshot
            )
            location = _request_location()
            decision = resolve_route(location, provider())
            g.routing_decision = decision
            return enact_decision(decision, location, lambda: func(*args, **kwargs))

        return wrapper

    if view is not None:
        return decorator(view)
    return decorator


def roles_required(*allowed: Role):
    """Reject API requests whose user holds none of ``allowed`` roles.

    The authenticated user is exposed as ``g.current_user``.
    """

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            user = current_user(optional=False)
            if user is None:
                return jsonify(message="Authentication required."), HTTPStatus.UNAUTHORIZED
            if not has_any_role(user.roles, allowed):
                return (
                    jsonify(message="You do not have permission to perform this action."),
                    HTTPStatus.FORBIDDEN,
                )
            g.current_user = user
            return func(*args, **kwargs)

        return wrapper

    return decorator
