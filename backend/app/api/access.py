"""Routing decisions for single-page navigation."""
from __future__ import annotations

from http import HTTPStatus

from flask import Blueprint, jsonify, request, session
from flask.typing import ResponseReturnValue

from backend.app.services.session_service import (
    ACTIVE_ROLE_KEY,
    build_snapshot,
    current_user,
)
from workflow.roles import Role, classify_roles, normalize_role
from workflow.routing import resolve_route

access_bp = Blueprint("access", __name__)


@access_bp.get("/decision")
def routing_decision() -> ResponseReturnValue:
    """Resolve ``?path=`` for the caller, authenticated or not."""

    path = request.args.get("path") or "/"
    user = current_user()
    snapshot = build_snapshot(user)
    decision = resolve_route(path, snapshot)
    profile = classify_roles(snapshot.roles, snapshot.active_role)
    return (
        jsonify(
            path=path,
            decision=decision.to_dict(),
            role_category=profile.category.value if user else None,
        ),
        HTTPStatus.OK,
    )


@access_bp.put("/active-role")
def select_active_role() -> ResponseReturnValue:
    """Pick which of the user's roles drives routing (``null`` clears it)."""

    user = current_user()
    if user is None:
        return jsonify(message="Authentication required."), HTTPStatus.UNAUTHORIZED

    payload = request.get_json(silent=True) or {}
    requested = payload.get("role")
    if requested is None:
        session.pop(ACTIVE_ROLE_KEY, None)
        return jsonify(active_role=None), HTTPStatus.OK

    role = normalize_role(requested)
    if not isinstance(role, Role) or role not in classify_roles(user.roles).roles:
        return jsonify(message="Role is not available for this user."), HTTPStatus.BAD_REQUEST

    session[ACTIVE_ROLE_KEY] = role.value
    return jsonify(active_role=role.value), HTTPStatus.OK
