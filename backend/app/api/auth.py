"""Authentication endpoints."""
from __future__ import annotations

from http import HTTPStatus

from flask import jsonify, request
from flask.typing import ResponseReturnValue
from flask_jwt_extended import (
    create_access_token,
    jwt_required,
    set_access_cookies,
    unset_jwt_cookies,
)

from backend.app.models import User, utcnow
from backend.app.services.session_service import build_snapshot, current_user
from backend.extensions import bcrypt, db
from workflow.roles import Role, normalize_roles

from . import api_bp

# Administrators are provisioned internally, never through self-registration.
REGISTRATION_ROLES = frozenset({Role.CLINIC_ADMIN, Role.THERAPIST})


def serialize_user(user: User) -> dict:
    snapshot = build_snapshot(user)
    return {
        "id": user.id,
        "email": user.email,
        "full_name": user.full_name,
        "roles": [getattr(role, "value", role) for role in snapshot.roles],
        "clinic_id": user.clinic_id,
        "has_clinic": snapshot.has_clinic,
        "has_subscription": snapshot.has_subscription,
    }


@api_bp.post("/auth/register")
def register() -> ResponseReturnValue:
    """Register a new clinic admin or therapist account."""

    payload = request.get_json(silent=True) or {}
    email = (payload.get("email") or "").strip().lower()
    password = payload.get("password")
    name = (payload.get("name") or "").strip()
    requested_roles = payload.get("roles") or [Role.CLINIC_ADMIN.value]
    if isinstance(requested_roles, str):
        requested_roles = [requested_roles]
    clinic_id = payload.get("clinic_id")

    if not email or not password or not name:
        return (
            jsonify(message="Email, password, and name are required."),
            HTTPStatus.BAD_REQUEST,
        )

    roles = normalize_roles(requested_roles)
    if not roles or any(role not in REGISTRATION_ROLES for role in roles):
        return (
            jsonify(message="Roles must be ClinicAdmin and/or Therapist."),
            HTTPStatus.BAD_REQUEST,
        )

    if User.query.filter_by(email=email).first():
        return (
            jsonify(message="An account with this email already exists."),
            HTTPStatus.CONFLICT,
        )

    password_hash = bcrypt.generate_password_hash(password).decode("utf-8")
    user = User(
        email=email,
        password_hash=password_hash,
        full_name=name,
        roles=[role.value for role in roles],
        clinic_id=clinic_id,
    )

    db.session.add(user)
    db.session.commit()

    return jsonify(message="Registration successful.", id=user.id), HTTPStatus.CREATED


@api_bp.post("/auth/login")
def login() -> ResponseReturnValue:
    """Authenticate a user, returning a token and setting the JWT cookie."""

    payload = request.get_json(silent=True) or {}
    email = (payload.get("email") or "").strip().lower()
    password = payload.get("password") or ""

    if not email or not password:
        return (
            jsonify(message="Email and password are required."),
            HTTPStatus.BAD_REQUEST,
        )

    user = User.query.filter_by(email=email).first()
    if not user or not user.is_active or not bcrypt.check_password_hash(user.password_hash, password):
        return (
            jsonify(message="Invalid email or password."),
            HTTPStatus.UNAUTHORIZED,
        )

    user.last_login_at = utcnow()
    db.session.add(user)
    db.session.commit()

    access_token = create_access_token(identity=str(user.id))
    response = jsonify(access_token=access_token, user=serialize_user(user))
    set_access_cookies(response, access_token)
    return response, HTTPStatus.OK


@api_bp.post("/auth/logout")
def logout() -> ResponseReturnValue:
    response = jsonify(message="Logged out.")
    unset_jwt_cookies(response)
    return response, HTTPStatus.OK


@api_bp.get("/auth/me")
@jwt_required()
def me() -> ResponseReturnValue:
    """Return the authenticated user's profile with normalized roles."""

    user = current_user(optional=False)
    if user is None:
        return jsonify(message="User not found."), HTTPStatus.NOT_FOUND

    return jsonify(serialize_user(user)), HTTPStatus.OK
