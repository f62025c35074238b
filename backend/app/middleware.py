"""Audit logging for onboarding, client lifecycle and login actions."""
from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from typing import Any

from flask import Flask, Response, current_app, g, request
from sqlalchemy.exc import SQLAlchemyError

from backend.app.models import AuditLog, User
from backend.app.services.session_service import current_user
from backend.extensions import db


@dataclass(slots=True)
class _AuditConfig:
    action: str
    entity_type: str
    # Dotted path into the JSON response body that holds the entity id.
    id_path: str | None = None


@dataclass(slots=True)
class _PendingAudit:
    config: _AuditConfig
    method: str
    path: str
    body: bytes


# Keyed by HTTP method and Flask endpoint so parameterized URLs match too.
SIGNIFICANT_ACTIONS: dict[tuple[str, str], _AuditConfig] = {
    ("POST", "api.login"): _AuditConfig("auth.login", "user"),
    ("POST", "api.onboarding.submit_clinic"): _AuditConfig(
        "onboarding.clinic", "clinic", "clinic_id"
    ),
    ("POST", "api.onboarding.submit_subscription"): _AuditConfig(
        "onboarding.subscription", "subscription", "subscription_id"
    ),
    ("POST", "api.onboarding.submit_payment"): _AuditConfig(
        "onboarding.payment", "payment", "payment_id"
    ),
    ("POST", "api.clients.create_client"): _AuditConfig("client.created", "client", "id"),
    ("POST", "api.clients.change_client_status"): _AuditConfig(
        "client.status_changed", "client_status_transition", "transition.id"
    ),
}

_DESCRIPTIONS: dict[str, str] = {
    "onboarding.clinic": "Clinic {entity_id} created during onboarding.",
    "onboarding.subscription": "Subscription {entity_id} selected during onboarding.",
    "onboarding.payment": "Payment {entity_id} recorded; onboarding complete.",
    "client.created": "Client {entity_id} registered.",
    "client.status_changed": "Client status transition {entity_id} recorded.",
}


def register_audit_middleware(app: Flask) -> None:
    """Attach hooks that write an :class:`AuditLog` row per significant action."""

    @app.before_request
    def _capture_audit_context() -> None:
        method = request.method.upper()
        config = SIGNIFICANT_ACTIONS.get((method, request.endpoint or ""))
        g.pending_audit = (
            _PendingAudit(
                config=config,
                method=method,
                path=_normalize_path(request.path),
                body=request.get_data(cache=True) or b"",
            )
            if config
            else None
        )

    @app.after_request
    def _persist_audit_log(response: Response) -> Response:
        pending: _PendingAudit | None = getattr(g, "pending_audit", None)
        if pending is None or response.status_code >= 400:
            return response

        user = _acting_user(pending)
        entity_id = _entity_id(pending.config, response, user)
        template = _DESCRIPTIONS.get(pending.config.action)

        if pending.config.action == "auth.login" and user is not None:
            description = f"User {user.email} authenticated successfully."
        elif template and entity_id is not None:
            description = template.format(entity_id=entity_id)
        else:
            description = None

        db.session.add(
            AuditLog(
                clinic_id=user.clinic_id if user else None,
                user_id=user.id if user else None,
                entity_type=pending.config.entity_type,
                entity_id=str(entity_id) if entity_id is not None else None,
                action=pending.config.action,
                description=description,
                method=pending.method,
                path=pending.path,
                request_hash=_digest(pending.method, pending.path, body=pending.body),
                response_hash=_digest(str(response.status_code), body=response.get_data() or b""),
            )
        )
        try:
            db.session.commit()
        except SQLAlchemyError:  # pragma: no cover - defensive
            db.session.rollback()
            current_app.logger.exception(
                "Failed to persist audit log entry for %s", pending.config.action
            )

        return response


def _normalize_path(path: str) -> str:
    if path != "/" and path.endswith("/"):
        return path[:-1]
    return path


def _acting_user(pending: _PendingAudit) -> User | None:
    if pending.config.action != "auth.login":
        return current_user()

    # The token issued by a login is not on the request; use the submitted email.
    try:
        payload = json.loads(pending.body.decode("utf-8") or "{}")
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    if not isinstance(payload, dict):
        return None
    email = (payload.get("email") or "").strip().lower()
    return User.query.filter_by(email=email).first() if email else None


def _entity_id(config: _AuditConfig, response: Response, user: User | None) -> Any:
    if config.action == "auth.login":
        return user.id if user else None
    if not config.id_path or not response.is_json:
        return None

    value: Any = response.get_json(silent=True)
    for key in config.id_path.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(key)
    return value


def _digest(*header: str, body: bytes) -> str:
    payload = "".join(f"{part}\n" for part in header).encode("utf-8") + body
    return hashlib.sha256(payload).hexdigest()
