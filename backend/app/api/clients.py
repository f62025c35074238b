"""Client records and lifecycle status endpoints."""
from __future__ import annotations

from http import HTTPStatus
from typing import Any

from flask import Blueprint, g, jsonify, request
from flask.typing import ResponseReturnValue
from flask_jwt_extended import jwt_required

from backend.app.guards import roles_required
from backend.app.models import Client
from backend.app.services.client_status_service import tracker_for, transition_client
from backend.extensions import db
from workflow.client_status import ClientStatus, InvalidClientStatusError
from workflow.roles import Role

clients_bp = Blueprint("clients", __name__)

_CLINIC_ROLES = (Role.CLINIC_ADMIN, Role.THERAPIST)


def _clinic_client(client_id: int) -> Client | None:
    user = g.current_user
    if user.clinic_id is None:
        return None
    return Client.query.filter_by(id=client_id, clinic_id=user.clinic_id).first()


def _status_payload(client: Client) -> dict[str, Any]:
    tracker = tracker_for(client)
    key = str(client.id)
    current = tracker.current_status(key)
    return {
        "client_id": client.id,
        "current_status": current.value if current else None,
        "available_transitions": [status.value for status in tracker.available_transitions(key)],
        "history": [record.to_dict() for record in tracker.history(key)],
    }


@clients_bp.post("")
@jwt_required()
@roles_required(*_CLINIC_ROLES)
def create_client() -> ResponseReturnValue:
    """Create a client and seed its history with the initial status."""

    user = g.current_user
    if user.clinic_id is None:
        return jsonify(message="User is not associated with a clinic."), HTTPStatus.BAD_REQUEST

    payload = request.get_json(silent=True) or {}
    full_name = (payload.get("full_name") or "").strip()
    if not full_name:
        return jsonify(message="full_name is required."), HTTPStatus.BAD_REQUEST

    client = Client(
        clinic_id=user.clinic_id,
        full_name=full_name,
        email=(payload.get("email") or "").strip().lower() or None,
        phone_number=(payload.get("phone_number") or "").strip() or None,
        notes=(payload.get("notes") or "").strip() or None,
    )
    db.session.add(client)
    db.session.flush()

    outcome = transition_client(
        client,
        from_status=None,
        to_status=ClientStatus.NEW,
        acting_user_id=user.id,
        reason="Client registered",
    )
    if not outcome.accepted:  # pragma: no cover - null -> new is always valid
        db.session.rollback()
        return jsonify(message=outcome.error), HTTPStatus.UNPROCESSABLE_ENTITY

    return jsonify(id=client.id, status=_status_payload(client)), HTTPStatus.CREATED


@clients_bp.get("/<int:client_id>/status")
@jwt_required()
@roles_required(*_CLINIC_ROLES)
def client_status(client_id: int) -> ResponseReturnValue:
    """Return the client's current status, history and allowed next statuses."""

    client = _clinic_client(client_id)
    if client is None:
        return jsonify(message="Client not found."), HTTPStatus.NOT_FOUND
    return jsonify(_status_payload(client)), HTTPStatus.OK


@clients_bp.post("/<int:client_id>/status")
@jwt_required()
@roles_required(*_CLINIC_ROLES)
def change_client_status(client_id: int) -> ResponseReturnValue:
    """Move the client to a new lifecycle status."""

    client = _clinic_client(client_id)
    if client is None:
        return jsonify(message="Client not found."), HTTPStatus.NOT_FOUND

    payload = request.get_json(silent=True) or {}
    if "to_status" not in payload or "from_status" not in payload:
        return (
            jsonify(message="from_status and to_status are required."),
            HTTPStatus.BAD_REQUEST,
        )

    idempotency_key = request.headers.get("Idempotency-Key") or payload.get("idempotency_key")
    if idempotency_key is not None:
        if isinstance(idempotency_key, bool) or not isinstance(idempotency_key, (str, int)):
            return (
                jsonify(message="idempotency_key must be a string."),
                HTTPStatus.BAD_REQUEST,
            )
        idempotency_key = str(idempotency_key).strip() or None

    try:
        outcome = transition_client(
            client,
            from_status=payload.get("from_status"),
            to_status=payload.get("to_status"),
            acting_user_id=g.current_user.id,
            reason=(payload.get("reason") or "").strip() or None,
            idempotency_key=idempotency_key,
        )
    except InvalidClientStatusError as exc:
        return jsonify(message=str(exc)), HTTPStatus.BAD_REQUEST

    if not outcome.accepted:
        return (
            jsonify(message=outcome.error, status=_status_payload(client)),
            HTTPStatus.UNPROCESSABLE_ENTITY,
        )

    return (
        jsonify(transition=outcome.transition.to_dict(), status=_status_payload(client)),
        HTTPStatus.CREATED if outcome.created else HTTPStatus.OK,
    )
