"""Clinic onboarding endpoints."""
from __future__ import annotations

from http import HTTPStatus
from typing import Any

from flask import Blueprint, current_app, g, jsonify, request, session
from flask.typing import ResponseReturnValue
from flask_jwt_extended import jwt_required

from backend.app.guards import roles_required
from backend.app.services import onboarding_service
from backend.app.services.session_service import (
    JUST_COMPLETED_KEY,
    onboarding_progress_for,
)
from workflow.onboarding import (
    evaluate_onboarding,
    next_step,
    previous_step,
    progress_percentage,
)
from workflow.roles import Role

onboarding_bp = Blueprint("onboarding", __name__)


def _status_payload() -> dict[str, Any]:
    progress = onboarding_progress_for(g.current_user)
    evaluation = evaluate_onboarding(progress)
    following = next_step(evaluation.current_step)
    preceding = previous_step(evaluation.current_step)
    return {
        **evaluation.to_dict(),
        "progress_percentage": progress_percentage(progress),
        "next_step": following.value if following else None,
        "previous_step": preceding.value if preceding else None,
        "has_clinic": progress.has_clinic,
        "has_subscription": progress.has_subscription,
        "has_payment": progress.has_payment,
    }


def _step_failed(exc: ValueError) -> ResponseReturnValue:
    status = (
        HTTPStatus.CONFLICT
        if isinstance(exc, onboarding_service.OnboardingStepError)
        else HTTPStatus.BAD_REQUEST
    )
    return jsonify(message=str(exc), status=_status_payload()), status


@onboarding_bp.get("/status")
@jwt_required()
@roles_required(Role.CLINIC_ADMIN)
def onboarding_status() -> ResponseReturnValue:
    """Return the current onboarding step for the clinic admin."""

    return jsonify(_status_payload()), HTTPStatus.OK


@onboarding_bp.post("/clinic")
@jwt_required()
@roles_required(Role.CLINIC_ADMIN)
def submit_clinic() -> ResponseReturnValue:
    """Create the clinic record."""

    payload = request.get_json(silent=True) or {}
    try:
        clinic = onboarding_service.submit_clinic(g.current_user, payload)
    except ValueError as exc:
        return _step_failed(exc)

    return (
        jsonify(message="Clinic saved.", clinic_id=clinic.id, status=_status_payload()),
        HTTPStatus.CREATED,
    )


@onboarding_bp.post("/subscription")
@jwt_required()
@roles_required(Role.CLINIC_ADMIN)
def submit_subscription() -> ResponseReturnValue:
    """Select the clinic's subscription tier."""

    payload = request.get_json(silent=True) or {}
    try:
        subscription = onboarding_service.submit_subscription(
            g.current_user,
            payload,
            tiers=current_app.config["SUBSCRIPTION_TIERS"],
            billing_cycles=current_app.config["BILLING_CYCLES"],
            default_currency=current_app.config["DEFAULT_CURRENCY"],
        )
    except ValueError as exc:
        return _step_failed(exc)

    return (
        jsonify(
            message="Subscription selected.",
            subscription_id=subscription.id,
            status=_status_payload(),
        ),
        HTTPStatus.CREATED,
    )


@onboarding_bp.post("/payment")
@jwt_required()
@roles_required(Role.CLINIC_ADMIN)
def submit_payment() -> ResponseReturnValue:
    """Record payment and unlock the one-time completion screen."""

    payload = request.get_json(silent=True) or {}
    try:
        payment = onboarding_service.submit_payment(
            g.current_user,
            payload,
            payment_methods=current_app.config["PAYMENT_METHODS"],
            default_currency=current_app.config["DEFAULT_CURRENCY"],
        )
    except ValueError as exc:
        return _step_failed(exc)

    session[JUST_COMPLETED_KEY] = True
    return (
        jsonify(message="Payment recorded.", payment_id=payment.id, status=_status_payload()),
        HTTPStatus.CREATED,
    )
