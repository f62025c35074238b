"""Build resolver snapshots from the authenticated user and their clinic."""
from __future__ import annotations

from typing import Any

from flask import session
from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request

from backend.app.models import Clinic, User
from backend.extensions import db
from workflow.onboarding import OnboardingProgress
from workflow.roles import normalize_roles
from workflow.routing import SessionSnapshot

JUST_COMPLETED_KEY = "just_completed_onboarding"
ACTIVE_ROLE_KEY = "active_role"


def current_user(*, optional: bool = True) -> User | None:
    """Return the user identified by the request JWT, if any."""

    try:
        verify_jwt_in_request(optional=optional)
    except Exception:  # pragma: no cover - defensive
        return None

    identity = get_jwt_identity()
    if identity is None:
        return None

    try:
        user_id = int(identity)
    except (TypeError, ValueError):  # pragma: no cover - defensive
        return None

    user = db.session.get(User, user_id)
    if user is None or not user.is_active:
        return None
    return user


def clinic_payloads(clinic: Clinic | None) -> dict[str, Any]:
    """Serialize the onboarding-relevant parts of a clinic."""

    if clinic is None:
        return {"clinic": None, "subscription": None, "payment": None}

    subscription = clinic.subscription
    payment = clinic.payments[-1] if clinic.payments else None
    return {
        "clinic": {
            "id": clinic.id,
            "name": clinic.name,
            "address": clinic.address,
            "phone_number": clinic.phone_number,
            "email": clinic.email,
        },
        "subscription": (
            {
                "id": subscription.id,
                "tier_code": subscription.tier_code,
                "billing_cycle": subscription.billing_cycle,
                "amount": str(subscription.amount),
                "currency": subscription.currency,
            }
            if subscription
            else None
        ),
        "payment": (
            {
                "id": payment.id,
                "payment_method": payment.payment_method,
                "amount": str(payment.amount),
                "currency": payment.currency,
                "transaction_id": payment.transaction_id,
            }
            if payment
            else None
        ),
    }


def onboarding_progress_for(user: User | None) -> OnboardingProgress:
    payloads = clinic_payloads(user.clinic if user else None)
    return OnboardingProgress(
        has_clinic=payloads["clinic"] is not None,
        has_subscription=payloads["subscription"] is not None,
        has_payment=payloads["payment"] is not None,
        clinic_data=payloads["clinic"],
        subscription_data=payloads["subscription"],
        payment_data=payloads["payment"],
    )


def build_snapshot(user: User | None, *, is_loading: bool = False) -> SessionSnapshot:
    """Return the resolver snapshot for ``user`` and the current Flask session."""

    if user is None:
        return SessionSnapshot(is_authenticated=False, is_loading=is_loading)

    progress = onboarding_progress_for(user)
    return SessionSnapshot(
        is_authenticated=True,
        is_loading=is_loading,
        roles=normalize_roles(user.roles),
        has_clinic=progress.has_clinic,
        has_subscription=progress.has_subscription,
        has_payment=progress.has_payment,
        just_completed_onboarding=bool(session.get(JUST_COMPLETED_KEY)),
        active_role=session.get(ACTIVE_ROLE_KEY),
    )
