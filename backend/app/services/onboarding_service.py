"""Persist onboarding steps after checking the evaluator allows them."""
from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable

from backend.app.models import Clinic, Payment, Subscription, User
from backend.app.services.session_service import onboarding_progress_for
from backend.extensions import db
from workflow.onboarding import OnboardingStep, can_skip_to

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class OnboardingStepError(ValueError):
    """Raised when a step is submitted before the steps preceding it."""


def _require_step(user: User, step: OnboardingStep, message: str) -> None:
    if not can_skip_to(step, onboarding_progress_for(user)):
        raise OnboardingStepError(message)


def _clean(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _parse_amount(value: Any) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise ValueError("Amount must be a number.") from exc
    if not amount.is_finite() or amount <= 0:
        raise ValueError("Amount must be greater than 0.")
    return amount


def submit_clinic(user: User, payload: dict[str, Any]) -> Clinic:
    """Create the clinic for a clinic admin who does not have one yet."""

    if user.clinic_id is not None:
        raise OnboardingStepError("User already has a clinic assigned.")

    name = _clean(payload.get("name"))
    address = _clean(payload.get("address"))
    phone = _clean(payload.get("phone_number") or payload.get("phone"))
    email = _clean(payload.get("email")).lower()

    if not 2 <= len(name) <= 255:
        raise ValueError("Clinic name must be between 2 and 255 characters.")
    if not 10 <= len(address) <= 500:
        raise ValueError("Clinic address must be between 10 and 500 characters.")
    if not phone:
        raise ValueError("Clinic phone number is required.")
    if not _EMAIL_PATTERN.match(email):
        raise ValueError("A valid clinic email is required.")
    if Clinic.query.filter_by(name=name).first():
        raise ValueError("A clinic with this name already exists.")

    description = _clean(payload.get("description")) or None
    if description and len(description) > 1000:
        raise ValueError("Clinic description must be at most 1000 characters.")

    clinic = Clinic(
        name=name,
        address=address,
        phone_number=phone,
        email=email,
        website=_clean(payload.get("website")) or None,
        description=description,
        province=_clean(payload.get("province")) or None,
        working_hours=_clean(payload.get("working_hours")) or None,
    )
    db.session.add(clinic)
    db.session.flush()

    user.clinic_id = clinic.id
    db.session.add(user)
    db.session.commit()
    return clinic


def submit_subscription(
    user: User,
    payload: dict[str, Any],
    *,
    tiers: Iterable[str],
    billing_cycles: Iterable[str],
    default_currency: str,
) -> Subscription:
    """Record the subscription tier chosen by the clinic admin."""

    _require_step(user, OnboardingStep.SUBSCRIPTION, "Must complete clinic setup first.")
    clinic = user.clinic
    if clinic.subscription is not None:
        raise OnboardingStepError("Clinic already has a subscription.")

    tier_code = _clean(payload.get("tier_code")).lower()
    billing_cycle = _clean(payload.get("billing_cycle")).lower()
    if tier_code not in set(tiers):
        raise ValueError("Invalid subscription tier.")
    if billing_cycle not in set(billing_cycles):
        raise ValueError("Invalid billing cycle.")

    subscription = Subscription(
        clinic_id=clinic.id,
        tier_code=tier_code,
        billing_cycle=billing_cycle,
        amount=_parse_amount(payload.get("amount")),
        currency=(_clean(payload.get("currency")) or default_currency).upper(),
    )
    db.session.add(subscription)
    db.session.commit()
    return subscription


def submit_payment(
    user: User,
    payload: dict[str, Any],
    *,
    payment_methods: Iterable[str],
    default_currency: str,
) -> Payment:
    """Record the payment for the clinic's subscription."""

    _require_step(user, OnboardingStep.PAYMENT, "Must select a subscription before paying.")
    clinic = user.clinic
    if clinic.payments:
        raise OnboardingStepError("Payment has already been recorded.")

    payment_method = _clean(payload.get("payment_method")).lower()
    if payment_method not in set(payment_methods):
        raise ValueError("Invalid payment method.")

    payment = Payment(
        clinic_id=clinic.id,
        subscription_id=clinic.subscription.id,
        payment_method=payment_method,
        amount=_parse_amount(payload.get("amount")),
        currency=(_clean(payload.get("currency")) or default_currency).upper(),
        transaction_id=_clean(payload.get("transaction_id")) or None,
        provider_payment_id=_clean(payload.get("payment_id")) or None,
    )
    db.session.add(payment)
    db.session.commit()
    return payment
