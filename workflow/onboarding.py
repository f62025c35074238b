"""Onboarding step evaluation for clinic administrators."""
from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Any


class OnboardingStep(str, Enum):
    """Sequential onboarding gates a clinic admin must clear."""

    CLINIC_INFO = "clinic_info"
    SUBSCRIPTION = "subscription"
    PAYMENT = "payment"
    COMPLETE = "complete"


STEP_ORDER: tuple[OnboardingStep, ...] = (
    OnboardingStep.CLINIC_INFO,
    OnboardingStep.SUBSCRIPTION,
    OnboardingStep.PAYMENT,
    OnboardingStep.COMPLETE,
)


@dataclass(frozen=True)
class OnboardingProgress:
    """Snapshot of what the clinic admin has already supplied.

    A step only counts as done when its flag is set *and* its payload is
    present. Use :meth:`from_flags` when only the booleans are known.
    """

    has_clinic: bool = False
    has_subscription: bool = False
    has_payment: bool = False
    clinic_data: Any = None
    subscription_data: Any = None
    payment_data: Any = None

    @classmethod
    def from_flags(
        cls, has_clinic: bool, has_subscription: bool, has_payment: bool
    ) -> "OnboardingProgress":
        """Build progress where flag presence stands in for each payload."""

        return cls(
            has_clinic=bool(has_clinic),
            has_subscription=bool(has_subscription),
            has_payment=bool(has_payment),
            clinic_data=bool(has_clinic) or None,
            subscription_data=bool(has_subscription) or None,
            payment_data=bool(has_payment) or None,
        )


@dataclass(frozen=True)
class OnboardingEvaluation:
    """Outcome of evaluating onboarding progress."""

    current_step: OnboardingStep
    missing_fields: tuple[str, ...]
    can_proceed: bool

    @property
    def is_valid(self) -> bool:
        return not self.missing_fields

    def to_dict(self) -> dict[str, Any]:
        return {
            "current_step": self.current_step.value,
            "missing_fields": list(self.missing_fields),
            "can_proceed": self.can_proceed,
            "is_valid": self.is_valid,
        }


def _fingerprint(payload: Any) -> str | None:
    """Return a content hash for a payload, or ``None`` when it is absent."""

    if not payload:
        return None
    try:
        text = json.dumps(payload, sort_keys=True, default=str)
    except (TypeError, ValueError):
        # Mixed-type or non-string keys cannot be sorted or encoded.
        text = repr(payload)
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


@lru_cache(maxsize=256)
def _evaluate_cached(
    has_clinic: bool,
    has_subscription: bool,
    has_payment: bool,
    clinic_key: str | None,
    subscription_key: str | None,
    payment_key: str | None,
) -> OnboardingEvaluation:
    if not has_clinic or clinic_key is None:
        return OnboardingEvaluation(OnboardingStep.CLINIC_INFO, ("clinic",), False)
    if not has_subscription or subscription_key is None:
        return OnboardingEvaluation(OnboardingStep.SUBSCRIPTION, ("subscription",), True)
    if not has_payment or payment_key is None:
        return OnboardingEvaluation(OnboardingStep.PAYMENT, ("payment",), True)
    return OnboardingEvaluation(OnboardingStep.COMPLETE, (), True)


def evaluate_onboarding(progress: OnboardingProgress) -> OnboardingEvaluation:
    """Determine the current onboarding step; the first unmet rule wins.

    Only the first missing requirement is reported since steps are strictly
    sequential. Results are memoized on the flags plus a content hash of each
    payload, so a changed payload never reuses a stale cached step.
    """

    return _evaluate_cached(
        bool(progress.has_clinic),
        bool(progress.has_subscription),
        bool(progress.has_payment),
        _fingerprint(progress.clinic_data),
        _fingerprint(progress.subscription_data),
        _fingerprint(progress.payment_data),
    )


def clear_evaluation_cache() -> None:
    """Drop every memoized evaluation."""

    _evaluate_cached.cache_clear()


def next_step(step: OnboardingStep) -> OnboardingStep | None:
    index = STEP_ORDER.index(OnboardingStep(step))
    return STEP_ORDER[index + 1] if index + 1 < len(STEP_ORDER) else None


def previous_step(step: OnboardingStep) -> OnboardingStep | None:
    index = STEP_ORDER.index(OnboardingStep(step))
    return STEP_ORDER[index - 1] if index > 0 else None


def is_step_complete(step: OnboardingStep, progress: OnboardingProgress) -> bool:
    """Return whether ``step`` has been satisfied by ``progress``."""

    step = OnboardingStep(step)
    if step is OnboardingStep.CLINIC_INFO:
        return bool(progress.has_clinic and progress.clinic_data)
    if step is OnboardingStep.SUBSCRIPTION:
        return bool(progress.has_subscription and progress.subscription_data)
    if step is OnboardingStep.PAYMENT:
        return bool(progress.has_payment and progress.payment_data)
    return all(is_step_complete(earlier, progress) for earlier in STEP_ORDER[:-1])


def can_skip_to(step: OnboardingStep, progress: OnboardingProgress) -> bool:
    """Return whether every step strictly before ``step`` is satisfied."""

    index = STEP_ORDER.index(OnboardingStep(step))
    return all(is_step_complete(earlier, progress) for earlier in STEP_ORDER[:index])


def progress_percentage(progress: OnboardingProgress) -> float:
    completed = sum(
        1
        for flag in (progress.has_clinic, progress.has_subscription, progress.has_payment)
        if flag
    )
    return completed / 3 * 100


def step_from_query(value: str | None) -> OnboardingStep | None:
    """Parse the ``step`` query value; unknown values yield ``None``."""

    if not value:
        return None
    try:
        return OnboardingStep(value.strip().lower())
    except ValueError:
        return None
