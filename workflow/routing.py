"""Access routing resolver combining authentication, roles and onboarding."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping
from urllib.parse import parse_qs, urlsplit

from workflow.onboarding import (
    OnboardingProgress,
    OnboardingStep,
    evaluate_onboarding,
    step_from_query,
)
from workflow.roles import RoleCategory, RoleProfile, classify_roles

LOGGER = logging.getLogger(__name__)

LOGIN_PATH = "/login"
PORTAL_ROOT = "/portal"
ONBOARDING_PATH = "/onboarding"
ADMIN_HOME = "/portal/admin"
THERAPIST_HOME = "/portal/therapist"
CLINIC_HOME = "/portal/clinic"
PUBLIC_PATHS: frozenset[str] = frozenset({"/", LOGIN_PATH, "/register", "/thankyou"})

ROLE_HOMES: dict[RoleCategory, str] = {
    RoleCategory.ADMINISTRATOR: ADMIN_HOME,
    RoleCategory.THERAPIST: THERAPIST_HOME,
    RoleCategory.CLINIC_ADMIN: CLINIC_HOME,
    RoleCategory.UNCATEGORIZED: PORTAL_ROOT,
}


@dataclass(frozen=True)
class RoutingDecision:
    """What a guard should do with the requested location."""

    should_redirect: bool
    redirect_path: str | None
    allow_access: bool
    reason: str

    @classmethod
    def allow(cls, reason: str) -> "RoutingDecision":
        return cls(should_redirect=False, redirect_path=None, allow_access=True, reason=reason)

    @classmethod
    def redirect(cls, path: str, reason: str) -> "RoutingDecision":
        return cls(should_redirect=True, redirect_path=path, allow_access=False, reason=reason)

    @classmethod
    def wait(cls, reason: str = "Session is still loading") -> "RoutingDecision":
        return cls(should_redirect=False, redirect_path=None, allow_access=False, reason=reason)

    @property
    def is_terminal(self) -> bool:
        return self.allow_access or self.should_redirect

    def to_dict(self) -> dict[str, Any]:
        return {
            "should_redirect": self.should_redirect,
            "redirect_path": self.redirect_path,
            "allow_access": self.allow_access,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class SessionSnapshot:
    """Everything the resolver needs to know about the current actor.

    ``has_payment`` defaults to ``has_subscription`` because the session
    provider records payment together with the subscription it pays for.
    ``just_completed_onboarding`` is the short-lived flag set by the action
    that recorded payment, letting the admin see the completion screen once.
    """

    is_authenticated: bool = False
    is_loading: bool = False
    roles: tuple[Any, ...] = ()
    has_clinic: bool = False
    has_subscription: bool = False
    has_payment: bool | None = None
    just_completed_onboarding: bool = False
    active_role: str | None = None

    @property
    def onboarding_progress(self) -> OnboardingProgress:
        has_payment = self.has_subscription if self.has_payment is None else self.has_payment
        return OnboardingProgress.from_flags(self.has_clinic, self.has_subscription, has_payment)

    @classmethod
    def from_session(
        cls,
        session: Mapping[str, Any],
        *,
        just_completed_onboarding: bool = False,
        active_role: str | None = None,
    ) -> "SessionSnapshot":
        """Build a snapshot from the session provider payload.

        Expects ``{"isAuthenticated", "isLoading", "user": {"id", "roles"},
        "clinic": {"id", "subscription", "payment"} | None}``.
        """

        user = session.get("user") or {}
        clinic = session.get("clinic") or None
        roles = user.get("roles") if isinstance(user, Mapping) else None
        if not isinstance(roles, (list, tuple)):
            roles = ()

        has_payment: bool | None = None
        if isinstance(clinic, Mapping) and "payment" in clinic:
            has_payment = bool(clinic.get("payment"))

        return cls(
            is_authenticated=bool(session.get("isAuthenticated")) and bool(user),
            is_loading=bool(session.get("isLoading")),
            roles=tuple(roles),
            has_clinic=bool(clinic),
            has_subscription=bool(isinstance(clinic, Mapping) and clinic.get("subscription")),
            has_payment=has_payment,
            just_completed_onboarding=just_completed_onboarding,
            active_role=active_role,
        )


def _matches_area(path: str, area: str) -> bool:
    return path == area or path.startswith(area + "/")


def is_portal_path(path: str) -> bool:
    return _matches_area(urlsplit(path).path, PORTAL_ROOT)


def is_onboarding_path(path: str) -> bool:
    return _matches_area(urlsplit(path).path, ONBOARDING_PATH)


def onboarding_url(step: OnboardingStep) -> str:
    return f"{ONBOARDING_PATH}?step={OnboardingStep(step).value}"


def requested_step(path: str) -> OnboardingStep:
    """Return the onboarding step named in ``path``'s query string."""

    values = parse_qs(urlsplit(path).query).get("step") or []
    return step_from_query(values[0] if values else None) or OnboardingStep.CLINIC_INFO


def role_home(profile: RoleProfile) -> str:
    return ROLE_HOMES[profile.category]


def resolve_route(path: str, snapshot: SessionSnapshot) -> RoutingDecision:
    """Decide whether ``snapshot``'s actor may view ``path``.

    Pure and total: every input maps to exactly one decision and nothing is
    raised for malformed role data.
    """

    if snapshot.is_loading:
        return RoutingDecision.wait()

    location = urlsplit(path or "/").path or "/"
    if location != "/" and location.endswith("/"):
        location = location.rstrip("/") or "/"

    if not snapshot.is_authenticated:
        if location in PUBLIC_PATHS:
            return RoutingDecision.allow("Public route, not authenticated")
        return RoutingDecision.redirect(LOGIN_PATH, "Not authenticated, redirecting to login")

    profile = classify_roles(snapshot.roles, snapshot.active_role)
    portal = is_portal_path(location)
    onboarding = is_onboarding_path(location)

    if profile.is_system_admin or profile.is_therapist:
        label = "System admin" if profile.is_system_admin else "Therapist"
        if portal:
            return RoutingDecision.allow(f"{label} accessing portal")
        if onboarding:
            return RoutingDecision.redirect(
                role_home(profile), f"{label} does not need onboarding"
            )

    elif profile.is_clinic_admin:
        decision = _resolve_clinic_admin(path, portal, onboarding, snapshot)
        if decision is not None:
            return decision

    if profile.is_uncategorized:
        LOGGER.warning(
            "No recognized role in %r while resolving %s; using default redirect",
            snapshot.roles,
            location,
        )
        return RoutingDecision.redirect(PORTAL_ROOT, "No recognized role, default redirect")

    home = role_home(profile)
    return RoutingDecision.redirect(home, f"Default redirect to {home}")


def _resolve_clinic_admin(
    path: str, portal: bool, onboarding: bool, snapshot: SessionSnapshot
) -> RoutingDecision | None:
    target_step = evaluate_onboarding(snapshot.onboarding_progress).current_step
    complete = target_step is OnboardingStep.COMPLETE

    if portal:
        if complete:
            return RoutingDecision.allow("Clinic admin with complete onboarding")
        return RoutingDecision.redirect(
            onboarding_url(target_step),
            f"Clinic admin must finish onboarding step {target_step.value}",
        )

    if not onboarding:
        return None

    current_step = requested_step(path)
    if complete:
        if not snapshot.just_completed_onboarding:
            return RoutingDecision.redirect(
                CLINIC_HOME, "Clinic admin with complete onboarding belongs in the clinic portal"
            )
        if current_step is OnboardingStep.COMPLETE:
            return RoutingDecision.allow("Clinic admin viewing onboarding completion screen")
        return RoutingDecision.redirect(
            onboarding_url(OnboardingStep.COMPLETE), "Showing onboarding completion screen"
        )

    if current_step is not target_step:
        return RoutingDecision.redirect(
            onboarding_url(target_step), f"Redirecting to correct step: {target_step.value}"
        )
    return RoutingDecision.allow(f"Clinic admin on correct onboarding step: {target_step.value}")
