"""Page routes wrapped by the route guard."""
from __future__ import annotations

from flask import Blueprint, g, render_template, request, session

from backend.app.guards import route_guard
from backend.app.services.session_service import (
    JUST_COMPLETED_KEY,
    current_user,
    onboarding_progress_for,
)
from workflow.onboarding import OnboardingStep, progress_percentage
from workflow.routing import requested_step

frontend_bp = Blueprint("frontend", __name__)


@frontend_bp.get("/", endpoint="home")
@frontend_bp.get("/login", endpoint="login")
@frontend_bp.get("/register", endpoint="register")
@frontend_bp.get("/thankyou", endpoint="thankyou")
@route_guard
def public_page() -> str:
    """Render a page that anonymous visitors may see."""

    return render_template("pages/public.html", page=g.routing_decision.reason)


@frontend_bp.get("/portal")
@frontend_bp.get("/portal/<path:path>")
@route_guard
def portal(path: str | None = None) -> str:
    """Render the role-specific portal area."""

    # Reaching the portal ends the post-payment window for the completion screen.
    session.pop(JUST_COMPLETED_KEY, None)
    return render_template(
        "pages/portal.html",
        area=(path or "").split("/", 1)[0],
        reason=g.routing_decision.reason,
    )


@frontend_bp.get("/onboarding")
@route_guard
def onboarding() -> str:
    """Render the onboarding step the resolver allowed."""

    step = requested_step(request.full_path)
    if step is OnboardingStep.COMPLETE:
        # The completion screen is shown once per payment.
        session.pop(JUST_COMPLETED_KEY, None)

    return render_template(
        "pages/onboarding.html",
        step=step.value,
        progress=progress_percentage(onboarding_progress_for(current_user())),
    )
