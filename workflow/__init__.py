"""Pure access and workflow rules for the Smart Therapy clinic platform."""
from workflow.client_status import (
    ClientStatus,
    ClientStatusTracker,
    InvalidClientStatusError,
    StatusTransition,
    available_transitions,
    is_valid_transition,
)
from workflow.onboarding import (
    OnboardingEvaluation,
    OnboardingProgress,
    OnboardingStep,
    evaluate_onboarding,
)
from workflow.roles import Role, RoleCategory, classify_roles, normalize_role, normalize_roles
from workflow.routing import RoutingDecision, SessionSnapshot, resolve_route

__all__ = [
    "ClientStatus",
    "ClientStatusTracker",
    "InvalidClientStatusError",
    "OnboardingEvaluation",
    "OnboardingProgress",
    "OnboardingStep",
    "Role",
    "RoleCategory",
    "RoutingDecision",
    "SessionSnapshot",
    "StatusTransition",
    "available_transitions",
    "classify_roles",
    "evaluate_onboarding",
    "is_valid_transition",
    "normalize_role",
    "normalize_roles",
    "resolve_route",
]
