"""Canonical user roles and normalization of legacy role labels."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable

LOGGER = logging.getLogger(__name__)


class Role(str, Enum):
    """Closed set of roles understood by the access resolver."""

    ADMINISTRATOR = "Administrator"
    CLINIC_ADMIN = "ClinicAdmin"
    THERAPIST = "Therapist"


class RoleCategory(str, Enum):
    """Routing category a user falls into once roles are classified."""

    ADMINISTRATOR = "administrator"
    THERAPIST = "therapist"
    CLINIC_ADMIN = "clinic_admin"
    UNCATEGORIZED = "uncategorized"


LEGACY_ROLE_MAP: dict[str, Role] = {
    "administrator": Role.ADMINISTRATOR,
    "clinic_admin": Role.CLINIC_ADMIN,
    "clinicadmin": Role.CLINIC_ADMIN,
    "therapist": Role.THERAPIST,
}

_SEPARATORS = re.compile(r"[\s\-]+")


def _lookup_key(value: str) -> str:
    return _SEPARATORS.sub("", value.casefold())


def normalize_role(role: Any) -> Role | Any:
    """Map a legacy or free-text role label to its canonical :class:`Role`.

    Unknown values are returned unchanged so callers comparing against
    :class:`Role` simply find no match. Applying the function twice gives the
    same result as applying it once.
    """

    if isinstance(role, Role):
        return role
    if not isinstance(role, str):
        return role

    canonical = LEGACY_ROLE_MAP.get(_lookup_key(role))
    if canonical is not None:
        return canonical

    if "admin" in role.casefold():
        LOGGER.warning(
            "Role %r looks like an admin role but is not recognized; "
            "fix the role data upstream.",
            role,
        )
    return role


def normalize_roles(roles: Iterable[Any] | None) -> tuple[Role | Any, ...]:
    """Normalize a role collection, dropping duplicates while keeping order."""

    if roles is None or isinstance(roles, (str, bytes)) or not isinstance(roles, Iterable):
        return ()

    seen: set[Any] = set()
    normalized: list[Role | Any] = []
    for role in roles:
        value = normalize_role(role)
        try:
            if value in seen:
                continue
            seen.add(value)
        except TypeError:
            continue
        normalized.append(value)
    return tuple(normalized)


@dataclass(frozen=True, slots=True)
class RoleProfile:
    """Result of classifying a user's roles for routing purposes."""

    roles: tuple[Role, ...]
    is_system_admin: bool
    is_therapist: bool
    is_clinic_admin: bool
    category: RoleCategory

    @property
    def primary_role(self) -> Role | None:
        return self.roles[0] if self.roles else None

    @property
    def is_uncategorized(self) -> bool:
        return self.category is RoleCategory.UNCATEGORIZED


def classify_roles(roles: Iterable[Any] | None, active_role: Any = None) -> RoleProfile:
    """Classify normalized roles into the flags the resolver branches on.

    When ``active_role`` names a role the user actually holds, classification
    is narrowed to that role. Administrators take precedence over therapists,
    who take precedence over clinic admins, when picking the category.
    """

    recognized = tuple(role for role in normalize_roles(roles) if isinstance(role, Role))

    selected = normalize_role(active_role) if active_role is not None else None
    if isinstance(selected, Role) and selected in recognized:
        effective: tuple[Role, ...] = (selected,)
    else:
        effective = recognized

    is_system_admin = Role.ADMINISTRATOR in effective
    is_therapist = Role.THERAPIST in effective
    is_clinic_admin = Role.CLINIC_ADMIN in effective

    if is_system_admin:
        category = RoleCategory.ADMINISTRATOR
    elif is_therapist:
        category = RoleCategory.THERAPIST
    elif is_clinic_admin:
        category = RoleCategory.CLINIC_ADMIN
    else:
        category = RoleCategory.UNCATEGORIZED

    return RoleProfile(
        roles=effective,
        is_system_admin=is_system_admin,
        is_therapist=is_therapist,
        is_clinic_admin=is_clinic_admin,
        category=category,
    )


def has_any_role(roles: Iterable[Any] | None, allowed: Iterable[Role]) -> bool:
    """Return whether any normalized role is in ``allowed``."""

    allowed_set = set(allowed)
    return any(role in allowed_set for role in normalize_roles(roles))
