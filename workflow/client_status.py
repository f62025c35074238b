"""Client lifecycle statuses, the transition table, and the history tracker."""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable

LOGGER = logging.getLogger(__name__)

INVALID_TRANSITION_MESSAGE = "Invalid status transition."
STALE_STATUS_MESSAGE = "Client status has changed since it was loaded; refresh and try again."


class ClientStatus(str, Enum):
    """Lifecycle of a client record within a clinic."""

    NEW = "new"
    ASSIGNED = "assigned"
    CONSULTATION = "consultation"
    THERAPY = "therapy"
    DONE = "done"


class InvalidClientStatusError(ValueError):
    """Raised when a value outside :class:`ClientStatus` reaches the validator."""


# ``None`` is the pseudo-state of a client that has no history yet.
VALID_STATUS_TRANSITIONS: dict[ClientStatus | None, tuple[ClientStatus, ...]] = {
    None: (ClientStatus.NEW,),
    ClientStatus.NEW: (ClientStatus.CONSULTATION,),
    ClientStatus.ASSIGNED: (ClientStatus.CONSULTATION, ClientStatus.NEW),
    ClientStatus.CONSULTATION: (ClientStatus.THERAPY, ClientStatus.NEW),
    ClientStatus.THERAPY: (ClientStatus.DONE, ClientStatus.CONSULTATION),
    ClientStatus.DONE: (ClientStatus.CONSULTATION,),
}


def coerce_status(value: Any, *, allow_none: bool = False) -> ClientStatus | None:
    """Return ``value`` as a :class:`ClientStatus`.

    Raises :class:`InvalidClientStatusError` for anything outside the enum.
    """

    if value is None:
        if allow_none:
            return None
        raise InvalidClientStatusError("A target status is required.")
    if isinstance(value, ClientStatus):
        return value
    try:
        return ClientStatus(value)
    except ValueError as exc:
        raise InvalidClientStatusError(f"Unknown client status: {value!r}") from exc


def is_valid_transition(from_status: ClientStatus | str | None, to_status: ClientStatus | str) -> bool:
    """Return whether the edge ``from_status -> to_status`` is in the table."""

    source = coerce_status(from_status, allow_none=True)
    target = coerce_status(to_status)
    return target in VALID_STATUS_TRANSITIONS.get(source, ())


def available_transitions(current: ClientStatus | str | None) -> tuple[ClientStatus, ...]:
    return VALID_STATUS_TRANSITIONS.get(coerce_status(current, allow_none=True), ())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class StatusTransition:
    """Immutable record of a client lifecycle change."""

    client_id: str
    from_status: ClientStatus | None
    to_status: ClientStatus
    acting_user_id: str
    timestamp: datetime = field(default_factory=_utcnow)
    reason: str | None = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    idempotency_key: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "client_id": self.client_id,
            "from_status": self.from_status.value if self.from_status else None,
            "to_status": self.to_status.value,
            "timestamp": self.timestamp.isoformat(),
            "acting_user_id": self.acting_user_id,
            "reason": self.reason,
        }


class ClientStatusTracker:
    """Append-only ledger of status transitions for one or more clients.

    Transitions are only added through :meth:`transition_status`, which checks
    the edge against :data:`VALID_STATUS_TRANSITIONS` and that the caller's
    ``from_status`` still matches the client's current status. Failures are
    reported through :attr:`error` rather than raised.
    """

    def __init__(self, transitions: Iterable[StatusTransition] = ()) -> None:
        self._transitions: list[StatusTransition] = []
        self.error: str | None = None
        self.last_transition: StatusTransition | None = None
        self.load(transitions)

    def load(self, transitions: Iterable[StatusTransition]) -> None:
        """Replace the ledger contents with previously persisted records."""

        self._transitions = list(transitions)
        self.last_transition = None

    def history(self, client_id: str) -> list[StatusTransition]:
        """Return a client's transitions, newest first."""

        # Ties on timestamp resolve to the most recently appended record.
        ordered = sorted(
            (
                (item.timestamp, position, item)
                for position, item in enumerate(self._transitions)
                if item.client_id == client_id
            ),
            key=lambda entry: (entry[0], entry[1]),
            reverse=True,
        )
        return [item for _, _, item in ordered]

    def current_status(self, client_id: str) -> ClientStatus | None:
        records = self.history(client_id)
        return records[0].to_status if records else None

    def available_transitions(self, client_id: str) -> tuple[ClientStatus, ...]:
        return available_transitions(self.current_status(client_id))

    def find_by_idempotency_key(self, key: str) -> StatusTransition | None:
        for item in self._transitions:
            if item.idempotency_key == key:
                return item
        return None

    def clear_error(self) -> None:
        self.error = None

    def transition_status(
        self,
        client_id: str,
        from_status: ClientStatus | str | None,
        to_status: ClientStatus | str,
        acting_user_id: str,
        reason: str | None = None,
        *,
        idempotency_key: str | None = None,
    ) -> bool:
        """Append a validated transition, returning whether it was accepted.

        A repeated ``idempotency_key`` is accepted without appending again.
        """

        source = coerce_status(from_status, allow_none=True)
        target = coerce_status(to_status)
        self.last_transition = None

        if idempotency_key:
            existing = self.find_by_idempotency_key(idempotency_key)
            if existing is not None:
                self.last_transition = existing
                self.error = None
                return True

        if not is_valid_transition(source, target):
            LOGGER.info(
                "Rejected status transition %s -> %s for client %s",
                source.value if source else None,
                target.value,
                client_id,
            )
            self.error = INVALID_TRANSITION_MESSAGE
            return False

        if self.current_status(client_id) != source:
            self.error = STALE_STATUS_MESSAGE
            return False

        transition = StatusTransition(
            client_id=client_id,
            from_status=source,
            to_status=target,
            acting_user_id=acting_user_id,
            reason=reason or None,
            idempotency_key=idempotency_key,
        )
        self._transitions.append(transition)
        self.last_transition = transition
        self.error = None
        return True
