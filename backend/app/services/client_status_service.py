"""Persist client status transitions through the in-memory tracker."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import timezone

from backend.app.models import Client, ClientStatusTransition
from backend.extensions import db
from workflow.client_status import (
    ClientStatus,
    ClientStatusTracker,
    StatusTransition,
)


@dataclass(slots=True)
class TransitionOutcome:
    """Result of attempting a status change for a persisted client."""

    accepted: bool
    transition: StatusTransition | None
    created: bool
    error: str | None


def _to_record(row: ClientStatusTransition) -> StatusTransition:
    changed_at = row.changed_at
    if changed_at.tzinfo is None:
        changed_at = changed_at.replace(tzinfo=timezone.utc)
    return StatusTransition(
        id=row.id,
        client_id=str(row.client_id),
        from_status=ClientStatus(row.from_status) if row.from_status else None,
        to_status=ClientStatus(row.to_status),
        acting_user_id=str(row.changed_by_id),
        timestamp=changed_at,
        reason=row.reason,
        idempotency_key=row.idempotency_key,
    )


def tracker_for(client: Client) -> ClientStatusTracker:
    """Hydrate a tracker with the client's stored history."""

    return ClientStatusTracker(_to_record(row) for row in client.status_transitions)


def find_by_idempotency_key(key: str | None) -> ClientStatusTransition | None:
    if not key:
        return None
    return ClientStatusTransition.query.filter_by(idempotency_key=key).first()


def transition_client(
    client: Client,
    *,
    from_status: ClientStatus | str | None,
    to_status: ClientStatus | str,
    acting_user_id: int,
    reason: str | None = None,
    idempotency_key: str | None = None,
) -> TransitionOutcome:
    """Validate and append a status change, returning the outcome."""

    existing = find_by_idempotency_key(idempotency_key)
    if existing is not None and existing.client_id != client.id:
        return TransitionOutcome(False, None, False, "Idempotency key already used for another client.")

    tracker = tracker_for(client)
    before = tracker.find_by_idempotency_key(idempotency_key) if idempotency_key else None
    accepted = tracker.transition_status(
        str(client.id),
        from_status,
        to_status,
        str(acting_user_id),
        reason,
        idempotency_key=idempotency_key,
    )
    if not accepted:
        return TransitionOutcome(False, None, False, tracker.error)

    record = tracker.last_transition
    if before is not None:
        return TransitionOutcome(True, record, False, None)

    db.session.add(
        ClientStatusTransition(
            id=record.id,
            client_id=client.id,
            from_status=record.from_status.value if record.from_status else None,
            to_status=record.to_status.value,
            reason=record.reason,
            changed_by_id=acting_user_id,
            changed_at=record.timestamp.astimezone(timezone.utc).replace(tzinfo=None),
            idempotency_key=idempotency_key,
        )
    )
    db.session.commit()
    return TransitionOutcome(True, record, True, None)
