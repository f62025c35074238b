"""Database models for the Smart Therapy clinic platform."""
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.extensions import db


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class TimestampMixin:
    """Mixin providing timestamp columns."""

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )


class Clinic(db.Model, TimestampMixin):
    """A hypnotherapy practice registered on the platform."""

    __tablename__ = "clinics"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[str | None] = mapped_column(String(500))
    phone_number: Mapped[str | None] = mapped_column(String(50))
    email: Mapped[str | None] = mapped_column(String(255))
    website: Mapped[str | None] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(Text)
    province: Mapped[str | None] = mapped_column(String(100))
    working_hours: Mapped[str | None] = mapped_column(String(255))

    users: Mapped[list["User"]] = relationship("User", back_populates="clinic")
    subscription: Mapped[Subscription | None] = relationship(
        "Subscription", back_populates="clinic", uselist=False
    )
    payments: Mapped[list["Payment"]] = relationship("Payment", back_populates="clinic")
    clients: Mapped[list["Client"]] = relationship("Client", back_populates="clinic")
    audit_logs: Mapped[list["AuditLog"]] = relationship("AuditLog", back_populates="clinic")

    def __repr__(self) -> str:
        return f"<Clinic id={self.id} name={self.name!r}>"


class User(db.Model, TimestampMixin):
    """Platform user: system administrators, clinic admins and therapists."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    clinic_id: Mapped[int | None] = mapped_column(ForeignKey("clinics.id"), nullable=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    full_name: Mapped[str | None] = mapped_column(String(255))
    # Stored as entered; may contain legacy labels such as "clinic_admin".
    roles: Mapped[list] = mapped_column(db.JSON, default=list, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    clinic: Mapped[Clinic | None] = relationship("Clinic", back_populates="users")
    audit_logs: Mapped[list["AuditLog"]] = relationship("AuditLog", back_populates="user")

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r}>"


class Subscription(db.Model, TimestampMixin):
    """Subscription tier chosen during onboarding."""

    __tablename__ = "subscriptions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    clinic_id: Mapped[int] = mapped_column(ForeignKey("clinics.id"), unique=True, nullable=False)
    tier_code: Mapped[str] = mapped_column(String(50), nullable=False)
    billing_cycle: Mapped[str] = mapped_column(String(20), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    clinic: Mapped[Clinic] = relationship("Clinic", back_populates="subscription")
    payments: Mapped[list["Payment"]] = relationship("Payment", back_populates="subscription")

    def __repr__(self) -> str:
        return f"<Subscription id={self.id} tier={self.tier_code!r}>"


class Payment(db.Model, TimestampMixin):
    """Payment recorded for a clinic subscription."""

    __tablename__ = "payments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    clinic_id: Mapped[int] = mapped_column(ForeignKey("clinics.id"), nullable=False)
    subscription_id: Mapped[int] = mapped_column(ForeignKey("subscriptions.id"), nullable=False)
    payment_method: Mapped[str] = mapped_column(String(50), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    transaction_id: Mapped[str | None] = mapped_column(String(100))
    provider_payment_id: Mapped[str | None] = mapped_column(String(100))

    clinic: Mapped[Clinic] = relationship("Clinic", back_populates="payments")
    subscription: Mapped[Subscription] = relationship("Subscription", back_populates="payments")

    def __repr__(self) -> str:
        return f"<Payment id={self.id} method={self.payment_method!r}>"


class Client(db.Model, TimestampMixin):
    """A person receiving hypnotherapy at a clinic."""

    __tablename__ = "clients"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    clinic_id: Mapped[int] = mapped_column(ForeignKey("clinics.id"), nullable=False)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255))
    phone_number: Mapped[str | None] = mapped_column(String(50))
    notes: Mapped[str | None] = mapped_column(Text)

    clinic: Mapped[Clinic] = relationship("Clinic", back_populates="clients")
    status_transitions: Mapped[list["ClientStatusTransition"]] = relationship(
        "ClientStatusTransition", back_populates="client", order_by="ClientStatusTransition.changed_at"
    )

    def __repr__(self) -> str:
        return f"<Client id={self.id} name={self.full_name!r}>"


class ClientStatusTransition(db.Model):
    """Append-only history of client status changes."""

    __tablename__ = "client_status_transitions"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    client_id: Mapped[int] = mapped_column(ForeignKey("clients.id"), nullable=False, index=True)
    from_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    to_status: Mapped[str] = mapped_column(String(20), nullable=False)
    reason: Mapped[str | None] = mapped_column(Text)
    changed_by_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    changed_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    idempotency_key: Mapped[str | None] = mapped_column(String(100), unique=True)

    client: Mapped[Client] = relationship("Client", back_populates="status_transitions")
    changed_by: Mapped[User] = relationship("User")

    def __repr__(self) -> str:
        return (
            f"<ClientStatusTransition id={self.id} "
            f"{self.from_status!r}->{self.to_status!r}>"
        )


class AuditLog(db.Model):
    """Immutable log of significant user actions for compliance."""

    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    clinic_id: Mapped[int | None] = mapped_column(ForeignKey("clinics.id"))
    user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"))
    entity_type: Mapped[str] = mapped_column(String(100), nullable=False)
    entity_id: Mapped[str | None] = mapped_column(String(64))
    action: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    method: Mapped[str] = mapped_column(String(10), nullable=False)
    path: Mapped[str] = mapped_column(String(255), nullable=False)
    request_hash: Mapped[str | None] = mapped_column(String(128))
    response_hash: Mapped[str | None] = mapped_column(String(128))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    clinic: Mapped[Clinic | None] = relationship("Clinic", back_populates="audit_logs")
    user: Mapped[User | None] = relationship("User", back_populates="audit_logs")

    def __repr__(self) -> str:
        return f"<AuditLog id={self.id} action={self.action!r}>"
