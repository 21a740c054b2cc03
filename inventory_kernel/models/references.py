"""
Module: inventory_kernel.models.references
Responsibility: Thin ORM rows for the external collaborators the ledger
    points at -- outlets, subscriptions and events.  Billing and the event
    service own these records; the kernel only reads their identity, outlet
    and status, and flips status to cancelled through ReferenceService.
Architecture position: Kernel > Models.  May import from db/base.py only.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import TrackedBase, UUIDString


class SubscriptionStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class EventStatus(str, Enum):
    PLANNED = "planned"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Outlet(TrackedBase):
    """A business location; the unit of data isolation for inventory."""

    __tablename__ = "outlets"

    code: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Outlet {self.code}>"


class Subscription(TrackedBase):
    """Recurring dishware rental owned by the billing service."""

    __tablename__ = "subscriptions"
    __table_args__ = (
        Index("idx_subscription_outlet", "outlet_id"),
    )

    outlet_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("outlets.id"), nullable=False
    )
    status: Mapped[SubscriptionStatus] = mapped_column(
        String(20), default=SubscriptionStatus.ACTIVE.value, nullable=False
    )
    cancelled_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def __repr__(self) -> str:
        return f"<Subscription {self.id}: {self.status}>"


class Event(TrackedBase):
    """One-off catering event owned by the event service."""

    __tablename__ = "events"
    __table_args__ = (
        Index("idx_event_outlet", "outlet_id"),
    )

    outlet_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("outlets.id"), nullable=False
    )
    status: Mapped[EventStatus] = mapped_column(
        String(20), default=EventStatus.PLANNED.value, nullable=False
    )
    cancelled_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def __repr__(self) -> str:
        return f"<Event {self.id}: {self.status}>"
