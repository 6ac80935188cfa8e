#rfq_exchange/models/notification_event.py
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from sqlalchemy import String, Text, Index
from sqlalchemy.orm import Mapped, mapped_column

from rfq_exchange.db.base import Base
from rfq_exchange.db.types import UTCDateTime


class NotificationEvent(Base):
    """
    Outbox row for the notification service. Written in the same transaction
    as the transition that caused it; delivery happens elsewhere.
    """
    __tablename__ = "notification_events"

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid.uuid4)

    kind: Mapped[str] = mapped_column(String(32), nullable=False)
    recipient_id: Mapped[str] = mapped_column(String(128), nullable=False)

    tender_id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, nullable=False)
    bid_id: Mapped[Optional[uuid.UUID]] = mapped_column(sa.Uuid, nullable=True)

    title: Mapped[str] = mapped_column(String(256), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    dispatched_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    __table_args__ = (
        Index("ix_notification_events_recipient", "recipient_id"),
        Index("ix_notification_events_undispatched", "dispatched_at"),
    )
