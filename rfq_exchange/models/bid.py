#rfq_exchange/models/bid.py
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy import (
    String,
    Text,
    Integer,
    Numeric,
    Boolean,
    ForeignKey,
    UniqueConstraint,
    CheckConstraint,
    Index,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rfq_exchange.db.base import Base
from rfq_exchange.db.types import UTCDateTime
from rfq_exchange.models.enums import BidStatus


class Bid(Base):
    __tablename__ = "bids"

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid.uuid4)

    tender_id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid,
        ForeignKey("tenders.id", ondelete="CASCADE"),
        nullable=False,
    )
    vendor_id: Mapped[str] = mapped_column(String(128), nullable=False)

    # Pricing (subtotal / vat / total are always server-computed)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(16, 2), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(Numeric(16, 4), nullable=False)
    subtotal: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    vat_registered: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    vat_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    vat_amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)

    # Delivery / warranty
    delivery_timeline_days: Mapped[int] = mapped_column(Integer, nullable=False)
    delivery_date: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    warranty_months: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    warranty_terms: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    remarks: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    technical_specifications: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=BidStatus.pending.value,
        server_default=text(f"'{BidStatus.pending.value}'"),
    )

    # audit trail only; gating is always computed live
    revealed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    withdrawn_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    withdrawal_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    tender = relationship("Tender", back_populates="bids")

    __table_args__ = (
        # one row per (tender, vendor); this is what closes the concurrent double-submit race
        UniqueConstraint("tender_id", "vendor_id", name="uq_bids_tender_vendor"),
        CheckConstraint("unit_price > 0", name="ck_bids_unit_price_positive"),
        CheckConstraint("quantity > 0", name="ck_bids_quantity_positive"),
        CheckConstraint("delivery_timeline_days > 0", name="ck_bids_delivery_positive"),
        Index("ix_bids_tender_status", "tender_id", "status"),
        Index("ix_bids_vendor", "vendor_id"),
    )
