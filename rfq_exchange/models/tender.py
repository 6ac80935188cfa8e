#rfq_exchange/models/tender.py
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

import sqlalchemy as sa
from sqlalchemy import (
    String,
    Text,
    Integer,
    Numeric,
    Boolean,
    CheckConstraint,
    Index,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rfq_exchange.db.base import Base
from rfq_exchange.db.types import JSONType, UTCDateTime
from rfq_exchange.models.enums import TenderStatus


class Tender(Base):
    """
    A buyer's request for quotation.

    `status` and `bid_count` are the contended fields; they are only written
    through TenderRepository.
    """
    __tablename__ = "tenders"

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid.uuid4)

    reference_code: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)

    title: Mapped[str] = mapped_column(String(256), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)

    # ordered [{name, quantity, unit, specifications}]
    items_json: Mapped[List[Dict[str, Any]]] = mapped_column(JSONType, nullable=False, default=list)

    category: Mapped[str] = mapped_column(String(64), nullable=False)

    budget_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(16, 2), nullable=True)
    show_budget: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    closing_date: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=TenderStatus.draft.value,
        server_default=text(f"'{TenderStatus.draft.value}'"),
    )

    sealed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    private: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    invited_vendor_ids: Mapped[List[str]] = mapped_column(JSONType, nullable=False, default=list)

    created_by: Mapped[str] = mapped_column(String(128), nullable=False)
    organization: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)

    awarded_vendor_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    awarded_bid_id: Mapped[Optional[uuid.UUID]] = mapped_column(sa.Uuid, nullable=True)
    awarded_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    award_remarks: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    delivery_location: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    delivery_deadline: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    terms: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # reusable blueprint; never listed publicly and never opened for bids
    is_template: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    template_name: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)

    bid_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    bids_revealed_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    cancelled_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    bids = relationship("Bid", back_populates="tender", passive_deletes=True)

    __table_args__ = (
        CheckConstraint("bid_count >= 0", name="ck_tenders_bid_count_nonnegative"),
        Index("ix_tenders_status_closing", "status", "closing_date"),
        Index("ix_tenders_created_by", "created_by"),
        Index("ix_tenders_category", "category"),
        Index("ix_tenders_owner_template", "created_by", "is_template"),
    )


class TenderReferenceCounter(Base):
    """
    Year-scoped sequence backing RFQ-<year>-<NNNN> reference codes.
    """
    __tablename__ = "tender_reference_counters"

    year: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    last_value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
