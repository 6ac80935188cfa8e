from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Dict, Optional

import sqlalchemy as sa
from sqlalchemy import String, Text, Index
from sqlalchemy.orm import Mapped, mapped_column

from rfq_exchange.db.base import Base
from rfq_exchange.db.types import JSONType, UTCDateTime


class AuditLogRecord(Base):
    """
    Audit trail record, one per logical transition.
    - Append-only (never UPDATE)
    - Stores request-id, actor, action, target entity, payload hash and a safe payload summary.
    """
    __tablename__ = "audit_log_records"

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid.uuid4)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    # Correlation
    request_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True, index=True)

    # Actor / auth context
    actor_id: Mapped[str] = mapped_column(String(128), nullable=False)
    actor_role: Mapped[str] = mapped_column(String(32), nullable=False)

    # What happened
    action: Mapped[str] = mapped_column(String(64), nullable=False)  # e.g. bid_submit
    description: Mapped[str] = mapped_column(Text, nullable=False)

    # Target
    target_entity: Mapped[str] = mapped_column(String(32), nullable=False)  # Tender | Bid
    target_id: Mapped[str] = mapped_column(String(64), nullable=False)

    # Payload traceability (hash + safe summary)
    payload_hash: Mapped[str] = mapped_column(String(128), nullable=False)
    payload_summary_json: Mapped[Dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)

    __table_args__ = (
        Index("ix_audit_target", "target_entity", "target_id"),
        Index("ix_audit_action", "action"),
        Index("ix_audit_created", "created_at"),
    )
