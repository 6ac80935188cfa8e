"""
Outbound notifications.

The notification service is an external collaborator; the core only records
what should be delivered, in the same transaction as the change that caused it.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from rfq_exchange.core.clock import Clock, utcnow
from rfq_exchange.models.enums import NotificationKind
from rfq_exchange.models.notification_event import NotificationEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Notice:
    kind: NotificationKind
    recipient_id: str
    tender_id: uuid.UUID
    title: str
    message: str
    bid_id: Optional[uuid.UUID] = None


class NotificationService:
    def __init__(self, clock: Clock = utcnow):
        self.clock = clock

    def emit(self, db: Session, notice: Notice) -> NotificationEvent:
        return self.emit_many(db, [notice])[0]

    def emit_many(self, db: Session, notices: Iterable[Notice]) -> List[NotificationEvent]:
        now = self.clock()
        rows = [
            NotificationEvent(
                kind=n.kind.value,
                recipient_id=n.recipient_id,
                tender_id=n.tender_id,
                bid_id=n.bid_id,
                title=n.title,
                message=n.message,
                created_at=now,
            )
            for n in notices
        ]
        if not rows:
            return rows
        db.add_all(rows)
        for r in rows:
            logger.info(
                "notification queued",
                extra={"kind": r.kind, "recipient_id": r.recipient_id, "tender_id": str(r.tender_id)},
            )
        return rows
