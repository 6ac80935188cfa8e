#rfq_exchange/services/bid_cancellation_service.py
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from sqlalchemy.orm import Session

from rfq_exchange.core.clock import Clock, utcnow
from rfq_exchange.core.config import get_settings
from rfq_exchange.core.deadlines import can_accept_bids
from rfq_exchange.core.errors import Forbidden, InvalidState, NotFound
from rfq_exchange.db.session import transaction
from rfq_exchange.models.enums import BidStatus
from rfq_exchange.policies.rbac import Principal
from rfq_exchange.services.audit_service import AuditAction, AuditService
from rfq_exchange.services.bids_service import BidRepository
from rfq_exchange.services.tenders_service import TenderRepository

logger = logging.getLogger(__name__)

MODE_CANCELLED = "cancelled"
MODE_WITHDRAWN = "withdrawn"


@dataclass(frozen=True)
class CancelOutcome:
    mode: str
    bid_id: uuid.UUID
    tender_id: uuid.UUID


class BidCancellationService:
    """
    A vendor pulling a pending bid. Inside the grace window the bid is erased
    (as if never submitted); after it, the row stays as a withdrawn record.
    """

    def __init__(
        self,
        clock: Clock = utcnow,
        tenders: Optional[TenderRepository] = None,
        bids: Optional[BidRepository] = None,
        audit: Optional[AuditService] = None,
        grace_window: Optional[timedelta] = None,
    ):
        self.clock = clock
        self.audit = audit or AuditService(clock)
        self.tenders = tenders or TenderRepository(clock, audit=self.audit)
        self.bids = bids or BidRepository(clock)
        self.grace_window = (
            grace_window
            if grace_window is not None
            else timedelta(seconds=get_settings().bid_grace_window_seconds)
        )

    def cancel_or_withdraw(
        self,
        db: Session,
        *,
        bid_id: uuid.UUID,
        principal: Principal,
        reason: Optional[str] = None,
    ) -> CancelOutcome:
        with transaction(db):
            bid = self.bids.get(db, bid_id)
            if bid is None:
                raise NotFound("Bid not found.")
            if bid.vendor_id != principal.actor_id:
                raise Forbidden("Not authorized.")

            tender = self.tenders.lock(db, bid.tender_id)
            bid = self.bids.get_for_update(db, bid_id)

            now = self.clock()
            if not can_accept_bids(tender, now):
                raise InvalidState("Cannot cancel bid - tender is closed.")
            if bid.status != BidStatus.pending.value:
                raise InvalidState(f"Only pending bids can be cancelled (status is {bid.status}).")

            if now - bid.created_at <= self.grace_window:
                self.bids.delete(db, bid)
                self.tenders.decrement_bid_count(tender)
                self.audit.record(
                    db,
                    actor=principal,
                    action=AuditAction.BID_CANCEL,
                    description=f"Cancelled bid for RFQ: {tender.reference_code}",
                    target_entity="Bid",
                    target_id=bid_id,
                    payload_summary={"tender_id": tender.id},
                )
                mode = MODE_CANCELLED
            else:
                self.bids.withdraw(bid, reason=reason)
                self.tenders.decrement_bid_count(tender)
                self.audit.record(
                    db,
                    actor=principal,
                    action=AuditAction.BID_WITHDRAW,
                    description=f"Withdrew bid for RFQ: {tender.reference_code}",
                    target_entity="Bid",
                    target_id=bid_id,
                    payload_summary={"tender_id": tender.id, "reason": reason},
                )
                mode = MODE_WITHDRAWN

            outcome = CancelOutcome(mode=mode, bid_id=bid_id, tender_id=tender.id)

        logger.info("bid %s", mode, extra={"bid_id": str(bid_id), "tender_id": str(outcome.tender_id)})
        return outcome
