#rfq_exchange/services/award_service.py
from __future__ import annotations

import logging
import uuid
from typing import Optional

from sqlalchemy.orm import Session

from rfq_exchange.core.clock import Clock, utcnow
from rfq_exchange.core.deadlines import is_expired
from rfq_exchange.core.errors import Forbidden, InvalidBid, InvalidState, TooEarly
from rfq_exchange.db.session import transaction
from rfq_exchange.models.enums import BidStatus, NotificationKind, TenderStatus
from rfq_exchange.models.tender import Tender
from rfq_exchange.policies.rbac import Principal
from rfq_exchange.policies.tender_policies import is_owner_or_admin
from rfq_exchange.services.audit_service import AuditAction, AuditService
from rfq_exchange.services.bids_service import BidRepository
from rfq_exchange.services.notification_service import Notice, NotificationService
from rfq_exchange.services.tenders_service import TenderRepository

logger = logging.getLogger(__name__)

NOT_AWARDABLE = (
    TenderStatus.awarded.value,
    TenderStatus.cancelled.value,
    TenderStatus.draft.value,
)


class AwardService:
    def __init__(
        self,
        clock: Clock = utcnow,
        tenders: Optional[TenderRepository] = None,
        bids: Optional[BidRepository] = None,
        audit: Optional[AuditService] = None,
        notifier: Optional[NotificationService] = None,
    ):
        self.clock = clock
        self.audit = audit or AuditService(clock)
        self.notifier = notifier or NotificationService(clock)
        self.tenders = tenders or TenderRepository(clock, audit=self.audit, notifier=self.notifier)
        self.bids = bids or BidRepository(clock)

    def award(
        self,
        db: Session,
        *,
        tender_id: uuid.UUID,
        principal: Principal,
        winning_bid_id: uuid.UUID,
        remarks: Optional[str] = None,
    ) -> Tender:
        """
        Pick the winner. Everything below happens in one transaction or not at all:
        tender -> awarded, winner -> won, every other undecided bid -> lost,
        notifications to all of them and one audit record.
        """
        with transaction(db):
            tender = self.tenders.lock(db, tender_id)
            if not is_owner_or_admin(principal, tender):
                raise Forbidden("Not authorized to award this tender.")
            if tender.status in NOT_AWARDABLE:
                raise InvalidState(f"Cannot award a {tender.status} tender.")

            now = self.clock()
            # sealed tenders: the deadline decides, whatever the stored status says
            if tender.sealed and not is_expired(tender, now):
                raise TooEarly("Cannot award a sealed tender before its closing date.")

            winner = self.bids.get_for_update(db, winning_bid_id)
            if winner is None or winner.tender_id != tender.id:
                raise InvalidBid("Winning bid does not belong to this tender.")
            if winner.status != BidStatus.pending.value:
                raise InvalidBid(f"Winning bid is not pending (status is {winner.status}).")

            losers = self.bids.settle_award(db, tender_id=tender.id, winner=winner)
            self.tenders.mark_awarded(tender, bid=winner, remarks=remarks, now=now)

            notices = [
                Notice(
                    kind=NotificationKind.tender_awarded,
                    recipient_id=winner.vendor_id,
                    tender_id=tender.id,
                    bid_id=winner.id,
                    title="Congratulations! You Won",
                    message=f'Your bid for "{tender.title}" has been accepted.',
                )
            ]
            notices.extend(
                Notice(
                    kind=NotificationKind.tender_lost,
                    recipient_id=b.vendor_id,
                    tender_id=tender.id,
                    bid_id=b.id,
                    title="Tender Awarded",
                    message=f'The tender "{tender.title}" has been awarded to another vendor.',
                )
                for b in losers
            )
            self.notifier.emit_many(db, notices)

            self.audit.record(
                db,
                actor=principal,
                action=AuditAction.RFQ_AWARD,
                description=f"Awarded RFQ: {tender.reference_code}",
                target_entity="Tender",
                target_id=tender.id,
                payload_summary={
                    "winning_bid_id": winner.id,
                    "vendor_id": winner.vendor_id,
                    "losers": len(losers),
                },
            )

        logger.info(
            "tender awarded",
            extra={"tender_id": str(tender_id), "bid_id": str(winning_bid_id), "losers": len(losers)},
        )
        return tender
