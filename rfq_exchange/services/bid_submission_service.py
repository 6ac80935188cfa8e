#rfq_exchange/services/bid_submission_service.py
from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from rfq_exchange.core.clock import Clock, utcnow
from rfq_exchange.core.deadlines import can_accept_bids
from rfq_exchange.core.errors import (
    DuplicateBid,
    Forbidden,
    InvalidInput,
    InvalidState,
    NotFound,
    TenderClosed,
)
from rfq_exchange.db.session import transaction
from rfq_exchange.db.types import as_utc
from rfq_exchange.models.bid import Bid
from rfq_exchange.models.enums import BidStatus, NotificationKind
from rfq_exchange.policies.rbac import ACTION_SUBMIT_BID, Principal, require_action
from rfq_exchange.policies.tender_policies import is_invited
from rfq_exchange.services.audit_service import AuditAction, AuditService
from rfq_exchange.services.bids_service import BidRepository, validate_bid_terms
from rfq_exchange.services.notification_service import Notice, NotificationService
from rfq_exchange.services.tenders_service import TenderRepository

logger = logging.getLogger(__name__)

AMENDABLE_FIELDS = {
    "unit_price",
    "quantity",
    "delivery_timeline_days",
    "vat_registered",
    "warranty_months",
    "warranty_terms",
    "remarks",
    "technical_specifications",
    "delivery_date",
}


class BidSubmissionService:
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

    # -----------------------------------------------------------------
    # submit
    # -----------------------------------------------------------------

    def submit(
        self,
        db: Session,
        *,
        tender_id: uuid.UUID,
        principal: Principal,
        unit_price: Any,
        quantity: Any,
        delivery_timeline_days: Any,
        vat_registered: bool = False,
        warranty_months: Any = 0,
        warranty_terms: Optional[str] = None,
        remarks: Optional[str] = None,
        technical_specifications: Optional[str] = None,
        delivery_date: Optional[datetime] = None,
    ) -> Bid:
        """
        Rules, first failure wins:
        - tender exists                          -> NotFound
        - caller is a vendor                     -> Forbidden
        - tender open and before its deadline    -> TenderClosed
        - invited, when the tender is private    -> Forbidden
        - no bid row yet for (tender, vendor)    -> DuplicateBid
        - positive price / quantity / timeline   -> InvalidInput
        """
        with transaction(db):
            tender = self.tenders.lock(db, tender_id)
            require_action(principal, ACTION_SUBMIT_BID)

            if not can_accept_bids(tender, self.clock()):
                raise TenderClosed("This tender is not accepting bids.")

            if tender.private and not is_invited(principal, tender):
                raise Forbidden("You were not invited to this private tender.")

            existing = self.bids.find_for_vendor(db, tender.id, principal.actor_id)
            if existing is not None:
                if existing.status == BidStatus.withdrawn.value:
                    raise DuplicateBid("Your bid on this tender was withdrawn and cannot be resubmitted.")
                raise DuplicateBid("You have already submitted a bid for this tender.")

            price, qty, days, warranty = validate_bid_terms(
                unit_price, quantity, delivery_timeline_days, warranty_months
            )

            bid = self.bids.create(
                db,
                tender_id=tender.id,
                vendor_id=principal.actor_id,
                unit_price=price,
                quantity=qty,
                delivery_timeline_days=days,
                vat_registered=vat_registered,
                warranty_months=warranty,
                warranty_terms=warranty_terms,
                remarks=remarks,
                technical_specifications=technical_specifications,
                delivery_date=as_utc(delivery_date) if delivery_date else None,
            )
            self.tenders.increment_bid_count(tender)

            self.notifier.emit_many(
                db,
                [
                    Notice(
                        kind=NotificationKind.bid_received,
                        recipient_id=tender.created_by,
                        tender_id=tender.id,
                        bid_id=bid.id,
                        title="New Bid Received",
                        message=f'New bid received for "{tender.title}"',
                    ),
                    Notice(
                        kind=NotificationKind.bid_submitted,
                        recipient_id=principal.actor_id,
                        tender_id=tender.id,
                        bid_id=bid.id,
                        title="Bid Submitted",
                        message=f'Your bid for "{tender.title}" was received.',
                    ),
                ],
            )
            self.audit.record(
                db,
                actor=principal,
                action=AuditAction.BID_SUBMIT,
                description=f"Submitted bid for RFQ: {tender.reference_code}",
                target_entity="Bid",
                target_id=bid.id,
                payload_summary={"tender_id": tender.id},
            )

        logger.info(
            "bid submitted",
            extra={"tender_id": str(tender_id), "bid_id": str(bid.id), "vendor_id": principal.actor_id},
        )
        return bid

    # -----------------------------------------------------------------
    # amend
    # -----------------------------------------------------------------

    def amend(
        self,
        db: Session,
        *,
        bid_id: uuid.UUID,
        principal: Principal,
        patch: Dict[str, Any],
    ) -> Bid:
        """
        In-place edit of a pending bid while its tender still accepts bids.
        The buyer is deliberately not notified of amendments.
        """
        unknown = set(patch) - AMENDABLE_FIELDS
        if unknown:
            raise InvalidInput(f"Fields not editable: {', '.join(sorted(unknown))}.")

        with transaction(db):
            bid = self.bids.get(db, bid_id)
            if bid is None:
                raise NotFound("Bid not found.")
            if bid.vendor_id != principal.actor_id:
                raise Forbidden("Not authorized.")

            # lock order: tender before bid, same as every other workflow
            tender = self.tenders.lock(db, bid.tender_id)
            bid = self.bids.get_for_update(db, bid_id)

            if not can_accept_bids(tender, self.clock()):
                raise TenderClosed("Cannot update bid - tender is closed.")
            if bid.status != BidStatus.pending.value:
                raise InvalidState(f"Only pending bids can be amended (status is {bid.status}).")

            merged = {
                "unit_price": patch.get("unit_price", bid.unit_price),
                "quantity": patch.get("quantity", bid.quantity),
                "delivery_timeline_days": patch.get("delivery_timeline_days", bid.delivery_timeline_days),
                "warranty_months": patch.get("warranty_months", bid.warranty_months),
            }
            price, qty, days, warranty = validate_bid_terms(**merged)

            bid.unit_price = price
            bid.quantity = qty
            bid.delivery_timeline_days = days
            bid.warranty_months = warranty
            if "vat_registered" in patch:
                bid.vat_registered = bool(patch["vat_registered"])
            for field in ("warranty_terms", "remarks", "technical_specifications"):
                if field in patch:
                    setattr(bid, field, patch[field])
            if "delivery_date" in patch:
                bid.delivery_date = as_utc(patch["delivery_date"]) if patch["delivery_date"] else None

            self.bids.apply_pricing(bid)
            bid.updated_at = self.clock()

            self.audit.record(
                db,
                actor=principal,
                action=AuditAction.BID_UPDATE,
                description=f"Updated bid for RFQ: {tender.reference_code}",
                target_entity="Bid",
                target_id=bid.id,
                payload_summary={"fields": sorted(patch)},
            )

        return bid
