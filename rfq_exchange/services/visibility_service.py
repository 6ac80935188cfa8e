"""
Sealed visibility gate.

Sealing is an access check, not encryption: pricing is replaced by a `Sealed`
marker for everyone except the bid's own vendor until the tender is unsealed.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Tuple, Union

from sqlalchemy.orm import Session

from rfq_exchange.core.clock import Clock, utcnow
from rfq_exchange.core.deadlines import pricing_unsealed
from rfq_exchange.core.errors import Forbidden, NotFound
from rfq_exchange.db.session import transaction
from rfq_exchange.models.bid import Bid
from rfq_exchange.models.tender import Tender
from rfq_exchange.policies.rbac import Principal
from rfq_exchange.policies.tender_policies import is_owner_or_admin
from rfq_exchange.services.audit_service import AuditAction, AuditService
from rfq_exchange.services.bids_service import BidRepository
from rfq_exchange.services.tenders_service import TenderRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Sealed:
    """Amount exists but may not be shown yet."""


@dataclass(frozen=True)
class Revealed:
    amount: Decimal


PriceView = Union[Sealed, Revealed]

SEALED = Sealed()


@dataclass(frozen=True)
class BidPricing:
    unit_price: PriceView
    subtotal: PriceView
    vat_amount: PriceView
    total_price: PriceView

    @property
    def sealed(self) -> bool:
        return isinstance(self.total_price, Sealed)


def can_see_bid_pricing(tender: Tender, bid: Bid, requester: Principal, now: Optional[datetime] = None) -> bool:
    # vendors see their own numbers regardless of seal state, and never anyone else's
    if bid.vendor_id == requester.actor_id:
        return True
    if not is_owner_or_admin(requester, tender):
        return False
    return pricing_unsealed(tender, now)


def pricing_for(tender: Tender, bid: Bid, requester: Principal, now: Optional[datetime] = None) -> BidPricing:
    if not can_see_bid_pricing(tender, bid, requester, now):
        return BidPricing(SEALED, SEALED, SEALED, SEALED)
    return BidPricing(
        unit_price=Revealed(bid.unit_price),
        subtotal=Revealed(bid.subtotal),
        vat_amount=Revealed(bid.vat_amount),
        total_price=Revealed(bid.total_price),
    )


class SealedVisibilityGate:
    def __init__(
        self,
        clock: Clock = utcnow,
        tenders: Optional[TenderRepository] = None,
        bids: Optional[BidRepository] = None,
        audit: Optional[AuditService] = None,
    ):
        self.clock = clock
        self.audit = audit or AuditService(clock)
        self.tenders = tenders or TenderRepository(clock, audit=self.audit)
        self.bids = bids or BidRepository(clock)

    def list_tender_bids(
        self, db: Session, *, tender_id: uuid.UUID, principal: Principal
    ) -> Tuple[Tender, List[Tuple[Bid, BidPricing]]]:
        """
        Bids on a tender, for its owner or an admin.
        """
        tender = self.tenders.get(db, tender_id)
        if tender is None:
            raise NotFound("Tender not found.")
        if not is_owner_or_admin(principal, tender):
            raise Forbidden("Only the tender owner can view its bids.")

        self.tenders.refresh_status(db, tender)
        now = self.clock()
        unsealed = pricing_unsealed(tender, now)
        if unsealed:
            self._reveal(db, tender, principal, now)

        rows = self.bids.list_for_tender(db, tender.id, by_price=unsealed)
        return tender, [(b, pricing_for(tender, b, principal, now)) for b in rows]

    def view_bid(self, db: Session, *, bid_id: uuid.UUID, principal: Principal) -> Tuple[Bid, Tender, BidPricing]:
        bid = self.bids.get(db, bid_id)
        if bid is None:
            raise NotFound("Bid not found.")
        tender = self.tenders.get(db, bid.tender_id)
        if bid.vendor_id != principal.actor_id and not is_owner_or_admin(principal, tender):
            raise Forbidden("Not authorized to view this bid.")

        self.tenders.refresh_status(db, tender)
        now = self.clock()
        if bid.vendor_id != principal.actor_id and pricing_unsealed(tender, now):
            self._reveal(db, tender, principal, now)
        return bid, tender, pricing_for(tender, bid, principal, now)

    def _reveal(self, db: Session, tender: Tender, principal: Principal, now: datetime) -> None:
        """
        First owner/admin view that may see pricing: flag every bid revealed
        and audit it, once per tender. Later bids on an unsealed tender are
        flagged on the next view without a second audit record.
        """
        if tender.bid_count == 0 and not self.tenders.has_bid_rows(db, tender.id):
            return
        with transaction(db):
            flipped = self.bids.mark_all_revealed(db, tender.id)
            if self.tenders.mark_revealed(tender, now):
                self.audit.record(
                    db,
                    actor=principal,
                    action=AuditAction.BIDS_REVEAL,
                    description=f"Bids revealed for RFQ: {tender.reference_code}",
                    target_entity="Tender",
                    target_id=tender.id,
                    payload_summary={"bids": flipped},
                )
                logger.info("bids revealed", extra={"tender_id": str(tender.id), "bids": flipped})
