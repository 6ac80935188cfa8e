#rfq_exchange/services/bids_service.py
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from rfq_exchange.core.clock import Clock, utcnow
from rfq_exchange.core.config import get_settings
from rfq_exchange.core.errors import DuplicateBid, InvalidInput
from rfq_exchange.core.numbers import PRICE_PLACES, QUANTITY_PLACES, parse_decimal
from rfq_exchange.models.bid import Bid
from rfq_exchange.models.enums import BidStatus, TenderStatus
from rfq_exchange.models.tender import Tender

CENT = Decimal("0.01")

# statuses still waiting on an award decision
UNDECIDED_BID_STATUSES = (BidStatus.pending.value, BidStatus.under_review.value)


# ---------------------------------------------------------------------
# helpers
# ---------------------------------------------------------------------


def _money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def compute_totals(
    unit_price: Decimal,
    quantity: Decimal,
    vat_registered: bool,
    vat_rate_percent: Decimal,
) -> Tuple[Decimal, Decimal, Decimal]:
    """
    (subtotal, vat_amount, total_price). VAT applies only to VAT-registered vendors.
    """
    subtotal = _money(unit_price * quantity)
    vat = _money(subtotal * vat_rate_percent / Decimal(100)) if vat_registered else Decimal("0.00")
    return subtotal, vat, subtotal + vat


def validate_bid_terms(
    unit_price: Any,
    quantity: Any,
    delivery_timeline_days: Any,
    warranty_months: Any = 0,
) -> Tuple[Decimal, Decimal, int, int]:
    price = parse_decimal(unit_price, "unit_price", places=PRICE_PLACES)
    qty = parse_decimal(quantity, "quantity", places=QUANTITY_PLACES)
    if price <= 0:
        raise InvalidInput("unit_price must be greater than zero.")
    if qty <= 0:
        raise InvalidInput("quantity must be greater than zero.")
    try:
        days = int(delivery_timeline_days)
    except (TypeError, ValueError):
        raise InvalidInput("delivery_timeline_days must be a whole number of days.")
    if days <= 0:
        raise InvalidInput("delivery_timeline_days must be greater than zero.")
    try:
        warranty = int(warranty_months or 0)
    except (TypeError, ValueError):
        raise InvalidInput("warranty_months must be a whole number of months.")
    if warranty < 0:
        raise InvalidInput("warranty_months cannot be negative.")
    return price, qty, days, warranty


# ---------------------------------------------------------------------
# repository
# ---------------------------------------------------------------------


class BidRepository:
    """
    Owns Bid rows: uniqueness per (tender, vendor), price totals, bid status.
    Never touches the tender's counter; workflows pair each insert/removal
    with the TenderRepository entry point in the same transaction.
    """

    def __init__(self, clock: Clock = utcnow, vat_rate_percent: Optional[Decimal] = None):
        self.clock = clock
        self.vat_rate_percent = (
            vat_rate_percent if vat_rate_percent is not None else get_settings().vat_rate_percent
        )

    # -----------------------------------------------------------------
    # reads
    # -----------------------------------------------------------------

    def get(self, db: Session, bid_id: uuid.UUID) -> Optional[Bid]:
        return db.get(Bid, bid_id)

    def get_for_update(self, db: Session, bid_id: uuid.UUID) -> Optional[Bid]:
        return (
            db.execute(select(Bid).where(Bid.id == bid_id).with_for_update())
            .scalars()
            .one_or_none()
        )

    def find_for_vendor(self, db: Session, tender_id: uuid.UUID, vendor_id: str) -> Optional[Bid]:
        """Any row for the pair, withdrawn included."""
        return db.execute(
            select(Bid).where(Bid.tender_id == tender_id, Bid.vendor_id == vendor_id)
        ).scalar_one_or_none()

    def list_for_tender(self, db: Session, tender_id: uuid.UUID, *, by_price: bool) -> List[Bid]:
        """
        by_price=False keeps submission order; sorting sealed bids by amount
        would leak their ranking.
        """
        order = (Bid.total_price.asc(), Bid.created_at.asc()) if by_price else (Bid.created_at.asc(),)
        return list(
            db.execute(select(Bid).where(Bid.tender_id == tender_id).order_by(*order)).scalars().all()
        )

    def count_active(self, db: Session, tender_id: uuid.UUID) -> int:
        return int(
            db.execute(
                select(func.count())
                .select_from(Bid)
                .where(Bid.tender_id == tender_id, Bid.status != BidStatus.withdrawn.value)
            ).scalar_one()
        )

    def list_for_vendor(
        self,
        db: Session,
        *,
        vendor_id: str,
        status: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
    ) -> Tuple[List[Bid], int]:
        stmt = select(Bid).where(Bid.vendor_id == vendor_id)
        if status and status != "all":
            stmt = stmt.where(Bid.status == status)
        total = db.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()
        rows = (
            db.execute(stmt.order_by(Bid.created_at.desc()).offset((page - 1) * limit).limit(limit))
            .scalars()
            .all()
        )
        return list(rows), int(total)

    def vendor_stats(self, db: Session, vendor_id: str) -> Dict[str, int]:
        """
        Per-status counts for a vendor, ignoring bids on cancelled tenders.
        """
        rows = db.execute(
            select(Bid.status, func.count())
            .join(Tender, Tender.id == Bid.tender_id)
            .where(Bid.vendor_id == vendor_id, Tender.status != TenderStatus.cancelled.value)
            .group_by(Bid.status)
        ).all()
        stats = {"total": 0, "pending": 0, "won": 0, "lost": 0, "withdrawn": 0}
        for status, n in rows:
            if status in stats:
                stats[status] = int(n)
            stats["total"] += int(n)
        return stats

    # -----------------------------------------------------------------
    # mutations (caller owns the transaction)
    # -----------------------------------------------------------------

    def apply_pricing(self, bid: Bid) -> None:
        bid.vat_rate = self.vat_rate_percent
        bid.subtotal, bid.vat_amount, bid.total_price = compute_totals(
            Decimal(bid.unit_price), Decimal(bid.quantity), bid.vat_registered, self.vat_rate_percent
        )

    def create(
        self,
        db: Session,
        *,
        tender_id: uuid.UUID,
        vendor_id: str,
        unit_price: Decimal,
        quantity: Decimal,
        delivery_timeline_days: int,
        vat_registered: bool = False,
        warranty_months: int = 0,
        warranty_terms: Optional[str] = None,
        remarks: Optional[str] = None,
        technical_specifications: Optional[str] = None,
        delivery_date: Optional[datetime] = None,
    ) -> Bid:
        now = self.clock()
        bid = Bid(
            tender_id=tender_id,
            vendor_id=vendor_id,
            unit_price=unit_price,
            quantity=quantity,
            vat_registered=bool(vat_registered),
            delivery_timeline_days=delivery_timeline_days,
            delivery_date=delivery_date,
            warranty_months=warranty_months,
            warranty_terms=warranty_terms,
            remarks=remarks,
            technical_specifications=technical_specifications,
            status=BidStatus.pending.value,
            revealed=False,
            created_at=now,
            updated_at=now,
        )
        self.apply_pricing(bid)
        db.add(bid)
        try:
            db.flush()
        except IntegrityError:
            db.rollback()
            # lost the race against a concurrent submission for the same pair;
            # any other constraint failure is not the vendor's duplicate
            if self._pair_taken(db, tender_id, vendor_id):
                raise DuplicateBid("You have already submitted a bid for this tender.")
            raise
        return bid

    def _pair_taken(self, db: Session, tender_id: uuid.UUID, vendor_id: str) -> bool:
        return (
            db.execute(
                select(Bid.id).where(Bid.tender_id == tender_id, Bid.vendor_id == vendor_id)
            ).first()
            is not None
        )

    def delete(self, db: Session, bid: Bid) -> None:
        db.delete(bid)
        db.flush()

    def withdraw(self, bid: Bid, *, reason: Optional[str]) -> None:
        now = self.clock()
        bid.status = BidStatus.withdrawn.value
        bid.withdrawn_at = now
        bid.withdrawal_reason = reason
        bid.updated_at = now

    def settle_award(self, db: Session, *, tender_id: uuid.UUID, winner: Bid) -> List[Bid]:
        """
        winner -> won, every other undecided bid -> lost. Returns the losers.
        """
        now = self.clock()
        losers = list(
            db.execute(
                select(Bid)
                .where(
                    Bid.tender_id == tender_id,
                    Bid.id != winner.id,
                    Bid.status.in_(UNDECIDED_BID_STATUSES),
                )
                .with_for_update()
            )
            .scalars()
            .all()
        )
        winner.status = BidStatus.won.value
        winner.updated_at = now
        for b in losers:
            b.status = BidStatus.lost.value
            b.updated_at = now
        db.flush()
        return losers

    def mark_all_revealed(self, db: Session, tender_id: uuid.UUID) -> int:
        res = db.execute(
            update(Bid)
            .where(Bid.tender_id == tender_id, Bid.revealed.is_(False))
            .values(revealed=True)
            .execution_options(synchronize_session="fetch")
        )
        return int(res.rowcount or 0)
