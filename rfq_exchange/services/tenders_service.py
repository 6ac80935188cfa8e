# rfq_exchange/services/tenders_service.py
from __future__ import annotations

import logging
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import exists, func, or_, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from rfq_exchange.core.clock import Clock, utcnow
from rfq_exchange.core.deadlines import is_expired
from rfq_exchange.core.errors import Conflict, Forbidden, InvalidInput, InvalidState, NotFound
from rfq_exchange.core.numbers import PRICE_PLACES, QUANTITY_PLACES, parse_decimal
from rfq_exchange.db.session import transaction
from rfq_exchange.db.types import as_utc
from rfq_exchange.models.bid import Bid
from rfq_exchange.models.enums import (
    NotificationKind,
    TenderCategory,
    TenderStatus,
    TERMINAL_TENDER_STATUSES,
)
from rfq_exchange.models.tender import Tender, TenderReferenceCounter
from rfq_exchange.policies.rbac import ACTION_CREATE_TENDER, Principal, require_action
from rfq_exchange.policies.tender_policies import can_view_tender, is_owner_or_admin
from rfq_exchange.services.audit_service import AuditAction, AuditService
from rfq_exchange.services.notification_service import Notice, NotificationService

logger = logging.getLogger(__name__)

CATEGORIES = [c.value for c in TenderCategory]

# Fields a buyer may change through update()
PATCHABLE_FIELDS = {
    "title",
    "description",
    "items",
    "category",
    "budget_price",
    "show_budget",
    "closing_date",
    "sealed",
    "private",
    "invited_vendor_ids",
    "delivery_location",
    "delivery_deadline",
    "terms",
}

SORTS = {
    "closingDate": (Tender.closing_date.asc(),),
    "newest": (Tender.created_at.desc(),),
    "highValue": (Tender.budget_price.desc(),),
}


# ---------------------------------------------------------------------
# validation helpers
# ---------------------------------------------------------------------


def _require_text(value: Optional[str], field: str) -> str:
    if value is None or not str(value).strip():
        raise InvalidInput(f"{field} is required.")
    return str(value).strip()


def _normalize_items(items: Any) -> List[Dict[str, Any]]:
    if not items:
        raise InvalidInput("At least one line item is required.")
    out = []
    for idx, item in enumerate(items, start=1):
        if not isinstance(item, dict):
            raise InvalidInput(f"Line item {idx} is malformed.")
        name = (item.get("name") or "").strip()
        if not name:
            raise InvalidInput(f"Line item {idx} needs a name.")
        qty = parse_decimal(item.get("quantity"), f"Line item {idx} quantity", places=QUANTITY_PLACES)
        if qty <= 0:
            raise InvalidInput(f"Line item {idx} quantity must be positive.")
        out.append(
            {
                "name": name,
                "quantity": str(qty),
                "unit": (item.get("unit") or "units").strip() or "units",
                "specifications": item.get("specifications"),
            }
        )
    return out


def _normalize_category(category: Any) -> str:
    value = category.value if isinstance(category, TenderCategory) else category
    if value not in CATEGORIES:
        raise InvalidInput(f"Unknown category: {value!r}.")
    return value


def _normalize_budget(budget: Any) -> Optional[Decimal]:
    if budget is None:
        return None
    b = parse_decimal(budget, "budget_price", places=PRICE_PLACES)
    if b < 0:
        raise InvalidInput("budget_price cannot be negative.")
    return b


def _future_closing_date(closing_date: Optional[datetime], now: datetime) -> datetime:
    if closing_date is None:
        raise InvalidInput("closing_date is required.")
    closing_date = as_utc(closing_date)
    if closing_date <= now:
        raise InvalidInput("Closing date must be in the future.")
    return closing_date


# ---------------------------------------------------------------------
# repository
# ---------------------------------------------------------------------


class TenderRepository:
    """
    Owns Tender rows. Every write to `status` and `bid_count` goes through
    one of the methods below.
    """

    def __init__(
        self,
        clock: Clock = utcnow,
        audit: Optional[AuditService] = None,
        notifier: Optional[NotificationService] = None,
    ):
        self.clock = clock
        self.audit = audit or AuditService(clock)
        self.notifier = notifier or NotificationService(clock)

    # ---------------------------
    # READS
    # ---------------------------

    def get(self, db: Session, tender_id: uuid.UUID) -> Optional[Tender]:
        return db.get(Tender, tender_id)

    def get_for_update(self, db: Session, tender_id: uuid.UUID) -> Optional[Tender]:
        """
        Lock the tender row (FOR UPDATE) to serialize transitions.
        """
        return (
            db.execute(select(Tender).where(Tender.id == tender_id).with_for_update())
            .scalars()
            .one_or_none()
        )

    def lock(self, db: Session, tender_id: uuid.UUID) -> Tender:
        """
        Lock a tender for a workflow, repairing a stale `open` status first.

        The repair is committed on its own: a refusal raised afterwards must
        not roll the close back.
        """
        tender = self.get_for_update(db, tender_id)
        if tender is None:
            raise NotFound("Tender not found.")
        if self._close_if_expired(db, tender):
            db.commit()
            tender = self.get_for_update(db, tender_id)
        return tender

    def refresh_status(self, db: Session, tender: Tender) -> Tender:
        """
        Read-time repair for one tender.
        """
        if self._close_if_expired(db, tender):
            db.commit()
        return tender

    def get_visible(self, db: Session, tender_id: uuid.UUID, principal: Optional[Principal]) -> Tender:
        tender = self.get(db, tender_id)
        if tender is None:
            raise NotFound("Tender not found.")
        self.refresh_status(db, tender)
        if not can_view_tender(principal, tender):
            raise Forbidden("This is a private tender.")
        return tender

    def has_bid_rows(self, db: Session, tender_id: uuid.UUID) -> bool:
        return bool(db.execute(select(exists().where(Bid.tender_id == tender_id))).scalar())

    def list_public(
        self,
        db: Session,
        *,
        status: str = "open",
        category: Optional[str] = None,
        search: Optional[str] = None,
        min_budget: Optional[Decimal] = None,
        max_budget: Optional[Decimal] = None,
        location: Optional[str] = None,
        sort: str = "closingDate",
        page: int = 1,
        limit: int = 12,
    ) -> Tuple[List[Tender], int]:
        """
        Public browse. Private, template and cancelled tenders never appear here.
        """
        self.sweep_expired(db)
        now = self.clock()

        stmt = select(Tender).where(Tender.private.is_(False), Tender.is_template.is_(False))

        if status == "open":
            stmt = stmt.where(Tender.status == TenderStatus.open.value, Tender.closing_date > now)
        elif status == "closed":
            stmt = stmt.where(Tender.status.in_([TenderStatus.closed.value, TenderStatus.awarded.value]))
        else:
            stmt = stmt.where(
                Tender.status.in_(
                    [TenderStatus.open.value, TenderStatus.closed.value, TenderStatus.awarded.value]
                )
            )

        if category:
            stmt = stmt.where(Tender.category == category)

        if search:
            like = f"%{search}%"
            stmt = stmt.where(
                or_(
                    Tender.title.ilike(like),
                    Tender.reference_code.ilike(like),
                    Tender.description.ilike(like),
                )
            )

        if min_budget is not None:
            stmt = stmt.where(Tender.budget_price >= min_budget)
        if max_budget is not None:
            stmt = stmt.where(Tender.budget_price <= max_budget)

        if location:
            stmt = stmt.where(Tender.delivery_location.ilike(f"%{location}%"))

        return self._paginate(db, stmt, SORTS.get(sort, SORTS["closingDate"]), page, limit)

    def list_for_owner(
        self,
        db: Session,
        *,
        owner_id: str,
        status: Optional[str] = None,
        page: int = 1,
        limit: int = 12,
    ) -> Tuple[List[Tender], int]:
        self.sweep_expired(db)
        stmt = select(Tender).where(Tender.created_by == owner_id)
        if status:
            stmt = stmt.where(Tender.status == status)
        return self._paginate(db, stmt, (Tender.created_at.desc(),), page, limit)

    def list_templates(self, db: Session, *, owner_id: str) -> List[Tender]:
        return list(
            db.execute(
                select(Tender)
                .where(Tender.created_by == owner_id, Tender.is_template.is_(True))
                .order_by(Tender.created_at.desc())
            )
            .scalars()
            .all()
        )

    def _paginate(self, db: Session, stmt, order_by, page: int, limit: int) -> Tuple[List[Tender], int]:
        total = db.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()
        rows = (
            db.execute(stmt.order_by(*order_by).offset((page - 1) * limit).limit(limit))
            .scalars()
            .all()
        )
        return list(rows), int(total)

    # ---------------------------
    # MUTATIONS
    # ---------------------------

    def _next_reference(self, db: Session, now: datetime) -> str:
        """
        RFQ-<year>-<NNNN>, from a per-year counter row held under lock.
        """
        year = now.year
        # first tender of a year: concurrent creators may both try to add the row
        insert = pg_insert if db.get_bind().dialect.name == "postgresql" else sqlite_insert
        db.execute(
            insert(TenderReferenceCounter)
            .values(year=year, last_value=0)
            .on_conflict_do_nothing(index_elements=["year"])
        )
        counter = (
            db.execute(
                select(TenderReferenceCounter)
                .where(TenderReferenceCounter.year == year)
                .with_for_update()
            )
            .scalars()
            .one()
        )
        counter.last_value += 1
        db.flush()
        return f"RFQ-{year}-{counter.last_value:04d}"

    def create(
        self,
        db: Session,
        *,
        actor: Principal,
        title: str,
        description: str,
        items: List[Dict[str, Any]],
        category: Any,
        closing_date: datetime,
        initial_status: str = TenderStatus.open.value,
        sealed: bool = True,
        private: bool = False,
        invited_vendor_ids: Optional[List[str]] = None,
        budget_price: Optional[Decimal] = None,
        show_budget: bool = False,
        delivery_location: Optional[str] = None,
        delivery_deadline: Optional[datetime] = None,
        terms: Optional[str] = None,
        is_template: bool = False,
        template_name: Optional[str] = None,
    ) -> Tender:
        require_action(actor, ACTION_CREATE_TENDER)
        now = self.clock()

        if initial_status not in (TenderStatus.draft.value, TenderStatus.open.value):
            raise InvalidInput("A tender starts as 'draft' or 'open'.")
        if is_template:
            # templates stay drafts; buyers copy them into a real tender
            initial_status = TenderStatus.draft.value
            template_name = (template_name or "").strip() or _require_text(title, "title")
        else:
            template_name = None

        values = dict(
            title=_require_text(title, "title"),
            description=_require_text(description, "description"),
            items_json=_normalize_items(items),
            category=_normalize_category(category),
            closing_date=_future_closing_date(closing_date, now),
            budget_price=_normalize_budget(budget_price),
            delivery_deadline=as_utc(delivery_deadline) if delivery_deadline else None,
        )
        invited = sorted(set(invited_vendor_ids or [])) if private else []

        with transaction(db):
            tender = Tender(
                reference_code=self._next_reference(db, now),
                status=initial_status,
                sealed=bool(sealed),
                private=bool(private),
                invited_vendor_ids=invited,
                show_budget=bool(show_budget),
                delivery_location=delivery_location,
                terms=terms,
                is_template=bool(is_template),
                template_name=template_name,
                created_by=actor.actor_id,
                organization=actor.organization,
                bid_count=0,
                created_at=now,
                updated_at=now,
                **values,
            )
            db.add(tender)
            db.flush()

            self.audit.record(
                db,
                actor=actor,
                action=AuditAction.RFQ_CREATE,
                description=f"Created RFQ: {tender.reference_code} - {tender.title}",
                target_entity="Tender",
                target_id=tender.id,
                payload_summary={
                    "status": tender.status,
                    "sealed": tender.sealed,
                    "private": tender.private,
                    "is_template": tender.is_template,
                },
            )
            if tender.status == TenderStatus.open.value:
                self._invite(db, tender, invited)

        logger.info("tender created", extra={"tender_id": str(tender.id), "reference": tender.reference_code})
        return tender

    def update(
        self,
        db: Session,
        *,
        tender_id: uuid.UUID,
        actor: Principal,
        patch: Dict[str, Any],
    ) -> Tender:
        unknown = set(patch) - PATCHABLE_FIELDS
        if unknown:
            raise InvalidInput(f"Fields not editable: {', '.join(sorted(unknown))}.")

        with transaction(db):
            tender = self.lock(db, tender_id)

            if not is_owner_or_admin(actor, tender):
                raise Forbidden("Not authorized to update this tender.")
            if tender.status in (
                TenderStatus.closed.value,
                TenderStatus.awarded.value,
                TenderStatus.cancelled.value,
            ):
                raise InvalidState(f"Cannot edit a {tender.status} tender.")
            if tender.bid_count > 0 and tender.status != TenderStatus.draft.value:
                raise Conflict("Cannot edit a tender that already has bids.")

            now = self.clock()
            previously_invited = set(tender.invited_vendor_ids or [])

            for field, value in patch.items():
                if field in ("title", "description"):
                    setattr(tender, field, _require_text(value, field))
                elif field == "items":
                    tender.items_json = _normalize_items(value)
                elif field == "category":
                    tender.category = _normalize_category(value)
                elif field == "budget_price":
                    tender.budget_price = _normalize_budget(value)
                elif field == "closing_date":
                    tender.closing_date = _future_closing_date(value, now)
                elif field == "delivery_deadline":
                    tender.delivery_deadline = as_utc(value) if value else None
                elif field == "invited_vendor_ids":
                    tender.invited_vendor_ids = sorted(set(value or []))
                elif field in ("show_budget", "sealed", "private"):
                    setattr(tender, field, bool(value))
                else:
                    setattr(tender, field, value)

            if not tender.private:
                tender.invited_vendor_ids = []
            tender.updated_at = now

            self.audit.record(
                db,
                actor=actor,
                action=AuditAction.RFQ_UPDATE,
                description=f"Updated RFQ: {tender.reference_code}",
                target_entity="Tender",
                target_id=tender.id,
                payload_summary={"fields": sorted(patch)},
            )
            if tender.status == TenderStatus.open.value:
                newly_invited = set(tender.invited_vendor_ids) - previously_invited
                self._invite(db, tender, sorted(newly_invited))

        return tender

    def publish(self, db: Session, *, tender_id: uuid.UUID, actor: Principal) -> Tender:
        with transaction(db):
            tender = self.lock(db, tender_id)
            if not is_owner_or_admin(actor, tender):
                raise Forbidden("Not authorized to publish this tender.")
            if tender.is_template:
                raise InvalidState("Templates cannot be published; create a tender from it instead.")
            if tender.status != TenderStatus.draft.value:
                raise InvalidState(f"Only draft tenders can be published (status is {tender.status}).")
            now = self.clock()
            if is_expired(tender, now):
                raise InvalidInput("Closing date has passed; move it forward before publishing.")

            tender.status = TenderStatus.open.value
            tender.updated_at = now

            self.audit.record(
                db,
                actor=actor,
                action=AuditAction.RFQ_PUBLISH,
                description=f"Published RFQ: {tender.reference_code}",
                target_entity="Tender",
                target_id=tender.id,
            )
            self._invite(db, tender, tender.invited_vendor_ids or [])

        logger.info("tender published", extra={"tender_id": str(tender.id)})
        return tender

    def remove(self, db: Session, *, tender_id: uuid.UUID, actor: Principal) -> str:
        """
        No bids ever placed -> hard delete. Any bid row (even withdrawn) ->
        cancel, so bid history is never destroyed.
        """
        with transaction(db):
            tender = self.lock(db, tender_id)
            if not is_owner_or_admin(actor, tender):
                raise Forbidden("Not authorized to delete this tender.")
            if tender.status in TERMINAL_TENDER_STATUSES:
                raise InvalidState(f"Tender is already {tender.status}.")

            if tender.bid_count > 0 or self.has_bid_rows(db, tender.id):
                now = self.clock()
                tender.status = TenderStatus.cancelled.value
                tender.cancelled_at = now
                tender.updated_at = now
                self.audit.record(
                    db,
                    actor=actor,
                    action=AuditAction.RFQ_CANCEL,
                    description=f"Cancelled RFQ: {tender.reference_code}",
                    target_entity="Tender",
                    target_id=tender.id,
                    payload_summary={"bid_count": tender.bid_count},
                )
                outcome = "cancelled"
            else:
                self.audit.record(
                    db,
                    actor=actor,
                    action=AuditAction.RFQ_DELETE,
                    description=f"Deleted RFQ: {tender.reference_code}",
                    target_entity="Tender",
                    target_id=tender.id,
                )
                db.delete(tender)
                outcome = "deleted"

        logger.info("tender removed", extra={"tender_id": str(tender_id), "outcome": outcome})
        return outcome

    def sweep_expired(self, db: Session) -> List[Tender]:
        """
        Close every open tender whose deadline has passed.
        Idempotent: already-closed tenders are not selected again.
        """
        now = self.clock()
        with transaction(db):
            expired = (
                db.execute(
                    select(Tender)
                    .where(Tender.status == TenderStatus.open.value, Tender.closing_date <= now)
                    .with_for_update()
                )
                .scalars()
                .all()
            )
            for tender in expired:
                self.mark_closed(db, tender, now)

        if expired:
            logger.info("expired tenders closed", extra={"count": len(expired)})
        return list(expired)

    # ---------------------------
    # contended-state entry points
    # ---------------------------

    def _close_if_expired(self, db: Session, tender: Tender) -> bool:
        now = self.clock()
        if tender.status == TenderStatus.open.value and is_expired(tender, now):
            self.mark_closed(db, tender, now)
            return True
        return False

    def mark_closed(self, db: Session, tender: Tender, now: datetime) -> None:
        tender.status = TenderStatus.closed.value
        tender.updated_at = now
        self.audit.record(
            db,
            actor=None,
            action=AuditAction.RFQ_CLOSE,
            description=f"Closed RFQ: {tender.reference_code} (deadline passed)",
            target_entity="Tender",
            target_id=tender.id,
            payload_summary={"bid_count": tender.bid_count},
        )
        self.notifier.emit(
            db,
            Notice(
                kind=NotificationKind.tender_closed,
                recipient_id=tender.created_by,
                tender_id=tender.id,
                title="Tender Closed",
                message=f'Bidding on "{tender.title}" has closed with {tender.bid_count} bid(s).',
            ),
        )

    def increment_bid_count(self, tender: Tender) -> None:
        tender.bid_count += 1
        tender.updated_at = self.clock()

    def decrement_bid_count(self, tender: Tender) -> None:
        if tender.bid_count <= 0:
            raise InvalidState("Bid counter is already zero.")
        tender.bid_count -= 1
        tender.updated_at = self.clock()

    def mark_awarded(self, tender: Tender, *, bid: Bid, remarks: Optional[str], now: datetime) -> None:
        tender.status = TenderStatus.awarded.value
        tender.awarded_bid_id = bid.id
        tender.awarded_vendor_id = bid.vendor_id
        tender.awarded_at = now
        tender.award_remarks = remarks
        tender.updated_at = now

    def mark_revealed(self, tender: Tender, now: datetime) -> bool:
        """Returns True only the first time (drives the once-per-tender audit)."""
        if tender.bids_revealed_at is not None:
            return False
        tender.bids_revealed_at = now
        return True

    def _invite(self, db: Session, tender: Tender, vendor_ids: List[str]) -> None:
        if not tender.private or not vendor_ids:
            return
        self.notifier.emit_many(
            db,
            [
                Notice(
                    kind=NotificationKind.private_invite,
                    recipient_id=vid,
                    tender_id=tender.id,
                    title="Private Tender Invitation",
                    message=f"You have been invited to bid on: {tender.title}",
                )
                for vid in vendor_ids
            ],
        )
