from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy import select

from rfq_exchange.core.security import create_access_token
from rfq_exchange.models.audit_log import AuditLogRecord
from rfq_exchange.models.enums import ParticipantRole
from rfq_exchange.models.notification_event import NotificationEvent
from rfq_exchange.policies.rbac import Principal
from rfq_exchange.services.audit_service import AuditService
from rfq_exchange.services.award_service import AwardService
from rfq_exchange.services.bid_cancellation_service import BidCancellationService
from rfq_exchange.services.bid_submission_service import BidSubmissionService
from rfq_exchange.services.bids_service import BidRepository
from rfq_exchange.services.notification_service import NotificationService
from rfq_exchange.services.tenders_service import TenderRepository
from rfq_exchange.services.visibility_service import SealedVisibilityGate

T0 = datetime(2025, 3, 3, 9, 0, tzinfo=timezone.utc)


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class Services:
    """Every repository and workflow wired to the same clock."""

    def __init__(self, clock: FrozenClock):
        self.clock = clock
        self.audit = AuditService(clock)
        self.notifier = NotificationService(clock)
        self.tenders = TenderRepository(clock, audit=self.audit, notifier=self.notifier)
        self.bids = BidRepository(clock, vat_rate_percent=Decimal("18"))
        self.submission = BidSubmissionService(clock, self.tenders, self.bids, self.audit, self.notifier)
        self.cancellation = BidCancellationService(
            clock, self.tenders, self.bids, self.audit, grace_window=timedelta(minutes=5)
        )
        self.award = AwardService(clock, self.tenders, self.bids, self.audit, self.notifier)
        self.gate = SealedVisibilityGate(clock, self.tenders, self.bids, self.audit)


def make_vendor(n: int) -> Principal:
    return Principal(actor_id=f"vendor-{n}", role=ParticipantRole.VENDOR, display_name=f"Vendor {n}")


def line_items():
    return [{"name": "Laptop", "quantity": 10, "unit": "pcs", "specifications": "16GB RAM"}]


def new_tender(svc: Services, db, owner: Principal, *, closes_in=timedelta(days=2), **overrides):
    values = dict(
        actor=owner,
        title="Office laptops",
        description="Ten business laptops",
        items=line_items(),
        category="IT & Electronics",
        closing_date=svc.clock() + closes_in,
    )
    values.update(overrides)
    return svc.tenders.create(db, **values)


def submit(svc: Services, db, tender, vendor: Principal, unit_price="100.00", quantity="10", **kw):
    kw.setdefault("delivery_timeline_days", 14)
    return svc.submission.submit(
        db,
        tender_id=tender.id,
        principal=vendor,
        unit_price=unit_price,
        quantity=quantity,
        **kw,
    )


def audit_actions(db, target_id=None):
    stmt = select(AuditLogRecord).order_by(AuditLogRecord.created_at)
    if target_id is not None:
        stmt = stmt.where(AuditLogRecord.target_id == str(target_id))
    return [r.action for r in db.execute(stmt).scalars().all()]


def notifications(db, kind=None):
    stmt = select(NotificationEvent)
    if kind is not None:
        stmt = stmt.where(NotificationEvent.kind == kind)
    return list(db.execute(stmt).scalars().all())


def auth(actor_id: str, role: str, **claims) -> dict:
    token = create_access_token(actor_id, {"role": role, **claims})
    return {"Authorization": f"Bearer {token}"}
