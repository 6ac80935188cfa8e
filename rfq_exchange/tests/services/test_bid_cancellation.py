import uuid

import pytest

from rfq_exchange.core.errors import Forbidden, InvalidState, NotFound
from rfq_exchange.models.enums import BidStatus
from rfq_exchange.services.audit_service import AuditAction
from rfq_exchange.tests.factories import audit_actions, submit


def test_cancel_inside_grace_window_deletes(db, svc, vendor, open_tender, clock):
    bid = submit(svc, db, open_tender, vendor)
    bid_id = bid.id

    clock.advance(minutes=4, seconds=59)
    outcome = svc.cancellation.cancel_or_withdraw(db, bid_id=bid_id, principal=vendor, reason=None)

    assert outcome.mode == "cancelled"
    assert outcome.tender_id == open_tender.id
    assert svc.bids.get(db, bid_id) is None
    assert svc.tenders.get(db, open_tender.id).bid_count == 0
    assert audit_actions(db, bid_id) == [AuditAction.BID_SUBMIT, AuditAction.BID_CANCEL]


def test_grace_window_boundary_is_inclusive(db, svc, vendor, open_tender, clock):
    bid = submit(svc, db, open_tender, vendor)
    clock.advance(minutes=5)
    outcome = svc.cancellation.cancel_or_withdraw(db, bid_id=bid.id, principal=vendor, reason=None)
    assert outcome.mode == "cancelled"


def test_withdraw_after_grace_window_keeps_row(db, svc, vendor, open_tender, clock):
    bid = submit(svc, db, open_tender, vendor)

    clock.advance(minutes=5, seconds=1)
    outcome = svc.cancellation.cancel_or_withdraw(db, bid_id=bid.id, principal=vendor, reason="capacity")

    assert outcome.mode == "withdrawn"
    bid = svc.bids.get(db, bid.id)
    assert bid.status == BidStatus.withdrawn.value
    assert bid.withdrawal_reason == "capacity"
    assert bid.withdrawn_at == clock()
    assert svc.tenders.get(db, open_tender.id).bid_count == 0
    assert audit_actions(db, bid.id)[-1] == AuditAction.BID_WITHDRAW


def test_submit_then_withdraw_scenario(db, svc, vendor, vendor2, open_tender, clock):
    # T0 submit, T0+10min withdraw; the other vendor's bid is untouched
    mine = submit(svc, db, open_tender, vendor)
    theirs = submit(svc, db, open_tender, vendor2)
    assert svc.tenders.get(db, open_tender.id).bid_count == 2

    clock.advance(minutes=10)
    svc.cancellation.cancel_or_withdraw(db, bid_id=mine.id, principal=vendor, reason=None)

    assert svc.tenders.get(db, open_tender.id).bid_count == 1
    assert svc.bids.get(db, theirs.id).status == BidStatus.pending.value
    assert svc.bids.count_active(db, open_tender.id) == 1


def test_cancel_refusals(db, svc, vendor, vendor2, open_tender, clock):
    bid = submit(svc, db, open_tender, vendor)

    with pytest.raises(NotFound):
        svc.cancellation.cancel_or_withdraw(db, bid_id=uuid.uuid4(), principal=vendor, reason=None)
    with pytest.raises(Forbidden):
        svc.cancellation.cancel_or_withdraw(db, bid_id=bid.id, principal=vendor2, reason=None)

    clock.advance(days=2)
    with pytest.raises(InvalidState):
        svc.cancellation.cancel_or_withdraw(db, bid_id=bid.id, principal=vendor, reason=None)
    assert svc.tenders.get(db, open_tender.id).bid_count == 1


def test_cannot_withdraw_twice(db, svc, vendor, open_tender, clock):
    bid = submit(svc, db, open_tender, vendor)
    clock.advance(minutes=10)
    svc.cancellation.cancel_or_withdraw(db, bid_id=bid.id, principal=vendor, reason=None)

    with pytest.raises(InvalidState):
        svc.cancellation.cancel_or_withdraw(db, bid_id=bid.id, principal=vendor, reason=None)
    assert svc.tenders.get(db, open_tender.id).bid_count == 0
