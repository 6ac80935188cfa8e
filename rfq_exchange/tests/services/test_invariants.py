import pytest
from sqlalchemy import select

from rfq_exchange.core.errors import DuplicateBid, InvalidState
from rfq_exchange.models.bid import Bid
from rfq_exchange.models.enums import BidStatus, TenderStatus
from rfq_exchange.tests.factories import make_vendor, submit


def _assert_counter_matches(db, svc, tender_id):
    assert svc.tenders.get(db, tender_id).bid_count == svc.bids.count_active(db, tender_id)


def test_bid_count_tracks_non_withdrawn_bids(db, svc, buyer, open_tender, clock):
    vendors = [make_vendor(n) for n in range(1, 6)]
    bid_ids = {}
    for v in vendors:
        bid_ids[v.actor_id] = submit(svc, db, open_tender, v).id
        _assert_counter_matches(db, svc, open_tender.id)

    # inside the grace window: hard delete
    clock.advance(minutes=2)
    svc.cancellation.cancel_or_withdraw(db, bid_id=bid_ids["vendor-1"], principal=vendors[0], reason=None)
    _assert_counter_matches(db, svc, open_tender.id)

    # after it: withdrawal
    clock.advance(minutes=10)
    svc.cancellation.cancel_or_withdraw(db, bid_id=bid_ids["vendor-2"], principal=vendors[1], reason=None)
    _assert_counter_matches(db, svc, open_tender.id)

    # refused operations leave the counter alone
    with pytest.raises(DuplicateBid):
        submit(svc, db, open_tender, vendors[2])
    with pytest.raises(InvalidState):
        svc.cancellation.cancel_or_withdraw(db, bid_id=bid_ids["vendor-2"], principal=vendors[1], reason=None)
    _assert_counter_matches(db, svc, open_tender.id)

    # award flips statuses but never the counter
    clock.advance(days=2)
    svc.award.award(db, tender_id=open_tender.id, principal=buyer, winning_bid_id=bid_ids["vendor-3"])
    tender = svc.tenders.get(db, open_tender.id)
    assert tender.status == TenderStatus.awarded.value
    assert tender.bid_count == 3
    _assert_counter_matches(db, svc, open_tender.id)

    statuses = db.execute(select(Bid.status).where(Bid.tender_id == open_tender.id)).scalars().all()
    assert sorted(statuses) == sorted(
        [BidStatus.won.value, BidStatus.lost.value, BidStatus.lost.value, BidStatus.withdrawn.value]
    )
