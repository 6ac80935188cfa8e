import uuid
from datetime import timedelta

import pytest

from rfq_exchange.core.errors import Conflict, Forbidden, InvalidInput, InvalidState, NotFound, TenderClosed
from rfq_exchange.models.enums import NotificationKind, TenderStatus
from rfq_exchange.models.tender import TenderReferenceCounter
from rfq_exchange.services.audit_service import AuditAction
from rfq_exchange.tests.factories import audit_actions, make_vendor, new_tender, notifications, submit


def test_create_issues_sequential_reference_codes(db, svc, buyer):
    t1 = new_tender(svc, db, buyer)
    t2 = new_tender(svc, db, buyer, title="Chairs", category="Furniture")

    assert t1.reference_code == "RFQ-2025-0001"
    assert t2.reference_code == "RFQ-2025-0002"
    assert t1.status == TenderStatus.open.value
    assert t1.bid_count == 0
    assert t1.organization == "Acme"
    assert audit_actions(db, t1.id) == [AuditAction.RFQ_CREATE]


def test_reference_counter_restarts_each_year(db, svc, buyer, clock):
    new_tender(svc, db, buyer)
    clock.advance(days=365)
    t = new_tender(svc, db, buyer)
    assert t.reference_code == "RFQ-2026-0001"


def test_reference_counter_row_already_present(db, svc, buyer):
    # another request created the year's counter first
    db.add(TenderReferenceCounter(year=2025, last_value=7))
    db.commit()

    t = new_tender(svc, db, buyer)
    assert t.reference_code == "RFQ-2025-0008"
    assert db.get(TenderReferenceCounter, 2025).last_value == 8


def test_only_buyers_create_tenders(db, svc, vendor, admin):
    with pytest.raises(Forbidden):
        new_tender(svc, db, vendor)
    with pytest.raises(Forbidden):
        new_tender(svc, db, admin)


@pytest.mark.parametrize(
    "overrides",
    [
        {"closes_in": -timedelta(minutes=1)},
        {"category": "Weapons"},
        {"title": "   "},
        {"items": []},
        {"items": [{"name": "Desk", "quantity": 0}]},
        {"budget_price": "-5"},
        {"budget_price": "NaN"},
        {"budget_price": "Infinity"},
        {"budget_price": "10.001"},
        {"items": [{"name": "Desk", "quantity": "NaN"}]},
        {"items": [{"name": "Desk", "quantity": "Infinity"}]},
        {"items": [{"name": "Desk", "quantity": "1.00005"}]},
    ],
)
def test_create_rejects_bad_input(db, svc, buyer, overrides):
    with pytest.raises(InvalidInput):
        new_tender(svc, db, buyer, **overrides)


def test_private_tender_invites_vendors_on_create(db, svc, buyer):
    t = new_tender(svc, db, buyer, private=True, invited_vendor_ids=["vendor-1", "vendor-2", "vendor-1"])

    assert t.invited_vendor_ids == ["vendor-1", "vendor-2"]
    invites = notifications(db, NotificationKind.private_invite.value)
    assert sorted(n.recipient_id for n in invites) == ["vendor-1", "vendor-2"]


def test_draft_is_not_invited_until_published(db, svc, buyer):
    t = new_tender(svc, db, buyer, initial_status="draft", private=True, invited_vendor_ids=["vendor-1"])
    assert notifications(db, NotificationKind.private_invite.value) == []

    t = svc.tenders.publish(db, tender_id=t.id, actor=buyer)
    assert t.status == TenderStatus.open.value
    assert len(notifications(db, NotificationKind.private_invite.value)) == 1


def test_publish_rules(db, svc, buyer, other_buyer, clock):
    t = new_tender(svc, db, buyer, initial_status="draft", closes_in=timedelta(hours=1))

    with pytest.raises(Forbidden):
        svc.tenders.publish(db, tender_id=t.id, actor=other_buyer)

    clock.advance(hours=2)
    with pytest.raises(InvalidInput):
        svc.tenders.publish(db, tender_id=t.id, actor=buyer)

    # a draft is never closed by the deadline
    assert svc.tenders.get(db, t.id).status == TenderStatus.draft.value

    open_one = new_tender(svc, db, buyer)
    with pytest.raises(InvalidState):
        svc.tenders.publish(db, tender_id=open_one.id, actor=buyer)


def test_update_by_owner(db, svc, buyer, open_tender):
    t = svc.tenders.update(
        db, tender_id=open_tender.id, actor=buyer, patch={"title": "Office laptops (revised)", "show_budget": True}
    )
    assert t.title == "Office laptops (revised)"
    assert t.show_budget is True
    assert AuditAction.RFQ_UPDATE in audit_actions(db, t.id)


def test_update_refusals(db, svc, buyer, other_buyer, vendor, open_tender, clock):
    with pytest.raises(InvalidInput):
        svc.tenders.update(db, tender_id=open_tender.id, actor=buyer, patch={"status": "awarded"})

    with pytest.raises(Forbidden):
        svc.tenders.update(db, tender_id=open_tender.id, actor=other_buyer, patch={"title": "x"})

    submit(svc, db, open_tender, vendor)
    with pytest.raises(Conflict):
        svc.tenders.update(db, tender_id=open_tender.id, actor=buyer, patch={"title": "x"})

    clock.advance(days=3)
    with pytest.raises(InvalidState):
        svc.tenders.update(db, tender_id=open_tender.id, actor=buyer, patch={"title": "x"})

    with pytest.raises(NotFound):
        svc.tenders.update(db, tender_id=uuid.uuid4(), actor=buyer, patch={})


def test_remove_without_bids_deletes(db, svc, buyer, open_tender):
    tid = open_tender.id
    assert svc.tenders.remove(db, tender_id=tid, actor=buyer) == "deleted"
    assert svc.tenders.get(db, tid) is None
    assert AuditAction.RFQ_DELETE in audit_actions(db, tid)


def test_remove_with_bids_cancels(db, svc, buyer, vendor, open_tender):
    submit(svc, db, open_tender, vendor)

    assert svc.tenders.remove(db, tender_id=open_tender.id, actor=buyer) == "cancelled"
    t = svc.tenders.get(db, open_tender.id)
    assert t.status == TenderStatus.cancelled.value
    assert t.cancelled_at is not None

    with pytest.raises(InvalidState):
        svc.tenders.remove(db, tender_id=open_tender.id, actor=buyer)


def test_remove_keeps_withdrawn_history(db, svc, buyer, vendor, open_tender, clock):
    bid = submit(svc, db, open_tender, vendor)
    clock.advance(minutes=10)
    svc.cancellation.cancel_or_withdraw(db, bid_id=bid.id, principal=vendor, reason="capacity")
    assert svc.tenders.get(db, open_tender.id).bid_count == 0

    assert svc.tenders.remove(db, tender_id=open_tender.id, actor=buyer) == "cancelled"


def test_sweep_is_idempotent(db, svc, buyer, clock):
    a = new_tender(svc, db, buyer, closes_in=timedelta(hours=1))
    b = new_tender(svc, db, buyer, closes_in=timedelta(hours=2))
    c = new_tender(svc, db, buyer, closes_in=timedelta(days=5))

    clock.advance(hours=3)
    first = svc.tenders.sweep_expired(db)
    second = svc.tenders.sweep_expired(db)

    assert sorted(t.id for t in first) == sorted([a.id, b.id])
    assert second == []
    assert svc.tenders.get(db, a.id).status == TenderStatus.closed.value
    assert svc.tenders.get(db, c.id).status == TenderStatus.open.value
    assert audit_actions(db, a.id).count(AuditAction.RFQ_CLOSE) == 1
    assert len(notifications(db, NotificationKind.tender_closed.value)) == 2


def test_read_time_repair_closes_stale_tender(db, svc, buyer, open_tender, clock):
    clock.advance(days=2)
    t = svc.tenders.get_visible(db, open_tender.id, None)
    assert t.status == TenderStatus.closed.value
    assert audit_actions(db, t.id) == [AuditAction.RFQ_CREATE, AuditAction.RFQ_CLOSE]


def test_private_tender_visibility(db, svc, buyer, admin):
    t = new_tender(svc, db, buyer, private=True, invited_vendor_ids=["vendor-1"])

    assert svc.tenders.get_visible(db, t.id, make_vendor(1)).id == t.id
    assert svc.tenders.get_visible(db, t.id, admin).id == t.id
    with pytest.raises(Forbidden):
        svc.tenders.get_visible(db, t.id, make_vendor(2))
    with pytest.raises(Forbidden):
        svc.tenders.get_visible(db, t.id, None)


def test_public_listing_filters(db, svc, buyer, vendor):
    laptops = new_tender(svc, db, buyer, budget_price="5000", delivery_location="Kigali")
    new_tender(svc, db, buyer, title="Secret", private=True, invited_vendor_ids=["vendor-1"])
    chairs = new_tender(
        svc, db, buyer, title="Chairs", description="Twenty office chairs", category="Furniture", budget_price="900"
    )
    gone = new_tender(svc, db, buyer, title="Gone")
    submit(svc, db, gone, vendor)
    svc.tenders.remove(db, tender_id=gone.id, actor=buyer)

    rows, total = svc.tenders.list_public(db)
    assert total == 2
    assert {t.id for t in rows} == {laptops.id, chairs.id}

    rows, _ = svc.tenders.list_public(db, category="Furniture")
    assert [t.id for t in rows] == [chairs.id]

    rows, _ = svc.tenders.list_public(db, search="laptop")
    assert [t.id for t in rows] == [laptops.id]

    rows, _ = svc.tenders.list_public(db, min_budget=1000)
    assert [t.id for t in rows] == [laptops.id]

    rows, _ = svc.tenders.list_public(db, location="kigali")
    assert [t.id for t in rows] == [laptops.id]

    rows, _ = svc.tenders.list_public(db, sort="highValue")
    assert [t.id for t in rows] == [laptops.id, chairs.id]

    rows, total = svc.tenders.list_public(db, limit=1, page=2)
    assert total == 2 and len(rows) == 1


def test_public_listing_status_closed(db, svc, buyer, clock):
    t = new_tender(svc, db, buyer, closes_in=timedelta(hours=1))
    clock.advance(hours=2)

    open_rows, _ = svc.tenders.list_public(db)
    closed_rows, _ = svc.tenders.list_public(db, status="closed")
    assert open_rows == []
    assert [r.id for r in closed_rows] == [t.id]


def test_owner_listing(db, svc, buyer, other_buyer):
    mine = new_tender(svc, db, buyer)
    new_tender(svc, db, other_buyer)

    rows, total = svc.tenders.list_for_owner(db, owner_id=buyer.actor_id)
    assert total == 1
    assert rows[0].id == mine.id


# ---------------------------------------------------------------------
# templates
# ---------------------------------------------------------------------


def test_template_is_saved_as_draft_and_named(db, svc, buyer):
    t = new_tender(svc, db, buyer, is_template=True, template_name="Quarterly laptops")
    unnamed = new_tender(svc, db, buyer, title="Toner", is_template=True)
    plain = new_tender(svc, db, buyer, template_name="ignored")

    assert t.is_template is True
    assert t.status == TenderStatus.draft.value
    assert t.template_name == "Quarterly laptops"
    assert unnamed.template_name == "Toner"
    assert plain.is_template is False
    assert plain.template_name is None


def test_templates_listed_only_for_their_owner(db, svc, buyer, other_buyer, clock):
    first = new_tender(svc, db, buyer, is_template=True)
    clock.advance(minutes=1)
    second = new_tender(svc, db, buyer, is_template=True, title="Chairs", category="Furniture")
    new_tender(svc, db, buyer)
    new_tender(svc, db, other_buyer, is_template=True)

    rows = svc.tenders.list_templates(db, owner_id=buyer.actor_id)
    assert [t.id for t in rows] == [second.id, first.id]
    assert svc.tenders.list_templates(db, owner_id="buyer-nobody") == []


def test_templates_stay_out_of_public_listing(db, svc, buyer):
    live = new_tender(svc, db, buyer)
    new_tender(svc, db, buyer, is_template=True)

    for status in ("open", "closed", "all"):
        rows, _ = svc.tenders.list_public(db, status=status)
        assert all(not t.is_template for t in rows)
    rows, total = svc.tenders.list_public(db, status="all")
    assert total == 1 and rows[0].id == live.id


def test_template_cannot_be_published_or_bid_on(db, svc, buyer, vendor):
    t = new_tender(svc, db, buyer, is_template=True)

    with pytest.raises(InvalidState):
        svc.tenders.publish(db, tender_id=t.id, actor=buyer)
    with pytest.raises(TenderClosed):
        submit(svc, db, t, vendor)
    assert svc.tenders.get(db, t.id).status == TenderStatus.draft.value


def test_template_hidden_from_other_participants(db, svc, buyer, other_buyer, admin, vendor):
    t = new_tender(svc, db, buyer, is_template=True)

    assert svc.tenders.get_visible(db, t.id, buyer).id == t.id
    assert svc.tenders.get_visible(db, t.id, admin).id == t.id
    for principal in (other_buyer, vendor, None):
        with pytest.raises(Forbidden):
            svc.tenders.get_visible(db, t.id, principal)
