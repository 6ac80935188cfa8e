# rfq_exchange/api/v1/tenders.py
from __future__ import annotations

import uuid
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from rfq_exchange.core.auth_deps import get_current_principal, get_optional_principal
from rfq_exchange.core.clock import Clock, get_clock
from rfq_exchange.core.config import get_settings
from rfq_exchange.core.deadlines import can_accept_bids, is_expired
from rfq_exchange.core.errors import Forbidden
from rfq_exchange.db.session import get_db
from rfq_exchange.models.enums import ParticipantRole
from rfq_exchange.policies.rbac import Principal
from rfq_exchange.policies.tender_policies import can_see_budget, is_owner_or_admin
from rfq_exchange.schemas.primitives import PageMeta
from rfq_exchange.schemas.tenders import (
    AwardRequest,
    TenderCreateRequest,
    TenderListResponse,
    TenderPatchRequest,
    TenderRemoveResponse,
    TenderResponse,
    TemplateListResponse,
)
from rfq_exchange.services.award_service import AwardService
from rfq_exchange.services.tenders_service import CATEGORIES, TenderRepository

router = APIRouter(prefix="/tenders")

settings = get_settings()


def _iso(dt):
    return dt.isoformat() if dt else None


def _resp(t, principal: Optional[Principal], now) -> dict:
    insider = principal is not None and is_owner_or_admin(principal, t)
    return {
        "tenderId": str(t.id),
        "referenceCode": t.reference_code,
        "title": t.title,
        "description": t.description,
        "items": t.items_json or [],
        "category": t.category,
        "status": t.status,
        "budgetPrice": t.budget_price if can_see_budget(principal, t) else None,
        "showBudget": bool(t.show_budget),
        "sealed": bool(t.sealed),
        "private": bool(t.private),
        "invitedVendorIds": list(t.invited_vendor_ids or []) if insider else None,
        "closingDateIso": _iso(t.closing_date),
        "isExpired": is_expired(t, now),
        "acceptingBids": can_accept_bids(t, now),
        "bidCount": t.bid_count,
        "createdBy": t.created_by,
        "organization": t.organization,
        "deliveryLocation": t.delivery_location,
        "deliveryDeadlineIso": _iso(t.delivery_deadline),
        "terms": t.terms,
        "isTemplate": bool(t.is_template),
        "templateName": t.template_name,
        "awardedVendorId": t.awarded_vendor_id,
        "awardedBidId": str(t.awarded_bid_id) if t.awarded_bid_id else None,
        "awardedAtIso": _iso(t.awarded_at),
        "awardRemarks": t.award_remarks,
        "bidsRevealedAtIso": _iso(t.bids_revealed_at) if insider else None,
        "cancelledAtIso": _iso(t.cancelled_at),
        "createdAtIso": _iso(t.created_at),
        "updatedAtIso": _iso(t.updated_at),
    }


# ---------------------------------------------------------------------
# Public browse
# ---------------------------------------------------------------------


@router.get("/categories")
def list_categories():
    return {"categories": CATEGORIES}


@router.get("", response_model=TenderListResponse)
def list_tenders(
    status: str = Query(default="open", pattern="^(open|closed|all)$"),
    category: Optional[str] = Query(default=None),
    search: Optional[str] = Query(default=None, max_length=256),
    min_budget: Optional[Decimal] = Query(default=None, alias="minBudget"),
    max_budget: Optional[Decimal] = Query(default=None, alias="maxBudget"),
    location: Optional[str] = Query(default=None, max_length=256),
    sort: str = Query(default="closingDate", pattern="^(closingDate|newest|highValue)$"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=settings.default_page_size, ge=1, le=settings.max_page_size),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    principal: Optional[Principal] = Depends(get_optional_principal),
):
    rows, total = TenderRepository(clock).list_public(
        db,
        status=status,
        category=category,
        search=search,
        min_budget=min_budget,
        max_budget=max_budget,
        location=location,
        sort=sort,
        page=page,
        limit=limit,
    )
    now = clock()
    return {
        "tenders": [_resp(t, principal, now) for t in rows],
        "pagination": PageMeta.build(page=page, limit=limit, total=total),
    }


@router.get("/my", response_model=TenderListResponse)
def list_my_tenders(
    status: Optional[str] = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=settings.default_page_size, ge=1, le=settings.max_page_size),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    principal: Principal = Depends(get_current_principal),
):
    if principal.role != ParticipantRole.BUYER:
        raise Forbidden("Only buyers own tenders.")

    rows, total = TenderRepository(clock).list_for_owner(
        db, owner_id=principal.actor_id, status=status, page=page, limit=limit
    )
    now = clock()
    return {
        "tenders": [_resp(t, principal, now) for t in rows],
        "pagination": PageMeta.build(page=page, limit=limit, total=total),
    }


@router.get("/templates", response_model=TemplateListResponse)
def list_my_templates(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    principal: Principal = Depends(get_current_principal),
):
    if principal.role != ParticipantRole.BUYER:
        raise Forbidden("Only buyers keep templates.")

    rows = TenderRepository(clock).list_templates(db, owner_id=principal.actor_id)
    now = clock()
    return {"templates": [_resp(t, principal, now) for t in rows]}


@router.get("/{tender_id}", response_model=TenderResponse)
def get_tender(
    tender_id: uuid.UUID,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    principal: Optional[Principal] = Depends(get_optional_principal),
):
    t = TenderRepository(clock).get_visible(db, tender_id, principal)
    return _resp(t, principal, clock())


# ---------------------------------------------------------------------
# Buyer lifecycle
# ---------------------------------------------------------------------


@router.post("", response_model=TenderResponse, status_code=201)
def create_tender(
    body: TenderCreateRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    principal: Principal = Depends(get_current_principal),
):
    t = TenderRepository(clock).create(
        db,
        actor=principal,
        title=body.title,
        description=body.description,
        items=[i.model_dump() for i in body.items],
        category=body.category,
        closing_date=body.closing_date,
        initial_status=body.status,
        sealed=body.sealed,
        private=body.private,
        invited_vendor_ids=body.invited_vendor_ids,
        budget_price=body.budget_price,
        show_budget=body.show_budget,
        delivery_location=body.delivery_location,
        delivery_deadline=body.delivery_deadline,
        terms=body.terms,
        is_template=body.is_template,
        template_name=body.template_name,
    )
    return _resp(t, principal, clock())


@router.patch("/{tender_id}", response_model=TenderResponse)
def patch_tender(
    tender_id: uuid.UUID,
    body: TenderPatchRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    principal: Principal = Depends(get_current_principal),
):
    patch = body.model_dump(exclude_unset=True)
    t = TenderRepository(clock).update(db, tender_id=tender_id, actor=principal, patch=patch)
    return _resp(t, principal, clock())


@router.post("/{tender_id}/publish", response_model=TenderResponse)
def publish_tender(
    tender_id: uuid.UUID,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    principal: Principal = Depends(get_current_principal),
):
    t = TenderRepository(clock).publish(db, tender_id=tender_id, actor=principal)
    return _resp(t, principal, clock())


@router.delete("/{tender_id}", response_model=TenderRemoveResponse)
def remove_tender(
    tender_id: uuid.UUID,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    principal: Principal = Depends(get_current_principal),
):
    outcome = TenderRepository(clock).remove(db, tender_id=tender_id, actor=principal)
    return {"tenderId": str(tender_id), "outcome": outcome}


@router.post("/{tender_id}/award", response_model=TenderResponse)
def award_tender(
    tender_id: uuid.UUID,
    body: AwardRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    principal: Principal = Depends(get_current_principal),
):
    t = AwardService(clock).award(
        db,
        tender_id=tender_id,
        principal=principal,
        winning_bid_id=body.bid_id,
        remarks=body.remarks,
    )
    return _resp(t, principal, clock())
