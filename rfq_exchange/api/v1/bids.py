# rfq_exchange/api/v1/bids.py
from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session

from rfq_exchange.core.auth_deps import get_current_principal
from rfq_exchange.core.clock import Clock, get_clock
from rfq_exchange.core.config import get_settings
from rfq_exchange.core.errors import Forbidden
from rfq_exchange.db.session import get_db
from rfq_exchange.models.enums import ParticipantRole
from rfq_exchange.policies.rbac import Principal
from rfq_exchange.schemas.bids import (
    BidAmendRequest,
    BidCancelRequest,
    BidResponse,
    BidSubmitRequest,
    CancelResponse,
    TenderBidsResponse,
    VendorBidListResponse,
)
from rfq_exchange.schemas.primitives import PageMeta
from rfq_exchange.services.bid_cancellation_service import BidCancellationService
from rfq_exchange.services.bid_submission_service import BidSubmissionService
from rfq_exchange.services.bids_service import BidRepository
from rfq_exchange.services.visibility_service import (
    BidPricing,
    Revealed,
    SealedVisibilityGate,
    pricing_for,
)

router = APIRouter()

settings = get_settings()


def _iso(dt):
    return dt.isoformat() if dt else None


def _amount(view) -> dict:
    if isinstance(view, Revealed):
        return {"state": "revealed", "amount": view.amount}
    return {"state": "sealed"}


def _resp(b, pricing: BidPricing) -> dict:
    return {
        "bidId": str(b.id),
        "tenderId": str(b.tender_id),
        "vendorId": b.vendor_id,
        "status": b.status,
        "unitPrice": _amount(pricing.unit_price),
        "subtotal": _amount(pricing.subtotal),
        "vatAmount": _amount(pricing.vat_amount),
        "totalPrice": _amount(pricing.total_price),
        "quantity": b.quantity,
        "vatRegistered": bool(b.vat_registered),
        "vatRate": b.vat_rate,
        "deliveryTimelineDays": b.delivery_timeline_days,
        "deliveryDateIso": _iso(b.delivery_date),
        "warrantyMonths": b.warranty_months,
        "warrantyTerms": b.warranty_terms,
        "remarks": b.remarks,
        "technicalSpecifications": b.technical_specifications,
        "revealed": bool(b.revealed),
        "withdrawnAtIso": _iso(b.withdrawn_at),
        "withdrawalReason": b.withdrawal_reason,
        "createdAtIso": _iso(b.created_at),
        "updatedAtIso": _iso(b.updated_at),
    }


def _own(b, principal: Principal, clock: Clock) -> dict:
    # the vendor always reads its own numbers; the tender is only consulted for the gate
    return _resp(b, pricing_for(b.tender, b, principal, clock()))


# ---------------------------------------------------------------------
# Per-tender
# ---------------------------------------------------------------------


@router.post("/tenders/{tender_id}/bids", response_model=BidResponse, status_code=201)
def submit_bid(
    tender_id: uuid.UUID,
    body: BidSubmitRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    principal: Principal = Depends(get_current_principal),
):
    b = BidSubmissionService(clock).submit(
        db,
        tender_id=tender_id,
        principal=principal,
        **body.model_dump(),
    )
    return _own(b, principal, clock)


@router.get("/tenders/{tender_id}/bids", response_model=TenderBidsResponse)
def list_tender_bids(
    tender_id: uuid.UUID,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    principal: Principal = Depends(get_current_principal),
):
    tender, rows = SealedVisibilityGate(clock).list_tender_bids(db, tender_id=tender_id, principal=principal)
    return {
        "tenderId": str(tender.id),
        "sealed": any(p.sealed for _, p in rows),
        "bids": [_resp(b, p) for b, p in rows],
    }


# ---------------------------------------------------------------------
# Vendor side
# ---------------------------------------------------------------------


@router.get("/bids/my", response_model=VendorBidListResponse)
def list_my_bids(
    status: Optional[str] = Query(default=None, pattern="^(all|pending|under_review|won|lost|withdrawn)$"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=settings.max_page_size),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    principal: Principal = Depends(get_current_principal),
):
    if principal.role != ParticipantRole.VENDOR:
        raise Forbidden("Only vendors have bids.")

    repo = BidRepository(clock)
    rows, total = repo.list_for_vendor(
        db, vendor_id=principal.actor_id, status=status, page=page, limit=limit
    )
    return {
        "bids": [_own(b, principal, clock) for b in rows],
        "stats": repo.vendor_stats(db, principal.actor_id),
        "pagination": PageMeta.build(page=page, limit=limit, total=total),
    }


@router.get("/bids/{bid_id}", response_model=BidResponse)
def get_bid(
    bid_id: uuid.UUID,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    principal: Principal = Depends(get_current_principal),
):
    b, _, pricing = SealedVisibilityGate(clock).view_bid(db, bid_id=bid_id, principal=principal)
    return _resp(b, pricing)


@router.patch("/bids/{bid_id}", response_model=BidResponse)
def amend_bid(
    bid_id: uuid.UUID,
    body: BidAmendRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    principal: Principal = Depends(get_current_principal),
):
    b = BidSubmissionService(clock).amend(
        db, bid_id=bid_id, principal=principal, patch=body.model_dump(exclude_unset=True)
    )
    return _own(b, principal, clock)


@router.delete("/bids/{bid_id}", response_model=CancelResponse)
def cancel_bid(
    bid_id: uuid.UUID,
    body: Optional[BidCancelRequest] = Body(default=None),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    principal: Principal = Depends(get_current_principal),
):
    outcome = BidCancellationService(clock).cancel_or_withdraw(
        db, bid_id=bid_id, principal=principal, reason=body.reason if body else None
    )
    return {"bidId": str(outcome.bid_id), "tenderId": str(outcome.tender_id), "mode": outcome.mode}
