# rfq_exchange/api/v1/admin.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from rfq_exchange.core.auth_deps import get_current_principal
from rfq_exchange.core.clock import Clock, get_clock
from rfq_exchange.db.session import get_db
from rfq_exchange.policies.rbac import ACTION_SWEEP, Principal, require_action
from rfq_exchange.schemas.tenders import SweepResponse
from rfq_exchange.services.tenders_service import TenderRepository

router = APIRouter(prefix="/admin")


@router.post("/tenders/sweep", response_model=SweepResponse)
def sweep_tenders(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    principal: Principal = Depends(get_current_principal),
):
    """
    Close every open tender past its deadline. Safe to call repeatedly;
    an external scheduler is expected to hit this.
    """
    require_action(principal, ACTION_SWEEP)
    closed = TenderRepository(clock).sweep_expired(db)
    return {"closed": len(closed), "tenderIds": [str(t.id) for t in closed]}
