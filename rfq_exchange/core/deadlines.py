from __future__ import annotations

from datetime import datetime
from typing import Optional

from rfq_exchange.core.clock import utcnow
from rfq_exchange.models.enums import TenderStatus


def is_expired(tender, now: Optional[datetime] = None) -> bool:
    """
    True once the tender's closing instant has been reached.
    Always evaluated against a fresh `now`; never cache the answer.
    """
    now = now or utcnow()
    return now >= tender.closing_date


def can_accept_bids(tender, now: Optional[datetime] = None) -> bool:
    return tender.status == TenderStatus.open.value and not is_expired(tender, now)


def pricing_unsealed(tender, now: Optional[datetime] = None) -> bool:
    """
    Sealed pricing becomes readable once the tender has left `open`
    or its deadline has passed.
    """
    if not tender.sealed:
        return True
    return tender.status != TenderStatus.open.value or is_expired(tender, now)
