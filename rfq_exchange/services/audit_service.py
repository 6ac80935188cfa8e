from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from rfq_exchange.core.clock import Clock, utcnow
from rfq_exchange.core.hashing import json_safe, payload_hash
from rfq_exchange.core.middleware import current_request_id
from rfq_exchange.models.audit_log import AuditLogRecord
from rfq_exchange.policies.rbac import SYSTEM_ACTOR_ID, SYSTEM_ROLE, Principal

logger = logging.getLogger(__name__)


class AuditAction:
    # Tender lifecycle
    RFQ_CREATE = "rfq_create"
    RFQ_UPDATE = "rfq_update"
    RFQ_PUBLISH = "rfq_publish"
    RFQ_DELETE = "rfq_delete"
    RFQ_CANCEL = "rfq_cancel"
    RFQ_CLOSE = "rfq_close"
    RFQ_AWARD = "rfq_award"

    # Bids
    BID_SUBMIT = "bid_submit"
    BID_UPDATE = "bid_update"
    BID_CANCEL = "bid_cancel"
    BID_WITHDRAW = "bid_withdraw"
    BIDS_REVEAL = "bids_reveal"


class AuditService:
    def __init__(self, clock: Clock = utcnow):
        self.clock = clock

    def record(
        self,
        db: Session,
        *,
        actor: Optional[Principal],
        action: str,
        description: str,
        target_entity: str,
        target_id: Any,
        payload_summary: Optional[Dict[str, Any]] = None,
    ) -> AuditLogRecord:
        """
        Append-only audit record insert.

        Added to the caller's transaction (no commit here) so the record exists
        if and only if the transition it describes was committed.

        payload_summary MUST be safe: never include sealed amounts of other parties.
        actor=None means the system itself (deadline sweep / read-time repair).
        """
        summary = json_safe(payload_summary or {})
        row = AuditLogRecord(
            created_at=self.clock(),
            request_id=current_request_id(),
            actor_id=actor.actor_id if actor else SYSTEM_ACTOR_ID,
            actor_role=actor.role.value if actor else SYSTEM_ROLE,
            action=action,
            description=description,
            target_entity=target_entity,
            target_id=str(target_id),
            payload_hash=payload_hash(summary),
            payload_summary_json=summary,
        )
        db.add(row)
        logger.debug("audit %s", action, extra={"action": action, "target_id": str(target_id)})
        return row
