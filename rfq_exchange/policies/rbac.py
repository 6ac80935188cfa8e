#rfq_exchange/policies/rbac.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Set

from rfq_exchange.core.errors import Forbidden
from rfq_exchange.models.enums import ParticipantRole


@dataclass(frozen=True)
class Principal:
    actor_id: str
    role: ParticipantRole
    display_name: str = "Unknown"
    organization: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == ParticipantRole.ADMIN


# Used for transitions nobody asked for (deadline sweep, read-time repair).
SYSTEM_ACTOR_ID = "system"
SYSTEM_ROLE = "SYSTEM"


# --- Core action constants ---
ACTION_CREATE_TENDER = "CREATE_TENDER"
ACTION_MANAGE_TENDER = "MANAGE_TENDER"
ACTION_SUBMIT_BID = "SUBMIT_BID"
ACTION_SWEEP = "SWEEP_TENDERS"


def allowed_actions(role: ParticipantRole) -> Set[str]:
    """
    Pure RBAC: which actions a role may attempt.
    Ownership is checked separately (tender_policies).
    """

    if role == ParticipantRole.BUYER:
        return {ACTION_CREATE_TENDER, ACTION_MANAGE_TENDER}

    if role == ParticipantRole.VENDOR:
        return {ACTION_SUBMIT_BID}

    if role == ParticipantRole.ADMIN:
        # admins act on behalf of owners but never own a tender
        return {ACTION_MANAGE_TENDER, ACTION_SWEEP}

    return set()


def require_action(principal: Principal, action: str) -> None:
    if action not in allowed_actions(principal.role):
        raise Forbidden(
            f"Role {principal.role.value} not permitted for action {action}."
        )
