from __future__ import annotations

from rfq_exchange.models.enums import ParticipantRole
from rfq_exchange.policies.rbac import Principal


def is_owner(principal: Principal, tender) -> bool:
    return tender.created_by == principal.actor_id


def is_owner_or_admin(principal: Principal, tender) -> bool:
    return principal.is_admin or is_owner(principal, tender)


def is_invited(principal: Principal, tender) -> bool:
    return principal.actor_id in (tender.invited_vendor_ids or [])


def can_view_tender(principal: Principal | None, tender) -> bool:
    """
    Public tenders are visible to anyone. Private tenders only to their owner,
    admins and invited vendors. Templates only to their owner and admins.
    """
    if tender.is_template:
        return principal is not None and is_owner_or_admin(principal, tender)
    if not tender.private:
        return True
    if principal is None:
        return False
    if is_owner_or_admin(principal, tender):
        return True
    return principal.role == ParticipantRole.VENDOR and is_invited(principal, tender)


def can_see_budget(principal: Principal | None, tender) -> bool:
    if tender.show_budget:
        return True
    return principal is not None and is_owner_or_admin(principal, tender)
