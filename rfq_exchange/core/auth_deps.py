# rfq_exchange/core/auth_deps.py
from __future__ import annotations

from typing import Optional

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError

from rfq_exchange.core.security import decode_token
from rfq_exchange.models.enums import ParticipantRole
from rfq_exchange.policies.rbac import Principal

bearer = HTTPBearer(auto_error=True)


def get_current_principal(
    request: Request,
    creds: HTTPAuthorizationCredentials = Depends(bearer),
) -> Principal:
    """
    Canonical authentication dependency.

    Guarantees:
    - JWT is valid
    - subject and role are present
    - role is a valid ParticipantRole

    The identity service issues the token; this layer only trusts it.
    """

    try:
        payload = decode_token(creds.credentials)
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid or expired token.")

    role = payload.get("role")
    actor_id = payload.get("actor_id") or payload.get("sub")
    display_name = payload.get("display_name") or "Unknown"

    if not role or not actor_id:
        raise HTTPException(status_code=401, detail="Token missing required claims.")

    try:
        role_enum = ParticipantRole(str(role).upper())
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid role in token.")

    principal = Principal(
        actor_id=str(actor_id),
        role=role_enum,
        display_name=str(display_name),
        organization=payload.get("organization"),
    )

    request.state.principal = principal

    return principal


optional_bearer = HTTPBearer(auto_error=False)


def get_optional_principal(
    request: Request,
    creds: Optional[HTTPAuthorizationCredentials] = Depends(optional_bearer),
) -> Optional[Principal]:
    """
    Public pages: anonymous callers get None, a bad token is still a 401.
    """
    if creds is None:
        return None
    return get_current_principal(request, creds)
