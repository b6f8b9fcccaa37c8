"""
Helpers for the request user context and family membership checks.
"""
import contextvars
from typing import Mapping, Optional
from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from familybudget.exceptions import AuthorizationError
from familybudget.models import FamilyMember

REQUEST_USER_HEADER = "x-family-budget-user-id"

_request_user_id: contextvars.ContextVar[Optional[int]] = contextvars.ContextVar(
    "request_user_id",
    default=None,
)


def set_request_user_id(user_id: Optional[int]) -> contextvars.Token:
    return _request_user_id.set(user_id)


def clear_request_user_id(token: contextvars.Token) -> None:
    _request_user_id.reset(token)


def get_request_user_id() -> Optional[int]:
    return _request_user_id.get()


def read_user_id_from_headers(headers: Mapping[str, str]) -> Optional[int]:
    """
    Read the caller identity forwarded by the upstream gateway.

    Returns None when the header is missing.

    Raises:
        HTTPException: 401 if the header is present but not an integer id.
    """
    raw_value = headers.get(REQUEST_USER_HEADER, "").strip()
    if not raw_value:
        return None
    try:
        return int(raw_value)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid user identity header.",
        ) from exc


def get_user_id() -> int:
    """
    Get the authenticated user id for the current request.

    Raises:
        HTTPException: 401 if no identity was forwarded with the request.
    """
    request_user_id = get_request_user_id()
    if request_user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required.",
        )
    return request_user_id


def require_family_member(db: Session, family_id: int, user_id: int) -> FamilyMember:
    """
    Ensure ``user_id`` belongs to ``family_id``.

    Raises:
        AuthorizationError: If the user is not a member of the family.
    """
    member = db.query(FamilyMember).filter(
        FamilyMember.family_id == family_id,
        FamilyMember.user_id == user_id
    ).first()
    if not member:
        raise AuthorizationError("Access denied")
    return member
