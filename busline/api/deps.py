from typing import Optional
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session
import jwt

from busline.core.exceptions import Forbidden, Unauthorized
from busline.core.security import decode_access_token
from busline.db.session import get_db
from busline.models.enums import Role
from busline.models.people import Profile

bearer_scheme = HTTPBearer(auto_error=False)

ADMINS = (Role.SUPERADMIN,)
MANAGERS = ADMINS + (Role.COMPANY_ADMIN,)
OPERATORS = MANAGERS + (Role.BRANCH_ADMIN,)
STAFF = OPERATORS + (Role.SELLER,)


def get_current_caller(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> Profile:
    """Resolve the bearer token to the caller's Profile.

    The identity provider owns sign-in; all we see is its token whose ``sub``
    is the Profile.user_id.
    """
    if credentials is None or not credentials.credentials:
        raise Unauthorized()
    try:
        payload = decode_access_token(credentials.credentials)
    except jwt.PyJWTError:
        raise Unauthorized("Invalid token")
    sub = payload.get("sub")
    if not sub:
        raise Unauthorized("Invalid token")
    profile = db.query(Profile).filter(Profile.user_id == str(sub)).first()
    if profile is None:
        raise Forbidden("No profile is registered for this user")
    if not profile.active:
        raise Forbidden("Profile is inactive")
    return profile


def require_roles(*allowed: Role):
    def checker(caller: Profile = Depends(get_current_caller)) -> Profile:
        if caller.role not in allowed:
            raise Forbidden()
        return caller
    return checker


def ensure_company_access(caller: Profile, company_id: int | None) -> None:
    """Non-superadmins only see and touch rows of their own company."""
    if caller.role == Role.SUPERADMIN:
        return
    if company_id is None or caller.company_id != company_id:
        raise Forbidden("You don't have access to this company")


def company_scope(caller: Profile) -> int | None:
    """Company id a listing must be narrowed to, or None for superadmins."""
    if caller.role == Role.SUPERADMIN:
        return None
    if caller.company_id is None:
        raise Forbidden("Profile is not assigned to a company")
    return caller.company_id
