from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, Query
from pydantic import Field, EmailStr
from sqlalchemy.orm import Session

from busline.api.deps import MANAGERS, STAFF, company_scope, ensure_company_access, get_current_caller, require_roles
from busline.api.pagination import paginate
from busline.core.exceptions import ConflictError, Forbidden, InvalidStateError, ValidationError
from busline.db.gateway import atomic, get_or_404
from busline.db.session import get_db
from busline.models.branch import Branch
from busline.models.company import Company
from busline.models.enums import Role
from busline.models.people import Profile
from busline.schemas.common import ORMModel, RequestModel

router = APIRouter()

USER_TAKEN = "A profile already exists for this user"


class ProfileCreate(RequestModel):
    user_id: str = Field(..., min_length=1, max_length=64)
    full_name: str = Field(..., min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    role: Role = Role.SELLER
    company_id: Optional[int] = None
    branch_id: Optional[int] = None


class ProfileUpdate(RequestModel):
    full_name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    role: Optional[Role] = None
    active: Optional[bool] = None


class CompanyAssignment(RequestModel):
    company_id: int
    branch_id: Optional[int] = None


class ProfileOut(ORMModel):
    id: int
    user_id: str
    full_name: str
    email: Optional[str]
    role: Role
    company_id: Optional[int]
    branch_id: Optional[int]
    active: bool
    created_at: datetime


def _check_role_grant(caller: Profile, role: Role) -> None:
    if role == Role.SUPERADMIN and caller.role != Role.SUPERADMIN:
        raise Forbidden("Only a superadmin can grant the superadmin role")


def _check_placement(db: Session, role: Role, company_id: int | None, branch_id: int | None) -> None:
    if role != Role.SUPERADMIN and company_id is None:
        raise ValidationError("A company is required for this role")
    if company_id is not None:
        get_or_404(db, Company, company_id, "Company")
    if branch_id is not None:
        branch = get_or_404(db, Branch, branch_id, "Branch")
        if branch.company_id != company_id:
            raise InvalidStateError("Branch belongs to another company")


@router.get("/me", response_model=ProfileOut)
def me(caller: Profile = Depends(get_current_caller)):
    return caller


@router.get("")
def list_profiles(
    company_id: int | None = None,
    branch_id: int | None = None,
    role: Role | None = None,
    active: bool | None = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(25, ge=1, le=200),
    db: Session = Depends(get_db),
    caller: Profile = Depends(require_roles(*MANAGERS)),
):
    q = db.query(Profile)
    scope = company_scope(caller)
    if scope is not None:
        q = q.filter(Profile.company_id == scope)
    if company_id is not None:
        q = q.filter(Profile.company_id == company_id)
    if branch_id is not None:
        q = q.filter(Profile.branch_id == branch_id)
    if role is not None:
        q = q.filter(Profile.role == role)
    if active is not None:
        q = q.filter(Profile.active == active)
    q = q.order_by(Profile.full_name.asc())
    return paginate(q, page, page_size, lambda p: ProfileOut.model_validate(p).model_dump())


@router.post("", status_code=201, response_model=ProfileOut)
def create_profile(
    payload: ProfileCreate,
    db: Session = Depends(get_db),
    caller: Profile = Depends(require_roles(*MANAGERS)),
):
    _check_role_grant(caller, payload.role)
    _check_placement(db, payload.role, payload.company_id, payload.branch_id)
    if payload.company_id is not None:
        ensure_company_access(caller, payload.company_id)
    if db.query(Profile).filter(Profile.user_id == payload.user_id).first():
        raise ConflictError(USER_TAKEN)
    profile = Profile(
        user_id=payload.user_id,
        full_name=payload.full_name.strip(),
        email=payload.email,
        role=payload.role,
        company_id=payload.company_id,
        branch_id=payload.branch_id,
    )
    with atomic(db, USER_TAKEN):
        db.add(profile)
    return profile


@router.get("/{profile_id}", response_model=ProfileOut)
def get_profile(profile_id: int, db: Session = Depends(get_db), caller: Profile = Depends(require_roles(*STAFF))):
    profile = get_or_404(db, Profile, profile_id, "Profile")
    if profile.id != caller.id:
        ensure_company_access(caller, profile.company_id)
    return profile


@router.patch("/{profile_id}", response_model=ProfileOut)
def update_profile(
    profile_id: int,
    payload: ProfileUpdate,
    db: Session = Depends(get_db),
    caller: Profile = Depends(require_roles(*MANAGERS)),
):
    profile = get_or_404(db, Profile, profile_id, "Profile")
    ensure_company_access(caller, profile.company_id)
    data = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "role" in data:
        _check_role_grant(caller, data["role"])
        _check_placement(db, data["role"], profile.company_id, profile.branch_id)
    with atomic(db):
        for field, value in data.items():
            setattr(profile, field, value)
    return profile


@router.patch("/{profile_id}/assign-company", response_model=ProfileOut)
def assign_company(
    profile_id: int,
    payload: CompanyAssignment,
    db: Session = Depends(get_db),
    caller: Profile = Depends(require_roles(*MANAGERS)),
):
    profile = get_or_404(db, Profile, profile_id, "Profile")
    if profile.company_id is not None:
        ensure_company_access(caller, profile.company_id)
    ensure_company_access(caller, payload.company_id)
    _check_placement(db, profile.role, payload.company_id, payload.branch_id)
    with atomic(db):
        profile.company_id = payload.company_id
        profile.branch_id = payload.branch_id
    return profile
