from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, Query
from pydantic import Field, EmailStr
from sqlalchemy.orm import Session

from busline.api.deps import ADMINS, MANAGERS, STAFF, ensure_company_access, require_roles
from busline.api.pagination import paginate
from busline.core.exceptions import ConflictError
from busline.db.gateway import atomic, count_where, get_or_404
from busline.db.session import get_db
from busline.models.branch import Branch
from busline.models.company import Company
from busline.models.enums import Role
from busline.models.fleet import Bus
from busline.models.location import Location
from busline.models.people import Driver, Profile
from busline.schemas.common import ORMModel, RequestModel

router = APIRouter()
branches_router = APIRouter()


class CompanyCreate(RequestModel):
    name: str = Field(..., min_length=1, max_length=255)
    tax_id: Optional[str] = Field(None, max_length=64)
    phone: Optional[str] = Field(None, max_length=32)
    email: Optional[EmailStr] = None


class CompanyUpdate(RequestModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    tax_id: Optional[str] = Field(None, max_length=64)
    phone: Optional[str] = Field(None, max_length=32)
    email: Optional[EmailStr] = None
    active: Optional[bool] = None


class CompanyOut(ORMModel):
    id: int
    name: str
    tax_id: Optional[str]
    phone: Optional[str]
    email: Optional[str]
    active: bool
    created_at: datetime


class BranchCreate(RequestModel):
    name: str = Field(..., min_length=1, max_length=255)
    location_id: Optional[int] = None
    address: Optional[str] = Field(None, max_length=512)


class BranchUpdate(RequestModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    location_id: Optional[int] = None
    address: Optional[str] = Field(None, max_length=512)
    active: Optional[bool] = None


class BranchOut(ORMModel):
    id: int
    company_id: int
    location_id: Optional[int]
    name: str
    address: Optional[str]
    active: bool


def _ensure_unique_name(db: Session, name: str, exclude_id: int | None = None):
    q = db.query(Company).filter(Company.name == name)
    if exclude_id is not None:
        q = q.filter(Company.id != exclude_id)
    if q.first():
        raise ConflictError("A company with this name already exists")


@router.get("")
def list_companies(
    name: str | None = Query(None, description="Substring of the company name"),
    active: bool | None = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(25, ge=1, le=200),
    db: Session = Depends(get_db),
    caller: Profile = Depends(require_roles(*STAFF)),
):
    q = db.query(Company)
    if caller.role != Role.SUPERADMIN:
        q = q.filter(Company.id == caller.company_id)
    if name:
        q = q.filter(Company.name.ilike(f"%{name.strip()}%"))
    if active is not None:
        q = q.filter(Company.active == active)
    q = q.order_by(Company.name.asc())
    return paginate(q, page, page_size, lambda c: CompanyOut.model_validate(c).model_dump())


@router.post("", status_code=201, response_model=CompanyOut)
def create_company(
    payload: CompanyCreate,
    db: Session = Depends(get_db),
    _caller: Profile = Depends(require_roles(*ADMINS)),
):
    name = payload.name.strip()
    _ensure_unique_name(db, name)
    company = Company(name=name, tax_id=payload.tax_id, phone=payload.phone, email=payload.email)
    with atomic(db, "A company with this name already exists"):
        db.add(company)
    return company


@router.get("/{company_id}", response_model=CompanyOut)
def get_company(company_id: int, db: Session = Depends(get_db), caller: Profile = Depends(require_roles(*STAFF))):
    company = get_or_404(db, Company, company_id, "Company")
    ensure_company_access(caller, company.id)
    return company


@router.patch("/{company_id}", response_model=CompanyOut)
def update_company(
    company_id: int,
    payload: CompanyUpdate,
    db: Session = Depends(get_db),
    caller: Profile = Depends(require_roles(*MANAGERS)),
):
    company = get_or_404(db, Company, company_id, "Company")
    ensure_company_access(caller, company.id)
    data = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "name" in data:
        data["name"] = data["name"].strip()
        _ensure_unique_name(db, data["name"], exclude_id=company.id)
    with atomic(db, "A company with this name already exists"):
        for field, value in data.items():
            setattr(company, field, value)
    return company


@router.patch("/{company_id}/deactivate", response_model=CompanyOut)
def deactivate_company(
    company_id: int,
    db: Session = Depends(get_db),
    _caller: Profile = Depends(require_roles(*ADMINS)),
):
    company = get_or_404(db, Company, company_id, "Company")
    blockers = {
        "branches": count_where(db, Branch, Branch.company_id == company.id, Branch.active.is_(True)),
        "profiles": count_where(db, Profile, Profile.company_id == company.id, Profile.active.is_(True)),
        "buses": count_where(db, Bus, Bus.company_id == company.id, Bus.is_active.is_(True)),
        "drivers": count_where(db, Driver, Driver.company_id == company.id, Driver.active.is_(True)),
    }
    remaining = [f"{n} active {kind}" for kind, n in blockers.items() if n]
    if remaining:
        raise ConflictError("Cannot deactivate company with " + ", ".join(remaining))
    with atomic(db):
        company.active = False
    return company


@router.get("/{company_id}/branches")
def list_branches(
    company_id: int,
    active: bool | None = None,
    db: Session = Depends(get_db),
    caller: Profile = Depends(require_roles(*STAFF)),
):
    get_or_404(db, Company, company_id, "Company")
    ensure_company_access(caller, company_id)
    q = db.query(Branch).filter(Branch.company_id == company_id)
    if active is not None:
        q = q.filter(Branch.active == active)
    return [BranchOut.model_validate(b) for b in q.order_by(Branch.name.asc()).all()]


@router.post("/{company_id}/branches", status_code=201, response_model=BranchOut)
def create_branch(
    company_id: int,
    payload: BranchCreate,
    db: Session = Depends(get_db),
    caller: Profile = Depends(require_roles(*MANAGERS)),
):
    get_or_404(db, Company, company_id, "Company")
    ensure_company_access(caller, company_id)
    if payload.location_id is not None:
        get_or_404(db, Location, payload.location_id, "Location")
    branch = Branch(company_id=company_id, name=payload.name.strip(), location_id=payload.location_id, address=payload.address)
    with atomic(db):
        db.add(branch)
    return branch


@branches_router.patch("/{branch_id}", response_model=BranchOut)
def update_branch(
    branch_id: int,
    payload: BranchUpdate,
    db: Session = Depends(get_db),
    caller: Profile = Depends(require_roles(*MANAGERS)),
):
    branch = get_or_404(db, Branch, branch_id, "Branch")
    ensure_company_access(caller, branch.company_id)
    data = payload.model_dump(exclude_unset=True, exclude_none=True)
    if data.get("location_id") is not None:
        get_or_404(db, Location, data["location_id"], "Location")
    with atomic(db):
        for field, value in data.items():
            setattr(branch, field, value)
    return branch
