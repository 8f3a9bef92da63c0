from typing import Optional
from fastapi import APIRouter, Depends, Query
from pydantic import Field
from sqlalchemy import or_
from sqlalchemy.orm import Session

from busline.api.deps import MANAGERS, STAFF, company_scope, ensure_company_access, require_roles
from busline.core.exceptions import ConflictError, InvalidStateError
from busline.db.gateway import atomic, get_or_404
from busline.db.session import get_db
from busline.models.company import Company
from busline.models.people import Driver, Profile
from busline.schemas.common import ORMModel, RequestModel

router = APIRouter()

DOCUMENT_TAKEN = "A driver with this document id already exists"


class DriverCreate(RequestModel):
    company_id: int
    full_name: str = Field(..., min_length=1, max_length=255)
    document_id: str = Field(..., min_length=1, max_length=64)
    license_number: str = Field(..., min_length=1, max_length=64)
    license_category: Optional[str] = Field(None, max_length=16)
    phone: Optional[str] = Field(None, max_length=32)


class DriverUpdate(RequestModel):
    full_name: Optional[str] = Field(None, min_length=1, max_length=255)
    document_id: Optional[str] = Field(None, min_length=1, max_length=64)
    license_number: Optional[str] = Field(None, min_length=1, max_length=64)
    license_category: Optional[str] = Field(None, max_length=16)
    phone: Optional[str] = Field(None, max_length=32)
    active: Optional[bool] = None


class DriverCompanyAssignment(RequestModel):
    company_id: int


class DriverOut(ORMModel):
    id: int
    company_id: int
    full_name: str
    document_id: str
    license_number: str
    license_category: Optional[str]
    phone: Optional[str]
    active: bool


def _document_taken(db: Session, document_id: str, exclude_id: int | None = None) -> bool:
    q = db.query(Driver).filter(Driver.document_id == document_id)
    if exclude_id is not None:
        q = q.filter(Driver.id != exclude_id)
    return q.first() is not None


@router.get("")
def list_drivers(
    company_id: int | None = None,
    active: bool | None = None,
    search: str | None = Query(None, description="Name or document id"),
    db: Session = Depends(get_db),
    caller: Profile = Depends(require_roles(*STAFF)),
):
    q = db.query(Driver)
    scope = company_scope(caller)
    if scope is not None:
        q = q.filter(Driver.company_id == scope)
    if company_id is not None:
        q = q.filter(Driver.company_id == company_id)
    if active is not None:
        q = q.filter(Driver.active == active)
    if search:
        s = f"%{search.strip()}%"
        q = q.filter(or_(Driver.full_name.ilike(s), Driver.document_id.ilike(s)))
    return [DriverOut.model_validate(d) for d in q.order_by(Driver.full_name.asc()).all()]


@router.post("", status_code=201, response_model=DriverOut)
def create_driver(
    payload: DriverCreate,
    db: Session = Depends(get_db),
    caller: Profile = Depends(require_roles(*MANAGERS)),
):
    get_or_404(db, Company, payload.company_id, "Company")
    ensure_company_access(caller, payload.company_id)
    document_id = payload.document_id.strip()
    if _document_taken(db, document_id):
        raise ConflictError(DOCUMENT_TAKEN)
    driver = Driver(
        company_id=payload.company_id,
        full_name=payload.full_name.strip(),
        document_id=document_id,
        license_number=payload.license_number.strip(),
        license_category=payload.license_category,
        phone=payload.phone,
    )
    with atomic(db, DOCUMENT_TAKEN):
        db.add(driver)
    return driver


@router.get("/{driver_id}", response_model=DriverOut)
def get_driver(driver_id: int, db: Session = Depends(get_db), caller: Profile = Depends(require_roles(*STAFF))):
    driver = get_or_404(db, Driver, driver_id, "Driver")
    ensure_company_access(caller, driver.company_id)
    return driver


@router.patch("/{driver_id}", response_model=DriverOut)
def update_driver(
    driver_id: int,
    payload: DriverUpdate,
    db: Session = Depends(get_db),
    caller: Profile = Depends(require_roles(*MANAGERS)),
):
    driver = get_or_404(db, Driver, driver_id, "Driver")
    ensure_company_access(caller, driver.company_id)
    data = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "document_id" in data:
        data["document_id"] = data["document_id"].strip()
        if _document_taken(db, data["document_id"], exclude_id=driver.id):
            raise ConflictError(DOCUMENT_TAKEN)
    with atomic(db, DOCUMENT_TAKEN):
        for field, value in data.items():
            setattr(driver, field, value)
    return driver


@router.patch("/{driver_id}/assign-company", response_model=DriverOut)
def assign_company(
    driver_id: int,
    payload: DriverCompanyAssignment,
    db: Session = Depends(get_db),
    caller: Profile = Depends(require_roles(*MANAGERS)),
):
    """Move a driver to another company; a company admin must own both sides."""
    driver = get_or_404(db, Driver, driver_id, "Driver")
    ensure_company_access(caller, driver.company_id)
    company = get_or_404(db, Company, payload.company_id, "Company")
    ensure_company_access(caller, company.id)
    if not company.active:
        raise InvalidStateError("Company is inactive")
    with atomic(db):
        driver.company_id = company.id
    return driver
