from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, Query
from pydantic import Field, EmailStr
from sqlalchemy import or_
from sqlalchemy.orm import Session

from busline.api.deps import STAFF, require_roles
from busline.api.pagination import paginate
from busline.core.exceptions import ConflictError
from busline.db.gateway import atomic, get_or_404
from busline.db.session import get_db
from busline.models.people import Customer, Profile
from busline.schemas.common import ORMModel, RequestModel

router = APIRouter()

DOCUMENT_TAKEN = "A customer with this document id already exists"


class CustomerCreate(RequestModel):
    full_name: str = Field(..., min_length=1, max_length=255)
    document_id: Optional[str] = Field(None, min_length=1, max_length=64)
    phone: Optional[str] = Field(None, max_length=32)
    email: Optional[EmailStr] = None


class CustomerOut(ORMModel):
    id: int
    full_name: str
    document_id: Optional[str]
    phone: Optional[str]
    email: Optional[str]
    created_at: datetime


@router.get("")
def list_customers(
    search: str | None = Query(None, description="Name or document id"),
    page: int = Query(1, ge=1),
    page_size: int = Query(25, ge=1, le=200),
    db: Session = Depends(get_db),
    _caller: Profile = Depends(require_roles(*STAFF)),
):
    q = db.query(Customer)
    if search:
        s = f"%{search.strip()}%"
        q = q.filter(or_(Customer.full_name.ilike(s), Customer.document_id.ilike(s)))
    q = q.order_by(Customer.full_name.asc())
    return paginate(q, page, page_size, lambda c: CustomerOut.model_validate(c).model_dump())


@router.post("", status_code=201, response_model=CustomerOut)
def create_customer(
    payload: CustomerCreate,
    db: Session = Depends(get_db),
    _caller: Profile = Depends(require_roles(*STAFF)),
):
    document_id = payload.document_id.strip() if payload.document_id else None
    if document_id and db.query(Customer).filter(Customer.document_id == document_id).first():
        raise ConflictError(DOCUMENT_TAKEN)
    customer = Customer(
        full_name=payload.full_name.strip(),
        document_id=document_id,
        phone=payload.phone,
        email=payload.email,
    )
    with atomic(db, DOCUMENT_TAKEN):
        db.add(customer)
    return customer


@router.get("/{customer_id}", response_model=CustomerOut)
def get_customer(customer_id: int, db: Session = Depends(get_db), _caller: Profile = Depends(require_roles(*STAFF))):
    return get_or_404(db, Customer, customer_id, "Customer")
