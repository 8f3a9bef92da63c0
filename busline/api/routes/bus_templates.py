from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from busline.api.deps import MANAGERS, STAFF, company_scope, ensure_company_access, require_roles
from busline.db.gateway import atomic, get_or_404
from busline.db.session import get_db
from busline.models.company import Company
from busline.models.fleet import BusTemplate
from busline.models.people import Profile
from busline.schemas.fleet import BusTemplateCreate, BusTemplateOut, BusTemplateUpdate
from busline.services.fleet import check_matrix_tiers

router = APIRouter()


@router.get("")
def list_bus_templates(
    company_id: int | None = None,
    is_active: bool | None = None,
    db: Session = Depends(get_db),
    caller: Profile = Depends(require_roles(*STAFF)),
):
    q = db.query(BusTemplate)
    scope = company_scope(caller)
    if scope is not None:
        q = q.filter(BusTemplate.company_id == scope)
    if company_id is not None:
        q = q.filter(BusTemplate.company_id == company_id)
    if is_active is not None:
        q = q.filter(BusTemplate.is_active == is_active)
    return [BusTemplateOut.model_validate(t) for t in q.order_by(BusTemplate.name.asc()).all()]


@router.post("", status_code=201, response_model=BusTemplateOut)
def create_bus_template(
    payload: BusTemplateCreate,
    db: Session = Depends(get_db),
    caller: Profile = Depends(require_roles(*MANAGERS)),
):
    get_or_404(db, Company, payload.company_id, "Company")
    ensure_company_access(caller, payload.company_id)
    check_matrix_tiers(db, payload.company_id, payload.seat_template_matrix)
    template = BusTemplate(
        company_id=payload.company_id,
        name=payload.name.strip(),
        description=payload.description,
        seat_template_matrix=payload.seat_template_matrix.model_dump(exclude_none=True),
    )
    with atomic(db):
        db.add(template)
    return template


@router.get("/{template_id}", response_model=BusTemplateOut)
def get_bus_template(template_id: int, db: Session = Depends(get_db), caller: Profile = Depends(require_roles(*STAFF))):
    template = get_or_404(db, BusTemplate, template_id, "Bus template")
    ensure_company_access(caller, template.company_id)
    return template


@router.patch("/{template_id}", response_model=BusTemplateOut)
def update_bus_template(
    template_id: int,
    payload: BusTemplateUpdate,
    db: Session = Depends(get_db),
    caller: Profile = Depends(require_roles(*MANAGERS)),
):
    template = get_or_404(db, BusTemplate, template_id, "Bus template")
    ensure_company_access(caller, template.company_id)
    data = payload.model_dump(exclude_unset=True, exclude_none=True)
    if payload.seat_template_matrix is not None:
        check_matrix_tiers(db, template.company_id, payload.seat_template_matrix)
        # buses already built from the template keep their own copy
        data["seat_template_matrix"] = payload.seat_template_matrix.model_dump(exclude_none=True)
    with atomic(db):
        for field, value in data.items():
            setattr(template, field, value)
    return template
