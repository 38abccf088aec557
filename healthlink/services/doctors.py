from sqlalchemy.orm import Session

from healthlink.core import config
from healthlink.models.user import Role, User
from healthlink.services.appointments import Page, validate_paging
from healthlink.services.slots import get_doctor


def list_doctors(
    db: Session,
    page: int = 1,
    limit: int = config.DEFAULT_PAGE_LIMIT,
    active: bool | None = None,
) -> Page:
    validate_paging(page, limit)

    query = db.query(User).filter(User.role == Role.DOCTOR.value)
    if active is not None:
        query = query.filter(User.is_active == active)

    total = query.count()
    items = query.order_by(User.full_name.asc(), User.id.asc()).offset((page - 1) * limit).limit(limit).all()

    return Page(items=items, total=total, page=page, limit=limit)


def toggle_doctor_status(db: Session, doctor_id: int) -> User:
    doctor = get_doctor(db, doctor_id)
    doctor.is_active = not doctor.is_active
    db.commit()
    db.refresh(doctor)
    return doctor
