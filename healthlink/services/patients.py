"""Admin-side patient directory."""

from decimal import Decimal

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from healthlink.core import config
from healthlink.core.exceptions import ValidationError
from healthlink.models.user import Role, User
from healthlink.services.appointments import Page, get_patient, validate_paging


def list_patients(db: Session, page: int = 1, limit: int = config.DEFAULT_PAGE_LIMIT) -> Page:
    validate_paging(page, limit)

    query = db.query(User).filter(User.role == Role.PATIENT.value)
    total = query.count()
    items = query.order_by(User.full_name.asc(), User.id.asc()).offset((page - 1) * limit).limit(limit).all()

    return Page(items=items, total=total, page=page, limit=limit)


def update_patient(
    db: Session,
    patient_id: int,
    *,
    full_name: str | None = None,
    email: str | None = None,
    billing_amount: Decimal | None = None,
) -> User:
    """Apply an admin's partial edit to a patient's profile.

    Fields left as ``None`` are not touched.
    """
    patient = get_patient(db, patient_id)

    if full_name is not None:
        full_name = full_name.strip()
        if not full_name:
            raise ValidationError('Full name cannot be empty.')
        patient.full_name = full_name
    if email is not None:
        email = email.strip().lower()
        if '@' not in email:
            raise ValidationError('Email address is not valid.')
        patient.email = email
    if billing_amount is not None:
        if billing_amount < 0:
            raise ValidationError('Billing amount cannot be negative.')
        patient.billing_amount = billing_amount

    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ValidationError('Email address is already in use.') from exc

    db.refresh(patient)
    return patient
