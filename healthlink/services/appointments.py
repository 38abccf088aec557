"""Appointment booking and lookups."""

import math
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Iterable

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from healthlink.core import config
from healthlink.core.exceptions import NotFoundError, SlotUnavailableError, ValidationError
from healthlink.models.appointment import Appointment, AppointmentStatus, make_slot_hold
from healthlink.models.user import Role, User
from healthlink.services.slots import get_doctor, is_slot_available


@dataclass
class Page:
    items: list = field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = config.DEFAULT_PAGE_LIMIT

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.total else 0


def validate_paging(page: int, limit: int) -> None:
    if page < 1:
        raise ValidationError('Page must be 1 or greater.')
    if limit < 1 or limit > config.MAX_PAGE_LIMIT:
        raise ValidationError(f'Limit must be between 1 and {config.MAX_PAGE_LIMIT}.')


def parse_status(value: str) -> AppointmentStatus:
    try:
        return AppointmentStatus(value.strip().lower())
    except ValueError as exc:
        raise ValidationError(f'Unknown appointment status: {value}.') from exc


def get_patient(db: Session, patient_id: int) -> User:
    patient = db.query(User).filter(User.id == patient_id, User.role == Role.PATIENT.value).first()
    if patient is None:
        raise NotFoundError('Patient not found.')
    return patient


def book(
    db: Session,
    doctor_id: int,
    patient_id: int,
    appointment_date: date,
    time_slot: time,
    reason: str | None,
    now: datetime,
) -> Appointment:
    doctor = get_doctor(db, doctor_id)
    get_patient(db, patient_id)

    if not doctor.is_active:
        raise ValidationError('Doctor is not accepting appointments.')

    time_slot = time_slot.replace(second=0, microsecond=0)
    if datetime.combine(appointment_date, time_slot) <= now:
        raise ValidationError('Appointments must be scheduled in the future.')

    if reason is not None:
        reason = reason.strip() or None
    if reason and len(reason) > config.MAX_REASON_LENGTH:
        raise ValidationError(f'Reason must be {config.MAX_REASON_LENGTH} characters or fewer.')

    if not is_slot_available(db, doctor_id, appointment_date, time_slot):
        raise SlotUnavailableError()

    appointment = Appointment(
        doctor_id=doctor_id,
        patient_id=patient_id,
        appointment_date=appointment_date,
        time_slot=time_slot,
        status=AppointmentStatus.PENDING.value,
        reason=reason,
        created_at=now,
        updated_at=now,
        slot_hold=make_slot_hold(doctor_id, appointment_date, time_slot),
    )
    db.add(appointment)
    try:
        db.commit()
    except IntegrityError as exc:
        # another booker took the slot between the check and the insert
        db.rollback()
        raise SlotUnavailableError() from exc

    db.refresh(appointment)
    return appointment


def get(db: Session, appointment_id: int) -> Appointment:
    appointment = db.query(Appointment).filter(Appointment.id == appointment_id).first()
    if appointment is None:
        raise NotFoundError('Appointment not found.')
    return appointment


def _chronological(query):
    return query.order_by(
        Appointment.appointment_date.asc(),
        Appointment.time_slot.asc(),
        Appointment.id.asc(),
    )


def list_by_doctor(
    db: Session,
    doctor_id: int,
    status: AppointmentStatus | None = None,
    page: int = 1,
    limit: int = config.DEFAULT_PAGE_LIMIT,
    on_date: date | None = None,
) -> Page:
    validate_paging(page, limit)

    query = db.query(Appointment).filter(Appointment.doctor_id == doctor_id)
    if status is not None:
        query = query.filter(Appointment.status == status.value)
    if on_date is not None:
        query = query.filter(Appointment.appointment_date == on_date)

    total = query.count()
    items = _chronological(query).offset((page - 1) * limit).limit(limit).all()

    return Page(items=items, total=total, page=page, limit=limit)


def list_all(
    db: Session,
    status: AppointmentStatus | None = None,
    page: int = 1,
    limit: int = config.DEFAULT_PAGE_LIMIT,
) -> Page:
    validate_paging(page, limit)

    query = db.query(Appointment)
    if status is not None:
        query = query.filter(Appointment.status == status.value)

    total = query.count()
    items = _chronological(query).offset((page - 1) * limit).limit(limit).all()

    return Page(items=items, total=total, page=page, limit=limit)


def list_by_patient(db: Session, patient_id: int) -> list[Appointment]:
    return _chronological(db.query(Appointment).filter(Appointment.patient_id == patient_id)).all()


def merge_appointment_batches(*batches: Iterable[Appointment]) -> list[Appointment]:
    """Merge status-filtered result sets, keeping the first copy of each id."""
    seen: set[int] = set()
    merged: list[Appointment] = []

    for batch in batches:
        for appointment in batch:
            if appointment.id in seen:
                continue
            seen.add(appointment.id)
            merged.append(appointment)

    return merged


def list_doctor_patients(
    db: Session,
    doctor_id: int,
    page: int = 1,
    limit: int = config.DEFAULT_PAGE_LIMIT,
) -> Page:
    validate_paging(page, limit)

    patient_ids = select(Appointment.patient_id).where(Appointment.doctor_id == doctor_id).distinct()
    query = db.query(User).filter(User.id.in_(patient_ids))

    total = query.with_entities(func.count(User.id)).scalar() or 0
    items = query.order_by(User.full_name.asc(), User.id.asc()).offset((page - 1) * limit).limit(limit).all()

    return Page(items=items, total=total, page=page, limit=limit)


def doctor_treats_patient(db: Session, doctor_id: int, patient_id: int) -> bool:
    return db.query(Appointment.id).filter(
        Appointment.doctor_id == doctor_id,
        Appointment.patient_id == patient_id,
    ).first() is not None
