from datetime import date, datetime

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from healthlink.auth.dependencies import get_current_user, require_role
from healthlink.core.exceptions import ForbiddenError
from healthlink.database import get_db
from healthlink.models.appointment import AppointmentStatus
from healthlink.models.user import Role, User
from healthlink.routes.common import ensure_can_view, ensure_database_ready
from healthlink.routes.schemas import (
    AppointmentResponse,
    BookAppointmentRequest,
    OpenSlotsResponse,
    to_appointment_response,
)
from healthlink.services import appointments, slots, stats, status_machine

router = APIRouter(tags=['appointments'])

require_patient = require_role(Role.PATIENT)


@router.get('/doctors/{doctor_id}/slots', response_model=OpenSlotsResponse)
def list_open_slots(
    doctor_id: int,
    slot_date: date = Query(..., alias='date'),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    del current_user
    ensure_database_ready()
    return OpenSlotsResponse(
        doctor_id=doctor_id,
        date=slot_date,
        slots=slots.list_open_slots(db, doctor_id, slot_date),
    )


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def book_appointment(
    data: BookAppointmentRequest,
    current_user: User = Depends(require_patient),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    appointment = appointments.book(
        db,
        doctor_id=data.doctor_id,
        patient_id=current_user.id,
        appointment_date=data.appointment_date,
        time_slot=data.time_slot,
        reason=data.reason,
        now=datetime.now(),
    )
    return to_appointment_response(appointment)


@router.get('/mine', response_model=list[AppointmentResponse])
def list_my_appointments(
    current_user: User = Depends(require_patient),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    items = appointments.list_by_patient(db, current_user.id)
    with_history = stats.patients_with_history(db, [current_user.id])
    return [to_appointment_response(item, with_history) for item in items]


@router.get('/{appointment_id}', response_model=AppointmentResponse)
def get_appointment(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    appointment = appointments.get(db, appointment_id)
    ensure_can_view(current_user, appointment)
    with_history = stats.patients_with_history(db, [appointment.patient_id])
    return to_appointment_response(appointment, with_history)


@router.patch('/{appointment_id}/cancel', response_model=AppointmentResponse)
def cancel_my_appointment(
    appointment_id: int,
    current_user: User = Depends(require_patient),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    appointment = appointments.get(db, appointment_id)
    if appointment.patient_id != current_user.id:
        raise ForbiddenError('Only the patient who booked this appointment can cancel it.')

    return to_appointment_response(
        status_machine.transition(db, appointment, AppointmentStatus.CANCELLED, current_user.role)
    )
