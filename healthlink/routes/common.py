from datetime import date

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from healthlink.core.exceptions import ForbiddenError
from healthlink.database import ensure_appointment_schema, ensure_availability_schema
from healthlink.models.appointment import Appointment
from healthlink.models.user import Role, User
from healthlink.routes.schemas import MedicalRecordResponse, PatientResponse
from healthlink.services import appointments, records

DATABASE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL and database credentials.'


def ensure_database_ready() -> None:
    try:
        ensure_availability_schema()
        ensure_appointment_schema()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


def resolve_today(today: date | None) -> date:
    # the client sends its own calendar day; the server's is only a fallback
    return today or date.today()


def ensure_can_view(user: User, appointment: Appointment) -> None:
    if user.role == Role.ADMIN.value:
        return
    if user.role == Role.DOCTOR.value and appointment.doctor_id == user.id:
        return
    if user.role == Role.PATIENT.value and appointment.patient_id == user.id:
        return
    raise ForbiddenError('You can only access your own appointments.')


def to_patient_response(db: Session, patient: User) -> PatientResponse:
    return PatientResponse(
        id=patient.id,
        email=patient.email,
        full_name=patient.full_name or '',
        billing_amount=patient.billing_amount or 0,
        medical_history=[
            MedicalRecordResponse.model_validate(record)
            for record in records.list_records(db, patient.id)
        ],
    )


def load_patient_response(db: Session, patient_id: int) -> PatientResponse:
    return to_patient_response(db, appointments.get_patient(db, patient_id))
