from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from healthlink.auth.dependencies import require_role
from healthlink.core import config
from healthlink.core.exceptions import ForbiddenError
from healthlink.database import get_db
from healthlink.models.appointment import AppointmentStatus
from healthlink.models.user import Role, User
from healthlink.routes.common import (
    ensure_database_ready,
    load_patient_response,
    resolve_today,
    to_patient_response,
)
from healthlink.routes.schemas import (
    AppointmentResponse,
    AvailabilitySlotResponse,
    BillingRequest,
    BulkTransitionResponse,
    DoctorDashboardResponse,
    MedicalRecordRequest,
    PaginatedAppointmentsResponse,
    PaginatedPatientsResponse,
    PatientResponse,
    SkippedAppointment,
    StatsResponse,
    UpdateAppointmentRequest,
    UpdateAvailabilityRequest,
    to_appointment_response,
)
from healthlink.services import appointments, records, slots, stats, status_machine
from healthlink.services.dashboard import dashboard_cache

router = APIRouter(tags=['doctor'])

DASHBOARD_STATUSES = (
    AppointmentStatus.PENDING,
    AppointmentStatus.CONFIRMED,
    AppointmentStatus.COMPLETED,
)

require_doctor = require_role(Role.DOCTOR)


@router.get('/availability', response_model=list[AvailabilitySlotResponse])
def get_my_availability(
    current_user: User = Depends(require_doctor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()
    return slots.get_availability(db, current_user.id)


@router.put('/availability', response_model=list[AvailabilitySlotResponse])
def update_my_availability(
    data: UpdateAvailabilityRequest,
    current_user: User = Depends(require_doctor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()
    return slots.set_availability(
        db,
        current_user.id,
        [
            slots.SlotInput(day_of_week=slot.day_of_week, start_time=slot.start_time, end_time=slot.end_time)
            for slot in data.availability
        ],
    )


@router.get('/appointments', response_model=PaginatedAppointmentsResponse)
def list_my_appointments(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=config.DEFAULT_PAGE_LIMIT, ge=1, le=config.MAX_PAGE_LIMIT),
    status: str | None = Query(default=None),
    current_user: User = Depends(require_doctor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    status_filter = appointments.parse_status(status) if status else None
    result = appointments.list_by_doctor(db, current_user.id, status=status_filter, page=page, limit=limit)
    with_history = stats.patients_with_history(db, (item.patient_id for item in result.items))

    return PaginatedAppointmentsResponse(
        appointments=[to_appointment_response(item, with_history) for item in result.items],
        total=result.total,
        page=result.page,
        limit=result.limit,
        pages=result.pages,
    )


@router.patch('/appointments/{appointment_id}', response_model=AppointmentResponse)
def update_appointment_status(
    appointment_id: int,
    data: UpdateAppointmentRequest,
    current_user: User = Depends(require_doctor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    appointment = appointments.get(db, appointment_id)
    if appointment.doctor_id != current_user.id:
        raise ForbiddenError('You can only update your own appointments.')

    return to_appointment_response(
        status_machine.transition(db, appointment, data.status, current_user.role)
    )


@router.patch('/appointments/patient/{patient_id}', response_model=BulkTransitionResponse)
def update_appointment_status_by_patient(
    patient_id: int,
    data: UpdateAppointmentRequest,
    current_user: User = Depends(require_doctor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    result = status_machine.transition_all_for_patient(
        db, current_user.id, patient_id, data.status, current_user.role
    )
    return BulkTransitionResponse(
        updated=[to_appointment_response(item) for item in result.updated],
        skipped=[
            SkippedAppointment(appointment_id=appointment_id, reason=reason)
            for appointment_id, reason in result.skipped
        ],
    )


@router.get('/patients', response_model=PaginatedPatientsResponse)
def list_my_patients(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=config.DEFAULT_PAGE_LIMIT, ge=1, le=config.MAX_PAGE_LIMIT),
    current_user: User = Depends(require_doctor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    result = appointments.list_doctor_patients(db, current_user.id, page=page, limit=limit)
    return PaginatedPatientsResponse(
        patients=[to_patient_response(db, patient) for patient in result.items],
        total=result.total,
        page=result.page,
        limit=result.limit,
        pages=result.pages,
    )


@router.post('/patients/{patient_id}/records', response_model=PatientResponse, status_code=201)
def add_patient_record(
    patient_id: int,
    data: MedicalRecordRequest,
    current_user: User = Depends(require_doctor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()
    records.add_record(db, current_user.id, patient_id, data.diagnosis, data.treatment, data.notes)
    return load_patient_response(db, patient_id)


@router.put('/patients/{patient_id}/records/{record_index}', response_model=PatientResponse)
def update_patient_record(
    patient_id: int,
    record_index: int,
    data: MedicalRecordRequest,
    current_user: User = Depends(require_doctor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()
    records.update_record(
        db, current_user.id, patient_id, record_index, data.diagnosis, data.treatment, data.notes
    )
    return load_patient_response(db, patient_id)


@router.put('/patients/{patient_id}/billing', response_model=PatientResponse)
def update_patient_billing(
    patient_id: int,
    data: BillingRequest,
    current_user: User = Depends(require_doctor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()
    patient = records.update_billing(db, current_user.id, patient_id, data.billing_amount)
    return to_patient_response(db, patient)


@router.get('/stats', response_model=StatsResponse)
def get_doctor_stats(
    today: date | None = Query(default=None),
    current_user: User = Depends(require_doctor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()
    return StatsResponse.model_validate(stats.compute_doctor_stats(db, current_user.id, resolve_today(today)))


def load_doctor_dashboard(db: Session, doctor_id: int, today: date) -> dict:
    batches = [
        appointments.list_by_doctor(
            db, doctor_id, status=status, page=1, limit=config.MAX_PAGE_LIMIT, on_date=today
        ).items
        for status in DASHBOARD_STATUSES
    ]
    todays = sorted(
        appointments.merge_appointment_batches(*batches),
        key=lambda item: (item.time_slot, item.id),
    )
    with_history = stats.patients_with_history(db, (item.patient_id for item in todays))

    return {
        'stats': StatsResponse.model_validate(stats.compute_doctor_stats(db, doctor_id, today)),
        'today_appointments': [to_appointment_response(item, with_history) for item in todays],
    }


@router.get('/dashboard', response_model=DoctorDashboardResponse)
def get_doctor_dashboard(
    today: date | None = Query(default=None),
    current_user: User = Depends(require_doctor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    day = resolve_today(today)
    snapshot = dashboard_cache.refresh(
        ('doctor', current_user.id),
        lambda: load_doctor_dashboard(db, current_user.id, day),
        day=day,
    )
    return DoctorDashboardResponse(**snapshot.data, computed_at=snapshot.computed_at, stale=snapshot.stale)
