from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from healthlink.auth.dependencies import require_role
from healthlink.core import config
from healthlink.database import get_db
from healthlink.models.appointment import Appointment
from healthlink.models.user import Role, User
from healthlink.routes.common import ensure_database_ready, resolve_today, to_patient_response
from healthlink.routes.schemas import (
    AdminDashboardResponse,
    AppointmentResponse,
    DoctorResponse,
    PaginatedAppointmentsResponse,
    PaginatedDoctorsResponse,
    PaginatedPatientsResponse,
    PatientResponse,
    StatsResponse,
    UpdateAppointmentRequest,
    UpdatePatientRequest,
    to_appointment_response,
)
from healthlink.services import appointments, doctors, patients, slots, stats, status_machine
from healthlink.services.dashboard import dashboard_cache

router = APIRouter(tags=['admin'])

require_admin = require_role(Role.ADMIN)


def load_admin_dashboard(db: Session, today: date) -> dict:
    every_appointment = db.query(Appointment).all()
    recent = stats.recent_appointments(db, config.RECENT_APPOINTMENTS_LIMIT)
    with_history = stats.patients_with_history(db, (item.patient_id for item in recent))

    return {
        'stats': StatsResponse.model_validate(stats.compute_admin_stats(db, today)),
        'appointments_by_day': stats.count_by_day(every_appointment),
        'appointments_by_doctor': stats.count_by_doctor(every_appointment),
        'recent_appointments': [to_appointment_response(item, with_history) for item in recent],
    }


@router.get('/dashboard/stats', response_model=AdminDashboardResponse)
def get_dashboard_stats(
    today: date | None = Query(default=None),
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    del current_user
    ensure_database_ready()

    day = resolve_today(today)
    snapshot = dashboard_cache.refresh('admin', lambda: load_admin_dashboard(db, day), day=day)
    return AdminDashboardResponse(**snapshot.data, computed_at=snapshot.computed_at, stale=snapshot.stale)


@router.get('/appointments/doctor/{doctor_id}', response_model=PaginatedAppointmentsResponse)
def list_doctor_appointments(
    doctor_id: int,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=config.DEFAULT_PAGE_LIMIT, ge=1, le=config.MAX_PAGE_LIMIT),
    status: str | None = Query(default=None),
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    del current_user
    ensure_database_ready()

    slots.get_doctor(db, doctor_id)
    status_filter = appointments.parse_status(status) if status else None
    result = appointments.list_by_doctor(db, doctor_id, status=status_filter, page=page, limit=limit)
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
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    appointment = appointments.get(db, appointment_id)
    return to_appointment_response(
        status_machine.transition(db, appointment, data.status, current_user.role)
    )


@router.patch('/doctors/{doctor_id}/toggle-status', response_model=DoctorResponse)
def toggle_doctor_status(
    doctor_id: int,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    del current_user
    ensure_database_ready()
    return doctors.toggle_doctor_status(db, doctor_id)


@router.get('/doctors', response_model=PaginatedDoctorsResponse)
def list_all_doctors(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=config.DEFAULT_PAGE_LIMIT, ge=1, le=config.MAX_PAGE_LIMIT),
    active: bool | None = Query(default=None),
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    del current_user
    ensure_database_ready()

    result = doctors.list_doctors(db, page=page, limit=limit, active=active)
    return PaginatedDoctorsResponse(
        doctors=[DoctorResponse.model_validate(item) for item in result.items],
        total=result.total,
        page=result.page,
        limit=result.limit,
        pages=result.pages,
    )


@router.get('/patients', response_model=PaginatedPatientsResponse)
def list_all_patients(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=config.DEFAULT_PAGE_LIMIT, ge=1, le=config.MAX_PAGE_LIMIT),
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    del current_user
    ensure_database_ready()

    result = patients.list_patients(db, page=page, limit=limit)
    return PaginatedPatientsResponse(
        patients=[to_patient_response(db, patient) for patient in result.items],
        total=result.total,
        page=result.page,
        limit=result.limit,
        pages=result.pages,
    )


@router.patch('/patients/{patient_id}', response_model=PatientResponse)
def update_patient(
    patient_id: int,
    data: UpdatePatientRequest,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    del current_user
    ensure_database_ready()

    patient = patients.update_patient(
        db,
        patient_id,
        full_name=data.full_name,
        email=data.email,
        billing_amount=data.billing_amount,
    )
    return to_patient_response(db, patient)


@router.get('/appointments', response_model=PaginatedAppointmentsResponse)
def list_all_appointments(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=config.DEFAULT_PAGE_LIMIT, ge=1, le=config.MAX_PAGE_LIMIT),
    status: str | None = Query(default=None),
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    del current_user
    ensure_database_ready()

    status_filter = appointments.parse_status(status) if status else None
    result = appointments.list_all(db, status=status_filter, page=page, limit=limit)
    with_history = stats.patients_with_history(db, (item.patient_id for item in result.items))

    return PaginatedAppointmentsResponse(
        appointments=[to_appointment_response(item, with_history) for item in result.items],
        total=result.total,
        page=result.page,
        limit=result.limit,
        pages=result.pages,
    )
