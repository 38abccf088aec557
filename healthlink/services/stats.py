"""Dashboard statistics.

Everything here is read-only. ``today`` always comes from the caller so the
numbers match the calendar day the dashboard is showing.
"""

from collections import Counter
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable

from sqlalchemy import func
from sqlalchemy.orm import Session

from healthlink.models.appointment import Appointment, AppointmentStatus
from healthlink.models.medical_record import MedicalRecord
from healthlink.models.user import Role, User

COMPLETED_LABEL = 'Completed'
PENDING_LABEL = 'Pending'


@dataclass
class Stats:
    total_appointments: int = 0
    pending_count: int = 0
    confirmed_count: int = 0
    completed_count: int = 0
    cancelled_count: int = 0
    today_count: int = 0
    total_patients: int = 0
    total_doctors: int | None = None
    active_doctors: int | None = None


def calendar_day(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def _apply_status_counts(stats: Stats, counts: dict[str, int]) -> Stats:
    stats.pending_count = counts.get(AppointmentStatus.PENDING.value, 0)
    stats.confirmed_count = counts.get(AppointmentStatus.CONFIRMED.value, 0)
    stats.completed_count = counts.get(AppointmentStatus.COMPLETED.value, 0)
    stats.cancelled_count = counts.get(AppointmentStatus.CANCELLED.value, 0)
    return stats


def summarize(appointments: Iterable[Appointment], today: date) -> Stats:
    """Stats over an in-memory list, e.g. merged status batches."""
    appointments = list(appointments)
    stats = Stats(
        total_appointments=len(appointments),
        today_count=sum(1 for item in appointments if calendar_day(item.appointment_date) == today),
        total_patients=len({item.patient_id for item in appointments}),
    )
    return _apply_status_counts(stats, Counter(item.status for item in appointments))


def _status_counts(query) -> dict[str, int]:
    rows = query.with_entities(Appointment.status, func.count(Appointment.id)).group_by(Appointment.status).all()
    return {status: count for status, count in rows}


def compute_doctor_stats(db: Session, doctor_id: int, today: date) -> Stats:
    query = db.query(Appointment).filter(Appointment.doctor_id == doctor_id)

    stats = Stats(
        total_appointments=query.count(),
        today_count=query.filter(Appointment.appointment_date == today).count(),
        total_patients=query.with_entities(func.count(func.distinct(Appointment.patient_id))).scalar() or 0,
    )
    return _apply_status_counts(stats, _status_counts(query))


def compute_admin_stats(db: Session, today: date) -> Stats:
    query = db.query(Appointment)
    doctors = db.query(User).filter(User.role == Role.DOCTOR.value)

    stats = Stats(
        total_appointments=query.count(),
        today_count=query.filter(Appointment.appointment_date == today).count(),
        total_patients=db.query(User).filter(User.role == Role.PATIENT.value).count(),
        total_doctors=doctors.count(),
        active_doctors=doctors.filter(User.is_active.is_(True)).count(),
    )
    return _apply_status_counts(stats, _status_counts(query))


def count_by_day(appointments: Iterable[Appointment]) -> dict[date, int]:
    counts = Counter(calendar_day(item.appointment_date) for item in appointments)
    return dict(sorted(counts.items()))


def count_by_doctor(appointments: Iterable[Appointment]) -> dict[int, int]:
    counts = Counter(item.doctor_id for item in appointments)
    return dict(sorted(counts.items()))


def recent_appointments(db: Session, limit: int) -> list[Appointment]:
    return db.query(Appointment).order_by(
        Appointment.created_at.desc(),
        Appointment.id.desc(),
    ).limit(limit).all()


def patients_with_history(db: Session, patient_ids: Iterable[int]) -> set[int]:
    patient_ids = set(patient_ids)
    if not patient_ids:
        return set()

    rows = db.query(MedicalRecord.patient_id).filter(MedicalRecord.patient_id.in_(patient_ids)).distinct().all()
    return {row.patient_id for row in rows}


def record_label(has_history: bool) -> str:
    """Display label shown next to an appointment on the dashboards.

    A patient with any medical-history entry reads as "Completed". This is a
    presentation heuristic only: it is never written to ``status`` and never
    counted in ``Stats``.
    """
    return COMPLETED_LABEL if has_history else PENDING_LABEL
