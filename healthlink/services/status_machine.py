"""Appointment status transitions.

    pending -> confirmed -> completed
    pending | confirmed -> cancelled

``completed`` and ``cancelled`` are terminal. Each role may only move an
appointment into the statuses listed in ``ROLE_GRANTS``; nobody may move one
back to ``pending``.
"""

from dataclasses import dataclass, field

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from healthlink.core.exceptions import (
    ConcurrentUpdateError,
    ForbiddenError,
    HealthLinkError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from healthlink.models.appointment import Appointment, AppointmentStatus
from healthlink.models.user import Role

TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.PENDING: frozenset({AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED}),
    AppointmentStatus.CONFIRMED: frozenset({AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED}),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.CANCELLED: frozenset(),
}

ROLE_GRANTS: dict[Role, frozenset[AppointmentStatus]] = {
    Role.DOCTOR: frozenset({
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.COMPLETED,
        AppointmentStatus.CANCELLED,
    }),
    Role.PATIENT: frozenset({AppointmentStatus.CANCELLED}),
    Role.ADMIN: frozenset({AppointmentStatus.CANCELLED}),
}

GRANTABLE = frozenset().union(*ROLE_GRANTS.values())


@dataclass
class BulkTransitionResult:
    updated: list[Appointment] = field(default_factory=list)
    skipped: list[tuple[int, str]] = field(default_factory=list)


def _coerce(enum_type, value, label: str):
    try:
        return enum_type(value)
    except ValueError as exc:
        raise ValidationError(f'Unknown {label}: {value}.') from exc


def check_transition(current, new_status, actor_role) -> AppointmentStatus:
    """Validate a status change without touching the database."""
    current = _coerce(AppointmentStatus, current, 'appointment status')
    new_status = _coerce(AppointmentStatus, new_status, 'appointment status')
    actor_role = _coerce(Role, actor_role, 'role')

    if not TRANSITIONS[current] or new_status not in GRANTABLE:
        raise InvalidTransitionError(
            f'Cannot change an appointment from {current.value} to {new_status.value}.'
        )

    if new_status not in ROLE_GRANTS[actor_role]:
        raise ForbiddenError(f'A {actor_role.value} cannot mark an appointment as {new_status.value}.')

    if new_status not in TRANSITIONS[current]:
        raise InvalidTransitionError(
            f'Cannot change an appointment from {current.value} to {new_status.value}.'
        )

    return new_status


def _apply(appointment: Appointment, new_status: AppointmentStatus) -> None:
    appointment.status = new_status.value
    if new_status is AppointmentStatus.CANCELLED:
        appointment.slot_hold = None


def transition(db: Session, appointment: Appointment, new_status, actor_role) -> Appointment:
    """Move one appointment to ``new_status`` and commit.

    The row's version counter makes the read-modify-write atomic; if another
    writer committed first the session is rolled back and
    ``ConcurrentUpdateError`` is raised.
    """
    target = check_transition(appointment.status, new_status, actor_role)
    _apply(appointment, target)

    try:
        db.commit()
    except StaleDataError as exc:
        db.rollback()
        raise ConcurrentUpdateError() from exc

    db.refresh(appointment)
    return appointment


def transition_all_for_patient(
    db: Session,
    doctor_id: int,
    patient_id: int,
    new_status,
    actor_role,
) -> BulkTransitionResult:
    appointments = db.query(Appointment).filter(
        Appointment.doctor_id == doctor_id,
        Appointment.patient_id == patient_id,
    ).order_by(Appointment.appointment_date.asc(), Appointment.time_slot.asc(), Appointment.id.asc()).all()

    new_status = _coerce(AppointmentStatus, new_status, 'appointment status')
    actor_role = _coerce(Role, actor_role, 'role')

    if not appointments:
        raise NotFoundError('No appointments found for this patient.')

    appointment_ids = [appointment.id for appointment in appointments]
    result = BulkTransitionResult()

    for appointment_id in appointment_ids:
        # a rollback after a conflict expires every loaded row, so reload each one
        appointment = db.get(Appointment, appointment_id)
        try:
            result.updated.append(transition(db, appointment, new_status, actor_role))
        except HealthLinkError as exc:
            result.skipped.append((appointment_id, exc.message))

    return result
