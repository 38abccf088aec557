"""Doctor weekly availability and slot lookups."""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from sqlalchemy.orm import Session

from healthlink.core import config
from healthlink.core.exceptions import NotFoundError, ValidationError
from healthlink.models.appointment import Appointment, AppointmentStatus
from healthlink.models.availability import AvailabilitySlot, DayOfWeek
from healthlink.models.user import Role, User


@dataclass(frozen=True)
class SlotInput:
    day_of_week: DayOfWeek
    start_time: time
    end_time: time


def get_doctor(db: Session, doctor_id: int) -> User:
    doctor = db.query(User).filter(User.id == doctor_id, User.role == Role.DOCTOR.value).first()
    if doctor is None:
        raise NotFoundError('Doctor not found.')
    return doctor


def validate_slots(slots: list[SlotInput]) -> None:
    by_day: dict[DayOfWeek, list[SlotInput]] = {}
    for slot in slots:
        if slot.start_time >= slot.end_time:
            raise ValidationError(
                f'Start time must be before end time ({slot.day_of_week.value} '
                f'{slot.start_time:%H:%M}-{slot.end_time:%H:%M}).'
            )
        by_day.setdefault(slot.day_of_week, []).append(slot)

    for day, day_slots in by_day.items():
        ordered = sorted(day_slots, key=lambda item: item.start_time)
        for previous, current in zip(ordered, ordered[1:]):
            # [start, end) ranges: touching windows are fine
            if current.start_time < previous.end_time:
                raise ValidationError(
                    f'Availability windows overlap on {day.value}: '
                    f'{previous.start_time:%H:%M}-{previous.end_time:%H:%M} and '
                    f'{current.start_time:%H:%M}-{current.end_time:%H:%M}.'
                )


def _sort_key(slot: AvailabilitySlot) -> tuple[int, time]:
    return DayOfWeek(slot.day_of_week).weekday, slot.start_time


def get_availability(db: Session, doctor_id: int) -> list[AvailabilitySlot]:
    slots = db.query(AvailabilitySlot).filter(AvailabilitySlot.doctor_id == doctor_id).all()
    return sorted(slots, key=_sort_key)


def set_availability(db: Session, doctor_id: int, slots: list[SlotInput]) -> list[AvailabilitySlot]:
    """Replace the doctor's whole weekly availability.

    Nothing is written unless every window is valid.
    """
    get_doctor(db, doctor_id)
    validate_slots(slots)

    db.query(AvailabilitySlot).filter(AvailabilitySlot.doctor_id == doctor_id).delete(
        synchronize_session=False
    )
    db.add_all(
        AvailabilitySlot(
            doctor_id=doctor_id,
            day_of_week=slot.day_of_week.value,
            start_time=slot.start_time,
            end_time=slot.end_time,
        )
        for slot in slots
    )
    db.commit()

    return get_availability(db, doctor_id)


def _slots_for_day(db: Session, doctor_id: int, appointment_date: date) -> list[AvailabilitySlot]:
    day = DayOfWeek.from_date(appointment_date)
    return db.query(AvailabilitySlot).filter(
        AvailabilitySlot.doctor_id == doctor_id,
        AvailabilitySlot.day_of_week == day.value,
    ).order_by(AvailabilitySlot.start_time.asc()).all()


def get_held_slots(db: Session, doctor_id: int, appointment_date: date) -> set[time]:
    rows = db.query(Appointment.time_slot).filter(
        Appointment.doctor_id == doctor_id,
        Appointment.appointment_date == appointment_date,
        Appointment.status != AppointmentStatus.CANCELLED.value,
    ).all()
    return {row.time_slot for row in rows}


def _minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def overlaps_held(slot_time: time, held: set[time]) -> bool:
    """True when a slot starting at ``slot_time`` runs into any held slot."""
    start = _minutes(slot_time)
    return any(abs(start - _minutes(other)) < config.SLOT_DURATION_MINUTES for other in held)


def is_slot_available(db: Session, doctor_id: int, appointment_date: date, time_slot: time) -> bool:
    windows = _slots_for_day(db, doctor_id, appointment_date)
    if not any(time_slot in iterate_slot_starts(window, appointment_date) for window in windows):
        return False

    return not overlaps_held(time_slot, get_held_slots(db, doctor_id, appointment_date))


def iterate_slot_starts(window: AvailabilitySlot, appointment_date: date) -> list[time]:
    step = timedelta(minutes=config.SLOT_DURATION_MINUTES)
    current = datetime.combine(appointment_date, window.start_time)
    window_end = datetime.combine(appointment_date, window.end_time)

    starts: list[time] = []
    while current + step <= window_end:
        starts.append(current.time())
        current += step

    return starts


def list_open_slots(db: Session, doctor_id: int, appointment_date: date) -> list[time]:
    get_doctor(db, doctor_id)
    held = get_held_slots(db, doctor_id, appointment_date)

    open_slots: list[time] = []
    for window in _slots_for_day(db, doctor_id, appointment_date):
        open_slots.extend(
            start for start in iterate_slot_starts(window, appointment_date) if not overlaps_held(start, held)
        )

    return open_slots
