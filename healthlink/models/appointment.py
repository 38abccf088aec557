"""Appointment model definitions."""

from datetime import date, datetime, time, timezone
from enum import Enum

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, String, Time
from healthlink.database import Base


class AppointmentStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def make_slot_hold(doctor_id: int, appointment_date: date, time_slot: time) -> str:
    return f"{doctor_id}:{appointment_date.isoformat()}:{time_slot.strftime('%H:%M')}"


class Appointment(Base):
    """Represents a booked appointment.

    ``slot_hold`` is unique and set while the appointment occupies its slot,
    so at most one non-cancelled appointment can hold a (doctor, date, time).
    """
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True)
    doctor_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    patient_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    appointment_date = Column(Date, nullable=False)
    time_slot = Column(Time, nullable=False)
    status = Column(String, nullable=False, default=AppointmentStatus.PENDING.value)
    reason = Column(String)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    slot_hold = Column(String, unique=True)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}
