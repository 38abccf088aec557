"""Availability model definitions."""

from datetime import date
from enum import Enum

from sqlalchemy import Column, ForeignKey, Integer, String, Time
from healthlink.database import Base


class DayOfWeek(str, Enum):
    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"

    @property
    def weekday(self) -> int:
        return list(DayOfWeek).index(self)

    @classmethod
    def from_date(cls, value: date) -> "DayOfWeek":
        return list(cls)[value.weekday()]


class AvailabilitySlot(Base):
    """A weekly window during which a doctor accepts appointments."""
    __tablename__ = "availability_slots"

    id = Column(Integer, primary_key=True)
    doctor_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    day_of_week = Column(String, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
