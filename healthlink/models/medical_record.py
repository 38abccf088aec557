"""Medical record model definitions."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from healthlink.database import Base
from healthlink.models.appointment import utcnow


class MedicalRecord(Base):
    """One entry in a patient's medical history."""
    __tablename__ = "medical_records"

    id = Column(Integer, primary_key=True)
    patient_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    doctor_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    diagnosis = Column(String, nullable=False)
    treatment = Column(String)
    notes = Column(String)
    created_at = Column(DateTime, nullable=False, default=utcnow)
