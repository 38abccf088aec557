"""User model definitions."""

from enum import Enum

from sqlalchemy import Boolean, Column, Integer, Numeric, String
from healthlink.database import Base


class Role(str, Enum):
    ADMIN = "admin"
    DOCTOR = "doctor"
    PATIENT = "patient"


class User(Base):
    """Represents an application user: an admin, a doctor or a patient."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String, nullable=False, default="")
    role = Column(String, nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    billing_amount = Column(Numeric(10, 2), nullable=False, default=0)
