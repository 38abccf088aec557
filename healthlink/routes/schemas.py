from datetime import date, datetime, time
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from healthlink.core import config
from healthlink.models.appointment import Appointment, AppointmentStatus
from healthlink.models.availability import DayOfWeek
from healthlink.services.stats import record_label


class AvailabilitySlotRequest(BaseModel):
    day_of_week: DayOfWeek
    start_time: time
    end_time: time

    @field_validator('day_of_week', mode='before')
    @classmethod
    def normalize_day(cls, value):
        if isinstance(value, str):
            return value.strip().lower()
        return value


class UpdateAvailabilityRequest(BaseModel):
    availability: list[AvailabilitySlotRequest]


class AvailabilitySlotResponse(BaseModel):
    id: int
    day_of_week: DayOfWeek
    start_time: time
    end_time: time

    class Config:
        from_attributes = True


class OpenSlotsResponse(BaseModel):
    doctor_id: int
    date: date
    slots: list[time]


class BookAppointmentRequest(BaseModel):
    doctor_id: int
    appointment_date: date
    time_slot: time
    reason: str | None = None

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str | None) -> str | None:
        if value is None:
            return None

        normalized = value.strip()
        if not normalized:
            return None

        if len(normalized) > config.MAX_REASON_LENGTH:
            raise ValueError(f'Reason must be {config.MAX_REASON_LENGTH} characters or fewer.')

        return normalized


class UpdateAppointmentRequest(BaseModel):
    status: AppointmentStatus

    @field_validator('status', mode='before')
    @classmethod
    def normalize_status(cls, value):
        if isinstance(value, str):
            return value.strip().lower()
        return value


class AppointmentResponse(BaseModel):
    id: int
    doctor_id: int
    patient_id: int
    appointment_date: date
    time_slot: time
    status: AppointmentStatus
    reason: str | None = None
    created_at: datetime
    updated_at: datetime
    # display heuristic from medical-history presence, independent of status
    record_label: str | None = None

    class Config:
        from_attributes = True


def to_appointment_response(
    appointment: Appointment,
    history_patient_ids: set[int] | None = None,
) -> AppointmentResponse:
    response = AppointmentResponse.model_validate(appointment)
    if history_patient_ids is not None:
        response.record_label = record_label(appointment.patient_id in history_patient_ids)
    return response


class PaginatedAppointmentsResponse(BaseModel):
    appointments: list[AppointmentResponse]
    total: int
    page: int
    limit: int
    pages: int


class SkippedAppointment(BaseModel):
    appointment_id: int
    reason: str


class BulkTransitionResponse(BaseModel):
    updated: list[AppointmentResponse]
    skipped: list[SkippedAppointment]


class MedicalRecordRequest(BaseModel):
    diagnosis: str = Field(min_length=1)
    treatment: str | None = None
    notes: str | None = None


class MedicalRecordResponse(BaseModel):
    id: int
    doctor_id: int
    diagnosis: str
    treatment: str | None = None
    notes: str | None = None
    created_at: datetime

    class Config:
        from_attributes = True


class PatientResponse(BaseModel):
    id: int
    email: str
    full_name: str
    billing_amount: Decimal
    medical_history: list[MedicalRecordResponse] = []


class PaginatedPatientsResponse(BaseModel):
    patients: list[PatientResponse]
    total: int
    page: int
    limit: int
    pages: int


class BillingRequest(BaseModel):
    billing_amount: Decimal = Field(ge=0)


class UpdatePatientRequest(BaseModel):
    full_name: str | None = Field(default=None, min_length=1)
    email: str | None = None
    billing_amount: Decimal | None = Field(default=None, ge=0)


class DoctorResponse(BaseModel):
    id: int
    email: str
    full_name: str
    is_active: bool

    class Config:
        from_attributes = True


class PaginatedDoctorsResponse(BaseModel):
    doctors: list[DoctorResponse]
    total: int
    page: int
    limit: int
    pages: int


class StatsResponse(BaseModel):
    total_appointments: int
    pending_count: int
    confirmed_count: int
    completed_count: int
    cancelled_count: int
    today_count: int
    total_patients: int
    total_doctors: int | None = None
    active_doctors: int | None = None

    class Config:
        from_attributes = True


class DoctorDashboardResponse(BaseModel):
    stats: StatsResponse
    today_appointments: list[AppointmentResponse]
    computed_at: datetime
    stale: bool = False


class AdminDashboardResponse(BaseModel):
    stats: StatsResponse
    appointments_by_day: dict[date, int]
    appointments_by_doctor: dict[int, int]
    recent_appointments: list[AppointmentResponse]
    computed_at: datetime
    stale: bool = False


class PaginatedDoctorsResponse(BaseModel):
    doctors: list[DoctorResponse]
    total: int
    page: int
    limit: int
    pages: int
