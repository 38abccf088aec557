from datetime import date, datetime, time, timedelta
from decimal import Decimal

import pytest
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import OperationalError

from healthlink.core.exceptions import (
    ForbiddenError,
    InvalidTransitionError,
    ValidationError,
)
from healthlink.models.appointment import Appointment, AppointmentStatus
from healthlink.models.user import Role
from healthlink.routes import doctor_routes
from healthlink.routes.doctor_routes import (
    add_patient_record,
    get_doctor_dashboard,
    get_doctor_stats,
    get_my_availability,
    list_my_appointments,
    list_my_patients,
    update_appointment_status,
    update_appointment_status_by_patient,
    update_my_availability,
    update_patient_billing,
    update_patient_record,
)
from healthlink.routes.schemas import (
    BillingRequest,
    MedicalRecordRequest,
    UpdateAppointmentRequest,
    UpdateAvailabilityRequest,
)
from healthlink.services import appointments

TODAY = date(2026, 1, 5)
NOW = datetime(2026, 1, 1, 8, 0)


def _book(db, doctor, patient, slot_time, appointment_date=TODAY):
    return appointments.book(db, doctor.id, patient.id, appointment_date, slot_time, None, NOW)


def test_update_availability_request_normalizes_day_names() -> None:
    request = UpdateAvailabilityRequest(
        availability=[{'day_of_week': ' Monday ', 'start_time': '09:00', 'end_time': '12:00'}]
    )

    assert request.availability[0].day_of_week.value == 'monday'


def test_update_availability_request_rejects_unknown_day() -> None:
    with pytest.raises(PydanticValidationError):
        UpdateAvailabilityRequest(
            availability=[{'day_of_week': 'funday', 'start_time': '09:00', 'end_time': '12:00'}]
        )


def test_update_and_read_my_availability(db, doctor) -> None:
    data = UpdateAvailabilityRequest(
        availability=[
            {'day_of_week': 'friday', 'start_time': '13:00', 'end_time': '17:00'},
            {'day_of_week': 'monday', 'start_time': '09:00', 'end_time': '12:00'},
        ]
    )

    update_my_availability(data=data, current_user=doctor, db=db)
    current = get_my_availability(current_user=doctor, db=db)

    assert [(slot.day_of_week, slot.start_time) for slot in current] == [
        ('monday', time(9, 0)),
        ('friday', time(13, 0)),
    ]


def test_update_availability_with_overlap_is_rejected(db, doctor) -> None:
    data = UpdateAvailabilityRequest(
        availability=[
            {'day_of_week': 'monday', 'start_time': '09:00', 'end_time': '12:00'},
            {'day_of_week': 'monday', 'start_time': '10:00', 'end_time': '11:00'},
        ]
    )

    with pytest.raises(ValidationError):
        update_my_availability(data=data, current_user=doctor, db=db)


def test_list_my_appointments_paginates_with_record_label(db, doctor, patient, second_patient, monday_morning) -> None:
    _book(db, doctor, patient, time(9, 0))
    _book(db, doctor, second_patient, time(10, 0))
    _book(db, doctor, patient, time(11, 0))
    add_patient_record(
        patient_id=patient.id,
        data=MedicalRecordRequest(diagnosis='Asthma'),
        current_user=doctor,
        db=db,
    )

    response = list_my_appointments(page=1, limit=2, status=None, current_user=doctor, db=db)

    assert response.total == 3
    assert response.pages == 2
    assert [item.time_slot for item in response.appointments] == [time(9, 0), time(10, 0)]
    assert [item.record_label for item in response.appointments] == ['Completed', 'Pending']
    assert all(item.status is AppointmentStatus.PENDING for item in response.appointments)


def test_list_my_appointments_rejects_unknown_status(db, doctor) -> None:
    with pytest.raises(ValidationError):
        list_my_appointments(page=1, limit=10, status='archived', current_user=doctor, db=db)


def test_update_appointment_status_scenario(db, doctor, patient, monday_morning) -> None:
    appointment = _book(db, doctor, patient, time(9, 0))

    confirmed = update_appointment_status(
        appointment_id=appointment.id,
        data=UpdateAppointmentRequest(status='Confirmed'),
        current_user=doctor,
        db=db,
    )
    completed = update_appointment_status(
        appointment_id=appointment.id,
        data=UpdateAppointmentRequest(status='completed'),
        current_user=doctor,
        db=db,
    )

    assert confirmed.status is AppointmentStatus.CONFIRMED
    assert completed.status is AppointmentStatus.COMPLETED

    with pytest.raises(InvalidTransitionError):
        update_appointment_status(
            appointment_id=appointment.id,
            data=UpdateAppointmentRequest(status='pending'),
            current_user=doctor,
            db=db,
        )


def test_update_appointment_status_of_other_doctor_is_forbidden(
    db, doctor, make_user, patient, monday_morning
) -> None:
    appointment = _book(db, doctor, patient, time(9, 0))
    other_doctor = make_user(Role.DOCTOR, 'Dr. Other')

    with pytest.raises(ForbiddenError):
        update_appointment_status(
            appointment_id=appointment.id,
            data=UpdateAppointmentRequest(status='confirmed'),
            current_user=other_doctor,
            db=db,
        )


def test_update_appointment_status_by_patient_reports_partial_success(
    db, doctor, patient, monday_morning
) -> None:
    first = _book(db, doctor, patient, time(9, 0))
    second = _book(db, doctor, patient, time(10, 0))
    update_appointment_status(
        appointment_id=second.id,
        data=UpdateAppointmentRequest(status='cancelled'),
        current_user=doctor,
        db=db,
    )

    response = update_appointment_status_by_patient(
        patient_id=patient.id,
        data=UpdateAppointmentRequest(status='confirmed'),
        current_user=doctor,
        db=db,
    )

    assert [item.id for item in response.updated] == [first.id]
    assert [item.appointment_id for item in response.skipped] == [second.id]


def test_patient_records_and_billing(db, doctor, patient, monday_morning) -> None:
    _book(db, doctor, patient, time(9, 0))

    added = add_patient_record(
        patient_id=patient.id,
        data=MedicalRecordRequest(diagnosis='Migraine', treatment='Rest'),
        current_user=doctor,
        db=db,
    )
    edited = update_patient_record(
        patient_id=patient.id,
        record_index=0,
        data=MedicalRecordRequest(diagnosis='Chronic migraine', treatment='Triptans'),
        current_user=doctor,
        db=db,
    )
    billed = update_patient_billing(
        patient_id=patient.id,
        data=BillingRequest(billing_amount=Decimal('80.00')),
        current_user=doctor,
        db=db,
    )

    assert [record.diagnosis for record in added.medical_history] == ['Migraine']
    assert edited.medical_history[0].treatment == 'Triptans'
    assert billed.billing_amount == Decimal('80.00')
    assert len(billed.medical_history) == 1


def test_billing_request_rejects_negative_amount() -> None:
    with pytest.raises(PydanticValidationError):
        BillingRequest(billing_amount=Decimal('-5'))


def test_list_my_patients(db, doctor, patient, second_patient, monday_morning) -> None:
    _book(db, doctor, patient, time(9, 0))
    _book(db, doctor, patient, time(10, 0))

    response = list_my_patients(page=1, limit=10, current_user=doctor, db=db)

    assert response.total == 1
    assert [item.id for item in response.patients] == [patient.id]


def test_get_doctor_stats_uses_client_day(db, doctor, patient, monday_morning) -> None:
    _book(db, doctor, patient, time(9, 0))
    _book(db, doctor, patient, time(9, 0), appointment_date=date(2026, 1, 12))

    response = get_doctor_stats(today=TODAY, current_user=doctor, db=db)

    assert response.total_appointments == 2
    assert response.today_count == 1
    assert response.pending_count == 2
    assert response.total_doctors is None


def test_dashboard_merges_batches_for_today(db, doctor, patient, second_patient, monday_morning) -> None:
    confirmed = _book(db, doctor, patient, time(9, 0))
    pending = _book(db, doctor, second_patient, time(10, 0))
    cancelled = _book(db, doctor, patient, time(11, 0))
    _book(db, doctor, patient, time(9, 0), appointment_date=date(2026, 1, 12))
    update_appointment_status(
        appointment_id=confirmed.id, data=UpdateAppointmentRequest(status='confirmed'), current_user=doctor, db=db
    )
    update_appointment_status(
        appointment_id=cancelled.id, data=UpdateAppointmentRequest(status='cancelled'), current_user=doctor, db=db
    )

    response = get_doctor_dashboard(today=TODAY, current_user=doctor, db=db)

    assert [item.id for item in response.today_appointments] == [confirmed.id, pending.id]
    assert response.stats.today_count == 3
    assert response.stats.cancelled_count == 1
    assert response.stale is False


def test_dashboard_lists_today_behind_a_long_history(db, doctor, patient, monday_morning) -> None:
    for offset in range(1, 102):
        db.add(
            Appointment(
                doctor_id=doctor.id,
                patient_id=patient.id,
                appointment_date=TODAY - timedelta(days=offset),
                time_slot=time(9, 0),
                status=AppointmentStatus.PENDING.value,
            )
        )
    db.commit()
    todays = _book(db, doctor, patient, time(10, 0))

    response = get_doctor_dashboard(today=TODAY, current_user=doctor, db=db)

    assert response.stats.today_count == 1
    assert [item.id for item in response.today_appointments] == [todays.id]


def test_dashboard_serves_last_known_snapshot_when_database_fails(
    db, doctor, patient, monday_morning, monkeypatch: pytest.MonkeyPatch
) -> None:
    _book(db, doctor, patient, time(9, 0))
    first = get_doctor_dashboard(today=TODAY, current_user=doctor, db=db)

    def database_down(*args):
        raise OperationalError('SELECT', {}, Exception('gone'))

    monkeypatch.setattr(doctor_routes, 'load_doctor_dashboard', database_down)
    second = get_doctor_dashboard(today=TODAY, current_user=doctor, db=db)

    assert second.stale is True
    assert second.stats == first.stats
    assert second.computed_at == first.computed_at


def test_dashboard_without_snapshot_surfaces_database_error(
    db, doctor, monkeypatch: pytest.MonkeyPatch
) -> None:
    def database_down(*args):
        raise OperationalError('SELECT', {}, Exception('gone'))

    monkeypatch.setattr(doctor_routes, 'load_doctor_dashboard', database_down)

    with pytest.raises(OperationalError):
        get_doctor_dashboard(today=TODAY, current_user=doctor, db=db)
