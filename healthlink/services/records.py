"""Patient medical history and billing, maintained by doctors."""

from decimal import Decimal

from sqlalchemy.orm import Session

from healthlink.core.exceptions import ForbiddenError, NotFoundError, ValidationError
from healthlink.models.medical_record import MedicalRecord
from healthlink.models.user import User
from healthlink.services.appointments import doctor_treats_patient, get_patient


def _ensure_treating(db: Session, doctor_id: int, patient_id: int) -> User:
    patient = get_patient(db, patient_id)
    if not doctor_treats_patient(db, doctor_id, patient_id):
        raise ForbiddenError('You can only manage patients who have appointments with you.')
    return patient


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip() or None


def list_records(db: Session, patient_id: int) -> list[MedicalRecord]:
    return db.query(MedicalRecord).filter(MedicalRecord.patient_id == patient_id).order_by(
        MedicalRecord.created_at.asc(),
        MedicalRecord.id.asc(),
    ).all()


def add_record(
    db: Session,
    doctor_id: int,
    patient_id: int,
    diagnosis: str,
    treatment: str | None = None,
    notes: str | None = None,
) -> MedicalRecord:
    _ensure_treating(db, doctor_id, patient_id)

    diagnosis = _clean(diagnosis)
    if not diagnosis:
        raise ValidationError('Diagnosis is required.')

    record = MedicalRecord(
        patient_id=patient_id,
        doctor_id=doctor_id,
        diagnosis=diagnosis,
        treatment=_clean(treatment),
        notes=_clean(notes),
    )
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


def update_record(
    db: Session,
    doctor_id: int,
    patient_id: int,
    record_index: int,
    diagnosis: str,
    treatment: str | None = None,
    notes: str | None = None,
) -> MedicalRecord:
    """Edit the ``record_index``-th entry (0-based) of the patient's history."""
    _ensure_treating(db, doctor_id, patient_id)

    records = list_records(db, patient_id)
    if record_index < 0 or record_index >= len(records):
        raise NotFoundError('Medical record not found.')

    record = records[record_index]
    if record.doctor_id != doctor_id:
        raise ForbiddenError('You cannot edit a medical record created by another doctor.')

    diagnosis = _clean(diagnosis)
    if not diagnosis:
        raise ValidationError('Diagnosis is required.')

    record.diagnosis = diagnosis
    record.treatment = _clean(treatment)
    record.notes = _clean(notes)
    db.commit()
    db.refresh(record)
    return record


def update_billing(db: Session, doctor_id: int, patient_id: int, amount: Decimal) -> User:
    patient = _ensure_treating(db, doctor_id, patient_id)

    if amount < 0:
        raise ValidationError('Billing amount cannot be negative.')

    patient.billing_amount = amount
    db.commit()
    db.refresh(patient)
    return patient
