"""Appointment model definitions."""

from datetime import datetime, timezone

from sqlalchemy import JSON, Column, Date, DateTime, ForeignKey, Index, Integer, String, text
from backend.database import Base


APPOINTMENT_STATUSES = ('scheduled', 'confirmed', 'in-progress', 'completed', 'cancelled', 'no-show')
OCCUPYING_STATUSES = frozenset({'scheduled', 'confirmed', 'in-progress'})
APPOINTMENT_TYPES = ('consultation', 'follow-up', 'emergency', 'routine-checkup', 'surgery', 'other')
DEPARTMENTS = (
    'Cardiology',
    'Dermatology',
    'Endocrinology',
    'Gastroenterology',
    'General Medicine',
    'Gynecology',
    'Neurology',
    'Oncology',
    'Ophthalmology',
    'Orthopedics',
    'Pediatrics',
    'Psychiatry',
    'Radiology',
    'Surgery',
    'Urology',
    'Emergency',
    'Other',
)

_ACTIVE_SLOT_CLAUSE = text("status IN ('scheduled', 'confirmed', 'in-progress')")


def _utc_naive_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Appointment(Base):
    """Represents a booked appointment with a doctor."""
    __tablename__ = "appointments"
    __table_args__ = (
        Index('idx_appointments_doctor_date', 'doctor_id', 'appointment_date'),
        Index(
            'uq_appointments_doctor_slot_active',
            'doctor_id',
            'appointment_date',
            'appointment_time',
            unique=True,
            sqlite_where=_ACTIVE_SLOT_CLAUSE,
            postgresql_where=_ACTIVE_SLOT_CLAUSE,
        ),
    )

    id = Column(Integer, primary_key=True)
    patient_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False)
    appointment_date = Column(Date, nullable=False)
    appointment_time = Column(String(5), nullable=False)  # HH:MM
    duration_minutes = Column(Integer, default=30)
    department = Column(String)
    appointment_type = Column(String)
    status = Column(String, nullable=False, default='scheduled')
    reason = Column(String)
    symptoms = Column(JSON)
    notes = Column(String)
    created_at = Column(DateTime, default=_utc_naive_now)
