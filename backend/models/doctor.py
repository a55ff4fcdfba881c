"""Doctor model definitions."""

from sqlalchemy import JSON, Boolean, Column, Float, ForeignKey, Integer, String
from backend.database import Base


SPECIALIZATIONS = (
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
    'Emergency Medicine',
    'Other',
)


class Doctor(Base):
    """Represents a doctor profile and its weekly schedule.

    ``availability`` maps lowercase weekday names to day entries with
    ``is_available``, ``start_time``, ``end_time``, ``slot_duration_minutes``
    and ``max_patients``. ``None`` means the doctor never configured one.
    """
    __tablename__ = "doctors"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True)
    phone = Column(String)
    specialization = Column(String)
    department = Column(String)
    license_number = Column(String, unique=True)
    experience_years = Column(Integer, default=0)
    consultation_fee = Column(Float, default=0)
    availability = Column(JSON, nullable=True)
    is_active = Column(Boolean, default=True)
    verified = Column(Boolean, default=False)
