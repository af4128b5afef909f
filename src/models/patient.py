"""
Patient Model.
"""

from datetime import date, datetime
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import JSON, Boolean, Date, DateTime, Enum, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from src.core.enums import InsuranceType
from src.models.base import Base, FacilityScopedModel, TimeStampedModel, UUIDModel


class Patient(Base, UUIDModel, TimeStampedModel, FacilityScopedModel):
    """
    Home-nursing patient.

    Insurance type selects the bonus catalog; special management types unlock
    特別管理加算; the certification period bounds date-range conditions.
    """

    __tablename__ = "patients"

    patient_number: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    full_name: Mapped[str] = mapped_column(String(100), nullable=False)
    date_of_birth: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    insurance_type: Mapped[InsuranceType] = mapped_column(
        Enum(InsuranceType, native_enum=False, length=20),
        nullable=False,
        comment="medical or care",
    )

    # Special management (特別管理)
    special_management_types: Mapped[list[Any]] = mapped_column(
        JSON,
        default=list,
        nullable=False,
        comment="Special management category codes",
    )
    special_management_start_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    special_management_end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    # Certification period (要介護認定 / 指示期間)
    certification_start_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    certification_end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    building_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid(as_uuid=True),
        nullable=True,
        index=True,
        comment="Shared residence (same-building visits)",
    )

    # Terminal care
    death_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    death_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    death_place_code: Mapped[Optional[str]] = mapped_column(String(4), nullable=True)

    last_discharge_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    last_plan_created_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __table_args__ = (
        Index("ix_patients_facility_number", "facility_id", "patient_number", unique=True),
    )

    def __repr__(self) -> str:
        return f"<Patient(id={self.id}, patient_number={self.patient_number})>"
