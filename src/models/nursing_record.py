"""
Nursing Visit Record Model.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from src.core.enums import RecordStatus
from src.models.base import Base, FacilityScopedModel, TimeStampedModel, UUIDModel


class NursingRecord(Base, UUIDModel, TimeStampedModel, FacilityScopedModel):
    """
    One home-nursing visit.

    calculated_points, applied_bonuses and has_additional_payment_alert are
    written by the bonus evaluation engine on every save.
    """

    __tablename__ = "nursing_records"

    patient_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("patients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    nurse_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("nurses.id", ondelete="SET NULL"),
        nullable=True,
    )

    visit_date: Mapped[date] = mapped_column(Date, nullable=False)
    actual_start_time: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    actual_end_time: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    status: Mapped[RecordStatus] = mapped_column(
        Enum(RecordStatus, native_enum=False, length=20),
        default=RecordStatus.DRAFT,
        nullable=False,
    )

    # Vital signs
    body_temperature: Mapped[Optional[Decimal]] = mapped_column(Numeric(4, 1), nullable=True)
    blood_pressure_systolic: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    blood_pressure_diastolic: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    heart_rate: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    respiratory_rate: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    oxygen_saturation: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Care narrative
    title: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    content: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    observations: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    interventions: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    evaluation: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    patient_family_response: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Bonus flags
    is_second_visit: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_discharge_date: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_first_visit_of_plan: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    has_collaboration_record: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    is_terminal_care: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    specialist_care_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    # Reasons
    multiple_visit_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    emergency_visit_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    long_visit_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Billing
    service_code_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("nursing_service_codes.id", ondelete="SET NULL"),
        nullable=True,
    )
    visit_location_code: Mapped[Optional[str]] = mapped_column(String(4), nullable=True)
    staff_qualification_code: Mapped[Optional[str]] = mapped_column(String(4), nullable=True)
    calculated_points: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    applied_bonuses: Mapped[list[Any]] = mapped_column(JSON, default=list, nullable=False)
    has_additional_payment_alert: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    billing_alerts: Mapped[list[Any]] = mapped_column(JSON, default=list, nullable=False)
    billing_degraded: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    special_management_data: Mapped[Optional[dict[str, Any]]] = mapped_column(
        JSON, nullable=True
    )

    deleted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        Index("ix_nursing_records_patient_visit_date", "patient_id", "visit_date"),
    )

    def __repr__(self) -> str:
        return (
            f"<NursingRecord(id={self.id}, patient_id={self.patient_id}, "
            f"visit_date={self.visit_date}, status={self.status})>"
        )
