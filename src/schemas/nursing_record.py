"""
Pydantic Schemas for nursing visit records.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from src.core.enums import RecordStatus


# =============================================================================
# Request Schemas
# =============================================================================


class NursingRecordBase(BaseModel):
    """Fields a nurse enters for a visit."""

    nurse_id: Optional[UUID] = Field(None, description="Visiting nurse")
    visit_date: date = Field(..., description="Date of visit")
    actual_start_time: Optional[datetime] = Field(None, description="Actual visit start")
    actual_end_time: Optional[datetime] = Field(None, description="Actual visit end")
    status: RecordStatus = Field(default=RecordStatus.DRAFT, description="Record status")

    # Vital signs
    body_temperature: Optional[Decimal] = Field(None, ge=30, le=45)
    blood_pressure_systolic: Optional[int] = Field(None, ge=0, le=300)
    blood_pressure_diastolic: Optional[int] = Field(None, ge=0, le=200)
    heart_rate: Optional[int] = Field(None, ge=0, le=300)
    respiratory_rate: Optional[int] = Field(None, ge=0, le=100)
    oxygen_saturation: Optional[int] = Field(None, ge=0, le=100)

    # Care narrative
    title: Optional[str] = Field(None, max_length=200)
    content: Optional[str] = None
    observations: Optional[str] = None
    interventions: Optional[str] = None
    evaluation: Optional[str] = None
    patient_family_response: Optional[str] = None

    # Bonus flags
    is_second_visit: bool = False
    is_discharge_date: bool = False
    is_first_visit_of_plan: bool = False
    has_collaboration_record: bool = False
    is_terminal_care: bool = False
    specialist_care_type: Optional[str] = Field(None, max_length=50)

    # Reasons
    multiple_visit_reason: Optional[str] = None
    emergency_visit_reason: Optional[str] = None
    long_visit_reason: Optional[str] = None

    # Billing
    service_code_id: Optional[UUID] = None
    visit_location_code: Optional[str] = Field(None, max_length=4)
    staff_qualification_code: Optional[str] = Field(None, max_length=4)
    special_management_data: Optional[dict[str, Any]] = None

    @model_validator(mode="after")
    def check_visit_times(self) -> "NursingRecordBase":
        """End time may not precede start time."""
        if (
            self.actual_start_time is not None
            and self.actual_end_time is not None
            and self.actual_end_time < self.actual_start_time
        ):
            raise ValueError("actual_end_time must not be before actual_start_time")
        return self


class NursingRecordCreate(NursingRecordBase):
    """Schema for creating a visit record."""

    patient_id: UUID = Field(..., description="Visited patient")


class NursingRecordUpdate(NursingRecordBase):
    """Schema for replacing the editable fields of a visit record."""

    pass


class RecalculateRequest(BaseModel):
    """Re-run bonus evaluation over a patient's month."""

    patient_id: UUID
    year: int = Field(..., ge=2000, le=2100)
    month: int = Field(..., ge=1, le=12)


# =============================================================================
# Response Schemas
# =============================================================================


class AppliedBonusResponse(BaseModel):
    """One bonus granted to the visit."""

    bonus_code: str
    bonus_name: str
    points: int
    bonus_master_id: Optional[UUID] = None
    version: Optional[str] = None
    matched_condition: Optional[str] = None
    reason: Optional[str] = None
    duration_minutes: Optional[int] = None
    visit_number: Optional[int] = None
    visit_count: Optional[int] = None
    service_code: Optional[str] = None
    conditions_passed: list[str] = Field(default_factory=list)


class BillingSummary(BaseModel):
    """Outcome of the last bonus evaluation."""

    alerts: list[str] = Field(default_factory=list)
    degraded: bool = False
    configuration_errors: list[str] = Field(default_factory=list)


class NursingRecordResponse(NursingRecordBase):
    """Visit record with engine-computed billing fields."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    facility_id: UUID
    patient_id: UUID
    calculated_points: int
    applied_bonuses: list[AppliedBonusResponse] = Field(default_factory=list)
    has_additional_payment_alert: bool
    billing: BillingSummary = Field(default_factory=BillingSummary)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_record(
        cls,
        record: Any,
        configuration_errors: Optional[list[str]] = None,
    ) -> "NursingRecordResponse":
        """Build the response from an ORM row plus the last evaluation's errors."""
        response = cls.model_validate(record)
        response.billing = BillingSummary(
            alerts=list(record.billing_alerts or []),
            degraded=bool(record.billing_degraded),
            configuration_errors=list(configuration_errors or []),
        )
        return response
