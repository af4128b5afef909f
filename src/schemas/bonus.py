"""
Pydantic Schemas for bonus master and patient lookups.
"""

from datetime import date
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from src.core.enums import ConditionalPattern, InsuranceType, PointsType


class BonusDefinitionResponse(BaseModel):
    """Applicable bonus definition with its parsed conditions."""

    model_config = ConfigDict(from_attributes=True)

    id: Optional[UUID] = None
    code: str
    name: str
    insurance_type: InsuranceType
    points_type: PointsType
    fixed_points: Optional[int] = None
    conditional_pattern: Optional[ConditionalPattern] = None
    points_config: Optional[dict[str, Any]] = None
    conditions: list[dict[str, Any]] = Field(default_factory=list)
    valid_from: date
    valid_to: Optional[date] = None
    monthly_cap: Optional[int] = None
    exclusion_group: Optional[str] = None
    can_combine_with: list[str] = Field(default_factory=list)
    cannot_combine_with: list[str] = Field(default_factory=list)
    display_order: int
    version: str
    facility_id: Optional[UUID] = None
    configuration_error: Optional[str] = None


class CertificationPeriod(BaseModel):
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class PatientBillingProfile(BaseModel):
    """Patient attributes consumed by bonus evaluation."""

    id: UUID
    insurance_type: InsuranceType
    special_management_types: list[str] = Field(default_factory=list)
    certification_period: CertificationPeriod = Field(default_factory=CertificationPeriod)
