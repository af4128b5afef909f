"""
Immutable inputs and outputs of the bonus evaluation engine.

The engine never touches ORM rows directly; the repository layer converts
rows into these snapshots and the service layer writes EvaluationResult
back onto the record.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Optional
from uuid import UUID

from src.core.enums import InsuranceType, RecordStatus


# =============================================================================
# Visit Record
# =============================================================================


@dataclass(frozen=True)
class VisitRecord:
    """Snapshot of the nursing record being evaluated."""

    facility_id: UUID
    patient_id: UUID
    visit_date: date
    id: Optional[UUID] = None
    nurse_id: Optional[UUID] = None
    status: RecordStatus = RecordStatus.DRAFT
    actual_start_time: Optional[datetime] = None
    actual_end_time: Optional[datetime] = None

    # Bonus flags
    is_second_visit: bool = False
    is_discharge_date: bool = False
    is_first_visit_of_plan: bool = False
    has_collaboration_record: bool = False
    is_terminal_care: bool = False
    specialist_care_type: Optional[str] = None

    # Reasons
    multiple_visit_reason: Optional[str] = None
    emergency_visit_reason: Optional[str] = None
    long_visit_reason: Optional[str] = None

    # Billing
    service_code_id: Optional[UUID] = None
    visit_location_code: Optional[str] = None
    staff_qualification_code: Optional[str] = None
    base_points: int = 0

    @property
    def duration_minutes(self) -> Optional[int]:
        """Whole minutes between actual start and end, None when either is missing."""
        if self.actual_start_time is None or self.actual_end_time is None:
            return None
        delta = self.actual_end_time - self.actual_start_time
        return int(delta.total_seconds() // 60)

    @property
    def has_emergency_reason(self) -> bool:
        return bool(self.emergency_visit_reason and self.emergency_visit_reason.strip())


# Record attributes that conditions may reference by name.
RECORD_FIELDS: frozenset[str] = frozenset(
    {
        "status",
        "visit_date",
        "actual_start_time",
        "actual_end_time",
        "is_second_visit",
        "is_discharge_date",
        "is_first_visit_of_plan",
        "has_collaboration_record",
        "is_terminal_care",
        "specialist_care_type",
        "multiple_visit_reason",
        "emergency_visit_reason",
        "long_visit_reason",
        "visit_location_code",
        "staff_qualification_code",
        "base_points",
    }
)

BOOLEAN_RECORD_FLAGS: frozenset[str] = frozenset(
    {
        "is_second_visit",
        "is_discharge_date",
        "is_first_visit_of_plan",
        "has_collaboration_record",
        "is_terminal_care",
    }
)


# =============================================================================
# Reference Data Profiles
# =============================================================================


@dataclass(frozen=True)
class PatientProfile:
    """Patient attributes consumed by the engine."""

    id: UUID
    facility_id: UUID
    insurance_type: InsuranceType
    special_management_types: tuple[str, ...] = ()
    date_of_birth: Optional[date] = None
    certification_start_date: Optional[date] = None
    certification_end_date: Optional[date] = None
    building_id: Optional[UUID] = None
    death_date: Optional[date] = None
    death_place_code: Optional[str] = None

    def age_on(self, on: date) -> Optional[int]:
        """Completed years of age on the given date."""
        if self.date_of_birth is None:
            return None
        birth = self.date_of_birth
        years = on.year - birth.year
        if (on.month, on.day) < (birth.month, birth.day):
            years -= 1
        return years

    def certification_covers(self, on: date) -> bool:
        """True when no certification period is recorded or the date is inside it."""
        if self.certification_start_date and on < self.certification_start_date:
            return False
        if self.certification_end_date and on > self.certification_end_date:
            return False
        return True


@dataclass(frozen=True)
class FacilityProfile:
    """Facility support-system registrations."""

    id: UUID
    has_24h_support_system: bool = False
    has_24h_support_system_enhanced: bool = False
    has_emergency_support_system: bool = False
    has_emergency_support_system_enhanced: bool = False
    burden_reduction_measures: tuple[str, ...] = ()


@dataclass(frozen=True)
class NurseProfile:
    """Assigned nurse and their specialist certifications."""

    id: UUID
    specialist_certifications: tuple[str, ...] = ()


@dataclass(frozen=True)
class VisitSummary:
    """A persisted visit as seen by the aggregator."""

    id: UUID
    patient_id: UUID
    visit_date: date
    status: RecordStatus
    is_terminal_care: bool = False
    has_emergency_reason: bool = False
    applied_bonus_codes: tuple[str, ...] = ()

    @property
    def is_billable(self) -> bool:
        return self.status in RecordStatus.billable()


# =============================================================================
# Results
# =============================================================================


@dataclass(frozen=True)
class AppliedBonus:
    """One bonus granted to a visit."""

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
    conditions_passed: tuple[str, ...] = ()
    service_code: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        """JSON shape stored in nursing_records.applied_bonuses."""
        data: dict[str, Any] = {
            "bonus_code": self.bonus_code,
            "bonus_name": self.bonus_name,
            "points": self.points,
        }
        optional = {
            "bonus_master_id": str(self.bonus_master_id) if self.bonus_master_id else None,
            "version": self.version,
            "matched_condition": self.matched_condition,
            "reason": self.reason,
            "duration_minutes": self.duration_minutes,
            "visit_number": self.visit_number,
            "visit_count": self.visit_count,
            "service_code": self.service_code,
        }
        data.update({key: value for key, value in optional.items() if value is not None})
        if self.conditions_passed:
            data["conditions_passed"] = list(self.conditions_passed)
        return data


@dataclass
class EvaluationResult:
    """Outcome of one bonus evaluation."""

    base_points: int
    applied_bonuses: list[AppliedBonus] = field(default_factory=list)
    alerts: list[str] = field(default_factory=list)
    configuration_errors: list[str] = field(default_factory=list)
    billing_degraded: bool = False

    @property
    def bonus_points(self) -> int:
        return sum(bonus.points for bonus in self.applied_bonuses)

    @property
    def calculated_points(self) -> int:
        return self.base_points + self.bonus_points

    @property
    def has_additional_payment_alert(self) -> bool:
        return bool(self.alerts)

    @property
    def applied_bonus_codes(self) -> list[str]:
        return [bonus.bonus_code for bonus in self.applied_bonuses]
