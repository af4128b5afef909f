"""
Test helpers shared by unit and API tests.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Optional
from uuid import UUID, uuid4

from src.core.enums import RecordStatus
from src.services.billing import FacilityProfile, NurseProfile, PatientProfile, VisitSummary

JST = timezone(timedelta(hours=9))

VISIT_DATE = date(2024, 7, 10)


def jst(day: date, hour: int, minute: int = 0) -> datetime:
    """Aware datetime at the given Japan local time."""
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=JST)


class SpecialManagementRow:
    """Stand-in for a special_management_definitions row."""

    def __init__(self, category: str, display_name: str, insurance_type: str, is_active: bool = True):
        self.category = category
        self.display_name = display_name
        self.insurance_type = insurance_type
        self.is_active = is_active


class FakeHistorySource:
    """In-memory VisitHistorySource."""

    def __init__(
        self,
        patient: Optional[PatientProfile] = None,
        facility: Optional[FacilityProfile] = None,
        nurses: Optional[list[NurseProfile]] = None,
        building_patients: int = 0,
    ):
        self.patients: dict[UUID, PatientProfile] = {}
        if patient is not None:
            self.patients[patient.id] = patient
        self.facility = facility
        self.nurses = {nurse.id: nurse for nurse in nurses or []}
        self.visits: list[VisitSummary] = []
        self.building_patients = building_patients
        self.error: Optional[Exception] = None

    def add_patient(self, patient: PatientProfile) -> None:
        self.patients[patient.id] = patient

    def add_nurse(self, nurse: NurseProfile) -> None:
        self.nurses[nurse.id] = nurse

    def add_visit(
        self,
        patient_id: UUID,
        visit_date: date,
        *,
        bonus_codes: tuple[str, ...] = (),
        status: RecordStatus = RecordStatus.COMPLETED,
        is_terminal_care: bool = False,
        has_emergency_reason: bool = False,
        visit_id: Optional[UUID] = None,
    ) -> VisitSummary:
        visit = VisitSummary(
            id=visit_id or uuid4(),
            patient_id=patient_id,
            visit_date=visit_date,
            status=status,
            is_terminal_care=is_terminal_care,
            has_emergency_reason=has_emergency_reason,
            applied_bonus_codes=tuple(bonus_codes),
        )
        self.visits.append(visit)
        return visit

    async def get_patient(self, facility_id: UUID, patient_id: UUID) -> Optional[PatientProfile]:
        if self.error is not None:
            raise self.error
        patient = self.patients.get(patient_id)
        if patient is None or patient.facility_id != facility_id:
            return None
        return patient

    async def get_facility(self, facility_id: UUID) -> Optional[FacilityProfile]:
        return self.facility

    async def get_nurse(self, facility_id: UUID, nurse_id: UUID) -> Optional[NurseProfile]:
        return self.nurses.get(nurse_id)

    async def list_visits(
        self,
        facility_id: UUID,
        patient_id: UUID,
        date_from: date,
        date_to: date,
    ) -> list[VisitSummary]:
        if self.error is not None:
            raise self.error
        return [
            visit
            for visit in self.visits
            if visit.patient_id == patient_id and date_from <= visit.visit_date <= date_to
        ]

    async def count_building_patients(
        self,
        facility_id: UUID,
        building_id: UUID,
        visit_date: date,
        exclude_patient_id: UUID,
    ) -> int:
        return self.building_patients
