"""
Context Aggregator.

Collects the per-patient, per-day and per-month facts that bonus conditions
need: same-day visit counts, monthly bonus occurrences, emergency-visit
counts, building occupancy and terminal-care visits. Read-only; the record
being evaluated is never written here.
"""

import calendar
import logging
from collections import Counter
from dataclasses import dataclass, field, replace
from datetime import date, timedelta
from typing import Optional, Protocol
from uuid import UUID

from src.core.config import BillingSettings, get_billing_settings
from src.core.enums import InsuranceType
from src.services.billing.exceptions import DataUnavailableError
from src.services.billing.records import (
    FacilityProfile,
    NurseProfile,
    PatientProfile,
    VisitRecord,
    VisitSummary,
)

logger = logging.getLogger(__name__)


def month_bounds(on: date) -> tuple[date, date]:
    """First and last day of the calendar month containing `on`."""
    last_day = calendar.monthrange(on.year, on.month)[1]
    return on.replace(day=1), on.replace(day=last_day)


# =============================================================================
# History Source
# =============================================================================


class VisitHistorySource(Protocol):
    """Read access to patients, staff and persisted visits."""

    async def get_patient(
        self, facility_id: UUID, patient_id: UUID
    ) -> Optional[PatientProfile]:  # pragma: no cover - Protocol definition
        ...

    async def get_facility(
        self, facility_id: UUID
    ) -> Optional[FacilityProfile]:  # pragma: no cover - Protocol definition
        ...

    async def get_nurse(
        self, facility_id: UUID, nurse_id: UUID
    ) -> Optional[NurseProfile]:  # pragma: no cover - Protocol definition
        ...

    async def list_visits(
        self,
        facility_id: UUID,
        patient_id: UUID,
        date_from: date,
        date_to: date,
    ) -> list[VisitSummary]:  # pragma: no cover - Protocol definition
        ...

    async def count_building_patients(
        self,
        facility_id: UUID,
        building_id: UUID,
        visit_date: date,
        exclude_patient_id: UUID,
    ) -> int:  # pragma: no cover - Protocol definition
        ...


# =============================================================================
# Aggregate Context
# =============================================================================


@dataclass(frozen=True)
class AggregateContext:
    """Facts about a visit that are not on the record itself."""

    patient: PatientProfile
    visit_date: date
    visits_on_same_day_for_patient: int = 1
    monthly_bonus_counts: dict[str, int] = field(default_factory=dict)
    monthly_emergency_visit_count: int = 0
    building_occupancy: Optional[int] = None
    terminal_care_visits_in_window: int = 0
    facility: Optional[FacilityProfile] = None
    nurse: Optional[NurseProfile] = None
    applied_bonus_codes: tuple[str, ...] = ()

    @property
    def insurance_type(self) -> InsuranceType:
        return self.patient.insurance_type

    @property
    def certification_period(self) -> tuple[Optional[date], Optional[date]]:
        return (self.patient.certification_start_date, self.patient.certification_end_date)

    @property
    def patient_age(self) -> Optional[int]:
        return self.patient.age_on(self.visit_date)

    def visits_this_month_for_bonus(self, bonus_code: str) -> int:
        """Times the bonus was already applied this calendar month, excluding this record."""
        return self.monthly_bonus_counts.get(bonus_code, 0)

    def with_applied(self, bonus_codes: list[str]) -> "AggregateContext":
        """Copy of the context that knows which bonuses this evaluation has granted."""
        return replace(self, applied_bonus_codes=tuple(bonus_codes))


# =============================================================================
# Aggregator
# =============================================================================


class ContextAggregator:
    """
    Builds an AggregateContext for a visit record.

    Any failure to load the patient or history raises DataUnavailableError,
    so the engine can fail closed.
    """

    def __init__(
        self,
        source: VisitHistorySource,
        settings: Optional[BillingSettings] = None,
    ):
        self.source = source
        self.settings = settings or get_billing_settings()

    async def build_context(self, record: VisitRecord) -> AggregateContext:
        """Load reference data and compute aggregates for `record`."""
        try:
            return await self._build(record)
        except DataUnavailableError:
            raise
        except Exception as e:
            logger.error(
                f"Visit history unavailable for patient {record.patient_id}: {e}"
            )
            raise DataUnavailableError(f"Visit history could not be loaded: {e}") from e

    async def _build(self, record: VisitRecord) -> AggregateContext:
        patient = await self.source.get_patient(record.facility_id, record.patient_id)
        if patient is None:
            raise DataUnavailableError(f"Patient {record.patient_id} not found")

        facility = await self.source.get_facility(record.facility_id)
        nurse = None
        if record.nurse_id is not None:
            nurse = await self.source.get_nurse(record.facility_id, record.nurse_id)

        month_start, month_end = month_bounds(record.visit_date)
        month_visits = self._history(
            await self.source.list_visits(
                record.facility_id, record.patient_id, month_start, month_end
            ),
            record,
        )

        same_day = sum(1 for visit in month_visits if visit.visit_date == record.visit_date)

        bonus_counts: Counter[str] = Counter()
        for visit in month_visits:
            bonus_counts.update(visit.applied_bonus_codes)

        emergency_visits = sum(1 for visit in month_visits if visit.has_emergency_reason)
        if record.has_emergency_reason:
            emergency_visits += 1

        occupancy = None
        if patient.building_id is not None:
            others = await self.source.count_building_patients(
                record.facility_id, patient.building_id, record.visit_date, patient.id
            )
            occupancy = others + 1

        terminal_visits = 0
        if patient.death_date is not None:
            terminal_visits = await self._terminal_care_visits(record, patient.death_date)

        context = AggregateContext(
            patient=patient,
            visit_date=record.visit_date,
            visits_on_same_day_for_patient=same_day + 1,
            monthly_bonus_counts=dict(bonus_counts),
            monthly_emergency_visit_count=emergency_visits,
            building_occupancy=occupancy,
            terminal_care_visits_in_window=terminal_visits,
            facility=facility,
            nurse=nurse,
        )
        logger.debug(
            f"Context for patient {patient.id} on {record.visit_date}: "
            f"same_day={context.visits_on_same_day_for_patient}, "
            f"monthly_bonuses={context.monthly_bonus_counts}"
        )
        return context

    async def _terminal_care_visits(self, record: VisitRecord, death_date: date) -> int:
        """Terminal-care visits between death_date minus the window and death_date."""
        window_start = death_date - timedelta(days=self.settings.TERMINAL_CARE_WINDOW_DAYS)
        visits = self._history(
            await self.source.list_visits(
                record.facility_id, record.patient_id, window_start, death_date
            ),
            record,
        )
        count = sum(1 for visit in visits if visit.is_terminal_care)
        if record.is_terminal_care and window_start <= record.visit_date <= death_date:
            count += 1
        return count

    @staticmethod
    def _history(visits: list[VisitSummary], record: VisitRecord) -> list[VisitSummary]:
        """Billable visits other than the one being evaluated."""
        return [
            visit
            for visit in visits
            if visit.is_billable and (record.id is None or visit.id != record.id)
        ]
