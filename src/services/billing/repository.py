"""
SQLAlchemy-backed visit history and bonus master access.
"""

import logging
from collections import defaultdict
from datetime import date
from typing import Optional
from uuid import UUID

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.enums import InsuranceType, RecordStatus
from src.models.bonus import (
    BonusCalculationHistory,
    BonusMaster,
    NursingServiceCode,
    SpecialManagementDefinition,
)
from src.models.facility import Facility, Nurse
from src.models.nursing_record import NursingRecord
from src.models.patient import Patient
from src.services.billing.records import (
    AppliedBonus,
    FacilityProfile,
    NurseProfile,
    PatientProfile,
    VisitSummary,
)
from src.services.billing.rule_set import BonusRuleSet

logger = logging.getLogger(__name__)


def patient_profile(patient: Patient) -> PatientProfile:
    return PatientProfile(
        id=patient.id,
        facility_id=patient.facility_id,
        insurance_type=InsuranceType(patient.insurance_type),
        special_management_types=tuple(patient.special_management_types or ()),
        date_of_birth=patient.date_of_birth,
        certification_start_date=patient.certification_start_date,
        certification_end_date=patient.certification_end_date,
        building_id=patient.building_id,
        death_date=patient.death_date,
        death_place_code=patient.death_place_code,
    )


class SqlVisitHistorySource:
    """VisitHistorySource reading from the application database."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_patient(self, facility_id: UUID, patient_id: UUID) -> Optional[PatientProfile]:
        result = await self.session.execute(
            select(Patient).where(Patient.id == patient_id, Patient.facility_id == facility_id)
        )
        patient = result.scalar_one_or_none()
        return patient_profile(patient) if patient else None

    async def get_facility(self, facility_id: UUID) -> Optional[FacilityProfile]:
        facility = await self.session.get(Facility, facility_id)
        if facility is None:
            return None
        return FacilityProfile(
            id=facility.id,
            has_24h_support_system=facility.has_24h_support_system,
            has_24h_support_system_enhanced=facility.has_24h_support_system_enhanced,
            has_emergency_support_system=facility.has_emergency_support_system,
            has_emergency_support_system_enhanced=facility.has_emergency_support_system_enhanced,
            burden_reduction_measures=tuple(facility.burden_reduction_measures or ()),
        )

    async def get_nurse(self, facility_id: UUID, nurse_id: UUID) -> Optional[NurseProfile]:
        result = await self.session.execute(
            select(Nurse).where(Nurse.id == nurse_id, Nurse.facility_id == facility_id)
        )
        nurse = result.scalar_one_or_none()
        if nurse is None:
            return None
        return NurseProfile(
            id=nurse.id,
            specialist_certifications=tuple(nurse.specialist_certifications or ()),
        )

    async def list_visits(
        self,
        facility_id: UUID,
        patient_id: UUID,
        date_from: date,
        date_to: date,
    ) -> list[VisitSummary]:
        result = await self.session.execute(
            select(NursingRecord)
            .where(
                NursingRecord.facility_id == facility_id,
                NursingRecord.patient_id == patient_id,
                NursingRecord.visit_date >= date_from,
                NursingRecord.visit_date <= date_to,
                NursingRecord.deleted_at.is_(None),
            )
            .order_by(NursingRecord.visit_date, NursingRecord.actual_start_time)
        )
        records = list(result.scalars().all())
        if not records:
            return []

        history = await self.session.execute(
            select(BonusCalculationHistory.nursing_record_id, BonusCalculationHistory.bonus_code).where(
                BonusCalculationHistory.nursing_record_id.in_([r.id for r in records])
            )
        )
        codes: dict[UUID, list[str]] = defaultdict(list)
        for record_id, bonus_code in history.all():
            codes[record_id].append(bonus_code)

        return [
            VisitSummary(
                id=record.id,
                patient_id=record.patient_id,
                visit_date=record.visit_date,
                status=RecordStatus(record.status),
                is_terminal_care=record.is_terminal_care,
                has_emergency_reason=bool(
                    record.emergency_visit_reason and record.emergency_visit_reason.strip()
                ),
                applied_bonus_codes=tuple(codes.get(record.id, ())),
            )
            for record in records
        ]

    async def count_building_patients(
        self,
        facility_id: UUID,
        building_id: UUID,
        visit_date: date,
        exclude_patient_id: UUID,
    ) -> int:
        result = await self.session.execute(
            select(func.count(func.distinct(NursingRecord.patient_id)))
            .join(Patient, Patient.id == NursingRecord.patient_id)
            .where(
                NursingRecord.facility_id == facility_id,
                NursingRecord.visit_date == visit_date,
                NursingRecord.deleted_at.is_(None),
                NursingRecord.patient_id != exclude_patient_id,
                Patient.building_id == building_id,
            )
        )
        return int(result.scalar_one() or 0)


class BonusMasterRepository:
    """Loads rule set snapshots and service codes; writes bonus history."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def load_rule_set(self, facility_id: UUID) -> BonusRuleSet:
        """Snapshot of every active global and facility bonus definition."""
        masters = await self.session.execute(
            select(BonusMaster).where(
                BonusMaster.is_active.is_(True),
                or_(BonusMaster.facility_id.is_(None), BonusMaster.facility_id == facility_id),
            )
        )
        definitions = await self.session.execute(
            select(SpecialManagementDefinition)
            .where(
                SpecialManagementDefinition.is_active.is_(True),
                or_(
                    SpecialManagementDefinition.facility_id.is_(None),
                    SpecialManagementDefinition.facility_id == facility_id,
                ),
            )
            # Facility rows last so they override global categories
            .order_by(SpecialManagementDefinition.facility_id.is_not(None))
        )
        return BonusRuleSet.from_masters(masters.scalars().all(), definitions.scalars().all())

    async def base_points(self, service_code_id: Optional[UUID]) -> int:
        """Points of the record's base service code, 0 when none is set."""
        if service_code_id is None:
            return 0
        service_code = await self.session.get(NursingServiceCode, service_code_id)
        return service_code.points if service_code else 0

    async def find_service_code_id(
        self,
        code: str,
        insurance_type: InsuranceType,
        on: date,
    ) -> Optional[UUID]:
        result = await self.session.execute(
            select(NursingServiceCode.id)
            .where(
                NursingServiceCode.service_code == code,
                NursingServiceCode.insurance_type == insurance_type,
                NursingServiceCode.is_active.is_(True),
                NursingServiceCode.valid_from <= on,
                or_(NursingServiceCode.valid_to.is_(None), NursingServiceCode.valid_to >= on),
            )
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def replace_history(
        self,
        record: NursingRecord,
        applied: list[AppliedBonus],
        insurance_type: InsuranceType,
    ) -> list[BonusCalculationHistory]:
        """
        Replace the bonus history rows of `record`.

        Service codes chosen by hand for a bonus survive recalculation, and a
        bonus whose code was deliberately cleared stays unselected.
        """
        existing = await self.session.execute(
            select(BonusCalculationHistory).where(
                BonusCalculationHistory.nursing_record_id == record.id
            )
        )
        kept_codes: dict[str, Optional[UUID]] = {}
        cleared: set[str] = set()
        for row in existing.scalars().all():
            if row.service_code_id is not None:
                kept_codes[row.bonus_code] = row.service_code_id
            elif row.is_manually_adjusted:
                cleared.add(row.bonus_code)

        await self.session.execute(
            delete(BonusCalculationHistory).where(
                BonusCalculationHistory.nursing_record_id == record.id
            )
        )

        rows: list[BonusCalculationHistory] = []
        for bonus in applied:
            manual = bonus.bonus_code in cleared
            if bonus.bonus_code in kept_codes:
                service_code_id = kept_codes[bonus.bonus_code]
            elif manual:
                service_code_id = None
            elif bonus.service_code:
                service_code_id = await self.find_service_code_id(
                    bonus.service_code, insurance_type, record.visit_date
                )
            else:
                service_code_id = None

            row = BonusCalculationHistory(
                nursing_record_id=record.id,
                bonus_master_id=bonus.bonus_master_id,
                bonus_code=bonus.bonus_code,
                calculated_points=bonus.points,
                calculation_details=bonus.to_dict(),
                service_code_id=service_code_id,
                is_manually_adjusted=manual,
            )
            self.session.add(row)
            rows.append(row)

        await self.session.flush()
        logger.debug(f"Replaced bonus history for record {record.id}: {len(rows)} rows")
        return rows


__all__ = [
    "BonusMasterRepository",
    "SqlVisitHistorySource",
    "patient_profile",
]
