"""
Nursing Record Service.

Provides:
- Visit record create/update with bonus evaluation on every save
- Month-wide recalculation before building a receipt
- Record and patient lookups with facility isolation

Saves for the same patient are serialised by locking the patient row for
the duration of the save transaction, so concurrent saves see each other's
bonus history when counting monthly caps and same-day visits.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config import BillingSettings, get_billing_settings
from src.core.enums import InsuranceType, RecordStatus
from src.models.bonus import NursingServiceCode
from src.models.facility import Nurse
from src.models.nursing_record import NursingRecord
from src.models.patient import Patient
from src.schemas.nursing_record import NursingRecordCreate, NursingRecordUpdate
from src.services.billing import (
    BonusDefinition,
    BonusEvaluationEngine,
    BonusRuleSet,
    ContextAggregator,
    EvaluationResult,
    VisitRecord,
)
from src.services.billing.context import month_bounds
from src.services.billing.repository import BonusMasterRepository, SqlVisitHistorySource

logger = logging.getLogger(__name__)


# =============================================================================
# Exceptions
# =============================================================================


class NursingRecordServiceError(Exception):
    """Base exception for nursing record service errors."""

    pass


class RecordNotFoundError(NursingRecordServiceError):
    """Raised when a record or patient is not found in the facility."""

    pass


class RecordValidationError(NursingRecordServiceError):
    """Raised when a record has invalid references or visit times."""

    def __init__(self, message: str, errors: Optional[list[str]] = None):
        super().__init__(message)
        self.errors = errors or []


# =============================================================================
# Results
# =============================================================================


@dataclass
class SavedRecord:
    """A persisted record plus the evaluation that produced its billing fields."""

    record: NursingRecord
    evaluation: EvaluationResult

    @property
    def configuration_errors(self) -> list[str]:
        return list(self.evaluation.configuration_errors)


def _as_utc(moment: datetime) -> datetime:
    # Naive timestamps are stored as UTC
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def to_visit_record(record: NursingRecord, base_points: int = 0) -> VisitRecord:
    """Snapshot an ORM record for the engine."""
    return VisitRecord(
        id=record.id,
        facility_id=record.facility_id,
        patient_id=record.patient_id,
        nurse_id=record.nurse_id,
        visit_date=record.visit_date,
        status=RecordStatus(record.status),
        actual_start_time=_as_utc(record.actual_start_time) if record.actual_start_time else None,
        actual_end_time=_as_utc(record.actual_end_time) if record.actual_end_time else None,
        is_second_visit=bool(record.is_second_visit),
        is_discharge_date=bool(record.is_discharge_date),
        is_first_visit_of_plan=bool(record.is_first_visit_of_plan),
        has_collaboration_record=bool(record.has_collaboration_record),
        is_terminal_care=bool(record.is_terminal_care),
        specialist_care_type=record.specialist_care_type,
        multiple_visit_reason=record.multiple_visit_reason,
        emergency_visit_reason=record.emergency_visit_reason,
        long_visit_reason=record.long_visit_reason,
        service_code_id=record.service_code_id,
        visit_location_code=record.visit_location_code,
        staff_qualification_code=record.staff_qualification_code,
        base_points=base_points,
    )


class NursingRecordService:
    """
    Service for visit record operations.

    A rule set snapshot passed to the constructor is used for every save;
    otherwise a fresh snapshot is loaded for each operation.
    """

    def __init__(
        self,
        session: AsyncSession,
        rule_set: Optional[BonusRuleSet] = None,
        settings: Optional[BillingSettings] = None,
    ):
        self.session = session
        self.settings = settings or get_billing_settings()
        self.repository = BonusMasterRepository(session)
        self.engine = BonusEvaluationEngine(
            ContextAggregator(SqlVisitHistorySource(session), self.settings),
            settings=self.settings,
        )
        self._rule_set = rule_set

    # =========================================================================
    # Lookups
    # =========================================================================

    async def get_patient(self, facility_id: UUID, patient_id: UUID) -> Patient:
        result = await self.session.execute(
            select(Patient).where(Patient.id == patient_id, Patient.facility_id == facility_id)
        )
        patient = result.scalar_one_or_none()
        if patient is None:
            raise RecordNotFoundError(f"Patient {patient_id} not found")
        return patient

    async def get_record(self, facility_id: UUID, record_id: UUID) -> NursingRecord:
        result = await self.session.execute(
            select(NursingRecord).where(
                NursingRecord.id == record_id,
                NursingRecord.facility_id == facility_id,
                NursingRecord.deleted_at.is_(None),
            )
        )
        record = result.scalar_one_or_none()
        if record is None:
            raise RecordNotFoundError(f"Nursing record {record_id} not found")
        return record

    async def list_records(
        self,
        facility_id: UUID,
        patient_id: Optional[UUID] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[NursingRecord]:
        """Records of the facility in visit order, optionally filtered."""
        query = select(NursingRecord).where(
            NursingRecord.facility_id == facility_id,
            NursingRecord.deleted_at.is_(None),
        )
        if patient_id:
            query = query.where(NursingRecord.patient_id == patient_id)
        if date_from:
            query = query.where(NursingRecord.visit_date >= date_from)
        if date_to:
            query = query.where(NursingRecord.visit_date <= date_to)

        result = await self.session.execute(
            query.order_by(NursingRecord.visit_date, NursingRecord.actual_start_time)
        )
        return list(result.scalars().all())

    async def applicable_bonuses(
        self,
        facility_id: UUID,
        insurance_type: InsuranceType,
        visit_date: Optional[date] = None,
    ) -> list[BonusDefinition]:
        """Effective bonus definitions for an insurance type on a date."""
        rule_set = await self._get_rule_set(facility_id)
        return rule_set.catalog(insurance_type, visit_date=visit_date, facility_id=facility_id)

    # =========================================================================
    # Saves
    # =========================================================================

    async def create_record(self, facility_id: UUID, payload: NursingRecordCreate) -> SavedRecord:
        """Persist a new visit and compute its billing fields."""
        patient = await self._lock_patient(facility_id, payload.patient_id)
        data = payload.model_dump(exclude={"patient_id"})
        await self._validate_references(facility_id, data)

        record = NursingRecord(facility_id=facility_id, patient_id=patient.id, **data)
        self.session.add(record)
        await self.session.flush()

        evaluation = await self._evaluate(record, patient)
        await self.session.commit()
        await self.session.refresh(record)

        logger.info(
            f"Created nursing record {record.id} for patient {patient.id}: "
            f"{record.calculated_points} points"
        )
        return SavedRecord(record=record, evaluation=evaluation)

    async def update_record(
        self,
        facility_id: UUID,
        record_id: UUID,
        payload: NursingRecordUpdate,
    ) -> SavedRecord:
        """Apply edits to a visit and re-run bonus evaluation."""
        record = await self.get_record(facility_id, record_id)
        patient = await self._lock_patient(facility_id, record.patient_id)

        data = payload.model_dump(exclude_unset=True)
        start = data.get("actual_start_time", record.actual_start_time)
        end = data.get("actual_end_time", record.actual_end_time)
        if start is not None and end is not None and _as_utc(end) < _as_utc(start):
            raise RecordValidationError(
                "Invalid visit times",
                errors=["actual_end_time must not be before actual_start_time"],
            )
        await self._validate_references(facility_id, data)
        for key, value in data.items():
            setattr(record, key, value)
        await self.session.flush()

        evaluation = await self._evaluate(record, patient)
        await self.session.commit()
        await self.session.refresh(record)

        logger.info(f"Updated nursing record {record.id}: {record.calculated_points} points")
        return SavedRecord(record=record, evaluation=evaluation)

    async def recalculate_month(
        self,
        facility_id: UUID,
        patient_id: UUID,
        year: int,
        month: int,
    ) -> list[SavedRecord]:
        """
        Re-evaluate the patient's billable records of a month in visit order.

        One rule set snapshot is used for the whole month.
        """
        patient = await self._lock_patient(facility_id, patient_id)
        month_start, month_end = month_bounds(date(year, month, 1))
        rule_set = await self._get_rule_set(facility_id)

        records = [
            record
            for record in await self.list_records(facility_id, patient.id, month_start, month_end)
            if RecordStatus(record.status) in RecordStatus.billable()
        ]

        saved: list[SavedRecord] = []
        for record in records:
            evaluation = await self._evaluate(record, patient, rule_set)
            saved.append(SavedRecord(record=record, evaluation=evaluation))

        await self.session.commit()
        for item in saved:
            await self.session.refresh(item.record)

        logger.info(
            f"Recalculated {len(saved)} records for patient {patient.id} in {year}-{month:02d}"
        )
        return saved

    # =========================================================================
    # Internals
    # =========================================================================

    async def _lock_patient(self, facility_id: UUID, patient_id: UUID) -> Patient:
        result = await self.session.execute(
            select(Patient)
            .where(Patient.id == patient_id, Patient.facility_id == facility_id)
            .with_for_update()
        )
        patient = result.scalar_one_or_none()
        if patient is None:
            raise RecordNotFoundError(f"Patient {patient_id} not found")
        return patient

    async def _validate_references(self, facility_id: UUID, data: dict) -> None:
        errors: list[str] = []

        nurse_id = data.get("nurse_id")
        if nurse_id is not None:
            nurse = await self.session.execute(
                select(Nurse.id).where(Nurse.id == nurse_id, Nurse.facility_id == facility_id)
            )
            if nurse.scalar_one_or_none() is None:
                errors.append(f"Nurse {nurse_id} does not belong to this facility")

        service_code_id = data.get("service_code_id")
        if service_code_id is not None:
            if await self.session.get(NursingServiceCode, service_code_id) is None:
                errors.append(f"Service code {service_code_id} does not exist")

        if errors:
            raise RecordValidationError("Invalid record references", errors=errors)

    async def _get_rule_set(self, facility_id: UUID) -> BonusRuleSet:
        if self._rule_set is not None:
            return self._rule_set
        return await self.repository.load_rule_set(facility_id)

    async def _evaluate(
        self,
        record: NursingRecord,
        patient: Patient,
        rule_set: Optional[BonusRuleSet] = None,
    ) -> EvaluationResult:
        """Run the engine and write its outcome onto the record and its history."""
        if rule_set is None:
            rule_set = await self._get_rule_set(record.facility_id)
        base_points = await self.repository.base_points(record.service_code_id)

        evaluation = await self.engine.evaluate(to_visit_record(record, base_points), rule_set)

        record.calculated_points = evaluation.calculated_points
        record.applied_bonuses = [bonus.to_dict() for bonus in evaluation.applied_bonuses]
        record.has_additional_payment_alert = evaluation.has_additional_payment_alert
        record.billing_alerts = list(evaluation.alerts)
        record.billing_degraded = evaluation.billing_degraded

        await self.repository.replace_history(
            record, evaluation.applied_bonuses, InsuranceType(patient.insurance_type)
        )
        return evaluation
