"""
Integration Tests for the Nursing Record Service
Runs the save -> evaluate -> history cycle against an in-memory SQLite database
"""

from datetime import date, datetime, timezone
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from scripts.seed_bonus_master import seed_bonus_masters, seed_special_management
from src.core.enums import InsuranceType, PointsType, RecordStatus
from src.models import (
    Base,
    BonusCalculationHistory,
    BonusMaster,
    Facility,
    NursingServiceCode,
    Nurse,
    Patient,
)
from src.schemas.nursing_record import NursingRecordCreate, NursingRecordUpdate
from src.services.nursing_record_service import (
    NursingRecordService,
    RecordNotFoundError,
    RecordValidationError,
)

VISIT_DATE = date(2024, 7, 10)


def utc(day: date, hour: int, minute: int = 0) -> datetime:
    # SQLite drops offsets, so times are stored as UTC wall clock
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def session():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_maker = async_sessionmaker(engine, expire_on_commit=False, autoflush=False)
    async with session_maker() as session:
        await seed_bonus_masters(session)
        await seed_special_management(session)
        await session.commit()
        yield session

    await engine.dispose()


@pytest_asyncio.fixture
async def facility(session) -> Facility:
    facility = Facility(name="Sakura Home Nursing Station")
    session.add(facility)
    await session.commit()
    return facility


@pytest_asyncio.fixture
async def patient(session, facility) -> Patient:
    patient = Patient(
        facility_id=facility.id,
        patient_number="P-0001",
        full_name="Yamada Hanako",
        date_of_birth=date(1945, 3, 3),
        insurance_type=InsuranceType.MEDICAL,
    )
    session.add(patient)
    await session.commit()
    return patient


@pytest_asyncio.fixture
async def base_code(session) -> NursingServiceCode:
    code = NursingServiceCode(
        service_code="510000110",
        service_name="訪問看護基本療養費（I）",
        insurance_type=InsuranceType.MEDICAL,
        points=5550,
        valid_from=date(2024, 6, 1),
    )
    session.add(code)
    await session.commit()
    return code


@pytest.fixture
def service(session) -> NursingRecordService:
    return NursingRecordService(session)


def _payload(patient, base_code, **overrides) -> NursingRecordCreate:
    values = {
        "patient_id": patient.id,
        "visit_date": VISIT_DATE,
        "status": RecordStatus.COMPLETED,
        "actual_start_time": utc(VISIT_DATE, 1),
        "actual_end_time": utc(VISIT_DATE, 2),
        "service_code_id": base_code.id,
    }
    values.update(overrides)
    return NursingRecordCreate(**values)


async def _history_codes(session, record_id) -> list[str]:
    result = await session.execute(
        select(BonusCalculationHistory.bonus_code).where(
            BonusCalculationHistory.nursing_record_id == record_id
        )
    )
    return sorted(result.scalars().all())


@pytest.mark.integration
class TestCreateRecord:
    """Saving a new visit"""

    @pytest.mark.asyncio
    async def test_plain_visit_gets_base_points(self, service, facility, patient, base_code):
        saved = await service.create_record(facility.id, _payload(patient, base_code))

        assert saved.record.calculated_points == 5550
        assert saved.record.applied_bonuses == []
        assert saved.record.has_additional_payment_alert is False
        assert saved.record.billing_degraded is False

    @pytest.mark.asyncio
    async def test_bonus_written_to_record_and_history(
        self, session, service, facility, patient, base_code
    ):
        saved = await service.create_record(
            facility.id, _payload(patient, base_code, emergency_visit_reason="発熱")
        )

        assert saved.record.calculated_points == 5550 + 2650
        assert [b["bonus_code"] for b in saved.record.applied_bonuses] == ["medical_emergency_visit"]
        assert await _history_codes(session, saved.record.id) == ["medical_emergency_visit"]

        history = (
            await session.execute(
                select(BonusCalculationHistory).where(
                    BonusCalculationHistory.nursing_record_id == saved.record.id
                )
            )
        ).scalar_one()
        master = await session.get(BonusMaster, history.bonus_master_id)
        assert master.bonus_code == "medical_emergency_visit"
        assert history.calculated_points == 2650

    @pytest.mark.asyncio
    async def test_draft_is_evaluated_but_not_counted(self, service, facility, patient, base_code):
        await service.create_record(
            facility.id, _payload(patient, base_code, status=RecordStatus.DRAFT)
        )
        second = await service.create_record(
            facility.id, _payload(patient, base_code, multiple_visit_reason="状態悪化")
        )

        assert second.record.applied_bonuses == []

    @pytest.mark.asyncio
    async def test_second_visit_same_day(self, service, facility, patient, base_code):
        await service.create_record(facility.id, _payload(patient, base_code))
        second = await service.create_record(
            facility.id,
            _payload(
                patient,
                base_code,
                actual_start_time=utc(VISIT_DATE, 5),
                actual_end_time=utc(VISIT_DATE, 6),
                multiple_visit_reason="状態悪化",
            ),
        )

        assert [b["bonus_code"] for b in second.record.applied_bonuses] == [
            "medical_multiple_visit_2times_1-2"
        ]
        assert second.record.calculated_points == 5550 + 4500

    @pytest.mark.asyncio
    async def test_monthly_cap_counts_saved_history(self, service, facility, patient, base_code):
        def long_visit(day: date):
            return _payload(
                patient,
                base_code,
                visit_date=day,
                actual_start_time=utc(day, 1),
                actual_end_time=utc(day, 2, 40),
                long_visit_reason="人工呼吸器の管理",
            )

        first = await service.create_record(facility.id, long_visit(VISIT_DATE))
        later = await service.create_record(facility.id, long_visit(date(2024, 7, 20)))

        assert [b["bonus_code"] for b in first.record.applied_bonuses] == ["medical_long_visit"]
        assert later.record.applied_bonuses == []

    @pytest.mark.asyncio
    async def test_unknown_patient(self, service, facility, base_code):
        payload = NursingRecordCreate(patient_id=uuid4(), visit_date=VISIT_DATE)
        with pytest.raises(RecordNotFoundError):
            await service.create_record(facility.id, payload)

    @pytest.mark.asyncio
    async def test_patient_of_other_facility(self, session, service, patient, base_code):
        other = Facility(name="Other Station")
        session.add(other)
        await session.commit()

        with pytest.raises(RecordNotFoundError):
            await service.create_record(other.id, _payload(patient, base_code))

    @pytest.mark.asyncio
    async def test_nurse_of_other_facility_is_rejected(
        self, session, service, facility, patient, base_code
    ):
        other = Facility(name="Other Station")
        session.add(other)
        await session.flush()
        nurse = Nurse(facility_id=other.id, full_name="Sato Aki")
        session.add(nurse)
        await session.commit()

        with pytest.raises(RecordValidationError) as exc_info:
            await service.create_record(facility.id, _payload(patient, base_code, nurse_id=nurse.id))

        assert exc_info.value.errors == [f"Nurse {nurse.id} does not belong to this facility"]


@pytest.mark.integration
class TestUpdateRecord:
    """Editing a visit re-runs the evaluation"""

    @pytest.mark.asyncio
    async def test_clearing_reason_removes_bonus(self, session, service, facility, patient, base_code):
        saved = await service.create_record(
            facility.id, _payload(patient, base_code, emergency_visit_reason="発熱")
        )

        updated = await service.update_record(
            facility.id,
            saved.record.id,
            NursingRecordUpdate(visit_date=VISIT_DATE, emergency_visit_reason="  "),
        )

        assert updated.record.applied_bonuses == []
        assert updated.record.calculated_points == 5550
        assert await _history_codes(session, saved.record.id) == []

    @pytest.mark.asyncio
    async def test_unset_fields_are_kept(self, service, facility, patient, base_code):
        saved = await service.create_record(
            facility.id, _payload(patient, base_code, title="定期訪問")
        )

        updated = await service.update_record(
            facility.id, saved.record.id, NursingRecordUpdate(visit_date=VISIT_DATE, content="安定")
        )

        assert updated.record.title == "定期訪問"
        assert updated.record.content == "安定"
        assert updated.record.service_code_id == base_code.id

    @pytest.mark.asyncio
    async def test_end_time_before_stored_start_is_rejected(self, session, service, facility, patient, base_code):
        saved = await service.create_record(facility.id, _payload(patient, base_code))

        with pytest.raises(RecordValidationError) as exc_info:
            await service.update_record(
                facility.id,
                saved.record.id,
                NursingRecordUpdate(visit_date=VISIT_DATE, actual_end_time=utc(VISIT_DATE, 0, 30)),
            )

        assert exc_info.value.errors == ["actual_end_time must not be before actual_start_time"]
        await session.rollback()
        record = await service.get_record(facility.id, saved.record.id)
        assert record.actual_end_time.replace(tzinfo=timezone.utc) == utc(VISIT_DATE, 2)

    @pytest.mark.asyncio
    async def test_end_time_only_update_is_evaluated(self, service, facility, patient, base_code):
        saved = await service.create_record(facility.id, _payload(patient, base_code))

        updated = await service.update_record(
            facility.id,
            saved.record.id,
            NursingRecordUpdate(
                visit_date=VISIT_DATE,
                actual_end_time=utc(VISIT_DATE, 2, 40),
                long_visit_reason="人工呼吸器の管理",
            ),
        )

        assert [bonus["bonus_code"] for bonus in updated.record.applied_bonuses] == ["medical_long_visit"]
        assert updated.record.applied_bonuses[0]["duration_minutes"] == 100

    @pytest.mark.asyncio
    async def test_manual_service_code_survives(self, session, service, facility, patient, base_code):
        saved = await service.create_record(
            facility.id, _payload(patient, base_code, emergency_visit_reason="発熱")
        )
        manual_code = NursingServiceCode(
            service_code="510002499",
            service_name="緊急訪問看護加算（手動）",
            insurance_type=InsuranceType.MEDICAL,
            points=2650,
            valid_from=date(2024, 6, 1),
        )
        session.add(manual_code)
        await session.flush()
        history = (
            await session.execute(
                select(BonusCalculationHistory).where(
                    BonusCalculationHistory.nursing_record_id == saved.record.id
                )
            )
        ).scalar_one()
        history.service_code_id = manual_code.id
        await session.commit()

        await service.update_record(
            facility.id, saved.record.id, NursingRecordUpdate(visit_date=VISIT_DATE, content="再計算")
        )

        refreshed = (
            await session.execute(
                select(BonusCalculationHistory).where(
                    BonusCalculationHistory.nursing_record_id == saved.record.id
                )
            )
        ).scalar_one()
        assert refreshed.service_code_id == manual_code.id

    @pytest.mark.asyncio
    async def test_missing_record(self, service, facility):
        with pytest.raises(RecordNotFoundError):
            await service.update_record(facility.id, uuid4(), NursingRecordUpdate(visit_date=VISIT_DATE))


@pytest.mark.integration
class TestRecalculateMonth:
    """Month-wide recalculation"""

    @pytest.mark.asyncio
    async def test_recalculates_billable_records_in_order(
        self, session, service, facility, patient, base_code
    ):
        await service.create_record(facility.id, _payload(patient, base_code, visit_date=date(2024, 7, 2)))
        await service.create_record(
            facility.id, _payload(patient, base_code, visit_date=date(2024, 7, 3), status=RecordStatus.DRAFT)
        )
        await service.create_record(facility.id, _payload(patient, base_code, visit_date=date(2024, 8, 1)))

        saved = await service.recalculate_month(facility.id, patient.id, 2024, 7)

        assert [item.record.visit_date for item in saved] == [date(2024, 7, 2)]
        assert saved[0].record.calculated_points == 5550

    @pytest.mark.asyncio
    async def test_picks_up_new_master_data(self, session, service, facility, patient, base_code):
        saved = await service.create_record(facility.id, _payload(patient, base_code))
        session.add(
            BonusMaster(
                facility_id=facility.id,
                bonus_code="station_regional_addition",
                bonus_name="地域加算",
                insurance_type=InsuranceType.MEDICAL,
                points_type=PointsType.FIXED,
                fixed_points=300,
                predefined_conditions=[],
                valid_from=date(2024, 6, 1),
                display_order=5,
            )
        )
        await session.commit()

        (recalculated,) = await service.recalculate_month(facility.id, patient.id, 2024, 7)

        assert recalculated.record.id == saved.record.id
        assert recalculated.record.calculated_points == 5850
        assert await _history_codes(session, saved.record.id) == ["station_regional_addition"]


@pytest.mark.integration
class TestLookups:
    """Listing and catalog"""

    @pytest.mark.asyncio
    async def test_list_records_filters_by_date(self, service, facility, patient, base_code):
        await service.create_record(facility.id, _payload(patient, base_code, visit_date=date(2024, 7, 2)))
        await service.create_record(facility.id, _payload(patient, base_code, visit_date=date(2024, 7, 20)))

        records = await service.list_records(
            facility.id, patient.id, date_from=date(2024, 7, 1), date_to=date(2024, 7, 10)
        )

        assert [r.visit_date for r in records] == [date(2024, 7, 2)]

    @pytest.mark.asyncio
    async def test_applicable_bonuses(self, service, facility):
        definitions = await service.applicable_bonuses(facility.id, InsuranceType.CARE, VISIT_DATE)
        codes = [d.code for d in definitions]
        assert codes[0] == "care_first_visit"
        assert all(d.insurance_type == InsuranceType.CARE for d in definitions)
        assert "care_special_management_1" in codes
