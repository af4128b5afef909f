"""
Pytest Configuration and Fixtures.
Shared test fixtures for all test modules.
"""

from datetime import date
from typing import Any
from unittest.mock import AsyncMock
from uuid import UUID, uuid4

import pytest

from src.core.config import BillingSettings
from src.core.enums import InsuranceType, RecordStatus
from src.services.billing import (
    BonusEvaluationEngine,
    BonusRuleSet,
    ContextAggregator,
    FacilityProfile,
    PatientProfile,
    VisitRecord,
)
from src.services.billing.catalog import (
    DEFAULT_BONUS_MASTERS,
    DEFAULT_SPECIAL_MANAGEMENT_DEFINITIONS,
)
from tests.helpers import VISIT_DATE, FakeHistorySource, jst

# =============================================================================
# Engine Fixtures
# =============================================================================


@pytest.fixture
def billing_settings() -> BillingSettings:
    return BillingSettings(_env_file=None)


@pytest.fixture
def facility_id() -> UUID:
    return uuid4()


@pytest.fixture
def facility(facility_id) -> FacilityProfile:
    return FacilityProfile(id=facility_id)


@pytest.fixture
def medical_patient(facility_id) -> PatientProfile:
    return PatientProfile(
        id=uuid4(),
        facility_id=facility_id,
        insurance_type=InsuranceType.MEDICAL,
        date_of_birth=date(1950, 4, 1),
    )


@pytest.fixture
def care_patient(facility_id) -> PatientProfile:
    return PatientProfile(
        id=uuid4(),
        facility_id=facility_id,
        insurance_type=InsuranceType.CARE,
        date_of_birth=date(1940, 1, 15),
    )


@pytest.fixture
def history(medical_patient, facility) -> FakeHistorySource:
    return FakeHistorySource(patient=medical_patient, facility=facility)


@pytest.fixture
def aggregator(history, billing_settings) -> ContextAggregator:
    return ContextAggregator(history, billing_settings)


@pytest.fixture
def engine(aggregator, billing_settings) -> BonusEvaluationEngine:
    return BonusEvaluationEngine(aggregator, settings=billing_settings)


@pytest.fixture
def rule_set(billing_settings) -> BonusRuleSet:
    """The default catalog as an immutable snapshot."""
    return BonusRuleSet.from_masters(
        DEFAULT_BONUS_MASTERS,
        DEFAULT_SPECIAL_MANAGEMENT_DEFINITIONS,
        settings=billing_settings,
    )


@pytest.fixture
def make_record(facility_id, medical_patient):
    """Factory for visit records of the default patient on the default day."""

    def _make(**overrides: Any) -> VisitRecord:
        values: dict[str, Any] = {
            "id": uuid4(),
            "facility_id": facility_id,
            "patient_id": medical_patient.id,
            "visit_date": VISIT_DATE,
            "status": RecordStatus.COMPLETED,
            "actual_start_time": jst(VISIT_DATE, 10),
            "actual_end_time": jst(VISIT_DATE, 11),
            "base_points": 5550,
        }
        values.update(overrides)
        return VisitRecord(**values)

    return _make


@pytest.fixture
def mock_db_session():
    """Create a mock database session."""
    session = AsyncMock()
    session.execute = AsyncMock()
    session.commit = AsyncMock()
    session.refresh = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    return session


# Configure pytest markers
def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
    config.addinivalue_line(
        "markers", "api: mark test as an API test"
    )
