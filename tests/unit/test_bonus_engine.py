"""
Bonus Evaluation Engine Tests.

Tests for:
- Determinism and the stateless re-evaluation contract
- Same-day visit counting, monthly caps and exclusion groups
- Points resolution for conditional bonuses
- Terminal care, dependent bonuses and combination rules
- Fail-closed behaviour when history cannot be loaded
"""

from datetime import date, timedelta
from typing import Any
from uuid import uuid4

import pytest

from src.core.enums import ConditionalPattern, InsuranceType, PointsType, RecordStatus
from src.services.billing import BonusDefinition, BonusRuleSet, FacilityProfile, PatientProfile
from src.services.billing.catalog import DEFAULT_BONUS_MASTERS, REVISION_2024
from src.services.billing.engine import DEGRADED_ALERT
from src.services.billing.service_code_selector import (
    EMERGENCY_VISIT_EARLY,
    LATE_NIGHT,
    MULTIPLE_VISIT_3_LOW,
    SUPPORT_24H_ENHANCED,
)
from tests.helpers import VISIT_DATE, jst


def _master(code: str, display_order: int, **overrides: Any) -> dict[str, Any]:
    """Minimal fixed-points medical bonus master row."""
    master: dict[str, Any] = {
        "bonus_code": code,
        "bonus_name": code.replace("_", " ").title(),
        "insurance_type": "medical",
        "points_type": "fixed",
        "fixed_points": 100,
        "predefined_conditions": [],
        "valid_from": REVISION_2024,
        "display_order": display_order,
    }
    master.update(overrides)
    return master


def _codes(result) -> list[str]:
    return [bonus.bonus_code for bonus in result.applied_bonuses]


# =============================================================================
# Baseline
# =============================================================================


@pytest.mark.unit
class TestBaseline:
    """A plain daytime visit."""

    @pytest.mark.asyncio
    async def test_daytime_visit_gets_no_bonus(self, engine, rule_set, make_record):
        result = await engine.evaluate(make_record(), rule_set)

        assert result.applied_bonuses == []
        assert result.calculated_points == 5550
        assert result.alerts == []
        assert result.billing_degraded is False

    @pytest.mark.asyncio
    async def test_evaluation_is_deterministic(self, engine, rule_set, make_record, history, medical_patient):
        history.add_visit(medical_patient.id, VISIT_DATE)
        history.add_visit(medical_patient.id, VISIT_DATE)
        record = make_record(
            multiple_visit_reason="頻回の吸引が必要",
            actual_start_time=jst(VISIT_DATE, 23),
            actual_end_time=jst(VISIT_DATE, 23, 50),
        )

        first = await engine.evaluate(record, rule_set)
        second = await engine.evaluate(record, rule_set)

        assert [b.to_dict() for b in first.applied_bonuses] == [b.to_dict() for b in second.applied_bonuses]
        assert first.calculated_points == second.calculated_points
        assert first.alerts == second.alerts

    @pytest.mark.asyncio
    async def test_rule_set_is_not_mutated(self, engine, rule_set, make_record):
        before = rule_set.definitions
        await engine.evaluate(make_record(emergency_visit_reason="転倒"), rule_set)
        assert rule_set.definitions == before


# =============================================================================
# Same-day visits
# =============================================================================


@pytest.mark.unit
class TestMultipleVisits:
    """Repeat visits on the same day."""

    @pytest.mark.asyncio
    async def test_third_visit_gets_three_times_bonus(
        self, engine, rule_set, make_record, history, medical_patient
    ):
        history.add_visit(medical_patient.id, VISIT_DATE)
        history.add_visit(medical_patient.id, VISIT_DATE)

        result = await engine.evaluate(make_record(multiple_visit_reason="状態悪化"), rule_set)

        assert _codes(result) == ["medical_multiple_visit_3times"]
        bonus = result.applied_bonuses[0]
        assert bonus.points == 8000
        assert bonus.visit_number == 3
        assert bonus.matched_condition == "occupancy_1_2"
        assert bonus.reason == "状態悪化"
        assert bonus.service_code == MULTIPLE_VISIT_3_LOW

    @pytest.mark.asyncio
    async def test_second_visit_gets_two_times_bonus(
        self, engine, rule_set, make_record, history, medical_patient
    ):
        history.add_visit(medical_patient.id, VISIT_DATE)

        result = await engine.evaluate(make_record(multiple_visit_reason="状態悪化"), rule_set)

        assert _codes(result) == ["medical_multiple_visit_2times_1-2"]
        assert result.applied_bonuses[0].points == 4500

    @pytest.mark.asyncio
    async def test_crowded_building_uses_lower_tier(
        self, engine, rule_set, make_record, history, medical_patient
    ):
        patient = PatientProfile(
            id=medical_patient.id,
            facility_id=medical_patient.facility_id,
            insurance_type=InsuranceType.MEDICAL,
            building_id=uuid4(),
        )
        history.add_patient(patient)
        history.building_patients = 2
        history.add_visit(patient.id, VISIT_DATE)
        history.add_visit(patient.id, VISIT_DATE)

        result = await engine.evaluate(make_record(multiple_visit_reason="状態悪化"), rule_set)

        assert result.applied_bonuses[0].points == 7200
        assert result.applied_bonuses[0].matched_condition == "occupancy_3_plus"

    @pytest.mark.asyncio
    async def test_whitespace_reason_does_not_qualify(
        self, engine, rule_set, make_record, history, medical_patient
    ):
        history.add_visit(medical_patient.id, VISIT_DATE)
        history.add_visit(medical_patient.id, VISIT_DATE)

        result = await engine.evaluate(make_record(multiple_visit_reason="   "), rule_set)

        assert result.applied_bonuses == []
        assert "multiple_visit_reason is required for repeat visits on the same day" in result.alerts
        assert result.has_additional_payment_alert is True

    @pytest.mark.asyncio
    async def test_draft_visits_do_not_count(
        self, engine, rule_set, make_record, history, medical_patient
    ):
        history.add_visit(medical_patient.id, VISIT_DATE, status=RecordStatus.DRAFT)

        result = await engine.evaluate(make_record(multiple_visit_reason="状態悪化"), rule_set)

        assert result.applied_bonuses == []


# =============================================================================
# Monthly caps and exclusion groups
# =============================================================================


@pytest.mark.unit
class TestMonthlyCap:
    """Bonuses limited to once per calendar month."""

    def _long_record(self, make_record, **overrides):
        values = {
            "actual_end_time": jst(VISIT_DATE, 11, 35),
            "long_visit_reason": "人工呼吸器の管理",
        }
        values.update(overrides)
        return make_record(**values)

    @pytest.mark.asyncio
    async def test_first_long_visit_of_month_applies(self, engine, rule_set, make_record):
        result = await engine.evaluate(self._long_record(make_record), rule_set)

        assert _codes(result) == ["medical_long_visit"]
        assert result.applied_bonuses[0].points == 5200
        assert result.applied_bonuses[0].duration_minutes == 95
        assert result.alerts == []

    @pytest.mark.asyncio
    async def test_cap_reached_by_earlier_visit(
        self, engine, rule_set, make_record, history, medical_patient
    ):
        history.add_visit(medical_patient.id, date(2024, 7, 2), bonus_codes=("medical_long_visit",))

        result = await engine.evaluate(self._long_record(make_record), rule_set)

        assert "medical_long_visit" not in _codes(result)

    @pytest.mark.asyncio
    async def test_previous_month_does_not_count(
        self, engine, rule_set, make_record, history, medical_patient
    ):
        history.add_visit(medical_patient.id, date(2024, 6, 28), bonus_codes=("medical_long_visit",))

        result = await engine.evaluate(self._long_record(make_record), rule_set)

        assert _codes(result) == ["medical_long_visit"]

    @pytest.mark.asyncio
    async def test_current_record_is_excluded_from_history(
        self, engine, rule_set, make_record, history, medical_patient
    ):
        record = self._long_record(make_record)
        history.add_visit(
            medical_patient.id, VISIT_DATE, bonus_codes=("medical_long_visit",), visit_id=record.id
        )

        result = await engine.evaluate(record, rule_set)

        assert _codes(result) == ["medical_long_visit"]
        assert result.applied_bonuses[0].visit_number == 1


@pytest.mark.unit
class TestExclusionGroups:
    """At most one bonus per exclusion group."""

    @pytest.mark.asyncio
    async def test_enhanced_24h_system_wins_over_basic(self, engine, rule_set, make_record, history, facility_id):
        history.facility = FacilityProfile(
            id=facility_id,
            has_24h_support_system=True,
            has_24h_support_system_enhanced=True,
            burden_reduction_measures=("night_shift_limit", "ict_use"),
        )

        result = await engine.evaluate(make_record(), rule_set)

        assert _codes(result) == ["24h_response_system_enhanced"]
        assert result.applied_bonuses[0].points == 6800
        assert result.applied_bonuses[0].service_code == SUPPORT_24H_ENHANCED

    @pytest.mark.asyncio
    async def test_basic_applies_without_burden_measures(self, engine, rule_set, make_record, history, facility_id):
        history.facility = FacilityProfile(
            id=facility_id,
            has_24h_support_system=True,
            has_24h_support_system_enhanced=True,
            burden_reduction_measures=("night_shift_limit",),
        )

        result = await engine.evaluate(make_record(), rule_set)

        assert _codes(result) == ["24h_response_system_basic"]

    @pytest.mark.asyncio
    async def test_late_night_excludes_night_early_morning(self, engine, rule_set, make_record):
        record = make_record(
            actual_start_time=jst(VISIT_DATE, 23), actual_end_time=jst(VISIT_DATE, 23, 50)
        )

        result = await engine.evaluate(record, rule_set)

        assert _codes(result) == ["medical_late_night"]
        assert result.applied_bonuses[0].points == 4200
        assert result.applied_bonuses[0].service_code == LATE_NIGHT

    @pytest.mark.asyncio
    async def test_early_morning_visit(self, engine, rule_set, make_record):
        record = make_record(actual_start_time=jst(VISIT_DATE, 7), actual_end_time=jst(VISIT_DATE, 7, 45))

        result = await engine.evaluate(record, rule_set)

        assert _codes(result) == ["medical_night_early_morning"]
        assert result.applied_bonuses[0].matched_condition == "early_morning"
        assert result.applied_bonuses[0].points == 2100


# =============================================================================
# Points
# =============================================================================


@pytest.mark.unit
class TestPoints:
    """Point resolution flowing through the engine."""

    @pytest.mark.asyncio
    async def test_emergency_visit_up_to_14(self, engine, rule_set, make_record, history, medical_patient):
        for day in range(1, 14):
            history.add_visit(medical_patient.id, date(2024, 7, day), has_emergency_reason=True)

        result = await engine.evaluate(make_record(emergency_visit_reason="発熱"), rule_set)

        bonus = result.applied_bonuses[0]
        assert bonus.bonus_code == "medical_emergency_visit"
        assert bonus.matched_condition == "up_to_14"
        assert bonus.points == 2650
        assert bonus.service_code == EMERGENCY_VISIT_EARLY

    @pytest.mark.asyncio
    async def test_emergency_visit_after_14(self, engine, rule_set, make_record, history, medical_patient):
        for day in range(1, 15):
            history.add_visit(medical_patient.id, date(2024, 7, day), has_emergency_reason=True)

        result = await engine.evaluate(make_record(emergency_visit_reason="発熱"), rule_set)

        assert result.applied_bonuses[0].matched_condition == "after_14"
        assert result.applied_bonuses[0].points == 2000

    @pytest.mark.asyncio
    async def test_calculated_points_sum_base_and_bonuses(self, engine, rule_set, make_record):
        record = make_record(
            emergency_visit_reason="発熱",
            actual_start_time=jst(VISIT_DATE, 23),
            actual_end_time=jst(VISIT_DATE, 23, 50),
        )

        result = await engine.evaluate(record, rule_set)

        assert _codes(result) == ["medical_emergency_visit", "medical_late_night"]
        assert result.bonus_points == 2650 + 4200
        assert result.calculated_points == 5550 + 2650 + 4200

    @pytest.mark.asyncio
    async def test_negative_fixed_points_are_applied(self, engine, make_record, billing_settings):
        rule_set = BonusRuleSet.from_masters(
            [_master("same_building_reduction", 1, fixed_points=-500)], settings=billing_settings
        )

        result = await engine.evaluate(make_record(), rule_set)

        assert result.applied_bonuses[0].points == -500
        assert result.calculated_points == 5050

    @pytest.mark.asyncio
    async def test_zero_points_are_not_applied(self, engine, make_record, billing_settings):
        rule_set = BonusRuleSet.from_masters(
            [_master("placeholder", 1, fixed_points=0)], settings=billing_settings
        )

        result = await engine.evaluate(make_record(), rule_set)

        assert result.applied_bonuses == []

    @pytest.mark.asyncio
    async def test_care_first_visit(self, engine, rule_set, make_record, history, care_patient):
        history.add_patient(care_patient)
        record = make_record(patient_id=care_patient.id, is_first_visit_of_plan=True, base_points=821)

        result = await engine.evaluate(record, rule_set)

        assert _codes(result) == ["care_first_visit"]
        assert result.calculated_points == 1121


# =============================================================================
# Terminal care
# =============================================================================


@pytest.mark.unit
class TestTerminalCare:
    """Terminal care on the date of death."""

    def _deceased(self, history, facility_id, place: str) -> PatientProfile:
        patient = PatientProfile(
            id=uuid4(),
            facility_id=facility_id,
            insurance_type=InsuranceType.MEDICAL,
            death_date=VISIT_DATE,
            death_place_code=place,
        )
        history.add_patient(patient)
        history.add_visit(patient.id, VISIT_DATE - timedelta(days=3), is_terminal_care=True)
        return patient

    @pytest.mark.asyncio
    async def test_home_death_gets_terminal_care_1(self, engine, rule_set, make_record, history, facility_id):
        patient = self._deceased(history, facility_id, "01")
        record = make_record(patient_id=patient.id, is_terminal_care=True)

        result = await engine.evaluate(record, rule_set)

        assert _codes(result) == ["terminal_care_1"]
        assert result.applied_bonuses[0].points == 25000

    @pytest.mark.asyncio
    async def test_other_place_of_death_gets_nothing(self, engine, rule_set, make_record, history, facility_id):
        patient = self._deceased(history, facility_id, "99")
        record = make_record(patient_id=patient.id, is_terminal_care=True)

        result = await engine.evaluate(record, rule_set)

        assert result.applied_bonuses == []

    @pytest.mark.asyncio
    async def test_single_visit_is_not_enough(self, engine, rule_set, make_record, history, facility_id):
        patient = PatientProfile(
            id=uuid4(),
            facility_id=facility_id,
            insurance_type=InsuranceType.MEDICAL,
            death_date=VISIT_DATE,
            death_place_code="01",
        )
        history.add_patient(patient)
        record = make_record(patient_id=patient.id, is_terminal_care=True)

        result = await engine.evaluate(record, rule_set)

        assert result.applied_bonuses == []

    @pytest.mark.parametrize("flag,expected", [(True, ["terminal_care_flag"]), (False, [])])
    @pytest.mark.asyncio
    async def test_bonus_gated_only_by_terminal_care_flag(
        self, engine, make_record, billing_settings, flag, expected
    ):
        rule_set = BonusRuleSet.from_masters(
            [
                _master(
                    "terminal_care_flag",
                    1,
                    fixed_points=25000,
                    predefined_conditions=[
                        {"pattern": "is_terminal_care", "operator": "equals", "value": True}
                    ],
                )
            ],
            settings=billing_settings,
        )

        result = await engine.evaluate(make_record(is_terminal_care=flag), rule_set)

        assert _codes(result) == expected
        assert result.calculated_points == 5550 + (25000 if flag else 0)


# =============================================================================
# Dependencies and combinations
# =============================================================================


@pytest.mark.unit
class TestDependentBonuses:
    """Bonuses conditioned on other bonuses in the same record."""

    @pytest.mark.asyncio
    async def test_dependent_bonus_evaluated_after_its_prerequisite(
        self, engine, make_record, billing_settings
    ):
        rule_set = BonusRuleSet.from_masters(
            [
                _master(
                    "follow_up",
                    1,
                    predefined_conditions=[{"pattern": "has_bonus_in_same_record", "bonus_code": "primary"}],
                ),
                _master("primary", 2),
            ],
            settings=billing_settings,
        )

        result = await engine.evaluate(make_record(), rule_set)

        assert _codes(result) == ["primary", "follow_up"]

    @pytest.mark.asyncio
    async def test_discharge_guidance_chain(self, engine, rule_set, make_record, history, facility_id):
        patient = PatientProfile(
            id=uuid4(),
            facility_id=facility_id,
            insurance_type=InsuranceType.MEDICAL,
            special_management_types=("tracheostomy",),
        )
        history.add_patient(patient)
        record = make_record(patient_id=patient.id, has_collaboration_record=True)

        result = await engine.evaluate(record, rule_set)

        assert _codes(result) == [
            "discharge_joint_guidance",
            "special_management_1",
            "discharge_special_management_guidance",
        ]
        assert result.calculated_points == 5550 + 8000 + 5000 + 2000


@pytest.mark.unit
class TestCombinationRules:
    """can_combine_with / cannot_combine_with."""

    @pytest.mark.asyncio
    async def test_cannot_combine_with(self, engine, make_record, billing_settings):
        rule_set = BonusRuleSet.from_masters(
            [_master("first", 1), _master("second", 2, cannot_combine_with=["first"])],
            settings=billing_settings,
        )

        result = await engine.evaluate(make_record(), rule_set)

        assert _codes(result) == ["first"]

    @pytest.mark.asyncio
    async def test_can_combine_with_is_an_allow_list(self, engine, make_record, billing_settings):
        rule_set = BonusRuleSet.from_masters(
            [
                _master("first", 1),
                _master("second", 2, can_combine_with=["first"]),
                _master("third", 3, can_combine_with=["first"]),
            ],
            settings=billing_settings,
        )

        result = await engine.evaluate(make_record(), rule_set)

        assert _codes(result) == ["first", "second"]


# =============================================================================
# Failures
# =============================================================================


@pytest.mark.unit
class TestFailures:
    """Configuration errors and unavailable history."""

    @pytest.mark.asyncio
    async def test_misconfigured_bonus_is_skipped_and_reported(self, engine, make_record, billing_settings):
        broken = _master("broken_bonus", 5, predefined_conditions=[{"pattern": "moon_phase"}])
        rule_set = BonusRuleSet.from_masters([broken, *DEFAULT_BONUS_MASTERS], settings=billing_settings)
        record = make_record(actual_start_time=jst(VISIT_DATE, 23), actual_end_time=jst(VISIT_DATE, 23, 50))

        result = await engine.evaluate(record, rule_set)

        assert _codes(result) == ["medical_late_night"]
        assert result.configuration_errors == ["broken_bonus: Unknown condition pattern: moon_phase"]

    @pytest.mark.parametrize(
        "tier",
        [
            {"durationMinutes": "90", "points": 500},
            {"durationMinutes": 30, "points": "abc"},
            "90 minutes",
        ],
    )
    @pytest.mark.asyncio
    async def test_malformed_duration_tiers_skip_only_that_bonus(
        self, engine, make_record, billing_settings, tier
    ):
        broken = _master(
            "broken_duration",
            1,
            points_type="conditional",
            fixed_points=None,
            conditional_pattern="duration_based",
            points_config={"conditions": [tier]},
        )
        rule_set = BonusRuleSet.from_masters([broken, _master("healthy", 2)], settings=billing_settings)

        result = await engine.evaluate(make_record(), rule_set)

        assert _codes(result) == ["healthy"]
        assert result.calculated_points == 5650
        assert len(result.configuration_errors) == 1
        assert result.configuration_errors[0].startswith("broken_duration: points_config conditions[0]")

    @pytest.mark.asyncio
    async def test_malformed_points_at_resolution_skip_only_that_bonus(self, engine, make_record, billing_settings):
        # Built directly, so nothing was checked when the snapshot was made
        broken = BonusDefinition(
            code="broken_duration",
            name="Broken",
            insurance_type=InsuranceType.MEDICAL,
            valid_from=REVISION_2024,
            points_type=PointsType.CONDITIONAL,
            conditional_pattern=ConditionalPattern.DURATION_BASED,
            points_config={"conditions": [{"durationMinutes": 30, "points": "abc"}]},
            display_order=1,
        )
        healthy = BonusDefinition.from_master(_master("healthy", 2))
        rule_set = BonusRuleSet([broken, healthy], settings=billing_settings)

        result = await engine.evaluate(make_record(), rule_set)

        assert _codes(result) == ["healthy"]
        assert result.configuration_errors == [
            "broken_duration: points_config conditions[0].points is not a number: 'abc'"
        ]

    @pytest.mark.asyncio
    async def test_conditional_bonus_without_config_is_reported(self, engine, make_record, billing_settings):
        rule_set = BonusRuleSet.from_masters(
            [_master("no_config", 1, points_type="conditional", conditional_pattern="time_based")],
            settings=billing_settings,
        )

        result = await engine.evaluate(make_record(), rule_set)

        assert result.applied_bonuses == []
        assert len(result.configuration_errors) == 1
        assert result.configuration_errors[0].startswith("no_config:")

    @pytest.mark.asyncio
    async def test_unavailable_history_fails_closed(self, engine, rule_set, make_record, history):
        history.error = ConnectionError("database unreachable")

        result = await engine.evaluate(make_record(emergency_visit_reason="発熱"), rule_set)

        assert result.billing_degraded is True
        assert result.applied_bonuses == []
        assert result.calculated_points == 5550
        assert result.alerts == [DEGRADED_ALERT]

    @pytest.mark.asyncio
    async def test_unknown_patient_fails_closed(self, engine, rule_set, make_record):
        result = await engine.evaluate(make_record(patient_id=uuid4()), rule_set)

        assert result.billing_degraded is True


# =============================================================================
# Alerts
# =============================================================================


@pytest.mark.unit
class TestAlerts:
    """Soft alerts for missing reasons."""

    @pytest.mark.asyncio
    async def test_long_visit_without_reason(self, engine, rule_set, make_record):
        record = make_record(actual_end_time=jst(VISIT_DATE, 11, 35))

        result = await engine.evaluate(record, rule_set)

        assert _codes(result) == ["medical_long_visit"]
        assert result.alerts == [
            "long_visit_reason is required for visits of 90 minutes or more",
            "long_visit_reason is required for medical_long_visit",
        ]

    @pytest.mark.asyncio
    async def test_second_visit_flag_without_reason(self, engine, rule_set, make_record):
        result = await engine.evaluate(make_record(is_second_visit=True), rule_set)

        assert result.alerts == ["multiple_visit_reason is required for repeat visits on the same day"]
