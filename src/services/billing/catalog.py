"""
Default bonus catalog.

Standard medical (訪問看護療養費, yen) and long-term-care (介護報酬, units)
additions for home-nursing visits under the June 2024 fee revision. Used to
seed bonus_master and as the fixture catalog in tests.
"""

from datetime import date
from typing import Any, Optional

REVISION_2024 = date(2024, 6, 1)

PALLIATIVE_SPECIALTIES = ["緩和ケア", "褥瘡ケア", "人工肛門・人工膀胱ケア", "特定行為研修"]


def _bonus(
    code: str,
    name: str,
    insurance_type: str,
    display_order: int,
    conditions: list[dict[str, Any]],
    fixed_points: Optional[int] = None,
    conditional_pattern: Optional[str] = None,
    points_config: Optional[dict[str, Any]] = None,
    **extra: Any,
) -> dict[str, Any]:
    entry: dict[str, Any] = {
        "bonus_code": code,
        "bonus_name": name,
        "insurance_type": insurance_type,
        "points_type": "conditional" if conditional_pattern else "fixed",
        "fixed_points": fixed_points,
        "conditional_pattern": conditional_pattern,
        "points_config": points_config,
        "predefined_conditions": conditions,
        "valid_from": REVISION_2024,
        "valid_to": None,
        "version": "2024",
        "display_order": display_order,
        "is_active": True,
    }
    entry.update(extra)
    return entry


DEFAULT_BONUS_MASTERS: list[dict[str, Any]] = [
    # =========================================================================
    # Medical insurance
    # =========================================================================
    _bonus(
        "medical_emergency_visit",
        "緊急訪問看護加算",
        "medical",
        10,
        [
            {"pattern": "field_not_empty", "field": "emergencyVisitReason", "description": "緊急訪問理由あり"},
        ],
        conditional_pattern="monthly_14day_threshold",
        points_config={"up_to_14": 2650, "after_14": 2000},
        requires_reason_field="emergency_visit_reason",
        bonus_category="visit_care",
    ),
    _bonus(
        "medical_long_visit",
        "長時間訪問看護加算",
        "medical",
        20,
        [{"pattern": "visit_duration_gte", "value": 90, "description": "90分以上の訪問"}],
        conditional_pattern="duration_based",
        points_config={"duration_90": 5200},
        monthly_cap=1,
        requires_reason_field="long_visit_reason",
        bonus_category="visit_care",
    ),
    _bonus(
        "medical_multiple_visit_3times",
        "難病等複数回訪問加算（1日3回以上）",
        "medical",
        30,
        [
            {"pattern": "daily_visit_count_gte", "value": 3, "description": "1日3回目以降の訪問"},
            {"pattern": "field_not_empty", "field": "multipleVisitReason"},
        ],
        conditional_pattern="building_occupancy",
        points_config={"occupancy_1_2": 8000, "occupancy_3_plus": 7200},
        exclusion_group="multiple_visit",
        requires_reason_field="multiple_visit_reason",
        bonus_category="visit_care",
    ),
    _bonus(
        "medical_multiple_visit_2times_1-2",
        "難病等複数回訪問加算（1日2回）",
        "medical",
        31,
        [
            {"pattern": "daily_visit_count_gte", "value": 2, "description": "1日2回目の訪問"},
            {"pattern": "field_not_empty", "field": "multipleVisitReason"},
        ],
        conditional_pattern="building_occupancy",
        points_config={"occupancy_1_2": 4500, "occupancy_3_plus": 4000},
        exclusion_group="multiple_visit",
        requires_reason_field="multiple_visit_reason",
        bonus_category="visit_care",
    ),
    _bonus(
        "medical_late_night",
        "深夜訪問看護加算",
        "medical",
        40,
        [{"pattern": "medical_late_night_time", "description": "22時から6時の訪問"}],
        fixed_points=4200,
        exclusion_group="time_of_day",
        bonus_category="time",
    ),
    _bonus(
        "medical_night_early_morning",
        "夜間・早朝訪問看護加算",
        "medical",
        41,
        [{"pattern": "time_based", "description": "訪問開始時刻あり"}],
        conditional_pattern="time_based",
        points_config={"early_morning": 2100, "night": 2100, "late_night": 0, "daytime": 0},
        exclusion_group="time_of_day",
        bonus_category="time",
    ),
    _bonus(
        "infant_visit",
        "乳幼児加算",
        "medical",
        50,
        [{"pattern": "age_lt", "value": 6, "description": "6歳未満"}],
        conditional_pattern="age_based",
        points_config={"age_0_6": 1300},
        bonus_category="patient",
    ),
    _bonus(
        "discharge_support_guidance_long",
        "退院支援指導加算（長時間）",
        "medical",
        60,
        [
            {"pattern": "is_discharge_date", "operator": "equals", "value": True},
            {"pattern": "visit_duration_gte", "value": 91, "description": "90分超の指導"},
        ],
        fixed_points=8400,
        exclusion_group="discharge_support",
        bonus_category="discharge",
    ),
    _bonus(
        "discharge_support_guidance_basic",
        "退院支援指導加算",
        "medical",
        61,
        [{"pattern": "is_discharge_date", "operator": "equals", "value": True}],
        fixed_points=6000,
        exclusion_group="discharge_support",
        bonus_category="discharge",
    ),
    _bonus(
        "discharge_joint_guidance",
        "退院時共同指導加算",
        "medical",
        62,
        [{"pattern": "has_collaboration_record", "operator": "equals", "value": True}],
        fixed_points=8000,
        monthly_cap=1,
        bonus_category="discharge",
    ),
    _bonus(
        "discharge_special_management_guidance",
        "特別管理指導加算",
        "medical",
        63,
        [
            {"pattern": "has_discharge_joint_guidance_in_same_record"},
            {"pattern": "patient_has_special_management"},
        ],
        fixed_points=2000,
        bonus_category="discharge",
    ),
    _bonus(
        "24h_response_system_enhanced",
        "24時間対応体制加算（看護業務の負担軽減の取組を行っている場合）",
        "medical",
        70,
        [{"pattern": "has_24h_support_system_enhanced"}],
        fixed_points=6800,
        monthly_cap=1,
        exclusion_group="24h_response",
        bonus_category="system",
    ),
    _bonus(
        "24h_response_system_basic",
        "24時間対応体制加算",
        "medical",
        71,
        [{"pattern": "has_24h_support_system"}],
        fixed_points=6520,
        monthly_cap=1,
        exclusion_group="24h_response",
        bonus_category="system",
    ),
    _bonus(
        "special_management_1",
        "特別管理加算（I）",
        "medical",
        80,
        [{"pattern": "patient_has_special_management"}, {"pattern": "monthly_visit_limit", "value": 1}],
        fixed_points=5000,
        bonus_category="special_management",
    ),
    _bonus(
        "special_management_2",
        "特別管理加算（II）",
        "medical",
        81,
        [{"pattern": "patient_has_special_management"}, {"pattern": "monthly_visit_limit", "value": 1}],
        fixed_points=2500,
        bonus_category="special_management",
    ),
    _bonus(
        "medical_specialist_management",
        "専門管理加算",
        "medical",
        90,
        [
            {"pattern": "requires_specialized_nurse"},
            {"pattern": "specialties_match", "value": PALLIATIVE_SPECIALTIES},
            {"pattern": "monthly_visit_limit", "value": 1},
        ],
        fixed_points=2500,
        bonus_category="specialist",
    ),
    _bonus(
        "terminal_care_1",
        "訪問看護ターミナルケア療養費1",
        "medical",
        100,
        [
            {"pattern": "is_terminal_care", "operator": "equals", "value": True},
            {"pattern": "terminal_care_requirement"},
        ],
        fixed_points=25000,
        exclusion_group="terminal_care",
        bonus_category="terminal",
    ),
    _bonus(
        "terminal_care_2",
        "訪問看護ターミナルケア療養費2",
        "medical",
        101,
        [
            {"pattern": "is_terminal_care", "operator": "equals", "value": True},
            {"pattern": "terminal_care_requirement"},
        ],
        fixed_points=10000,
        exclusion_group="terminal_care",
        bonus_category="terminal",
    ),
    # =========================================================================
    # Long-term care insurance
    # =========================================================================
    _bonus(
        "care_first_visit",
        "初回加算",
        "care",
        10,
        [{"pattern": "is_first_visit_of_plan", "operator": "equals", "value": True}],
        fixed_points=300,
        monthly_cap=1,
        bonus_category="visit_care",
    ),
    _bonus(
        "care_long_visit",
        "長時間訪問看護加算",
        "care",
        20,
        [
            {"pattern": "care_visit_duration_90plus"},
            {"pattern": "patient_has_special_management"},
        ],
        fixed_points=300,
        requires_reason_field="long_visit_reason",
        bonus_category="visit_care",
    ),
    _bonus(
        "care_emergency_system",
        "緊急時訪問看護加算（I）",
        "care",
        30,
        [{"pattern": "has_emergency_support_system_enhanced"}],
        fixed_points=600,
        monthly_cap=1,
        exclusion_group="care_emergency_system",
        bonus_category="system",
    ),
    _bonus(
        "care_emergency_system_2",
        "緊急時訪問看護加算（II）",
        "care",
        31,
        [{"pattern": "has_emergency_support_system"}],
        fixed_points=574,
        monthly_cap=1,
        exclusion_group="care_emergency_system",
        bonus_category="system",
    ),
    _bonus(
        "care_special_management_1",
        "特別管理加算（I）",
        "care",
        40,
        [
            {"pattern": "patient_has_special_management"},
            {"pattern": "date_in_range", "description": "認定有効期間内"},
            {"pattern": "monthly_visit_limit", "value": 1},
        ],
        fixed_points=500,
        bonus_category="special_management",
    ),
    _bonus(
        "care_special_management_2",
        "特別管理加算（II）",
        "care",
        41,
        [
            {"pattern": "patient_has_special_management"},
            {"pattern": "date_in_range", "description": "認定有効期間内"},
            {"pattern": "monthly_visit_limit", "value": 1},
        ],
        fixed_points=250,
        bonus_category="special_management",
    ),
    _bonus(
        "care_specialist_management",
        "専門管理加算",
        "care",
        50,
        [
            {"pattern": "requires_specialized_nurse"},
            {"pattern": "specialties_match", "value": PALLIATIVE_SPECIALTIES},
            {"pattern": "monthly_visit_limit", "value": 1},
        ],
        fixed_points=250,
        bonus_category="specialist",
    ),
    _bonus(
        "care_terminal_care",
        "ターミナルケア加算",
        "care",
        60,
        [
            {"pattern": "is_terminal_care", "operator": "equals", "value": True},
            {"pattern": "terminal_care_requirement"},
        ],
        fixed_points=2500,
        bonus_category="terminal",
    ),
]


DEFAULT_SPECIAL_MANAGEMENT_DEFINITIONS: list[dict[str, Any]] = [
    {"category": "tracheostomy", "display_name": "気管カニューレ", "insurance_type": "medical_5000"},
    {"category": "indwelling_catheter", "display_name": "留置カテーテル", "insurance_type": "medical_5000"},
    {"category": "home_oxygen", "display_name": "在宅酸素療法", "insurance_type": "medical_2500"},
    {"category": "pressure_ulcer", "display_name": "真皮を越える褥瘡", "insurance_type": "medical_2500"},
    {"category": "care_tracheostomy", "display_name": "気管カニューレ（介護）", "insurance_type": "care_500"},
    {"category": "care_home_oxygen", "display_name": "在宅酸素療法（介護）", "insurance_type": "care_250"},
]
