"""
Core Enumerations for the home-nursing billing domain.
Source: 訪問看護療養費 / 介護報酬 点数表 (medical and long-term-care fee schedules)
"""

from enum import Enum


# =============================================================================
# Insurance & Record Enums
# =============================================================================


class InsuranceType(str, Enum):
    """Insurance scheme a patient is billed under."""

    MEDICAL = "medical"  # 医療保険
    CARE = "care"  # 介護保険


class RecordStatus(str, Enum):
    """Lifecycle of a nursing visit record."""

    DRAFT = "draft"
    COMPLETED = "completed"
    REVIEWED = "reviewed"

    @classmethod
    def billable(cls) -> tuple["RecordStatus", ...]:
        """Statuses that count towards visit history aggregates."""
        return (cls.COMPLETED, cls.REVIEWED)


# =============================================================================
# Bonus Master Enums
# =============================================================================


class PointsType(str, Enum):
    """How a bonus resolves its point value."""

    FIXED = "fixed"
    CONDITIONAL = "conditional"


class ConditionalPattern(str, Enum):
    """Point resolution patterns for conditional bonuses."""

    MONTHLY_14DAY_THRESHOLD = "monthly_14day_threshold"
    BUILDING_OCCUPANCY = "building_occupancy"
    TIME_BASED = "time_based"
    DURATION_BASED = "duration_based"
    AGE_BASED = "age_based"
    VISIT_COUNT = "visit_count"


class TimeWindow(str, Enum):
    """Local (JST) start-time bands used by time-of-day bonuses."""

    EARLY_MORNING = "early_morning"  # 06:00-08:00
    NIGHT = "night"  # 18:00-22:00
    LATE_NIGHT = "late_night"  # 22:00-06:00
    DAYTIME = "daytime"


class SpecialManagementTier(str, Enum):
    """Special management addition tiers (特別管理加算)."""

    MEDICAL_5000 = "medical_5000"  # 医療 特別管理加算(I)
    MEDICAL_2500 = "medical_2500"  # 医療 特別管理加算(II)
    CARE_500 = "care_500"  # 介護 特別管理加算(I)
    CARE_250 = "care_250"  # 介護 特別管理加算(II)

    @property
    def is_heavy(self) -> bool:
        return self in (SpecialManagementTier.MEDICAL_5000, SpecialManagementTier.CARE_500)


class DeathPlace(str, Enum):
    """Place-of-death codes recorded for terminal care billing."""

    HOME = "01"
    FACILITY = "16"
