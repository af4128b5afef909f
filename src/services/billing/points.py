"""
Points resolution for bonus definitions.

Fixed bonuses carry their (signed) point value directly. Conditional bonuses
pick a value from points_config according to their pattern:

- monthly_14day_threshold: up_to_14 / after_14 by monthly emergency visits
- building_occupancy: occupancy_1_2 / occupancy_3_plus by same-building patients
- time_based: early_morning / night / late_night / daytime by local start hour
- duration_based: `conditions` list (or legacy duration_N keys) by visit minutes
- age_based: age_N_M keys by patient age
- visit_count: visit_1 / visit_2 / visit_3_plus by same-day visit number
"""

import logging
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional

from src.core.config import BillingSettings
from src.core.enums import ConditionalPattern, PointsType, TimeWindow
from src.services.billing.conditions import classify_hour, local_hour
from src.services.billing.context import AggregateContext
from src.services.billing.exceptions import ConfigurationError
from src.services.billing.records import VisitRecord

if TYPE_CHECKING:
    from src.services.billing.rule_set import BonusDefinition

logger = logging.getLogger(__name__)

_AGE_KEY = re.compile(r"^age_(\d+)(?:_(\d+))?$")
_DURATION_KEY = re.compile(r"^duration_(\d+)$")


@dataclass(frozen=True)
class PointsResolution:
    """Points chosen for a bonus and which branch produced them."""

    points: int
    matched_condition: str
    metadata: dict[str, Any] = field(default_factory=dict)


_PATTERN_KEYS: dict[ConditionalPattern, tuple[str, ...]] = {
    ConditionalPattern.MONTHLY_14DAY_THRESHOLD: ("up_to_14", "after_14"),
    ConditionalPattern.BUILDING_OCCUPANCY: ("occupancy_1_2", "occupancy_3_plus"),
    ConditionalPattern.TIME_BASED: tuple(window.value for window in TimeWindow),
    ConditionalPattern.VISIT_COUNT: ("visit_1", "visit_2", "visit_3_plus"),
}

_DURATION_OPERATORS = ("greater_than", "greater_than_or_equal")


@dataclass(frozen=True)
class DurationTier:
    minutes: int
    operator: str
    points: int
    description: Optional[str] = None

    def matches(self, minutes: int) -> bool:
        if self.operator == "greater_than":
            return minutes > self.minutes
        return minutes >= self.minutes


def _number(value: Any, label: str) -> int:
    # JSON booleans and numeric strings are data-entry mistakes, not points
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigurationError(f"points_config {label} is not a number: {value!r}")
    return int(value)


def _config_int(config: Mapping[str, Any], key: str) -> int:
    value = config.get(key)
    if value is None:
        return 0
    return _number(value, f"'{key}'")


def _duration_tiers(config: Mapping[str, Any]) -> list[DurationTier]:
    """Tiers of a `conditions` list, longest threshold first."""
    raw_tiers = config.get("conditions")
    if not isinstance(raw_tiers, list):
        raise ConfigurationError(f"points_config 'conditions' must be a list: {raw_tiers!r}")

    tiers: list[DurationTier] = []
    for index, raw in enumerate(raw_tiers):
        label = f"conditions[{index}]"
        if not isinstance(raw, Mapping):
            raise ConfigurationError(f"points_config {label} must be an object: {raw!r}")
        operator = raw.get("operator", "greater_than_or_equal")
        if operator not in _DURATION_OPERATORS:
            raise ConfigurationError(f"Unknown duration operator: {operator}")
        description = raw.get("description")
        tiers.append(
            DurationTier(
                minutes=_number(raw.get("durationMinutes", 0), f"{label}.durationMinutes"),
                operator=operator,
                points=_number(raw.get("points", 0), f"{label}.points"),
                description=str(description) if description else None,
            )
        )
    return sorted(tiers, key=lambda tier: tier.minutes, reverse=True)


def validate_points_config(pattern: ConditionalPattern, config: Any) -> None:
    """
    Check the shape of a conditional bonus's points_config.

    Raises:
        ConfigurationError: config is not an object, a point value is not a
            number, or a duration tier is malformed
    """
    if not isinstance(config, Mapping):
        raise ConfigurationError(f"points_config must be an object: {config!r}")

    if pattern == ConditionalPattern.DURATION_BASED:
        if "conditions" in config:
            _duration_tiers(config)
            _config_int(config, "defaultPoints")
        keys = [key for key in config if _DURATION_KEY.match(key)]
    elif pattern == ConditionalPattern.AGE_BASED:
        keys = [key for key in config if _AGE_KEY.match(key)]
    else:
        keys = [key for key in _PATTERN_KEYS.get(pattern, ()) if key in config]

    for key in keys:
        _config_int(config, key)


class PointsCalculator:
    """Resolves the point value of a qualifying bonus."""

    def __init__(self, settings: BillingSettings):
        self.settings = settings
        self._patterns: dict[
            ConditionalPattern,
            Callable[[Mapping[str, Any], VisitRecord, AggregateContext], PointsResolution],
        ] = {
            ConditionalPattern.MONTHLY_14DAY_THRESHOLD: self._monthly_14day_threshold,
            ConditionalPattern.BUILDING_OCCUPANCY: self._building_occupancy,
            ConditionalPattern.TIME_BASED: self._time_based,
            ConditionalPattern.DURATION_BASED: self._duration_based,
            ConditionalPattern.AGE_BASED: self._age_based,
            ConditionalPattern.VISIT_COUNT: self._visit_count,
        }

    def resolve(
        self,
        definition: "BonusDefinition",
        record: VisitRecord,
        context: AggregateContext,
    ) -> PointsResolution:
        """
        Points for `definition` on this visit.

        Raises:
            ConfigurationError: conditional bonus without a known pattern or config
        """
        if definition.points_type == PointsType.FIXED:
            return PointsResolution(points=definition.fixed_points or 0, matched_condition="fixed_points")

        if definition.conditional_pattern is None or definition.points_config is None:
            raise ConfigurationError(
                "conditional bonus requires conditional_pattern and points_config",
                bonus_code=definition.code,
            )
        handler = self._patterns.get(definition.conditional_pattern)
        if handler is None:
            raise ConfigurationError(
                f"Unknown conditional pattern: {definition.conditional_pattern}",
                bonus_code=definition.code,
            )
        return handler(definition.points_config, record, context)

    # -------------------------------------------------------------------------
    # Patterns
    # -------------------------------------------------------------------------

    def _monthly_14day_threshold(
        self, config: Mapping[str, Any], record: VisitRecord, context: AggregateContext
    ) -> PointsResolution:
        count = context.monthly_emergency_visit_count
        up_to = count <= self.settings.EMERGENCY_VISIT_DAY_THRESHOLD
        key = "up_to_14" if up_to else "after_14"
        return PointsResolution(
            points=_config_int(config, key),
            matched_condition=key,
            metadata={"emergency_visit_count": count},
        )

    def _building_occupancy(
        self, config: Mapping[str, Any], record: VisitRecord, context: AggregateContext
    ) -> PointsResolution:
        occupancy = context.building_occupancy
        if occupancy is None:
            # No building recorded: single-residence patient
            return PointsResolution(
                points=_config_int(config, "occupancy_1_2"),
                matched_condition="occupancy_1_2",
                metadata={"occupancy": 1, "building_id": None},
            )
        key = "occupancy_1_2" if occupancy <= 2 else "occupancy_3_plus"
        return PointsResolution(
            points=_config_int(config, key),
            matched_condition=key,
            metadata={"occupancy": occupancy},
        )

    def _time_based(
        self, config: Mapping[str, Any], record: VisitRecord, context: AggregateContext
    ) -> PointsResolution:
        if record.actual_start_time is None:
            return PointsResolution(points=0, matched_condition="start_time_missing")
        hour = local_hour(record.actual_start_time, self.settings.LOCAL_UTC_OFFSET_HOURS)
        window = classify_hour(hour)
        return PointsResolution(
            points=_config_int(config, window.value),
            matched_condition=window.value,
            metadata={"hour": hour},
        )

    def _duration_based(
        self, config: Mapping[str, Any], record: VisitRecord, context: AggregateContext
    ) -> PointsResolution:
        minutes = record.duration_minutes
        if minutes is None:
            return PointsResolution(points=0, matched_condition="duration_missing")

        if "conditions" in config:
            for tier in _duration_tiers(config):
                if tier.matches(minutes):
                    return PointsResolution(
                        points=tier.points,
                        matched_condition=tier.description or f"duration_{tier.minutes}",
                        metadata={"duration_minutes": minutes, "threshold": tier.minutes},
                    )
            return PointsResolution(
                points=_config_int(config, "defaultPoints"),
                matched_condition="below_threshold",
                metadata={"duration_minutes": minutes},
            )

        thresholds: list[tuple[int, str]] = []
        for key in config:
            match = _DURATION_KEY.match(key)
            if match:
                thresholds.append((int(match.group(1)), key))
        thresholds.sort(reverse=True)
        for threshold, key in thresholds:
            if minutes >= threshold:
                return PointsResolution(
                    points=_config_int(config, key),
                    matched_condition=key,
                    metadata={"duration_minutes": minutes},
                )
        return PointsResolution(
            points=0, matched_condition="below_threshold", metadata={"duration_minutes": minutes}
        )

    def _age_based(
        self, config: Mapping[str, Any], record: VisitRecord, context: AggregateContext
    ) -> PointsResolution:
        age = context.patient_age
        if age is None:
            return PointsResolution(points=0, matched_condition="age_unknown")

        ranges: list[tuple[int, Optional[int], str]] = []
        for key in config:
            match = _AGE_KEY.match(key)
            if match:
                upper = int(match.group(2)) if match.group(2) else None
                ranges.append((int(match.group(1)), upper, key))

        for lower, upper, key in sorted(ranges):
            if age >= lower and (upper is None or age < upper):
                return PointsResolution(
                    points=_config_int(config, key),
                    matched_condition=key,
                    metadata={"patient_age": age},
                )
        return PointsResolution(points=0, matched_condition="no_match", metadata={"patient_age": age})

    def _visit_count(
        self, config: Mapping[str, Any], record: VisitRecord, context: AggregateContext
    ) -> PointsResolution:
        count = context.visits_on_same_day_for_patient
        if count <= 1:
            key = "visit_1"
        elif count == 2:
            key = "visit_2"
        else:
            key = "visit_3_plus"
        return PointsResolution(
            points=_config_int(config, key),
            matched_condition=key,
            metadata={"visit_count": count},
        )

