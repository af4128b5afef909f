"""
Bonus Rule Set.

An immutable snapshot of the bonus catalog. Built once from bonus_master
rows (plus special management definitions) and shared read-only by every
evaluation that uses it; a master-data edit means building a new snapshot.
"""

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from datetime import date
from types import MappingProxyType
from typing import Any, Optional
from uuid import UUID

from src.core.config import BillingSettings, get_billing_settings
from src.core.enums import ConditionalPattern, InsuranceType, PointsType, SpecialManagementTier
from src.services.billing.conditions import BonusAppliedInRecord, Condition, parse_conditions
from src.services.billing.exceptions import ConfigurationError
from src.services.billing.points import validate_points_config

logger = logging.getLogger(__name__)

DEFAULT_DISPLAY_ORDER = 999

SPECIAL_MANAGEMENT_GROUP = "special_management"

# Bonus codes whose eligibility depends on the patient's special management tier.
SPECIAL_MANAGEMENT_REQUIREMENTS = {
    "special_management_1": "heavy",
    "special_management_2": "light",
    "care_special_management_1": "heavy",
    "care_special_management_2": "light",
}


def _accessor(row: Any) -> Callable[..., Any]:
    """`get(key, default)` over a mapping or an ORM row."""
    if isinstance(row, Mapping):
        return row.get
    return lambda key, default=None: getattr(row, key, default)


@dataclass(frozen=True)
class BonusDefinition:
    """One version of one bonus, ready for evaluation."""

    code: str
    name: str
    insurance_type: InsuranceType
    valid_from: date
    points_type: PointsType = PointsType.FIXED
    fixed_points: Optional[int] = None
    conditional_pattern: Optional[ConditionalPattern] = None
    points_config: Optional[Mapping[str, Any]] = None
    conditions: tuple[Condition, ...] = ()
    valid_to: Optional[date] = None
    monthly_cap: Optional[int] = None
    exclusion_group: Optional[str] = None
    can_combine_with: tuple[str, ...] = ()
    cannot_combine_with: tuple[str, ...] = ()
    requires_reason_field: Optional[str] = None
    special_management_requirement: Optional[str] = None  # heavy | light | any
    display_order: int = DEFAULT_DISPLAY_ORDER
    version: str = "1"
    facility_id: Optional[UUID] = None
    id: Optional[UUID] = None
    is_active: bool = True
    configuration_error: Optional[str] = None

    @property
    def depends_on_applied_bonuses(self) -> bool:
        """Evaluated in the second pass, after independent bonuses."""
        return any(isinstance(condition, BonusAppliedInRecord) for condition in self.conditions)

    def is_valid_on(self, on: date) -> bool:
        if on < self.valid_from:
            return False
        return self.valid_to is None or on <= self.valid_to

    @classmethod
    def from_master(cls, master: Any) -> "BonusDefinition":
        """
        Build a definition from a bonus_master row (or any object/mapping with
        the same attribute names).

        Malformed conditions or points settings do not raise here. They are
        kept on `configuration_error` so the engine can skip and report the
        bonus while evaluating the rest of the catalog.
        """
        get = _accessor(master)

        code = get("bonus_code")
        valid_from = get("valid_from")
        valid_to = get("valid_to")
        error: Optional[str] = None

        conditions: tuple[Condition, ...] = ()
        monthly_cap = get("monthly_cap")
        try:
            parsed = parse_conditions(
                get("predefined_conditions"),
                bonus_code=code,
                valid_from=valid_from,
                valid_to=valid_to,
            )
            conditions = parsed.conditions
            if monthly_cap is None:
                monthly_cap = parsed.monthly_cap
        except ConfigurationError as e:
            error = str(e)

        points_type = PointsType(get("points_type") or PointsType.FIXED)
        points_config = get("points_config")
        if points_config is not None and not isinstance(points_config, Mapping):
            error = error or f"points_config must be an object: {points_config!r}"
            points_config = None

        fixed_points = get("fixed_points")
        if fixed_points is not None and (
            isinstance(fixed_points, bool) or not isinstance(fixed_points, int)
        ):
            error = error or f"fixed_points is not an integer: {fixed_points!r}"
            fixed_points = None

        conditional_pattern = None
        raw_pattern = get("conditional_pattern") or (points_config or {}).get("pattern")
        if points_type == PointsType.CONDITIONAL:
            try:
                conditional_pattern = ConditionalPattern(raw_pattern)
            except ValueError:
                error = error or f"Unknown conditional pattern: {raw_pattern}"
            if conditional_pattern is not None and points_config is not None:
                try:
                    validate_points_config(conditional_pattern, points_config)
                except ConfigurationError as e:
                    error = error or str(e)

        exclusion_group = get("exclusion_group")
        requirement = SPECIAL_MANAGEMENT_REQUIREMENTS.get(code)
        if requirement and exclusion_group is None:
            exclusion_group = SPECIAL_MANAGEMENT_GROUP

        display_order = get("display_order")
        return cls(
            code=code,
            name=get("bonus_name"),
            insurance_type=InsuranceType(get("insurance_type")),
            valid_from=valid_from,
            valid_to=valid_to,
            points_type=points_type,
            fixed_points=fixed_points,
            conditional_pattern=conditional_pattern,
            points_config=MappingProxyType(dict(points_config)) if points_config else None,
            conditions=conditions,
            monthly_cap=monthly_cap,
            exclusion_group=exclusion_group,
            can_combine_with=tuple(get("can_combine_with") or ()),
            cannot_combine_with=tuple(get("cannot_combine_with") or ()),
            requires_reason_field=get("requires_reason_field"),
            special_management_requirement=requirement,
            display_order=display_order if display_order is not None else DEFAULT_DISPLAY_ORDER,
            version=str(get("version") or "1"),
            facility_id=get("facility_id"),
            id=get("id"),
            is_active=bool(get("is_active", True)),
            configuration_error=error,
        )


class BonusRuleSet:
    """
    Read-only catalog of bonus definitions.

    rules_for() filters by insurance type, validity date, facility and
    special management prerequisites, picks one version per bonus code and
    returns the result in evaluation order (display_order, then code).
    """

    def __init__(
        self,
        definitions: Iterable[BonusDefinition],
        special_management_tiers: Optional[Mapping[str, SpecialManagementTier]] = None,
        settings: Optional[BillingSettings] = None,
    ):
        self._definitions = tuple(sorted(definitions, key=self._order_key))
        self._tiers = MappingProxyType(dict(special_management_tiers or {}))
        self.settings = settings or get_billing_settings()

    @classmethod
    def from_masters(
        cls,
        masters: Iterable[Any],
        special_management_definitions: Iterable[Any] = (),
        settings: Optional[BillingSettings] = None,
    ) -> "BonusRuleSet":
        """Snapshot bonus_master and special_management_definitions rows."""
        definitions = [BonusDefinition.from_master(master) for master in masters]
        broken = [d for d in definitions if d.configuration_error]
        for definition in broken:
            logger.warning(
                f"Bonus {definition.code} v{definition.version} misconfigured: "
                f"{definition.configuration_error}"
            )

        tiers: dict[str, SpecialManagementTier] = {}
        for row in special_management_definitions:
            get = _accessor(row)
            if get("is_active", True):
                tiers[get("category")] = SpecialManagementTier(get("insurance_type"))
        return cls(definitions, special_management_tiers=tiers, settings=settings)

    @staticmethod
    def _order_key(definition: BonusDefinition) -> tuple[int, str]:
        return (definition.display_order, definition.code)

    @property
    def definitions(self) -> tuple[BonusDefinition, ...]:
        return self._definitions

    def __len__(self) -> int:
        return len(self._definitions)

    def get(self, code: str) -> list[BonusDefinition]:
        """All versions of a bonus code."""
        return [d for d in self._definitions if d.code == code]

    # -------------------------------------------------------------------------
    # Selection
    # -------------------------------------------------------------------------

    def rules_for(
        self,
        insurance_type: InsuranceType,
        special_management_types: Iterable[str] = (),
        visit_date: Optional[date] = None,
        facility_id: Optional[UUID] = None,
    ) -> list[BonusDefinition]:
        """Applicable definitions in evaluation order."""
        special_management_types = tuple(special_management_types)
        tier = self.special_management_tier(insurance_type, special_management_types)
        return self._select(
            insurance_type,
            visit_date,
            facility_id,
            lambda definition: self._meets_special_management(
                definition, special_management_types, tier
            ),
        )

    def catalog(
        self,
        insurance_type: InsuranceType,
        visit_date: Optional[date] = None,
        facility_id: Optional[UUID] = None,
    ) -> list[BonusDefinition]:
        """Effective definitions for an insurance type, ignoring patient prerequisites."""
        return self._select(insurance_type, visit_date, facility_id, lambda definition: True)

    def _select(
        self,
        insurance_type: InsuranceType,
        visit_date: Optional[date],
        facility_id: Optional[UUID],
        eligible: Callable[[BonusDefinition], bool],
    ) -> list[BonusDefinition]:
        selected: dict[str, BonusDefinition] = {}
        for definition in self._definitions:
            if not definition.is_active or definition.insurance_type != insurance_type:
                continue
            if definition.facility_id is not None and definition.facility_id != facility_id:
                continue
            if visit_date is not None and not definition.is_valid_on(visit_date):
                continue
            if not eligible(definition):
                continue

            current = selected.get(definition.code)
            if current is None or self._prefer(definition, current):
                selected[definition.code] = definition

        return sorted(selected.values(), key=self._order_key)

    @staticmethod
    def _prefer(candidate: BonusDefinition, current: BonusDefinition) -> bool:
        """Facility overrides beat global rows; then the newest version wins."""
        candidate_rank = (candidate.facility_id is not None, candidate.valid_from)
        current_rank = (current.facility_id is not None, current.valid_from)
        return candidate_rank > current_rank

    @staticmethod
    def _meets_special_management(
        definition: BonusDefinition,
        special_management_types: tuple[str, ...],
        tier: Optional[SpecialManagementTier],
    ) -> bool:
        requirement = definition.special_management_requirement
        if requirement is None:
            return True
        if requirement == "any":
            return bool(special_management_types)
        if tier is None:
            return False
        return tier.is_heavy if requirement == "heavy" else not tier.is_heavy

    def special_management_tier(
        self,
        insurance_type: InsuranceType,
        special_management_types: Iterable[str],
    ) -> Optional[SpecialManagementTier]:
        """
        Tier the patient's special management categories qualify for.

        Any heavy category wins. Categories with no definition fall back to
        the configured light tier for the insurance type.
        """
        categories = tuple(special_management_types)
        if not categories:
            return None

        prefix = f"{insurance_type.value}_"
        tiers = [
            self._tiers[category]
            for category in categories
            if category in self._tiers and self._tiers[category].value.startswith(prefix)
        ]
        if any(tier.is_heavy for tier in tiers):
            return next(tier for tier in tiers if tier.is_heavy)
        if tiers:
            return tiers[0]
        if insurance_type == InsuranceType.MEDICAL:
            return self.settings.SPECIAL_MANAGEMENT_FALLBACK_MEDICAL
        return self.settings.SPECIAL_MANAGEMENT_FALLBACK_CARE
