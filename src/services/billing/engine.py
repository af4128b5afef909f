"""
Bonus Evaluation Engine.

For one visit record:
1. build the aggregate context (fails closed on DataUnavailableError)
2. select the rule set entries for the patient's insurance type
3. evaluate independent bonuses, then bonuses that depend on other bonuses
   granted to the same record
4. apply exclusion groups, combination rules and monthly caps
5. resolve points and collect soft alerts

The engine is stateless; every save re-runs the full evaluation.
"""

import logging
from typing import Optional

from src.core.config import BillingSettings, get_billing_settings
from src.services.billing.conditions import ConditionEvaluator
from src.services.billing.context import AggregateContext, ContextAggregator
from src.services.billing.exceptions import ConfigurationError, DataUnavailableError
from src.services.billing.points import PointsCalculator
from src.services.billing.records import AppliedBonus, EvaluationResult, VisitRecord
from src.services.billing.rule_set import BonusDefinition, BonusRuleSet
from src.services.billing.service_code_selector import ServiceCodeSelector

logger = logging.getLogger(__name__)

DEGRADED_ALERT = "Billing computation unavailable: visit history could not be loaded"


class BonusEvaluationEngine:
    """
    Evaluates which bonuses apply to a visit and the resulting points.

    The rule set is passed per call so callers can share one immutable
    snapshot across evaluations.
    """

    def __init__(
        self,
        aggregator: ContextAggregator,
        evaluator: Optional[ConditionEvaluator] = None,
        settings: Optional[BillingSettings] = None,
    ):
        self.settings = settings or get_billing_settings()
        self.aggregator = aggregator
        self.evaluator = evaluator or ConditionEvaluator(self.settings)
        self.points = PointsCalculator(self.settings)
        self.service_codes = ServiceCodeSelector(self.settings)

    async def evaluate(self, record: VisitRecord, rule_set: BonusRuleSet) -> EvaluationResult:
        """Full bonus evaluation for `record` against `rule_set`."""
        result = EvaluationResult(base_points=record.base_points)

        try:
            context = await self.aggregator.build_context(record)
        except DataUnavailableError as e:
            logger.warning(f"Billing degraded for record {record.id}: {e}")
            result.billing_degraded = True
            result.alerts.append(DEGRADED_ALERT)
            return result

        rules = rule_set.rules_for(
            context.insurance_type,
            context.patient.special_management_types,
            visit_date=record.visit_date,
            facility_id=record.facility_id,
        )
        independent = [rule for rule in rules if not rule.depends_on_applied_bonuses]
        dependent = [rule for rule in rules if rule.depends_on_applied_bonuses]

        taken_groups: set[str] = set()
        for definition in independent + dependent:
            applied = self._evaluate_definition(definition, record, context, result, taken_groups)
            if applied is not None:
                result.applied_bonuses.append(applied)
                if definition.exclusion_group:
                    taken_groups.add(definition.exclusion_group)

        self._collect_alerts(record, context, rules, result)

        logger.info(
            f"Evaluated record {record.id}: {len(result.applied_bonuses)} bonuses, "
            f"{result.calculated_points} points"
        )
        return result

    # -------------------------------------------------------------------------
    # Per-bonus evaluation
    # -------------------------------------------------------------------------

    def _evaluate_definition(
        self,
        definition: BonusDefinition,
        record: VisitRecord,
        context: AggregateContext,
        result: EvaluationResult,
        taken_groups: set[str],
    ) -> Optional[AppliedBonus]:
        code = definition.code
        if definition.configuration_error:
            self._configuration_error(result, code, definition.configuration_error)
            return None

        if definition.exclusion_group and definition.exclusion_group in taken_groups:
            logger.debug(f"Skipping {code}: exclusion group {definition.exclusion_group} taken")
            return None

        applied_codes = result.applied_bonus_codes
        conflict = self._combination_conflict(definition, applied_codes)
        if conflict:
            logger.debug(f"Skipping {code}: {conflict}")
            return None

        try:
            passed, reasons = self.evaluator.evaluate_all(
                definition.conditions, record, context.with_applied(applied_codes)
            )
            if not passed:
                return None

            if definition.monthly_cap is not None:
                used = context.visits_this_month_for_bonus(code)
                if used >= definition.monthly_cap:
                    logger.debug(f"Skipping {code}: monthly cap {definition.monthly_cap} reached")
                    return None

            resolution = self.points.resolve(definition, record, context)
        except ConfigurationError as e:
            self._configuration_error(result, code, str(e))
            return None

        if resolution.points == 0:
            return None

        reason = None
        if definition.requires_reason_field:
            reason = getattr(record, definition.requires_reason_field, None) or None

        return AppliedBonus(
            bonus_code=code,
            bonus_name=definition.name,
            points=resolution.points,
            bonus_master_id=definition.id,
            version=definition.version,
            matched_condition=resolution.matched_condition,
            reason=reason,
            duration_minutes=record.duration_minutes,
            visit_number=context.visits_on_same_day_for_patient,
            visit_count=resolution.metadata.get("visit_count"),
            conditions_passed=tuple(reasons),
            service_code=self.service_codes.select(code, record, context),
        )

    @staticmethod
    def _combination_conflict(definition: BonusDefinition, applied_codes: list[str]) -> Optional[str]:
        if definition.can_combine_with:
            outside = [code for code in applied_codes if code not in definition.can_combine_with]
            if outside:
                return f"can only be combined with {', '.join(definition.can_combine_with)}"
        if definition.cannot_combine_with:
            clashing = [code for code in applied_codes if code in definition.cannot_combine_with]
            if clashing:
                return f"cannot be combined with {', '.join(clashing)}"
        return None

    @staticmethod
    def _configuration_error(result: EvaluationResult, code: str, message: str) -> None:
        entry = message if message.startswith(f"{code}:") else f"{code}: {message}"
        logger.error(f"Bonus configuration error, skipping {entry}")
        result.configuration_errors.append(entry)

    # -------------------------------------------------------------------------
    # Soft alerts
    # -------------------------------------------------------------------------

    def _collect_alerts(
        self,
        record: VisitRecord,
        context: AggregateContext,
        rules: list[BonusDefinition],
        result: EvaluationResult,
    ) -> None:
        alerts: list[str] = []

        multiple_visit = (
            record.is_second_visit
            or context.visits_on_same_day_for_patient >= self.settings.MULTIPLE_VISIT_ALERT_COUNT
        )
        if multiple_visit and _is_blank(record.multiple_visit_reason):
            alerts.append("multiple_visit_reason is required for repeat visits on the same day")

        minutes = record.duration_minutes
        if minutes is not None and minutes >= self.settings.LONG_VISIT_MINUTES and _is_blank(
            record.long_visit_reason
        ):
            alerts.append(
                f"long_visit_reason is required for visits of {self.settings.LONG_VISIT_MINUTES} minutes or more"
            )

        by_code = {rule.code: rule for rule in rules}
        for bonus in result.applied_bonuses:
            field_name = by_code[bonus.bonus_code].requires_reason_field
            if field_name and _is_blank(getattr(record, field_name, None)):
                alerts.append(f"{field_name} is required for {bonus.bonus_code}")

        for alert in alerts:
            if alert not in result.alerts:
                result.alerts.append(alert)


def _is_blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()
