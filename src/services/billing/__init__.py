"""
Visit Billing Bonus Engine.

Determines which insurance bonuses (加算) apply to a home-nursing visit and
the resulting calculated points.
"""

from src.services.billing.conditions import (
    ConditionEvaluator,
    ConditionResult,
    parse_condition,
    parse_conditions,
)
from src.services.billing.context import (
    AggregateContext,
    ContextAggregator,
    VisitHistorySource,
)
from src.services.billing.engine import BonusEvaluationEngine
from src.services.billing.exceptions import (
    BillingEngineError,
    ConfigurationError,
    DataUnavailableError,
)
from src.services.billing.records import (
    AppliedBonus,
    EvaluationResult,
    FacilityProfile,
    NurseProfile,
    PatientProfile,
    VisitRecord,
    VisitSummary,
)
from src.services.billing.rule_set import BonusDefinition, BonusRuleSet

__all__ = [
    # Condition Evaluator
    "ConditionEvaluator",
    "ConditionResult",
    "parse_condition",
    "parse_conditions",
    # Context Aggregator
    "AggregateContext",
    "ContextAggregator",
    "VisitHistorySource",
    # Rule Set
    "BonusDefinition",
    "BonusRuleSet",
    # Engine
    "BonusEvaluationEngine",
    # Records
    "AppliedBonus",
    "EvaluationResult",
    "FacilityProfile",
    "NurseProfile",
    "PatientProfile",
    "VisitRecord",
    "VisitSummary",
    # Exceptions
    "BillingEngineError",
    "ConfigurationError",
    "DataUnavailableError",
]
