"""Targeting-rule evaluation for feature flags, advertisements and sponsors."""

from pydantic import ValidationError

from .catalog import Catalog, load_catalog
from .entities import (
    AdPlacement,
    Advertisement,
    CallToAction,
    FeatureFlag,
    Sponsor,
    TargetableEntity,
    TimePeriod,
)
from .exceptions import (
    CatalogError,
    EvaluationAnomaly,
    MalformedNetworkError,
    TargetingError,
    UnknownPolicyError,
)
from .flags import flag_states, is_flag_enabled
from .resolver import (
    EligibilityDecision,
    EligibilityReason,
    EligibilityResolver,
    Resolution,
    evaluate,
    resolve,
)
from .rules import RuleEvaluator, RuleType, parse_rule, parse_rules
from .selection import (
    FirstEligible,
    ImpressionWeighted,
    RoundRobin,
    SelectionPolicy,
    StickyPerViewer,
    UniformRandom,
    policy_from_name,
)
from .viewer import ViewerContext

__all__ = [
    "ValidationError",
    "Catalog",
    "load_catalog",
    "AdPlacement",
    "Advertisement",
    "CallToAction",
    "FeatureFlag",
    "Sponsor",
    "TargetableEntity",
    "TimePeriod",
    "CatalogError",
    "EvaluationAnomaly",
    "MalformedNetworkError",
    "TargetingError",
    "UnknownPolicyError",
    "flag_states",
    "is_flag_enabled",
    "EligibilityDecision",
    "EligibilityReason",
    "EligibilityResolver",
    "Resolution",
    "evaluate",
    "resolve",
    "RuleEvaluator",
    "RuleType",
    "parse_rule",
    "parse_rules",
    "FirstEligible",
    "ImpressionWeighted",
    "RoundRobin",
    "SelectionPolicy",
    "StickyPerViewer",
    "UniformRandom",
    "policy_from_name",
    "ViewerContext",
]
