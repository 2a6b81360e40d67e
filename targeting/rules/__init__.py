"""Targeting rule model, matching primitives and evaluator."""

from .bucketing import BUCKET_COUNT, bucket, in_rollout
from .evaluator import (
    AnomalyObserver,
    CollectingAnomalyObserver,
    LoggingAnomalyObserver,
    RuleEvaluator,
    RuleSetVerdict,
)
from .models import (
    AlwaysOffRule,
    AlwaysOnRule,
    AnyRule,
    BaseRule,
    CidrRule,
    CountryRule,
    GradeRule,
    InvalidRule,
    PercentageRule,
    RoleRule,
    RuleType,
    SchoolRule,
    StudentRule,
    TargetingRule,
    TeacherRule,
    UserTypeRule,
    parse_rule,
    parse_rules,
)
from .network import matches_any, network_contains

__all__ = [
    "BUCKET_COUNT",
    "bucket",
    "in_rollout",
    "AnomalyObserver",
    "CollectingAnomalyObserver",
    "LoggingAnomalyObserver",
    "RuleEvaluator",
    "RuleSetVerdict",
    "AlwaysOffRule",
    "AlwaysOnRule",
    "AnyRule",
    "BaseRule",
    "CidrRule",
    "CountryRule",
    "GradeRule",
    "InvalidRule",
    "PercentageRule",
    "RoleRule",
    "RuleType",
    "SchoolRule",
    "StudentRule",
    "TargetingRule",
    "TeacherRule",
    "UserTypeRule",
    "parse_rule",
    "parse_rules",
    "matches_any",
    "network_contains",
]
