"""Eligibility resolver combining activity, time window and targeting rules."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Generic, Iterable, TypeVar

from .entities import TargetableEntity
from .logging import get_logger
from .rules.evaluator import RuleEvaluator
from .selection import SelectionPolicy
from .viewer import ViewerContext

E = TypeVar("E", bound=TargetableEntity)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EligibilityReason(str, Enum):
    INACTIVE = "inactive"
    OUTSIDE_WINDOW = "outside_window"
    NO_RULES = "no_rules"
    RULES_MATCHED = "rules_matched"
    RULES_NOT_MATCHED = "rules_not_matched"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class EligibilityDecision:
    """Verdict for one entity and one viewer, with the reason behind it."""

    entity_id: str
    eligible: bool
    reason: EligibilityReason
    rule_index: int | None = None


@dataclass
class Resolution(Generic[E]):
    """Ordered eligible entities plus the optional single selection."""

    eligible: list[E] = field(default_factory=list)
    selected: E | None = None


class EligibilityResolver:
    """Decide which targetable entities a viewer is eligible for.

    The resolver holds no mutable state: every call is a function of the
    viewer, the evaluation time and the entities passed in.
    """

    def __init__(
        self,
        *,
        evaluator: RuleEvaluator | None = None,
        now_provider: Callable[[], datetime] = utcnow,
    ) -> None:
        self._evaluator = evaluator or RuleEvaluator()
        self._now = now_provider
        self._logger = get_logger(__name__)

    @property
    def evaluator(self) -> RuleEvaluator:
        return self._evaluator

    def decide(
        self,
        entity: TargetableEntity,
        viewer: ViewerContext,
        now: datetime | None = None,
    ) -> EligibilityDecision:
        """Return the eligibility decision for *entity* and *viewer* at *now*."""

        if not entity.active:
            return EligibilityDecision(entity.id, False, EligibilityReason.INACTIVE)
        moment = now or self._now()
        if entity.time_period is not None and not entity.time_period.contains(moment):
            return EligibilityDecision(entity.id, False, EligibilityReason.OUTSIDE_WINDOW)
        if not entity.rules:
            return EligibilityDecision(entity.id, True, EligibilityReason.NO_RULES)

        verdict = self._evaluator.evaluate_rules(entity.rules, viewer, entity.id)
        if verdict.matched:
            return EligibilityDecision(
                entity.id, True, EligibilityReason.RULES_MATCHED, verdict.rule_index
            )
        return EligibilityDecision(entity.id, False, EligibilityReason.RULES_NOT_MATCHED)

    def is_eligible(
        self,
        entity: TargetableEntity,
        viewer: ViewerContext,
        now: datetime | None = None,
    ) -> bool:
        """Return True when *viewer* may see *entity* at *now*."""

        return self.decide(entity, viewer, now).eligible

    def decide_all(
        self,
        entities: Iterable[E],
        viewer: ViewerContext,
        now: datetime | None = None,
    ) -> list[tuple[E, EligibilityDecision]]:
        """Decide every entity, isolating failures to the entity that caused them."""

        moment = now or self._now()
        decisions: list[tuple[E, EligibilityDecision]] = []
        for entity in entities:
            try:
                decision = self.decide(entity, viewer, moment)
            except (AttributeError, TypeError, ValueError) as exc:
                entity_id = str(getattr(entity, "id", "?"))
                self._logger.error(
                    "resolver.entity_failed", entity_id=entity_id, error=str(exc)
                )
                decision = EligibilityDecision(entity_id, False, EligibilityReason.FAILED)
            decisions.append((entity, decision))
        return decisions

    def eligible(
        self,
        entities: Iterable[E],
        viewer: ViewerContext,
        now: datetime | None = None,
    ) -> list[E]:
        """Return the eligible entities in input order."""

        return [
            entity
            for entity, decision in self.decide_all(entities, viewer, now)
            if decision.eligible
        ]

    def resolve(
        self,
        entities: Iterable[E],
        viewer: ViewerContext,
        now: datetime | None = None,
        policy: SelectionPolicy | None = None,
    ) -> Resolution[E]:
        """Filter *entities* for *viewer* and optionally pick one with *policy*."""

        eligible = self.eligible(entities, viewer, now)
        selected = policy.select(eligible, viewer) if policy is not None and eligible else None
        return Resolution(eligible=eligible, selected=selected)


_default_resolver: EligibilityResolver | None = None


def default_resolver() -> EligibilityResolver:
    """Return the shared resolver used by :func:`evaluate` and :func:`resolve`."""

    global _default_resolver
    if _default_resolver is None:
        _default_resolver = EligibilityResolver()
    return _default_resolver


def evaluate(
    entity: TargetableEntity,
    viewer: ViewerContext,
    now: datetime | None = None,
) -> bool:
    """Single-entity eligibility check."""

    return default_resolver().is_eligible(entity, viewer, now)


def resolve(
    entities: Iterable[E],
    viewer: ViewerContext,
    now: datetime | None = None,
    selection_policy: SelectionPolicy | None = None,
) -> Resolution[E]:
    """Eligible entities in input order, plus a winner when a policy is given."""

    return default_resolver().resolve(entities, viewer, now, selection_policy)


__all__ = [
    "EligibilityReason",
    "EligibilityDecision",
    "Resolution",
    "EligibilityResolver",
    "default_resolver",
    "evaluate",
    "resolve",
]
