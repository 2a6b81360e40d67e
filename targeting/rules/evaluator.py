"""Rule evaluator: decides whether one viewer matches a targeting rule set."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterable, Protocol

from targeting.exceptions import EvaluationAnomaly, MalformedNetworkError
from targeting.logging import get_logger
from targeting.viewer import ViewerContext

from .bucketing import in_rollout
from .models import InvalidRule, RuleType
from .network import matches_any


class AnomalyObserver(Protocol):
    """Receives anomalies found while evaluating rules."""

    def report(self, anomaly: EvaluationAnomaly) -> None:  # pragma: no cover - protocol
        """Record *anomaly* somewhere useful to operators."""


class LoggingAnomalyObserver:
    """Default observer emitting a structured warning per anomaly."""

    def __init__(self, logger=None) -> None:
        self._logger = logger or get_logger(__name__)

    def report(self, anomaly: EvaluationAnomaly) -> None:
        self._logger.warning("targeting.rule_anomaly", **anomaly.to_log_fields())


class CollectingAnomalyObserver:
    """Observer keeping anomalies in memory, handy for previews and tests."""

    def __init__(self) -> None:
        self.anomalies: list[EvaluationAnomaly] = []

    def report(self, anomaly: EvaluationAnomaly) -> None:
        self.anomalies.append(anomaly)


@dataclass(frozen=True, slots=True)
class RuleSetVerdict:
    """Outcome of evaluating a whole rule set for one viewer."""

    matched: bool
    rule_index: int | None
    reason: str


def _values(value: Any) -> tuple[str, ...]:
    # Rules built with ``model_construct`` may still carry a bare string.
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    if isinstance(value, (list, tuple, set, frozenset)):
        return tuple(str(item) for item in value)
    raise EvaluationAnomaly(f"unsupported value payload of type {type(value).__name__}")


class RuleEvaluator:
    """Evaluate typed rules against a :class:`ViewerContext`.

    Within a rule the type-specific condition and the optional rollout must
    both hold. Across a rule set a single matching rule is enough, and an
    empty rule set matches everyone.
    """

    def __init__(self, *, observer: AnomalyObserver | None = None) -> None:
        self._observer = observer or LoggingAnomalyObserver()
        self._logger = get_logger(__name__)
        self._handlers: dict[RuleType, Callable[[Any, ViewerContext], bool]] = {
            RuleType.ALWAYS_ON: self._always_on,
            RuleType.ALWAYS_OFF: self._always_off,
            RuleType.COUNTRY: self._country,
            RuleType.SCHOOL: self._school,
            RuleType.GRADE: self._grade,
            RuleType.STUDENT: self._role,
            RuleType.TEACHER: self._role,
            RuleType.ROLE: self._role,
            RuleType.USER_TYPE: self._role,
            RuleType.CIDR: self._cidr,
            RuleType.PERCENTAGE: self._percentage,
        }
        missing = set(RuleType) - set(self._handlers)
        if missing:  # pragma: no cover - guards against a RuleType without a handler
            raise RuntimeError(f"No evaluator for rule kinds {sorted(k.value for k in missing)}")

    def matches(
        self,
        rule: Any,
        viewer: ViewerContext,
        entity_id: str,
        *,
        rule_index: int | None = None,
    ) -> bool:
        """Return True when *rule* matches *viewer* for the entity *entity_id*.

        Malformed rules are reported to the observer and never match.
        """

        try:
            if not self._condition_holds(rule, viewer):
                return False
            return in_rollout(entity_id, viewer.identity, rule.rollout)
        except (
            EvaluationAnomaly,
            MalformedNetworkError,
            TypeError,
            ValueError,
            AttributeError,
        ) as exc:
            anomaly = exc if isinstance(exc, EvaluationAnomaly) else EvaluationAnomaly(str(exc))
            anomaly.entity_id = entity_id
            anomaly.rule_type = anomaly.rule_type or getattr(rule, "type", None)
            anomaly.rule_index = rule_index
            self._report(anomaly)
            return False

    def evaluate_rules(
        self,
        rules: Iterable[Any],
        viewer: ViewerContext,
        entity_id: str,
    ) -> RuleSetVerdict:
        """Evaluate *rules* with OR semantics, stopping at the first match."""

        evaluated = 0
        for index, rule in enumerate(rules):
            evaluated += 1
            if self.matches(rule, viewer, entity_id, rule_index=index):
                return RuleSetVerdict(
                    matched=True,
                    rule_index=index,
                    reason=f"rule {index} ({getattr(rule, 'type', '?')}) matched",
                )
        if evaluated == 0:
            return RuleSetVerdict(matched=True, rule_index=None, reason="no rules")
        return RuleSetVerdict(matched=False, rule_index=None, reason="no rule matched")

    def _condition_holds(self, rule: Any, viewer: ViewerContext) -> bool:
        if isinstance(rule, InvalidRule):
            raise EvaluationAnomaly(f"invalid rule: {rule.reason}", rule_type=rule.type)
        handler = self._handlers.get(rule.kind)
        if handler is None:  # pragma: no cover - guarded in __init__
            raise EvaluationAnomaly(f"no handler for rule type {rule.type!r}")
        return handler(rule, viewer)

    def _report(self, anomaly: EvaluationAnomaly) -> None:
        try:
            self._observer.report(anomaly)
        except Exception as exc:  # noqa: BLE001
            self._logger.error(
                "targeting.observer_failed",
                error=str(exc),
                **anomaly.to_log_fields(),
            )

    def _always_on(self, rule: Any, viewer: ViewerContext) -> bool:
        return True

    def _always_off(self, rule: Any, viewer: ViewerContext) -> bool:
        return False

    def _country(self, rule: Any, viewer: ViewerContext) -> bool:
        if viewer.country is None:
            return False
        accepted = {value.strip().upper() for value in _values(rule.value)}
        return viewer.country.upper() in accepted

    def _school(self, rule: Any, viewer: ViewerContext) -> bool:
        if viewer.school_id is None:
            return False
        return viewer.school_id in {value.strip() for value in _values(rule.value)}

    def _grade(self, rule: Any, viewer: ViewerContext) -> bool:
        if viewer.grade is None:
            return False
        return viewer.grade in {value.strip() for value in _values(rule.value)}

    def _role(self, rule: Any, viewer: ViewerContext) -> bool:
        if viewer.role is None:
            return False
        if rule.kind in (RuleType.STUDENT, RuleType.TEACHER):
            accepted = {rule.kind.value}
        else:
            accepted = {value.strip().lower() for value in _values(rule.value)}
        return viewer.role.lower() in accepted

    def _cidr(self, rule: Any, viewer: ViewerContext) -> bool:
        if viewer.address is None:
            return False
        return matches_any(_values(rule.value), viewer.address)

    def _percentage(self, rule: Any, viewer: ViewerContext) -> bool:
        if rule.rollout is None:
            raise EvaluationAnomaly("percentage rule without rollout")
        return True


__all__ = [
    "AnomalyObserver",
    "LoggingAnomalyObserver",
    "CollectingAnomalyObserver",
    "RuleSetVerdict",
    "RuleEvaluator",
]
