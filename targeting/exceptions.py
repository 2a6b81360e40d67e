"""Custom exceptions raised by the targeting engine."""

from __future__ import annotations


class TargetingError(RuntimeError):
    """Base exception for every targeting engine failure."""


class EvaluationAnomaly(TargetingError):
    """A rule that looked valid could not be evaluated for a viewer.

    Anomalies never escape the evaluator: they are reported to an observer
    and the rule is treated as a non-match.
    """

    def __init__(
        self,
        reason: str,
        *,
        entity_id: str | None = None,
        rule_type: str | None = None,
        rule_index: int | None = None,
    ) -> None:
        super().__init__(reason)
        self.reason = reason
        self.entity_id = entity_id
        self.rule_type = rule_type
        self.rule_index = rule_index

    def to_log_fields(self) -> dict[str, object]:
        """Return the anomaly as keyword arguments for a structured log call."""

        return {
            "entity_id": self.entity_id,
            "rule_type": self.rule_type,
            "rule_index": self.rule_index,
            "reason": self.reason,
        }


class MalformedNetworkError(ValueError):
    """Raised when a network prefix or address cannot be parsed."""

    def __init__(self, value: object, detail: str | None = None) -> None:
        message = f"Invalid network value {value!r}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.value = value


class CatalogError(TargetingError):
    """Raised when an entity catalog document cannot be read."""


class UnknownPolicyError(TargetingError, ValueError):
    """Raised when a selection policy name is not registered."""

    def __init__(self, name: str, available: list[str]) -> None:
        super().__init__(
            f"Unknown selection policy '{name}'; expected one of {', '.join(available)}"
        )
        self.name = name


__all__ = [
    "TargetingError",
    "EvaluationAnomaly",
    "MalformedNetworkError",
    "CatalogError",
    "UnknownPolicyError",
]
