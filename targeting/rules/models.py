"""Typed targeting rules shared by feature flags, advertisements and sponsors."""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Iterable, Literal, Union, get_args

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
)

from .network import parse_network


class RuleType(str, Enum):
    """Closed set of rule discriminants understood by the evaluator."""

    ALWAYS_ON = "always_on"
    ALWAYS_OFF = "always_off"
    COUNTRY = "country"
    SCHOOL = "school"
    GRADE = "grade"
    STUDENT = "student"
    TEACHER = "teacher"
    ROLE = "role"
    USER_TYPE = "user_type"
    CIDR = "cidr"
    PERCENTAGE = "percentage"


def _listify(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple, set, frozenset)):
        return list(value)
    return [value]


# Admin forms refuse to save a rule with an empty value, so kinds whose
# condition is implied by the type still carry one. It is kept but not read.
IgnoredValue = Union[str, int, float, bool, None]


def _clean_strings(value: Any, *, field: str) -> list[str]:
    cleaned: list[str] = []
    for item in _listify(value):
        if not isinstance(item, str):
            raise ValueError(f"{field} entries must be strings, got {type(item).__name__}")
        item = item.strip()
        if not item:
            raise ValueError(f"{field} entries must not be empty")
        cleaned.append(item)
    return cleaned


class BaseRule(BaseModel):
    """Fields shared by every rule kind."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    type: str
    rollout: float | None = Field(default=None, ge=0, le=100)

    @property
    def kind(self) -> RuleType:
        return RuleType(self.type)

    def to_payload(self) -> dict[str, Any]:
        """Serialize the rule back into the ``{type, value, rollout}`` wire shape."""

        payload: dict[str, Any] = {"type": self.type}
        value = getattr(self, "value", None)
        if isinstance(value, tuple):
            value = value[0] if len(value) == 1 else list(value)
        if value is not None:
            payload["value"] = value
        if self.rollout is not None:
            payload["rollout"] = self.rollout
        return payload


class AlwaysOnRule(BaseRule):
    type: Literal["always_on"] = "always_on"
    value: None = None


class AlwaysOffRule(BaseRule):
    type: Literal["always_off"] = "always_off"
    value: None = None


class CountryRule(BaseRule):
    """Matches viewers whose country code is one of ``value``."""

    type: Literal["country"] = "country"
    value: tuple[str, ...] = Field(min_length=1)

    @field_validator("value", mode="before")
    @classmethod
    def _normalise(cls, value: Any) -> list[str]:
        return [item.upper() for item in _clean_strings(value, field="country")]


class SchoolRule(BaseRule):
    """Matches viewers attending one of the ``value`` schools."""

    type: Literal["school"] = "school"
    value: tuple[str, ...] = Field(min_length=1)

    @field_validator("value", mode="before")
    @classmethod
    def _normalise(cls, value: Any) -> list[str]:
        return _clean_strings(value, field="school")


class GradeRule(BaseRule):
    """Matches viewers in one of the ``value`` grades; ``7`` and ``"7"`` are equal."""

    type: Literal["grade"] = "grade"
    value: tuple[str, ...] = Field(min_length=1)

    @field_validator("value", mode="before")
    @classmethod
    def _normalise(cls, value: Any) -> list[str]:
        grades: list[Any] = []
        for item in _listify(value):
            if isinstance(item, bool):
                raise ValueError("grade entries must be strings or integers")
            grades.append(str(item) if isinstance(item, int) else item)
        return _clean_strings(grades, field="grade")


class _AcceptedRolesRule(BaseRule):
    value: tuple[str, ...] = Field(min_length=1)

    @field_validator("value", mode="before")
    @classmethod
    def _normalise(cls, value: Any) -> list[str]:
        return [item.lower() for item in _clean_strings(value, field="role")]

    @property
    def accepted_roles(self) -> frozenset[str]:
        return frozenset(self.value)


class RoleRule(_AcceptedRolesRule):
    type: Literal["role"] = "role"


class UserTypeRule(_AcceptedRolesRule):
    type: Literal["user_type"] = "user_type"


class StudentRule(BaseRule):
    """Matches viewers holding the ``student`` role."""

    type: Literal["student"] = "student"
    value: IgnoredValue = None

    @property
    def accepted_roles(self) -> frozenset[str]:
        return frozenset({"student"})


class TeacherRule(BaseRule):
    """Matches viewers holding the ``teacher`` role."""

    type: Literal["teacher"] = "teacher"
    value: IgnoredValue = None

    @property
    def accepted_roles(self) -> frozenset[str]:
        return frozenset({"teacher"})


class CidrRule(BaseRule):
    """Matches viewers whose address lies inside one of the ``value`` networks."""

    type: Literal["cidr"] = "cidr"
    value: tuple[str, ...] = Field(min_length=1)

    @field_validator("value", mode="before")
    @classmethod
    def _validate_networks(cls, value: Any) -> list[str]:
        prefixes = _clean_strings(value, field="cidr")
        for prefix in prefixes:
            if "/" not in prefix:
                raise ValueError(f"cidr entry {prefix!r} is missing a prefix length")
            parse_network(prefix)
        return prefixes


class PercentageRule(BaseRule):
    """Matches a sticky ``rollout`` percentage of viewers."""

    type: Literal["percentage"] = "percentage"
    value: IgnoredValue = None
    rollout: float = Field(ge=0, le=100)


_RULE_CLASSES: tuple[type[BaseRule], ...] = (
    AlwaysOnRule,
    AlwaysOffRule,
    CountryRule,
    SchoolRule,
    GradeRule,
    StudentRule,
    TeacherRule,
    RoleRule,
    UserTypeRule,
    CidrRule,
    PercentageRule,
)

TargetingRule = Annotated[
    Union[
        AlwaysOnRule,
        AlwaysOffRule,
        CountryRule,
        SchoolRule,
        GradeRule,
        StudentRule,
        TeacherRule,
        RoleRule,
        UserTypeRule,
        CidrRule,
        PercentageRule,
    ],
    Field(discriminator="type"),
]

RULE_MODELS: dict[RuleType, type[BaseRule]] = {
    RuleType(get_args(model.model_fields["type"].annotation)[0]): model
    for model in _RULE_CLASSES
}

_missing = set(RuleType) - set(RULE_MODELS)
if _missing:  # pragma: no cover - guards against adding a RuleType without a model
    raise RuntimeError(f"Rule kinds without a model: {sorted(k.value for k in _missing)}")


class InvalidRule(BaseModel):
    """Placeholder kept in a rule set when a stored rule fails validation.

    The evaluator reports it as an anomaly and treats it as a non-match.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    type: str | None = None
    raw: Any = None
    reason: str

    def to_payload(self) -> Any:
        return self.raw


AnyRule = Union[TargetingRule, InvalidRule]

_RULE_ADAPTER: TypeAdapter[Any] = TypeAdapter(TargetingRule)
_RULES_ADAPTER: TypeAdapter[Any] = TypeAdapter(tuple[TargetingRule, ...])


def parse_rule(item: Any) -> BaseRule:
    """Validate a single rule payload, raising ``ValidationError`` on failure."""

    if isinstance(item, BaseRule):
        return item
    return _RULE_ADAPTER.validate_python(item)


def _summarise(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()))
        parts.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return "; ".join(parts)


def parse_rules(items: Iterable[Any] | None, *, strict: bool = True) -> tuple[Any, ...]:
    """Validate a list of rule payloads.

    In strict mode the first invalid rule raises ``ValidationError``. Otherwise
    every invalid payload is replaced by an :class:`InvalidRule` so that stored
    entities stay loadable.
    """

    if items is None:
        return ()
    if strict:
        return _RULES_ADAPTER.validate_python(items)
    if isinstance(items, (str, bytes)) or not isinstance(items, Iterable):
        return (InvalidRule(raw=items, reason="rules must be a list"),)

    rules: list[Any] = []
    for item in items:
        if isinstance(item, (BaseRule, InvalidRule)):
            rules.append(item)
            continue
        try:
            rules.append(_RULE_ADAPTER.validate_python(item))
        except ValidationError as exc:
            rule_type = item.get("type") if isinstance(item, dict) else None
            rules.append(
                InvalidRule(
                    type=rule_type if isinstance(rule_type, str) else None,
                    raw=item,
                    reason=_summarise(exc),
                )
            )
    return tuple(rules)


__all__ = [
    "RuleType",
    "BaseRule",
    "AlwaysOnRule",
    "AlwaysOffRule",
    "CountryRule",
    "SchoolRule",
    "GradeRule",
    "StudentRule",
    "TeacherRule",
    "RoleRule",
    "UserTypeRule",
    "CidrRule",
    "PercentageRule",
    "TargetingRule",
    "InvalidRule",
    "AnyRule",
    "RULE_MODELS",
    "parse_rule",
    "parse_rules",
]
