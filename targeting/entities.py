"""Targetable entities: feature flags, advertisements and sponsors."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar, Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .rules.models import AnyRule, InvalidRule, parse_rules


def as_utc(moment: datetime) -> datetime:
    """Return *moment* as an aware UTC datetime; naive values are taken as UTC."""

    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def _decode_rules(value: Any) -> Any:
    # The admin create forms submit rules as a JSON encoded string.
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return []
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise ValueError(f"rules is not valid JSON: {exc.msg}") from exc
    return value


class TimePeriod(BaseModel):
    """Activity window; both ends are inclusive."""

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime

    @field_validator("start", "end")
    @classmethod
    def _to_utc(cls, value: datetime) -> datetime:
        return as_utc(value)

    @model_validator(mode="after")
    def _check_order(self) -> "TimePeriod":
        if self.end < self.start:
            raise ValueError("time period end must not be before its start")
        return self

    def contains(self, moment: datetime) -> bool:
        """Return True when *moment* lies within ``[start, end]``."""

        return self.start <= as_utc(moment) <= self.end


class TargetableEntity(BaseModel):
    """Fields every entity subject to targeting-rule evaluation carries."""

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
        extra="ignore",
    )

    entity_kind: ClassVar[str] = "entity"

    id: str
    active: bool
    time_period: TimePeriod | None = None
    rules: tuple[AnyRule, ...] = ()
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @model_validator(mode="before")
    @classmethod
    def _fold_flat_time_period(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        start = data.get("timePeriodStart", data.get("time_period_start"))
        end = data.get("timePeriodEnd", data.get("time_period_end"))
        if start is None and end is None:
            return data
        folded = {
            key: value
            for key, value in data.items()
            if key
            not in {"timePeriodStart", "timePeriodEnd", "time_period_start", "time_period_end"}
        }
        folded.setdefault("timePeriod", {"start": start, "end": end})
        return folded

    @field_validator("id", mode="before")
    @classmethod
    def _id_to_str(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("rules", mode="before")
    @classmethod
    def _decode(cls, value: Any) -> Any:
        if value is None:
            return ()
        return _decode_rules(value)

    @classmethod
    def from_snapshot(cls, payload: Mapping[str, Any]):
        """Build an entity from stored data, keeping invalid rules as placeholders.

        Entity-level fields are still validated; only individual rules are
        allowed to be malformed.
        """

        data = dict(payload)
        raw_rules = data.pop("rules", None)
        try:
            data["rules"] = parse_rules(_decode_rules(raw_rules), strict=False)
        except ValueError as exc:
            data["rules"] = (InvalidRule(raw=raw_rules, reason=str(exc)),)
        return cls.model_validate(data)

    def to_payload(self) -> dict[str, Any]:
        """Serialize using the backend's camelCase field names."""

        payload = self.model_dump(by_alias=True, mode="json", exclude={"rules"})
        payload["rules"] = [rule.to_payload() for rule in self.rules]
        return payload


class FeatureFlag(TargetableEntity):
    """Boolean feature toggle; the backend calls its active switch ``enabled``."""

    entity_kind: ClassVar[str] = "feature_flag"

    key: str = Field(min_length=1)
    active: bool = Field(alias="enabled")
    description: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _default_id(cls, data: Any) -> Any:
        if isinstance(data, Mapping) and not data.get("id") and data.get("key"):
            return {**data, "id": data["key"]}
        return data

    @property
    def enabled(self) -> bool:
        return self.active


class AdPlacement(str, Enum):
    """Slots on the learner-facing site where advertisements render."""

    STRAND_RHS = "strand_rhs"
    SECTION_RHS = "section_rhs"
    QUIZZES_RHS = "quizzes_rhs"
    SIDEBAR = "sidebar"


class CallToAction(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str
    url: str


class Advertisement(TargetableEntity):
    """Creative served in one or more placements."""

    entity_kind: ClassVar[str] = "advertisement"

    title: str
    description: str = ""
    type: str | None = None
    media_url: str | None = None
    media_alt: str | None = None
    media_type: str | None = None
    media_size: str | None = None
    media_duration: float | None = None
    cta: CallToAction | None = None
    placements: tuple[AdPlacement, ...] = ()
    click_count: int = Field(default=0, ge=0)
    impression_count: int = Field(default=0, ge=0)

    @model_validator(mode="before")
    @classmethod
    def _fold_flat_cta(cls, data: Any) -> Any:
        if not isinstance(data, Mapping) or data.get("cta"):
            return data
        label = data.get("ctaLabel", data.get("cta_label"))
        url = data.get("ctaUrl", data.get("cta_url"))
        if label and url:
            return {**data, "cta": {"label": label, "url": url}}
        return data

    @field_validator("placements", mode="before")
    @classmethod
    def _split_placements(cls, value: Any) -> Any:
        # Accepts a JSON array string or a comma separated list.
        if isinstance(value, str):
            text = value.strip()
            if text.startswith("["):
                try:
                    return json.loads(text)
                except json.JSONDecodeError as exc:
                    raise ValueError(f"placements is not valid JSON: {exc.msg}") from exc
            return [item.strip() for item in text.split(",") if item.strip()]
        return value

    def serves(self, placement: AdPlacement | str) -> bool:
        """Return True when the advertisement is configured for *placement*."""

        try:
            return AdPlacement(placement) in self.placements
        except ValueError:
            return False


class Sponsor(TargetableEntity):
    """Sponsor placement shown alongside learning content."""

    entity_kind: ClassVar[str] = "sponsor"

    title: str
    description: str = ""
    logo_url: str | None = None
    logo_alt: str | None = None
    website_url: str | None = None


__all__ = [
    "as_utc",
    "TimePeriod",
    "TargetableEntity",
    "FeatureFlag",
    "AdPlacement",
    "CallToAction",
    "Advertisement",
    "Sponsor",
]
