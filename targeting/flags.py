"""Feature-flag lookups built on the eligibility resolver."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable

from .entities import FeatureFlag
from .resolver import EligibilityResolver, default_resolver
from .viewer import ViewerContext


def flag_states(
    flags: Iterable[FeatureFlag],
    viewer: ViewerContext,
    now: datetime | None = None,
    *,
    resolver: EligibilityResolver | None = None,
) -> dict[str, bool]:
    """Return ``flag key -> enabled`` for every flag, as seen by *viewer*.

    Rollout bucketing is sticky, so the same viewer always gets the same map
    for the same flag configuration. When several flags share a key the first
    one wins, as in :func:`is_flag_enabled`.
    """

    resolver = resolver or default_resolver()
    unique: dict[str, FeatureFlag] = {}
    for flag in flags:
        unique.setdefault(flag.key, flag)
    return {
        flag.key: decision.eligible
        for flag, decision in resolver.decide_all(unique.values(), viewer, now)
    }


def is_flag_enabled(
    flags: Iterable[FeatureFlag],
    key: str,
    viewer: ViewerContext,
    now: datetime | None = None,
    *,
    default: bool = False,
    resolver: EligibilityResolver | None = None,
) -> bool:
    """Return whether flag *key* is on for *viewer*; unknown keys yield *default*."""

    for flag in flags:
        if flag.key == key:
            return (resolver or default_resolver()).is_eligible(flag, viewer, now)
    return default


__all__ = ["flag_states", "is_flag_enabled"]
