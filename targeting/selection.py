"""Pluggable policies picking one winner among eligible entities."""

from __future__ import annotations

import hashlib
import itertools
import random
from typing import Any, Callable, Protocol, Sequence, TypeVar

from .exceptions import UnknownPolicyError
from .viewer import ViewerContext

E = TypeVar("E")


class SelectionPolicy(Protocol):
    """Choose a single entity from an ordered list of eligible candidates."""

    def select(  # pragma: no cover - protocol
        self, candidates: Sequence[E], viewer: ViewerContext
    ) -> E | None:
        """Return the winner, or ``None`` when *candidates* is empty."""


class FirstEligible:
    """Always pick the first candidate in input order."""

    name = "first"

    def select(self, candidates: Sequence[E], viewer: ViewerContext) -> E | None:
        return candidates[0] if candidates else None


class StickyPerViewer:
    """Pick the same candidate for the same viewer and candidate set.

    Useful for feature flags and for sponsor slots that should not rotate
    between page views.
    """

    name = "sticky"

    def __init__(self, salt: str = "") -> None:
        self._salt = salt

    def select(self, candidates: Sequence[E], viewer: ViewerContext) -> E | None:
        if not candidates:
            return None
        ids = ",".join(
            str(getattr(candidate, "id", index)) for index, candidate in enumerate(candidates)
        )
        digest = hashlib.md5(
            f"{self._salt}:{ids}:{viewer.identity}".encode("utf-8"),
            usedforsecurity=False,
        ).digest()
        return candidates[int.from_bytes(digest[:8], "big") % len(candidates)]


class UniformRandom:
    """Pick any candidate with equal probability."""

    name = "random"

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()

    def select(self, candidates: Sequence[E], viewer: ViewerContext) -> E | None:
        if not candidates:
            return None
        return self._rng.choice(list(candidates))


class ImpressionWeighted:
    """Favour candidates that have been shown less often.

    Each candidate weighs ``1 / (1 + impression_count)``; entities without an
    impression count weigh 1.
    """

    name = "impression_weighted"

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()

    @staticmethod
    def weight(candidate: Any) -> float:
        impressions = getattr(candidate, "impression_count", None)
        if not isinstance(impressions, int) or impressions < 0:
            return 1.0
        return 1.0 / (1 + impressions)

    def select(self, candidates: Sequence[E], viewer: ViewerContext) -> E | None:
        if not candidates:
            return None
        population = list(candidates)
        weights = [self.weight(candidate) for candidate in population]
        return self._rng.choices(population, weights=weights, k=1)[0]


class RoundRobin:
    """Rotate through the candidates on successive calls."""

    name = "round_robin"

    def __init__(self) -> None:
        self._cursor = itertools.count()

    def select(self, candidates: Sequence[E], viewer: ViewerContext) -> E | None:
        if not candidates:
            return None
        return candidates[next(self._cursor) % len(candidates)]


POLICIES: dict[str, Callable[[], SelectionPolicy]] = {
    FirstEligible.name: FirstEligible,
    StickyPerViewer.name: StickyPerViewer,
    UniformRandom.name: UniformRandom,
    ImpressionWeighted.name: ImpressionWeighted,
    RoundRobin.name: RoundRobin,
}


def policy_from_name(name: str) -> SelectionPolicy:
    """Instantiate the selection policy registered under *name*."""

    factory = POLICIES.get(name.strip().lower())
    if factory is None:
        raise UnknownPolicyError(name, sorted(POLICIES))
    return factory()


__all__ = [
    "SelectionPolicy",
    "FirstEligible",
    "StickyPerViewer",
    "UniformRandom",
    "ImpressionWeighted",
    "RoundRobin",
    "POLICIES",
    "policy_from_name",
]
