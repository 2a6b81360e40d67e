"""Immutable snapshot of the viewer attributes used during rule evaluation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping


def _clean(value: Any) -> str | None:
    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip()
    return text or None


def _first(payload: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = payload.get(key)
        if value not in (None, ""):
            return value
    return None


@dataclass(frozen=True, slots=True)
class ViewerContext:
    """Attributes of one viewer for one request.

    Only ``identity`` is required. A rule needing an attribute that is not
    set here never matches.
    """

    identity: str
    role: str | None = None
    country: str | None = None
    school_id: str | None = None
    grade: str | None = None
    address: str | None = None

    def __post_init__(self) -> None:
        identity = _clean(self.identity)
        if identity is None:
            raise ValueError("ViewerContext requires a non-empty identity")
        object.__setattr__(self, "identity", identity)
        for name in ("role", "country", "school_id", "grade", "address"):
            object.__setattr__(self, name, _clean(getattr(self, name)))

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "ViewerContext":
        """Build a context from a session or user payload using backend key names."""

        identity = _first(payload, "identity", "userId", "user_id", "id")
        if identity is None:
            raise ValueError("Viewer payload does not contain an identity")
        return cls(
            identity=identity,
            role=_first(payload, "role", "userType", "user_type"),
            country=_first(payload, "country", "countryCode", "country_code"),
            school_id=_first(payload, "school_id", "schoolId", "school"),
            grade=_first(payload, "grade"),
            address=_first(payload, "address", "ip", "ipAddress", "ip_address"),
        )


__all__ = ["ViewerContext"]
