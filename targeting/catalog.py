"""Load entity snapshots exported by the admin backend."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Mapping, TypeVar

import yaml
from pydantic import ValidationError

from .entities import AdPlacement, Advertisement, FeatureFlag, Sponsor, TargetableEntity
from .exceptions import CatalogError
from .logging import get_logger

E = TypeVar("E", bound=TargetableEntity)

logger = get_logger(__name__)


def _load_entities(
    model: type[E],
    items: Iterable[Mapping[str, Any]] | None,
    *,
    section: str,
) -> list[E]:
    entities: list[E] = []
    for position, item in enumerate(items or []):
        if not isinstance(item, Mapping):
            logger.warning(
                "catalog.entity_skipped",
                section=section,
                position=position,
                error="not a mapping",
            )
            continue
        try:
            entities.append(model.from_snapshot(item))
        except ValidationError as exc:
            logger.warning(
                "catalog.entity_skipped",
                section=section,
                position=position,
                entity_id=item.get("id") or item.get("key"),
                error=str(exc),
            )
    return entities


@dataclass(slots=True)
class Catalog:
    """In-memory snapshot of every targetable entity."""

    feature_flags: list[FeatureFlag] = field(default_factory=list)
    advertisements: list[Advertisement] = field(default_factory=list)
    sponsors: list[Sponsor] = field(default_factory=list)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "Catalog":
        """Build a catalog from a parsed document.

        Entities that fail validation are logged and skipped; invalid rules
        inside valid entities are kept as placeholders.
        """

        data = data or {}
        return cls(
            feature_flags=_load_entities(
                FeatureFlag,
                data.get("feature_flags", data.get("featureFlags")),
                section="feature_flags",
            ),
            advertisements=_load_entities(
                Advertisement, data.get("advertisements"), section="advertisements"
            ),
            sponsors=_load_entities(Sponsor, data.get("sponsors"), section="sponsors"),
        )

    def advertisements_for(self, placement: AdPlacement | str) -> list[Advertisement]:
        """Return the advertisements configured for *placement*, in catalog order."""

        return [ad for ad in self.advertisements if ad.serves(placement)]


def load_catalog(path: str | Path) -> Catalog:
    """Load a catalog from a YAML (``.yaml``/``.yml``) or JSON file."""

    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise CatalogError(f"Cannot read catalog '{path}': {exc}") from exc

    try:
        if path.suffix.lower() == ".json":
            data = json.loads(text) if text.strip() else {}
        else:
            data = yaml.safe_load(text) or {}
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise CatalogError(f"Catalog '{path}' is not well formed: {exc}") from exc

    if not isinstance(data, Mapping):
        raise CatalogError(f"Catalog '{path}' must contain a mapping at the top level")

    catalog = Catalog.from_mapping(data)
    logger.info(
        "catalog.loaded",
        path=str(path),
        feature_flags=len(catalog.feature_flags),
        advertisements=len(catalog.advertisements),
        sponsors=len(catalog.sponsors),
    )
    return catalog


__all__ = ["Catalog", "load_catalog"]
