"""Composition root wiring settings, the catalog and the resolver together."""

from __future__ import annotations

from datetime import datetime

from .catalog import Catalog, load_catalog
from .config import Settings, get_settings
from .entities import AdPlacement, Advertisement, Sponsor
from .flags import flag_states, is_flag_enabled
from .logging import bind_context, configure_logging, get_logger
from .resolver import EligibilityResolver
from .selection import FirstEligible, SelectionPolicy, policy_from_name
from .viewer import ViewerContext


def _placement_name(placement: AdPlacement | str) -> str:
    return placement.value if isinstance(placement, AdPlacement) else str(placement)


class TargetingService:
    """Answer flag, advertisement and sponsor lookups for one viewer at a time."""

    def __init__(
        self,
        catalog: Catalog,
        *,
        resolver: EligibilityResolver | None = None,
        ad_policy: SelectionPolicy | None = None,
        sponsor_policy: SelectionPolicy | None = None,
    ) -> None:
        self.catalog = catalog
        self.resolver = resolver or EligibilityResolver()
        self.ad_policy = ad_policy or FirstEligible()
        self.sponsor_policy = sponsor_policy or FirstEligible()
        self._logger = get_logger(__name__)

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        *,
        catalog: Catalog | None = None,
        resolver: EligibilityResolver | None = None,
    ) -> "TargetingService":
        """Build a service from :class:`Settings`, loading the catalog if needed."""

        settings = settings or get_settings()
        configure_logging(settings.log_level)
        if catalog is None:
            catalog = load_catalog(settings.catalog_path) if settings.catalog_path else Catalog()
        return cls(
            catalog,
            resolver=resolver,
            ad_policy=policy_from_name(settings.ad_selection_policy),
            sponsor_policy=policy_from_name(settings.sponsor_selection_policy),
        )

    def flags_for(self, viewer: ViewerContext, now: datetime | None = None) -> dict[str, bool]:
        """Return every flag state for *viewer*."""

        with bind_context(viewer=viewer.identity):
            return flag_states(self.catalog.feature_flags, viewer, now, resolver=self.resolver)

    def flag_enabled(
        self,
        key: str,
        viewer: ViewerContext,
        now: datetime | None = None,
    ) -> bool:
        with bind_context(viewer=viewer.identity, flag=key):
            return is_flag_enabled(
                self.catalog.feature_flags, key, viewer, now, resolver=self.resolver
            )

    def advertisements_for(
        self,
        placement: AdPlacement | str,
        viewer: ViewerContext,
        now: datetime | None = None,
    ) -> list[Advertisement]:
        """Return every advertisement *viewer* may see in *placement*."""

        with bind_context(viewer=viewer.identity, placement=_placement_name(placement)):
            return self.resolver.eligible(self.catalog.advertisements_for(placement), viewer, now)

    def advertisement_for(
        self,
        placement: AdPlacement | str,
        viewer: ViewerContext,
        now: datetime | None = None,
    ) -> Advertisement | None:
        """Pick the advertisement to render in *placement* using the ad policy."""

        with bind_context(viewer=viewer.identity, placement=_placement_name(placement)):
            resolution = self.resolver.resolve(
                self.catalog.advertisements_for(placement), viewer, now, self.ad_policy
            )
            self._logger.debug(
                "service.advertisement_selected",
                eligible=len(resolution.eligible),
                selected=resolution.selected.id if resolution.selected else None,
            )
            return resolution.selected

    def sponsors_for(self, viewer: ViewerContext, now: datetime | None = None) -> list[Sponsor]:
        """Return every sponsor *viewer* is eligible for, in catalog order."""

        with bind_context(viewer=viewer.identity):
            return self.resolver.eligible(self.catalog.sponsors, viewer, now)

    def sponsor_for(self, viewer: ViewerContext, now: datetime | None = None) -> Sponsor | None:
        """Pick a single sponsor using the sponsor policy."""

        with bind_context(viewer=viewer.identity):
            return self.resolver.resolve(
                self.catalog.sponsors, viewer, now, self.sponsor_policy
            ).selected


__all__ = ["TargetingService"]
