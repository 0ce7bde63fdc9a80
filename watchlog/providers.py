"""Watch provider merging and region-scoped lookups."""

import logging
from typing import Dict, List, Optional, Tuple

from watchlog.config import DEFAULT_REGION, normalize_region
from watchlog.models import CountryProviders, MediaType, Provider

logger = logging.getLogger(__name__)


def merge_providers(country: CountryProviders) -> List[Provider]:
    """Merge flatrate, rent and buy offers, keeping each provider id once.

    Order is flatrate, then rent, then buy; the first occurrence wins.
    """
    merged = []
    seen = set()
    for provider in country.flatrate + country.rent + country.buy:
        if provider.provider_id in seen:
            continue
        seen.add(provider.provider_id)
        merged.append(provider)
    return merged


def providers_for_region(
    results: Dict[str, CountryProviders], region: str
) -> List[Provider]:
    """Return merged providers for a region, or an empty list if it has none."""
    country = results.get(region)
    if country is None:
        return []
    return merge_providers(country)


class WatchProviderLookup:
    """Provider list for the currently displayed title.

    The region is injected rather than read from global state. Changing it
    re-fetches providers for the displayed title.
    """

    def __init__(self, client, region: str = DEFAULT_REGION):
        self.client = client
        self.region = normalize_region(region)
        self.current: Optional[Tuple[MediaType, int]] = None
        self.providers: List[Provider] = []

    def load(self, kind, tmdb_id: int) -> List[Provider]:
        """Fetch providers for a title and make it the displayed one.

        On failure the previous provider list is kept and the error propagates.
        """
        self.current = (MediaType(kind), tmdb_id)
        results = self.client.fetch_watch_providers(kind, tmdb_id)
        self.providers = providers_for_region(results, self.region)
        logger.debug(
            "Loaded %d providers for %s %s in %s",
            len(self.providers),
            kind,
            tmdb_id,
            self.region,
        )
        return self.providers

    def set_region(self, region: str) -> List[Provider]:
        """Switch region and re-fetch providers for the displayed title."""
        self.region = normalize_region(region)
        if self.current is None:
            return self.providers
        kind, tmdb_id = self.current
        return self.load(kind, tmdb_id)
