"""TMDB API client for catalog lookups."""

import logging
from typing import Dict, List, Optional

import requests

from watchlog.models import (
    CountryProviders,
    Episode,
    MediaType,
    TitleDetail,
    TitleSummary,
)

logger = logging.getLogger(__name__)


class TmdbError(Exception):
    """TMDB API error."""

    pass


def _title_type(kind) -> MediaType:
    media_type = MediaType(kind)
    if media_type == MediaType.PERSON:
        raise ValueError("Only movie and tv titles are supported")
    return media_type


def titles_only(results: List[TitleSummary]) -> List[TitleSummary]:
    """Drop people from multi-search results."""
    return [result for result in results if result.is_title]


class TmdbClient:
    """Client for the TMDB v3 REST API."""

    API_URL = "https://api.themoviedb.org/3"
    TIMEOUT = 30

    def __init__(self, api_key: str, language: Optional[str] = None):
        """Initialize TMDB client."""
        if not api_key:
            raise ValueError("api_key cannot be empty")
        self.api_key = api_key
        self.language = language

    def _get(self, path: str, params: Optional[dict] = None) -> dict:
        """GET a path and decode the JSON body.

        Raises:
            TmdbError: On network failure, a non-200 status or an undecodable body.
        """
        url = f"{self.API_URL}{path}"
        query = {"api_key": self.api_key}
        if self.language:
            query["language"] = self.language
        if params:
            query.update(params)

        logger.debug("GET %s", path)
        try:
            response = requests.get(url, params=query, timeout=self.TIMEOUT)
        except requests.RequestException as e:
            raise TmdbError(f"Cannot connect to TMDB: {e}")

        if response.status_code == 401:
            raise TmdbError("Invalid TMDB API key")
        if response.status_code == 404:
            raise TmdbError(f"Not found: {path}")
        if response.status_code != 200:
            raise TmdbError(f"TMDB request failed: {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise TmdbError(f"Invalid response from TMDB: {e}")
        if not isinstance(data, dict):
            raise TmdbError(
                f"Invalid response from TMDB: expected an object, got {type(data).__name__}"
            )
        return data

    def test_connection(self) -> bool:
        """Test connection to TMDB.

        Returns True if the API key is accepted, False otherwise.
        """
        try:
            response = requests.get(
                f"{self.API_URL}/configuration",
                params={"api_key": self.api_key},
                timeout=10,
            )
            return response.status_code == 200
        except requests.RequestException:
            return False

    def fetch_trending(self, kind) -> List[TitleSummary]:
        """Fetch this week's trending movies or shows."""
        media_type = _title_type(kind)
        data = self._get(f"/trending/{media_type.value}/week")
        try:
            return [
                TitleSummary.from_api(raw, media_type)
                for raw in data.get("results", [])
            ]
        except (AttributeError, KeyError, TypeError) as e:
            raise TmdbError(f"Unexpected trending payload: {e}")

    def fetch_detail(self, kind, tmdb_id: int) -> TitleDetail:
        """Fetch the full record of a movie or show."""
        media_type = _title_type(kind)
        data = self._get(f"/{media_type.value}/{tmdb_id}")
        try:
            return TitleDetail.from_api(data, media_type)
        except (AttributeError, KeyError, TypeError) as e:
            raise TmdbError(f"Unexpected detail payload: {e}")

    def fetch_season_episodes(self, show_id: int, season_number: int) -> List[Episode]:
        """Fetch episode metadata for one season of a show."""
        data = self._get(f"/tv/{show_id}/season/{season_number}")
        episodes = []
        try:
            for raw in data.get("episodes") or []:
                episode = Episode.from_api(raw)
                if not episode.season_number:
                    episode.season_number = season_number
                episodes.append(episode)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise TmdbError(f"Unexpected season payload: {e}")
        return episodes

    def search(self, query: str, page: int = 1) -> List[TitleSummary]:
        """Multi-search for movies, shows and people.

        People are returned too; use ``titles_only`` to keep movies and shows.
        """
        data = self._get("/search/multi", {"query": query, "page": page})

        results = []
        for raw in data.get("results") or []:
            if not isinstance(raw, dict):
                raise TmdbError(f"Unexpected search payload: {raw!r}")
            try:
                results.append(TitleSummary.from_api(raw))
            except (KeyError, ValueError):
                logger.debug("Skipping unsupported search result: %s", raw.get("id"))
            except (AttributeError, TypeError) as e:
                raise TmdbError(f"Unexpected search payload: {e}")
        return results

    def fetch_watch_providers(self, kind, tmdb_id: int) -> Dict[str, CountryProviders]:
        """Fetch per-region streaming offers for a title."""
        media_type = _title_type(kind)
        data = self._get(f"/{media_type.value}/{tmdb_id}/watch/providers")
        try:
            return {
                region: CountryProviders.from_api(raw)
                for region, raw in (data.get("results") or {}).items()
            }
        except (AttributeError, KeyError, TypeError) as e:
            raise TmdbError(f"Unexpected watch provider payload: {e}")
