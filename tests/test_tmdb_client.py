"""Tests for TMDB API client."""

from datetime import date

import pytest
import requests
import responses

from watchlog.models import MediaType
from watchlog.tmdb_client import TmdbClient, TmdbError, titles_only

API = "https://api.themoviedb.org/3"


@pytest.fixture
def client():
    return TmdbClient(api_key="test-key")


def test_empty_api_key_rejected():
    with pytest.raises(ValueError):
        TmdbClient(api_key="")


class TestConnection:
    """Test TMDB connection."""

    @responses.activate
    def test_connection_success(self, client):
        responses.add(responses.GET, f"{API}/configuration", json={}, status=200)
        assert client.test_connection() is True
        assert "api_key=test-key" in responses.calls[0].request.url

    @responses.activate
    def test_connection_invalid_key(self, client):
        responses.add(responses.GET, f"{API}/configuration", status=401)
        assert client.test_connection() is False

    @responses.activate
    def test_connection_network_error(self, client):
        responses.add(
            responses.GET,
            f"{API}/configuration",
            body=requests.exceptions.ConnectionError("Network error"),
        )
        assert client.test_connection() is False


class TestTrending:
    @responses.activate
    def test_trending_movies(self, client):
        responses.add(
            responses.GET,
            f"{API}/trending/movie/week",
            json={
                "page": 1,
                "results": [
                    {
                        "id": 27205,
                        "title": "Inception",
                        "overview": "Dreams within dreams",
                        "poster_path": "/inception.jpg",
                        "release_date": "2010-07-16",
                        "vote_average": 8.4,
                    }
                ],
            },
            status=200,
        )

        results = client.fetch_trending("movie")

        assert len(results) == 1
        assert results[0].tmdb_id == 27205
        assert results[0].media_type == MediaType.MOVIE
        assert results[0].title == "Inception"
        assert results[0].poster_url == "https://image.tmdb.org/t/p/w500/inception.jpg"

    @responses.activate
    def test_trending_tv_uses_name(self, client):
        responses.add(
            responses.GET,
            f"{API}/trending/tv/week",
            json={"results": [{"id": 1396, "name": "Breaking Bad", "first_air_date": "2008-01-20"}]},
            status=200,
        )

        results = client.fetch_trending(MediaType.TV)

        assert results[0].title == "Breaking Bad"
        assert results[0].release_date == "2008-01-20"

    def test_trending_people_not_supported(self, client):
        with pytest.raises(ValueError):
            client.fetch_trending("person")


class TestDetail:
    @responses.activate
    def test_movie_detail(self, client):
        responses.add(
            responses.GET,
            f"{API}/movie/27205",
            json={
                "id": 27205,
                "title": "Inception",
                "overview": "Dreams within dreams",
                "release_date": "2010-07-16",
                "runtime": 148,
                "vote_average": 8.4,
                "genres": [{"id": 28, "name": "Action"}, {"id": 878, "name": "Science Fiction"}],
            },
            status=200,
        )

        detail = client.fetch_detail("movie", 27205)

        assert detail.runtime == 148
        assert detail.release_date == date(2010, 7, 16)
        assert detail.genres == ["Action", "Science Fiction"]

    @responses.activate
    def test_tv_detail(self, client):
        responses.add(
            responses.GET,
            f"{API}/tv/1396",
            json={
                "id": 1396,
                "name": "Breaking Bad",
                "first_air_date": "2008-01-20",
                "number_of_seasons": 5,
                "number_of_episodes": 62,
                "status": "Ended",
                "genres": [],
                "seasons": [],
            },
            status=200,
        )

        detail = client.fetch_detail("tv", 1396)

        assert detail.title == "Breaking Bad"
        assert detail.number_of_episodes == 62
        assert detail.show_status == "Ended"

    @responses.activate
    def test_not_found(self, client):
        responses.add(responses.GET, f"{API}/movie/1", json={"status_code": 34}, status=404)
        with pytest.raises(TmdbError, match="Not found"):
            client.fetch_detail("movie", 1)


class TestSeasonEpisodes:
    @responses.activate
    def test_fetch_season_episodes(self, client):
        responses.add(
            responses.GET,
            f"{API}/tv/1396/season/1",
            json={
                "id": 3572,
                "season_number": 1,
                "episodes": [
                    {
                        "id": 62085,
                        "name": "Pilot",
                        "overview": "",
                        "episode_number": 1,
                        "season_number": 1,
                        "still_path": "/pilot.jpg",
                        "air_date": "2008-01-20",
                    },
                    {
                        "id": 62086,
                        "name": "Cat's in the Bag...",
                        "episode_number": 2,
                        "air_date": None,
                    },
                ],
            },
            status=200,
        )

        episodes = client.fetch_season_episodes(1396, 1)

        assert [e.key for e in episodes] == [(1, 1), (1, 2)]
        assert episodes[0].air_date == date(2008, 1, 20)
        assert episodes[0].still_url == "https://image.tmdb.org/t/p/w500/pilot.jpg"
        assert episodes[1].air_date is None
        assert not any(e.is_watched for e in episodes)


class TestSearch:
    @responses.activate
    def test_search_returns_mixed_results(self, client):
        responses.add(
            responses.GET,
            f"{API}/search/multi",
            json={
                "results": [
                    {"id": 27205, "media_type": "movie", "title": "Inception"},
                    {"id": 1396, "media_type": "tv", "name": "Breaking Bad"},
                    {"id": 6193, "media_type": "person", "name": "Leonardo DiCaprio"},
                    {"id": 7, "media_type": "collection", "name": "Something"},
                ]
            },
            status=200,
        )

        results = client.search("inception")

        assert [r.media_type for r in results] == [MediaType.MOVIE, MediaType.TV, MediaType.PERSON]
        assert [r.title for r in titles_only(results)] == ["Inception", "Breaking Bad"]
        assert "query=inception" in responses.calls[0].request.url


class TestErrors:
    @responses.activate
    def test_server_error(self, client):
        responses.add(responses.GET, f"{API}/trending/movie/week", status=500)
        with pytest.raises(TmdbError, match="500"):
            client.fetch_trending("movie")

    @responses.activate
    def test_invalid_key(self, client):
        responses.add(responses.GET, f"{API}/trending/movie/week", status=401)
        with pytest.raises(TmdbError, match="API key"):
            client.fetch_trending("movie")

    @responses.activate
    def test_network_error(self, client):
        responses.add(
            responses.GET,
            f"{API}/trending/movie/week",
            body=requests.exceptions.Timeout("Request timeout"),
        )
        with pytest.raises(TmdbError, match="Cannot connect"):
            client.fetch_trending("movie")

    @responses.activate
    def test_undecodable_body(self, client):
        responses.add(responses.GET, f"{API}/trending/movie/week", body="<html>", status=200)
        with pytest.raises(TmdbError, match="Invalid response"):
            client.fetch_trending("movie")

    @responses.activate
    def test_non_object_body(self, client):
        responses.add(responses.GET, f"{API}/trending/movie/week", json=[], status=200)
        with pytest.raises(TmdbError, match="expected an object"):
            client.fetch_trending("movie")

    @responses.activate
    def test_null_episode_entry(self, client):
        responses.add(
            responses.GET, f"{API}/tv/1/season/1", json={"episodes": [None]}, status=200
        )
        with pytest.raises(TmdbError, match="season payload"):
            client.fetch_season_episodes(1, 1)

    @responses.activate
    def test_null_search_result(self, client):
        responses.add(responses.GET, f"{API}/search/multi", json={"results": [None]}, status=200)
        with pytest.raises(TmdbError, match="search payload"):
            client.search("anything")

    @responses.activate
    def test_null_trending_result(self, client):
        responses.add(
            responses.GET, f"{API}/trending/tv/week", json={"results": [None]}, status=200
        )
        with pytest.raises(TmdbError, match="trending payload"):
            client.fetch_trending("tv")


class TestWatchProviders:
    @responses.activate
    def test_fetch_watch_providers(self, client):
        responses.add(
            responses.GET,
            f"{API}/tv/1396/watch/providers",
            json={
                "id": 1396,
                "results": {
                    "US": {
                        "link": "https://www.themoviedb.org/tv/1396/watch?locale=US",
                        "flatrate": [{"provider_id": 8, "provider_name": "Netflix", "logo_path": "/n.jpg"}],
                        "buy": [{"provider_id": 2, "provider_name": "Apple TV", "logo_path": "/a.jpg"}],
                    },
                    "GB": {"link": "https://example.com", "rent": []},
                },
            },
            status=200,
        )

        results = client.fetch_watch_providers("tv", 1396)

        assert set(results) == {"US", "GB"}
        assert results["US"].flatrate[0].provider_name == "Netflix"
        assert results["US"].rent == []
        assert results["US"].buy[0].logo_url == "https://image.tmdb.org/t/p/w500/a.jpg"
