"""Tests for the season episode loader."""

import threading
from concurrent.futures import Future

from watchlog.models import Episode
from watchlog.seasons import SeasonEpisodeLoader
from watchlog.tmdb_client import TmdbError


class GatedCatalog:
    """Season fetches block until their gate is opened."""

    def __init__(self, fail=()):
        self.gates = {}
        self.fail = set(fail)

    def gate(self, show_id, season):
        return self.gates.setdefault((show_id, season), threading.Event())

    def fetch_season_episodes(self, show_id, season):
        self.gate(show_id, season).wait(timeout=5)
        if (show_id, season) in self.fail:
            raise TmdbError("Failed to load episodes")
        return [Episode(season, 1, name=f"{show_id}-S{season}E1")]


class Recorder:
    def __init__(self):
        self.loaded = []
        self.errors = []

    def on_loaded(self, season, episodes):
        self.loaded.append((season, [e.name for e in episodes]))

    def on_error(self, season, error):
        self.errors.append((season, str(error)))


def make_loader(catalog):
    recorder = Recorder()
    loader = SeasonEpisodeLoader(catalog, recorder.on_loaded, recorder.on_error)
    return loader, recorder


def test_loads_selected_season():
    catalog = GatedCatalog()
    loader, recorder = make_loader(catalog)

    catalog.gate(1396, 1).set()
    loader.select(1396, 1).result(timeout=5)
    loader.close()

    assert recorder.loaded == [(1, ["1396-S1E1"])]
    assert [e.name for e in loader.episodes] == ["1396-S1E1"]


def test_superseded_fetch_is_discarded():
    """Season 1 finishes after season 2 was selected and is dropped."""
    catalog = GatedCatalog()
    loader, recorder = make_loader(catalog)

    first = loader.select(1396, 1)
    second = loader.select(1396, 2)

    catalog.gate(1396, 2).set()
    second.result(timeout=5)
    catalog.gate(1396, 1).set()
    first.result(timeout=5)
    loader.close()

    assert recorder.loaded == [(2, ["1396-S2E1"])]
    assert loader.selected_season == 2
    assert [e.name for e in loader.episodes] == ["1396-S2E1"]


def test_other_show_supersedes_same_season():
    catalog = GatedCatalog()
    loader, recorder = make_loader(catalog)

    first = loader.select(1396, 1)
    second = loader.select(1399, 1)
    catalog.gate(1399, 1).set()
    second.result(timeout=5)
    catalog.gate(1396, 1).set()
    first.exception(timeout=5)
    loader.close()

    assert recorder.loaded == [(1, ["1399-S1E1"])]


def test_error_for_current_season_is_reported():
    catalog = GatedCatalog(fail=[(1396, 3)])
    loader, recorder = make_loader(catalog)

    catalog.gate(1396, 3).set()
    loader.select(1396, 3).exception(timeout=5)
    loader.close()

    assert recorder.errors == [(3, "Failed to load episodes")]
    assert recorder.loaded == []
    assert loader.episodes == []


def test_error_for_stale_season_is_dropped():
    catalog = GatedCatalog(fail=[(1396, 1)])
    loader, recorder = make_loader(catalog)

    first = loader.select(1396, 1)
    second = loader.select(1396, 2)
    catalog.gate(1396, 2).set()
    second.result(timeout=5)
    catalog.gate(1396, 1).set()
    first.exception(timeout=5)
    loader.close()

    assert recorder.errors == []
    assert recorder.loaded == [(2, ["1396-S2E1"])]


class ManualExecutor:
    """Runs submitted fetches only when the test says so."""

    def __init__(self):
        self.pending = []

    def submit(self, fn, *args):
        future = Future()
        self.pending.append((future, fn, args))
        return future

    def run(self, index):
        future, fn, args = self.pending[index]
        try:
            future.set_result(fn(*args))
        except Exception as e:
            future.set_exception(e)

    def shutdown(self, wait=True):
        pass


class CountingCatalog:
    def __init__(self):
        self.calls = 0

    def fetch_season_episodes(self, show_id, season):
        self.calls += 1
        return [Episode(season, 1, name=f"fetch-{self.calls}")]


def test_reselected_season_ignores_older_fetch():
    """Season 1, then 2, then 1 again: only the last fetch is applied."""
    executor = ManualExecutor()
    recorder = Recorder()
    loader = SeasonEpisodeLoader(
        CountingCatalog(), recorder.on_loaded, recorder.on_error, executor=executor
    )

    loader.select(1396, 1)
    loader.select(1396, 2)
    loader.select(1396, 1)

    executor.run(2)
    executor.run(1)
    executor.run(0)

    assert recorder.loaded == [(1, ["fetch-1"])]
    assert [e.name for e in loader.episodes] == ["fetch-1"]
