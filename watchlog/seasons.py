"""Background loading of season episode lists."""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, List, Optional

from watchlog.models import Episode

logger = logging.getLogger(__name__)


class SeasonEpisodeLoader:
    """Loads the episode list of the selected season off the caller's thread.

    Every ``select`` supersedes the fetches started before it: when an older
    fetch completes its result (or error) is dropped, even if the same season
    was selected again in the meantime.

    Args:
        client: Catalog client providing ``fetch_season_episodes``.
        on_loaded: Called with (season, episodes) for the selected season.
        on_error: Called with (season, exception) when the selected season fails.
    """

    def __init__(
        self,
        client,
        on_loaded: Callable[[int, List[Episode]], None],
        on_error: Optional[Callable[[int, Exception], None]] = None,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        self.client = client
        self.on_loaded = on_loaded
        self.on_error = on_error
        self._executor = executor or ThreadPoolExecutor(
            max_workers=2, thread_name_prefix="season-loader"
        )
        self._owns_executor = executor is None
        self._lock = threading.Lock()
        self._generation = 0
        self.show_id: Optional[int] = None
        self.selected_season: Optional[int] = None
        self.episodes: List[Episode] = []

    def select(self, show_id: int, season: int) -> Future:
        """Select a season and start fetching its episodes."""
        with self._lock:
            self._generation += 1
            token = self._generation
            self.show_id = show_id
            self.selected_season = season

        future = self._executor.submit(self.client.fetch_season_episodes, show_id, season)
        future.add_done_callback(lambda f: self._finish(token, season, f))
        return future

    def is_latest(self, token: int) -> bool:
        with self._lock:
            return token == self._generation

    def _finish(self, token: int, season: int, future: Future) -> None:
        if not self.is_latest(token):
            logger.debug("Discarding superseded episodes for %s season %s", self.show_id, season)
            return

        error = future.exception()
        if error is not None:
            logger.warning("Failed to load %s season %s: %s", self.show_id, season, error)
            if self.on_error is not None:
                self.on_error(season, error)
            return

        episodes = future.result()
        with self._lock:
            if token != self._generation:
                return
            self.episodes = episodes
        self.on_loaded(season, episodes)

    def close(self) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=True)
