"""Watch status and episode progress tracking."""

import copy
import logging
import threading
from contextlib import contextmanager
from typing import Dict, Iterable, Optional

from watchlog.models import (
    Episode,
    LibraryItem,
    MediaType,
    StatusKind,
    TitleDetail,
    WatchStatus,
)
from watchlog.storage import ItemKey, LibraryStore, StorageError

logger = logging.getLogger(__name__)

MAX_RATING = 5

# Explicit user choices that an empty episode roll-up does not override.
_STICKY_KINDS = (StatusKind.ON_HOLD, StatusKind.DROPPED)


def _validate_rating(rating: int) -> int:
    if isinstance(rating, bool) or not isinstance(rating, int):
        raise ValueError(f"Rating must be an integer, got {rating!r}")
    if not 0 <= rating <= MAX_RATING:
        raise ValueError(f"Rating must be between 0 and {MAX_RATING}, got {rating}")
    return rating


class WatchProgressTracker:
    """Applies watch status changes and episode progress to library items.

    Each mutation is a read-modify-write of one item held under that item's
    lock and persisted with a single store write. When the write fails the
    store keeps the previous record and the error propagates.

    Args:
        store: The library store.
        catalog: Optional catalog client used to fill in metadata of episodes
            that are not stored yet.
    """

    def __init__(self, store: LibraryStore, catalog=None):
        self.store = store
        self.catalog = catalog
        self._locks: Dict[ItemKey, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @contextmanager
    def _item_lock(self, key: ItemKey):
        with self._locks_guard:
            lock = self._locks.setdefault(key, threading.Lock())
        with lock:
            yield

    def _save(self, item: LibraryItem, action: str) -> LibraryItem:
        try:
            self.store.save_item(item)
        except StorageError as e:
            logger.error("Failed to %s for %s (%s): %s", action, item.title, item.tmdb_id, e)
            raise
        return item

    def add_to_library(self, detail: TitleDetail) -> LibraryItem:
        """Add a title from catalog detail, or refresh it if already stored.

        New items start with no explicit status (NOT_IN_WATCHLIST).
        """
        item = detail.to_library_item()
        with self._item_lock(item.key):
            try:
                stored = self.store.upsert_item(item)
            except StorageError as e:
                logger.error("Failed to add %s (%s): %s", item.title, item.tmdb_id, e)
                raise
        logger.info("Added %s %s (%s) to library", item.media_type.value, item.title, item.tmdb_id)
        return stored

    def remove_from_library(self, kind, tmdb_id: int) -> bool:
        """Delete an item together with its episodes."""
        key = (MediaType(kind), int(tmdb_id))
        with self._item_lock(key):
            removed = self.store.delete_item(kind, tmdb_id)
        with self._locks_guard:
            self._locks.pop(key, None)
        if removed:
            logger.info("Removed %s %s from library", key[0].value, tmdb_id)
        return removed

    def set_status(self, item: LibraryItem, status: WatchStatus) -> LibraryItem:
        """Set an item's watch status.

        Every status is accepted from every state. WATCHED forces progress to
        1.0, DROPPED and NOT_IN_WATCHLIST force 0.0, ON_HOLD keeps the current
        progress. For a show with a known episode count, WATCHING takes its
        progress from the watched episodes instead of the requested value.

        Returns the updated item.
        """
        with self._item_lock(item.key):
            current = self.store.require_item(item.media_type, item.tmdb_id)
            requested = status
            if (
                status.kind == StatusKind.WATCHING
                and current.is_show
                and current.number_of_episodes > 0
            ):
                requested = WatchStatus.watching(
                    current.watched_episode_count / current.number_of_episodes
                )

            current.status = current.status.transition_to(requested)
            self._save(current, "update watch status")

        logger.info("Set %s (%s) to %s", current.title, current.tmdb_id, current.status)
        return current

    def record_episode_watched(
        self,
        item: LibraryItem,
        season: int,
        episode: int,
        watched: bool = True,
    ) -> LibraryItem:
        """Set an episode's watched flag and re-derive the show's status.

        The episode is created if it is not stored yet. Progress becomes
        watched / number_of_episodes; the status follows from it, except that
        a show with zero watched episodes keeps an explicit ON_HOLD or DROPPED
        status. With an unknown episode count only the flag is stored.

        Returns the updated show.
        """
        if not item.is_show:
            raise ValueError("Episodes can only be recorded for shows")

        metadata = self._episode_metadata(item, season, episode)

        with self._item_lock(item.key):
            show = self.store.require_item(MediaType.TV, item.tmdb_id)
            stored = show.find_episode(season, episode)
            if stored is None:
                stored = metadata
                show.episodes.append(stored)
            stored.is_watched = watched
            self._roll_up(show)
            self._save(show, "update episode status")

        logger.info(
            "Marked %s S%02dE%02d %s; show is %s",
            show.title,
            season,
            episode,
            "watched" if watched else "unwatched",
            show.status,
        )
        return show

    def _episode_metadata(self, item: LibraryItem, season: int, episode: int) -> Episode:
        """Metadata for an episode that may not be stored yet.

        Catalog errors propagate before anything is changed.
        """
        if self.store.get_episode(item.tmdb_id, season, episode) is not None:
            return Episode(season, episode)
        if self.catalog is not None:
            for fetched in self.catalog.fetch_season_episodes(item.tmdb_id, season):
                if fetched.key == (season, episode):
                    return fetched
            logger.debug(
                "S%02dE%02d of %s not in catalog season data", season, episode, item.tmdb_id
            )
        return Episode(season, episode)

    @staticmethod
    def _roll_up(show: LibraryItem) -> None:
        total = show.number_of_episodes
        if total <= 0:
            return
        progress = min(1.0, show.watched_episode_count / total)
        derived = WatchStatus.from_progress(progress)
        if derived.kind == StatusKind.NOT_IN_WATCHLIST and show.status.kind in _STICKY_KINDS:
            show.status = WatchStatus(show.status.kind, 0.0)
            return
        show.status = derived

    def materialize_episodes(self, item: LibraryItem, episodes: Iterable[Episode]) -> LibraryItem:
        """Store fetched episode metadata, keeping watched flags and ratings."""
        if not item.is_show:
            raise ValueError("Episodes can only be stored for shows")

        with self._item_lock(item.key):
            show = self.store.require_item(MediaType.TV, item.tmdb_id)
            for fetched in episodes:
                stored = show.find_episode(*fetched.key)
                if stored is None:
                    stored = copy.deepcopy(fetched)
                    stored.is_watched = False
                    stored.rating = 0
                    show.episodes.append(stored)
                    continue
                stored.name = fetched.name
                stored.overview = fetched.overview
                stored.air_date = fetched.air_date
                stored.still_path = fetched.still_path
                stored.tmdb_id = fetched.tmdb_id
            show.episodes.sort(key=lambda e: e.key)
            self._save(show, "store episodes")
        return show

    def rate(self, item: LibraryItem, rating: int) -> LibraryItem:
        """Set a 0-5 rating on a movie or show; 0 clears it."""
        rating = _validate_rating(rating)
        with self._item_lock(item.key):
            current = self.store.require_item(item.media_type, item.tmdb_id)
            current.rating = rating
            self._save(current, "update rating")
        return current

    def rate_episode(self, item: LibraryItem, season: int, episode: int, rating: int) -> Episode:
        """Set a 0-5 rating on an episode, storing the episode if needed."""
        rating = _validate_rating(rating)
        if not item.is_show:
            raise ValueError("Episodes can only be rated for shows")

        metadata = self._episode_metadata(item, season, episode)
        with self._item_lock(item.key):
            show = self.store.require_item(MediaType.TV, item.tmdb_id)
            stored = show.find_episode(season, episode)
            if stored is None:
                stored = metadata
                show.episodes.append(stored)
            stored.rating = rating
            self._save(show, "update episode rating")
        return stored

    def next_episode(self, item: LibraryItem) -> Optional[Episode]:
        """The first stored episode, in season order, that is not watched."""
        for stored in self.store.episodes_for(item.tmdb_id):
            if not stored.is_watched:
                return stored
        return None
