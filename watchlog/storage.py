"""YAML storage for the watch library."""

import copy
import logging
import os
import tempfile
import threading
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

import yaml

from watchlog.models import Episode, LibraryItem, MediaType

logger = logging.getLogger(__name__)

ItemKey = Tuple[MediaType, int]


class StorageError(Exception):
    """Library file could not be read or written."""

    pass


class ItemNotFoundError(LookupError):
    """No library item with the requested id."""

    pass


def item_key(kind, tmdb_id: int) -> ItemKey:
    return (MediaType(kind), int(tmdb_id))


class LibraryStore:
    """Manages library items in a single YAML file.

    Items are keyed by (media type, TMDB id). Every mutation rewrites the file
    atomically; if the write fails the in-memory record is restored so that
    readers never see a state that is not on disk. Readers get copies.
    """

    def __init__(self, data_dir: Optional[Path] = None):
        """Initialize library store."""
        if data_dir is None:
            data_dir = Path.cwd() / "data"
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.library_path = self.data_dir / "library.yaml"

        self._lock = threading.RLock()
        self._items: Optional[Dict[ItemKey, LibraryItem]] = None

    def _load(self) -> Dict[ItemKey, LibraryItem]:
        if self._items is not None:
            return self._items

        items = {}
        if self.library_path.exists():
            try:
                with open(self.library_path) as f:
                    data = yaml.safe_load(f)
            except (OSError, yaml.YAMLError) as e:
                raise StorageError(f"Cannot read {self.library_path}: {e}")

            data = data or {}
            for section in ("movies", "shows"):
                for raw in data.get(section) or []:
                    try:
                        item = LibraryItem.from_dict(raw)
                    except (KeyError, TypeError, ValueError) as e:
                        raise StorageError(f"Malformed {section} entry in {self.library_path}: {e}")
                    items[item.key] = item

        self._items = items
        return items

    def _write(self) -> None:
        """Write all items to a temp file and move it into place."""
        items = sorted(self._items.values(), key=lambda i: (i.title.lower(), i.tmdb_id))
        data = {
            "library_metadata": {
                "last_updated": datetime.now().isoformat(),
                "total_items": len(items),
            },
            "movies": [i.to_dict() for i in items if i.media_type == MediaType.MOVIE],
            "shows": [i.to_dict() for i in items if i.media_type == MediaType.TV],
        }

        try:
            fd, tmp_path = tempfile.mkstemp(
                dir=self.data_dir, prefix=".library-", suffix=".yaml"
            )
        except OSError as e:
            raise StorageError(f"Cannot write {self.library_path}: {e}")

        try:
            with os.fdopen(fd, "w") as f:
                yaml.dump(
                    data,
                    f,
                    default_flow_style=False,
                    allow_unicode=True,
                    sort_keys=False,
                    indent=2,
                )
            os.replace(tmp_path, self.library_path)
            logger.debug("Wrote %d items to %s", len(items), self.library_path)
        except (OSError, yaml.YAMLError) as e:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise StorageError(f"Cannot write {self.library_path}: {e}")

    def _commit(self, key: ItemKey, item: Optional[LibraryItem]) -> None:
        """Replace (or remove, when ``item`` is None) one record and persist."""
        items = self._load()
        previous = items.get(key)
        if item is None:
            items.pop(key, None)
        else:
            items[key] = copy.deepcopy(item)

        try:
            self._write()
        except StorageError:
            if previous is None:
                items.pop(key, None)
            else:
                items[key] = previous
            raise

    def get_item(self, kind, tmdb_id: int) -> Optional[LibraryItem]:
        """Return a copy of the item, or None if it is not in the library."""
        with self._lock:
            item = self._load().get(item_key(kind, tmdb_id))
            return copy.deepcopy(item) if item else None

    def require_item(self, kind, tmdb_id: int) -> LibraryItem:
        """Return a copy of the item or raise ItemNotFoundError."""
        item = self.get_item(kind, tmdb_id)
        if item is None:
            raise ItemNotFoundError(f"No {MediaType(kind).value} with id {tmdb_id} in library")
        return item

    def save_item(self, item: LibraryItem) -> None:
        """Store the whole record in one write."""
        with self._lock:
            self._commit(item.key, item)

    def upsert_item(self, item: LibraryItem) -> LibraryItem:
        """Insert a new item or refresh catalog metadata of an existing one.

        User state on an existing record (local id, status, rating, episodes,
        added date) is preserved.
        """
        with self._lock:
            existing = self._load().get(item.key)
            if existing is not None:
                merged = copy.deepcopy(item)
                merged.local_id = existing.local_id
                merged.status = existing.status
                merged.rating = existing.rating
                merged.episodes = copy.deepcopy(existing.episodes)
                merged.added_at = existing.added_at
                item = merged
            self._commit(item.key, item)
            return copy.deepcopy(item)

    def delete_item(self, kind, tmdb_id: int) -> bool:
        """Delete an item and its episodes. Returns False if it was not stored."""
        key = item_key(kind, tmdb_id)
        with self._lock:
            if key not in self._load():
                return False
            self._commit(key, None)
            return True

    def query(
        self,
        predicate: Optional[Callable[[LibraryItem], bool]] = None,
        media_type=None,
    ) -> List[LibraryItem]:
        """Return copies of items matching a media type and predicate, by title."""
        wanted = MediaType(media_type) if media_type is not None else None
        with self._lock:
            items = [
                item
                for item in self._load().values()
                if (wanted is None or item.media_type == wanted)
                and (predicate is None or predicate(item))
            ]
            items.sort(key=lambda i: (i.title.lower(), i.tmdb_id))
            return copy.deepcopy(items)

    def get_episode(self, show_id: int, season: int, episode: int) -> Optional[Episode]:
        """Return a copy of a stored episode, or None."""
        with self._lock:
            show = self._load().get(item_key(MediaType.TV, show_id))
            if show is None:
                return None
            stored = show.find_episode(season, episode)
            return copy.deepcopy(stored) if stored else None

    def episodes_for(self, show_id: int, season: Optional[int] = None) -> List[Episode]:
        """Return copies of a show's stored episodes in (season, episode) order."""
        with self._lock:
            show = self._load().get(item_key(MediaType.TV, show_id))
            if show is None:
                return []
            episodes = [
                e for e in show.episodes if season is None or e.season_number == season
            ]
            return copy.deepcopy(sorted(episodes, key=lambda e: e.key))

    def count(self) -> int:
        with self._lock:
            return len(self._load())
