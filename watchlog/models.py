"""Data models for library items, episodes and catalog records."""

import uuid
from dataclasses import dataclass, asdict, field
from datetime import date, datetime
from enum import Enum
from typing import List, Optional

IMAGE_BASE_URL = "https://image.tmdb.org/t/p"


class MediaType(str, Enum):
    """Catalog media types."""

    MOVIE = "movie"
    TV = "tv"
    PERSON = "person"


class StatusKind(str, Enum):
    """The five watch states."""

    NOT_IN_WATCHLIST = "not_in_watchlist"
    WATCHING = "watching"
    WATCHED = "watched"
    ON_HOLD = "on_hold"
    DROPPED = "dropped"

    @property
    def display_title(self) -> str:
        return {
            StatusKind.NOT_IN_WATCHLIST: "Plan to Watch",
            StatusKind.WATCHING: "Watching",
            StatusKind.WATCHED: "Completed",
            StatusKind.ON_HOLD: "On Hold",
            StatusKind.DROPPED: "Dropped",
        }[self]


def _clamp(progress: float) -> float:
    progress = float(progress)
    if progress != progress:  # NaN
        return 0.0
    return min(1.0, max(0.0, progress))


@dataclass(frozen=True)
class WatchStatus:
    """Watch state of a library item.

    ``progress`` is carried for every kind so that ON_HOLD can keep the value
    it had before pausing; it is only meaningful while WATCHING.
    """

    kind: StatusKind = StatusKind.NOT_IN_WATCHLIST
    progress: float = 0.0

    def __post_init__(self):
        object.__setattr__(self, "progress", _clamp(self.progress))

    @classmethod
    def not_in_watchlist(cls) -> "WatchStatus":
        return cls(StatusKind.NOT_IN_WATCHLIST, 0.0)

    @classmethod
    def watching(cls, progress: float) -> "WatchStatus":
        return cls(StatusKind.WATCHING, progress)

    @classmethod
    def watched(cls) -> "WatchStatus":
        return cls(StatusKind.WATCHED, 1.0)

    @classmethod
    def on_hold(cls, progress: float = 0.0) -> "WatchStatus":
        return cls(StatusKind.ON_HOLD, progress)

    @classmethod
    def dropped(cls) -> "WatchStatus":
        return cls(StatusKind.DROPPED, 0.0)

    @classmethod
    def from_progress(cls, progress: float) -> "WatchStatus":
        """Derive a status from an episode roll-up fraction."""
        progress = _clamp(progress)
        if progress >= 1.0:
            return cls.watched()
        if progress > 0:
            return cls.watching(progress)
        return cls.not_in_watchlist()

    def transition_to(self, requested: "WatchStatus") -> "WatchStatus":
        """Return ``requested`` with the forced-progress rules applied.

        WATCHED forces 1.0, DROPPED and NOT_IN_WATCHLIST force 0.0, ON_HOLD
        keeps the current progress and WATCHING keeps the requested fraction.
        """
        kind = requested.kind
        if kind == StatusKind.WATCHED:
            return WatchStatus.watched()
        if kind == StatusKind.ON_HOLD:
            return WatchStatus.on_hold(self.progress)
        if kind == StatusKind.WATCHING:
            return WatchStatus.watching(requested.progress)
        return WatchStatus(kind, 0.0)

    def to_dict(self) -> dict:
        return {"type": self.kind.value, "progress": self.progress}

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "WatchStatus":
        if not data:
            return cls.not_in_watchlist()
        try:
            kind = StatusKind(data.get("type"))
        except ValueError:
            return cls.not_in_watchlist()
        return cls(kind, data.get("progress", 0.0) or 0.0)

    def __str__(self) -> str:
        if self.kind == StatusKind.WATCHING:
            return f"{self.kind.display_title} ({self.progress:.0%})"
        return self.kind.display_title


def image_url(path: Optional[str], size: str = "w500") -> Optional[str]:
    """Build a TMDB image URL from an opaque image path."""
    if not path:
        return None
    return f"{IMAGE_BASE_URL}/{size}{path}"


def parse_date(value: Optional[str]) -> Optional[date]:
    """Parse a catalog ``YYYY-MM-DD`` date, returning None when empty or invalid."""
    if not value:
        return None
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except (TypeError, ValueError):
        return None


def _format_date(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass
class Episode:
    """An episode of a show, unique by (season_number, episode_number)."""

    season_number: int
    episode_number: int
    name: str = ""
    overview: str = ""
    air_date: Optional[date] = None
    still_path: Optional[str] = None
    is_watched: bool = False
    rating: int = 0
    tmdb_id: Optional[int] = None

    @property
    def key(self) -> tuple:
        return (self.season_number, self.episode_number)

    @property
    def still_url(self) -> Optional[str]:
        return image_url(self.still_path)

    def to_dict(self) -> dict:
        """Convert to dictionary for YAML serialization."""
        data = asdict(self)
        data["air_date"] = _format_date(self.air_date)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Episode":
        """Reconstruct from dictionary."""
        data = dict(data)
        if isinstance(data.get("air_date"), str):
            data["air_date"] = parse_date(data["air_date"])
        return cls(**data)

    @classmethod
    def from_api(cls, raw: dict) -> "Episode":
        """Build an episode from a season response entry."""
        return cls(
            season_number=raw.get("season_number", 0),
            episode_number=raw.get("episode_number", 0),
            name=raw.get("name") or "",
            overview=raw.get("overview") or "",
            air_date=parse_date(raw.get("air_date")),
            still_path=raw.get("still_path"),
            tmdb_id=raw.get("id"),
        )


@dataclass
class LibraryItem:
    """A movie or show in the user's library."""

    tmdb_id: int
    media_type: MediaType
    title: str
    overview: str = ""
    poster_path: Optional[str] = None
    backdrop_path: Optional[str] = None
    release_date: Optional[date] = None
    rating: int = 0
    status: WatchStatus = field(default_factory=WatchStatus)

    # Movie-specific
    runtime: Optional[int] = None

    # Show-specific
    number_of_seasons: int = 0
    number_of_episodes: int = 0
    show_status: Optional[str] = None
    episodes: List[Episode] = field(default_factory=list)

    genres: List[str] = field(default_factory=list)
    local_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    added_at: datetime = field(default_factory=datetime.now)

    @property
    def key(self) -> tuple:
        return (self.media_type, self.tmdb_id)

    @property
    def is_show(self) -> bool:
        return self.media_type == MediaType.TV

    @property
    def progress(self) -> float:
        return self.status.progress

    @property
    def is_watched(self) -> bool:
        return self.status.kind == StatusKind.WATCHED

    @property
    def is_watching(self) -> bool:
        return self.status.kind == StatusKind.WATCHING

    @property
    def poster_url(self) -> Optional[str]:
        return image_url(self.poster_path)

    @property
    def backdrop_url(self) -> Optional[str]:
        return image_url(self.backdrop_path, size="w1280")

    @property
    def watched_episode_count(self) -> int:
        return sum(1 for episode in self.episodes if episode.is_watched)

    def find_episode(self, season: int, episode: int) -> Optional[Episode]:
        for stored in self.episodes:
            if stored.key == (season, episode):
                return stored
        return None

    def to_dict(self) -> dict:
        """Convert to dictionary for YAML serialization."""
        data = {
            "tmdb_id": self.tmdb_id,
            "media_type": self.media_type.value,
            "local_id": self.local_id,
            "title": self.title,
            "overview": self.overview,
            "poster_path": self.poster_path,
            "backdrop_path": self.backdrop_path,
            "release_date": _format_date(self.release_date),
            "rating": self.rating,
            "status": self.status.to_dict(),
            "genres": list(self.genres),
            "added_at": self.added_at.isoformat(),
        }
        if self.is_show:
            data["number_of_seasons"] = self.number_of_seasons
            data["number_of_episodes"] = self.number_of_episodes
            data["show_status"] = self.show_status
            data["episodes"] = [episode.to_dict() for episode in self.episodes]
        else:
            data["runtime"] = self.runtime
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "LibraryItem":
        """Reconstruct from dictionary."""
        data = dict(data)
        data["media_type"] = MediaType(data["media_type"])
        data["status"] = WatchStatus.from_dict(data.get("status"))
        data["episodes"] = [
            Episode.from_dict(episode) for episode in data.get("episodes") or []
        ]
        if isinstance(data.get("release_date"), str):
            data["release_date"] = parse_date(data["release_date"])
        if isinstance(data.get("added_at"), str):
            data["added_at"] = datetime.fromisoformat(data["added_at"])
        return cls(**data)


@dataclass
class TitleSummary:
    """A row from trending or search results."""

    tmdb_id: int
    media_type: MediaType
    title: str
    overview: str = ""
    poster_path: Optional[str] = None
    backdrop_path: Optional[str] = None
    release_date: Optional[str] = None
    vote_average: Optional[float] = None

    @property
    def is_title(self) -> bool:
        return self.media_type in (MediaType.MOVIE, MediaType.TV)

    @property
    def display_date(self) -> str:
        return self.release_date or "Unknown"

    @property
    def poster_url(self) -> Optional[str]:
        return image_url(self.poster_path)

    @classmethod
    def from_api(cls, raw: dict, media_type: Optional[MediaType] = None) -> "TitleSummary":
        """Parse a movie, tv or person result.

        Movies use ``title``/``release_date``; shows and people use
        ``name``/``first_air_date``.
        """
        if media_type is None:
            media_type = MediaType(raw.get("media_type"))
        if media_type == MediaType.MOVIE:
            title = raw.get("title")
            released = raw.get("release_date")
        else:
            title = raw.get("name")
            released = raw.get("first_air_date")
        return cls(
            tmdb_id=raw["id"],
            media_type=media_type,
            title=title or "Unknown",
            overview=raw.get("overview") or "",
            poster_path=raw.get("poster_path") or raw.get("profile_path"),
            backdrop_path=raw.get("backdrop_path"),
            release_date=released or None,
            vote_average=raw.get("vote_average"),
        )


@dataclass
class SeasonSummary:
    """A season entry from show detail."""

    season_number: int
    name: str
    episode_count: int
    poster_path: Optional[str] = None


@dataclass
class TitleDetail:
    """Full catalog record for a movie or show."""

    tmdb_id: int
    media_type: MediaType
    title: str
    overview: str = ""
    poster_path: Optional[str] = None
    backdrop_path: Optional[str] = None
    release_date: Optional[date] = None
    vote_average: Optional[float] = None
    genres: List[str] = field(default_factory=list)
    runtime: Optional[int] = None
    number_of_seasons: int = 0
    number_of_episodes: int = 0
    show_status: Optional[str] = None
    seasons: List[SeasonSummary] = field(default_factory=list)

    @classmethod
    def from_api(cls, raw: dict, media_type: MediaType) -> "TitleDetail":
        """Parse a ``/movie/{id}`` or ``/tv/{id}`` response."""
        is_movie = media_type == MediaType.MOVIE
        return cls(
            tmdb_id=raw["id"],
            media_type=media_type,
            title=(raw.get("title") if is_movie else raw.get("name")) or "Unknown",
            overview=raw.get("overview") or "",
            poster_path=raw.get("poster_path"),
            backdrop_path=raw.get("backdrop_path"),
            release_date=parse_date(
                raw.get("release_date") if is_movie else raw.get("first_air_date")
            ),
            vote_average=raw.get("vote_average"),
            genres=[genre["name"] for genre in raw.get("genres") or []],
            runtime=raw.get("runtime") if is_movie else None,
            number_of_seasons=raw.get("number_of_seasons") or 0,
            number_of_episodes=raw.get("number_of_episodes") or 0,
            show_status=None if is_movie else raw.get("status"),
            seasons=[
                SeasonSummary(
                    season_number=season.get("season_number", 0),
                    name=season.get("name") or "",
                    episode_count=season.get("episode_count") or 0,
                    poster_path=season.get("poster_path"),
                )
                for season in raw.get("seasons") or []
            ],
        )

    def to_library_item(self) -> LibraryItem:
        """Create a new library item, not yet in the watchlist."""
        return LibraryItem(
            tmdb_id=self.tmdb_id,
            media_type=self.media_type,
            title=self.title,
            overview=self.overview,
            poster_path=self.poster_path,
            backdrop_path=self.backdrop_path,
            release_date=self.release_date,
            runtime=self.runtime,
            number_of_seasons=self.number_of_seasons,
            number_of_episodes=self.number_of_episodes,
            show_status=self.show_status,
            genres=list(self.genres),
        )


@dataclass
class Provider:
    """A streaming, rental or purchase offer source."""

    provider_id: int
    provider_name: str
    logo_path: Optional[str] = None

    @property
    def logo_url(self) -> Optional[str]:
        return image_url(self.logo_path)

    @classmethod
    def from_api(cls, raw: dict) -> "Provider":
        return cls(
            provider_id=raw["provider_id"],
            provider_name=raw.get("provider_name", ""),
            logo_path=raw.get("logo_path"),
        )


@dataclass
class CountryProviders:
    """Offers for one region, split by offer type."""

    link: Optional[str] = None
    flatrate: List[Provider] = field(default_factory=list)
    rent: List[Provider] = field(default_factory=list)
    buy: List[Provider] = field(default_factory=list)

    @classmethod
    def from_api(cls, raw: dict) -> "CountryProviders":
        return cls(
            link=raw.get("link"),
            flatrate=[Provider.from_api(p) for p in raw.get("flatrate") or []],
            rent=[Provider.from_api(p) for p in raw.get("rent") or []],
            buy=[Provider.from_api(p) for p in raw.get("buy") or []],
        )
