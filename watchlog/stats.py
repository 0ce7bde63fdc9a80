"""Library statistics."""

from dataclasses import dataclass
from typing import List

from watchlog.models import LibraryItem, MediaType, StatusKind
from watchlog.storage import LibraryStore

# Runtime assumed for every episode when estimating TV watch time.
EPISODE_MINUTES = 40


@dataclass
class LibraryStats:
    """Aggregated library statistics."""

    total_movies: int
    watched_movies: int
    average_movie_rating: float
    total_shows: int
    watching_shows: int
    completed_shows: int
    on_hold_shows: int
    dropped_shows: int
    average_show_rating: float
    movie_minutes: int
    tv_minutes: int


def average_rating(items: List[LibraryItem]) -> float:
    """Mean rating over rated items; 0.0 when nothing is rated."""
    rated = [item.rating for item in items if item.rating > 0]
    if not rated:
        return 0.0
    return sum(rated) / len(rated)


def watched_episodes(show: LibraryItem) -> int:
    """Episodes counted as watched, from the roll-up when flags are incomplete."""
    if show.is_watched:
        return max(show.number_of_episodes, show.watched_episode_count)
    return show.watched_episode_count


def compute_stats(items: List[LibraryItem]) -> LibraryStats:
    movies = [i for i in items if i.media_type == MediaType.MOVIE]
    shows = [i for i in items if i.media_type == MediaType.TV]

    def count(kind: StatusKind) -> int:
        return sum(1 for show in shows if show.status.kind == kind)

    return LibraryStats(
        total_movies=len(movies),
        watched_movies=sum(1 for m in movies if m.is_watched),
        average_movie_rating=average_rating(movies),
        total_shows=len(shows),
        watching_shows=count(StatusKind.WATCHING),
        completed_shows=count(StatusKind.WATCHED),
        on_hold_shows=count(StatusKind.ON_HOLD),
        dropped_shows=count(StatusKind.DROPPED),
        average_show_rating=average_rating(shows),
        movie_minutes=sum(m.runtime or 0 for m in movies if m.is_watched),
        tv_minutes=sum(watched_episodes(s) for s in shows) * EPISODE_MINUTES,
    )


def library_stats(store: LibraryStore) -> LibraryStats:
    """Compute statistics over everything in the store."""
    return compute_stats(store.query())


def format_watch_time(minutes: int) -> str:
    hours = minutes // 60
    if hours > 24:
        return f"{hours // 24} days"
    return f"{hours} hours"
