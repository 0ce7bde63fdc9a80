"""Movie and TV watchlist tracker backed by TMDB."""

__version__ = "0.1.0"
