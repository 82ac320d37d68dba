"""Metadata lookup for catalog refresh and release detection."""

from .client import (
    MetadataClient,
    MovieMetadata,
    NextEpisode,
    SeriesMetadata,
    TMDBClient,
    normalize_movie,
    normalize_season_episodes,
    normalize_series,
)

__all__ = [
    "MetadataClient",
    "MovieMetadata",
    "NextEpisode",
    "SeriesMetadata",
    "TMDBClient",
    "normalize_movie",
    "normalize_season_episodes",
    "normalize_series",
]
