from dataclasses import dataclass
from typing import Any, Mapping, Tuple, Union

from .exceptions import CatalogLookupError


@dataclass(frozen=True)
class Artist:
    name: str

    @staticmethod
    def from_spotify(payload: Any) -> "Artist":
        if not isinstance(payload, Mapping) or not isinstance(payload.get("name"), str):
            raise CatalogLookupError(f"Spotify artist object has no name: {payload!r}")
        return Artist(name=payload["name"])


@dataclass(frozen=True)
class Track:
    """Minimal track shape: title plus credited artists in API order."""

    name: str
    artists: Tuple[Artist, ...]

    @staticmethod
    def from_spotify(payload: Any) -> "Track":
        """Build a Track from a Spotify track object.

        Spotify returns (among many other fields):
        - name
        - artists: [{name, ...}, ...]
        """

        if not isinstance(payload, Mapping):
            raise CatalogLookupError(f"Spotify track object was not an object: {payload!r}")

        name = payload.get("name")
        if not isinstance(name, str):
            raise CatalogLookupError(f"Spotify track object has no name: {payload!r}")

        artists = payload.get("artists")
        if not isinstance(artists, list):
            raise CatalogLookupError(f"Spotify track '{name}' has no artists list")

        return Track(name=name, artists=tuple(Artist.from_spotify(a) for a in artists))


def format_track(track: Union[Track, Mapping[str, Any]]) -> str:
    """Return "Artist1, Artist2 - Title" for a Track or a raw track mapping."""

    if not isinstance(track, Track):
        track = Track.from_spotify(track)
    return f"{', '.join(artist.name for artist in track.artists)} - {track.name}"
