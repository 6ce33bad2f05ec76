"""Resolve Spotify track, album and playlist IDs into "Artists - Title" strings.

Authentication uses the client-credentials grant. TokenManager renews the
app token in the background; CatalogClient performs the lookups with
whatever token is current.

Not included: URL parsing, audio playback, pagination past the first page.
"""

from .auth import ClientCredentialsAuth, basic_authorization, check_spotify_credentials
from .client import CatalogClient
from .exceptions import (
    AuthRenewalError,
    CatalogLookupError,
    ConfigError,
    SpotifyResolverError,
    StaleTokenError,
)
from .models import Artist, Track, format_track
from .parser import SpotifyParser
from .token_manager import TokenInfo, TokenManager

__version__ = "0.1.0"

__all__ = [
    "SpotifyParser",
    "CatalogClient",
    "TokenManager",
    "TokenInfo",
    "ClientCredentialsAuth",
    "basic_authorization",
    "check_spotify_credentials",
    "Artist",
    "Track",
    "format_track",
    "SpotifyResolverError",
    "ConfigError",
    "AuthRenewalError",
    "CatalogLookupError",
    "StaleTokenError",
]
