"""Exception hierarchy for spotify-resolver.

SpotifyResolverError (base, a RuntimeError)
    ConfigError        - config.json missing, unreadable or invalid
    AuthRenewalError   - client-credentials exchange failed
    CatalogLookupError - a track/album/playlist lookup failed (also a LookupError)
        StaleTokenError - the API rejected the bearer token, or none was available yet
"""

from typing import Any, Dict, Optional


class SpotifyResolverError(RuntimeError):
    """Base class for every error raised by this package.

    Attributes:
        message: Human-readable description.
        details: Extra context (status codes, paths, upstream payloads).
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


class ConfigError(SpotifyResolverError):
    pass


class AuthRenewalError(SpotifyResolverError):
    """Raised by TokenManager.renew() when the token endpoint does not hand out a token.

    Scheduled renewals catch this, log it and keep the previous token.
    """

    def __init__(self, message: str, *, status_code: Optional[int] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.status_code = status_code


class CatalogLookupError(SpotifyResolverError, LookupError):
    """A catalog request failed or returned a body of unexpected shape."""

    def __init__(
        self,
        message: str,
        *,
        path: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.path = path
        self.status_code = status_code


class StaleTokenError(CatalogLookupError):
    """The request was not authorized: token expired, revoked, or not issued yet."""
