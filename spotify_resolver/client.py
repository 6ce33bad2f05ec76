import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from .exceptions import CatalogLookupError, StaleTokenError
from .models import Track, format_track
from .token_manager import TokenManager

logger = logging.getLogger(__name__)

SPOTIFY_API_BASE_URL = "https://api.spotify.com/v1"


class CatalogClient:
    """Thin async Spotify catalog client for the three lookups the resolver needs.

    Every call is a single authenticated GET with the token TokenManager holds
    at that moment. Nothing is cached and nothing is retried: a 401 between
    renewal ticks surfaces as StaleTokenError.
    """

    def __init__(
        self,
        token_manager: TokenManager,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        api_base_url: str = SPOTIFY_API_BASE_URL,
        timeout: float = 30.0,
    ):
        self.token_manager = token_manager
        self.http_client = http_client or token_manager.http_client
        self.api_base_url = api_base_url.rstrip("/")
        self.timeout = timeout

    format_track = staticmethod(format_track)

    # -----------------
    # HTTP helpers
    # -----------------

    async def request_json(self, path: str) -> Dict[str, Any]:
        """GET a Spotify Web API path and return the parsed JSON object."""

        token = self.token_manager.current_token()
        if token is None:
            raise StaleTokenError(
                f"No Spotify access token available yet for {path}; the first renewal has not succeeded",
                path=path,
            )

        url = f"{self.api_base_url}{path}"
        logger.debug("GET %s", url)

        try:
            resp = await self.http_client.get(
                url,
                headers={
                    "Content-Type": "application/json",
                    "Authorization": token.authorization_header,
                },
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            raise CatalogLookupError(f"Spotify API request failed for {path}: {e}", path=path) from e

        status = resp.status_code
        if status == 401:
            raise StaleTokenError(
                f"Spotify API rejected the access token (HTTP 401) for {path}: {self._error_message(resp)}",
                path=path,
                status_code=status,
            )
        if not resp.is_success:
            raise CatalogLookupError(
                f"Spotify API error {status} for {path}: {self._error_message(resp)}",
                path=path,
                status_code=status,
            )

        try:
            payload = resp.json()
        except ValueError as e:
            # JSONDecodeError and UnicodeDecodeError are both ValueErrors
            raise CatalogLookupError(
                f"Spotify API response was not JSON (status {status}) for {path}: {resp.text}",
                path=path,
                status_code=status,
            ) from e

        if not isinstance(payload, dict):
            raise CatalogLookupError(
                f"Spotify API response was not an object for {path}: {payload!r}",
                path=path,
                status_code=status,
            )

        return payload

    @staticmethod
    def _error_message(resp: httpx.Response) -> str:
        # Spotify error bodies look like {"error": {"status": 404, "message": "..."}}
        try:
            body = resp.json()
        except ValueError:
            return resp.text
        error = body.get("error") if isinstance(body, dict) else None
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        return resp.text

    @staticmethod
    def _items(payload: Dict[str, Any], path: str) -> List[Any]:
        items = payload.get("items")
        if not isinstance(items, list):
            raise CatalogLookupError(f"Spotify API response for {path} has no items list", path=path)
        return items

    @staticmethod
    def _format(track_obj: Any, path: str) -> str:
        try:
            return format_track(Track.from_spotify(track_obj))
        except CatalogLookupError as e:
            raise CatalogLookupError(f"Unexpected track shape in {path}: {e}", path=path) from e

    # -----------------
    # Lookups
    # -----------------

    async def get_track(self, track_id: str) -> str:
        """Fetch a track and return "Artists - Title"."""

        path = f"/tracks/{quote(str(track_id), safe='')}"
        payload = await self.request_json(path)
        return self._format(payload, path)

    async def get_album_tracks(self, album_id: str) -> List[str]:
        """Fetch an album's track listing (first page) as "Artists - Title" strings."""

        path = f"/albums/{quote(str(album_id), safe='')}/tracks"
        payload = await self.request_json(path)
        return [self._format(item, path) for item in self._items(payload, path)]

    async def get_playlist_tracks(self, playlist_id: str) -> List[str]:
        """Fetch a playlist's items (first page) as "Artists - Title" strings."""

        path = f"/playlists/{quote(str(playlist_id), safe='')}/tracks"
        payload = await self.request_json(path)

        # Endpoint shape: {items: [{added_at, track: {...}}], total, ...}
        out: List[str] = []
        for item in self._items(payload, path):
            if not isinstance(item, dict):
                raise CatalogLookupError(f"Unexpected playlist item in {path}: {item!r}", path=path)
            out.append(self._format(item.get("track"), path))
        return out
