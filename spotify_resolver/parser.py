import asyncio
from typing import Any, Dict, List, Optional

import httpx

from .auth import check_spotify_credentials
from .client import CatalogClient
from .config import CONFIG_PATH, load_config, validate_config, with_defaults
from .exceptions import ConfigError
from .token_manager import TokenInfo, TokenManager
from .utils.logger import log_info, log_success, log_warning, setup_logging

RESOURCE_KINDS = ("track", "album", "playlist")


class SpotifyParser:
    """Turns Spotify track/album/playlist IDs into "Artists - Title" search strings.

    ``nodes`` is the audio-playback backend the strings are meant for. It is
    kept for callers and never used here.

    Built inside a running event loop, the token lifecycle starts right away.
    Otherwise call ``start()`` (or use ``async with``) once a loop is running.
    Lookups issued before the first token arrives fail with StaleTokenError.
    """

    def __init__(
        self,
        nodes: Any,
        client_id: str,
        client_secret: str,
        *,
        config: Optional[Dict[str, Any]] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        cfg = with_defaults(config)
        timeout = float(cfg["spotify_request_timeout"])

        self.nodes = nodes
        self.client_id = client_id

        self._owns_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient(timeout=timeout, follow_redirects=False)
        self.token_manager = TokenManager(
            client_id,
            client_secret,
            http_client=self.http_client,
            refresh_interval=int(cfg["spotify_token_refresh_interval"]),
            accounts_base_url=cfg["spotify_accounts_base_url"],
            timeout=timeout,
        )
        self.catalog = CatalogClient(
            self.token_manager,
            http_client=self.http_client,
            api_base_url=cfg["spotify_api_base_url"],
            timeout=timeout,
        )

        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return
        self.start()

    @classmethod
    def from_config(
        cls,
        nodes: Any,
        config: Dict[str, Any],
        *,
        configure_logging: bool = True,
        **kwargs: Any,
    ) -> "SpotifyParser":
        """Build a parser from a config dict (see config.DEFAULT_CONFIG).

        Unless configure_logging is False, log_level and log_file are applied
        to the package logger first.
        """

        status = check_spotify_credentials(config)
        if not status["ok"]:
            raise ConfigError(status["message"], details={"missing": status["missing"]})

        cfg = with_defaults(config)
        is_valid, errors = validate_config(cfg)
        if not is_valid:
            raise ConfigError(f"Invalid configuration: {', '.join(errors)}", details={"errors": errors})

        if configure_logging:
            setup_logging(cfg["log_level"], log_file=cfg["log_file"])

        return cls(nodes, cfg["spotify_client_id"], cfg["spotify_client_secret"], config=cfg, **kwargs)

    @classmethod
    def from_config_file(cls, nodes: Any, path: str = CONFIG_PATH, **kwargs: Any) -> "SpotifyParser":
        """Load config.json (see config.load_config) and build a parser from it."""

        return cls.from_config(nodes, load_config(path), **kwargs)

    # -----------------
    # Lifecycle
    # -----------------

    def start(self) -> None:
        if self.token_manager.running:
            return
        log_info(
            f"Starting Spotify token renewal for client {self.client_id} "
            f"(every {self.token_manager.refresh_interval}s)"
        )
        self.token_manager.start()

    def stop(self) -> None:
        self.token_manager.stop()

    async def wait_until_ready(self, timeout: Optional[float] = None) -> Optional[TokenInfo]:
        token = await self.token_manager.wait_until_ready(timeout)
        if token is None:
            log_warning(f"Spotify token not available after first renewal: {self.token_manager.last_error}")
        else:
            log_success("Spotify access token ready")
        return token

    async def aclose(self) -> None:
        await self.token_manager.aclose()
        if self._owns_client:
            await self.http_client.aclose()
        log_info("Spotify parser closed")

    async def __aenter__(self) -> "SpotifyParser":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    # -----------------
    # Lookups
    # -----------------

    async def get_track(self, track_id: str) -> str:
        return await self.catalog.get_track(track_id)

    async def get_album_tracks(self, album_id: str) -> List[str]:
        return await self.catalog.get_album_tracks(album_id)

    async def get_playlist_tracks(self, playlist_id: str) -> List[str]:
        return await self.catalog.get_playlist_tracks(playlist_id)

    async def resolve(self, kind: str, resource_id: str) -> List[str]:
        """Resolve an already-extracted (kind, id) pair; a track yields a one-element list."""

        kind = str(kind or "").strip().lower()
        if kind == "track":
            return [await self.get_track(resource_id)]
        if kind == "album":
            return await self.get_album_tracks(resource_id)
        if kind == "playlist":
            return await self.get_playlist_tracks(resource_id)
        raise ValueError(f"Unsupported Spotify resource kind '{kind}', expected one of {', '.join(RESOURCE_KINDS)}")
