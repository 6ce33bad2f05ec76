import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx
import schedule

from .auth import SPOTIFY_ACCOUNTS_BASE_URL, ClientCredentialsAuth
from .exceptions import AuthRenewalError

logger = logging.getLogger(__name__)

# Client-credentials tokens are issued for 3600s; renew with a 5 minute margin.
DEFAULT_REFRESH_INTERVAL = 55 * 60
DEFAULT_POLL_INTERVAL = 1.0


@dataclass(frozen=True)
class TokenInfo:
    """Canonical token payload held by TokenManager."""

    access_token: str
    token_type: str
    expires_at: float
    scope: Optional[str] = None

    @staticmethod
    def from_spotify_token_response(payload: Dict[str, Any], *, now: Optional[float] = None) -> "TokenInfo":
        """Convert Spotify token response JSON into TokenInfo.

        Spotify returns:
        - access_token
        - token_type
        - expires_in (seconds)
        - scope (absent for client-credentials tokens)
        """

        now_ts = float(time.time() if now is None else now)
        expires_in = float(payload.get("expires_in", 0) or 0)

        return TokenInfo(
            access_token=str(payload.get("access_token", "")),
            token_type=str(payload.get("token_type") or "Bearer"),
            expires_at=now_ts + expires_in,
            scope=payload.get("scope"),
        )

    @property
    def authorization_header(self) -> str:
        return f"{self.token_type} {self.access_token}"

    def is_expired(self, *, skew_seconds: int = 60, now: Optional[float] = None) -> bool:
        now_ts = time.time() if now is None else now
        return now_ts >= float(self.expires_at) - float(skew_seconds)


class TokenManager:
    """Keeps an app-only Spotify token fresh without caller involvement.

    The current token is None until the first renewal succeeds. Each renewal
    replaces it as a whole; a failed renewal leaves it untouched and is
    recorded in ``last_error``. Renewals run on a ``schedule.Scheduler`` that a
    background asyncio task polls every ``poll_interval`` seconds.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        refresh_interval: int = DEFAULT_REFRESH_INTERVAL,
        accounts_base_url: str = SPOTIFY_ACCOUNTS_BASE_URL,
        timeout: float = 30.0,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ):
        if int(refresh_interval) <= 0:
            raise ValueError(f"refresh_interval must be positive, got {refresh_interval}")

        self._owns_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient(timeout=timeout, follow_redirects=False)
        self.auth = ClientCredentialsAuth(
            client_id,
            client_secret,
            http_client=self.http_client,
            accounts_base_url=accounts_base_url,
            timeout=timeout,
        )
        self.refresh_interval = int(refresh_interval)
        self.poll_interval = float(poll_interval)
        self.scheduler = schedule.Scheduler()
        self.last_error: Optional[AuthRenewalError] = None

        self._token: Optional[TokenInfo] = None
        self._runner: Optional[asyncio.Task] = None
        self._renewal: Optional[asyncio.Task] = None
        self._first_attempt = asyncio.Event()

    @property
    def client_id(self) -> str:
        return self.auth.client_id

    @property
    def authorization(self) -> str:
        return self.auth.authorization

    @property
    def running(self) -> bool:
        return self._runner is not None and not self._runner.done()

    def current_token(self) -> Optional[TokenInfo]:
        return self._token

    def access_token(self) -> Optional[str]:
        token = self._token
        return token.access_token if token is not None else None

    # -----------------
    # Renewal
    # -----------------

    async def renew(self) -> TokenInfo:
        """Exchange the client credentials for a new token and store it.

        Raises AuthRenewalError on any failure; the previous token stays in place.
        """

        payload = await self.auth.request_token()
        try:
            token = TokenInfo.from_spotify_token_response(payload)
            expires_in = float(payload.get("expires_in", 0) or 0)
        except (TypeError, ValueError) as e:
            raise AuthRenewalError(f"Spotify token response had invalid fields: {e}", details={"keys": sorted(payload)}) from e

        # Whole-reference swap: readers see either the old or the new token.
        self._token = token
        self.last_error = None

        logger.info("Spotify access token renewed (expires in %ds)", int(expires_in))
        if expires_in and expires_in <= self.refresh_interval:
            logger.warning(
                "Spotify token lifetime (%ds) is not longer than the renewal interval (%ds); "
                "lookups may run with an expired token",
                int(expires_in),
                self.refresh_interval,
            )
        return token

    async def _renew_quietly(self) -> None:
        try:
            await self.renew()
        except AuthRenewalError as e:
            self.last_error = e
            if self._token is None:
                logger.warning("Spotify token renewal failed, no token available yet: %s", e)
            else:
                logger.warning("Spotify token renewal failed, keeping previous token: %s", e)
        finally:
            self._first_attempt.set()

    def _trigger_renewal(self) -> None:
        if self._renewal is not None and not self._renewal.done():
            logger.debug("Spotify token renewal already in progress, skipping this tick")
            return
        self._renewal = asyncio.get_running_loop().create_task(self._renew_quietly())

    async def _run_scheduler(self) -> None:
        while True:
            self.scheduler.run_pending()
            await asyncio.sleep(self.poll_interval)

    # -----------------
    # Lifecycle
    # -----------------

    def start(self) -> None:
        """Renew now and every ``refresh_interval`` seconds afterwards.

        Must be called with a running event loop. Calling it again while
        running is a no-op.
        """

        if self.running:
            return

        loop = asyncio.get_running_loop()
        self.scheduler.clear()
        self.scheduler.every(self.refresh_interval).seconds.do(self._trigger_renewal)
        self._trigger_renewal()
        self._runner = loop.create_task(self._run_scheduler())
        logger.info("Spotify token renewal scheduled every %d seconds", self.refresh_interval)

    def stop(self) -> None:
        """Cancel the schedule and any in-flight renewal. The current token is kept."""

        self.scheduler.clear()
        for task in (self._runner, self._renewal):
            if task is not None and not task.done():
                task.cancel()
        self._runner = None
        self._renewal = None

    async def wait_until_ready(self, timeout: Optional[float] = None) -> Optional[TokenInfo]:
        """Wait for the first renewal attempt to finish and return the current token (may be None)."""

        await asyncio.wait_for(self._first_attempt.wait(), timeout)
        return self._token

    async def aclose(self) -> None:
        tasks = [t for t in (self._runner, self._renewal) if t is not None]
        self.stop()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        if self._owns_client:
            await self.http_client.aclose()
