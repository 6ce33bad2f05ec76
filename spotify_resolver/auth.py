import base64
import logging
from typing import Any, Dict

import httpx

from .exceptions import AuthRenewalError

logger = logging.getLogger(__name__)

SPOTIFY_ACCOUNTS_BASE_URL = "https://accounts.spotify.com"


def basic_authorization(client_id: str, client_secret: str) -> str:
    """Return base64("client_id:client_secret") for the token endpoint's Basic header."""

    raw = f"{client_id}:{client_secret}".encode("utf-8")
    return base64.b64encode(raw).decode("ascii")


def check_spotify_credentials(config: Dict[str, Any]) -> Dict[str, Any]:
    """Validate the client-credentials fields of a config dict and return a structured status dict."""

    config = config or {}
    client_id = str(config.get("spotify_client_id", "") or "").strip()
    client_secret = str(config.get("spotify_client_secret", "") or "").strip()

    missing = [
        key
        for key, value in (("spotify_client_id", client_id), ("spotify_client_secret", client_secret))
        if not value
    ]
    if missing:
        return {
            "ok": False,
            "client_id": client_id,
            "missing": missing,
            "message": (
                f"Missing {', '.join(missing)} in config.json.\n"
                "Create an app at https://developer.spotify.com/dashboard and copy its Client ID and Client Secret."
            ),
        }

    return {
        "ok": True,
        "client_id": client_id,
        "missing": [],
        "message": "Spotify credentials look OK.",
    }


class ClientCredentialsAuth:
    """Spotify client-credentials grant (app-only token, no user context)."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        *,
        http_client: httpx.AsyncClient,
        accounts_base_url: str = SPOTIFY_ACCOUNTS_BASE_URL,
        timeout: float = 30.0,
    ):
        self.client_id = client_id
        # Fixed for the lifetime of this object; the secret itself is not kept.
        self.authorization = basic_authorization(client_id, client_secret)
        self.http_client = http_client
        self.token_url = f"{accounts_base_url.rstrip('/')}/api/token"
        self.timeout = timeout

    async def request_token(self) -> Dict[str, Any]:
        """Run the credential-grant exchange and return the raw token response.

        Spotify returns:
        - access_token
        - token_type ("Bearer")
        - expires_in (seconds, currently 3600)
        """

        logger.debug("Requesting client-credentials token for client %s", self.client_id)
        payload = await self._post_form({"grant_type": "client_credentials"})
        access_token = payload.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise AuthRenewalError("Spotify token response had no access_token", details={"keys": sorted(payload)})
        return payload

    async def _post_form(self, form: Dict[str, Any]) -> Dict[str, Any]:
        data = {k: str(v) for k, v in (form or {}).items() if v is not None}

        try:
            resp = await self.http_client.post(
                self.token_url,
                data=data,
                headers={
                    "Authorization": f"Basic {self.authorization}",
                    "Content-Type": "application/x-www-form-urlencoded",
                },
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            raise AuthRenewalError(f"Spotify token request failed: {e}") from e

        if not resp.is_success:
            raise AuthRenewalError(
                f"Spotify token request failed (HTTP {resp.status_code}): {resp.text}",
                status_code=resp.status_code,
            )

        try:
            payload = resp.json()
        except ValueError as e:
            # JSONDecodeError and UnicodeDecodeError are both ValueErrors
            raise AuthRenewalError(f"Spotify token response was not JSON: {resp.text}", status_code=resp.status_code) from e

        if not isinstance(payload, dict):
            raise AuthRenewalError(f"Spotify token response was not an object: {payload}", status_code=resp.status_code)

        return payload
