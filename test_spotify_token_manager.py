import asyncio
import base64
import os
import unittest

import httpx

# Ensure local imports work when running this file directly.
THIS_DIR = os.path.dirname(os.path.abspath(__file__))
if THIS_DIR not in os.sys.path:
    os.sys.path.insert(0, THIS_DIR)

from spotify_resolver.auth import basic_authorization, check_spotify_credentials
from spotify_resolver.exceptions import AuthRenewalError
from spotify_resolver.token_manager import TokenInfo, TokenManager


def token_response(access_token: str, expires_in: int = 3600) -> httpx.Response:
    return httpx.Response(200, json={"access_token": access_token, "token_type": "Bearer", "expires_in": expires_in})


class FakeTokenEndpoint:
    """Serves queued responses (or raises queued exceptions); the last entry repeats."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        resp = self.responses[min(len(self.requests), len(self.responses)) - 1]
        if isinstance(resp, Exception):
            raise resp
        return resp


async def wait_for(predicate, timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)


class TestSpotifyAuthHelpers(unittest.TestCase):
    def test_basic_authorization_is_base64_of_id_colon_secret(self):
        self.assertEqual(basic_authorization("abc", "xyz"), base64.b64encode(b"abc:xyz").decode("ascii"))
        self.assertEqual(basic_authorization("abc", "xyz"), "YWJjOnh5eg==")

    def test_check_spotify_credentials_reports_missing_secret(self):
        status = check_spotify_credentials({"spotify_client_id": "abc"})
        self.assertFalse(status["ok"])
        self.assertEqual(status["missing"], ["spotify_client_secret"])

        status = check_spotify_credentials({"spotify_client_id": "abc", "spotify_client_secret": "xyz"})
        self.assertTrue(status["ok"])

    def test_token_info_from_response(self):
        token = TokenInfo.from_spotify_token_response({"access_token": "at", "expires_in": 3600}, now=1000.0)
        self.assertEqual(token.access_token, "at")
        self.assertEqual(token.token_type, "Bearer")
        self.assertEqual(token.expires_at, 4600.0)
        self.assertEqual(token.authorization_header, "Bearer at")
        self.assertFalse(token.is_expired(now=2000.0))
        self.assertTrue(token.is_expired(now=4550.0))

    def test_refresh_interval_must_be_positive(self):
        with self.assertRaises(ValueError):
            TokenManager("abc", "xyz", refresh_interval=0)


class TestTokenManagerRenewal(unittest.IsolatedAsyncioTestCase):
    def make_manager(self, endpoint: FakeTokenEndpoint, **kwargs) -> TokenManager:
        client = httpx.AsyncClient(transport=httpx.MockTransport(endpoint))
        self.addAsyncCleanup(client.aclose)
        manager = TokenManager("abc", "xyz", http_client=client, **kwargs)
        self.addAsyncCleanup(manager.aclose)
        return manager

    async def test_token_is_unset_before_first_renewal(self):
        manager = self.make_manager(FakeTokenEndpoint(token_response("t1")))
        self.assertIsNone(manager.current_token())
        self.assertIsNone(manager.access_token())
        self.assertEqual(manager.authorization, "YWJjOnh5eg==")

    async def test_renew_posts_client_credentials_grant(self):
        endpoint = FakeTokenEndpoint(token_response("t1"))
        manager = self.make_manager(endpoint)

        token = await manager.renew()

        self.assertEqual(token.access_token, "t1")
        self.assertIs(manager.current_token(), token)
        self.assertEqual(len(endpoint.requests), 1)
        request = endpoint.requests[0]
        self.assertEqual(request.method, "POST")
        self.assertEqual(str(request.url), "https://accounts.spotify.com/api/token")
        self.assertEqual(request.headers["Authorization"], "Basic YWJjOnh5eg==")
        self.assertEqual(request.headers["Content-Type"], "application/x-www-form-urlencoded")
        self.assertEqual(request.content, b"grant_type=client_credentials")

    async def test_failed_renewal_keeps_previous_token(self):
        endpoint = FakeTokenEndpoint(
            token_response("t1"),
            httpx.Response(500, text="upstream down"),
        )
        manager = self.make_manager(endpoint)
        first = await manager.renew()

        with self.assertRaises(AuthRenewalError) as ctx:
            await manager.renew()

        self.assertEqual(ctx.exception.status_code, 500)
        self.assertIs(manager.current_token(), first)
        self.assertEqual(manager.access_token(), "t1")

    async def test_failed_first_renewal_leaves_token_unset(self):
        manager = self.make_manager(FakeTokenEndpoint(httpx.Response(400, json={"error": "invalid_client"})))
        with self.assertRaises(AuthRenewalError):
            await manager.renew()
        self.assertIsNone(manager.current_token())

    async def test_network_error_is_auth_renewal_error(self):
        manager = self.make_manager(FakeTokenEndpoint(httpx.ConnectError("connection refused")))
        with self.assertRaises(AuthRenewalError):
            await manager.renew()

    async def test_response_without_access_token_is_rejected(self):
        manager = self.make_manager(FakeTokenEndpoint(httpx.Response(200, json={"token_type": "Bearer"})))
        with self.assertRaises(AuthRenewalError):
            await manager.renew()
        self.assertIsNone(manager.current_token())

    async def test_non_json_response_is_rejected(self):
        manager = self.make_manager(FakeTokenEndpoint(httpx.Response(200, text="<html>")))
        with self.assertRaises(AuthRenewalError):
            await manager.renew()

    async def test_undecodable_body_is_rejected(self):
        manager = self.make_manager(FakeTokenEndpoint(httpx.Response(200, content=b"\x80garbage")))
        with self.assertRaises(AuthRenewalError):
            await manager.renew()
        self.assertIsNone(manager.current_token())

    async def test_non_numeric_expires_in_is_rejected(self):
        endpoint = FakeTokenEndpoint(
            token_response("t1"),
            httpx.Response(200, json={"access_token": "t2", "expires_in": "soon"}),
        )
        manager = self.make_manager(endpoint)
        first = await manager.renew()

        with self.assertRaises(AuthRenewalError):
            await manager.renew()
        self.assertIs(manager.current_token(), first)

    async def test_redirect_is_not_success(self):
        endpoint = FakeTokenEndpoint(
            httpx.Response(
                302,
                headers={"Location": "https://accounts.spotify.com/login"},
                json={"access_token": "t1", "token_type": "Bearer", "expires_in": 3600},
            )
        )
        manager = self.make_manager(endpoint)
        with self.assertRaises(AuthRenewalError) as ctx:
            await manager.renew()
        self.assertEqual(ctx.exception.status_code, 302)
        self.assertIsNone(manager.current_token())

    async def test_short_token_lifetime_is_logged(self):
        manager = self.make_manager(FakeTokenEndpoint(token_response("t1", expires_in=600)), refresh_interval=3300)
        with self.assertLogs("spotify_resolver.token_manager", level="WARNING") as logs:
            await manager.renew()
        self.assertIn("renewal interval", "\n".join(logs.output))


class TestTokenManagerSchedule(unittest.IsolatedAsyncioTestCase):
    def make_manager(self, endpoint: FakeTokenEndpoint, **kwargs) -> TokenManager:
        client = httpx.AsyncClient(transport=httpx.MockTransport(endpoint))
        self.addAsyncCleanup(client.aclose)
        manager = TokenManager("abc", "xyz", http_client=client, **kwargs)
        self.addAsyncCleanup(manager.aclose)
        return manager

    async def test_start_renews_immediately_and_arms_recurring_job(self):
        endpoint = FakeTokenEndpoint(token_response("t1"))
        manager = self.make_manager(endpoint, refresh_interval=3300)

        manager.start()
        token = await manager.wait_until_ready(timeout=2)

        self.assertIsNotNone(token)
        self.assertEqual(token.access_token, "t1")
        self.assertTrue(manager.running)
        self.assertEqual(len(manager.scheduler.jobs), 1)
        job = manager.scheduler.jobs[0]
        self.assertEqual(job.interval, 3300)
        self.assertEqual(job.unit, "seconds")

    async def test_start_twice_does_not_duplicate_jobs(self):
        manager = self.make_manager(FakeTokenEndpoint(token_response("t1")))
        manager.start()
        manager.start()
        await manager.wait_until_ready(timeout=2)
        self.assertEqual(len(manager.scheduler.jobs), 1)

    async def test_scheduled_tick_replaces_token(self):
        endpoint = FakeTokenEndpoint(token_response("t1"), token_response("t2"))
        manager = self.make_manager(endpoint)
        manager.start()
        await manager.wait_until_ready(timeout=2)

        manager.scheduler.run_all()
        await wait_for(lambda: manager.access_token() == "t2")

        self.assertEqual(len(endpoint.requests), 2)

    async def test_scheduled_failure_is_logged_and_schedule_survives(self):
        endpoint = FakeTokenEndpoint(token_response("t1"), httpx.Response(503, text="unavailable"), token_response("t3"))
        manager = self.make_manager(endpoint)
        manager.start()
        before = await manager.wait_until_ready(timeout=2)

        with self.assertLogs("spotify_resolver.token_manager", level="WARNING") as logs:
            manager.scheduler.run_all()
            await wait_for(lambda: manager.last_error is not None)

        self.assertIn("keeping previous token", "\n".join(logs.output))
        self.assertIs(manager.current_token(), before)
        self.assertTrue(manager.running)
        self.assertEqual(len(manager.scheduler.jobs), 1)

        manager.scheduler.run_all()
        await wait_for(lambda: manager.access_token() == "t3")
        self.assertIsNone(manager.last_error)

    async def test_failed_first_renewal_still_reports_ready(self):
        manager = self.make_manager(FakeTokenEndpoint(httpx.Response(401, json={"error": "invalid_client"})))
        manager.start()
        token = await manager.wait_until_ready(timeout=2)
        self.assertIsNone(token)
        self.assertIsInstance(manager.last_error, AuthRenewalError)
        self.assertTrue(manager.running)

    async def test_scheduled_undecodable_body_is_logged(self):
        manager = self.make_manager(FakeTokenEndpoint(httpx.Response(200, content=b"\x80garbage")))

        with self.assertLogs("spotify_resolver.token_manager", level="WARNING") as logs:
            manager.start()
            token = await manager.wait_until_ready(timeout=2)

        self.assertIsNone(token)
        self.assertIsInstance(manager.last_error, AuthRenewalError)
        self.assertIn("no token available yet", "\n".join(logs.output))
        self.assertTrue(manager.running)

    async def test_stop_cancels_schedule_and_keeps_token(self):
        manager = self.make_manager(FakeTokenEndpoint(token_response("t1")))
        manager.start()
        await manager.wait_until_ready(timeout=2)

        manager.stop()
        await asyncio.sleep(0)

        self.assertFalse(manager.running)
        self.assertEqual(manager.scheduler.jobs, [])
        self.assertEqual(manager.access_token(), "t1")
        self.assertIsNone(manager._renewal)


if __name__ == "__main__":
    unittest.main(verbosity=2)
