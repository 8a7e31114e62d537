from __future__ import annotations

from urllib.parse import parse_qs, urlsplit

import httpx
import pytest
from fastapi.testclient import TestClient

from oauth_portal.app import create_app
from oauth_portal.core.config import PortalSettings
from oauth_portal.core.metrics import metrics_registry
from oauth_portal.infrastructure.oauth import DiscordOAuthClient, GoogleOAuthClient
from oauth_portal.infrastructure.sessions import MemorySessionStore, SessionStoreError

FRONTEND = "http://localhost:3000"
TEST_SECRET = "test-session-secret-for-unit-tests-only-0123456789"

GOOGLE_PROFILE = {
    "id": "g-1001",
    "name": "Grace Hopper",
    "email": "grace@example.com",
    "verified_email": True,
    "picture": "https://lh3.googleusercontent.com/a/grace",
    "locale": "en",
}

DISCORD_PROFILE = {
    "id": "80351110224678912",
    "username": "nelly",
    "discriminator": "1337",
    "global_name": "Nelly",
    "avatar": "8342729096ea3675442027381ff50dfe",
    "email": "nelly@example.com",
}


def provider_handler(request: httpx.Request) -> httpx.Response:
    """Stands in for the Google and Discord OAuth endpoints."""
    if request.method == "POST" and request.url.path.endswith("/token"):
        form = parse_qs(request.content.decode())
        code = form.get("code", [""])[0]
        if code == "bad-code":
            return httpx.Response(400, json={"error": "invalid_grant"})
        return httpx.Response(200, json={"access_token": f"token-{code}", "token_type": "Bearer"})
    if request.url.host == "www.googleapis.com":
        return httpx.Response(200, json=GOOGLE_PROFILE)
    if request.url.path.endswith("/users/@me"):
        return httpx.Response(200, json=DISCORD_PROFILE)
    return httpx.Response(404, json={"error": "not_found"})


class FlakySessionStore(MemorySessionStore):
    """Memory store that fails selected operations on demand."""

    def __init__(self) -> None:
        super().__init__()
        self.failing: set[str] = set()

    async def get(self, session_id):
        if "get" in self.failing:
            raise SessionStoreError("read", "store offline")
        return await super().get(session_id)

    async def unbind_user(self, session_id, user_key):
        if "unbind" in self.failing:
            raise SessionStoreError("unbind", "store offline")
        await super().unbind_user(session_id, user_key)

    async def destroy(self, session_id):
        if "destroy" in self.failing:
            raise SessionStoreError("delete", "store offline")
        return await super().destroy(session_id)

    async def destroy_user_sessions(self, user_key):
        if "destroy_user_sessions" in self.failing:
            raise SessionStoreError("delete", "store offline")
        return await super().destroy_user_sessions(user_key)


def make_settings(**overrides) -> PortalSettings:
    values = {
        "PORTAL_ENV": "test",
        "PORTAL_LOG_LEVEL": "WARNING",
        "PORTAL_ENABLE_ACCESS_LOG": False,
        "SESSION_SECRET": TEST_SECRET,
        "SESSION_STORE_URL": "",
        "FRONTEND_URL": FRONTEND,
        "API_URL": "http://testserver",
        "GOOGLE_CLIENT_ID": "google-client",
        "GOOGLE_CLIENT_SECRET": "google-secret",
        "DISCORD_CLIENT_ID": "discord-client",
        "DISCORD_CLIENT_SECRET": "discord-secret",
    }
    values.update(overrides)
    return PortalSettings(_env_file=None, **values)


def make_oauth_clients(settings: PortalSettings, handler=provider_handler):
    transport = httpx.MockTransport(handler)
    return {
        "google": GoogleOAuthClient(
            client_id=settings.GOOGLE_CLIENT_ID,
            client_secret=settings.GOOGLE_CLIENT_SECRET,
            redirect_uri=settings.callback_url("google"),
            oauth_scopes=settings.google_scopes,
            transport=transport,
        ),
        "discord": DiscordOAuthClient(
            api_base_url=settings.DISCORD_API_BASE_URL,
            client_id=settings.DISCORD_CLIENT_ID,
            client_secret=settings.DISCORD_CLIENT_SECRET,
            redirect_uri=settings.callback_url("discord"),
            oauth_scopes=settings.discord_scopes,
            transport=transport,
        ),
    }


def state_from(location: str) -> str:
    return parse_qs(urlsplit(location).query)["state"][0]


def login(client: TestClient, provider: str = "google", redirect: str | None = None) -> str:
    params = {"redirect": redirect} if redirect is not None else {}
    started = client.get(f"/auth/{provider}", params=params)
    assert started.status_code == 302
    finished = client.get(
        f"/auth/{provider}/callback",
        params={"code": "good-code", "state": state_from(started.headers["location"])},
    )
    assert finished.status_code == 302
    session_id = client.cookies.get("sessionId")
    assert session_id
    return session_id


@pytest.fixture(autouse=True)
def _reset_metrics():
    metrics_registry.reset()
    yield
    metrics_registry.reset()


@pytest.fixture
def settings() -> PortalSettings:
    return make_settings()


@pytest.fixture
def store() -> FlakySessionStore:
    return FlakySessionStore()


@pytest.fixture
def app(settings, store):
    return create_app(
        settings,
        session_store=store,
        oauth_clients=make_oauth_clients(settings),
    )


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app, follow_redirects=False)


@pytest.fixture
def make_client(app):
    def _make() -> TestClient:
        return TestClient(app, follow_redirects=False)

    return _make
