import asyncio
from datetime import timedelta

from oauth_portal.core.security import utc_now

from conftest import login


def _age_session(store, session_id, *, touched_ago=None, expires_in=None):
    record = asyncio.run(store.get(session_id))
    update = {}
    if touched_ago is not None:
        update["touched_at"] = utc_now() - touched_ago
    if expires_in is not None:
        update["expires_at"] = utc_now() + expires_in
    asyncio.run(store.save(record.model_copy(update=update)))
    return record


PROTECTED_ROUTES = [
    ("GET", "/api/me"),
    ("GET", "/api/user"),
    ("GET", "/api/profile"),
    ("GET", "/api/discord/profile"),
    ("POST", "/api/logout"),
    ("POST", "/api/logout/all"),
]


def test_protected_routes_require_a_session(make_client, store):
    login(make_client(), "google")
    client = make_client()
    records_before = dict(store._records)

    for method, path in PROTECTED_ROUTES:
        response = client.request(method, path)
        assert response.status_code == 401, path
        assert response.json()["error_code"] == "AUTH_REQUIRED"
        assert response.json()["message"] == "Please log in to access this resource"
        assert "set-cookie" not in response.headers, path

    assert store._records == records_before
    assert asyncio.run(store.list_user_sessions("google:g-1001"))


def test_unknown_cookie_is_treated_as_anonymous(client):
    client.cookies.set("sessionId", "does-not-exist")

    assert client.get("/api/me").status_code == 401


def test_pending_login_session_is_not_authenticated(client):
    client.get("/auth/google")

    assert client.get("/api/me").status_code == 401


def test_me_returns_user_and_session(client):
    session_id = login(client, "discord")

    body = client.get("/api/me").json()

    assert body["success"] is True
    assert body["user"]["id"] == "80351110224678912"
    assert body["user"]["provider"] == "discord"
    assert body["user"]["name"] == "nelly"
    assert body["user"]["tag"] == "nelly#1337"
    assert body["user"]["authenticatedAt"]
    assert body["session"]["id"] == session_id
    assert body["session"]["isAuthenticated"] is True
    assert 0 < body["session"]["maxAgeSeconds"] <= 86400


def test_user_includes_provider_specific_fields(client):
    login(client, "google")

    user = client.get("/api/user").json()["user"]

    assert user["provider"] == "google"
    assert user["email"] == "grace@example.com"
    assert user["emailVerified"] is True
    assert user["locale"] == "en"
    assert "discriminator" not in user


def test_profile_reports_session_details(client):
    session_id = login(client, "google")

    profile = client.get("/api/profile", headers={"User-Agent": "pytest-browser"}).json()["profile"]

    assert profile["id"] == "g-1001"
    assert profile["sessionInfo"]["id"] == session_id
    assert profile["sessionInfo"]["userAgent"] == "pytest-browser"
    assert profile["sessionInfo"]["ip"] == "testclient"
    assert profile["permissions"] == {"canRead": True, "canWrite": True, "canDelete": False}


def test_provider_restricted_route_rejects_other_providers(client):
    login(client, "google")

    response = client.get("/api/discord/profile")

    assert response.status_code == 403
    body = response.json()
    assert body["error_code"] == "PROVIDER_MISMATCH"
    assert body["details"] == {"required": "discord", "current": "google"}


def test_provider_restricted_route_serves_matching_provider(client):
    login(client, "discord")

    body = client.get("/api/discord/profile").json()

    assert body["username"] == "nelly"
    assert body["globalName"] == "Nelly"
    assert body["tag"] == "nelly#1337"


def test_session_info_is_available_without_login(client):
    body = client.get("/api/session/info").json()

    assert body["session"]["id"] is None
    assert body["session"]["authenticated"] is False
    assert body["session"]["cookie"] == {
        "maxAgeSeconds": 86400,
        "secure": False,
        "httpOnly": True,
        "sameSite": "lax",
    }


def test_session_info_reflects_login(client):
    session_id = login(client, "google")

    body = client.get("/api/session/info").json()

    assert body["session"]["id"] == session_id
    assert body["session"]["authenticated"] is True
    assert body["session"]["expiresAt"]


def test_validate_reports_authenticated_session(client):
    login(client, "google")

    response = client.get("/api/session/validate")

    assert response.status_code == 200
    body = response.json()
    assert body["valid"] is True
    assert body["authenticated"] is True
    assert body["user"]["provider"] == "google"
    assert body["session"]["maxAgeSeconds"] > 0


def test_validate_without_session_is_unauthorized(client):
    response = client.get("/api/session/validate")

    assert response.status_code == 401
    body = response.json()
    assert body["valid"] is False
    assert body["authenticated"] is False
    assert body["message"] == "Session not authenticated"


def test_validate_never_extends_the_session(client, store):
    session_id = login(client, "google")
    stale = _age_session(store, session_id, touched_ago=timedelta(hours=2))

    client.get("/api/session/validate")
    after_validate = asyncio.run(store.get(session_id))
    client.get("/api/me")
    after_me = asyncio.run(store.get(session_id))

    assert after_validate.touched_at < utc_now() - timedelta(hours=1)
    assert after_validate.expires_at == stale.expires_at
    assert after_me.touched_at > utc_now() - timedelta(minutes=1)


def test_recently_touched_session_is_not_rewritten(client, store):
    session_id = login(client, "google")
    before = asyncio.run(store.get(session_id))

    client.get("/api/me")

    assert asyncio.run(store.get(session_id)).touched_at == before.touched_at


def test_expired_session_is_rejected(client, store):
    session_id = login(client, "google")
    _age_session(store, session_id, expires_in=timedelta(seconds=-1))

    assert client.get("/api/me").status_code == 401
    assert client.get("/api/session/validate").status_code == 401


def test_store_outage_surfaces_as_server_error(client, store):
    login(client, "google")
    store.failing.add("get")

    response = client.get("/api/me")

    assert response.status_code == 500
    assert response.json()["error_code"] == "SESSION_STORE_FAILURE"
