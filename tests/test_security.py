import jwt
import pytest

from oauth_portal.core.security import (
    SignedTokenError,
    create_signed_token,
    decode_signed_token,
    new_session_id,
    sanitize_redirect_target,
)

from conftest import make_settings


@pytest.mark.parametrize(
    "raw,expected",
    [
        (None, "/"),
        ("", "/"),
        ("/dashboard", "/dashboard"),
        ("/dashboard?tab=security#top", "/dashboard?tab=security#top"),
        ("  /profile  ", "/profile"),
        ("dashboard", "/"),
        ("//evil.example/phish", "/"),
        ("https://evil.example/phish", "/"),
        ("/\\evil.example", "/"),
        ("/line\nbreak", "/"),
    ],
)
def test_sanitize_redirect_target_only_keeps_same_origin_paths(raw, expected):
    assert sanitize_redirect_target(raw) == expected


def test_sanitize_redirect_target_uses_supplied_default():
    assert sanitize_redirect_target("https://evil.example", default="/home") == "/home"


def test_signed_token_carries_claims_and_type():
    settings = make_settings()
    token, expires_at = create_signed_token(
        settings=settings,
        token_type="oauth_state",
        claims={"nonce": "abc", "provider": "google"},
        ttl_seconds=60,
    )

    payload = decode_signed_token(settings=settings, token=token, expected_type="oauth_state")

    assert payload["nonce"] == "abc"
    assert payload["provider"] == "google"
    assert payload["exp"] == int(expires_at.timestamp())


def test_expired_token_is_rejected():
    settings = make_settings()
    token, _ = create_signed_token(
        settings=settings,
        token_type="oauth_state",
        claims={},
        ttl_seconds=-(settings.OAUTH_STATE_LEEWAY_SECONDS + 60),
    )

    with pytest.raises(SignedTokenError, match="state_expired"):
        decode_signed_token(settings=settings, token=token, expected_type="oauth_state")


def test_token_of_another_type_is_rejected():
    settings = make_settings()
    token, _ = create_signed_token(
        settings=settings,
        token_type="password_reset",
        claims={},
        ttl_seconds=60,
    )

    with pytest.raises(SignedTokenError, match="state_type_invalid"):
        decode_signed_token(settings=settings, token=token, expected_type="oauth_state")


def test_token_signed_with_another_secret_is_rejected():
    settings = make_settings()
    forged = jwt.encode(
        {"type": "oauth_state", "nonce": "abc"},
        "some-other-secret-that-is-long-enough-1234",
        algorithm="HS256",
    )

    with pytest.raises(SignedTokenError, match="state_invalid"):
        decode_signed_token(settings=settings, token=forged, expected_type="oauth_state")


def test_garbage_token_is_rejected():
    with pytest.raises(SignedTokenError, match="state_invalid"):
        decode_signed_token(settings=make_settings(), token="not-a-jwt", expected_type="oauth_state")


def test_session_ids_are_unique_and_opaque():
    ids = {new_session_id() for _ in range(50)}
    assert len(ids) == 50
    assert all(len(session_id) >= 40 for session_id in ids)
