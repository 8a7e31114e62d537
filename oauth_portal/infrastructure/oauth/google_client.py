from __future__ import annotations

from typing import Any

from oauth_portal.domain.identity import GoogleUser
from oauth_portal.infrastructure.oauth.base import OAuthProviderClient


class GoogleOAuthClient(OAuthProviderClient):
    provider = "google"
    authorize_url = "https://accounts.google.com/o/oauth2/v2/auth"
    token_url = "https://oauth2.googleapis.com/token"
    userinfo_url = "https://www.googleapis.com/oauth2/v2/userinfo"

    def authorize_params(self, state: str) -> dict[str, str]:
        params = super().authorize_params(state)
        # offline access + forced consent so Google issues a refresh token
        params["access_type"] = "offline"
        return params

    async def fetch_user(self, access_token: str) -> dict[str, Any]:
        return await self._get_json(self.userinfo_url, access_token)

    def to_user(self, profile: dict[str, Any]) -> GoogleUser:
        user_id = profile.get("id") or profile["sub"]
        return GoogleUser(
            id=str(user_id),
            name=str(profile.get("name") or profile.get("email") or "unknown"),
            email=profile.get("email") or None,
            avatar=profile.get("picture") or None,
            email_verified=profile.get("verified_email", profile.get("email_verified")),
            locale=profile.get("locale") or None,
        )
