from __future__ import annotations

from typing import Any

import httpx

from oauth_portal.domain.identity import DiscordUser
from oauth_portal.infrastructure.oauth.base import OAuthProviderClient


class DiscordOAuthClient(OAuthProviderClient):
    provider = "discord"

    def __init__(
        self,
        *,
        api_base_url: str,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        oauth_scopes: str,
        timeout_seconds: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(
            client_id=client_id,
            client_secret=client_secret,
            redirect_uri=redirect_uri,
            oauth_scopes=oauth_scopes,
            timeout_seconds=timeout_seconds,
            transport=transport,
        )
        self.api_base_url = api_base_url.rstrip("/")
        self.authorize_url = f"{self.api_base_url}/oauth2/authorize"
        self.token_url = f"{self.api_base_url}/oauth2/token"

    async def fetch_user(self, access_token: str) -> dict[str, Any]:
        return await self._get_json(f"{self.api_base_url}/users/@me", access_token)

    def to_user(self, profile: dict[str, Any]) -> DiscordUser:
        discord_user_id = str(profile["id"])
        discriminator = str(profile.get("discriminator") or "") or None
        global_name = str(profile.get("global_name") or "").strip() or None
        return DiscordUser(
            id=discord_user_id,
            name=str(profile.get("username") or "unknown"),
            email=profile.get("email") or None,
            avatar=self._build_avatar_url(
                discord_user_id=discord_user_id,
                avatar_hash=profile.get("avatar"),
            ),
            discriminator=discriminator,
            global_name=global_name,
        )

    @staticmethod
    def _build_avatar_url(*, discord_user_id: str, avatar_hash: str | None) -> str | None:
        if not avatar_hash:
            return None
        return f"https://cdn.discordapp.com/avatars/{discord_user_id}/{avatar_hash}.png?size=256"
