from oauth_portal.core.config import PortalSettings
from oauth_portal.infrastructure.oauth.base import OAuthProviderClient, OAuthProviderError
from oauth_portal.infrastructure.oauth.discord_client import DiscordOAuthClient
from oauth_portal.infrastructure.oauth.google_client import GoogleOAuthClient


def build_oauth_clients(settings: PortalSettings) -> dict[str, OAuthProviderClient]:
    return {
        "google": GoogleOAuthClient(
            client_id=settings.GOOGLE_CLIENT_ID,
            client_secret=settings.GOOGLE_CLIENT_SECRET,
            redirect_uri=settings.callback_url("google"),
            oauth_scopes=settings.google_scopes,
            timeout_seconds=settings.OAUTH_HTTP_TIMEOUT_SECONDS,
        ),
        "discord": DiscordOAuthClient(
            api_base_url=settings.DISCORD_API_BASE_URL,
            client_id=settings.DISCORD_CLIENT_ID,
            client_secret=settings.DISCORD_CLIENT_SECRET,
            redirect_uri=settings.callback_url("discord"),
            oauth_scopes=settings.discord_scopes,
            timeout_seconds=settings.OAUTH_HTTP_TIMEOUT_SECONDS,
        ),
    }


__all__ = [
    "DiscordOAuthClient",
    "GoogleOAuthClient",
    "OAuthProviderClient",
    "OAuthProviderError",
    "build_oauth_clients",
]
