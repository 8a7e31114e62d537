from functools import lru_cache
from pathlib import Path
from typing import Final

from pydantic_settings import BaseSettings, SettingsConfigDict

SUPPORTED_PROVIDERS: Final[tuple[str, ...]] = ("google", "discord")

_PROJECT_ROOT = Path(__file__).resolve().parents[2]
_ROOT_ENV_FILE = _PROJECT_ROOT / ".env"


class PortalSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=(str(_ROOT_ENV_FILE), ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # FastAPI app
    PORTAL_APP_NAME: str = "OAuth Portal"
    PORTAL_APP_VERSION: str = "1.0.0"
    PORTAL_ENV: str = "development"
    PORTAL_LOG_LEVEL: str = "INFO"
    PORTAL_LOG_FORMAT: str = "text"
    PORTAL_ENABLE_ACCESS_LOG: bool = True
    PORTAL_ENABLE_METRICS: bool = True
    PORTAL_CORS_ENABLED: bool = True
    PORTAL_CORS_ALLOW_METHODS: str = "GET,POST,PUT,DELETE,OPTIONS"
    PORTAL_CORS_ALLOW_HEADERS: str = "Content-Type,Authorization,X-Requested-With"
    PORTAL_CORS_EXPOSE_HEADERS: str = "X-Request-ID"
    PORTAL_CORS_MAX_AGE_SECONDS: int = 600

    # Origins
    FRONTEND_URL: str = "http://localhost:3000"
    API_URL: str = "http://localhost:3001"

    # Sessions
    SESSION_SECRET: str = ""
    SESSION_COOKIE_NAME: str = "sessionId"
    SESSION_MAX_AGE_SECONDS: int = 24 * 60 * 60
    SESSION_TOUCH_AFTER_SECONDS: int = 60 * 60
    SESSION_STORE_URL: str = ""
    SESSION_KEY_PREFIX: str = "oauth_portal:sess"
    COOKIE_DOMAIN: str = ""

    # OAuth providers
    GOOGLE_CLIENT_ID: str = ""
    GOOGLE_CLIENT_SECRET: str = ""
    GOOGLE_OAUTH_SCOPES: str = "openid profile email"
    DISCORD_CLIENT_ID: str = ""
    DISCORD_CLIENT_SECRET: str = ""
    DISCORD_API_BASE_URL: str = "https://discord.com/api/v10"
    DISCORD_OAUTH_SCOPES: str = "identify email"
    OAUTH_STATE_TTL_SECONDS: int = 600
    OAUTH_STATE_ALGORITHM: str = "HS256"
    OAUTH_STATE_LEEWAY_SECONDS: int = 30
    OAUTH_HTTP_TIMEOUT_SECONDS: float = 15.0

    @property
    def is_production(self) -> bool:
        return self.PORTAL_ENV.strip().lower() in {"prod", "production"}

    @property
    def frontend_url(self) -> str:
        return self.FRONTEND_URL.strip().rstrip("/")

    @property
    def api_url(self) -> str:
        return self.API_URL.strip().rstrip("/")

    def callback_url(self, provider: str) -> str:
        return f"{self.api_url}/auth/{provider}/callback"

    @property
    def cookie_secure(self) -> bool:
        return self.is_production

    @property
    def cookie_samesite(self) -> str:
        return "none" if self.is_production else "lax"

    @property
    def cookie_domain(self) -> str | None:
        if not self.is_production:
            return None
        cleaned = self.COOKIE_DOMAIN.strip()
        return cleaned or None

    @property
    def google_scopes(self) -> str:
        return _normalize_scopes(self.GOOGLE_OAUTH_SCOPES)

    @property
    def discord_scopes(self) -> str:
        return _normalize_scopes(self.DISCORD_OAUTH_SCOPES)

    @property
    def cors_allow_origins(self) -> list[str]:
        return [self.frontend_url] if self.frontend_url else []

    @property
    def cors_allow_methods(self) -> list[str]:
        return self._split_csv(self.PORTAL_CORS_ALLOW_METHODS)

    @property
    def cors_allow_headers(self) -> list[str]:
        return self._split_csv(self.PORTAL_CORS_ALLOW_HEADERS)

    @property
    def cors_expose_headers(self) -> list[str]:
        return self._split_csv(self.PORTAL_CORS_EXPOSE_HEADERS)

    @staticmethod
    def _split_csv(raw: str) -> list[str]:
        return [item.strip() for item in raw.split(",") if item.strip()]


def _normalize_scopes(raw: str) -> str:
    return " ".join(scope.strip() for scope in raw.split() if scope.strip())


@lru_cache
def get_settings() -> PortalSettings:
    return PortalSettings()
