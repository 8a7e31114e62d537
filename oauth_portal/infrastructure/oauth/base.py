from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any
from urllib.parse import urlencode

import httpx
from pydantic import ValidationError

from oauth_portal.domain.identity import DiscordUser, GoogleUser


class OAuthProviderError(RuntimeError):
    def __init__(self, message: str, *, reason: str = "provider_error"):
        super().__init__(message)
        self.reason = reason


class OAuthProviderClient(ABC):
    provider: str = ""
    authorize_url: str = ""
    token_url: str = ""

    def __init__(
        self,
        *,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        oauth_scopes: str,
        timeout_seconds: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.oauth_scopes = oauth_scopes
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def authorize_params(self, state: str) -> dict[str, str]:
        return {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": self.oauth_scopes,
            "state": state,
            "prompt": "consent",
        }

    def build_authorize_url(self, state: str) -> str:
        return f"{self.authorize_url}?{urlencode(self.authorize_params(state))}"

    async def exchange_code(self, code: str) -> dict[str, Any]:
        payload = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.redirect_uri,
        }
        headers = {
            "Content-Type": "application/x-www-form-urlencoded",
            "Accept": "application/json",
        }
        try:
            async with self._http() as client:
                response = await client.post(self.token_url, data=payload, headers=headers)
        except httpx.HTTPError as exc:
            raise OAuthProviderError(
                f"{self.provider} token exchange request failed: {exc.__class__.__name__}",
                reason="provider_unreachable",
            ) from exc
        if response.status_code >= 400:
            raise OAuthProviderError(
                f"{self.provider} token exchange failed ({response.status_code}): {response.text}",
                reason="token_exchange_failed",
            )
        try:
            data = response.json()
        except ValueError as exc:
            raise OAuthProviderError(
                f"{self.provider} token exchange returned a non-JSON body",
                reason="token_exchange_failed",
            ) from exc
        if not isinstance(data, dict) or "access_token" not in data:
            raise OAuthProviderError(
                f"{self.provider} token exchange returned no access_token",
                reason="token_exchange_failed",
            )
        return data

    async def _get_json(self, url: str, access_token: str) -> dict[str, Any]:
        headers = {"Authorization": f"Bearer {access_token}"}
        try:
            async with self._http() as client:
                response = await client.get(url, headers=headers)
        except httpx.HTTPError as exc:
            raise OAuthProviderError(
                f"{self.provider} profile request failed: {exc.__class__.__name__}",
                reason="provider_unreachable",
            ) from exc
        if response.status_code >= 400:
            raise OAuthProviderError(
                f"{self.provider} profile fetch failed ({response.status_code}): {response.text}",
                reason="profile_fetch_failed",
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise OAuthProviderError(
                f"{self.provider} profile response was not JSON",
                reason="profile_invalid",
            ) from exc
        if not isinstance(payload, dict):
            raise OAuthProviderError(
                f"{self.provider} profile response was not an object",
                reason="profile_invalid",
            )
        return payload

    @abstractmethod
    async def fetch_user(self, access_token: str) -> dict[str, Any]:
        """Raw profile document from the provider."""

    @abstractmethod
    def to_user(self, profile: dict[str, Any]) -> GoogleUser | DiscordUser:
        """Map a raw profile onto this provider's user variant."""

    async def authenticate(self, code: str) -> GoogleUser | DiscordUser:
        token_payload = await self.exchange_code(code)
        profile = await self.fetch_user(token_payload["access_token"])
        try:
            return self.to_user(profile)
        except (ValidationError, KeyError, TypeError, ValueError) as exc:
            raise OAuthProviderError(
                f"{self.provider} profile could not be mapped: {exc.__class__.__name__}",
                reason="profile_invalid",
            ) from exc

    def _http(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport)
