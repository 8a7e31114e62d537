"""Provider-tagged user identities reconstructed from the session payload."""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class _BaseUser(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str = Field(min_length=1)
    name: str
    email: str | None = None
    avatar: str | None = None

    @property
    def user_key(self) -> str:
        return f"{self.provider}:{self.id}"


class GoogleUser(_BaseUser):
    provider: Literal["google"] = "google"
    email_verified: bool | None = None
    locale: str | None = None


class DiscordUser(_BaseUser):
    provider: Literal["discord"] = "discord"
    discriminator: str | None = None
    global_name: str | None = None

    @property
    def tag(self) -> str | None:
        if self.discriminator and self.discriminator != "0":
            return f"{self.name}#{self.discriminator}"
        return None


AuthenticatedUser = Annotated[
    Union[GoogleUser, DiscordUser],
    Field(discriminator="provider"),
]

_user_adapter: TypeAdapter[GoogleUser | DiscordUser] = TypeAdapter(AuthenticatedUser)


def parse_user(payload: dict[str, Any]) -> GoogleUser | DiscordUser:
    """Validate a raw payload into the matching provider variant.

    Raises ``pydantic.ValidationError`` for unknown providers or missing fields.
    """
    return _user_adapter.validate_python(payload)
