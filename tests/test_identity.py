import pytest
from pydantic import ValidationError

from oauth_portal.domain.identity import DiscordUser, GoogleUser, parse_user


def test_parse_user_picks_the_provider_variant():
    google = parse_user({"provider": "google", "id": "1", "name": "Ada", "locale": "en"})
    discord = parse_user({"provider": "discord", "id": "2", "name": "nelly", "discriminator": "1337"})

    assert isinstance(google, GoogleUser)
    assert google.locale == "en"
    assert isinstance(discord, DiscordUser)
    assert discord.tag == "nelly#1337"


def test_discord_tag_is_absent_for_migrated_usernames():
    user = DiscordUser(id="2", name="nelly", discriminator="0")
    assert user.tag is None


def test_user_key_is_scoped_by_provider():
    assert GoogleUser(id="42", name="a").user_key == "google:42"
    assert DiscordUser(id="42", name="a").user_key == "discord:42"


def test_unknown_provider_is_rejected():
    with pytest.raises(ValidationError):
        parse_user({"provider": "github", "id": "1", "name": "x"})


def test_empty_id_is_rejected():
    with pytest.raises(ValidationError):
        parse_user({"provider": "google", "id": "", "name": "x"})


def test_users_are_immutable():
    user = GoogleUser(id="1", name="Ada")
    with pytest.raises(ValidationError):
        user.name = "Grace"
