import pytest

from src.errors import ConfigurationError
from src.main import create_app
from src.oauth2.types import DEFAULT_PRIVATE_KEY_PATH, ClientConfig


def _mapping(**overrides) -> dict:
    values = {
        "OAUTH2_CLIENT_ID": "frontend-app",
        "OAUTH2_REDIRECT_URI": "https://app.example.com/oauth2/callback",
        "OAUTH2_SCOPE": "openid",
        "OAUTH2_AUTHORIZATION_URI": "https://idp.example.com/auth",
        "OAUTH2_TOKEN_URI": "https://idp.example.com/token",
    }
    values.update(overrides)
    return values


def test_public_client_defaults() -> None:
    config = ClientConfig.from_mapping(_mapping())

    assert config.client_secret is None
    assert not config.is_confidential
    assert config.dpop_enabled is False
    assert config.userinfo_uri is None
    assert config.private_key_path == DEFAULT_PRIVATE_KEY_PATH


def test_confidential_client_with_dpop() -> None:
    config = ClientConfig.from_mapping(
        _mapping(OAUTH2_CLIENT_SECRET="s3cret", OAUTH2_DPOP_ENABLED="true")
    )

    assert config.client_secret == "s3cret"
    assert config.is_confidential
    assert config.dpop_enabled is True


def test_empty_client_secret_means_public_client() -> None:
    config = ClientConfig.from_mapping(_mapping(OAUTH2_CLIENT_SECRET=""))

    assert config.client_secret is None


@pytest.mark.parametrize(
    "missing",
    [
        "OAUTH2_CLIENT_ID",
        "OAUTH2_REDIRECT_URI",
        "OAUTH2_SCOPE",
        "OAUTH2_AUTHORIZATION_URI",
        "OAUTH2_TOKEN_URI",
    ],
)
def test_missing_required_field_is_fatal(missing: str) -> None:
    mapping = _mapping()
    del mapping[missing]

    with pytest.raises(ConfigurationError, match=missing):
        ClientConfig.from_mapping(mapping)


def test_relative_token_uri_is_fatal() -> None:
    with pytest.raises(ConfigurationError, match="OAUTH2_TOKEN_URI"):
        ClientConfig.from_mapping(_mapping(OAUTH2_TOKEN_URI="/token"))


def test_create_app_requires_secret_key(app_config) -> None:
    with pytest.raises(ConfigurationError, match="SECRET_KEY"):
        create_app({**app_config, "SECRET_KEY": None})


def test_create_app_fails_on_incomplete_client_config(app_config) -> None:
    with pytest.raises(ConfigurationError):
        create_app({**app_config, "OAUTH2_CLIENT_ID": None})


def test_numeric_env_values_become_strings() -> None:
    config = ClientConfig.from_mapping(
        _mapping(OAUTH2_CLIENT_ID=0, OAUTH2_CLIENT_SECRET=123456, OAUTH2_SCOPE="openid")
    )

    assert config.client_id == "0"
    assert config.client_secret == "123456"
    assert config.is_confidential


def test_numeric_client_secret_reaches_token_endpoint(app_config) -> None:
    app = create_app({**app_config, "OAUTH2_CLIENT_SECRET": 123456})

    assert app.extensions["oauth2_client"].config.client_secret == "123456"
