from pathlib import Path

import pytest
from flask import Flask

from src.main import create_app
from src.oauth2.keys import generate_key_pair, write_key_pair
from src.oauth2.types import ClientConfig
from tests.http_helpers import AUTHORIZATION_URI, TOKEN_URI


@pytest.fixture(scope="session")
def key_files(tmp_path_factory) -> tuple[Path, Path]:
    directory = tmp_path_factory.mktemp("ssh")
    private_path = directory / "id_rsa"
    public_path = directory / "id_rsa.pub"
    write_key_pair(generate_key_pair(), private_path, public_path, comment="test@host")
    return private_path, public_path


@pytest.fixture
def client_config() -> ClientConfig:
    return ClientConfig(
        client_id="frontend-app",
        redirect_uri="https://app.example.com/oauth2/callback",
        scope="openid profile",
        authorization_uri=AUTHORIZATION_URI,
        token_uri=TOKEN_URI,
    )


@pytest.fixture
def app_config(tmp_path, key_files) -> dict:
    private_path, public_path = key_files
    return {
        "TESTING": True,
        "SECRET_KEY": "test-secret",
        "DATABASE_URL": str(tmp_path / "test.db"),
        "OAUTH2_CLIENT_ID": "frontend-app",
        "OAUTH2_REDIRECT_URI": "https://app.example.com/oauth2/callback",
        "OAUTH2_SCOPE": "openid profile",
        "OAUTH2_AUTHORIZATION_URI": AUTHORIZATION_URI,
        "OAUTH2_TOKEN_URI": TOKEN_URI,
        "OAUTH2_DPOP_ENABLED": False,
        "DPOP_PRIVATE_KEY_PATH": str(private_path),
        "DPOP_PUBLIC_KEY_PATH": str(public_path),
    }


@pytest.fixture
def app(app_config) -> Flask:
    return create_app(app_config)


@pytest.fixture
def dpop_app(app_config) -> Flask:
    return create_app({**app_config, "OAUTH2_DPOP_ENABLED": True})


@pytest.fixture
def test_client(app):
    return app.test_client()
