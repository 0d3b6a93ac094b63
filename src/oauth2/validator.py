from typing import Any
from urllib.parse import urlparse

from src.errors import ConfigurationError

REQUIRED_CONFIG_KEYS = {
    "client_id": "OAUTH2_CLIENT_ID",
    "redirect_uri": "OAUTH2_REDIRECT_URI",
    "scope": "OAUTH2_SCOPE",
    "authorization_uri": "OAUTH2_AUTHORIZATION_URI",
    "token_uri": "OAUTH2_TOKEN_URI",
}

ABSOLUTE_URL_KEYS = ["redirect_uri", "authorization_uri", "token_uri"]


# Accepts http(s) URLs with a host, nothing relative or scheme-less
def is_absolute_url(url: str | None) -> bool:
    if not url:
        return False
    parts = urlparse(url)
    return parts.scheme in ["http", "https"] and bool(parts.netloc)


# Env values arrive JSON-decoded, so a numeric client id or secret is an int here
def config_value(config: dict[str, Any], key: str) -> str | None:
    value = config.get(key)
    if value is None:
        return None
    value = str(value).strip()
    return value or None


# Checks the raw app config for every value the login flow needs before startup
def validate_client_config(config: dict[str, Any]) -> None:
    missing = [key for key in REQUIRED_CONFIG_KEYS.values() if config_value(config, key) is None]
    if missing:
        raise ConfigurationError(f"missing oauth2 configuration: {', '.join(missing)}")

    for field in ABSOLUTE_URL_KEYS:
        env_key = REQUIRED_CONFIG_KEYS[field]
        if not is_absolute_url(config_value(config, env_key)):
            raise ConfigurationError(f"{env_key} is not an absolute URL")

    userinfo_uri = config_value(config, "OAUTH2_USERINFO_URI")
    if userinfo_uri and not is_absolute_url(userinfo_uri):
        raise ConfigurationError("OAUTH2_USERINFO_URI is not an absolute URL")
