import math
from typing import Any, NamedTuple

from .validator import config_value, validate_client_config

DEFAULT_PRIVATE_KEY_PATH = "ssh/id_rsa"
DEFAULT_PUBLIC_KEY_PATH = "ssh/id_rsa.pub"


class ClientConfig(NamedTuple):
    client_id: str
    redirect_uri: str
    scope: str
    authorization_uri: str
    token_uri: str
    client_secret: str | None = None
    dpop_enabled: bool = False
    userinfo_uri: str | None = None
    private_key_path: str = DEFAULT_PRIVATE_KEY_PATH
    public_key_path: str = DEFAULT_PUBLIC_KEY_PATH

    @classmethod
    def from_mapping(cls, config: dict[str, Any]) -> "ClientConfig":
        """Builds the client config from app config keys, failing fast on gaps."""

        validate_client_config(config)
        return cls(
            client_id=config_value(config, "OAUTH2_CLIENT_ID"),
            redirect_uri=config_value(config, "OAUTH2_REDIRECT_URI"),
            scope=config_value(config, "OAUTH2_SCOPE"),
            authorization_uri=config_value(config, "OAUTH2_AUTHORIZATION_URI"),
            token_uri=config_value(config, "OAUTH2_TOKEN_URI"),
            client_secret=config_value(config, "OAUTH2_CLIENT_SECRET"),
            dpop_enabled=_as_bool(config.get("OAUTH2_DPOP_ENABLED", False)),
            userinfo_uri=config_value(config, "OAUTH2_USERINFO_URI"),
            private_key_path=config_value(config, "DPOP_PRIVATE_KEY_PATH")
            or DEFAULT_PRIVATE_KEY_PATH,
            public_key_path=config_value(config, "DPOP_PUBLIC_KEY_PATH")
            or DEFAULT_PUBLIC_KEY_PATH,
        )

    @property
    def is_confidential(self) -> bool:
        return self.client_secret is not None


class PkceChallenge(NamedTuple):
    state: str
    code_verifier: str
    code_challenge: str


class TokenResponse(NamedTuple):
    access_token: str
    token_type: str
    # None means the server sent no lifetime, see SessionAuthState.is_expired
    expires_in: int | None = None
    refresh_token: str | None = None
    scope: str | None = None
    custom_parameters: dict[str, Any] | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "TokenResponse":
        access_token = payload.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise ValueError("token response missing access_token")

        token_type = payload.get("token_type") or "Bearer"
        if not isinstance(token_type, str):
            raise ValueError(f"token_type is not a string: {token_type!r}")

        known = {"access_token", "token_type", "expires_in", "refresh_token", "scope"}
        return cls(
            access_token=access_token,
            token_type=token_type,
            expires_in=_parse_expires_in(payload.get("expires_in")),
            refresh_token=_optional_str(payload, "refresh_token"),
            scope=_optional_str(payload, "scope"),
            custom_parameters={k: v for k, v in payload.items() if k not in known},
        )

    @property
    def is_dpop_bound(self) -> bool:
        return self.token_type.lower() == "dpop"

    def __repr__(self) -> str:
        refresh_token = "***" if self.refresh_token is not None else None
        return (
            f"TokenResponse(access_token='***', token_type={self.token_type!r}, "
            f"expires_in={self.expires_in!r}, refresh_token={refresh_token!r}, "
            f"scope={self.scope!r}, custom_parameters={sorted(self.custom_parameters or {})!r})"
        )


def _parse_expires_in(value: Any) -> int | None:
    if value is None:
        return None
    # bool is an int subclass, and JSON allows 1e400 which loads as inf
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"expires_in is not a number: {value!r}")
    if not math.isfinite(value):
        raise ValueError(f"expires_in is not finite: {value!r}")
    return int(value)


def _optional_str(payload: dict[str, Any], key: str) -> str | None:
    value = payload.get(key)
    if value is not None and not isinstance(value, str):
        raise ValueError(f"{key} is not a string: {value!r}")
    return value


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ["1", "true", "yes", "on"]
    return bool(value)
