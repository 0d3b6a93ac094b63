from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from authlib.common.security import generate_token
from authlib.oauth2.rfc7636 import create_s256_code_challenge

from src.errors import ConfigurationError

from .types import ClientConfig, PkceChallenge, TokenResponse
from .validator import is_absolute_url

# RFC 3986 unreserved characters, the alphabet RFC 7636 allows for verifiers
UNRESERVED_CHARACTERS = (
    "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-._~"
)
STATE_LENGTH = 32
CODE_VERIFIER_LENGTH = 64

__all__ = [
    "ClientConfig",
    "PkceChallenge",
    "TokenResponse",
    "build_authorization_url",
    "generate_code_challenge",
    "generate_code_verifier",
    "generate_random_string",
    "generate_state",
    "new_pkce_challenge",
]


def generate_random_string(length: int) -> str:
    """Uniform draw from the unreserved alphabet using the system CSPRNG."""

    return generate_token(length, chars=UNRESERVED_CHARACTERS)


def generate_state() -> str:
    return generate_random_string(STATE_LENGTH)


def generate_code_verifier() -> str:
    return generate_random_string(CODE_VERIFIER_LENGTH)


def generate_code_challenge(code_verifier: str) -> str:
    """base64url(SHA-256(verifier)) without padding, the S256 method."""

    return create_s256_code_challenge(code_verifier)


def new_pkce_challenge() -> PkceChallenge:
    code_verifier = generate_code_verifier()
    return PkceChallenge(
        state=generate_state(),
        code_verifier=code_verifier,
        code_challenge=generate_code_challenge(code_verifier),
    )


def build_authorization_url(config: ClientConfig, state: str, code_challenge: str) -> str:
    endpoint = config.authorization_uri
    if not is_absolute_url(endpoint):
        raise ConfigurationError(f"authorization endpoint is not an absolute URL: {endpoint}")

    params = {
        "client_id": config.client_id,
        "response_type": "code",
        "redirect_uri": config.redirect_uri,
        "scope": config.scope,
        "state": state,
        "code_challenge": code_challenge,
        "code_challenge_method": "S256",
    }
    parts = urlsplit(endpoint)
    # extra endpoint parameters survive, but never a second copy of ours
    existing = parse_qsl(parts.query, keep_blank_values=True)
    extra = [(k, v) for k, v in existing if k not in params]
    query = urlencode(extra + list(params.items()))
    return urlunsplit(parts._replace(query=query))
