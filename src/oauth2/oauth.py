import asyncio
import json
import logging
from typing import Any

from aiohttp.client import ClientSession
from aiohttp.client_exceptions import ClientError

from src.errors import MissingPkceVerifier, TokenExchangeError

from .dpop import DPoPKeyManager
from .types import ClientConfig, TokenResponse

logger = logging.getLogger(__name__)

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"
JSON_CONTENT_TYPE = "application/json"


# Completes the auth flow by sending the authorization_code grant to the token endpoint.
# The code is single use, so nothing here retries; every failure is a TokenExchangeError.
async def initial_token_request(
    client: ClientSession,
    config: ClientConfig,
    code: str,
    code_verifier: str | None,
    dpop: DPoPKeyManager | None = None,
) -> TokenResponse:
    if not code_verifier:
        raise MissingPkceVerifier("code_verifier not found in session")

    params = {
        "grant_type": "authorization_code",
        "code": code,
        "client_id": config.client_id,
    }
    # Confidential clients authenticate with their secret, public clients rely on PKCE alone
    if config.client_secret is not None:
        params["client_secret"] = config.client_secret
    params["redirect_uri"] = config.redirect_uri
    params["code_verifier"] = code_verifier

    headers = {
        "Content-Type": FORM_CONTENT_TYPE,
        "Accept": JSON_CONTENT_TYPE,
    }
    if dpop is not None:
        # No access token yet, so the proof carries no ath claim
        headers["DPoP"] = dpop.generate_dpop("POST", config.token_uri)

    token_body = await _post_json(client, config.token_uri, params, headers)
    try:
        tokens = TokenResponse.from_payload(token_body)
    except (ValueError, TypeError, OverflowError) as exception:
        raise TokenExchangeError(f"invalid token response: {exception}") from exception

    logger.debug(f"token exchange successful: {tokens!r}")
    return tokens


# Fetches the OpenID userinfo document for a freshly issued access token.
# DPoP-bound tokens are presented with the DPoP scheme and a proof carrying ath.
async def userinfo_request(
    client: ClientSession,
    url: str,
    tokens: TokenResponse,
    dpop: DPoPKeyManager | None = None,
) -> dict[str, Any]:
    headers = {"Accept": JSON_CONTENT_TYPE}
    if tokens.is_dpop_bound and dpop is not None:
        headers["Authorization"] = f"DPoP {tokens.access_token}"
        headers["DPoP"] = dpop.generate_dpop("GET", url, tokens.access_token)
    else:
        headers["Authorization"] = f"Bearer {tokens.access_token}"

    try:
        resp = await client.get(url, headers=headers)
        status = resp.status
        text = await resp.text()
    except (ClientError, asyncio.TimeoutError) as exception:
        raise TokenExchangeError(f"userinfo request failed: {exception}") from exception

    if not 200 <= status < 300:
        raise TokenExchangeError(
            f"userinfo request failed with status {status}", status=status, body=text
        )
    return _parse_json_object(text, status)


async def _post_json(
    client: ClientSession,
    url: str,
    params: dict[str, str],
    headers: dict[str, str],
) -> dict[str, Any]:
    try:
        resp = await client.post(url, data=params, headers=headers)
        status = resp.status
        text = await resp.text()
    except (ClientError, asyncio.TimeoutError) as exception:
        raise TokenExchangeError(f"token request failed: {exception!r}") from exception

    if not 200 <= status < 300:
        raise TokenExchangeError(
            f"token request failed with status {status}", status=status, body=text
        )
    return _parse_json_object(text, status)


def _parse_json_object(text: str, status: int) -> dict[str, Any]:
    try:
        body = json.loads(text)
    except ValueError as exception:
        raise TokenExchangeError(
            "response body is not JSON", status=status, body=text
        ) from exception
    if not isinstance(body, dict):
        raise TokenExchangeError("response body is not a JSON object", status=status, body=text)
    return body
