import hmac

from flask import Blueprint, current_app, redirect, request, session, url_for

from .auth import get_auth_store, get_session_id, rotate_session_id
from .errors import (
    AuthorizationServerError,
    CsrfValidationError,
    MissingPkceVerifier,
    OAuth2Error,
    TokenExchangeError,
)
from .oauth2.client import OAuth2Client
from .oauth2.types import TokenResponse
from .types import SessionAuthState

oauth = Blueprint("oauth", __name__, url_prefix="/oauth2")


def get_oauth2_client() -> OAuth2Client:
    return current_app.extensions["oauth2_client"]


def begin_login() -> str:
    """Moves the session to pending authorization and returns the IdP URL."""

    store = get_auth_store()
    _ = store.purge_expired()
    previous_session_id = get_session_id(session)
    if previous_session_id is not None:
        store.remove(previous_session_id)

    session_id = rotate_session_id(session)
    pkce, authorization_url = get_oauth2_client().begin_authorization()
    store.put(session_id, SessionAuthState.pending(pkce))

    current_app.logger.debug("stored pending authorization for new session")
    return authorization_url


@oauth.route("/authorize", methods=["GET", "POST"])
def oauth_authorize():
    try:
        authorization_url = begin_login()
    except OAuth2Error as exception:
        current_app.logger.error(f"authorization initiation failed: {exception}")
        return redirect(url_for("pages.page_login", error="authorization_failed"), 302)

    current_app.logger.info("generated authorization URL, redirecting user")
    return redirect(authorization_url, 302)


@oauth.get("/callback")
async def oauth_callback():
    session_id = get_session_id(session)
    store = get_auth_store()

    # consumed before any check, state and verifier are single-use
    pending = store.take_pending(session_id) if session_id else SessionAuthState()

    try:
        tokens, username = await _complete_login(pending)
    except TokenExchangeError as exception:
        current_app.logger.error(
            f"token exchange failed: {exception} status={exception.status} body={exception.body}"
        )
        return _login_error(exception)
    except OAuth2Error as exception:
        current_app.logger.warning(f"authorization callback rejected: {exception}")
        return _login_error(exception)

    assert session_id is not None
    store.put(session_id, SessionAuthState.authenticated(tokens, username))
    current_app.logger.info(f"login complete for user: {username}")
    return redirect(url_for("pages.page_home"), 302)


async def _complete_login(pending: SessionAuthState) -> tuple[TokenResponse, str]:
    error = request.args.get("error")
    code = request.args.get("code")
    state = request.args.get("state")

    if error:
        description = request.args.get("error_description")
        raise AuthorizationServerError(
            f"authorization server returned error={error} description={description}"
        )
    if not code:
        raise AuthorizationServerError("missing authorization code", "missing_code")
    if not state:
        raise AuthorizationServerError("missing state parameter", "missing_state")

    if not pending.oauth_state or not hmac.compare_digest(
        pending.oauth_state.encode("utf-8"), state.encode("utf-8")
    ):
        raise CsrfValidationError("state parameter mismatch")
    if not pending.code_verifier:
        raise MissingPkceVerifier("code_verifier missing from session")

    client = get_oauth2_client()
    tokens = await client.exchange_code(code, pending.code_verifier)
    username = await client.fetch_username(tokens)
    return tokens, username


def _login_error(exception: OAuth2Error):
    return redirect(url_for("pages.page_login", error=exception.error_code), 302)
