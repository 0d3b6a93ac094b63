import json
import time

from authlib.common.security import generate_token
from flask import current_app, g, redirect, request, session
from flask.sessions import SessionMixin
from flask_htmx import HTMX
from flask_htmx import make_response as htmx_response
from werkzeug.wrappers import Response

from src.db import KV as DBKV
from src.oauth2.kv import KV
from src.types import AuthStatus, Principal, SessionAuthState

SESSION_ID_KEY = "sid"
SESSION_AUTH_PREFIX = "session_auth"
# seconds a started login may wait for its callback before it is purged
PENDING_AUTHORIZATION_TTL = 600
PUBLIC_PATHS = frozenset(["/", "/login", "/oauth2/authorize", "/oauth2/callback"])

htmx = HTMX()


class SessionAuthStore:
    """Per-session auth records, keyed by the opaque id from the session cookie."""

    kv: KV

    def __init__(self, kv: KV):
        self.kv = kv

    def get(self, session_id: str) -> SessionAuthState:
        return _decode(self.kv.get(session_id))

    def put(self, session_id: str, state: SessionAuthState, now: float | None = None):
        if now is None:
            now = time.time()
        self.kv.set(session_id, json.dumps(state._asdict()), _expires_at(state, now))

    def remove(self, session_id: str):
        self.kv.delete(session_id)

    def take_pending(self, session_id: str) -> SessionAuthState:
        """Returns the record and clears it, so a callback can consume it only once."""

        return _decode(self.kv.pop(session_id))

    def purge_expired(self, now: float | None = None) -> int:
        """Drops abandoned logins and sessions whose token lifetime has passed."""

        return self.kv.purge_expired(now)


def _expires_at(state: SessionAuthState, now: float) -> float | None:
    match state.status:
        case AuthStatus.PENDING_AUTHORIZATION:
            return now + PENDING_AUTHORIZATION_TTL
        case AuthStatus.AUTHENTICATED if state.expires_in is not None:
            issued_at = state.issued_at if state.issued_at is not None else now
            return issued_at + state.expires_in
        case _:
            # no lifetime from the token endpoint, kept until logout or the next login
            return None


def _decode(raw: str | None) -> SessionAuthState:
    if raw is None:
        return SessionAuthState()
    try:
        return SessionAuthState(**json.loads(raw))
    except (ValueError, TypeError) as exception:
        current_app.logger.debug(f"unable to load session auth state: {exception}")
        return SessionAuthState()


# Session id helpers


def get_session_id(session: SessionMixin) -> str | None:
    return session.get(SESSION_ID_KEY)


def rotate_session_id(session: SessionMixin) -> str:
    """Gives the user agent a fresh id, so a login never reuses an older one."""

    session_id = generate_token(32)
    session[SESSION_ID_KEY] = session_id
    return session_id


def get_auth_store() -> SessionAuthStore:
    return SessionAuthStore(DBKV(current_app, current_app.logger, SESSION_AUTH_PREFIX))


def get_principal() -> Principal | None:
    return g.get("principal")


# Request filter


def authentication_filter() -> Response | None:
    """Runs before every request; returning None lets the request through."""

    g.principal = None
    if request.path in PUBLIC_PATHS:
        return None

    session_id = get_session_id(session)
    if session_id is not None:
        store = get_auth_store()
        state = store.get(session_id)
        if state.status is AuthStatus.AUTHENTICATED:
            if not state.is_expired():
                g.principal = Principal(
                    username=state.username or "anonymous-user",
                    access_token=state.access_token or "",
                    token_type=state.token_type or "Bearer",
                )
                current_app.logger.debug(
                    f"session authentication established for user: {g.principal.username}"
                )
                return None
            current_app.logger.info("access token in session expired")
            store.remove(session_id)

    current_app.logger.info(f"no valid access token in session, redirecting {request.path} to login")
    return _redirect_to_login()


def _redirect_to_login() -> Response:
    if htmx:
        return htmx_response(redirect="/login")
    return redirect("/login", 302)
