import pytest

from src.auth import PENDING_AUTHORIZATION_TTL, SESSION_AUTH_PREFIX, SessionAuthStore
from src.db import KV
from src.oauth2 import new_pkce_challenge
from src.oauth2.types import TokenResponse
from src.types import AuthStatus, SessionAuthState

T = 1_700_000_000.0


def test_expiry_boundaries() -> None:
    state = SessionAuthState(access_token="access-1", expires_in=3600, issued_at=T)

    assert state.is_expired(T + 3601) is True
    assert state.is_expired(T + 3599) is False
    assert state.is_expired(T + 3600) is False


@pytest.mark.parametrize("now", [T, T + 10**9])
def test_missing_expires_in_never_expires(now: float) -> None:
    state = SessionAuthState(access_token="access-1", expires_in=None, issued_at=T)

    assert state.is_expired(now) is False


def test_status_follows_fields() -> None:
    pkce = new_pkce_challenge()
    pending = SessionAuthState.pending(pkce)
    tokens = TokenResponse(access_token="access-1", token_type="Bearer", expires_in=60)
    authenticated = SessionAuthState.authenticated(tokens, "alice", issued_at=T)

    assert SessionAuthState().status is AuthStatus.NO_SESSION
    assert pending.status is AuthStatus.PENDING_AUTHORIZATION
    assert pending.oauth_state == pkce.state
    assert pending.code_verifier == pkce.code_verifier
    assert authenticated.status is AuthStatus.AUTHENTICATED
    assert authenticated.oauth_state is None
    assert authenticated.code_verifier is None
    assert authenticated.issued_at == T
    assert authenticated.username == "alice"


def test_repr_hides_tokens() -> None:
    state = SessionAuthState(access_token="secret-access", code_verifier="secret-verifier")

    assert "secret" not in repr(state)


@pytest.fixture
def store(app):
    with app.app_context():
        yield SessionAuthStore(KV(app, app.logger, SESSION_AUTH_PREFIX))


def test_store_round_trip(store) -> None:
    state = SessionAuthState(access_token="access-1", token_type="DPoP", expires_in=60, issued_at=T)

    store.put("sid-1", state)

    assert store.get("sid-1") == state
    assert store.get("sid-2") == SessionAuthState()


def test_store_remove(store) -> None:
    store.put("sid-1", SessionAuthState(oauth_state="s", code_verifier="v"))

    store.remove("sid-1")

    assert store.get("sid-1").status is AuthStatus.NO_SESSION


def test_take_pending_consumes_record_once(store) -> None:
    pending = SessionAuthState.pending(new_pkce_challenge())
    store.put("sid-1", pending)

    assert store.take_pending("sid-1") == pending
    assert store.take_pending("sid-1") == SessionAuthState()
    assert store.get("sid-1").status is AuthStatus.NO_SESSION


def test_corrupt_record_reads_as_no_session(store) -> None:
    store.kv.set("sid-1", "{not json")

    assert store.get("sid-1") == SessionAuthState()


def _row_count(store) -> int:
    return store.kv.db.execute(
        "select count(*) from keyval where prefix = ?", (SESSION_AUTH_PREFIX,)
    ).fetchone()[0]


def test_purge_removes_abandoned_pending_rows(store) -> None:
    store.put("sid-old", SessionAuthState.pending(new_pkce_challenge()), now=T)
    store.put("sid-new", SessionAuthState.pending(new_pkce_challenge()), now=T + 3600)

    assert store.purge_expired(now=T + 3600) == 1

    assert store.get("sid-old") == SessionAuthState()
    assert store.get("sid-new").status is AuthStatus.PENDING_AUTHORIZATION


def test_purge_keeps_pending_rows_inside_their_window(store) -> None:
    store.put("sid-1", SessionAuthState.pending(new_pkce_challenge()), now=T)

    assert store.purge_expired(now=T + PENDING_AUTHORIZATION_TTL) == 0
    assert _row_count(store) == 1


def test_purge_follows_token_lifetime(store) -> None:
    expiring = SessionAuthState(access_token="a", expires_in=60, issued_at=T)
    forever = SessionAuthState(access_token="b", expires_in=None, issued_at=T)
    store.put("sid-expiring", expiring)
    store.put("sid-forever", forever)

    assert store.purge_expired(now=T + 60) == 0
    assert store.purge_expired(now=T + 61) == 1

    assert store.get("sid-expiring") == SessionAuthState()
    assert store.get("sid-forever") == forever
