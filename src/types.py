import time
from enum import Enum
from typing import NamedTuple

from src.oauth2.types import PkceChallenge, TokenResponse


class AuthStatus(Enum):
    NO_SESSION = "no_session"
    PENDING_AUTHORIZATION = "pending_authorization"
    AUTHENTICATED = "authenticated"


class SessionAuthState(NamedTuple):
    # pending fields, only set between login init and callback
    oauth_state: str | None = None
    code_verifier: str | None = None
    # authenticated fields, only set after a successful callback
    access_token: str | None = None
    token_type: str | None = None
    expires_in: int | None = None
    issued_at: float | None = None
    refresh_token: str | None = None
    username: str | None = None

    @classmethod
    def pending(cls, pkce: PkceChallenge) -> "SessionAuthState":
        return cls(oauth_state=pkce.state, code_verifier=pkce.code_verifier)

    @classmethod
    def authenticated(
        cls,
        tokens: TokenResponse,
        username: str,
        issued_at: float | None = None,
    ) -> "SessionAuthState":
        return cls(
            access_token=tokens.access_token,
            token_type=tokens.token_type,
            expires_in=tokens.expires_in,
            issued_at=time.time() if issued_at is None else issued_at,
            refresh_token=tokens.refresh_token,
            username=username,
        )

    @property
    def status(self) -> AuthStatus:
        if self.access_token:
            return AuthStatus.AUTHENTICATED
        if self.oauth_state or self.code_verifier:
            return AuthStatus.PENDING_AUTHORIZATION
        return AuthStatus.NO_SESSION

    def is_expired(self, now: float | None = None) -> bool:
        """True once `now` is past issued_at + expires_in.

        A token response without expires_in gives no lifetime at all; such a
        session is treated as never expiring rather than as already expired.
        """

        if self.expires_in is None:
            return False
        if now is None:
            now = time.time()
        issued_at = self.issued_at if self.issued_at is not None else 0
        return now > issued_at + self.expires_in

    def __repr__(self) -> str:
        return (
            f"SessionAuthState(status={self.status.value}, username={self.username!r}, "
            f"token_type={self.token_type!r}, expires_in={self.expires_in!r}, "
            f"issued_at={self.issued_at!r})"
        )


class Principal(NamedTuple):
    username: str
    access_token: str
    token_type: str

    def __repr__(self) -> str:
        return f"Principal(username={self.username!r}, token_type={self.token_type!r})"
